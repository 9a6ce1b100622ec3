"""Spec review and cost analysis for DrawQuote.

Two text-model capabilities used by the quotation pipeline:
- validate_specs: correct obvious errors in extracted specs
- generate_cost_analysis: short professional justification of a cost estimate
"""

import json
from collections import OrderedDict
from typing import Optional

import structlog

from config.errors import DrawQuoteError, ErrorCode
from models.drawing import DrawingSpecs
from models.quote import CostBreakdown
from services.llm_service import LLMService

logger = structlog.get_logger()

# Distinct spec payloads remembered by validate_specs
VALIDATION_CACHE_SIZE = 256

VALIDATION_SYSTEM_PROMPT = (
    "You are a manufacturing expert. Validate and correct extracted drawing "
    "specifications if needed."
)

VALIDATION_PROMPT = """Raw Specifications:
{raw_specs}

Return the specifications in this exact format, correcting any obvious errors:
{{
  "material": "corrected material name",
  "materialQuantity": number,
  "materialUnit": "unit",
  "dimensions": {{
    "length": number,
    "width": number,
    "height": number,
    "unit": "unit"
  }},
  "manufacturingProcess": ["process1", "process2"],
  "complexity": number between 1-10,
  "specialRequirements": ["requirement1"],
  "confidence": number between 0 and 1
}}"""

ANALYSIS_SYSTEM_PROMPT = "You are a manufacturing cost analyst."

ANALYSIS_PROMPT = """Based on the following product specifications and cost breakdown, provide a brief professional analysis (2-3 sentences) of why this cost estimate is reasonable.

Product Specifications:
- Material: {material} ({quantity} {unit})
- Dimensions: {length}x{width}x{height} {dim_unit}
- Manufacturing Processes: {processes}
- Complexity Level: {complexity}/10
- Special Requirements: {requirements}

Cost Breakdown:
- Material Cost: ${material_cost:.2f}
- Labor Cost: ${labor_cost:.2f} ({hours} hours @ ${rate:g}/hr)
- Overhead ({overhead_pct:g}%): ${overhead_cost:.2f}
- Total Base Cost: ${base_cost:.2f}

Provide a brief, professional justification for this cost estimate."""


def _cache_key(specs: DrawingSpecs) -> str:
    return json.dumps(specs.to_prompt_dict(), sort_keys=True)


class SpecReviewService:
    """Validates extracted specs and explains cost estimates."""

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        analysis_llm_service: Optional[LLMService] = None,
        cache_size: int = VALIDATION_CACHE_SIZE
    ):
        """Initialize SpecReviewService.

        Args:
            llm_service: LLM used for validation. Defaults to temperature 0
                so identical input yields identical corrections.
            analysis_llm_service: LLM used for analysis text. Defaults to
                llm_service.
            cache_size: Most recent validations kept for reuse.
        """
        self.llm = llm_service or LLMService(temperature=0.0)
        self.analysis_llm = analysis_llm_service or self.llm
        self.cache_size = cache_size
        self._validated: "OrderedDict[str, DrawingSpecs]" = OrderedDict()

    async def validate_specs(self, raw_specs: DrawingSpecs) -> DrawingSpecs:
        """Validate and correct extracted specs.

        Results are cached per process by the canonical JSON of the input,
        so repeated validation of identical specs returns identical output.

        Args:
            raw_specs: Specs from the extraction service.

        Returns:
            Corrected DrawingSpecs. Confidence is left unset if the model
            does not provide one.

        Raises:
            DrawQuoteError: If the model is unreachable or its answer is malformed.
        """
        key = _cache_key(raw_specs)
        cached = self._validated.get(key)
        if cached is not None:
            self._validated.move_to_end(key)
            logger.debug("spec_validation_cache_hit", material=raw_specs.material)
            return cached.model_copy(deep=True)

        result = await self.llm.generate_json(
            system_prompt=VALIDATION_SYSTEM_PROMPT,
            user_message=VALIDATION_PROMPT.format(raw_specs=json.dumps(raw_specs.to_prompt_dict(), indent=2)),
            max_tokens=500
        )

        try:
            validated = DrawingSpecs.model_validate(result["content"])
        except ValueError as e:
            raise DrawQuoteError(
                code=ErrorCode.SPEC_VALIDATION_FAILED,
                message=f"Validated specs are malformed: {e}",
                details={"material": raw_specs.material}
            )

        # Callers get their own copy; the cached entry is never handed out
        self._validated[key] = validated.model_copy(deep=True)
        while len(self._validated) > self.cache_size:
            self._validated.popitem(last=False)
        logger.info(
            "drawing_specs_validated",
            material=validated.material,
            confidence=validated.confidence,
            tokens_used=result["tokens_used"]
        )
        return validated

    async def generate_cost_analysis(
        self,
        specs: DrawingSpecs,
        cost_breakdown: CostBreakdown
    ) -> str:
        """Generate a short justification of the cost estimate.

        Raises:
            DrawQuoteError: If the model fails or returns no text.
        """
        dims = specs.dimensions
        prompt = ANALYSIS_PROMPT.format(
            material=specs.material,
            quantity=specs.material_quantity,
            unit=specs.material_unit,
            length=dims.length,
            width=dims.width,
            height=dims.height,
            dim_unit=dims.unit,
            processes=", ".join(specs.manufacturing_process) or "None",
            complexity=specs.complexity if specs.complexity is not None else "unknown",
            requirements=", ".join(specs.special_requirements) or "None",
            material_cost=cost_breakdown.material.total_cost,
            labor_cost=cost_breakdown.labor.total_cost,
            hours=cost_breakdown.labor.hours,
            rate=cost_breakdown.labor.hourly_rate,
            overhead_pct=cost_breakdown.overhead.percentage,
            overhead_cost=cost_breakdown.overhead.total_cost,
            base_cost=cost_breakdown.base_cost,
        )

        result = await self.analysis_llm.generate_with_system_prompt(
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            user_message=prompt,
            max_tokens=300
        )

        analysis = result["content"].strip()
        if not analysis:
            raise DrawQuoteError(
                code=ErrorCode.ANALYSIS_FAILED,
                message="Cost analysis response was empty"
            )
        return analysis
