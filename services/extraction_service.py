"""Drawing specification extraction for DrawQuote.

Sends the raw drawing (image or PDF) to a vision-capable chat model and
normalizes its answer into DrawingSpecs. Works with any manufacturing
drawing (generic approach, Phase 1).

The model reports confidence on a 0-100 scale; DrawingSpecs.from_extraction
converts it to the pipeline's 0-1 scale at this boundary.
"""

from typing import List, Optional

import structlog

from config.settings import settings
from config.errors import DrawQuoteError, ErrorCode
from models.drawing import DrawingSource, DrawingSpecs
from services.llm_service import LLMService

logger = structlog.get_logger()


EXTRACTION_SYSTEM_PROMPT = "You are an expert manufacturing engineer analyzing technical drawings."

EXTRACTION_PROMPT = """Extract the following information from this engineering drawing:

1. MATERIAL: What material(s) are used? (e.g., aluminum, steel, plastic)
2. QUANTITY: How much material is needed? (provide number and unit)
3. DIMENSIONS: What are the key dimensions? (length, width, height in appropriate units)
4. MANUFACTURING PROCESS: What processes are required? (e.g., CNC machining, welding, casting, 3D printing)
5. COMPLEXITY: Rate the complexity from 1-10 (1=simple, 10=extremely complex)
6. SPECIAL REQUIREMENTS: Any special requirements? (e.g., surface finish, tolerance, certifications)

Respond in this JSON format:
{
  "material": "material name",
  "materialQuantity": number,
  "materialUnit": "kg/lb/m3/etc",
  "dimensions": {
    "length": number,
    "width": number,
    "height": number,
    "unit": "mm/cm/inch/etc"
  },
  "manufacturingProcess": ["process1", "process2"],
  "complexity": number,
  "specialRequirements": ["requirement1", "requirement2"],
  "confidence": number
}

If any field cannot be determined, use null or an empty array.
Confidence should be 0-100 indicating how confident you are in the extraction."""


class SpecExtractionService:
    """Extracts DrawingSpecs from drawing bytes."""

    def __init__(self, llm_service: Optional[LLMService] = None):
        """Initialize SpecExtractionService.

        Args:
            llm_service: Vision-capable LLM service. Defaults to the
                configured extraction model.
        """
        self.llm = llm_service or LLMService(model=settings.extraction_model)

    async def extract_specs(self, source: DrawingSource) -> DrawingSpecs:
        """Analyze a drawing and extract its specifications.

        Args:
            source: Raw drawing bytes and media type.

        Returns:
            Normalized DrawingSpecs (confidence on 0-1 scale).

        Raises:
            DrawQuoteError: If the model is unreachable or its answer is malformed.
        """
        if not source.content:
            raise DrawQuoteError(
                code=ErrorCode.EXTRACTION_FAILED,
                message="Drawing is empty",
                details={"file_name": source.file_name}
            )

        result = await self.llm.generate_json_with_attachment(
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            user_message=EXTRACTION_PROMPT,
            data=source.content,
            media_type=source.media_type,
            file_name=source.file_name,
        )

        try:
            specs = DrawingSpecs.from_extraction(result["content"])
        except ValueError as e:
            raise DrawQuoteError(
                code=ErrorCode.EXTRACTION_FAILED,
                message=f"Extracted specs are malformed: {e}",
                details={"file_name": source.file_name}
            )

        logger.info(
            "drawing_specs_extracted",
            file_name=source.file_name,
            material=specs.material,
            complexity=specs.complexity,
            confidence=specs.confidence,
            tokens_used=result["tokens_used"]
        )
        return specs

    async def extract_specs_batch(self, sources: List[DrawingSource]) -> List[DrawingSpecs]:
        """Extract specs for several drawings, one result per input.

        Failed drawings get DrawingSpecs.error_placeholder().
        """
        results: List[DrawingSpecs] = []
        for source in sources:
            try:
                results.append(await self.extract_specs(source))
            except DrawQuoteError as e:
                logger.error("batch_extraction_failed", file_name=source.file_name, error=e.message)
                results.append(DrawingSpecs.error_placeholder())
        return results
