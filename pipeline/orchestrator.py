"""Quote Pipeline Orchestrator for DrawQuote.

Generates a quotation from an engineering drawing:
Drawing -> Spec Extraction -> Spec Validation -> Cost Calculation
-> Market Adjustment -> Cost Analysis -> Quote

Extraction, validation and cost failures are fatal for the quote. Missing
market data, analysis failures and persistence failures are absorbed.
"""

import asyncio
import time
from typing import List, Optional, Tuple
from uuid import uuid4

import structlog

from config.settings import settings
from config.errors import DrawQuoteError, ErrorCode, QuoteGenerationError
from models.drawing import DrawingSource, DrawingSpecs
from models.quote import (
    BatchItemFailure,
    BatchQuoteReport,
    CustomPricingRules,
    PipelineStage,
    QuoteResult,
)
from services.cost_calculator import CostCalculator
from services.extraction_service import SpecExtractionService
from services.firestore_service import FirestoreService
from services.market_service import MarketAdjustmentEngine
from services.review_service import SpecReviewService
from utils.pipeline_logger import (
    log_batch_summary,
    log_quote_complete,
    log_quote_failed,
    log_quote_start,
    log_stage_complete,
)

logger = structlog.get_logger()

DEFAULT_CONFIDENCE = 0.5
ANALYSIS_FALLBACK = "analysis unavailable"

# Error code reported for a fatal failure in each stage
STAGE_ERROR_CODES = {
    PipelineStage.EXTRACTION: ErrorCode.EXTRACTION_FAILED,
    PipelineStage.VALIDATION: ErrorCode.SPEC_VALIDATION_FAILED,
    PipelineStage.COST: ErrorCode.COST_CALCULATION_FAILED,
}


def apply_custom_rules(
    quote: QuoteResult,
    custom_rules: Optional[CustomPricingRules]
) -> QuoteResult:
    """Return a copy of the quote with client-specific pricing applied."""
    if custom_rules is None or not custom_rules.profit_margin_percentage:
        return quote

    margin = custom_rules.profit_margin_percentage
    return quote.model_copy(update={
        "final_price": quote.final_price * (1 + margin / 100),
        "profit_margin_percentage": margin,
    })


class QuoteOrchestrator:
    """Runs the quotation pipeline for one or many drawings.

    Collaborators are injected; each defaults to the production implementation.
    """

    def __init__(
        self,
        extraction_service: Optional[SpecExtractionService] = None,
        review_service: Optional[SpecReviewService] = None,
        cost_calculator: Optional[CostCalculator] = None,
        market_engine: Optional[MarketAdjustmentEngine] = None,
        firestore_service: Optional[FirestoreService] = None,
        batch_concurrency: Optional[int] = None
    ):
        """Initialize QuoteOrchestrator.

        Args:
            extraction_service: Drawing -> specs provider.
            review_service: Spec validation and cost analysis provider.
            cost_calculator: Cost arithmetic with its lookup tables.
            market_engine: Market adjustment engine.
            firestore_service: Persistence gateway.
            batch_concurrency: Max quotes generated at once in bulk runs.

        Raises:
            ValueError: If the batch concurrency is below 1.
        """
        self.extraction = extraction_service or SpecExtractionService()
        self.review = review_service or SpecReviewService()
        self.calculator = cost_calculator or CostCalculator()
        self.market = market_engine or MarketAdjustmentEngine()
        self.firestore = firestore_service or FirestoreService()
        if batch_concurrency is None:
            batch_concurrency = settings.batch_concurrency
        if batch_concurrency < 1:
            raise ValueError(f"batch_concurrency must be at least 1, got {batch_concurrency}")
        self.batch_concurrency = batch_concurrency

    async def generate_quote(self, source: DrawingSource) -> QuoteResult:
        """Generate a complete quotation from a drawing.

        Args:
            source: The drawing. When it carries a drawing_id the quote is
                persisted and the drawing record updated (best-effort).

        Returns:
            QuoteResult with final_price = base_cost x market factor.

        Raises:
            QuoteGenerationError: If extraction, validation or cost
                calculation fails.
        """
        start_time = time.time()
        quote_id = str(uuid4())
        log_quote_start(quote_id, source.file_name)

        # Step 1: Extract specs from the drawing
        try:
            extracted_specs = await self.extraction.extract_specs(source)
        except Exception as e:
            raise await self._fatal(quote_id, source, PipelineStage.EXTRACTION, e) from e
        log_stage_complete(
            quote_id, PipelineStage.EXTRACTION.value,
            material=extracted_specs.material,
            confidence=extracted_specs.confidence
        )

        # Step 2: Validate and correct specs
        try:
            validated_specs = await self.review.validate_specs(extracted_specs)
        except Exception as e:
            raise await self._fatal(quote_id, source, PipelineStage.VALIDATION, e) from e

        if validated_specs.confidence is None:
            fallback = extracted_specs.confidence
            if fallback is None:
                fallback = DEFAULT_CONFIDENCE
            logger.warning("validated_confidence_missing", quote_id=quote_id, fallback=fallback)
            validated_specs = validated_specs.model_copy(update={"confidence": fallback})
        log_stage_complete(quote_id, PipelineStage.VALIDATION.value, material=validated_specs.material)

        # Step 3: Calculate base cost
        try:
            breakdown = self.calculator.compute_cost(validated_specs)
        except Exception as e:
            raise await self._fatal(quote_id, source, PipelineStage.COST, e) from e
        log_stage_complete(quote_id, PipelineStage.COST.value, base_cost=breakdown.base_cost)

        # Step 4: Market adjustment
        market_adjustment = self.market.compute_adjustment(validated_specs.material)
        log_stage_complete(
            quote_id, PipelineStage.MARKET.value,
            factor=market_adjustment.factor,
            source=market_adjustment.data_source
        )

        # Step 5: Final price
        final_price = breakdown.base_cost * market_adjustment.factor

        # Step 6: Cost analysis
        analysis = await self._generate_analysis(quote_id, validated_specs, breakdown)

        confidence_score = extracted_specs.confidence
        if confidence_score is None:
            confidence_score = DEFAULT_CONFIDENCE

        result = QuoteResult(
            quote_id=quote_id,
            base_cost=breakdown.base_cost,
            market_adjustment=market_adjustment,
            final_price=final_price,
            breakdown=breakdown,
            confidence_score=confidence_score,
            extracted_specs=validated_specs,
            analysis=analysis,
        )

        processing_time_ms = int((time.time() - start_time) * 1000)

        # Step 7: Persist
        if source.drawing_id:
            await self._persist(result, source.drawing_id, processing_time_ms)

        log_quote_complete(
            quote_id=quote_id,
            base_cost=result.base_cost,
            factor=market_adjustment.factor,
            final_price=result.final_price,
            duration_ms=processing_time_ms
        )
        return result

    async def generate_quote_with_custom_rules(
        self,
        source: DrawingSource,
        custom_rules: Optional[CustomPricingRules] = None
    ) -> QuoteResult:
        """Generate a quote, then apply client-specific pricing rules.

        The persisted record keeps the unadjusted quote.
        """
        quote = await self.generate_quote(source)
        return apply_custom_rules(quote, custom_rules)

    async def generate_bulk_quotes(self, sources: List[DrawingSource]) -> List[QuoteResult]:
        """Generate quotes for several drawings.

        Failed drawings are logged and left out, so the result may be
        shorter than the input. Successful quotes keep input order.
        """
        report = await self.generate_bulk_quotes_with_report(sources)
        return report.quotes

    async def generate_bulk_quotes_with_report(self, sources: List[DrawingSource]) -> BatchQuoteReport:
        """Generate quotes for several drawings and report per-item failures."""
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def run(index: int, source: DrawingSource) -> Tuple[Optional[QuoteResult], Optional[BatchItemFailure]]:
            async with semaphore:
                try:
                    return await self.generate_quote(source), None
                except DrawQuoteError as e:
                    logger.error(
                        "bulk_quote_item_failed",
                        index=index,
                        source_name=source.file_name,
                        code=e.code,
                        error=e.message
                    )
                    return None, BatchItemFailure(
                        index=index,
                        source_name=source.file_name,
                        stage=getattr(e, "stage", None),
                        code=e.code,
                        message=e.message,
                    )
                except Exception as e:
                    logger.exception("bulk_quote_item_crashed", index=index, source_name=source.file_name)
                    return None, BatchItemFailure(
                        index=index,
                        source_name=source.file_name,
                        code=ErrorCode.INTERNAL_ERROR,
                        message=str(e),
                    )

        outcomes = await asyncio.gather(*(run(i, s) for i, s in enumerate(sources)))

        report = BatchQuoteReport(
            quotes=[quote for quote, _ in outcomes if quote is not None],
            failures=[failure for _, failure in outcomes if failure is not None],
        )
        log_batch_summary(
            requested=len(sources),
            succeeded=len(report.quotes),
            failed_sources=[f.source_name for f in report.failures]
        )
        return report

    async def _generate_analysis(self, quote_id: str, specs: DrawingSpecs, breakdown) -> str:
        try:
            analysis = await self.review.generate_cost_analysis(specs, breakdown)
        except Exception as e:
            logger.warning("cost_analysis_unavailable", quote_id=quote_id, error=str(e))
            return ANALYSIS_FALLBACK
        log_stage_complete(quote_id, PipelineStage.ANALYSIS.value, length=len(analysis))
        return analysis

    async def _persist(self, result: QuoteResult, drawing_id: str, processing_time_ms: int) -> None:
        """Best-effort save of the quote and drawing status."""
        try:
            saved = await self.firestore.save_quote(result, drawing_id)
            if saved:
                await self.firestore.mark_drawing_analyzed(
                    drawing_id,
                    result.extracted_specs,
                    processing_time_ms
                )
        except Exception as e:
            logger.error(
                "quote_persistence_failed",
                quote_id=result.quote_id,
                drawing_id=drawing_id,
                error=str(e)
            )

    async def _fatal(
        self,
        quote_id: str,
        source: DrawingSource,
        stage: PipelineStage,
        error: Exception
    ) -> QuoteGenerationError:
        """Log a fatal stage failure, mark the drawing failed, build the error."""
        message = error.message if isinstance(error, DrawQuoteError) else str(error)
        log_quote_failed(quote_id, source.file_name, stage.value, message)

        if source.drawing_id:
            await self.firestore.mark_drawing_failed(source.drawing_id, f"{stage.value}: {message}")

        details = {"quote_id": quote_id}
        if isinstance(error, DrawQuoteError):
            details["cause_code"] = error.code
        return QuoteGenerationError(
            code=STAGE_ERROR_CODES[stage],
            message=f"Quote generation failed at {stage.value}: {message}",
            stage=stage.value,
            source_name=source.file_name,
            details=details
        )
