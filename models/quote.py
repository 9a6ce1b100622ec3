"""Quote models for DrawQuote.

Pydantic models for cost breakdowns, market adjustments, generated quotes,
persisted quote records, and review feedback.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from models.drawing import DrawingSpecs


# =============================================================================
# ENUMS
# =============================================================================


class QuoteStatus(str, Enum):
    """Lifecycle status of a persisted quote."""

    GENERATED = "generated"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    FINALIZED = "finalized"


class PipelineStage(str, Enum):
    """Stages of the quotation pipeline, in execution order."""

    EXTRACTION = "extraction"
    VALIDATION = "validation"
    COST = "cost"
    MARKET = "market"
    ANALYSIS = "analysis"
    PERSISTENCE = "persistence"


# =============================================================================
# COST BREAKDOWN
# =============================================================================


class MaterialLineItem(BaseModel):
    """Material portion of a cost breakdown."""

    description: str = Field(description="Material name as specified")
    quantity: float = Field(description="Material quantity")
    unit_cost: float = Field(alias="unitCost", description="Cost per unit")
    total_cost: float = Field(alias="totalCost", description="quantity x unit_cost")

    class Config:
        populate_by_name = True
        frozen = True


class LaborLineItem(BaseModel):
    """Labor portion of a cost breakdown."""

    hours: float = Field(description="Labor hours from complexity")
    hourly_rate: float = Field(alias="hourlyRate", description="Mean process rate")
    total_cost: float = Field(alias="totalCost", description="hours x hourly_rate")

    class Config:
        populate_by_name = True
        frozen = True


class OverheadLineItem(BaseModel):
    """Overhead portion of a cost breakdown."""

    percentage: float = Field(description="Overhead percent of direct costs")
    total_cost: float = Field(alias="totalCost", description="Overhead amount")

    class Config:
        populate_by_name = True
        frozen = True


class CostBreakdown(BaseModel):
    """Itemized material, labor and overhead costs.

    base_cost is always material + labor + overhead totals.
    """

    material: MaterialLineItem
    labor: LaborLineItem
    overhead: OverheadLineItem
    base_cost: float = Field(alias="baseCost", description="Sum of the three totals")

    class Config:
        populate_by_name = True
        frozen = True

    @classmethod
    def zero(cls, description: str = "") -> "CostBreakdown":
        """Create an all-zero breakdown."""
        return cls(
            material=MaterialLineItem(description=description, quantity=0.0, unit_cost=0.0, total_cost=0.0),
            labor=LaborLineItem(hours=0.0, hourly_rate=0.0, total_cost=0.0),
            overhead=OverheadLineItem(percentage=0.0, total_cost=0.0),
            base_cost=0.0,
        )


# =============================================================================
# MARKET
# =============================================================================


class MarketAdjustment(BaseModel):
    """Multiplicative price correction from commodity trends."""

    factor: float = Field(default=1.0, description="Price multiplier, e.g. 1.05")
    reason: str = Field(default="", description="Human-readable explanation")
    data_source: str = Field(default="NONE", alias="dataSource", description="Market data source tag")

    class Config:
        populate_by_name = True
        frozen = True


class CommodityPrice(BaseModel):
    """A commodity price point from the market data provider."""

    commodity: str
    price: float
    unit: str = "USD/kg"
    price_date: datetime = Field(alias="priceDate")
    source: str = "MOCK_DATA"
    trend: float = Field(default=0.0, description="Percent change from baseline")

    class Config:
        populate_by_name = True


# =============================================================================
# QUOTE
# =============================================================================


class QuoteResult(BaseModel):
    """Complete output of one quotation pipeline run."""

    quote_id: str = Field(alias="quoteId")
    base_cost: float = Field(alias="baseCost")
    market_adjustment: MarketAdjustment = Field(alias="marketAdjustment")
    final_price: float = Field(alias="finalPrice")
    breakdown: CostBreakdown
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
    extracted_specs: DrawingSpecs = Field(alias="extractedSpecs")
    analysis: str = ""
    profit_margin_percentage: Optional[float] = Field(
        default=None,
        alias="profitMarginPercentage",
        description="Client margin applied on top of the market-adjusted price"
    )

    class Config:
        populate_by_name = True
        frozen = True

    def to_firestore_dict(self) -> Dict[str, Any]:
        """Convert to Firestore-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class QuoteRecord(QuoteResult):
    """Quote document stored in /quotes/{quoteId}."""

    drawing_id: Optional[str] = Field(default=None, alias="drawingId")
    status: QuoteStatus = Field(default=QuoteStatus.GENERATED)
    currency: str = "USD"
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True
        use_enum_values = True


class CustomPricingRules(BaseModel):
    """Client-specific adjustments applied after quote generation."""

    client_id: Optional[str] = Field(default=None, alias="clientId")
    profit_margin_percentage: Optional[float] = Field(default=None, alias="profitMarginPercentage")

    class Config:
        populate_by_name = True


# =============================================================================
# REVIEW FEEDBACK
# =============================================================================


class ReviewFeedback(BaseModel):
    """A reviewer's correction of a generated quote price."""

    quote_id: str = Field(alias="quoteId")
    ai_generated_price: float = Field(alias="aiGeneratedPrice")
    user_corrected_price: float = Field(alias="userCorrectedPrice")
    difference: Optional[float] = None
    percentage_difference: Optional[float] = Field(default=None, alias="percentageDifference")
    feedback: Optional[str] = None
    is_accurate: Optional[bool] = Field(default=None, alias="isAccurate")
    reviewed_by: Optional[str] = Field(default=None, alias="reviewedBy")
    client_id: Optional[str] = Field(default=None, alias="clientId")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def derive_difference(self) -> "ReviewFeedback":
        """Fill difference and percentage difference from the two prices."""
        if self.difference is None:
            self.difference = self.user_corrected_price - self.ai_generated_price
        if self.percentage_difference is None and self.ai_generated_price:
            self.percentage_difference = self.difference / self.ai_generated_price * 100
        return self


# =============================================================================
# BATCH
# =============================================================================


class BatchItemFailure(BaseModel):
    """One drawing that failed inside a batch."""

    index: int = Field(description="Position of the source in the batch input")
    source_name: str = Field(alias="sourceName")
    stage: Optional[str] = None
    code: str
    message: str

    class Config:
        populate_by_name = True


class BatchQuoteReport(BaseModel):
    """Successful quotes of a batch in input order, plus per-item failures."""

    quotes: List[QuoteResult] = Field(default_factory=list)
    failures: List[BatchItemFailure] = Field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.quotes) + len(self.failures)
