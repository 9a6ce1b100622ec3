"""Drawing models for DrawQuote.

Pydantic models for the specifications extracted from an engineering drawing,
the raw drawing handed to the pipeline, and the persisted drawing record.
"""

import math
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# CONSTANTS
# =============================================================================

COMPLEXITY_MIN = 1
COMPLEXITY_MAX = 10

# Media types understood by the extraction service, keyed by file extension
MIME_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}
DEFAULT_MIME_TYPE = "image/jpeg"


# =============================================================================
# HELPERS
# =============================================================================


def normalize_name(name: Optional[str]) -> str:
    """Normalize a material or process name for table lookups.

    Lowercases, trims, and collapses whitespace runs to underscores:
    "Stainless Steel" -> "stainless_steel".
    """
    if not name:
        return ""
    return re.sub(r"\s+", "_", name.strip().lower())


def clamp_confidence(value: Optional[float]) -> Optional[float]:
    """Clamp a 0-1 confidence; values above 1 are read as percentages."""
    if value is None:
        return None
    value = float(value)
    if math.isnan(value):
        return None
    if value > 1.0:
        value = value / 100.0
    return min(max(value, 0.0), 1.0)


def confidence_from_percent(value: Optional[float]) -> Optional[float]:
    """Convert a 0-100 confidence to the canonical 0-1 scale."""
    if value is None:
        return None
    value = float(value)
    if math.isnan(value):
        return None
    return min(max(value, 0.0), 100.0) / 100.0


def mime_type_for(file_name: str) -> str:
    """Determine MIME type from a file name's extension."""
    return MIME_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_MIME_TYPE)


# =============================================================================
# ENUMS
# =============================================================================


class DrawingStatus(str, Enum):
    """Processing status of an uploaded drawing."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    FAILED = "failed"


class DrawingFileType(str, Enum):
    """Kind of drawing file."""

    PDF = "pdf"
    IMAGE = "image"
    CAD = "cad"


# =============================================================================
# SPECIFICATIONS
# =============================================================================


class Dimensions(BaseModel):
    """Three-axis bounding dimensions of the part."""

    length: float = Field(default=0.0, description="Length along X")
    width: float = Field(default=0.0, description="Width along Y")
    height: float = Field(default=0.0, description="Height along Z")
    unit: str = Field(default="mm", description="Length unit (mm/cm/inch)")

    @field_validator("length", "width", "height", mode="before")
    @classmethod
    def default_missing(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, v: Any) -> Any:
        return v or "mm"

    class Config:
        frozen = True


class DrawingSpecs(BaseModel):
    """Structured manufacturing attributes extracted from a drawing.

    Confidence is always on the 0-1 scale inside the pipeline. Complexity is
    clamped to [1, 10] whenever it is present.
    """

    material: str = Field(default="Unknown", description="Material name")
    material_quantity: Optional[float] = Field(
        default=None,
        alias="materialQuantity",
        description="Amount of material needed"
    )
    material_unit: str = Field(
        default="kg",
        alias="materialUnit",
        description="Unit of material_quantity (kg/lb/m3)"
    )
    dimensions: Dimensions = Field(default_factory=Dimensions)
    manufacturing_process: List[str] = Field(
        default_factory=list,
        alias="manufacturingProcess",
        description="Ordered manufacturing process names"
    )
    complexity: Optional[int] = Field(
        default=None,
        description="Complexity rating 1-10"
    )
    special_requirements: List[str] = Field(
        default_factory=list,
        alias="specialRequirements",
        description="Surface finish, tolerances, certifications"
    )
    confidence: Optional[float] = Field(
        default=None,
        description="Extraction confidence (0-1)"
    )

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("complexity", mode="before")
    @classmethod
    def clamp_complexity(cls, v: Any) -> Optional[int]:
        if v is None:
            return None
        value = float(v)
        if not math.isfinite(value):
            return None
        return int(min(max(round(value), COMPLEXITY_MIN), COMPLEXITY_MAX))

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence_value(cls, v: Any) -> Optional[float]:
        return clamp_confidence(v)

    @field_validator("manufacturing_process", "special_requirements", mode="before")
    @classmethod
    def drop_empty_entries(cls, v: Any) -> List[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(item).strip() for item in v if item and str(item).strip()]

    @field_validator("material", mode="before")
    @classmethod
    def default_material(cls, v: Any) -> str:
        return str(v).strip() if v else "Unknown"

    @field_validator("material_unit", mode="before")
    @classmethod
    def default_material_unit(cls, v: Any) -> str:
        return v or "kg"

    @field_validator("dimensions", mode="before")
    @classmethod
    def default_dimensions(cls, v: Any) -> Any:
        return v or {}

    @classmethod
    def from_extraction(cls, raw: Dict[str, Any]) -> "DrawingSpecs":
        """Build specs from a raw extraction payload.

        The extraction service reports confidence on a 0-100 scale and may
        leave any field null. Missing values receive extraction defaults.
        """
        quantity = raw.get("materialQuantity")
        confidence = raw.get("confidence")
        return cls(
            material=raw.get("material"),
            material_quantity=quantity if quantity else 1.0,
            material_unit=raw.get("materialUnit"),
            dimensions=raw.get("dimensions"),
            manufacturing_process=raw.get("manufacturingProcess"),
            complexity=raw.get("complexity") if raw.get("complexity") is not None else 5,
            special_requirements=raw.get("specialRequirements"),
            confidence=confidence_from_percent(confidence if confidence is not None else 50),
        )

    @classmethod
    def error_placeholder(cls) -> "DrawingSpecs":
        """Specs standing in for a drawing whose extraction failed."""
        return cls(material="ERROR", material_quantity=0.0, material_unit="", confidence=0.0)

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Camel-cased dict for LLM prompts and Firestore."""
        return self.model_dump(by_alias=True)


# =============================================================================
# INPUT SOURCE
# =============================================================================


class DrawingSource(BaseModel):
    """A drawing handed to the quotation pipeline."""

    file_name: str = Field(alias="fileName", description="Original file name")
    content: bytes = Field(repr=False, description="Raw drawing bytes")
    media_type: str = Field(
        default=DEFAULT_MIME_TYPE,
        alias="mediaType",
        description="MIME type of content"
    )
    drawing_id: Optional[str] = Field(
        default=None,
        alias="drawingId",
        description="Persisted drawing record this source belongs to"
    )
    file_path: Optional[str] = Field(default=None, alias="filePath")

    class Config:
        populate_by_name = True
        frozen = True

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        drawing_id: Optional[str] = None
    ) -> "DrawingSource":
        """Read a local drawing file."""
        path = Path(path)
        return cls(
            file_name=path.name,
            content=path.read_bytes(),
            media_type=mime_type_for(path.name),
            drawing_id=drawing_id,
            file_path=str(path),
        )

    @property
    def file_type(self) -> DrawingFileType:
        return DrawingFileType.PDF if "pdf" in self.media_type else DrawingFileType.IMAGE

    @property
    def size(self) -> int:
        return len(self.content)


# =============================================================================
# PERSISTED RECORD
# =============================================================================


class DrawingRecord(BaseModel):
    """Drawing document stored in /drawings/{drawingId}."""

    id: Optional[str] = Field(default=None, description="Drawing document ID")
    file_name: str = Field(alias="fileName")
    file_type: DrawingFileType = Field(alias="fileType")
    file_path: Optional[str] = Field(default=None, alias="filePath")
    status: DrawingStatus = Field(default=DrawingStatus.UPLOADED)
    extracted_specs: Optional[DrawingSpecs] = Field(default=None, alias="extractedSpecs")
    processing_time_ms: Optional[int] = Field(default=None, alias="processingTime")
    error: Optional[str] = None
    uploaded_at: Optional[datetime] = Field(default=None, alias="uploadedAt")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True
        use_enum_values = True
