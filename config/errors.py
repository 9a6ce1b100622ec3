"""DrawQuote error handling.

Custom exceptions and error codes for the quotation pipeline.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Request Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Pipeline Errors (2xxx)
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SPEC_VALIDATION_FAILED = "SPEC_VALIDATION_FAILED"
    COST_CALCULATION_FAILED = "COST_CALCULATION_FAILED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"

    # Quote Lifecycle Errors (3xxx)
    QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Firestore Errors (5xxx)
    FIRESTORE_ERROR = "FIRESTORE_ERROR"
    FIRESTORE_WRITE_FAILED = "FIRESTORE_WRITE_FAILED"

    # LLM Errors (6xxx)
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # Internal Errors (9xxx)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DrawQuoteError(Exception):
    """Base exception for DrawQuote errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize DrawQuoteError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(DrawQuoteError):
    """Request validation error, raised before any pipeline work."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict] = None,
        code: str = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class CostCalculationError(DrawQuoteError):
    """Raised when specs violate the cost calculator's numeric invariants."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.COST_CALCULATION_FAILED,
            message=message,
            details=details
        )


class QuoteGenerationError(DrawQuoteError):
    """Fatal failure that aborted the generation of one quote."""

    def __init__(
        self,
        code: str,
        message: str,
        stage: str,
        source_name: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={
                **(details or {}),
                "stage": stage,
                "source_name": source_name
            }
        )
        self.stage = stage
        self.source_name = source_name
