"""Firestore service for DrawQuote.

Persistence gateway for drawing records, quote records and review feedback.
Quote saves are best-effort: a computed quote stays valid even when it could
not be stored.
"""

from typing import Dict, Any, Optional
import inspect
import structlog

from firebase_admin import firestore

from config.errors import DrawQuoteError, ErrorCode
from models.drawing import DrawingRecord, DrawingSpecs, DrawingStatus
from models.quote import QuoteRecord, QuoteResult, QuoteStatus, ReviewFeedback

logger = structlog.get_logger()


class FirestoreService:
    """Service for Firestore operations.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    COLLECTION_DRAWINGS = "drawings"
    COLLECTION_QUOTES = "quotes"
    COLLECTION_REVIEWS = "reviews"

    def __init__(self, db=None):
        """Initialize FirestoreService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    # =========================================================================
    # Drawings
    # =========================================================================

    async def create_drawing(self, record: DrawingRecord) -> str:
        """Create a drawing document.

        Args:
            record: Drawing record. Its id is used as document ID when set.

        Returns:
            The drawing document ID.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        try:
            collection = self.db.collection(self.COLLECTION_DRAWINGS)
            doc_ref = collection.document(record.id) if record.id else collection.document()

            data = record.model_dump(by_alias=True, exclude_none=True, exclude={"id"})
            data["uploadedAt"] = firestore.SERVER_TIMESTAMP
            data["createdAt"] = firestore.SERVER_TIMESTAMP

            await self._maybe_await(doc_ref.set(data))
            logger.info("drawing_created", drawing_id=doc_ref.id, file_name=record.file_name)
            return doc_ref.id

        except Exception as e:
            logger.error("drawing_create_failed", file_name=record.file_name, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to create drawing: {str(e)}",
                details={"file_name": record.file_name}
            )

    async def get_drawing(self, drawing_id: str) -> Optional[DrawingRecord]:
        """Fetch drawing document by ID.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_DRAWINGS).document(drawing_id)
            doc = await self._maybe_await(doc_ref.get())

            if doc.exists:
                return DrawingRecord.model_validate({"id": doc.id, **doc.to_dict()})
            return None

        except Exception as e:
            logger.error("firestore_get_failed", drawing_id=drawing_id, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get drawing: {str(e)}",
                details={"drawing_id": drawing_id}
            )

    async def update_drawing(self, drawing_id: str, data: Dict[str, Any]) -> None:
        """Update drawing document.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_DRAWINGS).document(drawing_id)
            await self._maybe_await(doc_ref.update(data))
            logger.info("drawing_updated", drawing_id=drawing_id, fields=list(data.keys()))

        except Exception as e:
            logger.error("firestore_update_failed", drawing_id=drawing_id, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to update drawing: {str(e)}",
                details={"drawing_id": drawing_id}
            )

    async def mark_drawing_analyzed(
        self,
        drawing_id: str,
        specs: DrawingSpecs,
        processing_time_ms: Optional[int] = None
    ) -> None:
        """Record extracted specs and move the drawing to analyzed."""
        data: Dict[str, Any] = {
            "status": DrawingStatus.ANALYZED.value,
            "extractedSpecs": specs.to_prompt_dict(),
        }
        if processing_time_ms is not None:
            data["processingTime"] = processing_time_ms
        await self.update_drawing(drawing_id, data)

    async def mark_drawing_failed(self, drawing_id: str, error: str) -> bool:
        """Move the drawing to failed. Best-effort: never raises.

        Returns:
            True if the update was written.
        """
        try:
            await self.update_drawing(drawing_id, {"status": DrawingStatus.FAILED.value, "error": error})
            return True
        except DrawQuoteError as e:
            logger.warning("drawing_fail_mark_skipped", drawing_id=drawing_id, error=e.message)
            return False

    # =========================================================================
    # Quotes
    # =========================================================================

    async def save_quote(self, result: QuoteResult, drawing_id: Optional[str] = None) -> bool:
        """Save a generated quote. Best-effort: failures are logged, not raised.

        Writes /quotes/{quoteId} with status "generated". The drawing record,
        if any, is updated separately by the caller.

        Args:
            result: The generated quote.
            drawing_id: Drawing record the quote was generated from.

        Returns:
            True if the quote was written.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_QUOTES).document(result.quote_id)

            quote_data = result.to_firestore_dict()
            quote_data.update({
                "drawingId": drawing_id,
                "materialCost": result.breakdown.material.total_cost,
                "laborCost": result.breakdown.labor.total_cost,
                "overheadCost": result.breakdown.overhead.total_cost,
                "currency": "USD",
                "status": QuoteStatus.GENERATED.value,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            })

            await self._maybe_await(doc_ref.set(quote_data))
            logger.info("quote_saved", quote_id=result.quote_id, drawing_id=drawing_id)
            return True

        except Exception as e:
            logger.error(
                "quote_save_failed",
                quote_id=result.quote_id,
                drawing_id=drawing_id,
                error=str(e)
            )
            return False

    async def get_quote(self, quote_id: str) -> Optional[QuoteRecord]:
        """Fetch quote document by ID.

        Returns:
            QuoteRecord or None if not found.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_QUOTES).document(quote_id)
            doc = await self._maybe_await(doc_ref.get())

            if doc.exists:
                return QuoteRecord.model_validate({"quoteId": doc.id, **doc.to_dict()})
            return None

        except Exception as e:
            logger.error("firestore_get_failed", quote_id=quote_id, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get quote: {str(e)}",
                details={"quote_id": quote_id}
            )

    async def update_quote_status(self, quote_id: str, status: QuoteStatus) -> None:
        """Set a quote's lifecycle status.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        status_value = QuoteStatus(status).value
        try:
            doc_ref = self.db.collection(self.COLLECTION_QUOTES).document(quote_id)
            await self._maybe_await(doc_ref.update({
                "status": status_value,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }))
            logger.info("quote_status_updated", quote_id=quote_id, status=status_value)

        except Exception as e:
            logger.error("quote_status_update_failed", quote_id=quote_id, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to update quote status: {str(e)}",
                details={"quote_id": quote_id, "status": status_value}
            )

    # =========================================================================
    # Reviews
    # =========================================================================

    async def save_review(self, review: ReviewFeedback) -> str:
        """Store reviewer feedback on a quote.

        Returns:
            The review document ID.

        Raises:
            DrawQuoteError: If Firestore operation fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_REVIEWS).document()
            data = review.model_dump(by_alias=True, exclude_none=True)
            data["reviewedAt"] = firestore.SERVER_TIMESTAMP

            await self._maybe_await(doc_ref.set(data))
            logger.info(
                "review_saved",
                quote_id=review.quote_id,
                percentage_difference=review.percentage_difference
            )
            return doc_ref.id

        except Exception as e:
            logger.error("review_save_failed", quote_id=review.quote_id, error=str(e))
            raise DrawQuoteError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to save review: {str(e)}",
                details={"quote_id": review.quote_id}
            )
