"""Quote status lifecycle for DrawQuote.

generated -> reviewed -> approved | rejected -> finalized

Reviewers may only set reviewed, approved, rejected or finalized; "generated"
is assigned at creation. Permissive mode (default) writes any of those
values regardless of the current status. Strict mode enforces the directed
transition table below.
"""

from typing import Dict, FrozenSet, Optional, Union

import structlog

from config.settings import settings
from config.errors import DrawQuoteError, ErrorCode, ValidationError
from models.quote import QuoteStatus
from services.firestore_service import FirestoreService

logger = structlog.get_logger()


SETTABLE_STATUSES: FrozenSet[QuoteStatus] = frozenset({
    QuoteStatus.REVIEWED,
    QuoteStatus.APPROVED,
    QuoteStatus.REJECTED,
    QuoteStatus.FINALIZED,
})

ALLOWED_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.GENERATED: frozenset({QuoteStatus.REVIEWED}),
    QuoteStatus.REVIEWED: frozenset({QuoteStatus.APPROVED, QuoteStatus.REJECTED}),
    QuoteStatus.APPROVED: frozenset({QuoteStatus.FINALIZED}),
    QuoteStatus.REJECTED: frozenset({QuoteStatus.FINALIZED}),
    QuoteStatus.FINALIZED: frozenset(),
}


def parse_settable_status(value: Union[str, QuoteStatus, None]) -> QuoteStatus:
    """Validate a requested status value.

    Raises:
        ValidationError: If value is not one of reviewed, approved,
            rejected, finalized.
    """
    valid = sorted(status.value for status in SETTABLE_STATUSES)
    try:
        status = QuoteStatus(value)
    except (ValueError, TypeError):
        status = None

    if status not in SETTABLE_STATUSES:
        raise ValidationError(
            message=f"Invalid status: {value!r}",
            field="status",
            details={"validStatuses": valid},
            code=ErrorCode.INVALID_FIELD
        )
    return status


def can_transition(current: Union[str, QuoteStatus], new: Union[str, QuoteStatus]) -> bool:
    """Whether the strict lifecycle allows moving from current to new."""
    return QuoteStatus(new) in ALLOWED_TRANSITIONS[QuoteStatus(current)]


class QuoteLifecycle:
    """Applies reviewer status changes to persisted quotes."""

    def __init__(
        self,
        firestore_service: Optional[FirestoreService] = None,
        strict: Optional[bool] = None
    ):
        """Initialize QuoteLifecycle.

        Args:
            firestore_service: Quote store.
            strict: Enforce the transition table. Defaults to the
                STRICT_STATUS_TRANSITIONS setting.
        """
        self.firestore = firestore_service or FirestoreService()
        self.strict = settings.strict_status_transitions if strict is None else strict

    async def set_status(self, quote_id: str, new_status: Union[str, QuoteStatus]) -> QuoteStatus:
        """Update a quote's status (user review/approval).

        Args:
            quote_id: Quote document ID.
            new_status: One of reviewed, approved, rejected, finalized.

        Returns:
            The status written.

        Raises:
            ValidationError: If new_status is not a settable value.
            DrawQuoteError: In strict mode, if the quote is missing or the
                transition is not allowed; or if the store write fails.
        """
        status = parse_settable_status(new_status)

        if self.strict:
            quote = await self.firestore.get_quote(quote_id)
            if quote is None:
                raise DrawQuoteError(
                    code=ErrorCode.QUOTE_NOT_FOUND,
                    message=f"Quote {quote_id} not found",
                    details={"quote_id": quote_id}
                )
            current = QuoteStatus(quote.status)
            if not can_transition(current, status):
                logger.warning(
                    "quote_status_transition_rejected",
                    quote_id=quote_id,
                    current=current.value,
                    requested=status.value
                )
                raise DrawQuoteError(
                    code=ErrorCode.INVALID_STATUS_TRANSITION,
                    message=f"Cannot move quote from {current.value} to {status.value}",
                    details={
                        "quote_id": quote_id,
                        "current": current.value,
                        "requested": status.value,
                        "allowed": sorted(s.value for s in ALLOWED_TRANSITIONS[current])
                    }
                )

        await self.firestore.update_quote_status(quote_id, status)
        return status
