"""Unit tests for the quote status lifecycle."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import DrawQuoteError, ErrorCode, ValidationError
from models.quote import QuoteStatus
from pipeline.quote_lifecycle import (
    ALLOWED_TRANSITIONS,
    QuoteLifecycle,
    can_transition,
    parse_settable_status,
)


@pytest.fixture
def quote_store():
    store = MagicMock()
    store.update_quote_status = AsyncMock()
    store.get_quote = AsyncMock(return_value=MagicMock(status="generated"))
    return store


class TestParseSettableStatus:
    """Tests for status value validation."""

    @pytest.mark.parametrize("value", ["reviewed", "approved", "rejected", "finalized"])
    def test_accepts_reviewer_statuses(self, value):
        assert parse_settable_status(value) == QuoteStatus(value)

    @pytest.mark.parametrize("value", ["generated", "deleted", "", "APPROVED", None, 3])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_settable_status(value)

        error = exc_info.value
        assert error.code == ErrorCode.INVALID_FIELD
        assert error.field == "status"
        assert error.details["validStatuses"] == ["approved", "finalized", "rejected", "reviewed"]


class TestTransitionTable:
    """Tests for the strict transition table."""

    def test_forward_path(self):
        assert can_transition("generated", "reviewed")
        assert can_transition("reviewed", "approved")
        assert can_transition("reviewed", "rejected")
        assert can_transition("approved", "finalized")
        assert can_transition("rejected", "finalized")

    def test_no_backward_or_skipping_moves(self):
        assert not can_transition("generated", "approved")
        assert not can_transition("approved", "reviewed")
        assert not can_transition("approved", "rejected")

    def test_finalized_is_terminal(self):
        assert ALLOWED_TRANSITIONS[QuoteStatus.FINALIZED] == frozenset()
        for status in QuoteStatus:
            assert not can_transition(QuoteStatus.FINALIZED, status)


class TestQuoteLifecycle:
    """Tests for QuoteLifecycle.set_status."""

    @pytest.mark.asyncio
    async def test_permissive_writes_without_reading(self, quote_store):
        lifecycle = QuoteLifecycle(firestore_service=quote_store, strict=False)

        status = await lifecycle.set_status("q-1", "finalized")

        assert status == QuoteStatus.FINALIZED
        quote_store.get_quote.assert_not_called()
        quote_store.update_quote_status.assert_awaited_once_with("q-1", QuoteStatus.FINALIZED)

    @pytest.mark.asyncio
    async def test_invalid_status_never_touches_store(self, quote_store):
        lifecycle = QuoteLifecycle(firestore_service=quote_store, strict=True)

        with pytest.raises(ValidationError):
            await lifecycle.set_status("q-1", "deleted")

        quote_store.get_quote.assert_not_called()
        quote_store.update_quote_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_strict_allows_table_move(self, quote_store):
        lifecycle = QuoteLifecycle(firestore_service=quote_store, strict=True)

        status = await lifecycle.set_status("q-1", "reviewed")

        assert status == QuoteStatus.REVIEWED
        quote_store.update_quote_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_strict_rejects_skipping_review(self, quote_store):
        lifecycle = QuoteLifecycle(firestore_service=quote_store, strict=True)

        with pytest.raises(DrawQuoteError) as exc_info:
            await lifecycle.set_status("q-1", "approved")

        assert exc_info.value.code == ErrorCode.INVALID_STATUS_TRANSITION
        assert exc_info.value.details["allowed"] == ["reviewed"]
        quote_store.update_quote_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_strict_unknown_quote(self, quote_store):
        quote_store.get_quote = AsyncMock(return_value=None)
        lifecycle = QuoteLifecycle(firestore_service=quote_store, strict=True)

        with pytest.raises(DrawQuoteError) as exc_info:
            await lifecycle.set_status("q-missing", "reviewed")

        assert exc_info.value.code == ErrorCode.QUOTE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_mode_defaults_to_setting(self, quote_store, mock_settings):
        mock_settings.strict_status_transitions = True

        lifecycle = QuoteLifecycle(firestore_service=quote_store)

        assert lifecycle.strict is True

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, quote_store):
        quote_store.update_quote_status = AsyncMock(side_effect=DrawQuoteError(
            code=ErrorCode.FIRESTORE_WRITE_FAILED,
            message="write failed"
        ))
        lifecycle = QuoteLifecycle(firestore_service=quote_store)

        with pytest.raises(DrawQuoteError) as exc_info:
            await lifecycle.set_status("q-1", "approved")

        assert exc_info.value.code == ErrorCode.FIRESTORE_WRITE_FAILED
