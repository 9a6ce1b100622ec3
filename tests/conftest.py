"""Pytest configuration and shared fixtures for DrawQuote tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (models/, services/, pipeline/, config/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from services...`,
# so the repository root must be importable during collection.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Secrets come from the environment, never Secret Manager, under test
os.environ.setdefault("FUNCTIONS_EMULATOR", "true")


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    client = MagicMock()

    collection_mock = MagicMock()
    document_mock = MagicMock()

    # Set up chain: client.collection().document()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock
    document_mock.id = "doc-test-id"

    # Mock async methods
    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=True,
        id="doc-test-id",
        to_dict=lambda: {"status": "uploaded"}
    ))
    document_mock.set = AsyncMock()
    document_mock.update = AsyncMock()
    document_mock.delete = AsyncMock()

    return client


@pytest.fixture
def mock_firestore_service(mock_firestore_client):
    """FirestoreService with mocked client."""
    from services.firestore_service import FirestoreService

    return FirestoreService(db=mock_firestore_client)


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """LLMService whose chat model is mocked."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key", max_attempts=1)
        service._client = mock_chat_openai
        return service


# ============================================================================
# Pipeline Doubles
# ============================================================================

@pytest.fixture
def mock_extraction_service():
    """Extraction service returning the aluminum bracket specs."""
    from tests.fixtures.mock_drawing_data import ALUMINUM_BRACKET_SPECS

    service = MagicMock()
    service.extract_specs = AsyncMock(return_value=ALUMINUM_BRACKET_SPECS)
    return service


@pytest.fixture
def mock_review_service():
    """Review service that passes specs through and writes a short analysis."""
    service = MagicMock()
    service.validate_specs = AsyncMock(side_effect=lambda specs: specs)
    service.generate_cost_analysis = AsyncMock(return_value="Reasonable for a simple CNC part.")
    return service


@pytest.fixture
def mock_persistence():
    """Persistence gateway double with best-effort semantics."""
    service = MagicMock()
    service.save_quote = AsyncMock(return_value=True)
    service.mark_drawing_analyzed = AsyncMock()
    service.mark_drawing_failed = AsyncMock(return_value=True)
    return service


@pytest.fixture
def orchestrator(mock_extraction_service, mock_review_service, mock_persistence):
    """QuoteOrchestrator wired to doubles and the real calculator and market engine."""
    from pipeline.orchestrator import QuoteOrchestrator
    from services.cost_calculator import CostCalculator
    from services.market_service import MarketAdjustmentEngine, MockMarketDataProvider

    return QuoteOrchestrator(
        extraction_service=mock_extraction_service,
        review_service=mock_review_service,
        cost_calculator=CostCalculator(),
        market_engine=MarketAdjustmentEngine(MockMarketDataProvider()),
        firestore_service=mock_persistence,
        batch_concurrency=2,
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def sample_specs():
    """Validated aluminum bracket specs."""
    from tests.fixtures.mock_drawing_data import ALUMINUM_BRACKET_SPECS

    return ALUMINUM_BRACKET_SPECS


@pytest.fixture
def sample_source():
    """In-memory PNG drawing without a drawing record."""
    from tests.fixtures.mock_drawing_data import make_source

    return make_source("bracket.png")


@pytest.fixture
def sample_extraction_payload():
    """Raw extraction JSON for the aluminum bracket."""
    from tests.fixtures.mock_drawing_data import ALUMINUM_BRACKET_EXTRACTION

    return dict(ALUMINUM_BRACKET_EXTRACTION)


@pytest.fixture(autouse=True)
def mock_settings():
    """Pin settings for all tests."""
    from config.settings import settings

    with patch.object(settings, "_openai_api_key", "test-api-key"), \
            patch.object(settings, "strict_status_transitions", False), \
            patch.object(settings, "batch_concurrency", 4), \
            patch.object(settings, "max_file_size", 52428800), \
            patch.object(settings, "max_batch_files", 10):
        yield settings
