"""DrawQuote quotation pipeline.

This package contains:
- Orchestrator (single and bulk quote generation)
- Quote lifecycle (reviewer status changes)
"""

from pipeline.orchestrator import QuoteOrchestrator
from pipeline.quote_lifecycle import QuoteLifecycle

__all__ = ["QuoteOrchestrator", "QuoteLifecycle"]
