#!/usr/bin/env python3
"""Generate quotes for local drawing files, or review a stored quote.

Usage:
    # One drawing -> one quote, printed as JSON
    python scripts/generate_quote.py quote path/to/bracket.pdf

    # Several drawings -> batch run with a failure report
    python scripts/generate_quote.py quote a.png b.png c.pdf --out quotes.json

    # Register drawings in Firestore so quotes are persisted
    python scripts/generate_quote.py quote bracket.pdf --register

    # Client margin on top of the market-adjusted price
    python scripts/generate_quote.py quote bracket.pdf --margin 15

    # Reviewer status change on a persisted quote
    python scripts/generate_quote.py status <quote-id> approved --strict
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List

import structlog

# Allow running from the repository root or from scripts/
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config.settings import settings  # noqa: E402
from config.errors import DrawQuoteError  # noqa: E402
from models.drawing import DrawingRecord, DrawingSource, DrawingStatus  # noqa: E402
from models.quote import CustomPricingRules  # noqa: E402
from pipeline.orchestrator import QuoteOrchestrator, apply_custom_rules  # noqa: E402
from pipeline.quote_lifecycle import QuoteLifecycle  # noqa: E402
from services.firestore_service import FirestoreService  # noqa: E402
from validators.drawing_validator import validate_batch  # noqa: E402

# Configure logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ]
)
logger = structlog.get_logger()


def _init_firebase() -> None:
    import firebase_admin

    if not firebase_admin._apps:
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        firebase_admin.initialize_app(options=options)


async def _register_sources(sources: List[DrawingSource], firestore_service: FirestoreService) -> List[DrawingSource]:
    """Create a drawing record per source and attach its ID.

    Records start as processing; the pipeline moves them to analyzed or failed.
    """
    registered = []
    for source in sources:
        drawing_id = await firestore_service.create_drawing(DrawingRecord(
            file_name=source.file_name,
            file_type=source.file_type,
            file_path=source.file_path,
            status=DrawingStatus.PROCESSING,
        ))
        registered.append(source.model_copy(update={"drawing_id": drawing_id}))
    return registered


async def run_quote(args: argparse.Namespace) -> Dict[str, Any]:
    settings.validate()
    sources = validate_batch([DrawingSource.from_path(path) for path in args.files])

    firestore_service = FirestoreService()
    if args.register:
        _init_firebase()
        sources = await _register_sources(sources, firestore_service)

    orchestrator = QuoteOrchestrator(firestore_service=firestore_service)
    rules = CustomPricingRules(profit_margin_percentage=args.margin) if args.margin else None

    if len(sources) == 1:
        quote = await orchestrator.generate_quote_with_custom_rules(sources[0], rules)
        return quote.model_dump(by_alias=True, mode="json")

    report = await orchestrator.generate_bulk_quotes_with_report(sources)
    return {
        "quotes": [
            apply_custom_rules(quote, rules).model_dump(by_alias=True, mode="json")
            for quote in report.quotes
        ],
        "failures": [failure.model_dump(by_alias=True) for failure in report.failures],
    }


async def run_status(args: argparse.Namespace) -> Dict[str, Any]:
    _init_firebase()
    lifecycle = QuoteLifecycle(strict=args.strict or None)
    status = await lifecycle.set_status(args.quote_id, args.status)
    return {"quoteId": args.quote_id, "status": status.value}


def main() -> int:
    parser = argparse.ArgumentParser(description="DrawQuote command line")
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote_parser = subparsers.add_parser("quote", help="Generate quotes for drawing files")
    quote_parser.add_argument("files", nargs="+", help="Drawing files (PDF or image)")
    quote_parser.add_argument("--margin", type=float, help="Profit margin percentage to apply")
    quote_parser.add_argument(
        "--register",
        action="store_true",
        help="Create drawing records in Firestore so quotes are persisted",
    )
    quote_parser.add_argument("--out", help="Write JSON to this file instead of stdout")

    status_parser = subparsers.add_parser("status", help="Set the review status of a stored quote")
    status_parser.add_argument("quote_id", help="Quote document ID")
    status_parser.add_argument("status", help="reviewed, approved, rejected or finalized")
    status_parser.add_argument(
        "--strict",
        action="store_true",
        help="Enforce the review transition order",
    )
    status_parser.add_argument("--out", help="Write JSON to this file instead of stdout")

    args = parser.parse_args()
    handler = run_quote if args.command == "quote" else run_status

    try:
        output = asyncio.run(handler(args))
    except DrawQuoteError as e:
        logger.error("command_failed", command=args.command, **e.to_dict())
        print(json.dumps({"error": e.to_dict()}, indent=2))
        return 2
    except ValueError as e:
        logger.error("configuration_invalid", error=str(e))
        return 2
    except OSError as e:
        logger.error("file_read_failed", error=str(e))
        return 3

    text = json.dumps(output, indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Wrote {args.out}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
