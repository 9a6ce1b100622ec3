"""Quote Pipeline Logger for DrawQuote.

Provides highly visible, formatted logging for quote generation runs
with distinctive visual markers that stand out in log streams.
"""

from datetime import datetime, timezone
from typing import List

import structlog

logger = structlog.get_logger()

BANNER_WIDTH = 80
PIPELINE_BANNER_CHAR = "█"
STAGE_BANNER_CHAR = "─"
BATCH_BANNER_CHAR = "═"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_quote_start(quote_id: str, source_name: str) -> None:
    """Log quote generation start with prominent banner."""
    print("\n")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, "DRAWQUOTE PIPELINE STARTED"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Quote ID  : {quote_id}")
    print(f"║ Drawing   : {source_name}")
    print(f"║ Timestamp : {_now()}")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)

    logger.info("quote_generation_started", quote_id=quote_id, source_name=source_name)


def log_stage_complete(quote_id: str, stage: str, **details) -> None:
    """Log one completed pipeline stage."""
    summary = ", ".join(f"{key}={value}" for key, value in details.items())
    print(f"{STAGE_BANNER_CHAR * 3} ✓ {stage.upper()} {summary}")

    logger.info("quote_stage_completed", quote_id=quote_id, stage=stage, **details)


def log_quote_complete(
    quote_id: str,
    base_cost: float,
    factor: float,
    final_price: float,
    duration_ms: int
) -> None:
    """Log quote completion with summary."""
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, "✓ QUOTE GENERATED"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Quote ID    : {quote_id}")
    print(f"║ Base Cost   : ${base_cost:,.2f}")
    print(f"║ Market      : x{factor:g}")
    print(f"║ Final Price : ${final_price:,.2f}")
    print(f"║ Duration    : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "quote_generated",
        quote_id=quote_id,
        base_cost=base_cost,
        factor=factor,
        final_price=final_price,
        duration_ms=duration_ms
    )


def log_quote_failed(quote_id: str, source_name: str, stage: str, error: str) -> None:
    """Log quote failure with details."""
    print("\n")
    print("!" * BANNER_WIDTH)
    print(_create_banner("!", "✗ QUOTE GENERATION FAILED"))
    print("!" * BANNER_WIDTH)
    print(f"║ Quote ID  : {quote_id}")
    print(f"║ Drawing   : {source_name}")
    print(f"║ Timestamp : {_now()}")
    print(f"║ Stage     : {stage}")
    print(f"║ Error     : {error}")
    print("!" * BANNER_WIDTH)
    print("\n")

    logger.error(
        "quote_generation_failed",
        quote_id=quote_id,
        source_name=source_name,
        stage=stage,
        error=error
    )


def log_batch_summary(requested: int, succeeded: int, failed_sources: List[str]) -> None:
    """Log the outcome of a bulk quote run."""
    print(BATCH_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(BATCH_BANNER_CHAR, f"BATCH: {succeeded}/{requested} QUOTES GENERATED"))
    if failed_sources:
        print(f"║ Failed : {', '.join(failed_sources)}")
    print(BATCH_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "bulk_quotes_completed",
        requested=requested,
        succeeded=succeeded,
        failed=len(failed_sources)
    )
