"""Utility modules for DrawQuote."""

from utils.pipeline_logger import (
    log_quote_start,
    log_stage_complete,
    log_quote_complete,
    log_quote_failed,
    log_batch_summary,
)

__all__ = [
    "log_quote_start",
    "log_stage_complete",
    "log_quote_complete",
    "log_quote_failed",
    "log_batch_summary",
]
