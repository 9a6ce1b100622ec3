"""DrawQuote configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Unified secret access (Secret Manager / environment)
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import DrawQuoteError
from config.secrets import get_secret, get_openai_api_key

__all__ = [
    "settings",
    "DrawQuoteError",
    "get_secret",
    "get_openai_api_key",
]
