"""Secret access for DrawQuote.

Production reads Google Cloud Secret Manager; emulator and local runs read
environment variables. Resolved values are cached per process.

Usage:
    from config.secrets import get_openai_api_key, require_secret

    api_key = get_openai_api_key()
    webhook_token = require_secret('QUOTE_WEBHOOK_TOKEN')
"""

import os
from functools import lru_cache
from typing import Optional

import structlog

logger = structlog.get_logger()

OPENAI_API_KEY_SECRET = "OPENAI_API_KEY"
DEFAULT_PROJECT_ID = "drawquote-dev"


def is_emulator_mode() -> bool:
    """Whether secrets should come from the environment."""
    return (
        os.environ.get("FUNCTIONS_EMULATOR") == "true"
        or os.environ.get("USE_FIREBASE_EMULATORS", "").lower() == "true"
        or os.environ.get("FIRESTORE_EMULATOR_HOST") is not None
    )


def _project_id() -> str:
    return (
        os.environ.get("GCLOUD_PROJECT")
        or os.environ.get("GOOGLE_CLOUD_PROJECT")
        or os.environ.get("FIREBASE_PROJECT_ID")
        or DEFAULT_PROJECT_ID
    )


def get_secret(secret_id: str) -> Optional[str]:
    """Read a secret by name.

    Args:
        secret_id: Secret name, e.g. 'OPENAI_API_KEY'.

    Returns:
        The secret value, or None if it is not set anywhere.
    """
    if is_emulator_mode():
        value = os.environ.get(secret_id)
        if not value:
            logger.warning("secret_missing_from_environment", secret_id=secret_id)
        return value

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{_project_id()}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        logger.debug("secret_loaded", secret_id=secret_id, source="secret_manager")
        return response.payload.data.decode("UTF-8")

    except Exception as e:
        # Deployed functions also receive bound secrets as environment variables
        logger.warning("secret_manager_read_failed", secret_id=secret_id, error=str(e))
        return os.environ.get(secret_id)


def require_secret(secret_id: str) -> str:
    """Read a secret that must be present.

    Raises:
        DrawQuoteError: If the secret is not set.
    """
    from config.errors import DrawQuoteError, ErrorCode

    value = get_secret(secret_id)
    if not value:
        raise DrawQuoteError(
            code=ErrorCode.MISSING_FIELD,
            message=f"Secret {secret_id} is not configured",
            details={"secret_id": secret_id}
        )
    return value


@lru_cache(maxsize=1)
def get_openai_api_key() -> Optional[str]:
    """OpenAI API key used by the extraction, validation and analysis models."""
    return get_secret(OPENAI_API_KEY_SECRET)


def clear_secret_cache() -> None:
    """Forget cached secrets, e.g. after rotation."""
    get_openai_api_key.cache_clear()
