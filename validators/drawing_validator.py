"""Intake validation for drawing uploads.

Request-level checks run before any pipeline work: a file must be present,
of a supported type, and within the size limit; batches are capped in length.
"""

from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from config.settings import settings
from config.errors import ErrorCode, ValidationError
from models.drawing import MIME_TYPES, DrawingSource

logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = frozenset(MIME_TYPES)


def validate_upload(
    file_name: Optional[str],
    size: Optional[int],
    max_file_size: Optional[int] = None
) -> str:
    """Validate one uploaded drawing.

    Args:
        file_name: Original file name.
        size: File size in bytes.
        max_file_size: Size limit; defaults to the MAX_FILE_SIZE setting.

    Returns:
        The lowercased file extension.

    Raises:
        ValidationError: MISSING_FIELD, UNSUPPORTED_FILE_TYPE or FILE_TOO_LARGE.
    """
    if not file_name or not size:
        raise ValidationError(
            message="No file provided",
            field="file",
            code=ErrorCode.MISSING_FIELD
        )

    extension = Path(file_name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            message=f"Unsupported file type: {extension or file_name}",
            field="file",
            details={"allowedTypes": sorted(ALLOWED_EXTENSIONS)},
            code=ErrorCode.UNSUPPORTED_FILE_TYPE
        )

    limit = settings.max_file_size if max_file_size is None else max_file_size
    if size > limit:
        raise ValidationError(
            message=f"File exceeds maximum size of {limit} bytes",
            field="file",
            details={"size": size, "maxFileSize": limit},
            code=ErrorCode.FILE_TOO_LARGE
        )

    return extension


def validate_source(source: DrawingSource, max_file_size: Optional[int] = None) -> DrawingSource:
    """Validate an in-memory drawing source and return it unchanged."""
    validate_upload(source.file_name, source.size, max_file_size)
    return source


def validate_batch(
    sources: Sequence[DrawingSource],
    max_batch_files: Optional[int] = None,
    max_file_size: Optional[int] = None
) -> List[DrawingSource]:
    """Validate a batch of drawings.

    Raises:
        ValidationError: If the batch is empty, too long, or any file is invalid.
    """
    if not sources:
        raise ValidationError(
            message="No files provided",
            field="files",
            code=ErrorCode.MISSING_FIELD
        )

    limit = settings.max_batch_files if max_batch_files is None else max_batch_files
    if len(sources) > limit:
        raise ValidationError(
            message=f"Maximum {limit} files allowed per batch",
            field="files",
            details={"count": len(sources), "maxBatchFiles": limit}
        )

    for index, source in enumerate(sources):
        try:
            validate_source(source, max_file_size)
        except ValidationError as e:
            logger.warning("batch_file_rejected", index=index, file_name=source.file_name, code=e.code)
            e.details["index"] = index
            raise

    return list(sources)
