"""Helper functions for common operations."""

import os
from typing import Optional
from urllib.parse import unquote_plus

from .logger import get_logger

logger = get_logger(__name__)


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage."""
    # Remove path components and dangerous characters
    filename = os.path.basename(filename.replace("\\", "/"))
    filename = "".join(c if c.isalnum() or c in "._- " else "_" for c in filename)
    filename = filename.strip()
    return filename[:255] or "unnamed"


def generate_s3_key(owner_id: str, filename: str, prefix: Optional[str] = None) -> str:
    """
    Generate the object key for an uploaded file.
    Format: [prefix/]owner_id/filename
    """
    safe_name = sanitize_filename(filename)
    if prefix:
        return f"{prefix}/{owner_id}/{safe_name}"
    return f"{owner_id}/{safe_name}"


def decode_s3_key(raw_key: str) -> str:
    """
    Decode an object key as delivered in S3 event notifications.
    Spaces arrive as '+', reserved characters percent-encoded.
    """
    try:
        return unquote_plus(raw_key, errors="strict")
    except UnicodeDecodeError:
        logger.warning("Failed to decode S3 key, using raw key", raw_key=raw_key)
        return raw_key


def strip_etag(etag: str) -> str:
    """Remove the quotes S3 puts around ETag header values."""
    return etag.strip().strip('"')


def format_file_size(size_bytes: float) -> str:
    """Format file size in human-readable format."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
