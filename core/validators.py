"""
Input validation utilities for uploads and account fields.
"""
import mimetypes
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Tuple

MAX_FILENAME_LENGTH = 255
MAX_RECORD_ID = 2 ** 31 - 1  # INTEGER primary keys


def is_record_id(value: Any) -> bool:
    """True for an integer (not a bool) that fits a database id column."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value <= MAX_RECORD_ID


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use
    """
    if not filename:
        raise ValueError("Filename cannot be empty")

    # Remove directory separators and path components
    filename = os.path.basename(filename.replace("\\", "/"))

    # Remove dangerous characters (keep alphanumeric, dots, dashes, underscores)
    safe_chars = []
    for char in filename:
        if char.isalnum() or char in "._-":
            safe_chars.append(char)
        else:
            safe_chars.append("_")

    sanitized = "".join(safe_chars)

    if len(sanitized) > MAX_FILENAME_LENGTH:
        # Truncate the stem; the extension decides the media type
        suffix = Path(sanitized).suffix[:MAX_FILENAME_LENGTH // 2]
        sanitized = sanitized[:MAX_FILENAME_LENGTH - len(suffix)] + suffix

    if not sanitized.strip("._"):
        raise ValueError("Filename became empty after sanitization")

    return sanitized


def get_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or '' when there is none."""
    if not filename:
        return ""
    return Path(filename).suffix.lower()


def validate_media_type(
    filename: str,
    content_type: Optional[str],
    allowed_types: Dict[str, Set[str]]
) -> Tuple[bool, Optional[str]]:
    """
    Check extension and MIME type of an uploaded file.

    The MIME type must be one registered for the extension. Clients that send
    no type (or the generic octet-stream) are judged by the type guessed from
    the filename instead.

    Args:
        filename: Original filename
        content_type: MIME type reported by the client
        allowed_types: Mapping of extension -> accepted MIME types

    Returns:
        Tuple of (is_valid, error_message)
    """
    ext = get_extension(filename)
    if ext not in allowed_types:
        allowed = ", ".join(sorted(allowed_types))
        return False, f"Invalid file type. Allowed: {allowed}"

    mime = (content_type or "").split(";")[0].strip().lower()
    if not mime or mime == "application/octet-stream":
        mime = (mimetypes.guess_type(f"file{ext}")[0] or "").lower()

    if mime not in allowed_types[ext]:
        return False, f"MIME type '{mime or 'unknown'}' does not match extension {ext}"

    return True, None


def validate_file_size(file_size: int, max_size_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size.

    Args:
        file_size: File size in bytes
        max_size_bytes: Maximum allowed size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file_size <= 0:
        return False, "File is empty"

    if file_size > max_size_bytes:
        max_size_mb = max_size_bytes / (1024 * 1024)
        actual_size_mb = file_size / (1024 * 1024)
        return False, f"File too large: {actual_size_mb:.2f}MB (max: {max_size_mb:.2f}MB)"

    return True, None


def normalize_tags(tags: Optional[str]) -> Optional[str]:
    """Collapse a comma-separated tag string to trimmed, non-empty items."""
    if tags is None:
        return None
    items: Iterable[str] = (tag.strip() for tag in tags.split(","))
    cleaned = [tag for tag in items if tag]
    return ",".join(cleaned) if cleaned else None
