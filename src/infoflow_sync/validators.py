"""
Path validation and normalization for vault documents.

Rendered folder and file names come from user templates and remote item
fields, so they can contain characters the filesystem (or the vault's
link syntax) does not accept.  Everything here is applied by the core
before a path is handed to the document store.
"""

import re

# Characters replaced in folder paths.  ``/`` is kept: it separates folders.
_ILLEGAL_FOLDER_CHARS = re.compile(r'[\\?%*:|"<>]')

# Characters replaced in file names.  ``/`` is illegal here.
_ILLEGAL_FILE_CHARS = re.compile(r'[/\\?%*:|"<>]')

# Control characters never make sense in a path segment.
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

ILLEGAL_CHAR_REPLACEMENT = "-"


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Document path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


# ---------------------------------------------------------------------------
# Illegal character substitution
# ---------------------------------------------------------------------------


def replace_illegal_chars_folder(folder: str) -> str:
    """Replace characters that are illegal in a folder path with ``-``."""
    folder = _CONTROL_CHARS.sub("", folder)
    return _ILLEGAL_FOLDER_CHARS.sub(ILLEGAL_CHAR_REPLACEMENT, folder)


def replace_illegal_chars_file(name: str) -> str:
    """Replace characters that are illegal in a file name with ``-``."""
    name = _CONTROL_CHARS.sub("", name)
    return _ILLEGAL_FILE_CHARS.sub(ILLEGAL_CHAR_REPLACEMENT, name)


def normalize_path(path: str) -> str:
    """Normalize a vault-relative path.

    - Backslashes become forward slashes
    - Non-breaking spaces become plain spaces
    - Repeated slashes collapse to one
    - Leading and trailing slashes (and surrounding whitespace) are removed

    An empty result means the vault root and is returned as ``"/"``.
    """
    path = (
        path.replace("\\", "/")
        .replace("\u00a0", " ")
        .replace("\u202f", " ")
    )
    path = re.sub(r"/+", "/", path)
    path = path.strip().strip("/")
    return path or "/"


def validate_document_path(path: str) -> tuple[bool, str]:
    """
    Validate a vault-relative document path.

    Args:
        path: The normalized path to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or the vault root
        - Cannot contain '..' segments (path traversal protection)
        - Cannot be absolute
    """
    if not path or not path.strip() or path == "/":
        return (
            False,
            format_validation_error("Document path", "cannot be empty"),
        )

    if path.startswith("/") or re.match(r"^[A-Za-z]:", path):
        return (
            False,
            format_validation_error(
                "Document path", "must be relative to the vault"
            ),
        )

    if ".." in path.split("/"):
        return (
            False,
            format_validation_error(
                "Document path", "cannot contain '..'"
            ),
        )

    return (True, "")
