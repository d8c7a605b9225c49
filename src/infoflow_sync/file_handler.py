"""File handler module: vault path confinement and encoding-aware read/write.

Provides the low-level file I/O used by the filesystem document store.
All functions are plain synchronous calls; async hosts go through
``run_sync()``.
"""

from pathlib import Path

from charset_normalizer import from_bytes

from infoflow_sync.validators import normalize_path, validate_document_path

# =============================================================================
# Path Validation
# =============================================================================


def resolve_vault_path(root: Path, rel_path: str) -> Path:
    """Resolve a vault-relative path to an absolute path inside *root*.

    Args:
        root: Absolute path of the vault root.
        rel_path: Vault-relative path (forward slashes).

    Returns:
        Resolved absolute Path.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the vault.
    """
    normalized = normalize_path(rel_path)
    is_valid, reason = validate_document_path(normalized)
    if not is_valid:
        raise ValueError(f"{reason}: {rel_path!r}")

    root_resolved = root.resolve()
    resolved = (root_resolved / normalized).resolve()
    if not resolved.is_relative_to(root_resolved):
        raise ValueError(
            f"Path is outside the vault: {resolved} not under {root_resolved}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    # Documents written by the sync engine are always UTF-8; only fall back
    # to detection for files that were edited elsewhere.
    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write text content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    return write_bytes(path, content.encode(encoding))


def write_bytes(path: Path, data: bytes, exclusive: bool = False) -> int:
    """Write raw bytes to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        data: Bytes to write.
        exclusive: If True, fail with ``FileExistsError`` when the file
            already exists instead of overwriting it.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "xb" if exclusive else "wb"
    with open(path, mode) as fh:
        fh.write(data)
    return len(data)
