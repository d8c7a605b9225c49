"""Document store: the vault as seen by the sync engine.

The reconciliation engine only ever talks to a ``DocumentStore``.  The
store works in vault-relative paths; path normalization and illegal
character substitution happen before a path gets here.

``create`` reports its outcome as a ``CreateResult`` value instead of
raising, so "someone else already wrote this path" is an ordinary result
the engine can branch on.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from infoflow_sync.file_handler import (
    read_file_with_encoding,
    resolve_vault_path,
    write_bytes,
    write_file,
)
from infoflow_sync.render.frontmatter import parse_front_matter

logger = logging.getLogger(__name__)


class CreateStatus(str, Enum):
    """Outcome of a ``DocumentStore.create`` call."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class CreateResult:
    """Tagged outcome of a create: status plus a reason for failures."""

    status: CreateStatus
    path: str
    reason: str | None = None


class DocumentStore(Protocol):
    """Operations the sync engine needs from the host's document storage."""

    def exists(self, path: str) -> bool: ...

    def read(self, path: str) -> str: ...

    def create(self, path: str, content: str) -> CreateResult: ...

    def modify(self, path: str, content: str) -> None: ...

    def create_folder(self, path: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def create_binary(self, path: str, data: bytes) -> CreateResult: ...

    def front_matter(self, path: str) -> dict[str, Any] | None: ...


class FileSystemStore:
    """``DocumentStore`` backed by a directory on the local filesystem.

    Args:
        root: Absolute path of the vault root directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _abs(self, path: str) -> Path:
        return resolve_vault_path(self.root, path)

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def read(self, path: str) -> str:
        content, _ = read_file_with_encoding(self._abs(path))
        return content

    def create(self, path: str, content: str) -> CreateResult:
        """Create a new text document; never overwrites."""
        return self.create_binary(path, content.encode("utf-8"))

    def create_binary(self, path: str, data: bytes) -> CreateResult:
        """Create a new binary file; never overwrites."""
        try:
            target = self._abs(path)
            write_bytes(target, data, exclusive=True)
        except FileExistsError:
            return CreateResult(CreateStatus.ALREADY_EXISTS, path)
        except (OSError, ValueError) as exc:
            logger.error("Failed to create %s: %s", path, exc)
            return CreateResult(CreateStatus.FAILED, path, str(exc))
        logger.debug("Created %s (%d bytes)", path, len(data))
        return CreateResult(CreateStatus.CREATED, path)

    def modify(self, path: str, content: str) -> None:
        target = self._abs(path)
        if not target.is_file():
            raise FileNotFoundError(f"Document not found: {path}")
        count = write_file(target, content)
        logger.debug("Modified %s (%d bytes)", path, count)

    def create_folder(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=True)

    def delete(self, path: str) -> None:
        target = self._abs(path)
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        logger.debug("Deleted %s", path)

    def front_matter(self, path: str) -> dict[str, Any] | None:
        """Return the document's (first) front-matter record, if any."""
        records = parse_front_matter(self.read(path))
        if not records:
            return None
        return records[0]
