"""User-visible notices.

The host shows notices to the user (a toast, a CLI line, an MCP tool
response).  A ``Notifier`` collects the notices of one operation so they
can be returned with its report, and logs each one as it is emitted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ALREADY_SYNCING = "Already syncing ..."
MISSING_API_KEY = "Missing InfoFlow API key"
FETCHING_ITEMS = "Fetching items ..."
SYNC_COMPLETED = "Sync completed"
SYNC_FAILED = "Failed to fetch items"
SYNC_RESET = "InfoFlow Last Sync reset"
DELETE_ID_NOT_FOUND = "Failed to delete article: article id not found"
DELETE_REMOTE_FAILED = "Failed to delete article in InfoFlow"


def skip_creation_notice(path: str) -> str:
    return (
        f"Skipping file creation: {path}. Please check if you have "
        "duplicated article titles and delete the file if needed."
    )


def upgrade_notice(version: str) -> str:
    return f"InfoFlow sync is upgraded to {version}."


class Notifier:
    """Collect (and log) the notices emitted during one operation.

    Args:
        sink: Optional callback invoked with each notice as it is
            emitted, for hosts that display notices live.
    """

    def __init__(self, sink: Callable[[str], None] | None = None) -> None:
        self.sink = sink
        self.messages: list[str] = []

    def info(self, message: str) -> None:
        self._emit(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._emit(logging.WARNING, message)

    def _emit(self, level: int, message: str) -> None:
        logger.log(level, "%s", message)
        self.messages.append(message)
        if self.sink is not None:
            self.sink(message)
