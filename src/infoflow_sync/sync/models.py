"""Pydantic models for the vault sync engine.

Defines the data contracts shared by the sync modules:

- ``SyncAction``: what the reconciler did with one item.
- ``SyncStatus``: how a whole run ended.
- ``SyncResult``: outcome of reconciling one item.
- ``SyncReport``: aggregate results for a full sync run.
- ``DeleteResult``: outcome of deleting a synced document.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Possible outcomes of reconciling one item against the vault."""

    CREATE = "create"
    UPDATE = "update"
    MERGE = "merge"
    UNCHANGED = "unchanged"
    SKIP = "skip"


class SyncStatus(str, Enum):
    """Terminal state of a sync run."""

    COMPLETED = "completed"
    FAILED = "failed"
    ALREADY_SYNCING = "already_syncing"
    MISSING_API_KEY = "missing_api_key"


class SyncResult(BaseModel):
    """Result of reconciling one item.

    Attributes:
        item_id: Remote item id.
        path: Vault-relative path of the document written (or skipped).
        action: What was done.
        success: False only for skips caused by a lost creation race.
        error: Human-readable reason for a skip.
    """

    item_id: str
    path: str
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a sync run.

    Attributes:
        status: How the run ended.
        manual: Whether the run was user-triggered.
        results: One entry per reconciled item, in processing order.
        notices: User-visible notices emitted during the run.
        pages: Number of pages fetched.
        sync_at: Watermark after the run.
        error: Failure reason for ``failed`` runs.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run ended.
    """

    status: SyncStatus
    manual: bool = True
    results: list[SyncResult] = []
    notices: list[str] = []
    pages: int = 0
    sync_at: str = ""
    error: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action]

    @property
    def created(self) -> list[SyncResult]:
        """Results where action is CREATE."""
        return self._with_action(SyncAction.CREATE)

    @property
    def updated(self) -> list[SyncResult]:
        """Results where action is UPDATE."""
        return self._with_action(SyncAction.UPDATE)

    @property
    def merged(self) -> list[SyncResult]:
        """Results where action is MERGE."""
        return self._with_action(SyncAction.MERGE)

    @property
    def unchanged(self) -> list[SyncResult]:
        """Results where action is UNCHANGED."""
        return self._with_action(SyncAction.UNCHANGED)

    @property
    def skipped(self) -> list[SyncResult]:
        """Results where action is SKIP."""
        return self._with_action(SyncAction.SKIP)

    @property
    def succeeded(self) -> bool:
        return self.status == SyncStatus.COMPLETED

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync {self.status.value}"
            + ("" if self.manual else " (scheduled)"),
            f"  Pages:     {self.pages}",
            f"  Created:   {len(self.created)}",
            f"  Updated:   {len(self.updated)}",
            f"  Merged:    {len(self.merged)}",
            f"  Unchanged: {len(self.unchanged)}",
            f"  Skipped:   {len(self.skipped)}",
            f"  Total:     {len(self.results)}",
        ]
        if self.sync_at:
            lines.append(f"  Last sync: {self.sync_at}")
        if self.error:
            lines.append(f"  Error:     {self.error}")
        return "\n".join(lines)


class DeleteResult(BaseModel):
    """Outcome of deleting a synced document.

    Attributes:
        path: Vault-relative path of the deleted document.
        item_id: Item id from the document's front matter, if any.
        remote_deleted: Whether InfoFlow confirmed the delete.
        notices: User-visible notices emitted.
    """

    path: str
    item_id: str | None = None
    remote_deleted: bool = False
    notices: list[str] = []

    model_config = {"frozen": True}
