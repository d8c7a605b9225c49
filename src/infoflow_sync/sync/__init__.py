"""InfoFlow to vault sync engine.

Public API for pulling InfoFlow items (articles, highlights, notes) into a
Markdown vault.

Architecture
------------
The sync is one-way and incremental: items updated since the stored
watermark are fetched page by page, rendered through the user's templates
and reconciled against the documents already in the vault.  Rewriting the
same content is a no-op, so a page interrupted mid-way is simply
processed again on the next run.

Modules:

- ``engine``     -- ``SyncDriver``: single-flight, pagination, watermark,
  attachments, delete-by-document.
- ``reconciler`` -- ``Reconciler``: single-file and per-file merge rules.
- ``state``      -- ``SettingsStore``: load/save the settings record.
- ``service``    -- ``SyncService``: the host commands.
- ``scheduler``  -- ``SyncScheduler``: periodic syncs.
- ``models``     -- ``SyncAction``, ``SyncStatus``, ``SyncResult``,
  ``SyncReport``, ``DeleteResult``: core data contracts.
- ``notices``    -- ``Notifier`` and the user-visible messages.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from infoflow_sync.store import FileSystemStore
    from infoflow_sync.sync import SettingsStore, SyncService, format_sync_report

    vault = Path("~/Notes").expanduser()
    service = SyncService(
        SettingsStore(vault / ".infoflow" / "data.json"),
        FileSystemStore(vault),
    )
    service.startup()

    report = service.sync()
    print(format_sync_report(report))
"""

from .engine import PAGE_SIZE, SyncDriver
from .models import (
    DeleteResult,
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from .notices import Notifier
from .reconciler import FrontMatterMissingError, Reconciler, RenderedItem
from .reporter import (
    format_delete_result,
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .scheduler import SyncScheduler
from .service import SyncService
from .state import SettingsStore, migrate_legacy_settings, query_from_filter

__all__ = [
    "DeleteResult",
    "FrontMatterMissingError",
    "Notifier",
    "PAGE_SIZE",
    "Reconciler",
    "RenderedItem",
    "SettingsStore",
    "SyncAction",
    "SyncDriver",
    "SyncReport",
    "SyncResult",
    "SyncScheduler",
    "SyncService",
    "SyncStatus",
    "format_delete_result",
    "format_status",
    "format_sync_report",
    "migrate_legacy_settings",
    "query_from_filter",
    "report_to_json",
    "status_to_json",
]
