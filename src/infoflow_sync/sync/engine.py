"""Sync driver: pulls items from InfoFlow into the vault.

A run:

1. Refuses to start if the settings record says a sync is running
   (single-flight) or if there is no API key.
2. Sets the syncing flag and persists it.
3. Fetches pages of 15 items updated since the watermark, oldest first.
4. For each item: creates its folder, downloads its file when the
   template embeds it, renders it and hands it to the ``Reconciler``.
5. After each page, advances the watermark to "now" and persists it.
6. Clears the syncing flag and persists it, whatever happened.

The settings record is never mutated.  Only the keys a run changes
(``syncing``, ``sync_at``) are handed to the ``persist`` callback, so
settings edited while a run is in progress survive it.  The final record
is returned with the report.  ``run`` does not raise; failures abort the
remaining pages and are reported in the ``SyncReport``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from infoflow_sync.config_schema import SyncSettings
from infoflow_sync.core.client import (
    HIGHLIGHT_FORMAT,
    InfoFlowAPIError,
    InfoFlowClient,
)
from infoflow_sync.core.models import Item
from infoflow_sync.render.content import (
    render_filename,
    render_folder,
    render_item_content,
)
from infoflow_sync.render.dates import new_watermark, watermark_to_iso
from infoflow_sync.render.frontmatter import FrontMatterError
from infoflow_sync.render.template import (
    SpanKind,
    parse_template,
    template_uses,
)
from infoflow_sync.store import CreateStatus, DocumentStore
from infoflow_sync.sync import notices
from infoflow_sync.sync.models import (
    DeleteResult,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from infoflow_sync.sync.notices import Notifier
from infoflow_sync.sync.reconciler import Reconciler, RenderedItem
from infoflow_sync.validators import normalize_path

logger = logging.getLogger(__name__)

PAGE_SIZE = 15
ATTACHMENT_EXTENSION = ".pdf"


class ItemSource(Protocol):
    """The remote operations the driver needs (``InfoFlowClient``)."""

    def fetch_items(
        self,
        after: int = 0,
        size: int = PAGE_SIZE,
        since: str | None = None,
        query: str = "",
        include_content: bool = False,
        highlight_format: str = HIGHLIGHT_FORMAT,
    ) -> tuple[list[Item], bool]: ...

    def delete_item(self, item_id: str) -> bool: ...

    def download_file(self, url: str) -> bytes: ...


def default_client_factory(settings: SyncSettings) -> ItemSource:
    return InfoFlowClient(settings.api_key, settings.endpoint)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncDriver:
    """Run syncs of one vault.

    Args:
        store: The vault.
        persist: Called with the changed keys of the settings record
            (``syncing``, ``sync_at``) after every change.  Exceptions it
            raises are logged, not propagated.
        client_factory: Builds the remote client from the settings, so a
            changed API key or endpoint takes effect on the next run.
        clock: Returns "now" for the watermark.
    """

    def __init__(
        self,
        store: DocumentStore,
        persist: Callable[[dict[str, Any]], None] | None = None,
        client_factory: Callable[[SyncSettings], ItemSource] = default_client_factory,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.persist = persist
        self.client_factory = client_factory
        self.clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        settings: SyncSettings,
        manual: bool = True,
        notifier: Notifier | None = None,
    ) -> tuple[SyncSettings, SyncReport]:
        """Execute one sync run.

        Args:
            settings: The current settings record.
            manual: User-triggered run; only these get the progress and
                completion notices.
            notifier: Collects the run's notices.

        Returns:
            ``(settings, report)``: the final settings record (watermark
            advanced, syncing flag cleared) and the run report.
        """
        notifier = notifier or Notifier()
        started_at = _now_iso()

        def report(status: SyncStatus, **fields) -> SyncReport:
            return SyncReport(
                status=status,
                manual=manual,
                notices=list(notifier.messages),
                sync_at=settings.sync_at,
                started_at=started_at,
                completed_at=_now_iso(),
                **fields,
            )

        if settings.syncing:
            notifier.info(notices.ALREADY_SYNCING)
            return settings, report(SyncStatus.ALREADY_SYNCING)

        if not settings.api_key:
            notifier.warning(notices.MISSING_API_KEY)
            return settings, report(SyncStatus.MISSING_API_KEY)

        results: list[SyncResult] = []
        pages = 0
        status = SyncStatus.COMPLETED
        error: str | None = None

        settings = self._update(settings, syncing=True)
        try:
            logger.info("Starting sync since %r", settings.sync_at)
            if manual:
                notifier.info(notices.FETCHING_ITEMS)

            if settings.front_matter_template:
                parse_template(settings.front_matter_template)
            spans = parse_template(settings.template)
            include_content = template_uses(spans, SpanKind.CONTENT)
            include_attachment = template_uses(spans, SpanKind.FILE_ATTACHMENT)

            client = self.client_factory(settings)
            reconciler = Reconciler(self.store, settings.is_single_file, notifier)
            since = watermark_to_iso(settings.sync_at)

            after = 0
            while True:
                items, has_next_page = client.fetch_items(
                    after=after,
                    size=PAGE_SIZE,
                    since=since,
                    query=settings.custom_query,
                    include_content=include_content,
                    highlight_format=HIGHLIGHT_FORMAT,
                )
                pages += 1
                for item in items:
                    results.append(
                        self._sync_item(
                            item, settings, client, reconciler, include_attachment
                        )
                    )

                settings = self._update(
                    settings, sync_at=new_watermark(self.clock())
                )
                if not has_next_page:
                    break
                after += PAGE_SIZE

            logger.info("Sync completed, watermark %s", settings.sync_at)
            if manual:
                notifier.info(notices.SYNC_COMPLETED)
        except Exception as exc:
            logger.exception("Sync failed after %d page(s)", pages)
            notifier.warning(notices.SYNC_FAILED)
            status = SyncStatus.FAILED
            error = str(exc)
        finally:
            settings = self._update(settings, syncing=False)

        return settings, report(status, results=results, pages=pages, error=error)

    # ------------------------------------------------------------------
    # Per-item sync
    # ------------------------------------------------------------------

    def _sync_item(
        self,
        item: Item,
        settings: SyncSettings,
        client: ItemSource,
        reconciler: Reconciler,
        include_attachment: bool,
    ) -> SyncResult:
        folder = render_folder(item, settings.folder, settings.folder_date_format)
        if folder:
            self.store.create_folder(folder)

        file_attachment = None
        if include_attachment and item.is_file:
            file_attachment = self._download_attachment(item, settings, client)

        content = render_item_content(
            item,
            settings.template,
            highlight_order=settings.highlight_order,
            highlight_manager_id=settings.highlight_manager,
            date_highlighted_format=settings.date_highlighted_format,
            date_saved_format=settings.date_saved_format,
            is_single_file=settings.is_single_file,
            front_matter_variables=settings.front_matter_variables,
            front_matter_template=settings.front_matter_template,
            file_attachment=file_attachment,
            highlight_color_mapping=settings.highlight_color_mapping,
        )
        filename = render_filename(
            item, settings.filename, settings.filename_date_format
        )
        return reconciler.reconcile(
            RenderedItem(
                item_id=item.id,
                folder=folder,
                filename=filename,
                content=content,
            )
        )

    def _download_attachment(
        self, item: Item, settings: SyncSettings, client: ItemSource
    ) -> str:
        """Download the item's file into the attachment folder.

        Returns:
            Vault path of the file.  An existing file is reused.
        """
        folder = render_folder(
            item, settings.attachment_folder, settings.folder_date_format
        )
        path = normalize_path(f"{folder}/{item.id}{ATTACHMENT_EXTENSION}")
        if self.store.exists(path):
            return path

        if folder:
            self.store.create_folder(folder)
        data = client.download_file(item.url)
        result = self.store.create_binary(path, data)
        if result.status == CreateStatus.FAILED:
            raise OSError(f"Failed to save attachment {path}: {result.reason}")
        logger.info("Downloaded attachment %s (%d bytes)", path, len(data))
        return path

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_document(
        self,
        settings: SyncSettings,
        path: str,
        notifier: Notifier | None = None,
    ) -> DeleteResult:
        """Delete a synced document and its item in InfoFlow.

        The item id comes from the document's front matter.  The local
        document is deleted whether or not the remote delete worked.

        Raises:
            OSError: If the local document cannot be deleted.
        """
        notifier = notifier or Notifier()

        try:
            record = self.store.front_matter(path)
        except FrontMatterError as exc:
            logger.warning("Unreadable front matter in %s: %s", path, exc)
            record = None
        item_id = str(record["id"]) if record and record.get("id") else None

        remote_deleted = False
        if item_id is None:
            notifier.warning(notices.DELETE_ID_NOT_FOUND)
        else:
            try:
                remote_deleted = self.client_factory(settings).delete_item(item_id)
            except InfoFlowAPIError as exc:
                logger.error("Failed to delete item %s: %s", item_id, exc)
            if not remote_deleted:
                notifier.warning(notices.DELETE_REMOTE_FAILED)

        self.store.delete(path)
        logger.info("Deleted %s (item %s)", path, item_id)
        return DeleteResult(
            path=path,
            item_id=item_id,
            remote_deleted=remote_deleted,
            notices=list(notifier.messages),
        )

    # ------------------------------------------------------------------
    # Settings updates
    # ------------------------------------------------------------------

    def _update(self, settings: SyncSettings, **changes) -> SyncSettings:
        updated = settings.model_copy(update=changes)
        if self.persist is not None:
            try:
                self.persist(changes)
            except (OSError, ValueError) as exc:
                logger.error("Failed to persist settings: %s", exc)
        return updated
