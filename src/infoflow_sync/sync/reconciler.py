"""Reconciliation of one rendered item against the vault.

Single-file mode
----------------
All items that render to the same folder and file name share one
document.  The document's front matter is a list with one record per
item and its body holds one marker-delimited section per item:

- no document yet: create it with the rendered item as its content;
- item already merged: replace its record and its section in place;
- new item: prepend its record and its section (newest first).

The merged document is only written when it differs from what is stored.

Per-file mode
-------------
Each item gets its own document:

- no document yet: create it;
- document with the same ``id`` (or with no ``id``): overwrite it when
  the rendered content differs;
- document with another item's ``id``: the two items collide on their
  name, so this one goes to ``{name}-{id}.md`` instead, which is created
  or updated the same way.

A create that finds the path already taken is not fatal: the item is
skipped with a notice and the run carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from infoflow_sync.render.content import document_path
from infoflow_sync.render.document import SingleFileDocument
from infoflow_sync.render.frontmatter import FrontMatterError
from infoflow_sync.store import CreateStatus, DocumentStore
from infoflow_sync.sync.models import SyncAction, SyncResult
from infoflow_sync.sync.notices import Notifier, skip_creation_notice

logger = logging.getLogger(__name__)


class FrontMatterMissingError(ValueError):
    """A rendered single-file document has no front matter record.

    Merging depends on locating items by their front matter ``id``, so the
    run is aborted instead of writing a document that can never be
    updated.
    """


@dataclass(frozen=True)
class RenderedItem:
    """An item rendered for the vault.

    Attributes:
        item_id: Remote item id.
        folder: Vault folder (``""`` for the vault root).
        filename: File name without extension.
        content: Full document text.
    """

    item_id: str
    folder: str
    filename: str
    content: str

    @property
    def path(self) -> str:
        return document_path(self.folder, self.filename)

    @property
    def alternate_path(self) -> str:
        return document_path(self.folder, self.filename, f"-{self.item_id}")


class Reconciler:
    """Write rendered items into a ``DocumentStore``.

    Args:
        store: The vault.
        is_single_file: Merge items into shared documents.
        notifier: Receives the skip notices.
    """

    def __init__(
        self,
        store: DocumentStore,
        is_single_file: bool = False,
        notifier: Notifier | None = None,
    ) -> None:
        self.store = store
        self.is_single_file = is_single_file
        self.notifier = notifier or Notifier()

    def reconcile(self, rendered: RenderedItem) -> SyncResult:
        """Reconcile one item.

        Raises:
            FrontMatterMissingError: In single-file mode, if the rendered
                content has no front matter record.
            OSError: If the store fails for a reason other than the path
                being taken.
        """
        if self.is_single_file:
            return self._reconcile_single_file(rendered)
        return self._reconcile_per_file(rendered)

    # ------------------------------------------------------------------
    # Single-file mode
    # ------------------------------------------------------------------

    def _reconcile_single_file(self, rendered: RenderedItem) -> SyncResult:
        path = rendered.path
        if not self.store.exists(path):
            return self._create(path, rendered)

        incoming = SingleFileDocument.parse(rendered.content)
        if not incoming.records:
            raise FrontMatterMissingError(
                f"Rendered content for item {rendered.item_id} has no "
                "front matter"
            )

        existing_content = self.store.read(path)
        document = SingleFileDocument.parse(existing_content)
        existed = document.upsert(
            rendered.item_id, incoming.records[0], incoming.body
        )
        merged = document.render()

        if merged == existing_content:
            logger.debug("Unchanged: %s (%s)", path, rendered.item_id)
            return SyncResult(
                item_id=rendered.item_id,
                path=path,
                action=SyncAction.UNCHANGED,
            )

        self.store.modify(path, merged)
        action = SyncAction.UPDATE if existed else SyncAction.MERGE
        logger.info("%s %s into %s", action.value, rendered.item_id, path)
        return SyncResult(item_id=rendered.item_id, path=path, action=action)

    # ------------------------------------------------------------------
    # Per-file mode
    # ------------------------------------------------------------------

    def _existing_id(self, path: str) -> str | None:
        try:
            record = self.store.front_matter(path)
        except FrontMatterError as exc:
            logger.warning("Unreadable front matter in %s: %s", path, exc)
            return ""
        if not record or record.get("id") in (None, ""):
            return None
        return str(record["id"])

    def _reconcile_per_file(self, rendered: RenderedItem) -> SyncResult:
        path = rendered.path
        if not self.store.exists(path):
            return self._create(path, rendered)

        existing_id = self._existing_id(path)
        if existing_id is not None and existing_id != rendered.item_id:
            alternate = rendered.alternate_path
            logger.debug(
                "%s belongs to %r, using %s for %s",
                path,
                existing_id,
                alternate,
                rendered.item_id,
            )
            if self.store.exists(alternate):
                return self._update_if_changed(alternate, rendered)
            return self._create(alternate, rendered)

        return self._update_if_changed(path, rendered)

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    def _create(self, path: str, rendered: RenderedItem) -> SyncResult:
        result = self.store.create(path, rendered.content)
        if result.status == CreateStatus.ALREADY_EXISTS:
            message = skip_creation_notice(path)
            self.notifier.warning(message)
            return SyncResult(
                item_id=rendered.item_id,
                path=path,
                action=SyncAction.SKIP,
                success=False,
                error=message,
            )
        if result.status == CreateStatus.FAILED:
            raise OSError(f"Failed to create {path}: {result.reason}")
        logger.info("Created %s (%s)", path, rendered.item_id)
        return SyncResult(
            item_id=rendered.item_id, path=path, action=SyncAction.CREATE
        )

    def _update_if_changed(
        self, path: str, rendered: RenderedItem
    ) -> SyncResult:
        if self.store.read(path) == rendered.content:
            logger.debug("Unchanged: %s (%s)", path, rendered.item_id)
            return SyncResult(
                item_id=rendered.item_id,
                path=path,
                action=SyncAction.UNCHANGED,
            )
        self.store.modify(path, rendered.content)
        logger.info("Updated %s (%s)", path, rendered.item_id)
        return SyncResult(
            item_id=rendered.item_id, path=path, action=SyncAction.UPDATE
        )
