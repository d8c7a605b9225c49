"""Settings record persistence.

The vault's ``SyncSettings`` record (templates, query, watermark, syncing
flag...) is the only persisted state.  It lives as JSON at
``<vault>/.infoflow/data.json`` with camelCase keys.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Defaults merge** -- ``load()`` starts from the defaults and applies the
  stored keys, so records written by older versions gain new fields and
  unknown keys are dropped.
* **Legacy migration** -- old records that only have a ``filter`` get a
  ``custom_query`` derived from it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from infoflow_sync.config_schema import SyncSettings

logger = logging.getLogger(__name__)

FILTER_QUERIES = {
    "ALL": "in:all",
    "HIGHLIGHTED": "in:all has:highlights",
    "ARCHIVED": "in:archive",
    "UNARCHIVED": "in:library",
}

LEGACY_ADVANCED_FILTER = "ADVANCED"


def query_from_filter(filter_name: str) -> str:
    """Search query equivalent to a legacy filter name (``in:all`` fallback)."""
    return FILTER_QUERIES.get((filter_name or "").upper(), FILTER_QUERIES["ALL"])


def migrate_legacy_settings(settings: SyncSettings) -> SyncSettings:
    """Bring a settings record written by an older version up to date.

    * The ``ADVANCED`` filter becomes ``ALL``, with the old custom query
      scoped under ``in:all``.
    * An empty ``custom_query`` is derived from ``filter``.
    """
    if settings.filter.upper() == LEGACY_ADVANCED_FILTER:
        custom = settings.custom_query.strip()
        query = f"in:all ({custom})" if custom else "in:all"
        settings = settings.model_copy(
            update={"filter": "ALL", "custom_query": query}
        )
        logger.info("Advanced filter replaced with all filter: %s", query)

    if not settings.custom_query.strip():
        query = query_from_filter(settings.filter)
        settings = settings.model_copy(update={"custom_query": query})
        logger.info("Custom query set to %s", query)

    return settings


class SettingsStore:
    """Load and save the settings record of one vault.

    Args:
        path: Location of the JSON record (typically
            ``<vault>/.infoflow/data.json``).
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> SyncSettings:
        """Load the record, merged over the defaults and migrated.

        A migrated record is saved straight away.

        Returns:
            The settings.  Defaults when the file does not exist.

        Raises:
            ValueError: If the file is not a valid settings record.
        """
        if not self.path.exists():
            return migrate_legacy_settings(SyncSettings())

        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Settings file {self.path} is not valid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} must hold an object")

        try:
            stored = SyncSettings.model_validate(data)
        except ValidationError as exc:
            raise ValueError(
                f"Settings file {self.path} is invalid: {exc}"
            ) from exc

        settings = migrate_legacy_settings(stored)
        if settings != stored:
            self.save(settings)
        return settings

    def save(self, settings: SyncSettings) -> None:
        """Persist the record atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates the directory if needed.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(settings.to_storage(), fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def update(self, **changes) -> SyncSettings:
        """Load, apply *changes*, save and return the new record."""
        settings = self.load().model_copy(update=changes)
        self.save(settings)
        return settings

    def reset_syncing(self) -> SyncSettings:
        """Clear a syncing flag left behind by a crashed run.

        Called once at process start: no sync can be running yet.
        """
        settings = self.load()
        if settings.syncing:
            logger.warning("Clearing stale syncing flag in %s", self.path)
        settings = settings.model_copy(update={"syncing": False})
        self.save(settings)
        return settings
