"""Host commands over one vault.

``SyncService`` ties the settings record, the document store and the sync
driver together and exposes what the host offers the user:

- ``startup``: stale-lock reset, settings overrides, upgrade notice.
- ``sync``: sync new changes.
- ``resync``: reset the watermark, then sync everything.
- ``delete_document``: delete a synced document and its item.
- ``status``: the current settings record.

The async side (``start``/``stop``) runs the sync-on-start and the
scheduled syncs in a worker thread via ``run_sync``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any

from infoflow_sync import __version__
from infoflow_sync.config import Config
from infoflow_sync.config_schema import SyncSettings, apply_settings_overrides
from infoflow_sync.core.async_utils import run_sync
from infoflow_sync.store import DocumentStore, FileSystemStore
from infoflow_sync.sync import notices
from infoflow_sync.sync.engine import SyncDriver, default_client_factory
from infoflow_sync.sync.models import DeleteResult, SyncReport
from infoflow_sync.sync.notices import Notifier
from infoflow_sync.sync.scheduler import SyncScheduler
from infoflow_sync.sync.state import SettingsStore
from infoflow_sync.validators import normalize_path, validate_document_path

logger = logging.getLogger(__name__)


class SyncService:
    """The sync commands of one vault.

    Args:
        settings_store: Persisted settings record.
        store: The vault.
        overrides: Settings applied over the stored record at startup
            (YAML ``settings`` section, API key and endpoint overrides).
        client_factory: Builds the remote client from the settings.
        version: Package version, for the upgrade notice.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        store: DocumentStore,
        overrides: dict[str, Any] | None = None,
        client_factory=default_client_factory,
        version: str = __version__,
    ) -> None:
        self.settings_store = settings_store
        self.store = store
        self.overrides = overrides or {}
        self.version = version
        self.driver = SyncDriver(
            store,
            persist=self._commit,
            client_factory=client_factory,
        )
        self.scheduler = SyncScheduler(self._scheduled_sync)
        self._startup_task: asyncio.Task | None = None
        # Held for a whole run.
        self._lock = threading.Lock()
        # Held for each read-modify-write of the settings record.
        self._settings_lock = threading.Lock()

    @classmethod
    def from_config(
        cls, config: Config, settings_overrides: dict[str, Any] | None = None
    ) -> SyncService:
        """Build the service for the vault described by *config*."""
        overrides = dict(settings_overrides or {})
        if config.api_key:
            overrides["api_key"] = config.api_key
        if config.endpoint:
            overrides["endpoint"] = config.endpoint
        return cls(
            SettingsStore(config.settings_path),
            FileSystemStore(Path(config.vault_path)),
            overrides=overrides,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def startup(
        self, notifier: Notifier | None = None, reset_lock: bool = True
    ) -> SyncSettings:
        """Prepare the settings record at process start.

        Clears a stale syncing flag, applies the overrides and records the
        package version (with an upgrade notice when it changed).

        Args:
            notifier: Collects the upgrade notice.
            reset_lock: Clear the syncing flag.  One-shot commands pass
                False so they do not break the lock of a running host.
        """
        notifier = notifier or Notifier()
        with self._settings_lock:
            if reset_lock:
                settings = self.settings_store.reset_syncing()
            else:
                settings = self.settings_store.load()
            settings = apply_settings_overrides(settings, self.overrides)

            if settings.version != self.version:
                settings = settings.model_copy(update={"version": self.version})
                notifier.info(notices.upgrade_notice(self.version))

            self.settings_store.save(settings)
        return settings

    def status(self) -> SyncSettings:
        return self.settings_store.load()

    def sync(
        self, manual: bool = True, notifier: Notifier | None = None
    ) -> SyncReport:
        """Sync new changes.

        Runs in this process are serialized; a run started while another
        is in progress reports ``already_syncing``.
        """
        if not self._lock.acquire(blocking=False):
            settings = self.settings_store.load().model_copy(
                update={"syncing": True}
            )
            _, report = self.driver.run(settings, manual=manual, notifier=notifier)
            return report
        try:
            return self._run(manual, notifier)
        finally:
            self._lock.release()

    def resync(self, notifier: Notifier | None = None) -> SyncReport:
        """Forget the watermark and sync everything again.

        Waits for a sync already running in this process, so that its
        watermark does not overwrite the reset.
        """
        notifier = notifier or Notifier()
        with self._lock:
            self._commit({"sync_at": ""})
            notifier.info(notices.SYNC_RESET)
            return self._run(True, notifier)

    def delete_document(
        self, path: str, notifier: Notifier | None = None
    ) -> DeleteResult:
        """Delete the document at *path* (vault-relative) and its item.

        Raises:
            ValueError: If the path is invalid or no document exists there.
        """
        path = normalize_path(path)
        is_valid, error = validate_document_path(path)
        if not is_valid:
            raise ValueError(error)
        if not self.store.exists(path):
            raise ValueError(f"Document not found: {path}")
        return self.driver.delete_document(
            self.settings_store.load(), path, notifier
        )

    def update_settings(self, **changes: Any) -> SyncSettings:
        """Apply *changes* (snake_case or camelCase keys) and save.

        Raises:
            pydantic.ValidationError: If a value has the wrong type.
        """
        with self._settings_lock:
            settings = apply_settings_overrides(
                self.settings_store.load(), changes
            )
            self.settings_store.save(settings)
        return settings

    def _commit(self, changes: dict[str, Any]) -> None:
        with self._settings_lock:
            self.settings_store.update(**changes)

    def _run(self, manual: bool, notifier: Notifier | None) -> SyncReport:
        settings = self.settings_store.load()
        _, report = self.driver.run(settings, manual=manual, notifier=notifier)
        logger.info(
            "Sync %s: %d item(s)", report.status.value, len(report.results)
        )
        return report

    # ------------------------------------------------------------------
    # Async lifecycle
    # ------------------------------------------------------------------

    async def start(
        self, notifier: Notifier | None = None, wait: bool = False
    ) -> SyncSettings:
        """Run ``startup``, start the scheduler and the sync on start.

        Args:
            notifier: Collects the startup and sync-on-start notices.
            wait: Await the sync on start instead of running it as a
                background task.
        """
        settings = await run_sync(self.startup, notifier)
        self.scheduler.schedule(settings.frequency)
        if settings.sync_on_start:
            startup_sync = run_sync(self.sync, False, notifier)
            if wait:
                await startup_sync
            else:
                self._startup_task = asyncio.create_task(
                    startup_sync, name="infoflow-startup-sync"
                )
        return settings

    async def reconfigure(self, **changes: Any) -> SyncSettings:
        """``update_settings``, then recreate the scheduler if the
        frequency changed."""
        settings = await run_sync(self.update_settings, **changes)
        if settings.frequency != self.scheduler.frequency:
            self.scheduler.schedule(settings.frequency)
        return settings

    async def stop(self) -> None:
        """Stop the scheduler and wait for a running sync on start."""
        await self.scheduler.aclose()
        task, self._startup_task = self._startup_task, None
        if task is not None:
            try:
                await task
            except Exception:
                logger.exception("Sync on start failed")

    async def _scheduled_sync(self) -> SyncReport:
        return await run_sync(self.sync, False)
