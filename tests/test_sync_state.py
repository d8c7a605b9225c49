"""Tests for the settings record persistence layer.

Covers:
- Load returns migrated defaults when the file doesn't exist
- Save writes camelCase JSON atomically
- Invalid files raise ValueError
- Unknown keys are ignored, missing keys take defaults
- Legacy filter migration (saved straight away)
- reset_syncing / update helpers
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from infoflow_sync.config_schema import SyncSettings
from infoflow_sync.sync.state import (
    SettingsStore,
    migrate_legacy_settings,
    query_from_filter,
)

# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


class TestSettingsStoreLoad:
    """Tests for SettingsStore.load()."""

    def test_missing_file_gives_defaults(self, settings_store: SettingsStore):
        """load() returns defaults with the query derived from the filter."""
        settings = settings_store.load()
        assert settings.custom_query == "in:all has:highlights"
        assert settings.sync_at == ""
        assert settings.syncing is False
        assert not settings_store.path.exists()

    def test_invalid_json_raises(self, settings_store: SettingsStore):
        settings_store.path.parent.mkdir(parents=True)
        settings_store.path.write_text("{not json")
        with pytest.raises(ValueError, match="not valid JSON"):
            settings_store.load()

    def test_non_object_raises(self, settings_store: SettingsStore):
        settings_store.path.parent.mkdir(parents=True)
        settings_store.path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="must hold an object"):
            settings_store.load()

    def test_wrong_type_raises(self, settings_store: SettingsStore):
        settings_store.path.parent.mkdir(parents=True)
        settings_store.path.write_text(json.dumps({"frequency": "often"}))
        with pytest.raises(ValueError, match="invalid"):
            settings_store.load()

    def test_unknown_keys_ignored_and_defaults_filled(
        self, settings_store: SettingsStore
    ):
        """Older records gain new fields; unknown keys are dropped."""
        settings_store.path.parent.mkdir(parents=True)
        settings_store.path.write_text(
            json.dumps(
                {
                    "apiKey": "k",
                    "customQuery": "in:archive",
                    "someOldKey": 1,
                }
            )
        )
        settings = settings_store.load()
        assert settings.api_key == "k"
        assert settings.custom_query == "in:archive"
        assert settings.folder == SyncSettings().folder
        assert not hasattr(settings, "someOldKey")


class TestSettingsStoreSave:
    """Tests for SettingsStore.save()."""

    def test_save_writes_camel_case_keys(self, settings_store: SettingsStore):
        settings_store.save(SyncSettings(api_key="k", sync_at="x"))
        data = json.loads(settings_store.path.read_text(encoding="utf-8"))
        assert data["apiKey"] == "k"
        assert data["syncAt"] == "x"
        assert "isSingleFile" in data
        assert "api_key" not in data

    def test_round_trip(self, settings_store: SettingsStore, settings):
        settings_store.save(settings)
        assert settings_store.load() == settings

    def test_no_temp_files_left(self, settings_store: SettingsStore):
        settings_store.save(SyncSettings(custom_query="in:all"))
        leftovers = list(settings_store.path.parent.glob("*.tmp"))
        assert leftovers == []

    def test_save_creates_directory(self, tmp_path: Path):
        store = SettingsStore(tmp_path / "a" / "b" / "data.json")
        store.save(SyncSettings(custom_query="in:all"))
        assert store.path.is_file()


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


class TestMigration:
    """Tests for legacy settings migration."""

    @pytest.mark.parametrize(
        "filter_name,query",
        [
            ("ALL", "in:all"),
            ("highlighted", "in:all has:highlights"),
            ("ARCHIVED", "in:archive"),
            ("UNARCHIVED", "in:library"),
            ("bogus", "in:all"),
        ],
    )
    def test_query_from_filter(self, filter_name, query):
        assert query_from_filter(filter_name) == query

    def test_advanced_filter_scopes_custom_query(self):
        settings = SyncSettings(filter="ADVANCED", custom_query="label:x")
        migrated = migrate_legacy_settings(settings)
        assert migrated.filter == "ALL"
        assert migrated.custom_query == "in:all (label:x)"

    def test_existing_query_is_kept(self):
        settings = SyncSettings(filter="ARCHIVED", custom_query="in:all")
        assert migrate_legacy_settings(settings) is settings

    def test_migrated_record_is_saved(self, settings_store: SettingsStore):
        settings_store.path.parent.mkdir(parents=True)
        settings_store.path.write_text(json.dumps({"filter": "ADVANCED"}))
        settings_store.load()
        data = json.loads(settings_store.path.read_text())
        assert data["filter"] == "ALL"
        assert data["customQuery"] == "in:all"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_reset_syncing(self, settings_store: SettingsStore, settings):
        settings_store.save(settings.model_copy(update={"syncing": True}))
        assert settings_store.reset_syncing().syncing is False
        assert settings_store.load().syncing is False

    def test_update(self, settings_store: SettingsStore, settings):
        settings_store.save(settings)
        updated = settings_store.update(sync_at="", frequency=5)
        assert updated.frequency == 5
        assert settings_store.load().frequency == 5
        assert settings_store.load().api_key == "test-key"
