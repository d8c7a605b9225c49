"""Tests for infoflow_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from env vars and config files (with optional CLI overrides)
- Builds and starts the SyncService of the vault
- Fails fast on config errors or an unreadable settings record
- Prints status messages to stderr
"""

import json
from unittest.mock import patch

import pytest

from infoflow_sync.mcp.lifespan import server_lifespan
from infoflow_sync.sync.service import SyncService


@pytest.fixture(autouse=True)
def _no_dotenv():
    with patch("infoflow_sync.mcp.lifespan.load_dotenv"):
        yield


@pytest.fixture
def stderr_messages():
    messages: list[str] = []
    with patch(
        "infoflow_sync.mcp.lifespan._stderr_print", side_effect=messages.append
    ):
        yield messages


# -------------------------------------------------------------------------
# server_lifespan(): successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_yields_started_service(
        self, monkeypatch, vault, stderr_messages
    ):
        monkeypatch.setenv("INFOFLOW_VAULT", str(vault))

        async with server_lifespan() as ctx:
            service = ctx["service"]
            assert isinstance(service, SyncService)
            assert service.store.root == vault
            # startup() saved the record with the package version
            assert (vault / ".infoflow" / "data.json").is_file()

        assert stderr_messages[0] == "InfoFlow Sync MCP Server starting..."
        assert f"  Vault: {vault}" in stderr_messages
        assert "Server ready. Waiting for MCP client connection..." in (
            stderr_messages
        )
        assert stderr_messages[-1] == "InfoFlow Sync MCP Server shutting down."

    async def test_config_overrides_take_precedence(
        self, monkeypatch, vault, tmp_path, stderr_messages
    ):
        other = tmp_path / "other"
        other.mkdir()
        monkeypatch.setenv("INFOFLOW_VAULT", str(other))

        async with server_lifespan(config_overrides={"vault": str(vault)}) as _:
            pass

        assert f"  Vault: {vault}" in stderr_messages
        assert (vault / ".infoflow" / "data.json").is_file()
        assert not (other / ".infoflow").exists()

    async def test_settings_section_applied_and_scheduled(
        self, vault, tmp_path, stderr_messages
    ):
        config_dir = tmp_path / ".infoflow"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            f"vault:\n  path: {vault}\n"
            "settings:\n  frequency: 5\n  syncOnStart: false\n"
        )

        async with server_lifespan() as ctx:
            assert ctx["service"].scheduler.frequency == 5

        stored = json.loads((vault / ".infoflow" / "data.json").read_text())
        assert stored["frequency"] == 5
        assert stored["syncOnStart"] is False
        assert "  Scheduled sync: every 5 minute(s)" in stderr_messages

    async def test_sync_on_start_without_api_key_notifies(
        self, monkeypatch, vault, stderr_messages
    ):
        monkeypatch.setenv("INFOFLOW_VAULT", str(vault))

        async with server_lifespan() as _:
            pass

        # The background sync on start finished before shutdown
        assert "  Missing InfoFlow API key" in stderr_messages

    async def test_stale_lock_cleared(self, monkeypatch, vault, stderr_messages):
        settings_dir = vault / ".infoflow"
        settings_dir.mkdir()
        (settings_dir / "data.json").write_text(
            json.dumps({"syncing": True, "syncOnStart": False})
        )
        monkeypatch.setenv("INFOFLOW_VAULT", str(vault))

        async with server_lifespan() as ctx:
            assert ctx["service"].status().syncing is False


# -------------------------------------------------------------------------
# server_lifespan(): error paths
# -------------------------------------------------------------------------


class TestServerLifespanErrors:
    """Tests for startup failures in server_lifespan()."""

    async def test_missing_vault_raises_runtime_error(self, stderr_messages):
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan() as _:
                pass  # pragma: no cover

        assert any("ERROR: Configuration error" in m for m in stderr_messages)
        assert "  Ensure INFOFLOW_VAULT is set to an existing directory." in (
            stderr_messages
        )

    async def test_nonexistent_vault_includes_original_message(
        self, tmp_path, stderr_messages
    ):
        with pytest.raises(RuntimeError, match="not a directory"):
            async with server_lifespan(
                config_overrides={"vault": str(tmp_path / "missing")}
            ) as _:
                pass  # pragma: no cover

    async def test_invalid_settings_file_raises_runtime_error(
        self, monkeypatch, vault, stderr_messages
    ):
        settings_dir = vault / ".infoflow"
        settings_dir.mkdir()
        (settings_dir / "data.json").write_text("{not json")
        monkeypatch.setenv("INFOFLOW_VAULT", str(vault))

        with pytest.raises(RuntimeError, match="Failed to load settings"):
            async with server_lifespan() as _:
                pass  # pragma: no cover

        assert any("not valid JSON" in m for m in stderr_messages)
