"""Shared pytest fixtures for infoflow-vault-sync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from infoflow_sync.config_schema import SyncSettings
from infoflow_sync.core.client import InfoFlowAPIError
from infoflow_sync.core.models import Item
from infoflow_sync.store import CreateResult, FileSystemStore
from infoflow_sync.sync.state import SettingsStore

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def make_item(item_id: str = "item-1", **overrides: Any) -> Item:
    """Build an Item from camelCase (wire) or snake_case fields."""
    data: dict[str, Any] = {
        "id": item_id,
        "title": f"Title {item_id}",
        "url": f"https://infoflow.app/read/{item_id}",
        "originalUrl": f"https://example.com/{item_id}",
        "siteName": "Example",
        "author": "Ada",
        "type": "ARTICLE",
        "dateSaved": "2024-01-02T10:00:00",
        "highlights": [],
        "labels": [],
    }
    data.update(overrides)
    return Item.model_validate(data)


def make_highlight(
    highlight_id: str = "h1", text: str = "Quoted", **overrides: Any
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "highlightID": highlight_id,
        "text": text,
        "highlightUrl": f"https://infoflow.app/h/{highlight_id}",
        "color": "yellow",
        "positionPercent": 0.5,
        "positionAnchorIndex": 0,
        "dateHighlighted": "2024-01-03T09:00:00",
        "labels": [],
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Remote client
# ---------------------------------------------------------------------------


class FakeInfoFlowClient:
    """In-memory InfoFlowClient replacement.

    ``pages`` is the list of pages returned in order; ``fail_on_page``
    makes that (0-based) fetch raise ``InfoFlowAPIError``.
    """

    def __init__(
        self,
        pages: list[list[Item]] | None = None,
        fail_on_page: int | None = None,
        files: dict[str, bytes] | None = None,
        delete_response: bool | Exception = True,
    ) -> None:
        self.pages = pages if pages is not None else [[]]
        self.fail_on_page = fail_on_page
        self.files = files or {}
        self.delete_response = delete_response
        self.fetch_calls: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.downloads: list[str] = []

    def fetch_items(
        self,
        after: int = 0,
        size: int = 15,
        since: str | None = None,
        query: str = "",
        include_content: bool = False,
        highlight_format: str = "highlightedMarkdown",
    ) -> tuple[list[Item], bool]:
        index = len(self.fetch_calls)
        self.fetch_calls.append(
            {
                "after": after,
                "size": size,
                "since": since,
                "query": query,
                "include_content": include_content,
            }
        )
        if index == self.fail_on_page:
            raise InfoFlowAPIError("Error fetching data: 500", status_code=500)
        if index >= len(self.pages):
            return [], False
        return list(self.pages[index]), index < len(self.pages) - 1

    def delete_item(self, item_id: str) -> bool:
        self.deleted.append(item_id)
        if isinstance(self.delete_response, Exception):
            raise self.delete_response
        return self.delete_response

    def download_file(self, url: str) -> bytes:
        self.downloads.append(url)
        return self.files.get(url, b"%PDF-1.4 fake")


@pytest.fixture
def fake_client():
    return FakeInfoFlowClient()


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------


class RecordingStore(FileSystemStore):
    """FileSystemStore that records every write operation."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.calls: list[tuple[str, str]] = []

    def create(self, path: str, content: str) -> CreateResult:
        self.calls.append(("create", path))
        return super().create(path, content)

    def create_binary(self, path: str, data: bytes) -> CreateResult:
        self.calls.append(("create_binary", path))
        return super().create_binary(path, data)

    def modify(self, path: str, content: str) -> None:
        self.calls.append(("modify", path))
        super().modify(path, content)

    def delete(self, path: str) -> None:
        self.calls.append(("delete", path))
        super().delete(path)

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] != "delete"]


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def store(vault: Path) -> RecordingStore:
    return RecordingStore(vault)


@pytest.fixture
def settings_store(vault: Path) -> SettingsStore:
    return SettingsStore(vault / ".infoflow" / "data.json")


@pytest.fixture
def settings() -> SyncSettings:
    """Settings with an API key and stable, simple templates."""
    return SyncSettings(
        api_key="test-key",
        custom_query="in:all",
        folder="InfoFlow",
        filename="{{{title}}}",
        template="# {{{title}}}\n\n{{#highlights}}> {{{text}}}\n{{/highlights}}",
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    """Keep tests away from real config files and INFOFLOW_* variables."""
    for name in (
        "INFOFLOW_VAULT",
        "INFOFLOW_SETTINGS_FILE",
        "INFOFLOW_API_KEY",
        "INFOFLOW_ENDPOINT",
        "INFOFLOW_DEBUG",
        "INFOFLOW_SYNC_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
