"""Tests for reconciling rendered items against the vault."""

import pytest

from conftest import RecordingStore
from infoflow_sync.sync.models import SyncAction
from infoflow_sync.sync.notices import Notifier
from infoflow_sync.sync.reconciler import (
    FrontMatterMissingError,
    Reconciler,
    RenderedItem,
)


def per_file(item_id: str, body: str = "body", filename: str = "T") -> RenderedItem:
    return RenderedItem(
        item_id=item_id,
        folder="InfoFlow",
        filename=filename,
        content=f"---\nid: {item_id}\n---\n\n{body}",
    )


def single_file(item_id: str, body: str = "body") -> RenderedItem:
    return RenderedItem(
        item_id=item_id,
        folder="InfoFlow",
        filename="All",
        content=(
            f"---\n- id: {item_id}\n---\n\n"
            f"%%{item_id}_start%%\n{body}\n%%{item_id}_end%%"
        ),
    )


class RacingStore(RecordingStore):
    """Store where every path looks free but creates find it taken."""

    def exists(self, path):
        return False


# ---------------------------------------------------------------------------
# Per-file mode
# ---------------------------------------------------------------------------


class TestPerFile:
    def test_create(self, store, vault):
        result = Reconciler(store).reconcile(per_file("x"))
        assert result.action == SyncAction.CREATE
        assert result.path == "InfoFlow/T.md"
        assert (vault / "InfoFlow" / "T.md").read_text() == (
            "---\nid: x\n---\n\nbody"
        )

    def test_unchanged_does_not_write(self, store):
        reconciler = Reconciler(store)
        reconciler.reconcile(per_file("x"))
        store.calls.clear()
        result = reconciler.reconcile(per_file("x"))
        assert result.action == SyncAction.UNCHANGED
        assert store.writes() == []

    def test_update_same_id(self, store, vault):
        reconciler = Reconciler(store)
        reconciler.reconcile(per_file("x"))
        result = reconciler.reconcile(per_file("x", body="changed"))
        assert result.action == SyncAction.UPDATE
        assert (vault / "InfoFlow" / "T.md").read_text().endswith("changed")

    def test_collision_goes_to_alternate_path(self, store, vault):
        reconciler = Reconciler(store)
        reconciler.reconcile(per_file("x"))
        result = reconciler.reconcile(per_file("y"))
        assert result.action == SyncAction.CREATE
        assert result.path == "InfoFlow/T-y.md"
        assert "id: x" in (vault / "InfoFlow" / "T.md").read_text()

    def test_alternate_path_is_updated(self, store):
        reconciler = Reconciler(store)
        reconciler.reconcile(per_file("x"))
        reconciler.reconcile(per_file("y"))
        result = reconciler.reconcile(per_file("y", body="new"))
        assert result.action == SyncAction.UPDATE
        assert result.path == "InfoFlow/T-y.md"
        assert store.read("InfoFlow/T-y.md").endswith("new")

    def test_document_without_id_is_overwritten(self, store, vault):
        (vault / "InfoFlow").mkdir()
        (vault / "InfoFlow" / "T.md").write_text("my own notes")
        result = Reconciler(store).reconcile(per_file("x"))
        assert result.action == SyncAction.UPDATE
        assert result.path == "InfoFlow/T.md"

    def test_unreadable_front_matter_goes_to_alternate_path(self, store, vault):
        (vault / "InfoFlow").mkdir()
        (vault / "InfoFlow" / "T.md").write_text("---\nid: [x\n---\nbody")
        result = Reconciler(store).reconcile(per_file("x"))
        assert result.action == SyncAction.CREATE
        assert result.path == "InfoFlow/T-x.md"

    def test_create_race_is_skipped_with_notice(self, vault):
        (vault / "InfoFlow").mkdir()
        (vault / "InfoFlow" / "T.md").write_text("taken")
        notifier = Notifier()
        result = Reconciler(RacingStore(vault), notifier=notifier).reconcile(
            per_file("x")
        )
        assert result.action == SyncAction.SKIP
        assert result.success is False
        assert notifier.messages == [result.error]
        assert "Skipping file creation: InfoFlow/T.md" in result.error
        assert (vault / "InfoFlow" / "T.md").read_text() == "taken"


# ---------------------------------------------------------------------------
# Single-file mode
# ---------------------------------------------------------------------------


class TestSingleFile:
    def test_create(self, store):
        result = Reconciler(store, is_single_file=True).reconcile(single_file("a"))
        assert result.action == SyncAction.CREATE
        assert result.path == "InfoFlow/All.md"

    def test_new_item_is_merged_first(self, store):
        reconciler = Reconciler(store, is_single_file=True)
        reconciler.reconcile(single_file("a"))
        result = reconciler.reconcile(single_file("b"))
        assert result.action == SyncAction.MERGE
        assert store.read("InfoFlow/All.md") == (
            "---\n- id: b\n- id: a\n---\n\n"
            "%%b_start%%\nbody\n%%b_end%%\n\n"
            "%%a_start%%\nbody\n%%a_end%%"
        )

    def test_unchanged_item(self, store):
        reconciler = Reconciler(store, is_single_file=True)
        reconciler.reconcile(single_file("a"))
        reconciler.reconcile(single_file("b"))
        store.calls.clear()
        result = reconciler.reconcile(single_file("a"))
        assert result.action == SyncAction.UNCHANGED
        assert store.writes() == []

    def test_existing_item_is_updated_in_place(self, store):
        reconciler = Reconciler(store, is_single_file=True)
        reconciler.reconcile(single_file("a"))
        reconciler.reconcile(single_file("b"))
        result = reconciler.reconcile(single_file("a", body="new a"))
        assert result.action == SyncAction.UPDATE
        content = store.read("InfoFlow/All.md")
        assert content.endswith("%%a_start%%\nnew a\n%%a_end%%")
        assert content.index("id: b") < content.index("id: a")

    def test_user_text_outside_sections_survives(self, store, vault):
        reconciler = Reconciler(store, is_single_file=True)
        reconciler.reconcile(single_file("a"))
        path = vault / "InfoFlow" / "All.md"
        path.write_text(path.read_text() + "\n\nmy notes")
        reconciler.reconcile(single_file("a", body="new"))
        assert path.read_text().endswith("%%a_end%%\n\nmy notes")

    def test_missing_front_matter_raises(self, store):
        reconciler = Reconciler(store, is_single_file=True)
        reconciler.reconcile(single_file("a"))
        broken = RenderedItem("b", "InfoFlow", "All", "no front matter")
        with pytest.raises(FrontMatterMissingError):
            reconciler.reconcile(broken)
