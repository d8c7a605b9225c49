"""Tests for the item content renderer."""

import pytest

from conftest import make_highlight, make_item
from infoflow_sync.render.content import (
    build_front_matter,
    document_path,
    item_view,
    render_filename,
    render_folder,
    render_item_content,
)
from infoflow_sync.render.frontmatter import FrontMatterError, parse_front_matter


class TestPaths:
    def test_folder_with_saved_date(self):
        item = make_item("x")
        assert render_folder(item, "InfoFlow/{{date}}", "yyyy-MM-dd") == (
            "InfoFlow/2024-01-02"
        )

    def test_empty_folder_is_vault_root(self):
        assert render_folder(make_item("x"), "", "yyyy-MM-dd") == ""
        assert render_folder(make_item("x"), "/", "yyyy-MM-dd") == ""

    def test_folder_illegal_characters(self):
        item = make_item("x", title="x?y")
        assert render_folder(item, "A:B/{{{title}}}") == "A-B/x-y"

    def test_filename_illegal_characters(self):
        item = make_item("x", title="a/b:c")
        assert render_filename(item, "{{{title}}}") == "a-b-c"

    def test_filename_falls_back_to_id(self):
        item = make_item("x", title="")
        assert render_filename(item, "{{{title}}}") == "x"

    def test_document_path(self):
        assert document_path("InfoFlow", "T") == "InfoFlow/T.md"
        assert document_path("", "T", "-x") == "T-x.md"


class TestItemView:
    def test_camel_case_keys(self):
        view = item_view(make_item("x", labels=[{"name": "a"}]))
        assert view["siteName"] == "Example"
        assert view["infoFlowUrl"] == "https://infoflow.app/read/x"
        assert view["type"] == "ARTICLE"
        assert view["labels"] == [{"name": "a", "color": None}]


class TestFrontMatter:
    def test_order_alias_and_skips(self):
        item = make_item("x", title="T", author="Ada", labels=[{"name": "a"}])
        record = build_front_matter(
            item, ["title", "author::writer", "tags", "unknown", "note"]
        )
        assert list(record) == ["id", "title", "writer", "tags"]
        assert record["writer"] == "Ada"
        assert record["tags"] == ["a"]

    def test_date_fields_use_format(self):
        record = build_front_matter(make_item("x"), ["date_saved"], "yyyy-MM-dd")
        assert record["date_saved"] == "2024-01-02"


class TestRenderItemContent:
    def test_per_file_document(self):
        item = make_item("x", title="Hello")
        document = render_item_content(
            item, "# {{{title}}}", front_matter_variables=["title"]
        )
        assert document == "---\nid: x\ntitle: Hello\n---\n\n# Hello"

    def test_single_file_document(self):
        item = make_item("x", title="Hello")
        document = render_item_content(
            item,
            "# {{{title}}}",
            is_single_file=True,
            front_matter_variables=["title"],
        )
        assert document == (
            "---\n- id: x\n  title: Hello\n---\n\n"
            "%%x_start%%\n# Hello\n%%x_end%%"
        )

    def test_template_front_matter_is_merged(self):
        item = make_item("x", title="Hello")
        document = render_item_content(
            item, "---\nextra: 1\n---\n# {{{title}}}"
        )
        assert document == "---\nid: x\nextra: 1\n---\n\n# Hello"

    def test_front_matter_template_is_merged(self):
        item = make_item("x", state="SUCCEEDED")
        document = render_item_content(
            item, "body", front_matter_template="status: {{state}}"
        )
        assert parse_front_matter(document) == [
            {"id": "x", "status": "SUCCEEDED"}
        ]

    def test_id_cannot_be_overridden(self):
        document = render_item_content(
            make_item("x"), "body", front_matter_template="id: other"
        )
        assert parse_front_matter(document)[0]["id"] == "x"

    @pytest.mark.parametrize("template", ["a: [unclosed", "- a\n- b"])
    def test_bad_front_matter_template_raises(self, template):
        with pytest.raises(FrontMatterError):
            render_item_content(
                make_item("x"), "body", front_matter_template=template
            )

    def test_file_item_embeds_attachment(self):
        item = make_item("x", type="FILE", content="raw text")
        document = render_item_content(
            item, "{{{content}}}", file_attachment="InfoFlow/Attachments/x.pdf"
        )
        assert document.endswith("\n\n![[InfoFlow/Attachments/x.pdf]]")

    def test_highlights_in_location_order(self):
        item = make_item(
            "x",
            highlights=[
                make_highlight("h2", "late", positionPercent=0.8),
                make_highlight("h1", "early", positionPercent=0.2),
            ],
        )
        document = render_item_content(
            item, "{{#highlights}}> {{{text}}}\n{{/highlights}}"
        )
        assert document.endswith("> early\n> late\n")

    def test_mark_wrapping_with_manager_id(self):
        item = make_item("x", highlights=[make_highlight(color="red")])
        document = render_item_content(
            item,
            "{{#highlights}}{{{text}}}{{/highlights}}",
            highlight_manager_id="hm",
            highlight_color_mapping={"yellow": "#fff", "red": "#f00"},
        )
        assert '<mark class="hm hm-red">Quoted</mark>' in document
