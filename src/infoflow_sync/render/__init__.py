"""Rendering: templates, dates, front matter and combined documents."""

from .content import (
    document_path,
    item_view,
    render_filename,
    render_folder,
    render_item_content,
)
from .document import SingleFileDocument, wrap_section
from .frontmatter import (
    FrontMatterError,
    find_front_matter_index,
    parse_front_matter,
    strip_front_matter,
)
from .template import parse_template, render_spans, render_template

__all__ = [
    "FrontMatterError",
    "SingleFileDocument",
    "document_path",
    "find_front_matter_index",
    "item_view",
    "parse_front_matter",
    "parse_template",
    "render_filename",
    "render_folder",
    "render_item_content",
    "render_spans",
    "render_template",
    "strip_front_matter",
    "wrap_section",
]
