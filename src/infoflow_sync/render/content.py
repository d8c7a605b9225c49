"""Content renderer: item -> (folder, file name, document).

Every rendered document carries a front matter block with at least the
item ``id``; the reconciler finds items by that field.  In single-file
mode the front matter is a one-element list and the body is wrapped in
the item's section markers, ready to be merged into a combined document.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable

import yaml

from infoflow_sync.core.models import Item
from infoflow_sync.render.dates import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_DATETIME_FORMAT,
    format_date_string,
)
from infoflow_sync.render.document import wrap_section
from infoflow_sync.render.frontmatter import (
    FrontMatterError,
    compose_document,
    parse_front_matter,
    serialize_front_matter,
    strip_front_matter,
)
from infoflow_sync.render.template import (
    DATE_FIELDS,
    RenderContext,
    render_template,
)
from infoflow_sync.validators import (
    normalize_path,
    replace_illegal_chars_file,
    replace_illegal_chars_folder,
)

logger = logging.getLogger(__name__)

ALIAS_SEPARATOR = "::"
DOCUMENT_EXTENSION = ".md"


def item_view(item: Item) -> dict[str, Any]:
    """Template view of an item: camelCase keys, raw (ISO) date values."""
    view = item.model_dump(by_alias=True)
    view["infoFlowUrl"] = item.url
    view["type"] = item.item_type.value
    view["highlights"] = [
        h.model_dump(by_alias=True) for h in item.highlights
    ]
    view["labels"] = [label.model_dump() for label in item.labels]
    return view


def _single_format_context(date_format: str) -> RenderContext:
    return RenderContext(
        date_format=date_format,
        date_formats={name: date_format for name in DATE_FIELDS},
    )


def _path_view(item: Item, date_format: str) -> dict[str, Any]:
    view = item_view(item)
    view["date"] = format_date_string(item.date_saved, date_format)
    return view


def render_folder(
    item: Item, folder_template: str, date_format: str = DEFAULT_DATE_FORMAT
) -> str:
    """Render the vault folder for *item*.

    ``{{ date }}`` is the saved date in *date_format*.  The result is
    normalized with illegal characters replaced; ``""`` is the vault root.
    """
    rendered = render_template(
        folder_template,
        _path_view(item, date_format),
        _single_format_context(date_format),
    )
    folder = replace_illegal_chars_folder(normalize_path(rendered))
    return "" if folder == "/" else folder


def render_filename(
    item: Item,
    filename_template: str,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    """Render the file name (without extension) for *item*.

    Falls back to the item id when the template renders to nothing.
    """
    rendered = render_template(
        filename_template,
        _path_view(item, date_format),
        _single_format_context(date_format),
    )
    name = replace_illegal_chars_file(rendered).strip()
    return name or item.id


def document_path(folder: str, filename: str, suffix: str = "") -> str:
    """Join folder and file name into a normalized ``.md`` document path."""
    return normalize_path(f"{folder}/{filename}{suffix}{DOCUMENT_EXTENSION}")


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------


def _label_names(item: Item) -> list[str]:
    return [label.name for label in item.labels]


def _front_matter_fields(
    date_saved_format: str,
) -> dict[str, Callable[[Item], Any]]:
    def date(value: str | None) -> str:
        return format_date_string(value, date_saved_format)

    return {
        "title": lambda i: i.title,
        "author": lambda i: i.author,
        "tags": _label_names,
        "labels": _label_names,
        "date_saved": lambda i: date(i.date_saved),
        "date_published": lambda i: date(i.date_published),
        "date_read": lambda i: date(i.date_read),
        "date_archived": lambda i: date(i.date_archived),
        "updated_at": lambda i: date(i.updated_at),
        "site_name": lambda i: i.site_name,
        "original_url": lambda i: i.original_url,
        "url": lambda i: i.url,
        "description": lambda i: i.description,
        "note": lambda i: i.note,
        "type": lambda i: i.item_type.value,
        "state": lambda i: i.state,
        "words_count": lambda i: i.words_count,
        "read_length": lambda i: i.read_length,
        "image": lambda i: i.image,
    }


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def build_front_matter(
    item: Item,
    variables: Sequence[str],
    date_saved_format: str = DEFAULT_DATETIME_FORMAT,
) -> dict[str, Any]:
    """Build the front matter record for *item*.

    ``variables`` name item fields, optionally renamed with
    ``field::alias``.  Unknown names and empty values are skipped.  The
    record always starts with the item ``id``.
    """
    fields = _front_matter_fields(date_saved_format)
    record: dict[str, Any] = {"id": item.id}
    for variable in variables:
        name, _, alias = variable.strip().partition(ALIAS_SEPARATOR)
        name, alias = name.strip(), alias.strip()
        getter = fields.get(name)
        if getter is None:
            logger.debug("Unknown front matter variable %r", name)
            continue
        value = getter(item)
        if _is_empty(value):
            continue
        record[alias or name] = value
    return record


def _render_front_matter_template(
    template: str, view: Mapping[str, Any], context: RenderContext
) -> dict[str, Any]:
    rendered = render_template(template, view, context)
    try:
        data = yaml.safe_load(rendered)
    except yaml.YAMLError as exc:
        raise FrontMatterError(
            f"Front matter template does not render to valid YAML: {exc}"
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            "Front matter template must render to a YAML mapping"
        )
    return data


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


def render_item_content(
    item: Item,
    template: str,
    highlight_order: str = "location",
    highlight_manager_id: str | None = None,
    date_highlighted_format: str = DEFAULT_DATETIME_FORMAT,
    date_saved_format: str = DEFAULT_DATETIME_FORMAT,
    is_single_file: bool = False,
    front_matter_variables: Sequence[str] = (),
    front_matter_template: str = "",
    file_attachment: str | None = None,
    highlight_color_mapping: Mapping[str, str] | None = None,
) -> str:
    """Render the full document (front matter + body) for *item*.

    Args:
        item: The fetched item.
        template: Body template.  A front matter block at the top of the
            rendered template is merged into the generated front matter.
        highlight_order: ``location``, ``time`` or anything else for the
            fetch order.
        highlight_manager_id: Wrap highlights in ``<mark>`` tags of this
            class prefix; ``None`` disables colour rendering.
        date_highlighted_format: Format for highlight dates.
        date_saved_format: Format for item dates.
        is_single_file: Emit a one-element front matter list and wrap the
            body in section markers.
        front_matter_variables: ``field`` or ``field::alias`` entries.
        front_matter_template: Optional template rendering to a YAML
            mapping, merged on top of the variables.
        file_attachment: Vault path of the downloaded file, if any.
        highlight_color_mapping: Colour name to CSS colour value.

    Returns:
        The document text.

    Raises:
        FrontMatterError: If the template's own front matter or the front
            matter template is not a valid YAML mapping.
    """
    view = item_view(item)
    view["fileAttachment"] = file_attachment or item.file_attachment
    context = RenderContext(
        date_format=date_saved_format,
        date_formats={
            **{name: date_saved_format for name in DATE_FIELDS},
            "dateHighlighted": date_highlighted_format,
        },
        highlight_order=highlight_order,
        highlight_color_mapping=dict(highlight_color_mapping or {}),
        highlight_manager_id=highlight_manager_id or None,
    )

    rendered = render_template(template, view, context)

    front_matter = build_front_matter(
        item, front_matter_variables, date_saved_format
    )
    embedded = parse_front_matter(rendered)
    if embedded:
        front_matter.update(embedded[0])
    if front_matter_template:
        front_matter.update(
            _render_front_matter_template(front_matter_template, view, context)
        )
    front_matter["id"] = item.id

    body = strip_front_matter(rendered).lstrip("\r\n")
    if is_single_file:
        return compose_document(
            serialize_front_matter([front_matter], as_sequence=True),
            wrap_section(item.id, body),
        )
    return compose_document(
        serialize_front_matter([front_matter], as_sequence=False), body
    )
