"""Placeholder template engine.

Templates are Markdown with ``{{ ... }}`` placeholders:

- ``{{ title }}``, ``{{{ title }}}`` -- plain field lookup; dotted paths
  (``highlights.length``) walk into nested values.  Missing fields render
  as an empty string.
- ``{{ date:dateSaved }}``, ``{{ date:dateSaved|dd MMM yyyy }}`` -- date
  helper; the format defaults to the configured one.
- ``{{ content }}`` -- the item body, or an embed of the downloaded file
  for file items that have one.
- ``{{ fileAttachment }}`` -- embed of the downloaded file.
- ``{{#highlights}} ... {{/highlights}}`` -- one rendering of the inner
  template per highlight, in the configured highlight order.  A bare
  ``{{ highlights }}`` uses a plain quote per highlight.
- ``{{#name}} ... {{/name}}`` -- conditional block; iterates over lists.
- ``{{^name}} ... {{/name}}`` -- inverted block, rendered when the value
  is missing, false or empty.
- ``{{! comment }}`` -- dropped.

Section and comment tags that sit alone on a line take the whole line
with them, so block templates do not leave blank lines behind.

Nothing in here raises on bad input: unknown helpers, stray closing tags
and unclosed blocks are kept as literal text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any

from infoflow_sync.render.dates import (
    DEFAULT_DATE_FORMAT,
    format_date_string,
    parse_date_time,
)

logger = logging.getLogger(__name__)


class SpanKind(str, Enum):
    """What a parsed template span does when rendered."""

    TEXT = "text"
    VARIABLE = "variable"
    DATE = "date"
    CONTENT = "content"
    FILE_ATTACHMENT = "fileAttachment"
    HIGHLIGHTS = "highlights"
    SECTION = "section"
    INVERTED = "inverted"


class HighlightOrder(str, Enum):
    LOCATION = "location"
    TIME = "time"
    FETCH = "fetch"


# Fields that hold ISO timestamps.  Plain references format them.
DATE_FIELDS = frozenset(
    {
        "dateSaved",
        "datePublished",
        "dateRead",
        "dateArchived",
        "updatedAt",
        "dateHighlighted",
    }
)

DEFAULT_HIGHLIGHT_TEMPLATE = "> {{{text}}}"
HIGHLIGHT_JOINER = "\n\n"
DEFAULT_HIGHLIGHT_COLOR = "yellow"

_TAG_RE = re.compile(
    r"\{\{\{\s*(?P<raw>[^{}]*?)\s*\}\}\}|\{\{\s*(?P<tag>[^{}]*?)\s*\}\}"
)

# Helper prefixes understood in ``{{ helper:field|option }}`` tags.
_HELPERS = {"date": SpanKind.DATE}

_BLOCK_SIGILS = {"#", "^", "/", "!"}


@dataclass(frozen=True)
class TemplateSpan:
    """One parsed unit of a template.

    ``TEXT`` spans carry their literal text in ``name``.  Block spans
    (``SECTION``, ``INVERTED``, ``HIGHLIGHTS``) carry their inner spans in
    ``children``.
    """

    kind: SpanKind
    name: str = ""
    options: tuple[str, ...] = ()
    children: tuple[TemplateSpan, ...] = ()

    @property
    def text(self) -> str:
        return self.name if self.kind == SpanKind.TEXT else ""


@dataclass(frozen=True)
class RenderContext:
    """Settings that placeholders consult while rendering.

    Attributes:
        date_format: Format for the ``date`` helper and for plain date
            fields without an entry in ``date_formats``.
        date_formats: Per-field date formats (``{"dateSaved": ...}``).
        highlight_order: ``location``, ``time`` or anything else for
            fetch order.
        highlight_color_mapping: Colour name to CSS colour value.
        highlight_manager_id: When set, highlight text is wrapped in
            ``<mark class="{id} {id}-{colour}">`` tags.
    """

    date_format: str = DEFAULT_DATE_FORMAT
    date_formats: Mapping[str, str] = field(default_factory=dict)
    highlight_order: str = HighlightOrder.TIME.value
    highlight_color_mapping: Mapping[str, str] = field(default_factory=dict)
    highlight_manager_id: str | None = None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _classify(body: str) -> tuple[SpanKind, str, tuple[str, ...]] | None:
    """Classify a non-block tag body; None means "keep as literal"."""
    if not body:
        return None
    if ":" in body:
        helper, _, rest = body.partition(":")
        kind = _HELPERS.get(helper.strip())
        if kind is None:
            return None
        name, *options = rest.split("|")
        name = name.strip()
        if not name:
            return None
        return kind, name, tuple(o.strip() for o in options if o.strip())
    if body == SpanKind.CONTENT.value:
        return SpanKind.CONTENT, body, ()
    if body == SpanKind.FILE_ATTACHMENT.value:
        return SpanKind.FILE_ATTACHMENT, body, ()
    if body == SpanKind.HIGHLIGHTS.value:
        return SpanKind.HIGHLIGHTS, body, ()
    return SpanKind.VARIABLE, body, ()


def _standalone_bounds(
    template: str, start: int, end: int
) -> tuple[int, int] | None:
    """Return the full-line bounds of a tag alone on its line, else None."""
    line_start = template.rfind("\n", 0, start) + 1
    if template[line_start:start].strip(" \t"):
        return None
    cursor = end
    while cursor < len(template) and template[cursor] in " \t":
        cursor += 1
    if cursor == len(template):
        return line_start, cursor
    if template.startswith("\r\n", cursor):
        return line_start, cursor + 2
    if template[cursor] == "\n":
        return line_start, cursor + 1
    return None


@dataclass
class _OpenBlock:
    kind: SpanKind
    name: str
    raw: str
    children: list[TemplateSpan] = field(default_factory=list)


def _append_text(spans: list[TemplateSpan], text: str) -> None:
    if not text:
        return
    if spans and spans[-1].kind == SpanKind.TEXT:
        spans[-1] = TemplateSpan(SpanKind.TEXT, spans[-1].name + text)
    else:
        spans.append(TemplateSpan(SpanKind.TEXT, text))


@lru_cache(maxsize=64)
def parse_template(template: str) -> tuple[TemplateSpan, ...]:
    """Parse *template* into spans.

    Pure and memoized: the same template string always yields the same
    (shared, immutable) span tuple.
    """
    root: list[TemplateSpan] = []
    stack: list[_OpenBlock] = []

    def current() -> list[TemplateSpan]:
        return stack[-1].children if stack else root

    cursor = 0
    for match in _TAG_RE.finditer(template):
        raw = match.group(0)
        is_triple = match.group("raw") is not None
        body = (match.group("raw") if is_triple else match.group("tag")) or ""
        sigil = body[:1] if not is_triple else ""

        start, end = match.start(), match.end()
        if sigil in _BLOCK_SIGILS:
            bounds = _standalone_bounds(template, start, end)
            if bounds is not None and bounds[0] >= cursor:
                start, end = bounds
        _append_text(current(), template[cursor:start])
        cursor = end

        if sigil == "!":
            continue

        if sigil in ("#", "^"):
            name = body[1:].strip()
            if not name:
                _append_text(current(), raw)
                continue
            if sigil == "^":
                kind = SpanKind.INVERTED
            elif name == SpanKind.HIGHLIGHTS.value:
                kind = SpanKind.HIGHLIGHTS
            else:
                kind = SpanKind.SECTION
            stack.append(_OpenBlock(kind, name, raw))
            continue

        if sigil == "/":
            name = body[1:].strip()
            if stack and stack[-1].name == name:
                block = stack.pop()
                current().append(
                    TemplateSpan(
                        block.kind,
                        block.name,
                        children=tuple(block.children),
                    )
                )
            else:
                _append_text(current(), raw)
            continue

        classified = _classify(body.strip())
        if classified is None:
            _append_text(current(), raw)
            continue
        kind, name, options = classified
        current().append(TemplateSpan(kind, name, options))

    _append_text(current(), template[cursor:])

    # Unclosed blocks: keep the opening tag as text, inline the children.
    while stack:
        block = stack.pop()
        target = current()
        _append_text(target, block.raw)
        for child in block.children:
            if child.kind == SpanKind.TEXT:
                _append_text(target, child.name)
            else:
                target.append(child)

    return tuple(root)


def template_uses(spans: Sequence[TemplateSpan], kind: SpanKind) -> bool:
    """Whether any span (at any depth) is of *kind*."""
    return any(
        span.kind == kind or template_uses(span.children, kind)
        for span in spans
    )


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def lookup(stack: Sequence[Any], name: str) -> Any:
    """Resolve a (dotted) name against a stack of scopes, innermost last."""
    if name == ".":
        if not stack:
            return None
        top = stack[-1]
        if isinstance(top, Mapping) and "." in top:
            return top["."]
        return top

    head, *rest = name.split(".")
    value: Any = None
    for scope in reversed(stack):
        if isinstance(scope, Mapping) and head in scope:
            value = scope[head]
            break
    else:
        return None

    for part in rest:
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, (list, tuple)):
            if part == "length":
                value = len(value)
            elif part.isdigit() and int(part) < len(value):
                value = value[int(part)]
            else:
                return None
        else:
            return None
    return value


def to_text(value: Any) -> str:
    """Render a looked-up value as text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        parts = []
        for element in value:
            if isinstance(element, Mapping):
                if "name" in element:
                    parts.append(to_text(element["name"]))
            else:
                parts.append(to_text(element))
        return ", ".join(p for p in parts if p)
    if isinstance(value, Mapping):
        return ""
    return str(value)


def _is_truthy(value: Any) -> bool:
    if isinstance(value, (list, tuple, Mapping, str)):
        return len(value) > 0
    return bool(value)


def attachment_embed(path: str) -> str:
    return f"![[{path}]]"


def color_token(color: str | None, mapping: Mapping[str, str]) -> str:
    """Map a highlight colour to a CSS-class-safe colour name."""
    name = re.sub(r"[^a-z0-9-]+", "-", (color or "").strip().lower())
    name = name.strip("-")
    if name and (not mapping or name in mapping):
        return name
    return DEFAULT_HIGHLIGHT_COLOR


def _mark(text: str, manager_id: str, token: str) -> str:
    css_class = f"{manager_id} {manager_id}-{token}"
    return "\n".join(
        f'<mark class="{css_class}">{line}</mark>' if line.strip() else line
        for line in text.split("\n")
    )


def _highlight_time(highlight: Mapping[str, Any]) -> float | None:
    parsed: datetime | None = parse_date_time(
        highlight.get("dateHighlighted")
    )
    return parsed.timestamp() if parsed is not None else None


def sort_highlights(
    highlights: Sequence[Mapping[str, Any]], order: str
) -> list[Mapping[str, Any]]:
    """Order highlight views for rendering.

    ``location`` sorts by position then anchor index, ``time`` by the
    highlight date with undated highlights last, anything else keeps the
    fetch order.  All sorts are stable.
    """
    order = (order or "").lower()
    if order == HighlightOrder.LOCATION.value:
        return sorted(
            highlights,
            key=lambda h: (
                float(h.get("positionPercent") or 0.0),
                int(h.get("positionAnchorIndex") or 0),
            ),
        )
    if order == HighlightOrder.TIME.value:
        def _key(h: Mapping[str, Any]) -> tuple[bool, float]:
            ts = _highlight_time(h)
            return (ts is None, ts if ts is not None else 0.0)

        return sorted(highlights, key=_key)
    return list(highlights)


def highlight_view(
    highlight: Mapping[str, Any], context: RenderContext
) -> dict[str, Any]:
    """Per-highlight scope: colour token/value and optional mark wrapping."""
    view = dict(highlight)
    token = color_token(view.get("color"), context.highlight_color_mapping)
    view["colorToken"] = token
    view["colorValue"] = context.highlight_color_mapping.get(token, "")
    if context.highlight_manager_id and view.get("text"):
        view["text"] = _mark(
            str(view["text"]), context.highlight_manager_id, token
        )
    return view


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render_span(
    span: TemplateSpan, stack: list[Any], context: RenderContext
) -> str:
    match span.kind:
        case SpanKind.TEXT:
            return span.name
        case SpanKind.VARIABLE:
            value = lookup(stack, span.name)
            leaf = span.name.rsplit(".", 1)[-1]
            if leaf in DATE_FIELDS and isinstance(value, str):
                fmt = context.date_formats.get(leaf, context.date_format)
                return format_date_string(value, fmt) or value
            return to_text(value)
        case SpanKind.DATE:
            value = lookup(stack, span.name)
            if not value:
                return ""
            fmt = span.options[0] if span.options else None
            fmt = fmt or context.date_formats.get(span.name) or context.date_format
            return format_date_string(str(value), fmt)
        case SpanKind.CONTENT:
            attachment = lookup(stack, "fileAttachment")
            item_type = str(lookup(stack, "type") or "").upper()
            if attachment and item_type == "FILE":
                return attachment_embed(str(attachment))
            return to_text(lookup(stack, "content"))
        case SpanKind.FILE_ATTACHMENT:
            attachment = lookup(stack, "fileAttachment")
            return attachment_embed(str(attachment)) if attachment else ""
        case SpanKind.HIGHLIGHTS:
            highlights = lookup(stack, span.name) or []
            if not isinstance(highlights, (list, tuple)):
                return ""
            ordered = sort_highlights(
                [h for h in highlights if isinstance(h, Mapping)],
                context.highlight_order,
            )
            if span.children:
                children, joiner = span.children, ""
            else:
                children = parse_template(DEFAULT_HIGHLIGHT_TEMPLATE)
                joiner = HIGHLIGHT_JOINER
            return joiner.join(
                render_spans(
                    children, stack + [highlight_view(h, context)], context
                )
                for h in ordered
            )
        case SpanKind.SECTION:
            value = lookup(stack, span.name)
            if not _is_truthy(value):
                return ""
            if isinstance(value, (list, tuple)):
                return "".join(
                    render_spans(
                        span.children,
                        stack + [el if isinstance(el, Mapping) else {".": el}],
                        context,
                    )
                    for el in value
                )
            if isinstance(value, Mapping):
                return render_spans(span.children, stack + [value], context)
            return render_spans(span.children, stack, context)
        case SpanKind.INVERTED:
            if _is_truthy(lookup(stack, span.name)):
                return ""
            return render_spans(span.children, stack, context)
    return ""


def render_spans(
    spans: Sequence[TemplateSpan],
    view: Mapping[str, Any] | list[Any],
    context: RenderContext | None = None,
) -> str:
    """Render parsed spans against a view (or a stack of scopes)."""
    context = context or RenderContext()
    stack = list(view) if isinstance(view, list) else [view]
    parts: list[str] = []
    for span in spans:
        try:
            parts.append(_render_span(span, stack, context))
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning(
                "Could not render placeholder %r: %s", span.name, exc
            )
    return "".join(parts)


def render_template(
    template: str,
    view: Mapping[str, Any],
    context: RenderContext | None = None,
) -> str:
    """Parse (cached) and render *template* against *view*."""
    return render_spans(parse_template(template), view, context)
