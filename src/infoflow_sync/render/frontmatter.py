"""Front matter parsing and serialization.

A document starts with an optional YAML block delimited by ``---`` lines.
In per-file mode the block is a single mapping; in single-file mode it is
a sequence of mappings, one record per item merged into the document.

``parse_front_matter`` always returns a list of records so callers never
branch on the YAML shape.  ``FrontMatterBlock`` remembers the original
shape for writers that need to reproduce it.

Round trip: for a document produced by ``compose_document``,
``compose_document(serialize_front_matter(block), strip_front_matter(doc))``
is byte-identical to the input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

FRONT_MATTER_DELIMITER = "---"

# ``---`` on the first line, YAML, then a closing ``---`` line.  Newlines
# directly after the closing delimiter belong to the separator, not the body.
_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^---[ \t]*(?:\r?\n|\Z)(?P<sep>(?:\r?\n)*)",
    re.DOTALL | re.MULTILINE,
)


class FrontMatterError(ValueError):
    """The front matter block exists but is not valid YAML records."""


@dataclass
class FrontMatterBlock:
    """Parsed front matter: the records plus the shape they came in."""

    records: list[dict[str, Any]] = field(default_factory=list)
    is_sequence: bool = True


def _match(content: str) -> re.Match | None:
    return _FRONT_MATTER_RE.match(content)


def split_front_matter(content: str) -> tuple[str | None, str]:
    """Split a document into ``(yaml_text, body)``.

    ``yaml_text`` is ``None`` when the document has no front matter block.
    """
    match = _match(content)
    if match is None:
        return None, content
    yaml_text = match.groupdict().get("yaml") or ""
    return yaml_text, content[match.end() :]


def parse_front_matter_block(content: str) -> FrontMatterBlock | None:
    """Parse the leading front matter block of *content*.

    Returns:
        ``None`` if there is no block, otherwise the parsed block.

    Raises:
        FrontMatterError: If the block is not valid YAML, or holds
            something other than a mapping or a sequence of mappings.
    """
    yaml_text, _ = split_front_matter(content)
    if yaml_text is None:
        return None

    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front matter: {exc}") from exc

    if data is None:
        return FrontMatterBlock(records=[], is_sequence=False)
    if isinstance(data, dict):
        return FrontMatterBlock(records=[data], is_sequence=False)
    if isinstance(data, list) and all(isinstance(r, dict) for r in data):
        return FrontMatterBlock(records=list(data), is_sequence=True)

    raise FrontMatterError(
        f"Front matter must be a mapping or a list of mappings, "
        f"got {type(data).__name__}"
    )


def parse_front_matter(content: str) -> list[dict[str, Any]] | None:
    """Return the front matter records of *content*, or ``None`` if absent.

    A single mapping is returned as a one-element list.
    """
    block = parse_front_matter_block(content)
    if block is None:
        return None
    return block.records


def strip_front_matter(content: str) -> str:
    """Return *content* without its leading front matter block.

    Only the first block is removed, so stripping twice is the same as
    stripping once for any body that does not itself open with ``---``.
    """
    _, body = split_front_matter(content)
    return body


def find_front_matter_index(
    records: list[dict[str, Any]], item_id: str
) -> int:
    """Return the index of the record whose ``id`` is *item_id*, or -1."""
    for index, record in enumerate(records):
        if str(record.get("id")) == item_id:
            return index
    return -1


def dump_yaml(data: Any) -> str:
    """Dump *data* as block-style YAML, keeping key order and unicode."""
    return yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=4096,
    )


def serialize_front_matter(
    records: list[dict[str, Any]], as_sequence: bool = True
) -> str:
    """Serialize records into a ``---`` delimited block (no trailing newline).

    Args:
        records: The front matter records.
        as_sequence: Emit a YAML sequence.  When False, exactly one record
            is expected and it is emitted as a plain mapping.
    """
    if as_sequence:
        data: Any = list(records)
    else:
        if len(records) != 1:
            raise FrontMatterError(
                f"Expected one front matter record, got {len(records)}"
            )
        data = records[0]
    return f"{FRONT_MATTER_DELIMITER}\n{dump_yaml(data)}{FRONT_MATTER_DELIMITER}"


def compose_document(front_matter: str, body: str) -> str:
    """Join a serialized front matter block and a body."""
    return f"{front_matter}\n\n{body}"
