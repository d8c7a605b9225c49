"""Structured model of a single-file mode document.

A combined document holds one front matter record and one body section
per item::

    ---
    - id: b
      title: ...
    - id: a
      title: ...
    ---

    %%b_start%%
    ...
    %%b_end%%

    %%a_start%%
    ...
    %%a_end%%

The body is kept as an ordered list of chunks: ``Section`` chunks for the
text between (and including) an item's markers, and plain strings for
everything else, so user text outside of sections survives a rewrite
untouched.  Sections are located once, left to right: whatever sits
between an item's start marker and its own end marker belongs to that
item, even if it happens to contain another item's marker text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

from infoflow_sync.render.frontmatter import (
    compose_document,
    find_front_matter_index,
    parse_front_matter_block,
    serialize_front_matter,
    strip_front_matter,
)

_START_MARKER_RE = re.compile(r"%%(?P<id>[^%\s]+?)_start%%")

SECTION_SEPARATOR = "\n\n"


def section_start(item_id: str) -> str:
    return f"%%{item_id}_start%%"


def section_end(item_id: str) -> str:
    return f"%%{item_id}_end%%"


def wrap_section(item_id: str, content: str) -> str:
    """Wrap rendered item content in its section markers."""
    return f"{section_start(item_id)}\n{content}\n{section_end(item_id)}"


@dataclass
class Section:
    """One item's delimited section, markers included."""

    item_id: str
    text: str


Chunk = Union[str, Section]


def split_sections(body: str) -> list[Chunk]:
    """Split a body into text chunks and item sections."""
    chunks: list[Chunk] = []
    cursor = 0
    search_from = 0
    while True:
        match = _START_MARKER_RE.search(body, search_from)
        if match is None:
            break
        item_id = match.group("id")
        end_marker = section_end(item_id)
        end = body.find(end_marker, match.end())
        if end < 0:
            # Unterminated marker: leave it in the surrounding text.
            search_from = match.end()
            continue
        end += len(end_marker)
        if match.start() > cursor:
            chunks.append(body[cursor : match.start()])
        chunks.append(Section(item_id, body[match.start() : end]))
        cursor = search_from = end
    if cursor < len(body):
        chunks.append(body[cursor:])
    return chunks


@dataclass
class SingleFileDocument:
    """Ordered front matter records plus the chunked body."""

    records: list[dict[str, Any]] = field(default_factory=list)
    chunks: list[Chunk] = field(default_factory=list)

    @classmethod
    def parse(cls, content: str) -> SingleFileDocument:
        block = parse_front_matter_block(content)
        records = block.records if block is not None else []
        return cls(
            records=list(records),
            chunks=split_sections(strip_front_matter(content)),
        )

    @property
    def body(self) -> str:
        return "".join(
            c.text if isinstance(c, Section) else c for c in self.chunks
        )

    def section_index(self, item_id: str) -> int:
        for index, chunk in enumerate(self.chunks):
            if isinstance(chunk, Section) and chunk.item_id == item_id:
                return index
        return -1

    def record_index(self, item_id: str) -> int:
        return find_front_matter_index(self.records, item_id)

    def upsert(
        self, item_id: str, record: dict[str, Any], section_text: str
    ) -> bool:
        """Insert or replace one item's record and section.

        An existing record or section is replaced where it stands; a
        missing one is prepended so the newest item comes first.

        Returns:
            True if the item was already present in the document.
        """
        record_idx = self.record_index(item_id)
        if record_idx >= 0:
            self.records[record_idx] = record
        else:
            self.records.insert(0, record)

        section_idx = self.section_index(item_id)
        if section_idx >= 0:
            self.chunks[section_idx] = Section(item_id, section_text)
        elif self.chunks:
            self.chunks[0:0] = [
                Section(item_id, section_text),
                SECTION_SEPARATOR,
            ]
        else:
            self.chunks = [Section(item_id, section_text)]

        return record_idx >= 0

    def render(self) -> str:
        return compose_document(
            serialize_front_matter(self.records, as_sequence=True),
            self.body,
        )
