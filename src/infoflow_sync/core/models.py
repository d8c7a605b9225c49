"""Pydantic models for items fetched from the InfoFlow API.

The API speaks camelCase; the models use snake_case attributes with
camelCase aliases, so ``Item.model_validate(node)`` accepts a raw search
result node and ``item.model_dump(by_alias=True)`` gives it back.

All models are frozen.  Steps that enrich an item (the attachment
download) produce a copy via ``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class ItemType(str, Enum):
    """Coarse item kind: readable article vs. downloadable file."""

    ARTICLE = "ARTICLE"
    FILE = "FILE"


class _ApiModel(BaseModel):
    """Base for API payloads.

    The API sends ``null`` for any field it has no value for; such keys
    fall back to the field default instead of failing validation.
    """

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Label(_ApiModel):
    """A user label attached to an item or a highlight."""

    name: str = ""
    color: str | None = None

    model_config = {"frozen": True}


class Highlight(_ApiModel):
    """A highlighted passage within an item.

    Attributes:
        text: The highlighted text (Markdown).
        highlight_id: Stable identifier of the highlight.
        highlight_url: Deep link to the highlight in the reader.
        color: Colour name chosen by the user (``yellow``, ``red``...).
            Defaults to ``yellow`` when the API has none.
        position_percent: Position within the item, 0.0 to 1.0.
        position_anchor_index: Secondary ordering key for equal positions.
        note: Optional annotation attached to the highlight.
        date_highlighted: ISO 8601 timestamp of creation.
        labels: Labels attached to the highlight.
    """

    text: str = ""
    highlight_id: str = Field(
        default="",
        validation_alias=AliasChoices("highlightID", "highlightId", "id"),
        serialization_alias="highlightID",
    )
    highlight_url: str = ""
    color: str = "yellow"
    position_percent: float = 0.0
    position_anchor_index: int = 0
    note: str | None = None
    date_highlighted: str | None = None
    labels: list[Label] = []

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class Item(_ApiModel):
    """A saved item (article, PDF...) with its highlights.

    ``content`` is only present when the search asked for it, and
    ``file_attachment`` only after the attachment download step ran.
    """

    id: str
    title: str = ""
    url: str = Field(
        default="",
        validation_alias=AliasChoices("url", "infoFlowUrl"),
    )
    original_url: str | None = None
    site_name: str = ""
    author: str = ""
    type: str = ItemType.ARTICLE.value
    state: str = ""
    content: str | None = None
    description: str | None = None
    note: str | None = None
    image: str | None = None
    labels: list[Label] = []
    highlights: list[Highlight] = []
    date_saved: str = ""
    date_published: str | None = None
    date_read: str | None = None
    date_archived: str | None = None
    updated_at: str | None = None
    words_count: int | None = None
    read_length: float | None = None
    file_attachment: str | None = None

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @property
    def item_type(self) -> ItemType:
        if str(self.type).upper() == ItemType.FILE.value:
            return ItemType.FILE
        return ItemType.ARTICLE

    @property
    def is_file(self) -> bool:
        return self.item_type == ItemType.FILE
