"""Configuration schema for infoflow_sync.

Two kinds of configuration live here:

- ``SyncSettings``: the persisted settings record of a vault (templates,
  folders, watermark, syncing flag...).  It is stored as JSON inside the
  vault with camelCase keys.
- ``UnifiedConfig``: the YAML configuration file, with sections for the
  vault connection, settings overrides and logging.

Usage:
    from infoflow_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_config(unified, cli_overrides={"vault": "/notes"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel, to_snake

from .core.client import DEFAULT_ENDPOINT
from .render.dates import DEFAULT_DATE_FORMAT, DEFAULT_DATETIME_FORMAT

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "InfoFlow/{{{date}}}"
DEFAULT_ATTACHMENT_FOLDER = "InfoFlow/attachments"
DEFAULT_FILENAME = "{{{title}}}"
DEFAULT_HIGHLIGHT_MANAGER_ID = "infoflow"

DEFAULT_TEMPLATE = """# {{{title}}}
#InfoFlow

[Read on InfoFlow]({{{infoFlowUrl}}})
[Read Original]({{{originalUrl}}})

{{#highlights.length}}
## Highlights

{{#highlights}}
> {{{text}}} [⤴️]({{{highlightUrl}}}) {{#labels}} #{{name}} {{/labels}}
{{#note}}

{{{note}}}
{{/note}}

{{/highlights}}
{{/highlights.length}}"""

DEFAULT_HIGHLIGHT_COLOR_MAPPING = {
    "yellow": "#fff3a3",
    "red": "#ff5582",
    "green": "#bbfabb",
    "blue": "#adccff",
}


# ---------------------------------------------------------------------------
# Persisted settings record
# ---------------------------------------------------------------------------


class SyncSettings(BaseModel):
    """The persisted settings record of a vault.

    Frozen: the sync driver returns updated copies (``model_copy``) and the
    caller persists them.  Unknown keys in stored data are ignored.

    Attributes:
        api_key: InfoFlow API key.
        endpoint: GraphQL endpoint.
        filter: Legacy search filter (``ALL``, ``HIGHLIGHTED``...), only
            used to derive ``custom_query``.
        custom_query: Search query sent with every fetch.
        folder: Folder template for documents.
        attachment_folder: Folder template for downloaded files.
        filename: File name template.
        template: Document body template.
        front_matter_template: Optional template rendering to YAML that is
            merged into the front matter.
        front_matter_variables: ``field`` or ``field::alias`` entries.
        highlight_order: ``LOCATION`` or ``TIME``.
        is_single_file: Merge all items into one document per path.
        sync_on_start: Sync when the host starts.
        frequency: Minutes between scheduled syncs; 0 disables.
        sync_at: Watermark; empty means "sync everything".
        syncing: Single-flight flag.
        version: Package version that last wrote the record.
    """

    api_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    filter: str = "HIGHLIGHTED"
    custom_query: str = ""
    folder: str = DEFAULT_FOLDER
    attachment_folder: str = DEFAULT_ATTACHMENT_FOLDER
    filename: str = DEFAULT_FILENAME
    template: str = DEFAULT_TEMPLATE
    front_matter_template: str = ""
    front_matter_variables: list[str] = []
    highlight_order: str = "LOCATION"
    is_single_file: bool = False
    sync_on_start: bool = True
    frequency: int = Field(default=0, ge=0)
    sync_at: str = ""
    syncing: bool = False
    folder_date_format: str = DEFAULT_DATE_FORMAT
    filename_date_format: str = DEFAULT_DATE_FORMAT
    date_saved_format: str = DEFAULT_DATETIME_FORMAT
    date_highlighted_format: str = DEFAULT_DATETIME_FORMAT
    highlight_color_mapping: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_HIGHLIGHT_COLOR_MAPPING)
    )
    enable_highlight_color_render: bool = False
    highlight_manager_id: str = DEFAULT_HIGHLIGHT_MANAGER_ID
    version: str = "0.0.0"

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def highlight_manager(self) -> str | None:
        """Manager id for coloured ``<mark>`` tags, or None when disabled."""
        if self.enable_highlight_color_render and self.highlight_manager_id:
            return self.highlight_manager_id
        return None

    def to_storage(self) -> dict[str, Any]:
        """Serialize for the settings file (camelCase keys)."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# YAML config sections
# ---------------------------------------------------------------------------


class VaultConfig(BaseModel):
    """Vault location and connection overrides.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    path: str | None = Field(default=None, description="Vault root")
    settings_file: str | None = Field(
        default=None,
        description="Settings record path (default <vault>/.infoflow/data.json)",
    )
    api_key: str | None = Field(
        default=None, description="InfoFlow API key override"
    )
    endpoint: str | None = Field(
        default=None, description="InfoFlow GraphQL endpoint override"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.  ``settings`` holds overrides for the
    persisted ``SyncSettings`` record, keyed by snake_case or camelCase
    field names.
    """

    vault: VaultConfig = Field(default_factory=VaultConfig)
    settings: dict[str, Any] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def apply_settings_overrides(
    settings: SyncSettings, overrides: dict[str, Any]
) -> SyncSettings:
    """Validate *overrides* on top of *settings* and return the result.

    Raises:
        pydantic.ValidationError: If an override has the wrong type.
    """
    if not overrides:
        return settings
    merged = settings.model_dump()
    merged.update({to_snake(key): value for key, value in overrides.items()})
    return SyncSettings.model_validate(merged)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the ``Config`` dataclass, applying
    CLI overrides on top.

    The precedence applied here is:
        CLI override > unified config value > default

    CLI overrides dict keys: vault, settings_file, api_key, endpoint, debug.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        ``Config`` dataclass instance (NOT validated: caller should run
        ``validate_config()`` separately if needed).
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import Config

    overrides = cli_overrides or {}

    return Config(
        vault_path=overrides.get("vault") or unified.vault.path or "",
        settings_file=overrides.get("settings_file")
        or unified.vault.settings_file,
        api_key=overrides.get("api_key") or unified.vault.api_key,
        endpoint=overrides.get("endpoint") or unified.vault.endpoint,
        debug=overrides.get("debug", False) or unified.vault.debug,
        log_file=unified.logging.file,
    )
