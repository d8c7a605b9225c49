"""Bootstrap configuration for the CLI and the MCP server.

Reads the vault location and connection overrides from CLI args,
environment variables, .env files, and YAML config file fallbacks.  The
rest of the settings live in the vault's persisted settings record
(``SyncSettings``).

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    INFOFLOW_VAULT: Vault root directory (required)
    INFOFLOW_SETTINGS_FILE: Settings record path (optional)
    INFOFLOW_API_KEY: API key, overrides the stored one (optional)
    INFOFLOW_ENDPOINT: GraphQL endpoint, overrides the stored one (optional)
    INFOFLOW_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

SETTINGS_DIR = ".infoflow"
SETTINGS_FILENAME = "data.json"


@dataclass
class Config:
    vault_path: str
    settings_file: str | None = None
    api_key: str | None = None
    endpoint: str | None = None
    debug: bool = False
    log_file: str | None = None

    @property
    def vault_root(self) -> Path:
        return Path(self.vault_path)

    @property
    def settings_path(self) -> Path:
        """The settings record, ``<vault>/.infoflow/data.json`` by default."""
        if self.settings_file:
            return Path(self.settings_file).expanduser()
        return self.vault_root / SETTINGS_DIR / SETTINGS_FILENAME


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the vault is not a directory or the endpoint is not
            an http(s) URL.
    """
    config.vault_path = str(Path(config.vault_path.strip()).expanduser())

    if not Path(config.vault_path).is_dir():
        raise ValueError(
            f"Vault path '{config.vault_path}' is not a directory"
        )

    if config.endpoint:
        config.endpoint = config.endpoint.strip()
        parsed = urlparse(config.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(
                f"Invalid InfoFlow endpoint '{config.endpoint}': "
                "must be an http:// or https:// URL"
            )


def load_config(
    vault: str | None = None,
    settings_file: str | None = None,
    api_key: str | None = None,
    endpoint: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    log_file: str | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        vault: Override vault root (takes precedence over env var and YAML).
        settings_file: Override the settings record location.
        api_key: Override the stored API key.
        endpoint: Override the stored endpoint.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config ``vault``
            section.  Used as fallback when CLI arg and env var are both
            unset.
        log_file: Log file from the YAML ``logging`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the vault path is missing after checking all
            sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML ---

    vault_path = vault or os.getenv("INFOFLOW_VAULT") or fb.get("path")
    if not vault_path:
        raise ValueError(
            "Vault path not found. Set INFOFLOW_VAULT environment variable, "
            "pass --vault CLI argument, or add 'path' to the vault section "
            "of config.yml."
        )

    final_settings_file = (
        settings_file
        or os.getenv("INFOFLOW_SETTINGS_FILE")
        or fb.get("settings_file")
    )
    final_api_key = api_key or os.getenv("INFOFLOW_API_KEY") or fb.get("api_key")
    final_endpoint = (
        endpoint or os.getenv("INFOFLOW_ENDPOINT") or fb.get("endpoint")
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("INFOFLOW_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        vault_path=vault_path,
        settings_file=final_settings_file,
        api_key=final_api_key.strip() if final_api_key else None,
        endpoint=final_endpoint,
        debug=final_debug,
        log_file=log_file,
    )

    validate_config(config)

    return config


@dataclass
class RuntimeConfig:
    """Everything a host needs to open a vault.

    Attributes:
        config: Bootstrap configuration.
        settings_overrides: YAML ``settings`` section, applied over the
            stored settings record at startup.
        sources: Human-readable list of the sources that contributed.
    """

    config: Config
    settings_overrides: dict = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)


def load_runtime_config(overrides: dict | None = None) -> RuntimeConfig:
    """Merge CLI overrides, environment and YAML config files.

    The caller loads ``.env`` first (``load_dotenv()``).

    Args:
        overrides: CLI values (vault, settings_file, api_key, endpoint,
            debug).

    Raises:
        ValueError: If the vault path is missing or invalid.
    """
    from .config_loader import discover_config_files, load_hierarchical_config
    from .config_schema import build_config

    overrides = overrides or {}
    yaml_fallbacks: dict | None = None
    settings_overrides: dict = {}
    log_file = None
    sources = []

    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = {
            k: v
            for k, v in unified.vault.model_dump().items()
            if v is not None
        }
        settings_overrides = dict(unified.settings)
        log_file = unified.logging.file
        sources.append(f"config file: {config_files[0]}")

    config = load_config(
        vault=overrides.get("vault"),
        settings_file=overrides.get("settings_file"),
        api_key=overrides.get("api_key"),
        endpoint=overrides.get("endpoint"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
        log_file=log_file,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return RuntimeConfig(config, settings_overrides, sources)
