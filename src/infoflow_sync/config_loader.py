"""
YAML config files for the CLI and the MCP server.

Config files are optional.  When present they are found by convention
(project directory, then the user's config directory), may pull other
files in with ``!include`` and may reference environment variables as
``${VAR}``.  Sections of higher-precedence files replace whole sections
of lower ones.

Usage:
    from infoflow_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()  # {} without config files
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INFOFLOW_SYNC_CONFIG"
CONFIG_DIR = ".infoflow"
CONFIG_NAME = "config.yml"
_YAML_SUFFIXES = (".yml", ".yaml")

# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${NAME}`` and ``${NAME:-fallback}`` references in *value*.

    An unset or empty variable expands to its fallback, or to ``""``.
    Unterminated ``${`` and template placeholders (``{{title}}``) are
    left alone.
    """

    def _expand(ref: re.Match) -> str:
        name, fallback = ref.groups()
        return os.environ.get(name) or fallback or ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return list(map(_interpolate_recursive, obj))
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """``yaml.SafeLoader`` that also understands ``!include``::

        settings:
          template: !include templates/article.md

    YAML files are parsed, other files (document templates) are inlined as
    text.  Registering the tag on this subclass keeps ``yaml.safe_load``
    itself strict.
    """

    include_chain: list[Path]


def _include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    including = Path(loader.name).resolve()
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = including.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        cycle = " -> ".join(map(str, [*loader.include_chain, target]))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {including})"
        )

    if target.suffix.lower() in _YAML_SUFFIXES:
        return _load_yaml_with_includes(
            target, _include_stack=[*loader.include_chain, target]
        )
    return target.read_text(encoding="utf-8")


IncludeLoader.add_constructor("!include", _include)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    path = path.resolve()
    with path.open(encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.include_chain = _include_stack or [path]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidates() -> Iterator[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        yield Path(explicit).expanduser().resolve()
    project = Path.cwd() / CONFIG_DIR
    yield project / CONFIG_NAME
    yield project / "config.yaml"
    yield Path.home() / ".config" / "infoflow" / CONFIG_NAME


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first.

    Precedence: ``$INFOFLOW_SYNC_CONFIG``, ``./.infoflow/config.yml``,
    ``./.infoflow/config.yaml``, ``~/.config/infoflow/config.yml``.
    """
    return [path for path in _candidates() if path.exists()]


_STARTER_CONFIG = """\
# infoflow-vault-sync configuration
#
# Connection settings can also be set via environment variables:
#   INFOFLOW_VAULT, INFOFLOW_API_KEY, INFOFLOW_ENDPOINT, INFOFLOW_DEBUG
#
# vault:
#   path: ~/Notes
#   api_key: ${INFOFLOW_API_KEY}
#   endpoint: https://api.infoflow.com/graphql
#
# Overrides for the vault's stored settings:
#
# settings:
#   folder: "InfoFlow/{{{date}}}"
#   filename: "{{{title}}}"
#   template: !include article-template.md
#   front_matter_variables: [title, author, tags::labels, date_saved]
#   highlight_order: LOCATION
#   is_single_file: false
#   frequency: 60
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """The config file in effect, or where ``init`` would create one."""
    found = discover_config_files()
    return found[0] if found else Path.cwd() / CONFIG_DIR / CONFIG_NAME


def ensure_config(target: Path | None = None) -> Path:
    """Return the config file in effect, creating a commented-out starter
    file (at *target*, or the project location) when there is none."""
    found = discover_config_files()
    if found:
        logger.debug("Using existing config file %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config file %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one dict.

    Files are applied from lowest to highest precedence; a top-level
    section in a later file replaces the earlier one wholesale.  ``${VAR}``
    references are expanded after the merge.

    Raises:
        yaml.YAMLError: A config file is not valid YAML.
        FileNotFoundError: An ``!include`` target is missing.
        ValueError: Includes form a cycle.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Reading config file %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except (yaml.YAMLError, OSError, ValueError):
            logger.error("Cannot read config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)

    return _interpolate_recursive(merged)
