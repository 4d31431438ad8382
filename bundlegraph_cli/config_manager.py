"""Configuration manager for bundle graph queries using TOML files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


@dataclass
class QuerySettings:
    """Display and classification settings used by the query session."""

    vendor_marker: str = config.VENDOR_MARKER
    lazy_marker: str = config.LAZY_MARKER
    eager_marker: str = config.EAGER_MARKER
    history_file: Path = field(default_factory=lambda: config.HISTORY_FILE)


def load_full_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = config_file or config.CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (toml.TomlDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}


def load_query_config(config_file: Optional[Path] = None) -> QuerySettings:
    """Load query settings from the ``[query]`` section.

    Unknown keys are ignored; missing keys keep their defaults.

    Args:
        config_file: Explicit TOML file (default: ``~/.bundlegraph/config.toml``).

    Returns:
        Populated :class:`QuerySettings`.
    """
    section = load_full_config(config_file).get("query", {})
    settings = QuerySettings()
    known = {f.name for f in fields(QuerySettings)}
    for key, value in section.items():
        if key not in known:
            logger.debug("Unknown [query] setting '%s' ignored", key)
            continue
        if key == "history_file":
            value = Path(str(value)).expanduser()
        setattr(settings, key, value)
    return settings
