"""Configuration paths and display defaults for bundle graph queries."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("BUNDLEGRAPH_HOME", str(Path.home() / ".bundlegraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
HISTORY_FILE = BASE_DIR / "query_history"

# Cache directory searched in the working directory when --cache is not given
DEFAULT_CACHE_DIRNAME = ".parcel-cache"
SNAPSHOT_FILENAME = "graphs.db"

# Canonical asset ids are fixed-width hashes
CANONICAL_ID_LENGTH = 16

VENDOR_MARKER = "node_modules"
LAZY_MARKER = "<"
EAGER_MARKER = "-"
REVISIT_SUFFIX = "(revisiting)"
