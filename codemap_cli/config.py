"""Configuration paths and defaults for codemap."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("CODEMAP_HOME", str(Path.home() / ".codemap"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Characters after a component declaration searched for a JSX tag.
DEFAULT_COMPONENT_WINDOW = 500
DEFAULT_WORKERS = 1
DEFAULT_SUBGRAPH_DEPTH = 2
# Tried in order after the exact path; ".js" must stay first.
DEFAULT_RESOLVE_EXTENSIONS = [".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"]

DEFAULT_CONFIG = {
    "scanner": {
        "component_window": DEFAULT_COMPONENT_WINDOW,
        "workers": DEFAULT_WORKERS,
        "resolve_extensions": list(DEFAULT_RESOLVE_EXTENSIONS),
    },
    "graph": {
        "subgraph_depth": DEFAULT_SUBGRAPH_DEPTH,
    },
}


def ensure_base_dirs() -> None:
    """Create the configuration directory if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
