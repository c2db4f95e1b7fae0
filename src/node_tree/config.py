"""Configuration constants for node-tree."""

import os
from pathlib import Path

# The root node is created at bootstrap with a fixed, well-known id.
ROOT_NODE_ID: int = 1
ROOT_NODE_TITLE: str = "Root Node"

# Database location. Explicit --db wins, then the env var, then the default.
DEFAULT_DATA_DIR: Path = Path("~/.local/share/node-tree").expanduser()
DATABASE_FILENAME: str = "tree.db"
DATABASE_ENV_VAR: str = "NODE_TREE_DB"

# Overrides the default INFO log level (--verbose still forces DEBUG).
LOG_LEVEL_ENV_VAR: str = "NODE_TREE_LOG_LEVEL"

# How long a writer waits for another process holding the database lock.
BUSY_TIMEOUT_MS: int = 5000

HTTP_HOST: str = "127.0.0.1"
HTTP_PORT: int = 3000


def resolve_database_path(explicit: Path | None = None) -> Path:
    """Return the database path to use, creating its directory if needed."""
    if explicit is not None:
        path = explicit.expanduser()
    elif env_path := os.environ.get(DATABASE_ENV_VAR):
        path = Path(env_path).expanduser()
    else:
        path = DEFAULT_DATA_DIR / DATABASE_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
