"""SQLite schema creation, migration and root bootstrap for the node tree."""

import sqlite3
import time
from pathlib import Path

from loguru import logger

from node_tree.config import BUSY_TIMEOUT_MS, ROOT_NODE_ID, ROOT_NODE_TITLE

SCHEMA_VERSION = 1

_SCHEMA_SQL = f"""\
CREATE TABLE IF NOT EXISTS tree_nodes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL CHECK (length(title) > 0),
    parent_id INTEGER REFERENCES tree_nodes(id),
    ordering INTEGER NOT NULL DEFAULT 0 CHECK (ordering >= 0),
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    CHECK (parent_id IS NOT NULL OR id = {ROOT_NODE_ID})
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_tree_nodes_parent_ordering
    ON tree_nodes(parent_id, ordering);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def connect_database(path: str | Path) -> sqlite3.Connection:
    """Open a connection configured for the tree store.

    The connection runs in autocommit mode so the store can issue its own
    ``BEGIN IMMEDIATE``; it may be shared across threads as long as callers
    serialize access (``TreeStore`` does).
    """
    conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    if str(path) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        value = get_metadata(conn, "schema_version")
    except sqlite3.OperationalError:
        return None
    return int(value) if value is not None else None


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version."""
    version = get_schema_version(conn)
    if version is None:
        logger.debug("Creating schema version {}", SCHEMA_VERSION)
        create_schema(conn)


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
    if conn.in_transaction:
        conn.commit()


def ensure_root(conn: sqlite3.Connection) -> bool:
    """Create the root node if it is missing.

    Returns True if the root was created, False if it already existed.
    """
    now_ms = int(time.time() * 1000)
    cursor = conn.execute(
        """INSERT OR IGNORE INTO tree_nodes
           (id, title, parent_id, ordering, created_at, updated_at)
           VALUES (?, ?, NULL, 0, ?, ?)""",
        (ROOT_NODE_ID, ROOT_NODE_TITLE, now_ms, now_ms),
    )
    if conn.in_transaction:
        conn.commit()
    if cursor.rowcount:
        logger.info("Root node created.")
        return True
    return False
