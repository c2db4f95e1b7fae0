"""Shared test fixtures."""

import sqlite3

import pytest

from node_tree.core.database.schema import connect_database, ensure_root, migrate_schema
from node_tree.store import TreeStore


@pytest.fixture
def conn() -> sqlite3.Connection:
    """Return an in-memory DB with the schema and the root node."""
    connection = connect_database(":memory:")
    migrate_schema(connection)
    ensure_root(connection)
    return connection


@pytest.fixture
def store(conn: sqlite3.Connection) -> TreeStore:
    """Return a store holding only the root node."""
    return TreeStore(conn)


@pytest.fixture
def populated_store(store: TreeStore) -> TreeStore:
    """Return a store with a small tree.

    Root (1)
        A (2)
            A1 (4)
                A1a (6)
            A2 (5)
        B (3)
        C (7)
    """
    store.insert_node(1, "A")
    store.insert_node(1, "B")
    store.insert_node(2, "A1")
    store.insert_node(2, "A2")
    store.insert_node(4, "A1a")
    store.insert_node(1, "C")
    return store
