"""Tree store: the single writer of node state."""

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from node_tree.core.database.schema import connect_database, ensure_root, migrate_schema
from node_tree.core.tree.navigation import get_children, get_node
from node_tree.core.write import mutations
from node_tree.errors import NodeNotFoundError
from node_tree.models.node import Node, NodeWithChildren

_startup_lock = threading.Lock()


class TreeStore:
    """Transactional tree operations over a SQLite connection.

    Every operation holds the store lock and, for writes, runs in its own
    ``BEGIN IMMEDIATE`` transaction, so sibling renumbering and subtree
    deletion are never observed half-applied and never interleave with
    another writer. Any exception rolls the transaction back and propagates.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: str | Path) -> "TreeStore":
        """Open (or create) a database file and return a bootstrapped store."""
        store = cls(connect_database(path))
        store.bootstrap()
        return store

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def bootstrap(self) -> None:
        """Create the schema and the root node if they are missing. Idempotent."""
        with _startup_lock, self._lock:
            migrate_schema(self.conn)
            ensure_root(self.conn)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                yield self.conn
                self.conn.commit()
            except BaseException:
                if self.conn.in_transaction:
                    self.conn.rollback()
                raise

    def get_node(self, node_id: int) -> NodeWithChildren:
        """Return a node with its immediate children in sibling order."""
        with self._lock:
            node = get_node(self.conn, node_id=node_id)
            if node is None:
                raise NodeNotFoundError(node_id)
            children = get_children(self.conn, parent_id=node_id)
        return NodeWithChildren(node=node, children=children)

    def insert_node(self, parent_id: int, title: str) -> Node:
        with self._transaction() as conn:
            return mutations.insert_node(conn, parent_id=parent_id, title=title)

    def update_node(self, node_id: int, title: str) -> Node:
        with self._transaction() as conn:
            return mutations.update_node(conn, node_id=node_id, title=title)

    def delete_node(self, node_id: int) -> int:
        """Delete a node and its whole subtree. Returns the number of removed nodes."""
        with self._transaction() as conn:
            return mutations.delete_node(conn, node_id=node_id)

    def move_node(self, node_id: int, new_parent_id: int) -> Node:
        with self._transaction() as conn:
            return mutations.move_node(conn, node_id=node_id, new_parent_id=new_parent_id)

    def reorder_node(self, node_id: int, new_ordering: int) -> Node:
        with self._transaction() as conn:
            return mutations.reorder_node(conn, node_id=node_id, new_ordering=new_ordering)


@contextmanager
def open_store(path: str | Path) -> Iterator[TreeStore]:
    """Open a bootstrapped store and close it on exit."""
    store = TreeStore.open(path)
    logger.debug("Opened tree store at {}", path)
    try:
        yield store
    finally:
        store.close()
