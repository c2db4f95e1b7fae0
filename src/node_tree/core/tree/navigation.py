"""Tree navigation: node lookup, children, ancestors, subtree traversal."""

import sqlite3

from node_tree.models.node import Node

_NODE_COLUMNS = "id, title, parent_id, ordering, created_at, updated_at"

# SQLite INTEGER is a signed 64-bit value; larger ints cannot be bound.
_SQLITE_INT_MIN = -(2**63)
_SQLITE_INT_MAX = 2**63 - 1


def _storable(node_id: int) -> bool:
    return _SQLITE_INT_MIN <= node_id <= _SQLITE_INT_MAX


def _row_to_node(row: tuple) -> Node:
    return Node(
        id=row[0], title=row[1], parent_id=row[2], ordering=row[3],
        created_at=row[4], updated_at=row[5],
    )


def get_node(conn: sqlite3.Connection, *, node_id: int) -> Node | None:
    """Return the node with the given id, or None if it doesn't exist."""
    if not _storable(node_id):
        return None
    row = conn.execute(
        f"SELECT {_NODE_COLUMNS} FROM tree_nodes WHERE id = ?",
        (node_id,),
    ).fetchone()
    return _row_to_node(row) if row else None


def get_children(conn: sqlite3.Connection, *, parent_id: int) -> tuple[Node, ...]:
    """Get direct children of a node, ordered by ordering."""
    if not _storable(parent_id):
        return ()
    rows = conn.execute(
        f"SELECT {_NODE_COLUMNS} FROM tree_nodes WHERE parent_id = ? "
        "ORDER BY ordering, id",
        (parent_id,),
    ).fetchall()
    return tuple(_row_to_node(r) for r in rows)


def get_child_ids(conn: sqlite3.Connection, *, parent_id: int) -> list[int]:
    """Get ids of the direct children of a node, ordered by ordering."""
    if not _storable(parent_id):
        return []
    rows = conn.execute(
        "SELECT id FROM tree_nodes WHERE parent_id = ? ORDER BY ordering, id",
        (parent_id,),
    ).fetchall()
    return [r[0] for r in rows]


def count_children(conn: sqlite3.Connection, *, parent_id: int) -> int:
    if not _storable(parent_id):
        return 0
    row = conn.execute(
        "SELECT COUNT(*) FROM tree_nodes WHERE parent_id = ?", (parent_id,)
    ).fetchone()
    return int(row[0])


def get_ancestor_ids(conn: sqlite3.Connection, *, node_id: int) -> tuple[int, ...]:
    """Walk parent pointers upward from a node.

    Returns ids from the immediate parent up to the root (excludes the node
    itself). The walk stops if an id repeats, so a corrupted table cannot
    make it loop forever.
    """
    if not _storable(node_id):
        return ()
    ancestors: list[int] = []
    seen = {node_id}
    current: int | None = node_id
    while current is not None:
        row = conn.execute(
            "SELECT parent_id FROM tree_nodes WHERE id = ?", (current,)
        ).fetchone()
        if row is None or row[0] is None or row[0] in seen:
            break
        current = row[0]
        seen.add(current)
        ancestors.append(current)
    return tuple(ancestors)


def collect_subtree_ids(conn: sqlite3.Connection, *, node_id: int) -> list[int]:
    """Return the ids of a node and all of its descendants.

    Uses an explicit worklist instead of recursion. Every id appears after
    its parent, so iterating the result in reverse visits leaves first.
    """
    result = [node_id]
    stack = [node_id]
    while stack:
        current = stack.pop()
        child_ids = get_child_ids(conn, parent_id=current)
        result.extend(child_ids)
        stack.extend(child_ids)
    return result
