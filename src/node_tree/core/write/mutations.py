"""Write operations against the tree_nodes table.

Each function expects to run inside a transaction owned by the caller
(see ``node_tree.store.TreeStore``) and raises a ``TreeError`` subclass when
the request violates a tree invariant. Nothing is committed here.
"""

import dataclasses
import sqlite3
import time

from loguru import logger

from node_tree.config import ROOT_NODE_ID
from node_tree.core.tree.navigation import (
    collect_subtree_ids,
    count_children,
    get_ancestor_ids,
    get_child_ids,
    get_node,
)
from node_tree.core.tree.ordering import compact_siblings, renumber_siblings, reorder_ids
from node_tree.errors import (
    CycleError,
    ForbiddenError,
    InvalidOrderingError,
    InvalidParentError,
    InvalidTitleError,
    NodeNotFoundError,
)
from node_tree.models.node import Node


def _now_ms() -> int:
    return int(time.time() * 1000)


def _validate_title(title: str) -> str:
    if not title or not title.strip():
        raise InvalidTitleError
    return title


def _require_node(conn: sqlite3.Connection, node_id: int) -> Node:
    node = get_node(conn, node_id=node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    return node


def insert_node(conn: sqlite3.Connection, *, parent_id: int, title: str) -> Node:
    """Append a new node as the last child of ``parent_id``.

    Args:
        conn: Database connection inside an open transaction.
        parent_id: ID of an existing node.
        title: Non-empty title for the new node.
    """
    _validate_title(title)
    if get_node(conn, node_id=parent_id) is None:
        raise InvalidParentError(parent_id)

    ordering = count_children(conn, parent_id=parent_id)
    now_ms = _now_ms()
    cursor = conn.execute(
        """INSERT INTO tree_nodes (title, parent_id, ordering, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?)""",
        (title, parent_id, ordering, now_ms, now_ms),
    )
    node_id = int(cursor.lastrowid or 0)
    logger.debug("Inserted node {} under {} at position {}", node_id, parent_id, ordering)
    return Node(
        id=node_id, title=title, parent_id=parent_id, ordering=ordering,
        created_at=now_ms, updated_at=now_ms,
    )


def update_node(conn: sqlite3.Connection, *, node_id: int, title: str) -> Node:
    """Replace a node's title. Parent and ordering are untouched."""
    _validate_title(title)
    existing = _require_node(conn, node_id)
    updated = dataclasses.replace(existing, title=title, updated_at=_now_ms())
    conn.execute(
        "UPDATE tree_nodes SET title = ?, updated_at = ? WHERE id = ?",
        (updated.title, updated.updated_at, updated.id),
    )
    logger.debug("Updated title of node {}", node_id)
    return updated


def delete_node(conn: sqlite3.Connection, *, node_id: int) -> int:
    """Delete a node with all of its descendants.

    The former siblings of the node are renumbered afterwards so their
    ordering stays dense.

    Returns:
        Number of deleted rows (the node plus its descendants).
    """
    if node_id == ROOT_NODE_ID:
        msg = "Cannot delete the root node."
        raise ForbiddenError(msg)
    existing = _require_node(conn, node_id)

    subtree_ids = collect_subtree_ids(conn, node_id=node_id)
    # Leaves first, so no statement leaves a row pointing at a deleted parent.
    conn.executemany(
        "DELETE FROM tree_nodes WHERE id = ?",
        [(i,) for i in reversed(subtree_ids)],
    )
    if existing.parent_id is not None:
        compact_siblings(conn, parent_id=existing.parent_id, now_ms=_now_ms())
    logger.debug("Deleted node {} and {} descendants", node_id, len(subtree_ids) - 1)
    return len(subtree_ids)


def move_node(conn: sqlite3.Connection, *, node_id: int, new_parent_id: int) -> Node:
    """Move a node (with its subtree) to the end of ``new_parent_id``'s children.

    Moving a node to its current parent moves it to the end of its sibling
    group. The group the node leaves is renumbered to stay dense.

    Args:
        conn: Database connection inside an open transaction.
        node_id: ID of the node to move.
        new_parent_id: ID of the destination parent.
    """
    node = _require_node(conn, node_id)
    _require_node(conn, new_parent_id)
    if node.is_root:
        msg = "Cannot move the root node."
        raise ForbiddenError(msg)
    if new_parent_id == node_id or node_id in get_ancestor_ids(conn, node_id=new_parent_id):
        raise CycleError(node_id, new_parent_id)

    now_ms = _now_ms()
    conn.execute(
        """UPDATE tree_nodes
           SET parent_id = ?,
               ordering = (SELECT COALESCE(MAX(ordering), -1) + 1 FROM tree_nodes
                           WHERE parent_id = ? AND id != ?),
               updated_at = ?
           WHERE id = ?""",
        (new_parent_id, new_parent_id, node_id, now_ms, node_id),
    )
    if node.parent_id is not None:
        compact_siblings(conn, parent_id=node.parent_id, now_ms=now_ms)
    if new_parent_id != node.parent_id:
        compact_siblings(conn, parent_id=new_parent_id, now_ms=now_ms)

    moved = _require_node(conn, node_id)
    logger.debug(
        "Moved node {} from {} to {} at position {}",
        node_id, node.parent_id, new_parent_id, moved.ordering,
    )
    return moved


def reorder_node(conn: sqlite3.Connection, *, node_id: int, new_ordering: int) -> Node:
    """Move a node to position ``new_ordering`` among its siblings.

    The whole sibling group is renumbered to match the new sequence. A
    target equal to the current position writes nothing.
    """
    node = _require_node(conn, node_id)
    parent_id = node.parent_id
    if parent_id is None:
        sibling_ids = [node.id]
    else:
        sibling_ids = get_child_ids(conn, parent_id=parent_id)

    if new_ordering < 0 or new_ordering >= len(sibling_ids):
        raise InvalidOrderingError(new_ordering, len(sibling_ids))

    if parent_id is None or sibling_ids.index(node_id) == new_ordering:
        logger.debug("Node {} already at position {}", node_id, new_ordering)
        return node

    renumber_siblings(
        conn,
        parent_id=parent_id,
        ordered_ids=reorder_ids(sibling_ids, node_id, new_ordering),
        now_ms=_now_ms(),
    )
    logger.debug("Reordered node {} to position {}", node_id, new_ordering)
    return _require_node(conn, node_id)
