"""Sibling ordering: list reordering and dense renumbering of sibling groups."""

import sqlite3

from loguru import logger

from node_tree.core.tree.navigation import get_child_ids


def reorder_ids(ids: list[int], node_id: int, new_index: int) -> list[int]:
    """Return a copy of ``ids`` with ``node_id`` moved to ``new_index``.

    The index refers to the position in the resulting sequence, so moving
    the first element to ``len(ids) - 1`` puts it last.
    """
    if not 0 <= new_index < len(ids):
        msg = f"Index {new_index} out of range for {len(ids)} siblings"
        raise IndexError(msg)
    reordered = [i for i in ids if i != node_id]
    if len(reordered) != len(ids) - 1:
        msg = f"Node {node_id} is not in the sibling list"
        raise ValueError(msg)
    reordered.insert(new_index, node_id)
    return reordered


def renumber_siblings(
    conn: sqlite3.Connection,
    *,
    parent_id: int,
    ordered_ids: list[int],
    now_ms: int,
) -> int:
    """Rewrite a sibling group's ordering to match the position in ``ordered_ids``.

    ``ordered_ids`` must list every child of ``parent_id`` exactly once.
    Only rows whose ordering changes are written. Those rows are first
    parked above the group's current maximum, so the unique
    ``(parent_id, ordering)`` index holds after every single-row update.

    Returns the number of rows whose ordering changed.
    """
    current = dict(
        conn.execute(
            "SELECT id, ordering FROM tree_nodes WHERE parent_id = ?", (parent_id,)
        ).fetchall()
    )
    if len(ordered_ids) != len(current) or set(ordered_ids) != set(current):
        msg = f"Ordered ids do not match the children of node {parent_id}"
        raise ValueError(msg)

    changed = [
        (node_id, position)
        for position, node_id in enumerate(ordered_ids)
        if current[node_id] != position
    ]
    if not changed:
        return 0

    park_base = max(current.values()) + 1
    conn.executemany(
        "UPDATE tree_nodes SET ordering = ? WHERE id = ?",
        [(park_base + i, node_id) for i, (node_id, _) in enumerate(changed)],
    )
    conn.executemany(
        "UPDATE tree_nodes SET ordering = ?, updated_at = ? WHERE id = ?",
        [(position, now_ms, node_id) for node_id, position in changed],
    )
    logger.debug("Renumbered {} children of node {}", len(changed), parent_id)
    return len(changed)


def compact_siblings(conn: sqlite3.Connection, *, parent_id: int, now_ms: int) -> int:
    """Close gaps in a sibling group, keeping the current relative order."""
    ordered_ids = get_child_ids(conn, parent_id=parent_id)
    return renumber_siblings(conn, parent_id=parent_id, ordered_ids=ordered_ids, now_ms=now_ms)
