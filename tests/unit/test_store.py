"""Tests for the tree store operations."""

import sqlite3
import threading
from pathlib import Path

import pytest

from node_tree.core.write import mutations
from node_tree.errors import (
    CycleError,
    ForbiddenError,
    InvalidOrderingError,
    InvalidParentError,
    InvalidTitleError,
    NodeNotFoundError,
)
from node_tree.store import TreeStore, open_store
from tests.unit.tree_checks import assert_dense_ordering, child_titles


def _count_rows(store: TreeStore) -> int:
    return store.conn.execute("SELECT COUNT(*) FROM tree_nodes").fetchone()[0]


# --- get ---


def test_get_root_returns_root_without_children(store: TreeStore) -> None:
    result = store.get_node(1)
    assert result.node.id == 1
    assert result.node.title == "Root Node"
    assert result.node.parent_id is None
    assert result.node.ordering == 0
    assert result.children == ()


def test_get_returns_children_in_ordering(populated_store: TreeStore) -> None:
    result = populated_store.get_node(1)
    assert [c.title for c in result.children] == ["A", "B", "C"]
    assert [c.ordering for c in result.children] == [0, 1, 2]


def test_get_returns_only_immediate_children(populated_store: TreeStore) -> None:
    assert child_titles(populated_store, 2) == ["A1", "A2"]


def test_get_missing_node_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NodeNotFoundError):
        store.get_node(999)


@pytest.mark.parametrize("node_id", [2**63, -(2**63) - 1, 10**30])
def test_ids_beyond_sqlite_integer_range_are_not_found(
    populated_store: TreeStore, node_id: int
) -> None:
    with pytest.raises(NodeNotFoundError):
        populated_store.get_node(node_id)
    with pytest.raises(NodeNotFoundError):
        populated_store.update_node(node_id, "x")
    with pytest.raises(NodeNotFoundError):
        populated_store.delete_node(node_id)
    with pytest.raises(NodeNotFoundError):
        populated_store.move_node(2, node_id)
    with pytest.raises(NodeNotFoundError):
        populated_store.reorder_node(node_id, 0)


def test_insert_under_out_of_range_parent_is_invalid_parent(store: TreeStore) -> None:
    with pytest.raises(InvalidParentError):
        store.insert_node(2**63, "x")
    assert _count_rows(store) == 1


# --- insert ---


def test_two_inserts_under_root_get_consecutive_orderings(store: TreeStore) -> None:
    first = store.insert_node(1, "first")
    second = store.insert_node(1, "second")
    assert first.ordering == 0
    assert second.ordering == 1
    assert first.parent_id == 1
    assert second.id > first.id


def test_insert_returns_persisted_node(store: TreeStore) -> None:
    node = store.insert_node(1, "child")
    assert store.get_node(node.id).node == node


def test_insert_under_missing_parent_creates_no_row(store: TreeStore) -> None:
    before = _count_rows(store)
    with pytest.raises(InvalidParentError):
        store.insert_node(42, "orphan")
    assert _count_rows(store) == before


@pytest.mark.parametrize("title", ["", "   "])
def test_insert_rejects_empty_title(store: TreeStore, title: str) -> None:
    with pytest.raises(InvalidTitleError):
        store.insert_node(1, title)
    assert _count_rows(store) == 1


def test_ids_are_never_reused(store: TreeStore) -> None:
    node = store.insert_node(1, "temp")
    store.delete_node(node.id)
    again = store.insert_node(1, "temp")
    assert again.id > node.id


# --- update ---


def test_update_changes_title_only(populated_store: TreeStore) -> None:
    before = populated_store.get_node(3).node
    updated = populated_store.update_node(3, "B renamed")
    assert updated.title == "B renamed"
    assert updated.parent_id == before.parent_id
    assert updated.ordering == before.ordering
    assert populated_store.get_node(3).node.title == "B renamed"


def test_update_missing_node_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NodeNotFoundError):
        store.update_node(99, "nope")


def test_update_rejects_empty_title(populated_store: TreeStore) -> None:
    with pytest.raises(InvalidTitleError):
        populated_store.update_node(2, "")
    assert populated_store.get_node(2).node.title == "A"


# --- delete ---


def test_delete_removes_node_and_all_descendants(populated_store: TreeStore) -> None:
    deleted = populated_store.delete_node(2)
    assert deleted == 4
    for node_id in (2, 4, 5, 6):
        with pytest.raises(NodeNotFoundError):
            populated_store.get_node(node_id)
    assert child_titles(populated_store, 1) == ["B", "C"]


def test_delete_renumbers_remaining_siblings(populated_store: TreeStore) -> None:
    populated_store.delete_node(2)
    children = populated_store.get_node(1).children
    assert [(c.title, c.ordering) for c in children] == [("B", 0), ("C", 1)]
    assert_dense_ordering(populated_store.conn)


def test_delete_leaf(populated_store: TreeStore) -> None:
    assert populated_store.delete_node(6) == 1
    assert child_titles(populated_store, 4) == []


def test_delete_root_is_forbidden(populated_store: TreeStore) -> None:
    with pytest.raises(ForbiddenError):
        populated_store.delete_node(1)
    assert populated_store.get_node(1).node.id == 1


def test_delete_root_is_forbidden_even_before_bootstrap() -> None:
    from node_tree.core.database.schema import connect_database, migrate_schema

    conn = connect_database(":memory:")
    migrate_schema(conn)
    with pytest.raises(ForbiddenError):
        TreeStore(conn).delete_node(1)


def test_delete_missing_node_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NodeNotFoundError):
        store.delete_node(77)


def test_delete_deep_chain_does_not_recurse(store: TreeStore) -> None:
    parent_id = 1
    for i in range(2000):
        parent_id = store.insert_node(parent_id, f"level {i}").id
    assert store.delete_node(2) == 2000
    assert _count_rows(store) == 1


def test_failed_delete_rolls_back(
    populated_store: TreeStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _boom(*_args: object, **_kwargs: object) -> int:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr("node_tree.core.write.mutations.compact_siblings", _boom)
    with pytest.raises(sqlite3.OperationalError):
        populated_store.delete_node(2)

    assert _count_rows(populated_store) == 7
    assert child_titles(populated_store, 2) == ["A1", "A2"]
    assert not populated_store.conn.in_transaction


def test_interrupted_delete_releases_transaction(
    populated_store: TreeStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _interrupt(*_args: object, **_kwargs: object) -> int:
        raise KeyboardInterrupt

    monkeypatch.setattr("node_tree.core.write.mutations.compact_siblings", _interrupt)
    with pytest.raises(KeyboardInterrupt):
        populated_store.delete_node(2)
    monkeypatch.undo()

    assert not populated_store.conn.in_transaction
    assert _count_rows(populated_store) == 7
    after = populated_store.insert_node(1, "after")
    assert after.ordering == 3


def test_failed_commit_rolls_back(populated_store: TreeStore) -> None:
    class _FailingCommit:
        def __init__(self, conn: sqlite3.Connection) -> None:
            self._conn = conn

        def __getattr__(self, name: str) -> object:
            return getattr(self._conn, name)

        def commit(self) -> None:
            raise sqlite3.OperationalError("disk I/O error")

    real_conn = populated_store.conn
    populated_store.conn = _FailingCommit(real_conn)  # type: ignore[assignment]
    with pytest.raises(sqlite3.OperationalError):
        populated_store.insert_node(1, "lost")
    populated_store.conn = real_conn

    assert not real_conn.in_transaction
    assert child_titles(populated_store, 1) == ["A", "B", "C"]


# --- move ---


def test_move_to_childless_node_gets_ordering_zero(store: TreeStore) -> None:
    a = store.insert_node(1, "A")
    b = store.insert_node(1, "B")
    moved = store.move_node(a.id, b.id)
    assert moved.parent_id == b.id
    assert moved.ordering == 0
    assert child_titles(store, b.id) == ["A"]


def test_move_appends_as_last_child(populated_store: TreeStore) -> None:
    moved = populated_store.move_node(3, 2)
    assert moved.ordering == 2
    assert child_titles(populated_store, 2) == ["A1", "A2", "B"]


def test_move_closes_gap_in_old_siblings(populated_store: TreeStore) -> None:
    populated_store.move_node(2, 3)
    children = populated_store.get_node(1).children
    assert [(c.title, c.ordering) for c in children] == [("B", 0), ("C", 1)]
    assert_dense_ordering(populated_store.conn)


def test_move_carries_subtree(populated_store: TreeStore) -> None:
    populated_store.move_node(4, 7)
    assert child_titles(populated_store, 7) == ["A1"]
    assert child_titles(populated_store, 4) == ["A1a"]
    assert child_titles(populated_store, 2) == ["A2"]


def test_move_to_current_parent_moves_to_end(populated_store: TreeStore) -> None:
    moved = populated_store.move_node(2, 1)
    assert moved.ordering == 2
    assert child_titles(populated_store, 1) == ["B", "C", "A"]
    assert_dense_ordering(populated_store.conn)


def test_move_to_itself_is_a_cycle(populated_store: TreeStore) -> None:
    with pytest.raises(CycleError):
        populated_store.move_node(2, 2)


@pytest.mark.parametrize("descendant_id", [4, 5, 6])
def test_move_under_descendant_is_a_cycle(populated_store: TreeStore, descendant_id: int) -> None:
    with pytest.raises(CycleError):
        populated_store.move_node(2, descendant_id)
    assert populated_store.get_node(2).node.parent_id == 1


def test_move_under_descendant_of_moved_child_is_a_cycle(store: TreeStore) -> None:
    store.insert_node(1, "A")
    b = store.insert_node(1, "B")
    b_child = store.insert_node(b.id, "B child")
    b_grandchild = store.insert_node(b_child.id, "B grandchild")
    with pytest.raises(CycleError):
        store.move_node(b.id, b_grandchild.id)


def test_move_root_is_forbidden(populated_store: TreeStore) -> None:
    with pytest.raises(ForbiddenError):
        populated_store.move_node(1, 2)


@pytest.mark.parametrize(("node_id", "new_parent_id"), [(99, 1), (2, 99)])
def test_move_with_missing_ids_raises_not_found(
    populated_store: TreeStore, node_id: int, new_parent_id: int
) -> None:
    with pytest.raises(NodeNotFoundError):
        populated_store.move_node(node_id, new_parent_id)


def test_failed_move_rolls_back(
    populated_store: TreeStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_compact = mutations.compact_siblings

    def _compact_then_fail(conn: sqlite3.Connection, *, parent_id: int, now_ms: int) -> int:
        real_compact(conn, parent_id=parent_id, now_ms=now_ms)
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(mutations, "compact_siblings", _compact_then_fail)
    with pytest.raises(sqlite3.OperationalError):
        populated_store.move_node(4, 7)

    assert populated_store.get_node(4).node.parent_id == 2
    assert child_titles(populated_store, 2) == ["A1", "A2"]
    assert child_titles(populated_store, 7) == []
    assert_dense_ordering(populated_store.conn)
    assert not populated_store.conn.in_transaction


# --- reorder ---


def test_reorder_swaps_two_siblings(store: TreeStore) -> None:
    a = store.insert_node(1, "A")
    b = store.insert_node(1, "B")
    store.reorder_node(a.id, 1)
    assert store.get_node(b.id).node.ordering == 0
    assert store.get_node(a.id).node.ordering == 1


def test_reorder_first_to_last(populated_store: TreeStore) -> None:
    populated_store.reorder_node(2, 2)
    assert child_titles(populated_store, 1) == ["B", "C", "A"]
    assert_dense_ordering(populated_store.conn)


def test_reorder_last_to_first(populated_store: TreeStore) -> None:
    populated_store.reorder_node(7, 0)
    assert child_titles(populated_store, 1) == ["C", "A", "B"]
    assert_dense_ordering(populated_store.conn)


def test_reorder_to_current_position_is_noop(populated_store: TreeStore) -> None:
    before = populated_store.get_node(1).children
    node = populated_store.reorder_node(3, 1)
    assert node == populated_store.get_node(3).node
    assert populated_store.get_node(1).children == before


@pytest.mark.parametrize("new_ordering", [-1, 3, 10])
def test_reorder_out_of_range_raises(populated_store: TreeStore, new_ordering: int) -> None:
    with pytest.raises(InvalidOrderingError):
        populated_store.reorder_node(2, new_ordering)
    assert child_titles(populated_store, 1) == ["A", "B", "C"]


def test_reorder_root_only_accepts_zero(store: TreeStore) -> None:
    assert store.reorder_node(1, 0).ordering == 0
    with pytest.raises(InvalidOrderingError):
        store.reorder_node(1, 1)


def test_reorder_missing_node_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NodeNotFoundError):
        store.reorder_node(5, 0)


def test_failed_reorder_rolls_back(
    populated_store: TreeStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_renumber = mutations.renumber_siblings

    def _renumber_then_fail(
        conn: sqlite3.Connection, *, parent_id: int, ordered_ids: list[int], now_ms: int
    ) -> int:
        real_renumber(conn, parent_id=parent_id, ordered_ids=ordered_ids, now_ms=now_ms)
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(mutations, "renumber_siblings", _renumber_then_fail)
    with pytest.raises(sqlite3.OperationalError):
        populated_store.reorder_node(7, 0)

    children = populated_store.get_node(1).children
    assert [(c.title, c.ordering) for c in children] == [("A", 0), ("B", 1), ("C", 2)]
    assert not populated_store.conn.in_transaction


# --- invariants ---


def test_density_holds_after_mixed_operations(populated_store: TreeStore) -> None:
    populated_store.reorder_node(5, 0)
    populated_store.move_node(3, 4)
    populated_store.insert_node(4, "A1b")
    populated_store.delete_node(6)
    populated_store.move_node(7, 2)
    populated_store.reorder_node(7, 0)
    assert_dense_ordering(populated_store.conn)
    assert child_titles(populated_store, 2) == ["C", "A2", "A1"]
    assert child_titles(populated_store, 4) == ["B", "A1b"]


def test_concurrent_inserts_keep_orderings_dense(tmp_path: Path) -> None:
    with open_store(tmp_path / "tree.db") as shared:
        def _worker(n: int) -> None:
            for i in range(10):
                shared.insert_node(1, f"worker {n} item {i}")

        threads = [threading.Thread(target=_worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(shared.get_node(1).children) == 40
        assert_dense_ordering(shared.conn)


def test_open_is_idempotent(tmp_path: Path) -> None:
    db_path = tmp_path / "tree.db"
    with open_store(db_path) as first:
        first.insert_node(1, "kept")
    with open_store(db_path) as second:
        assert child_titles(second, 1) == ["kept"]
        count = second.conn.execute(
            "SELECT COUNT(*) FROM tree_nodes WHERE parent_id IS NULL"
        ).fetchone()[0]
        assert count == 1
