"""Persisted tree of titled nodes with invariant-preserving edits."""

from node_tree.errors import (
    CycleError,
    ForbiddenError,
    InvalidOrderingError,
    InvalidParentError,
    InvalidTitleError,
    NodeNotFoundError,
    TreeError,
)
from node_tree.models.node import Node, NodeWithChildren
from node_tree.store import TreeStore, open_store

__all__ = [
    "CycleError",
    "ForbiddenError",
    "InvalidOrderingError",
    "InvalidParentError",
    "InvalidTitleError",
    "Node",
    "NodeNotFoundError",
    "NodeWithChildren",
    "TreeError",
    "TreeStore",
    "open_store",
]
