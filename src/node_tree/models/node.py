"""Domain models for the node tree."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Node:
    """A single node in the tree."""

    id: int
    title: str
    parent_id: int | None
    ordering: int
    created_at: int
    updated_at: int

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NodeWithChildren:
    """A node with its immediate children, ordered by ``ordering``."""

    node: Node
    children: tuple[Node, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.node.to_dict(),
            "children": [c.to_dict() for c in self.children],
        }
