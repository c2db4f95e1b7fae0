"""Error taxonomy for tree operations.

Every error carries a short ``kind`` used by the MCP transport and the HTTP
status code the REST transport answers with. Storage failures are not part
of this hierarchy; they surface as ``sqlite3.Error``.
"""


class TreeError(Exception):
    """Base exception for tree store errors."""

    kind: str = "tree_error"
    status_code: int = 400


class NodeNotFoundError(TreeError):
    """Raised when a referenced node id does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, node_id: int) -> None:
        super().__init__(f"Node {node_id} not found.")
        self.node_id = node_id


class InvalidParentError(TreeError):
    """Raised when a node is inserted under a parent that does not exist."""

    kind = "invalid_parent"

    def __init__(self, parent_id: int) -> None:
        super().__init__(f"Parent node {parent_id} does not exist.")
        self.parent_id = parent_id


class ForbiddenError(TreeError):
    """Raised on an attempt to delete or move the root node."""

    kind = "forbidden"


class CycleError(TreeError):
    """Raised when a move would place a node under itself or a descendant."""

    kind = "cycle"

    def __init__(self, node_id: int, new_parent_id: int) -> None:
        super().__init__(f"Cannot move node {node_id} under its own descendant {new_parent_id}.")
        self.node_id = node_id
        self.new_parent_id = new_parent_id


class InvalidOrderingError(TreeError):
    """Raised when a reorder target is outside ``[0, sibling_count)``."""

    kind = "invalid_ordering"

    def __init__(self, new_ordering: int, sibling_count: int) -> None:
        super().__init__(
            f"Invalid new ordering {new_ordering}: expected 0..{sibling_count - 1}."
        )
        self.new_ordering = new_ordering
        self.sibling_count = sibling_count


class InvalidTitleError(TreeError):
    """Raised when a node title is empty."""

    kind = "invalid_title"

    def __init__(self) -> None:
        super().__init__("Node title must not be empty.")
