"""MCP server exposing tree navigation and editing tools."""

import sqlite3
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from node_tree.config import resolve_database_path
from node_tree.errors import TreeError
from node_tree.store import TreeStore

T = TypeVar("T")


def _call(operation: Callable[[], T]) -> T | dict[str, Any]:
    try:
        return operation()
    except TreeError as e:
        return {"error": str(e), "kind": e.kind}
    except sqlite3.Error:
        logger.exception("Storage failure in MCP tool call")
        raise


# --- Core functions (testable without MCP context) ---


def tree_get_node(store: TreeStore, *, node_id: int) -> dict[str, Any]:
    """Get a node with its immediate children.

    Args:
        node_id: Node ID to read.
    """
    result = _call(lambda: store.get_node(node_id))
    if isinstance(result, dict):
        return result
    output = result.to_dict()
    output["child_count"] = len(result.children)
    return output


def tree_insert_node(store: TreeStore, *, parent_id: int, title: str) -> dict[str, Any]:
    """Append a new node as the last child of a parent.

    Args:
        parent_id: Parent node ID.
        title: Title for the new node.
    """
    result = _call(lambda: store.insert_node(parent_id, title))
    return result if isinstance(result, dict) else {"success": True, "node": result.to_dict()}


def tree_update_node(store: TreeStore, *, node_id: int, title: str) -> dict[str, Any]:
    """Change a node's title.

    Args:
        node_id: Node ID to edit.
        title: New title.
    """
    result = _call(lambda: store.update_node(node_id, title))
    return result if isinstance(result, dict) else {"success": True, "node": result.to_dict()}


def tree_delete_node(store: TreeStore, *, node_id: int) -> dict[str, Any]:
    """Delete a node and all of its descendants.

    Args:
        node_id: Node ID to delete. The root cannot be deleted.
    """
    result = _call(lambda: store.delete_node(node_id))
    return result if isinstance(result, dict) else {"success": True, "deleted": result}


def tree_move_node(store: TreeStore, *, node_id: int, new_parent_id: int) -> dict[str, Any]:
    """Move a node (with its subtree) to the end of a new parent's children.

    Args:
        node_id: Node ID to move.
        new_parent_id: Destination parent ID.
    """
    result = _call(lambda: store.move_node(node_id, new_parent_id))
    return result if isinstance(result, dict) else {"success": True, "node": result.to_dict()}


def tree_reorder_node(store: TreeStore, *, node_id: int, new_ordering: int) -> dict[str, Any]:
    """Move a node to a new zero-based position among its siblings.

    Args:
        node_id: Node ID to reorder.
        new_ordering: Target position.
    """
    result = _call(lambda: store.reorder_node(node_id, new_ordering))
    return result if isinstance(result, dict) else {"success": True, "node": result.to_dict()}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: TreeStore


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the tree store on startup, close on shutdown."""
    db_path = resolve_database_path()
    store = TreeStore.open(db_path)
    logger.info("Serving tree from {}", db_path)
    try:
        yield ServerContext(store=store)
    finally:
        store.close()


mcp_server = FastMCP(
    "node-tree",
    instructions="""\
A single tree of titled nodes. Every node except the root (id 1) has one
parent and a zero-based position among its siblings.

Start with tree_get_node_tool(node_id=1) and walk down through children.
Only immediate children are returned; call tree_get_node_tool again on a
child to go deeper.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def tree_get_node_tool(ctx: Context, node_id: int) -> dict[str, Any]:
    """Get a node and its immediate children, ordered by position.

    Args:
        node_id: Node ID to read (the root is 1).
    """
    return tree_get_node(_ctx(ctx).store, node_id=node_id)


@mcp_server.tool()
async def tree_insert_node_tool(ctx: Context, parent_id: int, title: str) -> dict[str, Any]:
    """Add a new node as the last child of a parent.

    Args:
        parent_id: Parent node ID.
        title: Title for the new node (must not be empty).
    """
    return tree_insert_node(_ctx(ctx).store, parent_id=parent_id, title=title)


@mcp_server.tool()
async def tree_update_node_tool(ctx: Context, node_id: int, title: str) -> dict[str, Any]:
    """Change the title of a node.

    Args:
        node_id: Node ID to edit.
        title: New title (must not be empty).
    """
    return tree_update_node(_ctx(ctx).store, node_id=node_id, title=title)


@mcp_server.tool()
async def tree_delete_node_tool(ctx: Context, node_id: int) -> dict[str, Any]:
    """Delete a node together with all of its descendants.

    Args:
        node_id: Node ID to delete. The root cannot be deleted.
    """
    return tree_delete_node(_ctx(ctx).store, node_id=node_id)


@mcp_server.tool()
async def tree_move_node_tool(ctx: Context, node_id: int, new_parent_id: int) -> dict[str, Any]:
    """Move a node under a new parent, as its last child.

    Fails if the new parent is the node itself or one of its descendants.

    Args:
        node_id: Node ID to move.
        new_parent_id: Destination parent ID.
    """
    return tree_move_node(_ctx(ctx).store, node_id=node_id, new_parent_id=new_parent_id)


@mcp_server.tool()
async def tree_reorder_node_tool(ctx: Context, node_id: int, new_ordering: int) -> dict[str, Any]:
    """Move a node to a new position among its siblings.

    Args:
        node_id: Node ID to reorder.
        new_ordering: Zero-based target position.
    """
    return tree_reorder_node(_ctx(ctx).store, node_id=node_id, new_ordering=new_ordering)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from node_tree.logging_config import configure_logging

    configure_logging(server=True)
    mcp_server.run(transport="stdio")
