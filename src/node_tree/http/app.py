"""HTTP transport: REST routes over the tree store."""

import sqlite3
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from node_tree.errors import TreeError
from node_tree.store import TreeStore


class NodeOut(BaseModel):
    id: int
    title: str
    parent_id: int | None
    ordering: int
    created_at: int
    updated_at: int


class NodeWithChildrenOut(BaseModel):
    node: NodeOut
    children: list[NodeOut]


class InsertNodeIn(BaseModel):
    title: str = Field(..., description="Title of the new node.")
    parent_id: int = Field(..., description="ID of the parent node.")


class UpdateNodeIn(BaseModel):
    title: str = Field(..., description="New title of the node.")


class MoveNodeIn(BaseModel):
    new_parent_id: int = Field(..., description="ID of the new parent node.")


class ReorderNodeIn(BaseModel):
    new_ordering: int = Field(..., description="The new position among siblings.")


class DeleteOut(BaseModel):
    message: str
    deleted: int


class NodeMessageOut(BaseModel):
    message: str
    node: NodeOut


def create_app(store: TreeStore) -> FastAPI:
    """Build the FastAPI application bound to ``store``.

    Interactive API docs are served at ``/docs``.
    """
    app = FastAPI(
        title="Tree Structure API",
        version="1.0.0",
        description="API for managing a tree structure",
    )
    app.state.store = store

    @app.exception_handler(TreeError)
    async def _tree_error(_request: Request, exc: TreeError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(sqlite3.Error)
    async def _storage_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.opt(exception=exc).error("Storage failure on {} {}", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal storage error."},
        )

    @app.get("/nodes/{node_id}", response_model=NodeWithChildrenOut, tags=["Nodes"])
    def get_node(node_id: int) -> dict[str, Any]:
        """Retrieve a node and its immediate children, ordered by ``ordering``."""
        return store.get_node(node_id).to_dict()

    @app.post(
        "/nodes",
        response_model=NodeOut,
        status_code=status.HTTP_201_CREATED,
        tags=["Nodes"],
    )
    def insert_node(body: InsertNodeIn) -> dict[str, Any]:
        """Insert a new node as the last child of a parent node."""
        return store.insert_node(body.parent_id, body.title).to_dict()

    @app.put("/nodes/{node_id}", response_model=NodeOut, tags=["Nodes"])
    def update_node(node_id: int, body: UpdateNodeIn) -> dict[str, Any]:
        """Update the title of a node."""
        return store.update_node(node_id, body.title).to_dict()

    @app.delete("/nodes/{node_id}", response_model=DeleteOut, tags=["Nodes"])
    def delete_node(node_id: int) -> dict[str, Any]:
        """Delete a node and all its descendants. The root cannot be deleted."""
        deleted = store.delete_node(node_id)
        return {"message": "Node and its descendants have been deleted.", "deleted": deleted}

    @app.put("/nodes/{node_id}/move", response_model=NodeMessageOut, tags=["Nodes"])
    def move_node(node_id: int, body: MoveNodeIn) -> dict[str, Any]:
        """Move a node under a new parent. A node cannot move under its own descendant."""
        node = store.move_node(node_id, body.new_parent_id)
        return {"message": "Node has been moved.", "node": node.to_dict()}

    @app.put("/nodes/{node_id}/reorder", response_model=NodeMessageOut, tags=["Nodes"])
    def reorder_node(node_id: int, body: ReorderNodeIn) -> dict[str, Any]:
        """Change the position of a node among its siblings."""
        node = store.reorder_node(node_id, body.new_ordering)
        return {"message": "Node ordering has been updated.", "node": node.to_dict()}

    return app
