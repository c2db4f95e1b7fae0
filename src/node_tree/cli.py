"""CLI for the node tree (browse, edit, HTTP and MCP servers)."""

import json
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from node_tree.config import HTTP_HOST, HTTP_PORT, ROOT_NODE_ID, resolve_database_path
from node_tree.errors import TreeError
from node_tree.logging_config import configure_logging
from node_tree.models.node import Node
from node_tree.store import TreeStore

app = typer.Typer(help="Node tree: browse and edit a single tree of titled nodes.")

DbOption = Annotated[
    Path | None,
    typer.Option("--db", "-d", help="Database file (default: $NODE_TREE_DB or data dir)"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    ctx.obj = {"verbose": verbose}
    configure_logging(verbose=verbose)


def _open_store(db: Path | None) -> TreeStore:
    db_path = resolve_database_path(db)
    logger.debug("Using database {}", db_path)
    return TreeStore.open(db_path)


def _run(db: Path | None, operation: Callable[[TreeStore], Any]) -> Any:
    """Run one store operation, turning tree errors into exit code 1."""
    store = _open_store(db)
    try:
        return operation(store)
    except TreeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    except sqlite3.Error:
        logger.exception("Storage failure")
        raise
    finally:
        store.close()


def _format_node(node: Node) -> str:
    return f"[{node.id}] {node.title}  (parent={node.parent_id}, ordering={node.ordering})"


def _echo_node(node: Node, output_json: bool) -> None:
    if output_json:
        typer.echo(json.dumps(node.to_dict(), indent=2))
    else:
        typer.echo(_format_node(node))


@app.command()
def init(db: DbOption = None) -> None:
    """Create the database and the root node if missing."""
    result = _run(db, lambda store: store.get_node(ROOT_NODE_ID))
    typer.echo(f"Tree ready: {_format_node(result.node)}")


@app.command()
def show(
    node_id: int = typer.Argument(ROOT_NODE_ID, help="Node ID to show (default: root)"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show a node and its immediate children."""
    result = _run(db, lambda store: store.get_node(node_id))
    if output_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    typer.echo(_format_node(result.node))
    for child in result.children:
        typer.echo(f"  {child.ordering}. [{child.id}] {child.title}")
    if not result.children:
        typer.echo("  (no children)")


@app.command()
def add(
    parent_id: int = typer.Argument(..., help="Parent node ID"),
    title: str = typer.Argument(..., help="Title of the new node"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Add a node as the last child of a parent."""
    node = _run(db, lambda store: store.insert_node(parent_id, title))
    _echo_node(node, output_json)


@app.command()
def rename(
    node_id: int = typer.Argument(..., help="Node ID to rename"),
    title: str = typer.Argument(..., help="New title"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Change the title of a node."""
    node = _run(db, lambda store: store.update_node(node_id, title))
    _echo_node(node, output_json)


@app.command()
def delete(
    node_id: int = typer.Argument(..., help="Node ID to delete"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Delete a node and all of its descendants."""
    deleted = _run(db, lambda store: store.delete_node(node_id))
    if output_json:
        typer.echo(json.dumps({"success": True, "deleted": deleted}))
    else:
        typer.echo(f"Deleted {deleted} node(s).")


@app.command()
def move(
    node_id: int = typer.Argument(..., help="Node ID to move"),
    new_parent_id: int = typer.Argument(..., help="New parent node ID"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Move a node under a new parent, as its last child."""
    node = _run(db, lambda store: store.move_node(node_id, new_parent_id))
    _echo_node(node, output_json)


@app.command()
def reorder(
    node_id: int = typer.Argument(..., help="Node ID to reorder"),
    new_ordering: int = typer.Argument(..., help="Zero-based position among siblings"),
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Change the position of a node among its siblings."""
    node = _run(db, lambda store: store.reorder_node(node_id, new_ordering))
    _echo_node(node, output_json)


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option(HTTP_HOST, "--host", help="Interface to bind"),
    port: int = typer.Option(HTTP_PORT, "--port", "-p", help="Port to listen on"),
    db: DbOption = None,
) -> None:
    """Start the HTTP server (API docs at /docs)."""
    import uvicorn

    from node_tree.http.app import create_app

    configure_logging(verbose=(ctx.obj or {}).get("verbose", False), server=True)
    store = _open_store(db)
    try:
        logger.info("Server is running on http://{}:{}", host, port)
        uvicorn.run(create_app(store), host=host, port=port)
    finally:
        store.close()


@app.command()
def mcp() -> None:
    """Start the MCP server (stdio transport). Uses $NODE_TREE_DB for the database."""
    from node_tree.mcp.server import run_mcp_server

    run_mcp_server()
