"""Logging setup shared by the CLI, the HTTP server and the MCP server.

Everything goes to stderr: the CLI prints results (and ``--json``) on
stdout, and the MCP stdio transport owns stdout entirely.
"""

import os
import sys
from typing import Any

from loguru import logger

from node_tree.config import LOG_LEVEL_ENV_VAR

CLI_FORMAT = "{level.icon} {message}"
SERVER_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def resolve_log_level(*, verbose: bool = False) -> str:
    """--verbose forces DEBUG, otherwise $NODE_TREE_LOG_LEVEL or INFO."""
    if verbose:
        return "DEBUG"
    return os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()


def configure_logging(*, verbose: bool = False, server: bool = False, sink: Any = None) -> int:
    """Replace loguru's handlers with a single sink.

    Args:
        verbose: Log mutations and SQL-level detail at DEBUG.
        server: Use the timestamped format for long-running servers.
        sink: Where to write; defaults to stderr.

    Returns:
        The loguru handler id of the new sink.
    """
    logger.remove()
    return logger.add(
        sys.stderr if sink is None else sink,
        level=resolve_log_level(verbose=verbose),
        format=SERVER_FORMAT if server else CLI_FORMAT,
        backtrace=False,
        diagnose=False,
    )
