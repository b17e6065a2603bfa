"""
Module Table Reader MCP Server
──────────────────────────────
Reads the module version table embedded in an ELF / PE / Mach-O
executable and surfaces it as structured JSON:
  • Main package path
  • Main module path and version
  • Dependency modules, keyed by path

A second tool summarises the container itself (format, byte order,
entry point, read-only range) to help explain a "no module info" result.
"""

from __future__ import annotations

import logging
from typing import Any

from fastmcp import FastMCP

from modinfo import ModInfoError, Table, find_module_info, open_exe

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# MCP server instance
# ---------------------------------------------------------------------------

mcp = FastMCP("module-table-reader")

# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


def read_module_table_impl(file_path: str) -> dict[str, Any]:
    """Read the module table of *file_path* (plain callable)."""
    try:
        with open_exe(file_path) as exe:
            table = Table(find_module_info(exe))
            fmt = exe.format
    except ModInfoError as exc:
        logger.debug("no module table for %s: %s", file_path, exc)
        return _error(file_path, exc)

    result = table.to_dict()
    result["path"] = file_path
    result["format"] = fmt.value
    return result


def describe_executable_impl(file_path: str) -> dict[str, Any]:
    """Summarise the container format of *file_path* (plain callable)."""
    try:
        with open_exe(file_path) as exe:
            return exe.info().to_dict()
    except ModInfoError as exc:
        return _error(file_path, exc)


@mcp.tool()
def read_module_table(file_path: str) -> dict[str, Any]:
    """Read the module version table embedded in an executable.

    Returns JSON with the main package path, the main module
    (path + version, "(devel)" when unversioned) and every dependency
    module keyed by path. On failure returns the error kind and message.
    """
    return read_module_table_impl(file_path)


@mcp.tool()
def describe_executable(file_path: str) -> dict[str, Any]:
    """Describe an executable's format, byte order, entry point and
    the read-only address range searched for the module table.
    """
    return describe_executable_impl(file_path)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _error(file_path: str, exc: ModInfoError) -> dict[str, Any]:
    return {
        "path": file_path,
        "error": str(exc),
        "error_kind": type(exc).__name__,
    }


# ---------------------------------------------------------------------------
# Standalone entry-point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run()
