"""MCP tool servers for reading embedded module tables."""

from .table_reader import mcp as table_reader_mcp

__all__ = [
    "table_reader_mcp",
]
