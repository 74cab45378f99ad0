"""MCP tools for fleet operations.

Tools are registered via @mcp.tool() decorators when modules are imported.
"""

# Import tool modules to trigger registration via decorators
from . import fleet

__all__ = [
    "fleet",
]
