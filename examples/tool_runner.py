"""
Shared helper for running chuk-mcp-gridfloat MCP tools directly from Python.

Provides a ToolRunner class that registers all MCP tools against a
DEMManager, without requiring a full MCP transport layer. Demo scripts
use this to call tools as plain async functions.

Usage:
    from tool_runner import ToolRunner

    async def main():
        runner = ToolRunner()
        result = await runner.run("gridfloat_tile_name", lat=46.85, lon=-121.76)
        print(result)
"""

from __future__ import annotations

import json
import os
from typing import Any

from chuk_mcp_gridfloat.constants import DEFAULT_DATA_DIR, EnvVar
from chuk_mcp_gridfloat.core.dem_manager import DEMManager
from chuk_mcp_gridfloat.tools.analysis import register_analysis_tools
from chuk_mcp_gridfloat.tools.discovery import register_discovery_tools
from chuk_mcp_gridfloat.tools.download import register_download_tools


class _MiniMCP:
    """Minimal MCP server that captures tools registered via @mcp.tool."""

    def __init__(self) -> None:
        self._tools: dict[str, Any] = {}

    def tool(self) -> Any:
        """Decorator factory matching @mcp.tool() usage."""

        def decorator(fn: Any) -> Any:
            self._tools[fn.__name__] = fn
            return fn

        return decorator

    def get_tool(self, name: str) -> Any:
        return self._tools[name]


class ToolRunner:
    """
    Run chuk-mcp-gridfloat MCP tools directly from Python.

    All 10 tools are registered and callable via run(tool_name, **kwargs).
    Returns parsed JSON by default. Use run_text() for human-readable
    output. Tiles go to $GRIDFLOAT_DATA_DIR, or the default cache directory.
    """

    def __init__(self, data_dir: str | None = None) -> None:
        self._mcp = _MiniMCP()
        self.manager = DEMManager(
            data_dir=data_dir or os.environ.get(EnvVar.DATA_DIR, DEFAULT_DATA_DIR)
        )
        register_discovery_tools(self._mcp, self.manager)
        register_download_tools(self._mcp, self.manager)
        register_analysis_tools(self._mcp, self.manager)

    @property
    def tool_names(self) -> list[str]:
        return list(self._mcp._tools.keys())

    async def run(self, tool_name: str, **kwargs: Any) -> dict[str, Any]:
        """Call a tool by name and return parsed JSON."""
        fn = self._mcp.get_tool(tool_name)
        raw = await fn(**kwargs)
        return json.loads(raw)

    async def run_text(self, tool_name: str, **kwargs: Any) -> str:
        """Call a tool by name with output_mode='text' and return plaintext."""
        fn = self._mcp.get_tool(tool_name)
        return await fn(output_mode="text", **kwargs)
