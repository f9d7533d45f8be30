#!/usr/bin/env python3
"""
Async GridFloat MCP Server using chuk-mcp-server

USGS GridFloat elevation tile retrieval, point elevation and tangent-plane
height fields. Tiles are downloaded on demand into a local data directory.

Configuration comes from environment variables (see constants.EnvVar).
"""

import logging
import os

from chuk_mcp_server import ChukMCPServer

from .constants import DEFAULT_DATA_DIR, DEFAULT_MEMORY_THRESHOLD_BYTES, EnvVar, ServerConfig
from .core.dem_manager import DEMManager
from .tools.analysis import register_analysis_tools
from .tools.discovery import register_discovery_tools
from .tools.download import register_download_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int | None) -> int | None:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring {name}={value!r}: not an integer")
        return default


def create_manager() -> DEMManager:
    """Build a DEMManager from environment variables."""
    return DEMManager(
        data_dir=os.environ.get(EnvVar.DATA_DIR, DEFAULT_DATA_DIR),
        small_memory=_env_flag(EnvVar.SMALL_MEMORY),
        memory_threshold_bytes=_env_int(EnvVar.MEMORY_THRESHOLD, DEFAULT_MEMORY_THRESHOLD_BYTES),
        max_workers=_env_int(EnvVar.MAX_WORKERS, None),
    )


# Create the MCP server instance
mcp = ChukMCPServer(ServerConfig.NAME)

# Create DEM manager instance
manager = create_manager()

# Register all tool modules
register_discovery_tools(mcp, manager)
register_download_tools(mcp, manager)
register_analysis_tools(mcp, manager)

# Run the server
if __name__ == "__main__":
    logger.info("Starting GridFloat MCP Server...")
    logger.info(f"Data directory: {manager.data_dir}")
    mcp.run(stdio=True)
