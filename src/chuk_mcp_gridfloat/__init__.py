"""
chuk-mcp-gridfloat: USGS GridFloat Elevation Tile Retrieval & Height-Field MCP Server

Downloads 1/3 arc-second USGS GridFloat tiles on demand, decodes them
resident or disk-backed, interpolates elevations, and computes
tangent-plane height fields around a reference point.
"""
