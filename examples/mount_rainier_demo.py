#!/usr/bin/env python3
"""
Mount Rainier Height Field -- chuk-mcp-gridfloat Demo

Demonstrates the GridFloat pipeline for a site on Mount Rainier:
    gridfloat_tile_name -> gridfloat_fetch_tile -> gridfloat_point_elevation ->
    gridfloat_height_field

The first run downloads the n47w122 tile (several hundred MB) into the
tile directory; later runs reuse it.

Usage:
    python examples/mount_rainier_demo.py

Requirements:
    pip install chuk-mcp-gridfloat
    (Requires network access to the USGS staged products bucket)
"""

import asyncio
import sys

from tool_runner import ToolRunner

# -- Configuration -----------------------------------------------------------

SITE = (46.8529, -121.7604)  # Mount Rainier summit, WA
RADIUS_M = 5_000.0
N_CELLS = 20
ANTENNA_HEIGHT_M = 10.0

SHADES = " .:-=+*#%@"


def _render(heights: list[list[float]], sentinel: float) -> str:
    """Coarse character rendering of a height field, north at the top."""
    valid = [h for row in heights for h in row if h != sentinel]
    low, high = min(valid), max(valid)
    span = (high - low) or 1.0
    lines = []
    for row in heights:
        chars = []
        for h in row:
            if h == sentinel:
                chars.append("?")
            else:
                chars.append(SHADES[int((h - low) / span * (len(SHADES) - 1))])
        lines.append("".join(chars))
    return "\n".join(lines)


# -- Main pipeline -----------------------------------------------------------


async def main() -> None:
    runner = ToolRunner()
    lat, lon = SITE

    print("=" * 60)
    print("Mount Rainier -- Height Field")
    print("=" * 60)

    # Step 1: Which tile holds the site?
    print("\nStep 1: Naming the tile...")
    print(await runner.run_text("gridfloat_tile_name", lat=lat, lon=lon))

    # Step 2: Fetch and decode it
    print("\nStep 2: Fetching the tile...")
    fetch = await runner.run("gridfloat_fetch_tile", lat=lat, lon=lon)
    if "error" in fetch:
        print(f"  ERROR: {fetch['error']}")
        sys.exit(1)
    print(f"  {fetch['message']}")
    print(f"  Downloaded now: {fetch['downloaded']}")

    # Step 3: Elevation at the summit
    print("\nStep 3: Summit elevation...")
    point = await runner.run("gridfloat_point_elevation", lat=lat, lon=lon)
    print(f"  {point['message']} [{point['quadrant']}]")

    # Step 4: Height field
    print(f"\nStep 4: Height field, {RADIUS_M:.0f}m radius, {N_CELLS} cells to the edge...")
    field = await runner.run(
        "gridfloat_height_field",
        lat=lat,
        lon=lon,
        radius_m=RADIUS_M,
        n_cells=N_CELLS,
        antenna_height_m=ANTENNA_HEIGHT_M,
    )
    if "error" in field:
        print(f"  ERROR: {field['error']}")
        sys.exit(1)
    print(f"  {field['message']}")
    print(f"  Tiles: {', '.join(field['tiles'])}")
    print(f"  Range: {field['value_range'][0]:.0f}m to {field['value_range'][1]:.0f}m")
    print(f"  MHAT: {field['mean_height_above_terrain_m']:.1f}m")
    print()
    print(_render(field["heights"], field["nodata_sentinel"]))


if __name__ == "__main__":
    asyncio.run(main())
