"""
Analysis tools: tangent-plane height field around a site.
"""

import logging

from ...constants import (
    DEFAULT_ANTENNA_HEIGHT_M,
    DEFAULT_N_CELLS,
    NODATA_SENTINEL,
    SuccessMessages,
)
from ...models.responses import (
    ErrorResponse,
    HeightFieldResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_analysis_tools(mcp, manager):
    """Register analysis tools with the MCP server."""

    @mcp.tool()
    async def gridfloat_height_field(
        lat: float,
        lon: float,
        radius_m: float,
        n_cells: int = DEFAULT_N_CELLS,
        antenna_height_m: float = DEFAULT_ANTENNA_HEIGHT_M,
        los: bool = False,
        include_heights: bool = True,
        output_mode: str = "json",
    ) -> str:
        """Compute a square grid of terrain heights centred on a site.

        The grid has 2 * n_cells + 1 cells per side and spans radius_m from
        the centre to each edge. Each height is measured parallel to the
        vertical at the site (it falls off with distance as the Earth
        curves away). The centre cell includes the antenna height. Cells
        without data hold -9999.

        Args:
            lat: Latitude of the site
            lon: Longitude of the site, negative for the western hemisphere
            radius_m: Distance from the centre to the edge of the grid, metres
            n_cells: Cells from the centre to the edge (1-1000)
            antenna_height_m: Height of the antenna above the terrain at the site
            los: Also fetch tiles under every line of sight to the centre
            include_heights: Include the full grid of heights in the response
            output_mode: "json" or "text"

        Returns:
            Height-field summary (range, MHAT, tiles) and the heights
        """
        try:
            result = await manager.compute_height_field(
                lat=lat,
                lon=lon,
                radius_m=radius_m,
                n_cells=n_cells,
                antenna_height_m=antenna_height_m,
                los=los,
            )

            response = HeightFieldResponse(
                lat=lat,
                lon=lon,
                radius_m=result.radius_m,
                n_cells=result.n_cells,
                size=2 * result.n_cells + 1,
                distance_per_cell_m=result.distance_per_cell_m,
                antenna_height_m=result.antenna_height_m,
                raw_qth_height_m=result.raw_qth_height_m,
                mean_terrain_height_m=result.mean_terrain_height_m,
                mean_height_above_terrain_m=result.mean_height_above_terrain_m,
                value_range=result.value_range,
                nodata_cells=result.nodata_cells,
                nodata_sentinel=NODATA_SENTINEL,
                tiles=result.tiles,
                heights=result.heights if include_heights else None,
                message=SuccessMessages.HEIGHT_FIELD_COMPLETE.format(
                    2 * result.n_cells + 1, result.distance_per_cell_m, result.nodata_cells
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_height_field failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)
