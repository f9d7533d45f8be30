"""
Download tools: tile fetch, point elevation, multi-point elevation.

These tools download missing tiles into the data directory on demand.
"""

import logging

from ...constants import SuccessMessages
from ...models.responses import (
    ErrorResponse,
    MultiPointResponse,
    PointElevationResponse,
    PointInfo,
    TileFetchResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_download_tools(mcp, manager):
    """Register download tools with the MCP server."""

    @mcp.tool()
    async def gridfloat_fetch_tile(
        lat: float,
        lon: float,
        load: bool = True,
        output_mode: str = "json",
    ) -> str:
        """Make sure the tile holding a point is on disk, downloading it if needed.

        With load=True the tile is also decoded and its header metadata and
        count of NODATA cells are returned.

        Args:
            lat: Latitude, 0 to 90 (northern hemisphere)
            lon: Longitude, -180 to 0 (western hemisphere)
            load: Decode the tile and report its header
            output_mode: "json" or "text"

        Returns:
            Tile file paths and, when loaded, header metadata
        """
        try:
            fetched = await manager.fetch_tile(lat, lon)

            if not load:
                response = TileFetchResponse(
                    code=fetched.code,
                    base_name=fetched.base_name,
                    header_path=fetched.header_path,
                    data_path=fetched.data_path,
                    downloaded=fetched.downloaded,
                    source_url=fetched.source_url,
                    message=f"Tile {fetched.base_name} is present",
                )
                return format_response(response, output_mode)

            info = await manager.fetch_tile_info(lat, lon)
            response = TileFetchResponse(
                code=info.code,
                base_name=info.base_name,
                header_path=info.header_path,
                data_path=info.data_path,
                downloaded=fetched.downloaded,
                source_url=fetched.source_url,
                ncols=info.ncols,
                nrows=info.nrows,
                cellsize=info.cellsize,
                bounds=info.bounds,
                nodata=info.nodata,
                invalid_count=info.invalid_count,
                small_memory=info.small_memory,
                message=SuccessMessages.FETCH_COMPLETE.format(
                    info.base_name, info.nrows, info.ncols, info.invalid_count
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_fetch_tile failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_point_elevation(
        lat: float,
        lon: float,
        output_mode: str = "json",
    ) -> str:
        """Get the interpolated elevation at a single point.

        A point within a metre of a cell centre returns that cell's value;
        otherwise the four nearest cells are combined by inverse-distance
        weighting. Points with no valid data return a null elevation.

        Args:
            lat: Latitude, 0 to 90 (northern hemisphere)
            lon: Longitude, -180 to 0 (western hemisphere)
            output_mode: "json" or "text"

        Returns:
            Elevation in metres with the tile and quadrant used
        """
        try:
            result = await manager.fetch_point(lat, lon)

            if result.elevation_m is None:
                message = f"No data at ({lat:.6f}, {lon:.6f}) in tile {result.tile}"
            else:
                message = SuccessMessages.POINT_ELEVATION.format(result.elevation_m, result.tile)

            response = PointElevationResponse(
                lat=result.lat,
                lon=result.lon,
                elevation_m=result.elevation_m,
                tile=result.tile,
                quadrant=result.quadrant,
                message=message,
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_point_elevation failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_point_elevations(
        points: list[list[float]],
        output_mode: str = "json",
    ) -> str:
        """Get interpolated elevations at multiple points in a single request.

        Args:
            points: List of [lat, lon] coordinate pairs
            output_mode: "json" or "text"

        Returns:
            Elevation for each point with range statistics
        """
        try:
            result = await manager.fetch_points(points)

            point_infos = [
                PointInfo(lat=p[0], lon=p[1], elevation_m=elev, tile=tile)
                for p, elev, tile in zip(points, result.elevations, result.tiles)
            ]

            response = MultiPointResponse(
                point_count=len(points),
                points=point_infos,
                elevation_range=result.elevation_range,
                nodata_points=result.nodata_points,
                message=SuccessMessages.POINTS_ELEVATION.format(
                    len(points), result.nodata_points
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_point_elevations failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)
