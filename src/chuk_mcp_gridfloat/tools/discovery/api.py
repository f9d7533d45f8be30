"""
Discovery tools: status, capabilities, tile naming and geodesic helpers.

These tools require no network I/O.
"""

import logging

from ...constants import (
    NODATA_SENTINEL,
    OUTPUT_MODES,
    REMOTE_TILE_DIRECTORY,
    TILE_SIZE_DEGREES,
    ErrorMessages,
    ServerConfig,
    SuccessMessages,
)
from ...core import geodesy, tile_naming
from ...models.responses import (
    BearingResponse,
    CapabilitiesResponse,
    DestinationResponse,
    DistanceResponse,
    ErrorResponse,
    StatusResponse,
    TileNameResponse,
    format_response,
)

logger = logging.getLogger(__name__)

TOOL_NAMES = [
    "gridfloat_status",
    "gridfloat_capabilities",
    "gridfloat_tile_name",
    "gridfloat_distance",
    "gridfloat_destination",
    "gridfloat_bearing",
    "gridfloat_fetch_tile",
    "gridfloat_point_elevation",
    "gridfloat_point_elevations",
    "gridfloat_height_field",
]


def _check_point(lat: float, lon: float) -> None:
    if not -90.0 <= lat <= 90.0:
        raise ValueError(ErrorMessages.INVALID_LATITUDE.format(lat))
    if not -180.0 <= lon <= 180.0:
        raise ValueError(ErrorMessages.INVALID_LONGITUDE.format(lon))


def register_discovery_tools(mcp, manager):
    """Register discovery tools with the MCP server."""

    @mcp.tool()
    async def gridfloat_status(output_mode: str = "json") -> str:
        """Get server status: data directory, loaded tiles and memory mode.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Server status information
        """
        try:
            status = manager.status()
            response = StatusResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                **status,
                message=SuccessMessages.STATUS.format(
                    ServerConfig.VERSION, len(status["loaded_tiles"]), status["data_dir"]
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_status failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_capabilities(output_mode: str = "json") -> str:
        """Get full server capabilities: tools, tile source and conventions.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Complete server capabilities
        """
        try:
            response = CapabilitiesResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                tools=TOOL_NAMES,
                tool_count=len(TOOL_NAMES),
                remote_directory=REMOTE_TILE_DIRECTORY,
                tile_size_degrees=TILE_SIZE_DEGREES,
                nodata_sentinel=NODATA_SENTINEL,
                output_modes=OUTPUT_MODES,
                llm_guidance=(
                    "Tiles are USGS 1/3 arc-second GridFloat, one degree square, "
                    "covering the USA (western hemisphere longitudes). "
                    "Use gridfloat_tile_name to see which tile holds a point. "
                    "Use gridfloat_point_elevation for single points; tiles download "
                    "on first use (several hundred MB each). "
                    "Use gridfloat_height_field for a square grid of heights around a "
                    "site, re-referenced to the tangent plane at the site."
                ),
                message=f"{ServerConfig.NAME} v{ServerConfig.VERSION} capabilities",
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_capabilities failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_tile_name(lat: float, lon: float, output_mode: str = "json") -> str:
        """Get the tile code, base name, local filenames and remote URLs for a point.

        Args:
            lat: Latitude, 0 to 90 (northern hemisphere)
            lon: Longitude, -180 to 0 (western hemisphere)
            output_mode: "json" or "text"

        Returns:
            Tile identity and filenames
        """
        try:
            _check_point(lat, lon)
            tile_naming.check_in_grid(lat, lon)
            code = tile_naming.tile_code(lat, lon)
            base = tile_naming.base_filename(code)
            west, south, east, north = tile_naming.tile_bounds(code)

            response = TileNameResponse(
                lat=lat,
                lon=lon,
                code=code,
                base_name=base,
                bounds=[west, south, east, north],
                header_filename=tile_naming.local_header_filename(code, manager.data_dir),
                data_filename=tile_naming.local_data_filename(code, manager.data_dir),
                archive_filename=tile_naming.local_archive_filename(code, manager.data_dir),
                remote_urls=[
                    tile_naming.remote_tile_url(name)
                    for name in tile_naming.remote_tile_filenames(code)
                ],
                message=SuccessMessages.TILE_NAME.format(base, code, south, west, north, east),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_tile_name failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_distance(
        lat1: float,
        lon1: float,
        lat2: float,
        lon2: float,
        output_mode: str = "json",
    ) -> str:
        """Great-circle (haversine) distance between two points, in metres.

        Args:
            lat1: Latitude of the first point
            lon1: Longitude of the first point
            lat2: Latitude of the second point
            lon2: Longitude of the second point
            output_mode: "json" or "text"

        Returns:
            Distance in metres
        """
        try:
            _check_point(lat1, lon1)
            _check_point(lat2, lon2)
            d = geodesy.distance(lat1, lon1, lat2, lon2)

            response = DistanceResponse(
                lat1=lat1,
                lon1=lon1,
                lat2=lat2,
                lon2=lon2,
                distance_m=d,
                message=SuccessMessages.DISTANCE.format(d),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_distance failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_destination(
        lat: float,
        lon: float,
        bearing_deg: float,
        distance_m: float,
        output_mode: str = "json",
    ) -> str:
        """Point reached from an origin along a bearing for a distance.

        Args:
            lat: Latitude of the origin
            lon: Longitude of the origin
            bearing_deg: Initial bearing, degrees clockwise from north
            distance_m: Distance along the surface in metres
            output_mode: "json" or "text"

        Returns:
            Destination latitude and longitude
        """
        try:
            _check_point(lat, lon)
            if distance_m < 0:
                raise ValueError(ErrorMessages.INVALID_DISTANCE.format(distance_m))
            dest_lat, dest_lon = geodesy.destination(lat, lon, bearing_deg, distance_m)

            response = DestinationResponse(
                lat=lat,
                lon=lon,
                bearing_deg=bearing_deg,
                distance_m=distance_m,
                destination_lat=dest_lat,
                destination_lon=dest_lon,
                message=SuccessMessages.DESTINATION.format(dest_lat, dest_lon),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_destination failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)

    @mcp.tool()
    async def gridfloat_bearing(
        delta_x: float,
        delta_y: float,
        distance_per_cell_m: float | None = None,
        output_mode: str = "json",
    ) -> str:
        """Compass bearing of a grid offset (east, north), as used by height fields.

        Args:
            delta_x: Offset east in cells
            delta_y: Offset north in cells
            distance_per_cell_m: Optional cell size; when given, the
                along-surface distance of the offset is included
            output_mode: "json" or "text"

        Returns:
            Bearing in degrees [0, 360)
        """
        try:
            bearing = geodesy.bearing_from_offsets(delta_x, delta_y)
            d = None
            if distance_per_cell_m is not None:
                d = geodesy.offset_distance(delta_x, delta_y, distance_per_cell_m)

            response = BearingResponse(
                delta_x=delta_x,
                delta_y=delta_y,
                bearing_deg=bearing,
                distance_m=d,
                message=SuccessMessages.BEARING.format(bearing),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"gridfloat_bearing failed: {e}")
            return format_response(ErrorResponse.from_exception(e), output_mode)
