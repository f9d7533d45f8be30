"""
Response models for chuk-mcp-gridfloat tools.

All tool responses are Pydantic models for type safety and consistent API.
"""

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import GridFloatError


def format_response(model: BaseModel, output_mode: str = "json") -> str:
    """Format a response model as JSON or human-readable text.

    Args:
        model: Pydantic response model instance
        output_mode: "json" (default) or "text"

    Returns:
        Formatted string
    """
    if output_mode == "text" and hasattr(model, "to_text"):
        return str(model.to_text())
    return str(model.model_dump_json())


def _fmt_elevation(value: float | None) -> str:
    return "no data" if value is None else f"{value:.1f}m"


class ErrorResponse(BaseModel):
    """Error response model for tool failures."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Error message describing what went wrong")
    kind: str | None = Field(None, description="Engine error kind, when known")

    @classmethod
    def from_exception(cls, e: Exception) -> "ErrorResponse":
        kind = e.kind.value if isinstance(e, GridFloatError) else None
        return cls(error=str(e), kind=kind)

    def to_text(self) -> str:
        if self.kind:
            return f"Error ({self.kind}): {self.error}"
        return f"Error: {self.error}"


# ---------------------------------------------------------------------------
# Discovery responses
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    """Response model for server status queries."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(default="chuk-mcp-gridfloat", description="Server name")
    version: str = Field(default="0.1.0", description="Server version")
    data_dir: str = Field(..., description="Local tile directory")
    loaded_tiles: list[str] = Field(..., description="Base names of tiles in the registry")
    small_memory_forced: bool = Field(..., description="Whether disk-backed tiles are forced")
    memory_threshold_bytes: int = Field(
        ..., description="Available memory below which tiles are loaded disk-backed", ge=0
    )
    available_memory_bytes: int = Field(..., description="Currently available memory", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        tiles = ", ".join(self.loaded_tiles) if self.loaded_tiles else "none"
        mode = "forced disk-backed" if self.small_memory_forced else "automatic"
        lines = [
            f"{self.server} v{self.version}",
            f"Data directory: {self.data_dir}",
            f"Loaded tiles: {tiles}",
            f"Memory mode: {mode} (threshold {self.memory_threshold_bytes / 1e6:.0f} MB)",
            f"Available memory: {self.available_memory_bytes / 1e6:.0f} MB",
        ]
        return "\n".join(lines)


class CapabilitiesResponse(BaseModel):
    """Response model for server capabilities listing."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    tools: list[str] = Field(..., description="Available tool names")
    tool_count: int = Field(..., description="Number of available tools", ge=0)
    remote_directory: str = Field(..., description="Upstream tile directory URL")
    tile_size_degrees: float = Field(..., description="Nominal tile size in degrees")
    nodata_sentinel: float = Field(..., description="Value written for cells without data")
    output_modes: list[str] = Field(..., description="Supported output modes")
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance for the server")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.server} v{self.version}",
            f"Tools ({self.tool_count}): {', '.join(self.tools)}",
            f"Tiles: {self.tile_size_degrees:g} degree from {self.remote_directory}",
            f"No-data sentinel: {self.nodata_sentinel:g}",
            f"Output modes: {', '.join(self.output_modes)}",
            f"Guidance: {self.llm_guidance}",
        ]
        return "\n".join(lines)


class TileNameResponse(BaseModel):
    """Response model for tile identity and naming."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude of the query point")
    lon: float = Field(..., description="Longitude of the query point")
    code: int = Field(..., description="Integer tile code")
    base_name: str = Field(..., description="Tile base name (nLLwLLL)")
    bounds: list[float] = Field(..., description="Nominal tile footprint [west, south, east, north]")
    header_filename: str = Field(..., description="Local header file path")
    data_filename: str = Field(..., description="Local data file path")
    archive_filename: str = Field(..., description="Local archive path")
    remote_urls: list[str] = Field(..., description="Upstream archive URLs, in the order tried")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            self.message,
            f"Code: {self.code}",
            f"Header: {self.header_filename}",
            f"Data: {self.data_filename}",
            "Remote:",
        ]
        lines.extend(f"  {url}" for url in self.remote_urls)
        return "\n".join(lines)


class DistanceResponse(BaseModel):
    """Response model for great-circle distance."""

    model_config = ConfigDict(extra="forbid")

    lat1: float = Field(..., description="Latitude of the first point")
    lon1: float = Field(..., description="Longitude of the first point")
    lat2: float = Field(..., description="Latitude of the second point")
    lon2: float = Field(..., description="Longitude of the second point")
    distance_m: float = Field(..., description="Distance in metres", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return (
            f"({self.lat1:.6f}, {self.lon1:.6f}) to ({self.lat2:.6f}, {self.lon2:.6f}): "
            f"{self.distance_m:.1f}m"
        )


class DestinationResponse(BaseModel):
    """Response model for a destination point from bearing and distance."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude of the origin")
    lon: float = Field(..., description="Longitude of the origin")
    bearing_deg: float = Field(..., description="Initial bearing, degrees clockwise from north")
    distance_m: float = Field(..., description="Distance travelled in metres", ge=0)
    destination_lat: float = Field(..., description="Latitude of the destination")
    destination_lon: float = Field(..., description="Longitude of the destination")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return (
            f"From ({self.lat:.6f}, {self.lon:.6f}), {self.distance_m:.1f}m "
            f"at {self.bearing_deg:.2f} degrees: "
            f"({self.destination_lat:.6f}, {self.destination_lon:.6f})"
        )


class BearingResponse(BaseModel):
    """Response model for the bearing of a grid offset."""

    model_config = ConfigDict(extra="forbid")

    delta_x: float = Field(..., description="Offset east (cells)")
    delta_y: float = Field(..., description="Offset north (cells)")
    bearing_deg: float = Field(..., description="Compass bearing in [0, 360)", ge=0, le=360)
    distance_m: float | None = Field(
        None, description="Along-surface distance, when a cell size was given"
    )
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        text = f"Offset ({self.delta_x:g}, {self.delta_y:g}): {self.bearing_deg:.2f} degrees"
        if self.distance_m is not None:
            text += f", {self.distance_m:.1f}m"
        return text


# ---------------------------------------------------------------------------
# Download responses
# ---------------------------------------------------------------------------


class TileFetchResponse(BaseModel):
    """Response model for tile fetch and load."""

    model_config = ConfigDict(extra="forbid")

    code: int = Field(..., description="Integer tile code")
    base_name: str = Field(..., description="Tile base name (nLLwLLL)")
    header_path: str = Field(..., description="Local header file path")
    data_path: str = Field(..., description="Local data file path")
    downloaded: bool | None = Field(
        None, description="Whether this call downloaded the tile (None when only loaded)"
    )
    source_url: str | None = Field(None, description="URL the archive came from")
    ncols: int | None = Field(None, description="Number of columns", ge=1)
    nrows: int | None = Field(None, description="Number of rows", ge=1)
    cellsize: float | None = Field(None, description="Cell size in degrees")
    bounds: list[float] | None = Field(
        None, description="Tile edges [west, south, east, north] from the header"
    )
    nodata: float | None = Field(None, description="NODATA sentinel in force")
    invalid_count: int | None = Field(None, description="Number of NODATA cells", ge=0)
    small_memory: bool | None = Field(None, description="Whether the tile is disk-backed")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            self.message,
            f"Header: {self.header_path}",
            f"Data: {self.data_path}",
        ]
        if self.source_url:
            lines.append(f"Source: {self.source_url}")
        if self.bounds:
            west, south, east, north = self.bounds
            lines.append(f"Edges: W {west:.6f}, S {south:.6f}, E {east:.6f}, N {north:.6f}")
        if self.cellsize is not None:
            lines.append(f"Cell size: {self.cellsize:.9f} degrees")
        if self.small_memory is not None:
            lines.append(f"Mode: {'disk-backed' if self.small_memory else 'resident'}")
        return "\n".join(lines)


class PointElevationResponse(BaseModel):
    """Response model for single-point elevation query."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude of the query point")
    lon: float = Field(..., description="Longitude of the query point")
    elevation_m: float | None = Field(..., description="Elevation in metres, None without data")
    tile: str = Field(..., description="Tile base name")
    quadrant: str = Field(..., description="Quadrant of the point within its cell (Q0-Q4)")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Elevation at ({self.lat:.6f}, {self.lon:.6f}): {_fmt_elevation(self.elevation_m)}",
            f"Tile: {self.tile} ({self.quadrant})",
        ]
        return "\n".join(lines)


class PointInfo(BaseModel):
    """Elevation data for a single point in a multi-point query."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude")
    lon: float = Field(..., description="Longitude")
    elevation_m: float | None = Field(..., description="Elevation in metres, None without data")
    tile: str = Field(..., description="Tile base name")


class MultiPointResponse(BaseModel):
    """Response model for multi-point elevation query."""

    model_config = ConfigDict(extra="forbid")

    point_count: int = Field(..., description="Number of points queried", ge=1)
    points: list[PointInfo] = Field(..., description="Elevation results per point")
    elevation_range: list[float] = Field(..., description="[min, max] elevation across all points")
    nodata_points: int = Field(..., description="Points without data", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        elev_min, elev_max = self.elevation_range
        lines = [
            f"Elevation for {self.point_count} point(s)",
            f"Range: {elev_min:.1f}m to {elev_max:.1f}m",
            "",
        ]
        for p in self.points:
            lines.append(f"  ({p.lat:.6f}, {p.lon:.6f}): {_fmt_elevation(p.elevation_m)}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Analysis responses
# ---------------------------------------------------------------------------


class HeightFieldResponse(BaseModel):
    """Response model for a tangent-plane height field."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude of the reference point")
    lon: float = Field(..., description="Longitude of the reference point")
    radius_m: float = Field(..., description="Field radius in metres", gt=0)
    n_cells: int = Field(..., description="Cells from the centre to the edge", ge=1)
    size: int = Field(..., description="Cells per side (2 * n_cells + 1)", ge=3)
    distance_per_cell_m: float = Field(..., description="Cell size along the surface in metres")
    antenna_height_m: float = Field(..., description="Antenna height added at the centre cell")
    raw_qth_height_m: float | None = Field(
        None, description="Terrain elevation at the reference point"
    )
    mean_terrain_height_m: float | None = Field(
        None, description="Mean tangent-plane terrain height within the radius"
    )
    mean_height_above_terrain_m: float | None = Field(
        None, description="Antenna height above mean terrain (MHAT)"
    )
    value_range: list[float] | None = Field(
        None, description="[min, max] height over cells with data"
    )
    nodata_cells: int = Field(..., description="Cells without data", ge=0)
    nodata_sentinel: float = Field(..., description="Value stored in cells without data")
    tiles: list[str] = Field(..., description="Tiles used")
    heights: list[list[float]] | None = Field(
        None, description="Heights, row 0 northernmost, column 0 westernmost"
    )
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            self.message,
            f"Centre: ({self.lat:.6f}, {self.lon:.6f}), radius {self.radius_m:.0f}m",
            f"Tiles: {', '.join(self.tiles)}",
        ]
        if self.value_range:
            lines.append(f"Height range: {self.value_range[0]:.1f}m to {self.value_range[1]:.1f}m")
        if self.raw_qth_height_m is not None:
            lines.append(f"Terrain at centre: {self.raw_qth_height_m:.1f}m")
        if self.mean_height_above_terrain_m is not None:
            lines.append(f"MHAT: {self.mean_height_above_terrain_m:.1f}m")
        return "\n".join(lines)
