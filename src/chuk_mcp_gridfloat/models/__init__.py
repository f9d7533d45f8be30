"""Response models for chuk-mcp-gridfloat."""

from .responses import (
    BearingResponse,
    CapabilitiesResponse,
    DestinationResponse,
    DistanceResponse,
    ErrorResponse,
    HeightFieldResponse,
    MultiPointResponse,
    PointElevationResponse,
    PointInfo,
    StatusResponse,
    TileFetchResponse,
    TileNameResponse,
    format_response,
)

__all__ = [
    "ErrorResponse",
    "StatusResponse",
    "CapabilitiesResponse",
    "TileNameResponse",
    "DistanceResponse",
    "DestinationResponse",
    "BearingResponse",
    "TileFetchResponse",
    "PointElevationResponse",
    "PointInfo",
    "MultiPointResponse",
    "HeightFieldResponse",
    "format_response",
]
