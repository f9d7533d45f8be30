"""
Tile identity and naming.

A tile code packs the 1-degree tile containing a point into one integer:
``floor(lat + 1) * 1000 + floor(-(lon - 1))``. The code maps to the USGS
base name ``nLLwLLL`` (the tile's northwest corner), from which every local
and remote filename is derived. Everything here is pure string composition.
"""

import math
import os
import re

from ..constants import (
    ALTERNATIVE_MEMBER_TEMPLATE,
    ARCHIVE_TEMPLATE,
    DATA_EXTENSION,
    HEADER_EXTENSION,
    LOCAL_TILE_TEMPLATE,
    REMOTE_TILE_DIRECTORY,
    REMOTE_TILE_FALLBACK_TEMPLATE,
    REMOTE_TILE_TEMPLATE,
    TILE_SIZE_DEGREES,
    ErrorMessages,
)

_BASE_NAME_RE = re.compile(r"^n(\d{2})w(\d{3})$", re.IGNORECASE)


def tile_code(lat: float | str, lon: float | None = None) -> int:
    """Tile code for a point, or for a ``nLLwLLL`` base name.

    Args:
        lat: Latitude in degrees, or a base name such as ``"n41w106"``
        lon: Longitude in degrees (omitted when ``lat`` is a base name)

    Returns:
        Integer tile code, e.g. 41106 for ``n41w106``
    """
    if isinstance(lat, str):
        match = _BASE_NAME_RE.match(lat.strip())
        if match is None:
            raise ValueError(ErrorMessages.INVALID_BASE_NAME.format(lat))
        return int(match.group(1)) * 1000 + int(match.group(2))

    if lon is None:
        raise TypeError("tile_code() needs a longitude when given a latitude")
    return math.floor(lat + 1) * 1000 + math.floor(-(lon - 1))


def check_in_grid(lat: float, lon: float) -> None:
    """Raise ValueError unless the point has an ``nLLwLLL`` tile (north-west quadrant)."""
    if not (0.0 <= lat < 90.0 and -180.0 < lon <= 0.0):
        raise ValueError(ErrorMessages.OUTSIDE_TILE_GRID.format(lat, lon))


def split_code(code: int) -> tuple[int, int]:
    """Split a tile code into its (north latitude, west longitude) parts."""
    if code < 0:
        raise ValueError(ErrorMessages.INVALID_TILE_CODE.format(code))
    return code // 1000, code % 1000


def base_filename(code_or_lat: int | float, lon: float | None = None) -> str:
    """``nLLwLLL`` base name for a tile code or for a (lat, lon) point."""
    code = int(code_or_lat) if lon is None else tile_code(code_or_lat, lon)
    lat_part, lon_part = split_code(code)
    return f"n{lat_part:02d}w{lon_part:03d}"


def local_header_filename(code: int, directory: str) -> str:
    return os.path.join(directory, LOCAL_TILE_TEMPLATE.format(base_filename(code), HEADER_EXTENSION))


def local_data_filename(code: int, directory: str) -> str:
    return os.path.join(directory, LOCAL_TILE_TEMPLATE.format(base_filename(code), DATA_EXTENSION))


def local_archive_filename(code: int, directory: str) -> str:
    """Where the downloaded archive for a tile is kept before unpacking."""
    return os.path.join(directory, ARCHIVE_TEMPLATE.format(base_filename(code)))


def remote_tile_filename(code: int) -> str:
    """Primary upstream archive name, e.g. ``USGS_NED_13_n41w106_GridFloat.zip``."""
    return REMOTE_TILE_TEMPLATE.format(base_filename(code))


def remote_tile_filenames(code: int) -> list[str]:
    """Upstream archive names to try, in order."""
    base = base_filename(code)
    return [
        REMOTE_TILE_TEMPLATE.format(base),
        REMOTE_TILE_FALLBACK_TEMPLATE.format(base),
    ]


def remote_tile_url(filename: str) -> str:
    return REMOTE_TILE_DIRECTORY + filename


def archive_member_names(code: int, extension: str) -> list[str]:
    """In-archive names for a header or data file: primary, then alternative.

    Args:
        code: Tile code
        extension: ``"hdr"`` or ``"flt"``

    Returns:
        The names to look for inside the archive, in order
    """
    base = base_filename(code)
    return [
        LOCAL_TILE_TEMPLATE.format(base, extension),
        ALTERNATIVE_MEMBER_TEMPLATE.format(base, extension),
    ]


def tile_bounds(code: int) -> tuple[float, float, float, float]:
    """Nominal footprint of a tile as (west, south, east, north) degrees."""
    lat_part, lon_part = split_code(code)
    north = float(lat_part)
    west = -float(lon_part)
    return west, north - TILE_SIZE_DEGREES, west + TILE_SIZE_DEGREES, north
