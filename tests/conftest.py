"""Shared test fixtures for chuk-mcp-gridfloat."""

import io
import zipfile

import numpy as np
import pytest
from unittest.mock import MagicMock

from chuk_mcp_gridfloat.core import tile_naming

# Synthetic tiles are 8x8 cells of 0.125 degree so every edge and cell
# centre is exact in binary floating point.
TILE_CELLS = 8
TILE_CELLSIZE = 0.125

# Tile n41w106 covers lat 40..41, lon -106..-105
CODE = 41106
EAST_CODE = 41105


def header_text(
    nrows: int,
    ncols: int,
    xllcorner: float,
    yllcorner: float,
    cellsize: float,
    nodata: float | None = -9999.0,
    nodata_key: str = "NODATA_value",
) -> str:
    lines = [
        f"ncols         {ncols}",
        f"nrows         {nrows}",
        f"xllcorner     {xllcorner!r}",
        f"yllcorner     {yllcorner!r}",
        f"cellsize      {cellsize!r}",
    ]
    if nodata is not None:
        lines.append(f"{nodata_key}  {nodata:g}")
    lines.append("byteorder     LSBFIRST")
    return "\r\n".join(lines) + "\r\n"


def write_tile(directory, code: int, data, nodata_key: str = "NODATA_value") -> tuple[str, str]:
    """Write a GridFloat tile for ``code`` covering its whole degree square."""
    data = np.asarray(data, dtype="<f4")
    nrows, ncols = data.shape
    west, south, _, _ = tile_naming.tile_bounds(code)
    header_path = tile_naming.local_header_filename(code, str(directory))
    data_path = tile_naming.local_data_filename(code, str(directory))

    with open(header_path, "w", newline="") as f:
        f.write(header_text(nrows, ncols, west, south, 1.0 / ncols, nodata_key=nodata_key))
    data.tofile(data_path)
    return header_path, data_path


def gridfloat_archive(code: int, data, alternative_names: bool = False) -> bytes:
    """Zip bytes holding a tile's header and data members."""
    data = np.asarray(data, dtype="<f4")
    nrows, ncols = data.shape
    west, south, _, _ = tile_naming.tile_bounds(code)
    index = 1 if alternative_names else 0

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(
            tile_naming.archive_member_names(code, "hdr")[index],
            header_text(nrows, ncols, west, south, 1.0 / ncols),
        )
        zf.writestr(tile_naming.archive_member_names(code, "flt")[index], data.tobytes())
    return buf.getvalue()


def fake_response(status_code: int = 200, body: bytes = b"") -> MagicMock:
    """Stand-in for a streamed requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.iter_content.return_value = [body] if body else []
    return response


def cell_centre(row: int, col: int, code: int = CODE) -> tuple[float, float]:
    """Centre (lat, lon) of a cell of a synthetic tile."""
    west, _, _, north = tile_naming.tile_bounds(code)
    return (
        north - TILE_CELLSIZE / 2 - row * TILE_CELLSIZE,
        west + TILE_CELLSIZE / 2 + col * TILE_CELLSIZE,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def flat_data():
    """8x8 tile at a constant 1000 m."""
    return np.full((TILE_CELLS, TILE_CELLS), 1000.0, dtype=np.float32)


@pytest.fixture
def ramp_data():
    """8x8 tile where cell (r, c) holds 100 * r + c."""
    rows, cols = np.indices((TILE_CELLS, TILE_CELLS))
    return (100.0 * rows + cols).astype(np.float32)


@pytest.fixture
def tile_dir(tmp_path):
    """Directory for tile files."""
    directory = tmp_path / "tiles"
    directory.mkdir()
    return directory


@pytest.fixture
def flat_tile(tile_dir, flat_data):
    """(header_path, data_path) of a flat n41w106 tile."""
    return write_tile(tile_dir, CODE, flat_data)


@pytest.fixture
def ramp_tile(tile_dir, ramp_data):
    """(header_path, data_path) of a ramp n41w106 tile."""
    return write_tile(tile_dir, CODE, ramp_data)


@pytest.fixture
def mock_manager(tile_dir):
    """DEMManager over an empty temporary tile directory."""
    from chuk_mcp_gridfloat.core.dem_manager import DEMManager

    return DEMManager(data_dir=str(tile_dir), max_workers=2)


@pytest.fixture
def mock_mcp():
    """Mock ChukMCPServer."""
    mcp = MagicMock()
    mcp.tool = MagicMock(return_value=lambda fn: fn)
    return mcp
