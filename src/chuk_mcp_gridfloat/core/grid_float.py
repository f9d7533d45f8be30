"""
GridFloat tile decoding and interpolation.

A tile is a pair of files: an ASCII header of KEY VALUE lines and a raw
binary body of NROWS x NCOLS little-endian float32 samples, row 0 being
the northernmost row. A tile is either held resident as a numpy array or,
in small-memory mode, read one sample at a time from disk.
"""

import logging
import math
import os
import struct
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..constants import (
    CENTRE_NODATA_FLOOR,
    CENTRE_TOLERANCE_M,
    DEFAULT_NODATA,
    FLOAT_SIZE_BYTES,
    SMALL_MEMORY_CHUNK_CELLS,
    ErrorMessages,
)
from .errors import (
    DataFileSizeError,
    FloatSizeError,
    HeaderFormatError,
    NoDataError,
    TileFileMissingError,
)
from .geodesy import distance

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating[Any]]

# Resolves a value for a cell centre that lies outside this tile
NeighbourResolver = Callable[[float, float], float]

_DTYPE = np.dtype("<f4")
_REQUIRED_KEYS = ("NCOLS", "NROWS", "XLLCORNER", "YLLCORNER", "CELLSIZE")


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


@dataclass
class GridFloatHeader:
    """Parsed GridFloat header plus derived edges."""

    ncols: int
    nrows: int
    xllcorner: float
    yllcorner: float
    cellsize: float
    nodata: float | None = None
    nodata_value: float | None = None
    byteorder: str = "LSBFIRST"
    extra: dict[str, str] = field(default_factory=dict)

    @property
    def west(self) -> float:
        return self.xllcorner

    @property
    def east(self) -> float:
        return self.xllcorner + self.cellsize * self.ncols

    @property
    def south(self) -> float:
        return self.yllcorner

    @property
    def north(self) -> float:
        return self.yllcorner + self.cellsize * self.nrows

    @property
    def sentinel(self) -> float:
        """The NODATA value in force: NODATA, else NODATA_VALUE, else -9999."""
        if self.nodata is not None:
            return self.nodata
        if self.nodata_value is not None:
            return self.nodata_value
        return DEFAULT_NODATA

    @property
    def n_cells(self) -> int:
        return self.nrows * self.ncols

    @property
    def bounds(self) -> list[float]:
        """[west, south, east, north] in degrees."""
        return [self.west, self.south, self.east, self.north]


def parse_header(text: str, source: str = "<header>") -> GridFloatHeader:
    """
    Parse the text of a GridFloat header.

    CR characters are removed, keys upper-cased, and runs of whitespace
    treated as one separator. Unknown keys are kept in ``extra``.

    Args:
        text: Header file contents
        source: Name used in error messages

    Returns:
        GridFloatHeader

    Raises:
        HeaderFormatError: A non-blank line does not hold exactly two fields,
            or a required key is absent
    """
    values: dict[str, str] = {}

    for line_number, line in enumerate(text.replace("\r", "").split("\n"), start=1):
        fields = line.upper().split()
        if not fields:
            continue
        if len(fields) != 2:
            message = ErrorMessages.HEADER_FIELDS.format(line_number, source, len(fields), line)
            logger.error(message)
            raise HeaderFormatError(message)
        values[fields[0]] = fields[1]

    for key in _REQUIRED_KEYS:
        if key not in values:
            message = ErrorMessages.HEADER_MISSING_KEY.format(source, key)
            logger.error(message)
            raise HeaderFormatError(message)

    try:
        header = GridFloatHeader(
            ncols=int(values.pop("NCOLS")),
            nrows=int(values.pop("NROWS")),
            xllcorner=float(values.pop("XLLCORNER")),
            yllcorner=float(values.pop("YLLCORNER")),
            cellsize=float(values.pop("CELLSIZE")),
        )
        if "NODATA" in values:
            header.nodata = float(values.pop("NODATA"))
        if "NODATA_VALUE" in values:
            header.nodata_value = float(values.pop("NODATA_VALUE"))
    except ValueError as e:
        raise HeaderFormatError(f"Header {source} has a non-numeric value: {e}") from e

    header.byteorder = values.pop("BYTEORDER", header.byteorder)
    header.extra = values
    return header


def read_header(path: str) -> GridFloatHeader:
    """Read and parse a header file."""
    with open(path, encoding="ascii", errors="replace") as f:
        return parse_header(f.read(), source=path)


# ---------------------------------------------------------------------------
# Quadrants
# ---------------------------------------------------------------------------


class Quadrant(IntEnum):
    """Position of a point relative to the centre of its cell."""

    Q0 = 0  # on the centre
    Q1 = 1  # north-east
    Q2 = 2  # north-west
    Q3 = 3  # south-west
    Q4 = 4  # south-east


# (row, col) offsets of the three neighbours used for each quadrant.
# Rows grow southwards, columns eastwards.
QUADRANT_NEIGHBOURS: dict[Quadrant, tuple[tuple[int, int], ...]] = {
    Quadrant.Q1: ((0, 1), (-1, 0), (-1, 1)),
    Quadrant.Q2: ((0, -1), (-1, 0), (-1, -1)),
    Quadrant.Q3: ((0, -1), (1, 0), (1, -1)),
    Quadrant.Q4: ((0, 1), (1, 0), (1, 1)),
}


# ---------------------------------------------------------------------------
# Tile
# ---------------------------------------------------------------------------


class GridTile:
    """
    One GridFloat tile, resident or disk-backed.

    Resident tiles hold the whole body as a ``(nrows, ncols)`` float32 array.
    Disk-backed (small-memory) tiles keep a single lazily-opened handle and
    serialise every seek+read pair on a per-tile lock, so one instance may be
    shared by the worker threads of a field computation.
    """

    def __init__(self, header_path: str, data_path: str, small_memory: bool = False) -> None:
        float_size = struct.calcsize("f")
        if float_size != FLOAT_SIZE_BYTES:
            message = ErrorMessages.FLOAT_SIZE.format(float_size)
            logger.error(message)
            raise FloatSizeError(message)

        if not os.path.isfile(header_path):
            message = ErrorMessages.MISSING_HEADER_FILE.format(header_path)
            logger.error(message)
            raise TileFileMissingError(message)

        if not os.path.isfile(data_path):
            message = ErrorMessages.MISSING_DATA_FILE.format(data_path)
            logger.error(message)
            raise TileFileMissingError(message)

        self.header_path = header_path
        self.data_path = data_path
        self.small_memory = small_memory
        self.header = read_header(header_path)
        self.nodata = self.header.sentinel

        self._data: FloatArray | None = None
        self._handle: Any = None
        self._lock = threading.Lock()

        expected = self.header.n_cells * FLOAT_SIZE_BYTES
        actual = os.path.getsize(data_path)
        if actual < expected:
            message = ErrorMessages.DATA_FILE_SIZE.format(
                data_path, actual, self.header.nrows, self.header.ncols, expected
            )
            logger.error(message)
            raise DataFileSizeError(message)

        if small_memory:
            self.invalid_count = self._count_invalid_on_disk()
        else:
            data = np.fromfile(data_path, dtype=_DTYPE, count=self.header.n_cells)
            self._data = data.reshape(self.header.nrows, self.header.ncols)
            self.invalid_count = int(np.count_nonzero(self._data <= self.nodata + 1))

        logger.debug(
            f"Loaded {os.path.basename(data_path)} "
            f"({'disk-backed' if small_memory else 'resident'}): "
            f"{self.invalid_count} invalid cells"
        )

    def _count_invalid_on_disk(self) -> int:
        """Single sequential pass over the body, counting NODATA cells."""
        remaining = self.header.n_cells
        threshold = self.nodata + 1
        count = 0
        with open(self.data_path, "rb") as f:
            while remaining > 0:
                n = min(remaining, SMALL_MEMORY_CHUNK_CELLS)
                chunk = np.frombuffer(f.read(n * FLOAT_SIZE_BYTES), dtype=_DTYPE)
                count += int(np.count_nonzero(chunk <= threshold))
                remaining -= n
        return count

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Release the disk handle, if one was opened."""
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> "GridTile":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- geometry -----------------------------------------------------------

    @property
    def name(self) -> str:
        return os.path.basename(self.data_path)

    @property
    def nrows(self) -> int:
        return self.header.nrows

    @property
    def ncols(self) -> int:
        return self.header.ncols

    @property
    def cellsize(self) -> float:
        return self.header.cellsize

    def is_in_tile(self, lat: float, lon: float) -> bool:
        """True if the point lies within the tile's edges, inclusive."""
        h = self.header
        return min(h.south, h.north) <= lat <= max(h.south, h.north) and min(
            h.west, h.east
        ) <= lon <= max(h.west, h.east)

    def row_index(self, lat: float) -> int:
        row = math.floor((self.header.north - lat) / self.header.cellsize)
        # the south edge belongs to the last row
        if row == self.header.nrows:
            row -= 1
        return row

    def col_index(self, lon: float) -> int:
        col = math.floor((lon - self.header.west) / self.header.cellsize)
        if col == self.header.ncols:
            col -= 1
        return col

    def index_pair(self, lat: float, lon: float) -> tuple[int, int]:
        return self.row_index(lat), self.col_index(lon)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.header.nrows and 0 <= col < self.header.ncols

    def cell_centre(self, row: int, col: int) -> tuple[float, float]:
        """Centre of a cell as (lat, lon); also defined for indices outside the tile."""
        h = self.header
        lat = (h.north - h.cellsize / 2) - row * h.cellsize
        lon = (h.west + h.cellsize / 2) + col * h.cellsize
        return lat, lon

    def cell_centre_of(self, lat: float, lon: float) -> tuple[float, float]:
        """Centre of the cell containing a point."""
        return self.cell_centre(*self.index_pair(lat, lon))

    # -- values -------------------------------------------------------------

    def valid_height(self, height: float) -> bool:
        return height > self.nodata + 1

    def cell_value_at(self, row: int, col: int) -> float:
        """Raw sample at (row, col). No containment or bounds checking."""
        if self._data is not None:
            return float(self._data[row, col])

        offset = (row * self.header.ncols + col) * FLOAT_SIZE_BYTES
        with self._lock:
            if self._handle is None:
                self._handle = open(self.data_path, "rb")
            self._handle.seek(offset)
            raw = self._handle.read(FLOAT_SIZE_BYTES)
        if len(raw) != FLOAT_SIZE_BYTES:
            return self.nodata
        return struct.unpack("<f", raw)[0]

    def cell_value(self, lat: float, lon: float) -> float:
        """Raw sample of the cell containing a point, or NODATA outside the tile."""
        if not self.is_in_tile(lat, lon):
            return self.nodata
        return self.cell_value_at(*self.index_pair(lat, lon))

    def quadrant(self, lat: float, lon: float) -> Quadrant:
        centre_lat, centre_lon = self.cell_centre_of(lat, lon)

        if distance(lat, lon, centre_lat, centre_lon) < CENTRE_TOLERANCE_M:
            return Quadrant.Q0

        if lat >= centre_lat and lon >= centre_lon:
            return Quadrant.Q1
        if lat >= centre_lat and lon <= centre_lon:
            return Quadrant.Q2
        if lat <= centre_lat and lon <= centre_lon:
            return Quadrant.Q3
        return Quadrant.Q4

    def interpolated_value(
        self,
        lat: float,
        lon: float,
        neighbour_value: NeighbourResolver | None = None,
    ) -> float:
        """
        Elevation at a point by inverse-distance weighting.

        A point within a metre of its cell centre returns that cell's value.
        Otherwise the cell and its three neighbours towards the point are
        weighted by the inverse of their centre-to-point distance; invalid
        samples are left out.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            neighbour_value: Called with a cell centre (lat, lon) when a
                neighbour lies outside this tile. Without it such neighbours
                count as NODATA.

        Returns:
            Interpolated elevation in metres

        Raises:
            NoDataError: No valid sample contributes to the estimate
        """
        row, col = self.index_pair(lat, lon)
        quadrant = self.quadrant(lat, lon)

        if quadrant is Quadrant.Q0:
            value = self.cell_value_at(row, col)
            if value < CENTRE_NODATA_FLOOR or not self.valid_height(value):
                raise NoDataError(ErrorMessages.NO_DATA.format(quadrant.name, lat, lon, self.name))
            return value

        weighted_sum = 0.0
        weight_sum = 0.0

        for d_row, d_col in ((0, 0), *QUADRANT_NEIGHBOURS[quadrant]):
            r, c = row + d_row, col + d_col
            centre_lat, centre_lon = self.cell_centre(r, c)

            if self.in_bounds(r, c):
                height = self.cell_value_at(r, c)
            elif neighbour_value is not None:
                height = neighbour_value(centre_lat, centre_lon)
            else:
                height = self.nodata

            if not self.valid_height(height):
                continue

            d = distance(lat, lon, centre_lat, centre_lon)
            weighted_sum += height / d
            weight_sum += 1.0 / d

        if weight_sum == 0:
            raise NoDataError(ErrorMessages.NO_DATA.format(quadrant.name, lat, lon, self.name))

        return weighted_sum / weight_sum

    # -- diagnostics --------------------------------------------------------

    def describe(self) -> str:
        """Multi-line description of the header, edges and invalid count."""
        h = self.header
        lines = [
            f"Number of columns      = {h.ncols}",
            f"Number of rows         = {h.nrows}",
            f"XLLCORNER              = {h.xllcorner}",
            f"YLLCORNER              = {h.yllcorner}",
            f"Cell size              = {h.cellsize}",
            f"NODATA_value           = {h.nodata_value}",
            f"NODATA                 = {h.nodata}",
            f"Byte order             = {h.byteorder}",
            f"Left X                 = {h.west}",
            f"Right X                = {h.east}",
            f"Bottom Y               = {h.south}",
            f"Top Y                  = {h.north}",
            f"Memory mode            = {'disk-backed' if self.small_memory else 'resident'}",
            f"Number of invalid data = {self.invalid_count}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"GridTile({self.name!r}, {self.nrows}x{self.ncols}, small_memory={self.small_memory})"
