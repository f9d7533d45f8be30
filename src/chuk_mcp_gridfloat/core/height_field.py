"""
Tile pre-scan and height-field population.

A height field is a square grid of ``2n+1`` cells per side centred on a
reference point (the QTH). Cell (delta_x, delta_y) lies on the great circle
at ``bearing_from_offsets(delta_x, delta_y)`` from the QTH, at
``offset_distance`` along the surface. Heights are re-referenced to the
tangent plane at the QTH.

Work is split into interleaved row stripes (rows ``start, start + step, ...``)
run on a thread pool. Stripes never share a row, so no two workers write the
same cell.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..constants import (
    LOS_CLOSE_IN_DISTANCE_M,
    NODATA_SENTINEL,
)
from .errors import NoDataError
from .geodesy import (
    bearing_from_offsets,
    destination,
    offset_distance,
    tangent_plane_height,
)
from .tile_naming import tile_code
from .tile_registry import TileRegistry

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating[Any]]


def default_workers() -> int:
    return os.cpu_count() or 1


def row_stripes(n_cells: int, n_stripes: int) -> list[range]:
    """Interleaved delta_y stripes covering ``-n_cells .. n_cells``."""
    n_stripes = max(1, min(n_stripes, 2 * n_cells + 1))
    return [
        range(-n_cells + start, n_cells + 1, n_stripes)
        for start in range(n_stripes)
    ]


# ---------------------------------------------------------------------------
# Tile pre-scan
# ---------------------------------------------------------------------------


def _los_fractions(distance_m: float) -> list[float]:
    """Fractions (95% down to 5%) of a ray whose points are also needed."""
    decrement = 1
    if distance_m < LOS_CLOSE_IN_DISTANCE_M:
        decrement = max(int(distance_m / 4), 1)
    return [n / 100 for n in range(95, 4, -decrement)]


def _neighbourhood_codes(lat: float, lon: float, margin_deg: float) -> set[int]:
    """Codes of the tiles holding a point and the points ``margin_deg`` around it."""
    if not margin_deg:
        return {tile_code(lat, lon)}
    steps = (-margin_deg, 0.0, margin_deg)
    return {tile_code(lat + d_lat, lon + d_lon) for d_lat in steps for d_lon in steps}


def _scan_stripe(
    delta_ys: range,
    qth: tuple[float, float],
    distance_per_cell: float,
    n_cells: int,
    los: bool,
    margin_deg: float,
    needed: set[int],
    lock: threading.Lock,
) -> None:
    lat0, lon0 = qth
    for delta_y in delta_ys:
        for delta_x in range(-n_cells, n_cells + 1):
            bearing = bearing_from_offsets(delta_x, delta_y)
            d = offset_distance(delta_x, delta_y, distance_per_cell)
            codes = _neighbourhood_codes(*destination(lat0, lon0, bearing, d), margin_deg)

            if los and (delta_x != 0 or delta_y != 0):
                for fraction in _los_fractions(d):
                    codes.add(tile_code(*destination(lat0, lon0, bearing, fraction * d)))

            with lock:
                needed.update(codes)


def needed_tiles(
    qth: tuple[float, float],
    distance_per_cell: float,
    n_cells: int,
    max_workers: int | None = None,
    los: bool = False,
    margin_deg: float = 0.0,
) -> set[int]:
    """
    Tile codes needed to populate a height field.

    Args:
        qth: Reference point (lat, lon)
        distance_per_cell: Cell size along the surface, metres
        n_cells: Cells from the centre to the edge
        max_workers: Thread count (defaults to the CPU count)
        los: Also include tiles under the intermediate points of each ray
        margin_deg: Also include tiles within this many degrees of each
            cell, so interpolation neighbours across a tile edge are loaded.
            One tile cell size covers every neighbour.

    Returns:
        Set of tile codes, always including the QTH's own tile
    """
    needed = {tile_code(*qth)}
    lock = threading.Lock()
    workers = max_workers or default_workers()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(
                _scan_stripe,
                stripe,
                qth,
                distance_per_cell,
                n_cells,
                los,
                margin_deg,
                needed,
                lock,
            )
            for stripe in row_stripes(n_cells, workers)
        ]
        for future in futures:
            future.result()

    logger.debug(f"Pre-scan for {n_cells} cells at {distance_per_cell:.1f}m: {len(needed)} tiles")
    return needed


# ---------------------------------------------------------------------------
# Height field
# ---------------------------------------------------------------------------


@dataclass
class HeightField:
    """Tangent-plane heights around a reference point.

    ``heights[delta_y + n, delta_x + n]`` holds the cell at offset
    (delta_x east, delta_y north). Cells without data hold NODATA_SENTINEL.
    The centre cell includes the antenna height.
    ``tiles`` lists the codes loaded while the field was computed.
    """

    heights: FloatArray
    n_cells: int
    distance_per_cell_m: float
    qth: tuple[float, float]
    antenna_height_m: float
    raw_qth_height_m: float | None
    nodata_cells: int
    mean_terrain_height_m: float | None
    terrain_cells: int
    tiles: list[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return 2 * self.n_cells + 1

    @property
    def mean_height_above_terrain_m(self) -> float | None:
        if self.raw_qth_height_m is None or self.mean_terrain_height_m is None:
            return None
        return self.raw_qth_height_m + self.antenna_height_m - self.mean_terrain_height_m

    def height_at(self, delta_x: int, delta_y: int) -> float:
        if abs(delta_x) > self.n_cells or abs(delta_y) > self.n_cells:
            raise IndexError(f"Offset ({delta_x}, {delta_y}) is outside the field")
        return float(self.heights[delta_y + self.n_cells, delta_x + self.n_cells])

    def value_range(self) -> tuple[float, float] | None:
        """(min, max) over cells with data, or None if every cell is NODATA."""
        valid = self.heights[self.heights != NODATA_SENTINEL]
        if valid.size == 0:
            return None
        return float(valid.min()), float(valid.max())


class _FieldAccumulator:
    """Shared output of the population workers."""

    def __init__(self, n_cells: int) -> None:
        size = 2 * n_cells + 1
        self.heights = np.zeros((size, size), dtype=np.float32)
        self.nodata_cells = 0
        self.terrain_sum = 0.0
        self.terrain_cells = 0
        # stripes are disjoint; this lock only guards against overlapping stripes
        self.field_lock = threading.Lock()
        self.mean_lock = threading.Lock()


def _populate_stripe(
    delta_ys: range,
    registry: TileRegistry,
    qth: tuple[float, float],
    distance_per_cell: float,
    n_cells: int,
    antenna_height_m: float,
    radius_m: float,
    acc: _FieldAccumulator,
) -> None:
    lat0, lon0 = qth
    for delta_y in delta_ys:
        row = delta_y + n_cells
        for delta_x in range(-n_cells, n_cells + 1):
            col = delta_x + n_cells
            bearing = bearing_from_offsets(delta_x, delta_y)
            d = offset_distance(delta_x, delta_y, distance_per_cell)
            lat, lon = destination(lat0, lon0, bearing, d)

            try:
                raw = registry.interpolated_value(lat, lon)
            except NoDataError as e:
                logger.debug(f"No data for cell ({delta_x}, {delta_y}): {e.message}")
                with acc.field_lock:
                    acc.heights[row, col] = NODATA_SENTINEL
                    acc.nodata_cells += 1
                continue

            terrain = tangent_plane_height(raw, d)
            with acc.field_lock:
                acc.heights[row, col] = terrain
                if delta_x == 0 and delta_y == 0:
                    acc.heights[row, col] += antenna_height_m

            if d <= radius_m:
                with acc.mean_lock:
                    acc.terrain_sum += terrain
                    acc.terrain_cells += 1


def populate_height_field(
    registry: TileRegistry,
    qth: tuple[float, float],
    distance_per_cell: float,
    n_cells: int,
    antenna_height_m: float = 0.0,
    max_workers: int | None = None,
    radius_m: float | None = None,
) -> HeightField:
    """
    Fill a height field from the tiles in ``registry``.

    Every tile the field touches must already be loaded (see needed_tiles).
    Cells with no valid data get NODATA_SENTINEL; any other error raised
    in a worker propagates to the caller.

    Args:
        registry: Loaded tiles
        qth: Reference point (lat, lon)
        distance_per_cell: Cell size along the surface, metres
        n_cells: Cells from the centre to the edge
        antenna_height_m: Added to the centre cell
        max_workers: Thread count (defaults to the CPU count)
        radius_m: Cells within this distance count towards the mean
            terrain height (defaults to ``n_cells * distance_per_cell``)

    Returns:
        HeightField
    """
    if radius_m is None:
        radius_m = n_cells * distance_per_cell

    acc = _FieldAccumulator(n_cells)
    workers = max_workers or default_workers()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(
                _populate_stripe,
                stripe,
                registry,
                qth,
                distance_per_cell,
                n_cells,
                antenna_height_m,
                radius_m,
                acc,
            )
            for stripe in row_stripes(n_cells, workers)
        ]
        for future in futures:
            future.result()

    try:
        raw_qth_height: float | None = registry.interpolated_value(*qth)
    except NoDataError:
        raw_qth_height = None

    mean_terrain = acc.terrain_sum / acc.terrain_cells if acc.terrain_cells else None

    if acc.nodata_cells:
        logger.info(f"Height field has {acc.nodata_cells} cells without data")

    return HeightField(
        heights=acc.heights,
        n_cells=n_cells,
        distance_per_cell_m=distance_per_cell,
        qth=qth,
        antenna_height_m=antenna_height_m,
        raw_qth_height_m=raw_qth_height,
        nodata_cells=acc.nodata_cells,
        mean_terrain_height_m=mean_terrain,
        terrain_cells=acc.terrain_cells,
        tiles=registry.codes,
    )
