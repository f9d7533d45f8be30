"""
DEM Manager: central orchestrator for GridFloat elevation operations.

Owns the tile fetcher, the memory advisor and the tile registry for one
data directory. Sync methods do the work; the public async methods wrap
them via asyncio.to_thread().
"""

import asyncio
import logging
import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from ..constants import (
    DEFAULT_ANTENNA_HEIGHT_M,
    DEFAULT_DATA_DIR,
    DEFAULT_MEMORY_THRESHOLD_BYTES,
    DEFAULT_N_CELLS,
    MAX_HEIGHT_FIELD_CELLS,
    MAX_POINTS,
    MAX_RADIUS_M,
    ErrorMessages,
)
from .errors import NoDataError
from .grid_float import QUADRANT_NEIGHBOURS, GridTile, Quadrant
from .height_field import HeightField, needed_tiles, populate_height_field
from .memory_advisor import MemoryAdvisor
from .tile_fetcher import TileFetcher, TilePaths
from .tile_naming import base_filename, check_in_grid, tile_code
from .tile_registry import TileRegistry

logger = logging.getLogger(__name__)


@dataclass
class TileFetchResult:
    """Result of making a tile's files present."""

    code: int
    base_name: str
    header_path: str
    data_path: str
    downloaded: bool
    source_url: str | None


@dataclass
class TileInfoResult:
    """Header metadata and diagnostics for a loaded tile."""

    code: int
    base_name: str
    header_path: str
    data_path: str
    ncols: int
    nrows: int
    cellsize: float
    bounds: list[float]
    nodata: float
    byteorder: str
    invalid_count: int
    small_memory: bool
    description: str


@dataclass
class PointResult:
    """Result of a single-point elevation query."""

    lat: float
    lon: float
    elevation_m: float | None
    tile: str
    quadrant: str


@dataclass
class MultiPointResult:
    """Result of a multi-point elevation query."""

    elevations: list[float | None]
    tiles: list[str]
    elevation_range: list[float]
    nodata_points: int


@dataclass
class HeightFieldResult:
    """Result of a height-field computation."""

    qth: list[float]
    radius_m: float
    n_cells: int
    distance_per_cell_m: float
    antenna_height_m: float
    raw_qth_height_m: float | None
    mean_terrain_height_m: float | None
    mean_height_above_terrain_m: float | None
    value_range: list[float] | None
    nodata_cells: int
    tiles: list[str]
    heights: list[list[float]]


class DEMManager:
    """Central manager for GridFloat tiles in one data directory."""

    def __init__(
        self,
        data_dir: str | None = None,
        small_memory: bool = False,
        memory_threshold_bytes: int = DEFAULT_MEMORY_THRESHOLD_BYTES,
        max_workers: int | None = None,
    ) -> None:
        self.data_dir = os.path.expanduser(data_dir or DEFAULT_DATA_DIR)
        self.max_workers = max_workers
        self.advisor = MemoryAdvisor(memory_threshold_bytes, force_small_memory=small_memory)
        self.fetcher = TileFetcher(self.data_dir)
        self.registry = TileRegistry()

        # Serialises registry writers; readers inside a computation hold it too
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Discovery (sync, no I/O)
    # ------------------------------------------------------------------

    def status(self) -> dict:
        return {
            "data_dir": self.data_dir,
            "loaded_tiles": [self._base_name(code) for code in self._loaded_codes()],
            "small_memory_forced": self.advisor.force_small_memory,
            "memory_threshold_bytes": self.advisor.threshold_bytes,
            "available_memory_bytes": self.advisor.available_bytes(),
        }

    # ------------------------------------------------------------------
    # Tiles (sync)
    # ------------------------------------------------------------------

    def tile_paths(self, code: int) -> TilePaths:
        return self.fetcher.paths(code)

    def ensure_tile(self, code: int) -> TilePaths:
        """Make the tile's files present, downloading if needed."""
        return self.fetcher.ensure(code)

    def load_tile(self, code: int) -> GridTile:
        """Load a tile into the registry (fetching it first). Idempotent."""
        with self._lock:
            self._ensure_loaded([code])
            return self.registry.tile(code)

    def _ensure_loaded(self, codes: Iterable[int]) -> list[int]:
        missing = sorted({code for code in codes if code not in self.registry})
        if missing:
            self.fetcher.fetch_all(missing, max_workers=self.max_workers)
            self.registry.load(missing, self.data_dir, small_memory_for=self._small_memory_for)
        return missing

    def _loaded_codes(self) -> list[int]:
        with self._lock:
            return self.registry.codes

    def _small_memory_for(self, code: int) -> bool:
        return self.advisor.use_small_memory()

    # ------------------------------------------------------------------
    # Elevation (sync)
    # ------------------------------------------------------------------

    def elevation_at(self, lat: float, lon: float) -> float:
        """
        Interpolated elevation at a point.

        Loads the containing tile, and any adjacent tile holding one of the
        interpolation neighbours, on demand.

        Raises:
            NoDataError: No valid samples around the point
        """
        self._validate_point(lat, lon)

        with self._lock:
            tile = self.load_tile(tile_code(lat, lon))

            quadrant = tile.quadrant(lat, lon)
            if quadrant is not Quadrant.Q0:
                row, col = tile.index_pair(lat, lon)
                outside = {
                    tile_code(*tile.cell_centre(row + d_row, col + d_col))
                    for d_row, d_col in QUADRANT_NEIGHBOURS[quadrant]
                    if not tile.in_bounds(row + d_row, col + d_col)
                }
                if outside:
                    self._ensure_loaded(outside)

            return self.registry.interpolated_value(lat, lon)

    def point_elevation(self, lat: float, lon: float) -> tuple[float | None, Quadrant]:
        """Elevation (None without data) and quadrant of a point, read under one lock."""
        with self._lock:
            try:
                value: float | None = self.elevation_at(lat, lon)
            except NoDataError as e:
                logger.debug(f"No data at ({lat}, {lon}): {e.message}")
                value = None
            quadrant = self.registry.tile(tile_code(lat, lon)).quadrant(lat, lon)
        return value, quadrant

    def prepare_region(
        self,
        qth: tuple[float, float],
        radius_m: float,
        n_cells: int = DEFAULT_N_CELLS,
        los: bool = False,
    ) -> list[int]:
        """
        Rebuild the registry with every tile a height field needs.

        Clears the registry, pre-scans the field for tile codes, fetches
        missing tiles in parallel, then loads them one at a time. A second
        pre-scan, widened by the loaded tiles' cell size, adds the adjacent
        tiles that interpolation reads from near a tile edge.

        Returns:
            Sorted tile codes now loaded
        """
        self._validate_point(*qth)
        self._validate_field(radius_m, n_cells)
        distance_per_cell = radius_m / n_cells

        with self._lock:
            codes = needed_tiles(
                qth, distance_per_cell, n_cells, max_workers=self.max_workers, los=los
            )
            self.registry.clear()
            self._ensure_loaded(codes)

            margin = max(self.registry.tile(code).cellsize for code in self.registry.codes)
            edge_codes = needed_tiles(
                qth,
                distance_per_cell,
                n_cells,
                max_workers=self.max_workers,
                margin_deg=margin,
            )
            added = self._ensure_loaded(edge_codes)
            if added:
                logger.debug(f"Loaded {len(added)} adjacent tiles for edge interpolation")

            logger.info(f"Region around {qth} uses {len(self.registry)} tiles")
            return self.registry.codes

    def height_field(
        self,
        qth: tuple[float, float],
        radius_m: float,
        n_cells: int = DEFAULT_N_CELLS,
        antenna_height_m: float = DEFAULT_ANTENNA_HEIGHT_M,
        los: bool = False,
    ) -> HeightField:
        """Prepare the region and populate its height field."""
        with self._lock:
            self.prepare_region(qth, radius_m, n_cells, los=los)
            return populate_height_field(
                self.registry,
                qth,
                radius_m / n_cells,
                n_cells,
                antenna_height_m=antenna_height_m,
                max_workers=self.max_workers,
                radius_m=radius_m,
            )

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def fetch_tile(self, lat: float, lon: float) -> TileFetchResult:
        """Download and unpack the tile containing a point, if not present."""
        self._validate_point(lat, lon)
        code = tile_code(lat, lon)
        paths = await asyncio.to_thread(self.ensure_tile, code)

        return TileFetchResult(
            code=code,
            base_name=paths.base_name,
            header_path=paths.header_path,
            data_path=paths.data_path,
            downloaded=paths.downloaded,
            source_url=paths.source_url,
        )

    async def fetch_tile_info(self, lat: float, lon: float) -> TileInfoResult:
        """Load the tile containing a point and describe it."""
        self._validate_point(lat, lon)
        code = tile_code(lat, lon)
        tile = await asyncio.to_thread(self.load_tile, code)
        header = tile.header

        return TileInfoResult(
            code=code,
            base_name=self._base_name(code),
            header_path=tile.header_path,
            data_path=tile.data_path,
            ncols=header.ncols,
            nrows=header.nrows,
            cellsize=header.cellsize,
            bounds=header.bounds,
            nodata=tile.nodata,
            byteorder=header.byteorder,
            invalid_count=tile.invalid_count,
            small_memory=tile.small_memory,
            description=tile.describe(),
        )

    async def fetch_point(self, lat: float, lon: float) -> PointResult:
        """Get interpolated elevation at a single point."""
        self._validate_point(lat, lon)

        value, quadrant = await asyncio.to_thread(self.point_elevation, lat, lon)
        code = tile_code(lat, lon)

        return PointResult(
            lat=lat,
            lon=lon,
            elevation_m=value,
            tile=self._base_name(code),
            quadrant=quadrant.name,
        )

    async def fetch_points(self, points: list[list[float]]) -> MultiPointResult:
        """Get interpolated elevations at many [lat, lon] points."""
        self._validate_points(points)

        elevations, tiles = await asyncio.to_thread(self._elevations, points)

        valid = [v for v in elevations if v is not None]
        elev_range = [min(valid), max(valid)] if valid else [0.0, 0.0]

        return MultiPointResult(
            elevations=elevations,
            tiles=tiles,
            elevation_range=elev_range,
            nodata_points=len(elevations) - len(valid),
        )

    def _elevations(self, points: list[list[float]]) -> tuple[list[float | None], list[str]]:
        elevations: list[float | None] = []
        tiles: list[str] = []
        for lat, lon in points:
            try:
                elevations.append(self.elevation_at(lat, lon))
            except NoDataError:
                elevations.append(None)
            tiles.append(self._base_name(tile_code(lat, lon)))
        return elevations, tiles

    async def compute_height_field(
        self,
        lat: float,
        lon: float,
        radius_m: float,
        n_cells: int = DEFAULT_N_CELLS,
        antenna_height_m: float = DEFAULT_ANTENNA_HEIGHT_M,
        los: bool = False,
    ) -> HeightFieldResult:
        """Compute the tangent-plane height field around (lat, lon)."""
        self._validate_point(lat, lon)
        self._validate_field(radius_m, n_cells)

        field = await asyncio.to_thread(
            self.height_field, (lat, lon), radius_m, n_cells, antenna_height_m, los
        )
        value_range = field.value_range()

        return HeightFieldResult(
            qth=[lat, lon],
            radius_m=radius_m,
            n_cells=n_cells,
            distance_per_cell_m=field.distance_per_cell_m,
            antenna_height_m=antenna_height_m,
            raw_qth_height_m=field.raw_qth_height_m,
            mean_terrain_height_m=field.mean_terrain_height_m,
            mean_height_above_terrain_m=field.mean_height_above_terrain_m,
            value_range=list(value_range) if value_range else None,
            nodata_cells=field.nodata_cells,
            tiles=[self._base_name(code) for code in field.tiles],
            heights=field.heights.tolist(),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _base_name(code: int) -> str:
        return base_filename(code)

    @staticmethod
    def _validate_point(lat: float, lon: float) -> None:
        if not -90.0 <= lat <= 90.0:
            raise ValueError(ErrorMessages.INVALID_LATITUDE.format(lat))
        if not -180.0 <= lon <= 180.0:
            raise ValueError(ErrorMessages.INVALID_LONGITUDE.format(lon))
        check_in_grid(lat, lon)

    def _validate_points(self, points: list[list[float]]) -> None:
        if not points:
            raise ValueError(ErrorMessages.NO_POINTS)
        if len(points) > MAX_POINTS:
            raise ValueError(ErrorMessages.TOO_MANY_POINTS.format(len(points), MAX_POINTS))
        for i, point in enumerate(points):
            if len(point) != 2:
                raise ValueError(ErrorMessages.INVALID_POINT.format(i))
            self._validate_point(point[0], point[1])

    @staticmethod
    def _validate_field(radius_m: float, n_cells: int) -> None:
        if radius_m <= 0:
            raise ValueError(ErrorMessages.INVALID_RADIUS.format(radius_m))
        if radius_m > MAX_RADIUS_M:
            raise ValueError(ErrorMessages.RADIUS_TOO_LARGE.format(radius_m, MAX_RADIUS_M))
        if not 1 <= n_cells <= MAX_HEIGHT_FIELD_CELLS:
            raise ValueError(ErrorMessages.INVALID_N_CELLS.format(MAX_HEIGHT_FIELD_CELLS, n_cells))
