"""
Registry of loaded tiles, keyed by tile code.

Tiles are inserted from a single thread before any parallel work starts;
during a field computation the registry is only read.
"""

import logging
from collections.abc import Callable, Iterable, Iterator

from ..constants import ErrorMessages
from . import tile_naming
from .errors import MissingTileError
from .grid_float import GridTile

logger = logging.getLogger(__name__)


class TileRegistry:
    """Mapping from tile code to an owned GridTile."""

    def __init__(self) -> None:
        self._tiles: dict[int, GridTile] = {}

    def __contains__(self, code: object) -> bool:
        return code in self._tiles

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._tiles))

    @property
    def codes(self) -> list[int]:
        return sorted(self._tiles)

    def add(self, code: int, tile: GridTile) -> None:
        """Insert a tile, closing any tile it replaces."""
        previous = self._tiles.get(code)
        if previous is not None and previous is not tile:
            previous.close()
        self._tiles[code] = tile

    def load(
        self,
        codes: Iterable[int],
        directory: str,
        small_memory_for: Callable[[int], bool] | None = None,
    ) -> list[int]:
        """
        Construct and insert a GridTile for each code not already loaded.

        Files must already be on disk (see tile_fetcher). Insertion is
        sequential.

        Args:
            codes: Tile codes to load
            directory: Directory holding the tile files
            small_memory_for: Called per code to choose disk-backed mode

        Returns:
            Codes that were newly loaded
        """
        loaded = []
        for code in sorted(set(codes)):
            if code in self._tiles:
                continue
            small_memory = small_memory_for(code) if small_memory_for else False
            tile = GridTile(
                tile_naming.local_header_filename(code, directory),
                tile_naming.local_data_filename(code, directory),
                small_memory=small_memory,
            )
            self._tiles[code] = tile
            loaded.append(code)
            logger.info(
                f"Loaded tile {tile_naming.base_filename(code)} "
                f"({tile.nrows}x{tile.ncols}, {tile.invalid_count} invalid, "
                f"small_memory={small_memory})"
            )
        return loaded

    def clear(self) -> None:
        """Close and drop every tile."""
        for tile in self._tiles.values():
            tile.close()
        self._tiles.clear()

    def tile(self, code: int) -> GridTile:
        try:
            return self._tiles[code]
        except KeyError:
            raise MissingTileError(
                f"Tile {code} ({tile_naming.base_filename(code)}) is not loaded"
            ) from None

    def tile_for(self, lat: float, lon: float) -> GridTile:
        """The loaded tile whose code covers a point."""
        code = tile_naming.tile_code(lat, lon)
        tile = self._tiles.get(code)
        if tile is None:
            message = ErrorMessages.MISSING_TILE.format(
                code, tile_naming.base_filename(code), lat, lon
            )
            logger.error(message)
            raise MissingTileError(message)
        return tile

    def cell_value(self, lat: float, lon: float) -> float:
        return self.tile_for(lat, lon).cell_value(lat, lon)

    def interpolated_value(self, lat: float, lon: float) -> float:
        """
        Interpolated elevation at a point.

        Neighbour cells that fall outside the point's own tile are read from
        the adjacent tile, which must also be loaded.

        Raises:
            MissingTileError: The point or a needed neighbour is in an unloaded tile
            NoDataError: No valid samples around the point
        """
        return self.tile_for(lat, lon).interpolated_value(lat, lon, neighbour_value=self.cell_value)
