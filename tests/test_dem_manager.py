"""
Tests for DEMManager.

Covers status, tile loading, point elevation (with neighbouring tiles
loaded on demand), region preparation and the async API. Tiles are
written to a temporary directory up front; requests.get is patched where
a download would otherwise happen.
"""

import asyncio
from unittest.mock import patch

import numpy as np
import pytest

from chuk_mcp_gridfloat.core.dem_manager import (
    DEMManager,
    HeightFieldResult,
    MultiPointResult,
    PointResult,
    TileFetchResult,
    TileInfoResult,
)
from chuk_mcp_gridfloat.core.errors import TileFetchError
from chuk_mcp_gridfloat.core.height_field import HeightField

from conftest import CODE, EAST_CODE, cell_centre, fake_response, gridfloat_archive, write_tile

GET = "chuk_mcp_gridfloat.core.tile_fetcher.requests.get"
QTH = (40.5, -105.5)
OFFSET = 0.03


def clear_registry_after_thread(manager):
    """Patch asyncio.to_thread so the registry is emptied as soon as the call returns."""
    run = asyncio.to_thread

    async def to_thread(fn, *args, **kwargs):
        result = await run(fn, *args, **kwargs)
        manager.registry.clear()
        return result

    return patch("chuk_mcp_gridfloat.core.dem_manager.asyncio.to_thread", to_thread)


@pytest.fixture
def two_tiles(tile_dir):
    write_tile(tile_dir, CODE, np.full((8, 8), 1000.0))
    write_tile(tile_dir, EAST_CODE, np.full((8, 8), 2000.0))
    return tile_dir


@pytest.fixture
def holey_tile(tile_dir, flat_data):
    flat_data[3, 3] = -9999.0
    return write_tile(tile_dir, CODE, flat_data)


# ===================================================================
# Construction and status
# ===================================================================


class TestInit:
    def test_expands_user(self):
        manager = DEMManager(data_dir="~/gridfloat-tiles")
        assert not manager.data_dir.startswith("~")

    def test_default_data_dir(self):
        manager = DEMManager()
        assert manager.data_dir.endswith("chuk-mcp-gridfloat")

    def test_small_memory_forced(self, tile_dir):
        manager = DEMManager(data_dir=str(tile_dir), small_memory=True)
        assert manager.advisor.force_small_memory is True


class TestStatus:
    def test_keys(self, mock_manager):
        status = mock_manager.status()
        assert set(status) == {
            "data_dir",
            "loaded_tiles",
            "small_memory_forced",
            "memory_threshold_bytes",
            "available_memory_bytes",
        }
        assert status["loaded_tiles"] == []
        assert status["available_memory_bytes"] > 0

    def test_lists_loaded_tiles(self, mock_manager, flat_tile):
        mock_manager.load_tile(CODE)
        assert mock_manager.status()["loaded_tiles"] == ["n41w106"]


# ===================================================================
# Tiles
# ===================================================================


class TestLoadTile:
    def test_load_from_disk(self, mock_manager, flat_tile):
        with patch(GET) as mock_get:
            tile = mock_manager.load_tile(CODE)
        mock_get.assert_not_called()
        assert tile.nrows == 8
        assert CODE in mock_manager.registry

    def test_idempotent(self, mock_manager, flat_tile):
        assert mock_manager.load_tile(CODE) is mock_manager.load_tile(CODE)

    def test_small_memory(self, tile_dir, flat_tile):
        manager = DEMManager(data_dir=str(tile_dir), small_memory=True)
        assert manager.load_tile(CODE).small_memory is True

    def test_downloads_missing_tile(self, mock_manager):
        archive = gridfloat_archive(CODE, np.full((8, 8), 1000.0))
        with patch(GET, return_value=fake_response(200, archive)) as mock_get:
            tile = mock_manager.load_tile(CODE)
        mock_get.assert_called_once()
        assert tile.cell_value_at(0, 0) == 1000.0

    def test_download_failure(self, mock_manager):
        with patch(GET, return_value=fake_response(404)):
            with pytest.raises(TileFetchError):
                mock_manager.load_tile(CODE)
        assert CODE not in mock_manager.registry

    def test_tile_paths(self, mock_manager):
        paths = mock_manager.tile_paths(CODE)
        assert paths.base_name == "n41w106"
        assert paths.header_path.startswith(mock_manager.data_dir)


# ===================================================================
# Elevation
# ===================================================================


class TestElevationAt:
    def test_flat(self, mock_manager, flat_tile):
        assert mock_manager.elevation_at(*QTH) == pytest.approx(1000.0)

    def test_centre_value(self, mock_manager, ramp_tile):
        assert mock_manager.elevation_at(*cell_centre(2, 6)) == 206.0

    def test_loads_neighbouring_tile(self, mock_manager, two_tiles):
        lat, lon = cell_centre(3, 7)
        value = mock_manager.elevation_at(lat + OFFSET, lon + OFFSET)

        assert 1000.0 < value < 2000.0
        assert mock_manager.registry.codes == [EAST_CODE, CODE]

    def test_interior_point_loads_one_tile(self, mock_manager, two_tiles):
        mock_manager.elevation_at(*QTH)
        assert mock_manager.registry.codes == [CODE]

    def test_invalid_latitude(self, mock_manager):
        with pytest.raises(ValueError, match="Latitude"):
            mock_manager.elevation_at(91.0, -105.0)

    def test_invalid_longitude(self, mock_manager):
        with pytest.raises(ValueError, match="Longitude"):
            mock_manager.elevation_at(40.0, -181.0)

    @pytest.mark.parametrize("lat,lon", [(48.1, 11.6), (-33.9, -70.6)])
    def test_point_outside_tile_grid(self, mock_manager, lat, lon):
        with patch(GET) as mock_get:
            with pytest.raises(ValueError, match="tile grid"):
                mock_manager.elevation_at(lat, lon)
        mock_get.assert_not_called()


# ===================================================================
# Height field
# ===================================================================


class TestPrepareRegion:
    def test_loads_needed_tiles(self, mock_manager, flat_tile):
        assert mock_manager.prepare_region(QTH, 1000.0, 2) == [CODE]

    def test_clears_previous_tiles(self, mock_manager, two_tiles):
        mock_manager.load_tile(EAST_CODE)
        mock_manager.prepare_region(QTH, 1000.0, 2)
        assert EAST_CODE not in mock_manager.registry

    def test_spans_tiles(self, mock_manager, two_tiles):
        codes = mock_manager.prepare_region((40.5, -105.02), 4000.0, 2)
        assert codes == [EAST_CODE, CODE]

    @pytest.mark.parametrize(
        "radius_m,n_cells,match",
        [
            (0.0, 10, "radius_m must be > 0"),
            (-5.0, 10, "radius_m must be > 0"),
            (300_000.0, 10, "exceeds maximum"),
            (1000.0, 0, "n_cells"),
            (1000.0, 1001, "n_cells"),
        ],
    )
    def test_validation(self, mock_manager, radius_m, n_cells, match):
        with pytest.raises(ValueError, match=match):
            mock_manager.prepare_region(QTH, radius_m, n_cells)


class TestHeightFieldSync:
    def test_height_field(self, mock_manager, flat_tile):
        field = mock_manager.height_field(QTH, 1000.0, 2, antenna_height_m=5.0)
        assert isinstance(field, HeightField)
        assert field.distance_per_cell_m == 500.0
        assert field.height_at(0, 0) == pytest.approx(1005.0)
        assert field.nodata_cells == 0

    def test_field_next_to_tile_edge(self, mock_manager, two_tiles):
        # Every cell lies in n41w106, but east of its last column's centres
        qth = (40.5, -105.03)
        field = mock_manager.height_field(qth, 100.0, n_cells=1)

        assert EAST_CODE in mock_manager.registry
        assert field.nodata_cells == 0
        assert 1000.0 < field.raw_qth_height_m < 2000.0
        assert field.raw_qth_height_m == pytest.approx(mock_manager.elevation_at(*qth))

    def test_edge_tile_not_loaded_for_interior_field(self, mock_manager, two_tiles):
        mock_manager.height_field(QTH, 1000.0, 2)
        assert mock_manager.registry.codes == [CODE]


# ===================================================================
# Async API
# ===================================================================


class TestFetchTile:
    @pytest.mark.asyncio
    async def test_present(self, mock_manager, flat_tile):
        result = await mock_manager.fetch_tile(*QTH)
        assert isinstance(result, TileFetchResult)
        assert result.code == CODE
        assert result.base_name == "n41w106"
        assert result.downloaded is False
        assert result.data_path == flat_tile[1]

    @pytest.mark.asyncio
    async def test_downloaded(self, mock_manager):
        archive = gridfloat_archive(CODE, np.full((8, 8), 1000.0))
        with patch(GET, return_value=fake_response(200, archive)):
            result = await mock_manager.fetch_tile(*QTH)
        assert result.downloaded is True
        assert result.source_url.endswith("USGS_NED_13_n41w106_GridFloat.zip")

    @pytest.mark.asyncio
    async def test_info(self, mock_manager, holey_tile):
        info = await mock_manager.fetch_tile_info(*QTH)
        assert isinstance(info, TileInfoResult)
        assert info.ncols == 8
        assert info.nrows == 8
        assert info.cellsize == 0.125
        assert info.bounds == [-106.0, 40.0, -105.0, 41.0]
        assert info.nodata == -9999.0
        assert info.byteorder == "LSBFIRST"
        assert info.invalid_count == 1
        assert info.small_memory is False
        assert "Number of invalid data = 1" in info.description


class TestFetchPoint:
    @pytest.mark.asyncio
    async def test_point(self, mock_manager, flat_tile):
        result = await mock_manager.fetch_point(*QTH)
        assert isinstance(result, PointResult)
        assert result.elevation_m == pytest.approx(1000.0)
        assert result.tile == "n41w106"
        assert result.quadrant == "Q2"

    @pytest.mark.asyncio
    async def test_centre_quadrant(self, mock_manager, flat_tile):
        result = await mock_manager.fetch_point(*cell_centre(1, 1))
        assert result.quadrant == "Q0"
        assert result.elevation_m == 1000.0

    @pytest.mark.asyncio
    async def test_nodata(self, mock_manager, holey_tile):
        result = await mock_manager.fetch_point(*cell_centre(3, 3))
        assert result.elevation_m is None
        assert result.quadrant == "Q0"

    @pytest.mark.asyncio
    async def test_registry_cleared_by_another_task(self, mock_manager, flat_tile):
        with clear_registry_after_thread(mock_manager):
            result = await mock_manager.fetch_point(*QTH)

        assert result.elevation_m == pytest.approx(1000.0)
        assert result.quadrant == "Q2"

    @pytest.mark.asyncio
    async def test_invalid(self, mock_manager):
        with pytest.raises(ValueError):
            await mock_manager.fetch_point(95.0, -105.0)

    def test_point_elevation_sync(self, mock_manager, holey_tile):
        value, quadrant = mock_manager.point_elevation(*cell_centre(3, 3))
        assert value is None
        assert quadrant.name == "Q0"


class TestFetchPoints:
    @pytest.mark.asyncio
    async def test_points(self, mock_manager, ramp_tile):
        points = [list(cell_centre(1, 2)), list(cell_centre(5, 6))]
        result = await mock_manager.fetch_points(points)

        assert isinstance(result, MultiPointResult)
        assert result.elevations == [102.0, 506.0]
        assert result.tiles == ["n41w106", "n41w106"]
        assert result.elevation_range == [102.0, 506.0]
        assert result.nodata_points == 0

    @pytest.mark.asyncio
    async def test_some_without_data(self, mock_manager, holey_tile):
        points = [list(cell_centre(3, 3)), list(QTH)]
        result = await mock_manager.fetch_points(points)

        assert result.elevations[0] is None
        assert result.elevations[1] == pytest.approx(1000.0)
        assert result.nodata_points == 1

    @pytest.mark.asyncio
    async def test_all_without_data(self, mock_manager, holey_tile):
        result = await mock_manager.fetch_points([list(cell_centre(3, 3))])
        assert result.elevation_range == [0.0, 0.0]
        assert result.nodata_points == 1

    @pytest.mark.asyncio
    async def test_empty(self, mock_manager):
        with pytest.raises(ValueError, match="at least one"):
            await mock_manager.fetch_points([])

    @pytest.mark.asyncio
    async def test_bad_pair(self, mock_manager):
        with pytest.raises(ValueError, match="Point 0"):
            await mock_manager.fetch_points([[40.0, -105.0, 1.0]])

    @pytest.mark.asyncio
    async def test_too_many(self, mock_manager):
        with pytest.raises(ValueError, match="Too many points"):
            await mock_manager.fetch_points([[40.5, -105.5]] * 501)


class TestComputeHeightField:
    @pytest.mark.asyncio
    async def test_flat(self, mock_manager, flat_tile):
        result = await mock_manager.compute_height_field(
            lat=QTH[0], lon=QTH[1], radius_m=1000.0, n_cells=2, antenna_height_m=10.0
        )

        assert isinstance(result, HeightFieldResult)
        assert result.qth == [40.5, -105.5]
        assert result.distance_per_cell_m == 500.0
        assert len(result.heights) == 5
        assert all(len(row) == 5 for row in result.heights)
        assert result.heights[2][2] == pytest.approx(1010.0)
        assert result.tiles == ["n41w106"]
        assert result.nodata_cells == 0
        assert result.raw_qth_height_m == pytest.approx(1000.0)
        assert result.mean_height_above_terrain_m == pytest.approx(10.0, abs=0.5)
        assert result.value_range[1] == pytest.approx(1010.0)

    @pytest.mark.asyncio
    async def test_tiles_survive_registry_clear(self, mock_manager, flat_tile):
        with clear_registry_after_thread(mock_manager):
            result = await mock_manager.compute_height_field(
                lat=QTH[0], lon=QTH[1], radius_m=1000.0, n_cells=1
            )

        assert result.tiles == ["n41w106"]

    @pytest.mark.asyncio
    async def test_validation(self, mock_manager):
        with pytest.raises(ValueError, match="n_cells"):
            await mock_manager.compute_height_field(lat=40.5, lon=-105.5, radius_m=1000.0, n_cells=0)

    @pytest.mark.asyncio
    async def test_missing_tile_download_fails(self, mock_manager):
        with patch(GET, return_value=fake_response(404)):
            with pytest.raises(TileFetchError):
                await mock_manager.compute_height_field(lat=40.5, lon=-105.5, radius_m=1000.0, n_cells=2)
