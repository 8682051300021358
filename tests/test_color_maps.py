import os

import numpy as np
import pytest
from PIL import Image

from world_synth.color_maps import classify_raster, decode_elevation, rasterize, save_tile_png
from world_synth.executor import build_tile
from world_synth.generator import TileType

GRID_SIZE = 16


@pytest.fixture(scope="module")
def tile():
    return build_tile((0, 0), 12345, [50] * 10, grid_size=GRID_SIZE)


def test_rasterize_shape_and_alpha(tile):
    rgba = rasterize(tile.grid)
    assert rgba.shape == (GRID_SIZE, GRID_SIZE, 4)
    assert rgba.dtype == np.uint8
    expected = np.floor(tile.grid.elevation * 255).astype(np.uint8)
    assert np.array_equal(rgba[..., 3], expected), "Alpha must carry floor(elevation * 255)"


def test_classify_raster_recovers_flat_colored_cells(tile):
    rgba = rasterize(tile.grid)
    decoded = classify_raster(rgba)
    for kind in (TileType.OBJECT, TileType.PATH, TileType.RIVER):
        cells = tile.grid.tile_type == kind
        assert np.all(decoded[cells] == kind), f"{kind.name} cells decoded incorrectly"


def test_decode_elevation_within_one_step(tile):
    decoded = decode_elevation(rasterize(tile.grid))
    assert np.all(np.abs(decoded - tile.grid.elevation) <= 1 / 255 + 1e-9)


def test_save_uniform_tile(tmp_path):
    rgba = np.full((4, 4, 4), 7, dtype=np.uint8)
    assert save_tile_png(rgba, str(tmp_path), "uniform") == 'uniform'
    with Image.open(os.path.join(tmp_path, "uniform.png")) as img:
        assert img.size == (1, 1), "Uniform tiles collapse to a single pixel"


def test_save_palettized_tile(tmp_path):
    rgba = np.zeros((8, 8, 4), dtype=np.uint8)
    rgba[:4] = (10, 20, 30, 255)
    rgba[4:] = (200, 100, 50, 128)
    assert save_tile_png(rgba, str(tmp_path), "two_colors") == 'palettized'
    assert os.path.exists(os.path.join(tmp_path, "two_colors.png"))


def test_save_full_tile(tmp_path):
    rgba = np.random.default_rng(0).integers(0, 256, size=(32, 32, 4), dtype=np.uint8)
    assert save_tile_png(rgba, str(tmp_path / "nested"), "noisy") == 'full'
    with Image.open(os.path.join(tmp_path, "nested", "noisy.png")) as img:
        assert img.size == (32, 32)
