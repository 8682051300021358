# world_synth/color_maps.py

"""
================================================================================
TILE RASTER UTILITIES
================================================================================
Converts synthesized grids into RGBA rasters and back. In a raster the RGB
channels encode the tile type and the alpha channel carries the elevation
(floor(elevation * 255)), which is the buffer form the generation boundary
may hand back instead of a cell grid.

It is designed to be a pure, stateless utility, usable by both the live
tile cache and the offline baker script.
================================================================================
"""
import os

import numpy as np
from PIL import Image

from . import config as DEFAULTS
from .generator import TerrainGrid, TileType

# --- Fixed Tile Colors ---
COLOR_OBJECT = (255, 220, 60)
COLOR_PATH = (180, 150, 100)
COLOR_RIVER = (70, 160, 180)
COLOR_SNOW = (240, 245, 250)
COLOR_BRIDGE = (140, 110, 70)

# Reference colors for decoding a raster. Order breaks ties.
CLASSIFY_TARGETS = (
    (TileType.OBJECT, COLOR_OBJECT),
    (TileType.PATH, COLOR_PATH),
    (TileType.RIVER, COLOR_RIVER),
    (TileType.WATER, (30, 80, 140)),
    (TileType.SNOW, COLOR_SNOW),
    (TileType.FOREST, (60, 120, 50)),
    (TileType.MOUNTAIN, (130, 125, 120)),
    (TileType.GROUND, (160, 140, 100)),
)

def _stack_rgb(r, g, b) -> np.ndarray:
    return np.stack([np.floor(r), np.floor(g), np.floor(b)], axis=-1)

def rasterize(grid: TerrainGrid) -> np.ndarray:
    """
    Renders a grid to a (size, size, 4) uint8 RGBA array indexed [y, x].
    Water shades by depth, mountains by mask strength, forest and ground by
    moisture; path, river, snow and object use flat colors.
    """
    tile_type = grid.tile_type
    elevation = grid.elevation
    moisture = grid.moisture

    # 1. Shaded colors for every cell, selected by type below.
    depth = elevation / max(0.01, grid.water_level)
    water_rgb = _stack_rgb(20 + depth * 15, 60 + depth * 25, 120 + depth * 25)

    m_blend = np.clip(grid.mountain, 0, 1)
    mountain_rgb = _stack_rgb(100 + m_blend * 50, 95 + m_blend * 50, 90 + m_blend * 60)

    f_moist = moisture * 0.3
    forest_rgb = _stack_rgb(45 + f_moist * 25, 100 + moisture * 35, 40 + f_moist * 20)

    g_moist = moisture * 0.25
    ground_rgb = _stack_rgb(
        145 + elevation * 20 - g_moist * 20,
        125 + elevation * 15 + g_moist * 15,
        85 + g_moist * 20,
    )

    # 2. Pick per type.
    flat = {
        TileType.OBJECT: COLOR_OBJECT,
        TileType.PATH: COLOR_PATH,
        TileType.RIVER: COLOR_RIVER,
        TileType.SNOW: COLOR_SNOW,
        TileType.BRIDGE: COLOR_BRIDGE,
        TileType.VOID: (0, 0, 0),
    }
    rgb = ground_rgb
    rgb = np.where((tile_type == TileType.FOREST)[..., np.newaxis], forest_rgb, rgb)
    rgb = np.where((tile_type == TileType.MOUNTAIN)[..., np.newaxis], mountain_rgb, rgb)
    rgb = np.where((tile_type == TileType.WATER)[..., np.newaxis], water_rgb, rgb)
    for kind, color in flat.items():
        rgb = np.where((tile_type == kind)[..., np.newaxis], np.array(color, dtype=np.float64), rgb)

    # 3. Elevation in the alpha channel.
    alpha = np.floor(np.clip(elevation, 0, 1) * 255)
    alpha = np.where(tile_type == TileType.VOID, 0, alpha)

    rgba = np.concatenate([np.clip(rgb, 0, 255), alpha[..., np.newaxis]], axis=-1)
    return rgba.astype(np.uint8)

def classify_raster(rgba: np.ndarray, max_distance: float = DEFAULTS.RASTER_MATCH_DISTANCE) -> np.ndarray:
    """
    Decodes tile types from an RGBA raster by nearest reference color.
    Pixels farther than `max_distance` from every reference read as ground.
    """
    rgb = np.asarray(rgba, dtype=np.float64)[..., :3]
    targets = np.array([color for _, color in CLASSIFY_TARGETS], dtype=np.float64)
    kinds = np.array([int(kind) for kind, _ in CLASSIFY_TARGETS], dtype=np.uint8)

    distances = np.sqrt(((rgb[..., np.newaxis, :] - targets) ** 2).sum(axis=-1))
    nearest = np.argmin(distances, axis=-1)
    nearest_distance = np.take_along_axis(distances, nearest[..., np.newaxis], axis=-1)[..., 0]

    return np.where(nearest_distance <= max_distance, kinds[nearest], np.uint8(TileType.GROUND)).astype(np.uint8)

def decode_elevation(rgba: np.ndarray) -> np.ndarray:
    """Elevation in [0, 1] from the alpha channel."""
    return np.asarray(rgba, dtype=np.float64)[..., 3] / 255.0

def save_tile_png(rgba: np.ndarray, directory: str, file_hash: str) -> str:
    """
    Saves a tile raster using a tiered compression strategy with
    Pillow. Returns the tier used: 'uniform', 'palettized' or 'full'.
    """
    os.makedirs(directory, exist_ok=True)
    file_path = os.path.join(directory, f"{file_hash}.png")

    # Tier 1: Perfectly uniform tile.
    if (rgba == rgba[0, 0]).all():
        img = Image.new('RGBA', (1, 1), tuple(int(c) for c in rgba[0, 0]))
        img.save(file_path, 'PNG')
        return 'uniform'

    img = Image.fromarray(np.ascontiguousarray(rgba))

    # Tier 2: Few enough colors for a palette.
    colors = img.getcolors(257)
    if colors and len(colors) <= 256:
        img = img.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
        img.save(file_path, 'PNG')
        return 'palettized'

    # Tier 3: Full RGBA.
    img.save(file_path, 'PNG')
    return 'full'
