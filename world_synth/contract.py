# world_synth/contract.py

"""
================================================================================
DETERMINISM CONTRACT & VERIFICATION
================================================================================
Fingerprints and checks for synthesized tiles: a sha256 content hash over the
grid arrays, a djb2 pixel hash over the RGBA raster, a world hash over every
cell plus the object and spawn, the seed-derived spawn point, per-type tile
counts and the determinism / version-comparison reports.

Data Contract:
---------------
- Inputs: TerrainGrid / Tile objects, or (seed, macro) pairs to regenerate.
- Outputs: Hex digests and small frozen report records.
- Side Effects: None.
- Invariants: Every hash depends only on the grid content and the inputs
  named in its signature.
================================================================================
"""

import hashlib
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from . import config as DEFAULTS
from .color_maps import rasterize
from .generator import TerrainGrid, TileType

_UINT32_MASK = 0xFFFFFFFF

# ============================================
# HASHES
# ============================================

def _djb2_hex(data) -> str:
    """djb2 over a byte or text sequence, as 8 uppercase hex digits."""
    h = 5381
    if isinstance(data, str):
        for char in data:
            h = ((h * 33) & _UINT32_MASK) ^ ord(char)
    else:
        for byte in bytes(data):
            h = ((h * 33) & _UINT32_MASK) ^ byte
    return f"{h & _UINT32_MASK:08X}"

def compute_content_hash(grid: TerrainGrid) -> str:
    """sha256 over the stored grid arrays."""
    digest = hashlib.sha256()
    digest.update(np.int64(grid.grid_size).tobytes())
    for array in (grid.elevation, grid.moisture, grid.tile_type, grid.river, grid.path, grid.mountain):
        digest.update(np.ascontiguousarray(array).tobytes())
    return digest.hexdigest()

def compute_pixel_hash(rgba: np.ndarray) -> str:
    """djb2 over the RGBA raster bytes."""
    return _djb2_hex(np.ascontiguousarray(rgba, dtype=np.uint8).tobytes())

# ============================================
# SPAWN & OBJECT
# ============================================

def _to_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - (1 << 32) if value & 0x80000000 else value

def _trunc_mod(value: int, divisor: int) -> int:
    """Remainder with the sign of the dividend."""
    return int(math.fmod(value, divisor))

@dataclass(frozen=True)
class SpawnPoint:
    x: int
    y: int
    rotation_y: float

def find_spawn_point(grid: TerrainGrid, seed: int) -> SpawnPoint:
    """
    Seed-offset spawn near the grid center, stepped along the row (wrapping
    into the next row) until it leaves water or runs out of attempts. The
    rotation faces the grid center.
    """
    gs = grid.grid_size
    offset_x = (_trunc_mod(seed, 100) / 100 - 0.5) * 20
    offset_y = (_trunc_mod(_to_int32(seed) >> 8, 100) / 100 - 0.5) * 20

    padding = DEFAULTS.SPAWN_EDGE_PADDING
    spawn_x = max(padding, min(gs - 1 - padding, math.floor(gs / 2 + offset_x)))
    spawn_y = max(padding, min(gs - 1 - padding, math.floor(gs / 2 + offset_y)))

    attempts = 0
    while grid.cell(spawn_x, spawn_y).tile_type == TileType.WATER and attempts < DEFAULTS.SPAWN_MAX_ATTEMPTS:
        spawn_x = (spawn_x + 1) % gs
        if spawn_x == 0:
            spawn_y = (spawn_y + 1) % gs
        attempts += 1

    rotation_y = math.atan2(gs / 2 - spawn_x, gs / 2 - spawn_y)
    return SpawnPoint(spawn_x, spawn_y, rotation_y)

def find_object(grid: TerrainGrid) -> Tuple[int, int]:
    """Position of the landmark cell; the grid center when there is none."""
    positions = np.argwhere(grid.tile_type == TileType.OBJECT)
    if len(positions) == 0:
        return grid.grid_size // 2, grid.grid_size // 2
    y, x = positions[-1]
    return int(x), int(y)

def landmark_type(vars) -> int:
    value = vars[0] if len(vars) > 0 else 50
    return math.floor(value / 100 * 5)

def compute_world_hash(seed: int, vars, grid: TerrainGrid, spawn: Optional[SpawnPoint] = None) -> str:
    """
    djb2 over SEED|VARS|x,y:elevation:type...|OBJ|SPAWN. Changes whenever any
    cell's elevation (to 4 decimals) or type changes.
    """
    if spawn is None:
        spawn = find_spawn_point(grid, seed)
    obj_x, obj_y = find_object(grid)

    terrain = "|".join(
        f"{cell.x},{cell.y}:{cell.elevation:.4f}:{cell.tile_type.name.lower()}"
        for cell in grid.cells()
    )
    obj_z = grid.cell(obj_x, obj_y).elevation
    spawn_z = grid.cell(spawn.x, spawn.y).elevation
    object_text = f"OBJ:{obj_x},{obj_y},{obj_z:.2f},{landmark_type(vars)}"
    spawn_text = f"SPAWN:{spawn.x},{spawn.y},{spawn_z:.2f},{spawn.rotation_y:.4f}"
    vars_text = ",".join(str(v) for v in vars)

    return _djb2_hex(f"SEED:{seed}|VARS:{vars_text}|{terrain}|{object_text}|{spawn_text}")

# ============================================
# COUNTS & VERIFICATION
# ============================================

@dataclass(frozen=True)
class TileCounts:
    water: int = 0
    ground: int = 0
    forest: int = 0
    mountain: int = 0
    path: int = 0
    bridge: int = 0
    river: int = 0
    object: int = 0
    void: int = 0
    snow: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, kind.name.lower()) for kind in TileType)

def count_tiles(grid: TerrainGrid) -> TileCounts:
    counts = Counter(int(v) for v in np.asarray(grid.tile_type).ravel())
    return TileCounts(**{kind.name.lower(): counts.get(int(kind), 0) for kind in TileType})

@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()

def verify_grid(grid: TerrainGrid) -> VerificationResult:
    """Checks the structural invariants every synthesized grid must satisfy."""
    errors = []
    tile_type = grid.tile_type
    water = tile_type == TileType.WATER

    if np.any(grid.river & grid.path):
        errors.append("river cell marked as path")
    if np.any(grid.path & water):
        errors.append("path cell on water")
    if np.any(tile_type == TileType.BRIDGE):
        errors.append("bridge cell emitted")
    if np.any(tile_type == TileType.VOID):
        errors.append("void cell inside grid")
    if np.any(grid.elevation[water] >= grid.water_level):
        errors.append("water cell at or above water level")
    if np.any((grid.elevation < 0) | (grid.elevation > 1)):
        errors.append("elevation out of [0, 1]")
    if np.count_nonzero(tile_type == TileType.OBJECT) > 1:
        errors.append("more than one object cell")

    return VerificationResult(is_valid=not errors, errors=tuple(errors))

def verify_tile(tile) -> VerificationResult:
    """verify_grid plus a check that the stored hashes match the grid."""
    result = verify_grid(tile.grid)
    errors = list(result.errors)
    if compute_content_hash(tile.grid) != tile.content_hash:
        errors.append("content hash mismatch")
    if compute_pixel_hash(rasterize(tile.grid)) != tile.pixel_hash:
        errors.append("pixel hash mismatch")
    return VerificationResult(is_valid=not errors, errors=tuple(errors))

@dataclass(frozen=True)
class DeterminismReport:
    is_deterministic: bool
    hashes: Tuple[str, ...] = field(default_factory=tuple)

def verify_determinism(seed: int, macro, iterations: int = 3,
                       mapping_version: str = DEFAULTS.DEFAULT_MAPPING_VERSION,
                       grid_size: int = DEFAULTS.GRID_SIZE) -> DeterminismReport:
    """Regenerates the same tile `iterations` times and compares world hashes."""
    from .executor import build_tile

    hashes: List[str] = []
    for _ in range(iterations):
        tile = build_tile((0, 0), seed, macro, None, mapping_version, grid_size)
        hashes.append(compute_world_hash(seed, tile.vars, tile.grid))
    return DeterminismReport(is_deterministic=len(set(hashes)) <= 1, hashes=tuple(hashes))

@dataclass(frozen=True)
class VersionComparison:
    v1_hash: str
    v2_hash: str
    archetype: Optional[str]
    identical: bool
    v1_counts: TileCounts
    v2_counts: TileCounts

def compare_versions(seed: int, macro, grid_size: int = DEFAULTS.GRID_SIZE) -> VersionComparison:
    """Synthesizes the same (seed, macro) through the v1 and v2 mappings."""
    from .executor import build_tile

    v1_tile = build_tile((0, 0), seed, macro, None, "v1", grid_size)
    v2_tile = build_tile((0, 0), seed, macro, None, "v2", grid_size)
    v1_hash = compute_world_hash(seed, v1_tile.vars, v1_tile.grid)
    v2_hash = compute_world_hash(seed, v2_tile.vars, v2_tile.grid)
    return VersionComparison(
        v1_hash=v1_hash,
        v2_hash=v2_hash,
        archetype=v2_tile.archetype,
        identical=v1_hash == v2_hash,
        v1_counts=count_tiles(v1_tile.grid),
        v2_counts=count_tiles(v2_tile.grid),
    )
