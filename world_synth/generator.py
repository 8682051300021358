# world_synth/generator.py

"""
================================================================================
TERRAIN FIELD SYNTHESIS
================================================================================
This module contains the TerrainSynthesizer class, which turns a numeric
terrain recipe and a seed into a fully classified tile grid: layered noise
elevation, a clustered mountain mask, a wandering path network, a
valley-constrained river mask and the final per-cell tile types.

Data Contract:
---------------
- Inputs (on initialization):
    - config (dict): Overrides for the synthesis thresholds in config.py.
    - logger: A configured Python logging object for runtime messages.
- Inputs (per call):
    - recipe (TerrainRecipe): Built by `recipe_from_resolved` (v2 / unified)
      or `recipe_from_v1` (legacy).
    - seed (int): The world seed.
    - fields (DerivedFields, optional): Wetness/temperature/ruggedness arrays.
- Outputs:
    - TerrainGrid: Read-only NumPy arrays indexed [y, x].
- Side Effects: Logs messages using the provided logger.
- Invariants:
    - Given the same recipe, seed and fields, the output is identical.
    - Water cells have elevation < water_level; dry cells sit at least
      SHORE_LIFT above it.
    - A river cell is never a path cell; a path cell is never water.
    - Mountain and snow flags derive from the stored mountain mask.
================================================================================
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np
from scipy.ndimage import maximum_filter

from . import config as DEFAULTS
from .curves import map_var
from .fields import DerivedFields
from .mapping_unified import MAPPING_VERSION as UNIFIED_MAPPING_VERSION
from .mapping_unified import path_wear as unified_path_wear
from .mapping_v1 import V1Params, map_v1_vars
from .mapping_v2 import ResolvedParams
from .noise import build_permutation_table, hash_values, unit_noise_grid, unit_noise_point

class TileType(IntEnum):
    WATER = 0
    GROUND = 1
    FOREST = 2
    MOUNTAIN = 3
    PATH = 4
    BRIDGE = 5  # reserved: paths stop at water, so no bridge is ever emitted
    RIVER = 6
    OBJECT = 7
    VOID = 8
    SNOW = 9

# ============================================
# RECIPE
# ============================================

@dataclass(frozen=True)
class TerrainRecipe:
    """Every number the synthesizer consumes, in the units it consumes them."""
    grid_size: int
    archetype: Optional[str]
    continent_scale: float
    water_level: float
    forest_density: float
    mountain_peak_height: float
    mountain_density: float
    path_density: float
    path_wear: float
    terrain_roughness: float
    obj_x: int
    obj_y: int
    river_threshold: float
    river_width: float
    lake_tendency: float
    wetland_spread: float
    erosion_strength: float
    coastline_complexity: float
    plateau_size: float
    valley_depth: float
    ridge_sharpness: float
    biome_patchiness: float
    tree_variety: float
    meadow_frequency: float
    central_mass_bias: float = 0.0
    basin_inversion: float = 0.0
    island_fragmentation: float = 0.0

def _constrain_water_level(value: float) -> float:
    return max(DEFAULTS.WATER_LEVEL_MIN, min(DEFAULTS.WATER_LEVEL_MAX, value))

def recipe_from_resolved(params: ResolvedParams, grid_size: int = DEFAULTS.GRID_SIZE) -> TerrainRecipe:
    """
    Builds the recipe for a v2 (or unified) resolution. Water level, peak
    height and density already carry the archetype modifiers; the structural
    shaping below (central mass, basin inversion, fragmentation and the
    micro multipliers) is applied here.
    """
    structure = params.structure
    hydrology = params.hydrology
    biome = params.biome
    detail = params.detail
    v = params.vars

    plateau_size = structure.plateau_size
    valley_depth = structure.valley_depth * 0.4
    ridge_sharpness = structure.ridge_sharpness
    erosion_strength = structure.erosion_strength * 0.6
    coastline_complexity = 0.02 + structure.coastline_complexity * 0.13
    lake_tendency = hydrology.lake_tendency * 0.4
    biome_patchiness = biome.biome_patchiness
    terrain_roughness = detail.terrain_roughness
    central_mass_bias = 0.0
    basin_inversion = 0.0
    island_fragmentation = 0.0

    archetype = params.archetype
    if archetype == "plateau":
        central_mass_bias = 0.25
        plateau_size = plateau_size * 1.5 + 0.3
    elif archetype == "basin":
        basin_inversion = 0.6
        valley_depth = valley_depth * 1.5 + 0.2
    elif archetype == "ridged":
        ridge_sharpness = ridge_sharpness * 1.4
        central_mass_bias = -0.1
    elif archetype == "fractured":
        erosion_strength = erosion_strength * 1.5 + 0.2
        coastline_complexity = coastline_complexity * 1.6
        biome_patchiness = biome_patchiness * 1.4
    elif archetype == "archipelago":
        island_fragmentation = 0.7
        coastline_complexity = coastline_complexity * 2.0 + 0.05
        lake_tendency = lake_tendency * 0.3
    elif archetype == "coastal":
        central_mass_bias = 0.35
        coastline_complexity = coastline_complexity * 1.5 + 0.03
    elif archetype == "highlands":
        terrain_roughness = terrain_roughness * 1.3
        valley_depth = valley_depth * 0.6

    if params.mapping_version == UNIFIED_MAPPING_VERSION:
        wear = unified_path_wear(params.macro, params.seed)
    else:
        wear = map_var(v[7], 0.5, 2.0)

    return TerrainRecipe(
        grid_size=grid_size,
        archetype=archetype,
        continent_scale=structure.continent_scale,
        water_level=_constrain_water_level(hydrology.sea_level),
        forest_density=biome.forest_density,
        mountain_peak_height=structure.mountain_peak_height,
        mountain_density=structure.mountain_density,
        path_density=detail.path_density,
        path_wear=wear,
        terrain_roughness=terrain_roughness,
        obj_x=math.floor(map_var(v[1], 4, grid_size - 4)),
        obj_y=math.floor(map_var(v[2], 4, grid_size - 4)),
        river_threshold=hydrology.river_threshold,
        river_width=hydrology.river_width,
        lake_tendency=lake_tendency,
        wetland_spread=hydrology.wetland_spread,
        erosion_strength=erosion_strength,
        coastline_complexity=coastline_complexity,
        plateau_size=plateau_size,
        valley_depth=valley_depth,
        ridge_sharpness=ridge_sharpness,
        biome_patchiness=biome_patchiness,
        tree_variety=biome.tree_variety,
        meadow_frequency=biome.meadow_frequency,
        central_mass_bias=central_mass_bias,
        basin_inversion=basin_inversion,
        island_fragmentation=island_fragmentation,
    )

def recipe_from_v1(params: V1Params, grid_size: int = DEFAULTS.GRID_SIZE) -> TerrainRecipe:
    """Legacy recipe: linear macro mapping, micro layer held at its defaults, no archetype."""
    mapped = map_v1_vars(params.vars, grid_size)
    return TerrainRecipe(
        grid_size=grid_size,
        archetype=None,
        continent_scale=mapped.continent_scale,
        water_level=_constrain_water_level(mapped.water_level),
        forest_density=mapped.forest_density,
        mountain_peak_height=mapped.mountain_peak_height,
        mountain_density=mapped.mountain_density,
        path_density=mapped.path_density,
        path_wear=mapped.path_wear,
        terrain_roughness=mapped.terrain_roughness,
        obj_x=mapped.obj_x,
        obj_y=mapped.obj_y,
        river_threshold=0.018,
        river_width=1.0,
        lake_tendency=0.15,
        wetland_spread=0.08,
        erosion_strength=0.3,
        coastline_complexity=0.06,
        plateau_size=0.3,
        valley_depth=0.2,
        ridge_sharpness=1.0,
        biome_patchiness=0.06,
        tree_variety=0.6,
        meadow_frequency=0.2,
    )

# ============================================
# GRID
# ============================================

@dataclass(frozen=True)
class TerrainCell:
    x: int
    y: int
    elevation: float
    moisture: float
    tile_type: TileType
    has_river: bool
    is_path: bool
    is_bridge: bool = False

@dataclass(frozen=True)
class TerrainGrid:
    """
    A synthesized tile. Every array is (grid_size, grid_size), indexed
    [y, x], and has its write flag cleared.
    """
    elevation: np.ndarray
    moisture: np.ndarray
    tile_type: np.ndarray
    river: np.ndarray
    path: np.ndarray
    mountain: np.ndarray
    water_level: float

    def __post_init__(self):
        for array in (self.elevation, self.moisture, self.tile_type, self.river, self.path, self.mountain):
            array.flags.writeable = False

    @property
    def grid_size(self) -> int:
        return self.tile_type.shape[0]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.grid_size and 0 <= y < self.grid_size

    def cell(self, x: int, y: int) -> TerrainCell:
        """Bounds-checked access. Out-of-range coordinates read as a VOID cell."""
        if not self.in_bounds(x, y):
            return TerrainCell(x, y, 0.0, 0.0, TileType.VOID, False, False, False)
        return TerrainCell(
            x=x,
            y=y,
            elevation=float(self.elevation[y, x]),
            moisture=float(self.moisture[y, x]),
            tile_type=TileType(int(self.tile_type[y, x])),
            has_river=bool(self.river[y, x]),
            is_path=bool(self.path[y, x]),
        )

    def cells(self):
        """Yields every cell in row-major order."""
        for y in range(self.grid_size):
            for x in range(self.grid_size):
                yield self.cell(x, y)

@dataclass(frozen=True)
class SeedOffsets:
    a: float
    b: float
    c: float
    d: float
    e: float
    ridge_direction: float

def dilate_river_strength(strength: np.ndarray, width: float) -> np.ndarray:
    """
    Widens a river strength field: every cell takes the strongest neighbor
    within `width` cells, attenuated by 1 - d / (width + 0.5). Cells outside
    the grid count as zero.
    """
    radius = int(np.floor(width))
    dy, dx = np.mgrid[-radius:radius + 1, -radius:radius + 1]
    distance = np.sqrt(dx * dx + dy * dy)

    dilated = strength.copy()
    for ring in np.unique(distance[distance <= width]):
        if ring == 0:
            continue
        falloff = 1.0 - ring / (width + 0.5)
        nearest = maximum_filter(strength, footprint=distance == ring, mode='constant', cval=0.0)
        dilated = np.maximum(dilated, nearest * falloff)
    return dilated

# ============================================
# SYNTHESIZER
# ============================================

class TerrainSynthesizer:
    """
    Synthesizes tile grids from terrain recipes. Stateless between calls;
    the settings only hold thresholds and noise octave parameters.
    """
    def __init__(self, config: dict, logger: logging.Logger = None, permutation_table: np.ndarray = None):
        """
        Initializes the synthesizer.

        Args:
            config (dict): User-defined parameters to override defaults.
            logger (logging.Logger): The logger instance for all output.
            permutation_table (np.ndarray, optional): A pre-computed noise
                permutation table used for every seed. If None, a table is
                built from each call's seed.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config or {}

        # --- Consolidate Configuration ---
        self.settings = {
            'noise_octaves': self.user_config.get('noise_octaves', DEFAULTS.UNIT_NOISE_OCTAVES),
            'noise_persistence': self.user_config.get('noise_persistence', DEFAULTS.UNIT_NOISE_PERSISTENCE),
            'noise_lacunarity': self.user_config.get('noise_lacunarity', DEFAULTS.UNIT_NOISE_LACUNARITY),
            'noise_offset_range': self.user_config.get('noise_offset_range', DEFAULTS.NOISE_OFFSET_RANGE),

            'base_floor': self.user_config.get('base_floor', DEFAULTS.BASE_FLOOR),
            'shore_lift': self.user_config.get('shore_lift', DEFAULTS.SHORE_LIFT),
            'erosion_min_strength': self.user_config.get('erosion_min_strength', DEFAULTS.EROSION_MIN_STRENGTH),
            'lake_min_tendency': self.user_config.get('lake_min_tendency', DEFAULTS.LAKE_MIN_TENDENCY),
            'lake_shore_cap': self.user_config.get('lake_shore_cap', DEFAULTS.LAKE_SHORE_CAP),
            'lake_surface_drop': self.user_config.get('lake_surface_drop', DEFAULTS.LAKE_SURFACE_DROP),

            'mountain_region_threshold_base': self.user_config.get('mountain_region_threshold_base', DEFAULTS.MOUNTAIN_REGION_THRESHOLD_BASE),
            'mountain_region_threshold_slope': self.user_config.get('mountain_region_threshold_slope', DEFAULTS.MOUNTAIN_REGION_THRESHOLD_SLOPE),
            'mountain_region_power': self.user_config.get('mountain_region_power', DEFAULTS.MOUNTAIN_REGION_POWER),
            'patch_min_region': self.user_config.get('patch_min_region', DEFAULTS.PATCH_MIN_REGION),
            'range_min_region': self.user_config.get('range_min_region', DEFAULTS.RANGE_MIN_REGION),
            'range_segment_min_region': self.user_config.get('range_segment_min_region', DEFAULTS.RANGE_SEGMENT_MIN_REGION),
            'mountain_mask_threshold': self.user_config.get('mountain_mask_threshold', DEFAULTS.MOUNTAIN_MASK_THRESHOLD),
            'snow_mask_threshold': self.user_config.get('snow_mask_threshold', DEFAULTS.SNOW_MASK_THRESHOLD),
            'snow_min_peak_height': self.user_config.get('snow_min_peak_height', DEFAULTS.SNOW_MIN_PEAK_HEIGHT),
            'snow_min_shape': self.user_config.get('snow_min_shape', DEFAULTS.SNOW_MIN_SHAPE),
            'forest_max_mountain_mask': self.user_config.get('forest_max_mountain_mask', DEFAULTS.FOREST_MAX_MOUNTAIN_MASK),

            'path_core_value': self.user_config.get('path_core_value', DEFAULTS.PATH_CORE_VALUE),
            'path_shoulder_value': self.user_config.get('path_shoulder_value', DEFAULTS.PATH_SHOULDER_VALUE),
            'path_branch_value': self.user_config.get('path_branch_value', DEFAULTS.PATH_BRANCH_VALUE),
            'path_tile_threshold': self.user_config.get('path_tile_threshold', DEFAULTS.PATH_TILE_THRESHOLD),
            'path_shoulder_min_wear': self.user_config.get('path_shoulder_min_wear', DEFAULTS.PATH_SHOULDER_MIN_WEAR),
            'path_branch_min_density': self.user_config.get('path_branch_min_density', DEFAULTS.PATH_BRANCH_MIN_DENSITY),

            'river_valley_cap': self.user_config.get('river_valley_cap', DEFAULTS.RIVER_VALLEY_CAP),
            'river_noise_frequency': self.user_config.get('river_noise_frequency', DEFAULTS.RIVER_NOISE_FREQUENCY),
            'river_dilation_min_width': self.user_config.get('river_dilation_min_width', DEFAULTS.RIVER_DILATION_MIN_WIDTH),
            'river_strength_cutoff': self.user_config.get('river_strength_cutoff', DEFAULTS.RIVER_STRENGTH_CUTOFF),

            'moisture_shore_band': self.user_config.get('moisture_shore_band', DEFAULTS.MOISTURE_SHORE_BAND),
            'moisture_shore_boost': self.user_config.get('moisture_shore_boost', DEFAULTS.MOISTURE_SHORE_BOOST),
            'forest_moisture_floor': self.user_config.get('forest_moisture_floor', DEFAULTS.FOREST_MOISTURE_FLOOR),
            'meadow_min_frequency': self.user_config.get('meadow_min_frequency', DEFAULTS.MEADOW_MIN_FREQUENCY),
        }

        self._injected_p = permutation_table
        if permutation_table is not None:
            self.logger.debug("Initialized with injected permutation table.")

    # --- Noise helpers ---

    def _permutation_table(self, seed: int) -> np.ndarray:
        if self._injected_p is not None:
            return self._injected_p
        return build_permutation_table(seed)

    def _seed_offsets(self, seed: int) -> SeedOffsets:
        offset_range = self.settings['noise_offset_range']
        rng = np.random.default_rng(hash_values(seed, "offsets"))
        a, b, c, d, e = rng.uniform(0.0, offset_range, size=5)
        return SeedOffsets(float(a), float(b), float(c), float(d), float(e), float(rng.uniform(0.0, 2 * math.pi)))

    def _noise(self, p: np.ndarray, x: float, y: float = 0.0) -> float:
        return float(unit_noise_point(
            p, float(x), float(y),
            self.settings['noise_octaves'],
            self.settings['noise_persistence'],
            self.settings['noise_lacunarity'],
        ))

    def _noise_grid(self, p: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        x, y = np.broadcast_arrays(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
        return unit_noise_grid(
            p, np.ascontiguousarray(x), np.ascontiguousarray(y),
            self.settings['noise_octaves'],
            self.settings['noise_persistence'],
            self.settings['noise_lacunarity'],
        )

    # --- Main entry point ---

    def synthesize(self, recipe: TerrainRecipe, seed: int, fields: Optional[DerivedFields] = None) -> TerrainGrid:
        """
        Runs the full synthesis pipeline for one tile.

        Args:
            recipe (TerrainRecipe): The numeric recipe.
            seed (int): The world seed.
            fields (DerivedFields, optional): When given, wetness scales the
                forest threshold, temperature scales meadow frequency and
                ruggedness scales the detail amplitude.

        Returns:
            TerrainGrid: The classified, read-only tile.
        """
        start_time = time.perf_counter()
        gs = recipe.grid_size
        p = self._permutation_table(seed)
        offsets = self._seed_offsets(seed)

        gy, gx = np.mgrid[0:gs, 0:gs].astype(np.float64)

        # 1. Path network (sequential walkers).
        path_grid = self._build_path_grid(recipe, p, offsets)

        # 2. Mountain region mask, then patch/range contribution mask.
        region_mask = self._build_region_mask(recipe, p, offsets, gx, gy)
        mountain_mask = self._build_mountain_mask(recipe, p, offsets, region_mask, gx, gy)

        # 3. Elevation, water and the shore lift.
        shaped, mountain_shape = self._build_elevation(recipe, p, offsets, mountain_mask, fields, gx, gy)
        water, elevation = self._apply_water(recipe, p, offsets, shaped, gx, gy)

        # 4. Moisture and vegetation.
        moisture = self._build_moisture(recipe, p, offsets, water, elevation, gx, gy)
        is_forest = self._build_forest(recipe, p, offsets, water, moisture, mountain_mask, fields, gx, gy)

        # 5. Mountain, snow and path flags.
        is_mountain = (mountain_mask > self.settings['mountain_mask_threshold']) & ~water
        is_snow = (
            (mountain_mask > self.settings['snow_mask_threshold'])
            & (recipe.mountain_peak_height > self.settings['snow_min_peak_height'])
            & (mountain_shape > self.settings['snow_min_shape'])
        )
        on_path = path_grid > self.settings['path_tile_threshold']
        is_path = on_path & ~water
        is_object = (gx == recipe.obj_x) & (gy == recipe.obj_y)

        # 6. Valley-constrained rivers.
        river = self._build_river_mask(recipe, p, offsets, water, elevation, on_path, mountain_mask, gx, gy)

        # 7. Classification by fixed priority.
        tile_type = np.select(
            [is_object, is_path, river, water, is_snow, is_mountain, is_forest],
            [TileType.OBJECT, TileType.PATH, TileType.RIVER, TileType.WATER,
             TileType.SNOW, TileType.MOUNTAIN, TileType.FOREST],
            default=TileType.GROUND,
        ).astype(np.uint8)

        grid = TerrainGrid(
            elevation=elevation,
            moisture=moisture,
            tile_type=tile_type,
            river=river,
            path=is_path,
            mountain=mountain_mask,
            water_level=recipe.water_level,
        )
        self.logger.debug(
            f"Synthesized {gs}x{gs} tile (seed {seed}, archetype {recipe.archetype}) "
            f"in {time.perf_counter() - start_time:.3f}s."
        )
        return grid

    # --- Pipeline stages ---

    def _build_path_grid(self, recipe: TerrainRecipe, p: np.ndarray, o: SeedOffsets) -> np.ndarray:
        """Walkers from the grid edges toward noise-biased interior targets."""
        gs = recipe.grid_size
        path_grid = np.zeros((gs, gs))
        density = recipe.path_density
        num_paths = math.floor(2 + density * 6)
        flow_scale = 0.03 + density * 0.05
        core = self.settings['path_core_value']
        shoulder = self.settings['path_shoulder_value']
        lay_shoulders = recipe.path_wear >= self.settings['path_shoulder_min_wear']
        can_branch = density > self.settings['path_branch_min_density']

        for walker in range(num_paths):
            start_edge = math.floor(self._noise(p, walker * 111 + o.a) * 4)
            edge_pos = self._noise(p, walker * 222 + o.b) * 0.6 + 0.2
            if start_edge == 0:
                cx, cy = 0.0, float(math.floor(edge_pos * gs))
            elif start_edge == 1:
                cx, cy = float(gs - 1), float(math.floor(edge_pos * gs))
            elif start_edge == 2:
                cx, cy = float(math.floor(edge_pos * gs)), 0.0
            else:
                cx, cy = float(math.floor(edge_pos * gs)), float(gs - 1)

            prev_angle = 0.0
            target_x = gs * 0.5 + (self._noise(p, walker * 333 + o.c) - 0.5) * gs * 0.6
            target_y = gs * 0.5 + (self._noise(p, walker * 444 + o.d) - 0.5) * gs * 0.6

            for step in range(gs * 3):
                if not (0 <= cx < gs and 0 <= cy < gs):
                    break

                gxp, gyp = math.floor(cx), math.floor(cy)
                path_grid[gyp, gxp] = core
                if lay_shoulders:
                    if gxp > 0:
                        path_grid[gyp, gxp - 1] = max(path_grid[gyp, gxp - 1], shoulder)
                    if gxp < gs - 1:
                        path_grid[gyp, gxp + 1] = max(path_grid[gyp, gxp + 1], shoulder)
                    if gyp > 0:
                        path_grid[gyp - 1, gxp] = max(path_grid[gyp - 1, gxp], shoulder)
                    if gyp < gs - 1:
                        path_grid[gyp + 1, gxp] = max(path_grid[gyp + 1, gxp], shoulder)

                n1 = self._noise(p, cx * flow_scale + o.a, cy * flow_scale)
                n2 = self._noise(p, cx * flow_scale * 2 + o.b, cy * flow_scale * 2)
                n3 = self._noise(p, cx * flow_scale * 0.5 + o.c, cy * flow_scale * 0.5)
                flow_angle = (n1 * 0.4 + n2 * 0.35 + n3 * 0.25) * math.tau * 2

                to_target = math.atan2(target_y - cy, target_x - cx)
                blend = 0.30 + density * 0.20
                angle = flow_angle * blend + to_target * (1 - blend)
                angle = prev_angle * 0.50 + angle * 0.50
                prev_angle = angle

                step_len = 0.5 + self._noise(p, cx * 0.1 + o.d, cy * 0.1) * 0.3
                cx += math.cos(angle) * step_len
                cy += math.sin(angle) * step_len

                if can_branch and step > 8 and step % 10 == 0:
                    if self._noise(p, cx * 0.4 + walker * 50 + o.a, cy * 0.4) < 0.30:
                        self._walk_branch(path_grid, recipe, p, o, walker, cx, cy, angle, flow_scale)

        return path_grid

    def _walk_branch(self, path_grid, recipe, p, o, walker, bx, by, angle, flow_scale):
        gs = recipe.grid_size
        branch_value = self.settings['path_branch_value']
        turn = math.pi * 0.4 if self._noise(p, bx + o.b, by) > 0.5 else -math.pi * 0.4
        b_angle = angle + turn
        b_prev = b_angle
        length = 15 + math.floor(self._noise(p, bx + walker + o.c, by) * 20)

        for _ in range(length):
            bgx, bgy = math.floor(bx), math.floor(by)
            if 0 <= bgx < gs and 0 <= bgy < gs:
                path_grid[bgy, bgx] = max(path_grid[bgy, bgx], branch_value)

            bn1 = self._noise(p, bx * flow_scale * 1.5 + o.d, by * flow_scale * 1.5)
            bn2 = self._noise(p, bx * flow_scale * 3 + o.a, by * flow_scale * 3)
            b_flow = (bn1 * 0.55 + bn2 * 0.45) * math.tau * 2
            b_angle = b_prev * 0.60 + b_flow * 0.40
            b_prev = b_angle

            bx += math.cos(b_angle) * 0.5
            by += math.sin(b_angle) * 0.5
            if not (0 <= bx < gs and 0 <= by < gs):
                break

    def _build_region_mask(self, recipe, p, o, gx, gy) -> np.ndarray:
        """Low-frequency mask of where mountains may cluster."""
        gs = recipe.grid_size
        norm_x = gx / gs
        norm_y = gy / gs
        dist_from_center = np.sqrt((norm_x - 0.5) ** 2 + (norm_y - 0.5) ** 2) * 2

        region1 = self._noise_grid(p, gx * 0.03 + o.a, gy * 0.03 + o.b)
        region2 = self._noise_grid(p, gx * 0.06 + o.c, gy * 0.06 + o.d)
        region = region1 * 0.65 + region2 * 0.35

        archetype = recipe.archetype
        if archetype == "basin":
            region = region * (0.3 + dist_from_center * 0.7)
        elif archetype == "ridged":
            ridge = np.abs(
                np.sin(norm_x * 3 + norm_y * 2 + o.ridge_direction)
                * np.cos(norm_y * 4 - norm_x * 1.5 + o.ridge_direction * 0.7)
            )
            region = region * 0.4 + ridge * recipe.ridge_sharpness * 0.6
        elif archetype == "archipelago":
            fragment = self._noise_grid(p, gx * 0.08 + o.e, gy * 0.08)
            frag = recipe.island_fragmentation
            region = region * (1 - frag * 0.5) + fragment * frag * 0.5
        elif archetype == "coastal":
            region = region * (0.3 + np.power(norm_x, 1.5) * 0.7)
        elif archetype == "highlands":
            region = region * 0.6 + 0.4

        bias = recipe.central_mass_bias
        if bias > 0:
            region = region * (1 - bias) + (1 - dist_from_center) * bias
        elif bias < 0:
            region = region * (1 + bias) + dist_from_center * abs(bias)

        threshold = (
            self.settings['mountain_region_threshold_base']
            - recipe.mountain_density * self.settings['mountain_region_threshold_slope']
        )
        strength = np.clip((region - threshold) / (1.0 - threshold), 0.0, None)
        return np.where(region > threshold, np.power(strength, self.settings['mountain_region_power']), 0.0)

    def _build_mountain_mask(self, recipe, p, o, region_mask, gx, gy) -> np.ndarray:
        """Stamps radial patches and elongated ranges, gated by the region mask."""
        gs = recipe.grid_size
        density = recipe.mountain_density
        ridged = recipe.archetype == "ridged"
        mountain_mask = np.zeros((gs, gs))

        # 1. Radial patches.
        for patch in range(math.floor(3 + density * 30)):
            patch_x = self._noise(p, patch * 137 + o.a) * gs
            patch_y = self._noise(p, patch * 251 + o.b) * gs
            pcx = math.floor(min(max(patch_x, 0), gs - 1))
            pcy = math.floor(min(max(patch_y, 0), gs - 1))
            center_region = region_mask[pcy, pcx]
            if center_region < self.settings['patch_min_region']:
                continue

            radius = 4 + density * 18 + self._noise(p, patch * 373 + o.c) * 10
            radius *= 0.5 + center_region * 0.7
            strength = 0.4 + self._noise(p, patch * 491 + o.d) * 0.6

            dist = np.hypot(gx - patch_x, gy - patch_y)
            inside = dist < radius
            falloff = np.power(np.clip(1.0 - dist / radius, 0.0, None), 1.2)
            contribution = np.where(inside, falloff * strength * region_mask, 0.0)
            np.maximum(mountain_mask, contribution, out=mountain_mask)

        # 2. Elongated ranges.
        num_ranges = math.floor(3 + density * 8) if ridged else math.floor(1 + density * 5)
        range_width = 3 + density * 8
        segment_gate = region_mask >= self.settings['range_segment_min_region']
        for chain in range(num_ranges):
            start_x = self._noise(p, chain * 571 + o.c) * gs
            start_y = self._noise(p, chain * 683 + o.d) * gs
            rsx = math.floor(min(max(start_x, 0), gs - 1))
            rsy = math.floor(min(max(start_y, 0), gs - 1))
            if not ridged and region_mask[rsy, rsx] < self.settings['range_min_region']:
                continue

            if ridged:
                angle = o.ridge_direction + self._noise(p, chain * 100) * 0.5
            else:
                angle = self._noise(p, chain * 797 + o.a) * math.tau
            length = 12 + self._noise(p, chain * 911 + o.b) * 25
            if ridged:
                length *= 1.8

            segment = 0
            while segment < length:
                x_pos = start_x + math.cos(angle) * segment * 1.1
                y_pos = start_y + math.sin(angle) * segment * 1.1
                wobble = self._noise(p, segment * 0.2 + chain * 50 + o.c) * 5 - 2.5
                x_pos += math.cos(angle + math.pi / 2) * wobble
                y_pos += math.sin(angle + math.pi / 2) * wobble

                seg_radius = range_width * (0.5 + self._noise(p, segment * 0.15 + chain * 100 + o.d) * 0.7)
                seg_strength = 0.55 + self._noise(p, segment * 0.12 + chain * 200 + o.a) * 0.45

                dist = np.hypot(gx - x_pos, gy - y_pos)
                inside = dist < seg_radius
                contribution = np.power(np.clip(1.0 - dist / seg_radius, 0.0, None), 1.1) * seg_strength
                if not ridged:
                    contribution = np.where(segment_gate, contribution * region_mask, 0.0)
                np.maximum(mountain_mask, np.where(inside, contribution, 0.0), out=mountain_mask)
                segment += 1

        return mountain_mask

    def _build_elevation(self, recipe, p, o, mountain_mask, fields, gx, gy):
        """Returns (shaped elevation, mountain shape noise)."""
        gs = recipe.grid_size
        norm_x = gx / gs
        norm_y = gy / gs
        dist_from_center = np.sqrt((norm_x - 0.5) ** 2 + (norm_y - 0.5) ** 2) * 2
        cs = recipe.continent_scale

        # 1. Continental base with archetype shaping.
        continental = self._noise_grid(p, gx * cs + o.a, gy * cs + o.b)
        archetype = recipe.archetype
        if archetype == "plateau":
            plateau_noise = self._noise_grid(p, gx * 0.04 + o.e, gy * 0.04)
            plateau_mask = 1 - np.power(dist_from_center, 0.8 + recipe.plateau_size * 0.4)
            plateau_mask = np.clip(plateau_mask * 1.3, 0, 1)
            continental = (
                continental * (1 - plateau_mask * recipe.plateau_size)
                + plateau_noise * 0.3 * plateau_mask
                + 0.4 * plateau_mask
            )
        elif archetype == "basin":
            continental = continental * (0.5 + dist_from_center * 0.5) * (1 - recipe.basin_inversion * 0.3)
            continental = np.where(
                dist_from_center < 0.4,
                continental - recipe.valley_depth * (0.4 - dist_from_center),
                continental,
            )
        elif archetype == "archipelago":
            cc = recipe.coastline_complexity
            fragment = self._noise_grid(p, gx * cc * 2 + o.c, gy * cc * 2 + o.d)
            frag = recipe.island_fragmentation
            continental = continental * (1 - frag * 0.4) + fragment * frag * 0.4
        elif archetype == "coastal":
            coast_gradient = np.power(norm_x, 0.8) * 0.4 + 0.3
            continental = continental * 0.5 + coast_gradient * 0.5

        # 2. Hills and two detail octaves weighted by roughness.
        roughness = recipe.terrain_roughness
        rough_freq = 0.08 + roughness * 0.12
        rough_amp = 0.02 + roughness * 0.10
        if fields is not None:
            rough_amp = rough_amp * (0.8 + fields.ruggedness * 0.4)

        hills = self._noise_grid(p, gx * cs * 2 + o.c, gy * cs * 2)
        detail = self._noise_grid(p, gx * rough_freq + o.d, gy * rough_freq)
        micro_detail = self._noise_grid(p, gx * rough_freq * 2.5 + o.a, gy * rough_freq * 2.5)

        hill_contrib = hills * 0.08 * (0.5 + roughness * 0.5)
        detail_contrib = detail * rough_amp + micro_detail * rough_amp * 0.5
        base = self.settings['base_floor'] + continental * 0.12 + hill_contrib + detail_contrib

        # 3. Erosion blend.
        erosion = recipe.erosion_strength
        if erosion > self.settings['erosion_min_strength']:
            erosion_noise = self._noise_grid(p, gx * 0.1 + o.e, gy * 0.1)
            base = base * (1 - erosion * 0.3) + erosion_noise * erosion * 0.1

        # 4. Mountains.
        mountain_noise = self._noise_grid(p, gx * 0.10 + o.b, gy * 0.10 + o.c)
        mountain_detail = self._noise_grid(p, gx * 0.22 + o.d, gy * 0.22 + o.a)
        mountain_shape = mountain_noise * 0.65 + mountain_detail * 0.35
        peak_factor = np.power(mountain_mask, 0.65) * np.power(mountain_shape, 0.45)
        mountain_elevation = peak_factor * recipe.mountain_peak_height * 0.70

        return np.clip(base + mountain_elevation, 0, 1), mountain_shape

    def _apply_water(self, recipe, p, o, shaped, gx, gy):
        """Returns (water mask, stored elevation) with lakes and the shore lift applied."""
        water_level = recipe.water_level
        water = shaped < water_level

        if recipe.lake_tendency > self.settings['lake_min_tendency']:
            lake_noise = self._noise_grid(p, gx * 0.06 + o.e, gy * 0.06)
            lake = (
                ~water
                & (lake_noise > (1 - recipe.lake_tendency))
                & (shaped < water_level + self.settings['lake_shore_cap'])
            )
            water = water | lake

        lake_surface = water_level - self.settings['lake_surface_drop']
        elevation = np.where(
            water,
            np.minimum(shaped, lake_surface),
            np.maximum(shaped, water_level + self.settings['shore_lift']),
        )
        return water, elevation

    def _build_moisture(self, recipe, p, o, water, elevation, gx, gy) -> np.ndarray:
        band = self.settings['moisture_shore_band']
        patchiness = recipe.biome_patchiness

        moist_base = self._noise_grid(p, gx * 0.05 + o.c, gy * 0.05 + o.d)
        moist_detail = self._noise_grid(p, gx * patchiness * 2 + o.a, gy * patchiness * 2)
        moisture = moist_base * 0.55 + moist_detail * 0.45

        shore = ~water & (elevation < recipe.water_level + band)
        shore_boost = (1 - (elevation - recipe.water_level) / band) * self.settings['moisture_shore_boost']
        moisture = np.where(shore, moisture + shore_boost + recipe.wetland_spread, moisture)
        moisture = np.where(water, 1.0, moisture)
        return np.clip(moisture, 0, 1)

    def _build_forest(self, recipe, p, o, water, moisture, mountain_mask, fields, gx, gy) -> np.ndarray:
        patchiness = recipe.biome_patchiness
        variety = recipe.tree_variety

        forest_noise = self._noise_grid(p, gx * 0.08 + o.b, gy * 0.08 + o.c)
        forest_noise2 = self._noise_grid(p, gx * patchiness + o.d, gy * patchiness)
        forest_val = forest_noise * (1 - variety * 0.3) + forest_noise2 * variety * 0.3

        forest_threshold = recipe.forest_density
        meadow_frequency = recipe.meadow_frequency
        if fields is not None:
            forest_threshold = forest_threshold * (0.85 + fields.wetness * 0.30)
            meadow_frequency = meadow_frequency * (0.75 + fields.temperature * 0.5)

        is_forest = (
            (forest_val < forest_threshold)
            & ~water
            & (mountain_mask < self.settings['forest_max_mountain_mask'])
            & (moisture > self.settings['forest_moisture_floor'])
        )

        # Meadow clearings inside forests.
        if recipe.meadow_frequency > self.settings['meadow_min_frequency']:
            meadow_noise = self._noise_grid(p, gx * 0.12 + o.e, gy * 0.12)
            is_forest = is_forest & ~(meadow_noise > (1 - meadow_frequency * 0.5))
        return is_forest

    def _build_river_mask(self, recipe, p, o, water, elevation, on_path, mountain_mask, gx, gy) -> np.ndarray:
        """
        Contour-style rivers: cells where a low-frequency noise crosses its
        midpoint, kept to dry valley cells off paths and mountains, then
        widened by a distance falloff when the river width allows it.
        """
        frequency = self.settings['river_noise_frequency']
        river_noise = self._noise_grid(p, gx * frequency + o.d, gy * frequency + o.a)
        local_threshold = recipe.river_threshold * (0.7 + recipe.river_width * 0.3)

        allowed = (
            ~water
            & (elevation < recipe.water_level + self.settings['river_valley_cap'])
            & ~on_path
            & (mountain_mask <= self.settings['mountain_mask_threshold'])
        )
        core = (np.abs(river_noise - 0.5) < local_threshold) & allowed

        radius = max(0.0, recipe.river_width - self.settings['river_dilation_offset'])
        if radius <= 0 or not core.any():
            return core

        distance_from_contour = np.abs(river_noise - 0.5)
        strength = np.where(
            (distance_from_contour < local_threshold) & allowed,
            1.0 - distance_from_contour / local_threshold,
            0.0,
        )

        if recipe.river_width > self.settings['river_dilation_min_width'] and strength.any():
            strength = dilate_river_strength(strength, recipe.river_width)
        return (strength > self.settings['river_strength_cutoff']) & allowed
