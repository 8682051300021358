# world_synth/mapping_v1.py

"""
================================================================================
V1 LEGACY MAPPING (FROZEN)
================================================================================
The original direct mapping of the 10 macro sliders onto generation values.
Worlds shared before the archetype system existed were produced through this
mapping, so it is preserved exactly as-is and must never be tuned.

Data Contract:
---------------
- Inputs: a seed and a vector of 10 slider values in [0, 100].
- Outputs: a V1Params record and the MappedValuesV1 generation values.
- Side Effects: None.
- Invariants: Output for a given input never changes between releases.
================================================================================
"""

import math
import numbers
from dataclasses import dataclass

from .curves import map_var, normalize_var

MAPPING_VERSION = "v1"

DEFAULT_V1_SEED = 12345
DEFAULT_V1_VARS = (50,) * 10

VAR_LABELS_V1 = (
    "Landmark Archetype",
    "Landmark X Bias",
    "Landmark Y Bias",
    "Terrain Detail",
    "Biome Richness",
    "Forest Density",
    "Mountain Steepness",
    "Path Wear",
    "Surface Roughness",
    "Visual Style",
)

@dataclass(frozen=True)
class V1Params:
    seed: int
    vars: tuple  # always exactly 10 values

@dataclass(frozen=True)
class MappedValuesV1:
    continent_scale: float      # 0.02 - 0.10
    water_level: float          # 0.10 - 0.55
    forest_density: float       # 0.10 - 0.85
    mountain_peak_height: float # 0.20 - 1.00
    path_density: float         # 0.0 - 1.0
    terrain_roughness: float    # 0.05 - 1.50
    mountain_density: float     # 0.02 - 1.00
    obj_x: int
    obj_y: int
    landmark_type: int
    landmark_x_bias: float
    landmark_y_bias: float
    terrain_detail: float
    biome_richness: float
    mountain_steepness: float
    path_wear: float
    surface_roughness: float
    visual_style: float

def map_v1_vars(vars, grid_size: int = 64) -> MappedValuesV1:
    """Linear legacy mapping of the 10 macro sliders."""
    v = [50 if value is None else max(0, min(100, value)) for value in vars]
    v += [50] * (10 - len(v))
    return MappedValuesV1(
        continent_scale=map_var(v[3], 0.02, 0.10),
        water_level=map_var(v[4], 0.10, 0.55),
        forest_density=map_var(v[5], 0.10, 0.85),
        mountain_peak_height=map_var(v[6], 0.20, 1.00),
        path_density=map_var(v[7], 0.0, 1.0),
        terrain_roughness=map_var(v[8], 0.05, 1.50),
        mountain_density=map_var(v[9], 0.02, 1.00),
        obj_x=math.floor(map_var(v[1], 4, grid_size - 4)),
        obj_y=math.floor(map_var(v[2], 4, grid_size - 4)),
        landmark_type=math.floor(map_var(v[0], 0, 5)),
        landmark_x_bias=map_var(v[1], -8, 8),
        landmark_y_bias=map_var(v[2], -8, 8),
        terrain_detail=map_var(v[3], 0.02, 0.15),
        biome_richness=map_var(v[4], 0.3, 1.0),
        mountain_steepness=map_var(v[6], 0.3, 1.5),
        path_wear=map_var(v[7], 0.5, 2.0),
        surface_roughness=map_var(v[8], 0.02, 0.12),
        visual_style=map_var(v[9], 0.7, 1.3),
    )

def _coerce_seed(seed) -> int:
    """Integral numbers (numpy ones included) pass through, finite reals are floored."""
    if isinstance(seed, bool):
        return DEFAULT_V1_SEED
    if isinstance(seed, numbers.Integral):
        return int(seed)
    if isinstance(seed, numbers.Real) and math.isfinite(seed):
        return math.floor(seed)
    return DEFAULT_V1_SEED

def validate_v1_params(seed=None, vars=None) -> V1Params:
    """Coerces partial input into a valid V1Params (10 normalized values)."""
    seed = _coerce_seed(seed)
    if vars is None:
        return V1Params(seed=seed, vars=DEFAULT_V1_VARS)
    values = list(vars)[:10]
    values += [None] * (10 - len(values))
    return V1Params(seed=seed, vars=tuple(normalize_var(50 if v is None else v) for v in values))

def is_v1_vector(vars) -> bool:
    return vars is not None and len(vars) == 10

def randomize_v1_seed(current_seed: int) -> int:
    return math.floor(abs(math.sin(current_seed * 9999) * 999999))
