# world_synth/mapping_v2.py

"""
================================================================================
V2 VARIABLE MAPPING & ARCHETYPES
================================================================================
Turns the 10 macro sliders and a seed into a fully resolved, internally
consistent terrain recipe. An archetype (one of seven structural regimes) is
selected from the seed and the water/mountain sliders, the 25 micro slots are
derived with cross-parameter coupling, optional manual overrides are applied,
and the grouped sub-records are computed through fixed curves.

Data Contract:
---------------
- Inputs:
    - seed (int): The world seed.
    - macro (sequence): Up to 10 slider values; padded/clamped as needed.
    - micro_overrides (dict, optional): {absolute_index (10-34): value}.
- Outputs:
    - ResolvedParams: 35-value vector, archetype and grouped sub-records.
- Side Effects: None. This is a pure builder.
- Invariants:
    - Same (seed, macro, overrides) always gives an identical ResolvedParams.
    - Every value in `vars` lies in [0, 100].
    - The archetype is a pure function of (seed, macro).
================================================================================
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from .curves import (
    apply_influence, blend_vars, inverse_threshold, map_var, normalize_var, smoothstep,
)
from .noise import hash_values, seeded_random, seeded_random_range
from .schema import MACRO_VAR_COUNT, TOTAL_VAR_COUNT, clamp_macro_vars

MAPPING_VERSION = "v2"

# ============================================
# ARCHETYPES
# ============================================

# Order matters: the archetype index is derived from it.
ARCHETYPES = ("plateau", "basin", "ridged", "fractured", "archipelago", "coastal", "highlands")

@dataclass(frozen=True)
class ArchetypeProfile:
    id: str
    name: str
    description: str
    water_level_mod: float       # applied to the water level slider scale
    mountain_height_mod: float   # multiplier
    mountain_density_mod: float  # multiplier
    coastline_complexity: int    # 0-100 base value
    plateau_tendency: int        # 0-100 base value
    valley_depth: int            # 0-100 base value
    erosion_strength: int        # 0-100 base value

ARCHETYPE_PROFILES = {
    "plateau": ArchetypeProfile(
        "plateau", "Plateau", "Flat highlands with dramatic cliff edges",
        -15, 0.6, 1.5, 30, 90, 20, 30),
    "basin": ArchetypeProfile(
        "basin", "Basin", "Central lowland ringed by mountains",
        10, 1.3, 0.8, 40, 20, 80, 60),
    "ridged": ArchetypeProfile(
        "ridged", "Ridged", "Long mountain chains dividing regions",
        -5, 1.5, 0.6, 50, 40, 60, 50),
    "fractured": ArchetypeProfile(
        "fractured", "Fractured", "Broken terrain with many varied features",
        0, 1.0, 1.2, 80, 30, 70, 80),
    "archipelago": ArchetypeProfile(
        "archipelago", "Archipelago", "Many islands and water channels",
        25, 0.8, 0.5, 95, 50, 40, 40),
    "coastal": ArchetypeProfile(
        "coastal", "Coastal", "Large landmass with detailed shoreline",
        5, 1.1, 0.7, 70, 35, 50, 55),
    "highlands": ArchetypeProfile(
        "highlands", "Highlands", "Rolling hills and mountains throughout",
        -10, 1.2, 1.8, 45, 25, 55, 45),
}

# ============================================
# RESOLVED PARAMS
# ============================================

@dataclass(frozen=True)
class StructureParams:
    continent_scale: float
    water_level: int
    mountain_peak_height: float
    mountain_density: float
    coastline_complexity: float
    cliff_frequency: float
    plateau_size: float
    valley_depth: float
    ridge_sharpness: float
    erosion_strength: float

@dataclass(frozen=True)
class HydrologyParams:
    sea_level: float
    river_threshold: float
    river_width: float
    lake_tendency: float
    wetland_spread: float
    rainfall_amount: float

@dataclass(frozen=True)
class BiomeParams:
    forest_density: float
    biome_patchiness: float
    tree_variety: float
    undergrowth_density: float
    meadow_frequency: float
    temperature_variance: float
    snowline_height: float

@dataclass(frozen=True)
class DetailParams:
    terrain_roughness: float
    path_density: float
    path_branching: float
    path_curvature: float
    rock_frequency: float
    micro_elevation: float
    surface_texture: float

@dataclass(frozen=True)
class PlacementParams:
    landmark_type: int
    landmark_x: float
    landmark_y: float
    poi_density: float
    poi_clustering: float
    ruin_frequency: float
    resource_density: float
    spawn_safety: float

@dataclass(frozen=True)
class ResolvedParams:
    """The full 35-value vector plus archetype and grouped sub-records."""
    seed: int
    vars: tuple
    mapping_version: str
    archetype: str
    archetype_index: int
    structure: StructureParams
    hydrology: HydrologyParams
    biome: BiomeParams
    detail: DetailParams
    placement: PlacementParams

    @property
    def macro(self) -> tuple:
        return self.vars[:MACRO_VAR_COUNT]

    @property
    def micro(self) -> tuple:
        return self.vars[MACRO_VAR_COUNT:]

# ============================================
# ARCHETYPE SELECTION
# ============================================

def select_archetype(seed: int, macro) -> str:
    """
    Deterministic, weighted archetype classification.

    The base pick hashes the seed with the quantized water level and mountain
    density; three biased branches then push extreme slider combinations
    toward archipelago, highlands or plateau behind a seeded coin-flip.
    """
    macro = list(macro)
    water_level = macro[4] if len(macro) > 4 else 50
    mountain_density = macro[9] if len(macro) > 9 else 50

    archetype_hash = hash_values(seed, "archetype", water_level // 20, mountain_density // 20)
    base_index = abs(archetype_hash) % len(ARCHETYPES)

    if water_level > 70 and seeded_random(hash_values(seed, "water-bias")) > 0.4:
        return "archipelago"
    if mountain_density > 75 and water_level < 40 and seeded_random(hash_values(seed, "mtn-bias")) > 0.5:
        return "highlands"
    if mountain_density < 25 and water_level < 30 and seeded_random(hash_values(seed, "plateau-bias")) > 0.5:
        return "plateau"

    return ARCHETYPES[base_index]

# ============================================
# MICRO DERIVATION
# ============================================

def derive_micro_value(seed: int, macro, index: int, base: float, influences=(), salt: str = "micro", spread: float = 15) -> int:
    """Archetype base + bounded seeded jitter + macro influences, clamped."""
    value = base + seeded_random_range(hash_values(seed, salt, index), -spread, spread)
    for macro_index, weight in influences:
        influencer = macro[macro_index] if macro_index < len(macro) else 50
        value = apply_influence(value, influencer, weight)
    return normalize_var(value)

def derive_micro_vars(seed: int, macro, archetype: str) -> tuple:
    """Derives the 25 micro values (absolute indices 10-34)."""
    profile = ARCHETYPE_PROFILES[archetype]
    macro = list(macro)

    def d(index, base, influences=()):
        return derive_micro_value(seed, macro, index, base, influences)

    micro = (
        # --- Hydrology ---
        d(10, 50, [(4, 0.3)]),                                    # river threshold
        d(11, 50, [(4, 0.2), (8, -0.15)]),                        # river width
        d(12, 60 if profile.water_level_mod > 10 else 40, [(4, 0.4)]),  # lake tendency
        d(13, 50, [(5, 0.25)]),                                   # wetland spread
        # --- Structure ---
        d(14, profile.erosion_strength),
        d(15, profile.coastline_complexity, [(4, 0.2)]),
        d(16, 50, [(6, 0.4)]),                                    # cliff frequency
        d(17, profile.plateau_tendency, [(9, -0.2)]),
        d(18, profile.valley_depth, [(6, 0.2)]),
        d(19, 50, [(6, 0.5)]),                                    # ridge sharpness
        # --- Biome ---
        d(20, 50, [(8, 0.3)]),                                    # patchiness
        d(21, 50, [(5, 0.35)]),                                   # tree variety
        d(22, 50, [(5, 0.4)]),                                    # undergrowth
        d(23, inverse_threshold(macro[5] if len(macro) > 5 else 50, 30)),  # meadows
        d(24, 50, [(6, 0.3)]),                                    # temperature variance
        # --- Detail ---
        d(25, 50, [(7, 0.5)]),                                    # path branching
        d(26, 50),                                                # path curvature
        d(27, 50, [(9, 0.4)]),                                    # rocks
        d(28, 50, [(8, 0.6)]),                                    # micro elevation
        d(29, 50, [(8, 0.5)]),                                    # surface texture
        # --- Placement ---
        d(30, 50, [(0, 0.2)]),                                    # POI density
        d(31, 50),                                                # POI clustering
        d(32, 40, [(0, 0.3)]),                                    # ruins
        d(33, 50, [(5, 0.2)]),                                    # resources
        d(34, 60, [(4, -0.2), (9, -0.15)]),                       # spawn safety
    )
    return micro

def apply_micro_overrides(micro, overrides: Optional[Mapping[int, float]]) -> list:
    """Override always wins; keys are absolute indices, out-of-range keys are ignored."""
    micro = list(micro)
    for index, value in sorted((overrides or {}).items()):
        micro_index = int(index) - MACRO_VAR_COUNT
        if 0 <= micro_index < len(micro):
            micro[micro_index] = normalize_var(float(value))
    return micro

# ============================================
# BUILD PARAMS
# ============================================

def build_groups(vars, profile: ArchetypeProfile) -> dict:
    """Computes the five grouped sub-records from a full 35-value vector."""
    v = vars
    structure = StructureParams(
        continent_scale=map_var(v[3], 0.02, 0.12, "smooth"),
        water_level=normalize_var(map_var(v[4], 10, 55) + profile.water_level_mod * 0.55),
        mountain_peak_height=map_var(v[6], 0.15, 1.0, "power", 1.3) * profile.mountain_height_mod,
        mountain_density=map_var(v[9], 0.02, 1.2, "smooth") * profile.mountain_density_mod,
        coastline_complexity=smoothstep(v[15] / 100),
        cliff_frequency=map_var(v[16], 0, 1, "smooth"),
        plateau_size=map_var(v[17], 0, 1),
        valley_depth=map_var(v[18], 0, 1),
        ridge_sharpness=map_var(v[19], 0.3, 1.5, "power", 1.5),
        erosion_strength=map_var(v[14], 0, 1),
    )
    hydrology = HydrologyParams(
        sea_level=structure.water_level / 100,
        river_threshold=map_var(v[10], 0.01, 0.03),
        river_width=map_var(v[11], 0.5, 2.0),
        lake_tendency=map_var(v[12], 0, 1),
        wetland_spread=map_var(v[13], 0.05, 0.25),
        rainfall_amount=blend_vars([(v[4], 0.6), (v[13], 0.4)]) / 100,
    )
    biome = BiomeParams(
        forest_density=map_var(v[5], 0.08, 0.90, "smooth"),
        biome_patchiness=map_var(v[20], 0.02, 0.15),
        tree_variety=map_var(v[21], 0.3, 1.0),
        undergrowth_density=map_var(v[22], 0.1, 0.8),
        meadow_frequency=map_var(v[23], 0.05, 0.5),
        temperature_variance=map_var(v[24], 0.2, 1.0),
        snowline_height=0.6 + (1 - v[24] / 100) * 0.3,
    )
    detail = DetailParams(
        terrain_roughness=map_var(v[8], 0.03, 1.8, "power", 1.4),
        path_density=map_var(v[7], 0.0, 1.0),
        path_branching=map_var(v[25], 0.1, 0.6),
        path_curvature=map_var(v[26], 0.3, 1.2),
        rock_frequency=map_var(v[27], 0.05, 0.5),
        micro_elevation=map_var(v[28], 0.01, 0.1),
        surface_texture=map_var(v[29], 0.3, 1.0),
    )
    placement = PlacementParams(
        landmark_type=int(map_var(v[0], 0, 6)),
        landmark_x=map_var(v[1], 4, 60),
        landmark_y=map_var(v[2], 4, 60),
        poi_density=map_var(v[30], 0.02, 0.2),
        poi_clustering=map_var(v[31], 0.1, 0.8),
        ruin_frequency=map_var(v[32], 0.01, 0.15),
        resource_density=map_var(v[33], 0.05, 0.3),
        spawn_safety=map_var(v[34], 0.3, 0.9),
    )
    return {
        "structure": structure,
        "hydrology": hydrology,
        "biome": biome,
        "detail": detail,
        "placement": placement,
    }

def build_resolved_params(seed: int, macro, micro_overrides: Optional[Mapping[int, float]] = None) -> ResolvedParams:
    """
    Main entry point for v2 world resolution.

    Args:
        seed (int): The world seed.
        macro (sequence): Macro slider values; clamped and padded to 10.
        micro_overrides (dict, optional): Sparse {absolute_index: value} map.
            An override always wins over the derived value.

    Returns:
        ResolvedParams: The resolved recipe. Never raises on bad slider input.
    """
    clamped_macro = clamp_macro_vars(macro)
    archetype = select_archetype(seed, clamped_macro)
    profile = ARCHETYPE_PROFILES[archetype]

    micro = derive_micro_vars(seed, clamped_macro, archetype)
    micro = apply_micro_overrides(micro, micro_overrides)

    full_vars = tuple(clamped_macro) + tuple(micro)

    return ResolvedParams(
        seed=seed,
        vars=full_vars,
        mapping_version=MAPPING_VERSION,
        archetype=archetype,
        archetype_index=ARCHETYPES.index(archetype),
        **build_groups(full_vars, profile),
    )

def resolve_params(seed: int, vars, version: str = MAPPING_VERSION) -> ResolvedParams:
    """
    Version-tolerant resolution. A v1 request, or any vector that is not a
    full 35-value vector, derives micro values fresh from the macro slots;
    otherwise slots 10-34 are treated as explicit overrides.
    """
    vars = list(vars or [])
    if version == "v1" or len(vars) != TOTAL_VAR_COUNT:
        return build_resolved_params(seed, vars[:MACRO_VAR_COUNT])
    overrides = {i + MACRO_VAR_COUNT: value for i, value in enumerate(vars[MACRO_VAR_COUNT:])}
    return build_resolved_params(seed, vars[:MACRO_VAR_COUNT], overrides)

# ============================================
# CONVERSION UTILITIES
# ============================================

@dataclass(frozen=True)
class WorldParamsV2:
    seed: int
    macro: tuple
    micro: tuple
    micro_overrides: frozenset
    archetype: str
    mapping_version: str = MAPPING_VERSION

def v1_to_v2_params(seed: int, vars) -> WorldParamsV2:
    """Upgrades a legacy (seed, 10 vars) pair; no micro slot is overridden."""
    macro = clamp_macro_vars(vars)
    archetype = select_archetype(seed, macro)
    return WorldParamsV2(
        seed=seed,
        macro=tuple(macro),
        micro=derive_micro_vars(seed, macro, archetype),
        micro_overrides=frozenset(),
        archetype=archetype,
    )

def v2_to_v1_params(params: WorldParamsV2) -> tuple:
    """Returns (seed, macro) for sharing with legacy clients."""
    return params.seed, list(params.macro[:MACRO_VAR_COUNT])
