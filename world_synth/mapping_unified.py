# world_synth/mapping_unified.py

"""
================================================================================
UNIFIED V2 MAPPING (FROZEN VARIANT)
================================================================================
A "realistic" coupling of the macro sliders used by the world-space (unified)
generation path: sliders are shaped through smoothstep/power curves, forest
cover is coupled to biome richness, mountain steepness to terrain detail and
path wear to visual style. Micro slots 10-23 carry the unified layout
(river width, continuity, bank lift, coast buffer, path width, ...), slots
24-34 reuse the v2 derivation.

Kept alongside `mapping_v2` as its own named variant so already-shared worlds
resolved through it stay reproducible.
================================================================================
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from .curves import map_var, normalize_var, power_curve, smoothstep, blend_vars
from .mapping_v2 import (
    ARCHETYPE_PROFILES, ARCHETYPES, BiomeParams, DetailParams, HydrologyParams,
    PlacementParams, ResolvedParams, StructureParams, derive_micro_value, apply_micro_overrides,
    derive_micro_vars, select_archetype,
)
from .noise import hash_values, seeded_random_range
from .schema import MACRO_VAR_COUNT, clamp_macro_vars

MAPPING_VERSION = "v2-unified"

# Number of leading micro slots with unified semantics.
UNIFIED_MICRO_SLOTS = 14

@dataclass(frozen=True)
class RealisticValues:
    terrain_detail_shaped: float
    biome_richness_shaped: float
    forest_shaped: float
    mountain_shaped: float
    path_shaped: float
    roughness_shaped: float
    mountain_density_shaped: float
    visual_style_shaped: float
    effective_forest: float
    effective_mountain_steepness: float
    effective_path_wear: float
    effective_moisture_bias: float
    river_width: float
    river_continuity: float
    river_bank_lift: float
    coast_buffer: float
    path_width: float

def map_vars_realistic(macro, seed: int) -> RealisticValues:
    v = clamp_macro_vars(macro)

    terrain_detail = smoothstep(v[3] / 100)
    biome_richness = smoothstep(v[4] / 100)
    forest = smoothstep(v[5] / 100)
    mountain = power_curve(v[6] / 100, 1.3)
    path = smoothstep(v[7] / 100)
    roughness = power_curve(v[8] / 100, 1.4)
    mountain_density = smoothstep(v[9] / 100)
    visual_style = v[9] / 100

    return RealisticValues(
        terrain_detail_shaped=terrain_detail,
        biome_richness_shaped=biome_richness,
        forest_shaped=forest,
        mountain_shaped=mountain,
        path_shaped=path,
        roughness_shaped=roughness,
        mountain_density_shaped=mountain_density,
        visual_style_shaped=visual_style,
        effective_forest=(0.10 + forest * 0.75) * (0.85 + biome_richness * 0.30),
        effective_mountain_steepness=(0.20 + mountain * 0.80) * (0.95 + terrain_detail * 0.15),
        effective_path_wear=(0.5 + path * 1.5) * (0.9 + visual_style * 0.2),
        effective_moisture_bias=-0.08 + biome_richness * 0.20,
        river_width=0.8 + biome_richness * 1.2 + seeded_random_range(hash_values(seed, "river-width"), -0.2, 0.2),
        river_continuity=0.5 + biome_richness * 0.3 + seeded_random_range(hash_values(seed, "river-cont"), 0, 0.15),
        river_bank_lift=0.03 + forest * 0.05,
        coast_buffer=1.5 + (1 - mountain_density) * 2.0,
        path_width=0.8 + path * 0.8,
    )

def derive_micro_vars_unified(seed: int, macro, archetype: str) -> tuple:
    profile = ARCHETYPE_PROFILES[archetype]
    realistic = map_vars_realistic(macro, seed)
    macro = clamp_macro_vars(macro)

    def d(index, base, influences=()):
        return derive_micro_value(seed, macro, index, base, influences, salt="micro-v2", spread=12)

    unified = (
        normalize_var(realistic.river_width * 40 + 20),
        normalize_var(realistic.river_continuity * 100),
        normalize_var(realistic.river_bank_lift * 500 + 20),
        normalize_var(realistic.coast_buffer * 25),
        normalize_var(realistic.path_width * 50 + 10),
        d(5, profile.erosion_strength, [(8, 0.2)]),
        d(6, profile.coastline_complexity, [(4, 0.15)]),
        d(7, 50, [(6, 0.4)]),
        d(8, profile.plateau_tendency, [(9, -0.15)]),
        d(9, profile.valley_depth, [(6, 0.2)]),
        d(10, 50, [(6, 0.45)]),
        d(11, 60 if profile.water_level_mod > 10 else 40, [(4, 0.35)]),
        d(12, 50, [(5, 0.25)]),
        d(13, 50, [(6, 0.3)]),
    )
    tail = derive_micro_vars(seed, macro, archetype)[UNIFIED_MICRO_SLOTS:]
    return unified + tuple(tail)

def build_resolved_params_unified(seed: int, macro, micro_overrides: Optional[Mapping[int, float]] = None) -> ResolvedParams:
    clamped_macro = clamp_macro_vars(macro)
    archetype = select_archetype(seed, clamped_macro)
    profile = ARCHETYPE_PROFILES[archetype]

    micro = apply_micro_overrides(derive_micro_vars_unified(seed, clamped_macro, archetype), micro_overrides)
    realistic = map_vars_realistic(clamped_macro, seed)
    vars = tuple(clamped_macro) + tuple(micro)

    structure = StructureParams(
        continent_scale=map_var(vars[3], 0.02, 0.12, "smooth"),
        water_level=normalize_var(map_var(vars[4], 10, 55) + profile.water_level_mod * 0.55),
        mountain_peak_height=realistic.effective_mountain_steepness * profile.mountain_height_mod,
        mountain_density=realistic.mountain_density_shaped * profile.mountain_density_mod,
        coastline_complexity=smoothstep(micro[6] / 100),
        cliff_frequency=map_var(micro[7], 0, 1, "smooth"),
        plateau_size=map_var(micro[8], 0, 1),
        valley_depth=map_var(micro[9], 0, 1),
        ridge_sharpness=map_var(micro[10], 0.3, 1.5, "power", 1.5),
        erosion_strength=map_var(micro[5], 0, 1),
    )
    hydrology = HydrologyParams(
        sea_level=structure.water_level / 100,
        river_threshold=0.02,
        river_width=realistic.river_width,
        lake_tendency=map_var(micro[11], 0, 1),
        wetland_spread=map_var(micro[12], 0.05, 0.25),
        rainfall_amount=blend_vars([(vars[4], 0.6), (micro[12], 0.4)]) / 100,
    )
    biome = BiomeParams(
        forest_density=realistic.effective_forest,
        biome_patchiness=0.06,
        tree_variety=0.6,
        undergrowth_density=0.4,
        meadow_frequency=0.2,
        temperature_variance=0.5,
        snowline_height=0.6 + map_var(micro[13], -0.1, 0.2),
    )
    detail = DetailParams(
        terrain_roughness=realistic.roughness_shaped * 1.5,
        path_density=realistic.path_shaped,
        path_branching=0.3,
        path_curvature=0.6,
        rock_frequency=0.2,
        micro_elevation=0.05,
        surface_texture=0.6,
    )
    placement = PlacementParams(
        landmark_type=int(map_var(vars[0], 0, 6)),
        landmark_x=map_var(vars[1], 4, 60),
        landmark_y=map_var(vars[2], 4, 60),
        poi_density=0.1,
        poi_clustering=0.5,
        ruin_frequency=0.05,
        resource_density=0.15,
        spawn_safety=0.7,
    )
    return ResolvedParams(
        seed=seed,
        vars=vars,
        mapping_version=MAPPING_VERSION,
        archetype=archetype,
        archetype_index=ARCHETYPES.index(archetype),
        structure=structure,
        hydrology=hydrology,
        biome=biome,
        detail=detail,
        placement=placement,
    )

def path_wear(macro, seed: int) -> float:
    """Effective path wear for a macro vector, as used by the synthesizer."""
    return map_vars_realistic(list(macro)[:MACRO_VAR_COUNT], seed).effective_path_wear
