# world_synth/schema.py

"""
================================================================================
VARIABLE SCHEMA
================================================================================
The fixed 35-slot parameter vector: 10 user-facing macro sliders followed by
25 micro slots that are derived from the macro values (or overridden by
index). The slot order is part of the public reproduction contract and must
never change.
================================================================================
"""

from dataclasses import dataclass

from .curves import normalize_var

MACRO_VAR_COUNT = 10
MICRO_VAR_COUNT = 25
TOTAL_VAR_COUNT = MACRO_VAR_COUNT + MICRO_VAR_COUNT

VAR_GROUPS = ("structure", "hydrology", "biome", "detail", "placement")

@dataclass(frozen=True)
class VarDef:
    """Definition of one slot in the parameter vector."""
    index: int
    id: str
    label: str
    group: str
    is_macro: bool
    default: int = 50
    min: int = 0
    max: int = 100

_SLOTS = (
    # --- Macro (user-facing) ---
    ("landmark_type", "Landmark Archetype", "placement"),
    ("landmark_x", "Landmark X Position", "placement"),
    ("landmark_y", "Landmark Y Position", "placement"),
    ("terrain_scale", "Continent Scale", "structure"),
    ("water_level", "Sea Level", "hydrology"),
    ("forest_density", "Forest Coverage", "biome"),
    ("mountain_height", "Mountain Height", "structure"),
    ("path_density", "Trail Network", "detail"),
    ("roughness", "Surface Roughness", "detail"),
    ("mountain_density", "Mountain Coverage", "structure"),
    # --- Micro (derived or overridden) ---
    ("river_threshold", "River Threshold", "hydrology"),
    ("river_width", "River Width", "hydrology"),
    ("lake_tendency", "Lake Formation", "hydrology"),
    ("wetland_spread", "Wetland Spread", "hydrology"),
    ("erosion_strength", "Erosion Strength", "structure"),
    ("coastline_complexity", "Coastline Complexity", "structure"),
    ("cliff_frequency", "Cliff Frequency", "structure"),
    ("plateau_size", "Plateau Size", "structure"),
    ("valley_depth", "Valley Depth", "structure"),
    ("ridge_sharpness", "Ridge Sharpness", "structure"),
    ("biome_patchiness", "Biome Patchiness", "biome"),
    ("tree_variety", "Tree Species Variety", "biome"),
    ("undergrowth_density", "Undergrowth Density", "biome"),
    ("meadow_frequency", "Meadow Frequency", "biome"),
    ("temperature_variance", "Temperature Variance", "biome"),
    ("path_branching", "Trail Branching", "detail"),
    ("path_curvature", "Trail Curvature", "detail"),
    ("rock_frequency", "Rock Frequency", "detail"),
    ("micro_elevation", "Micro Elevation", "detail"),
    ("surface_texture", "Surface Texture", "detail"),
    ("poi_density", "POI Density", "placement"),
    ("poi_clustering", "POI Clustering", "placement"),
    ("ruin_frequency", "Ruin Frequency", "placement"),
    ("resource_density", "Resource Density", "placement"),
    ("spawn_safety", "Spawn Safety", "placement"),
)

VAR_SCHEMA = tuple(
    VarDef(index=i, id=var_id, label=label, group=group, is_macro=i < MACRO_VAR_COUNT)
    for i, (var_id, label, group) in enumerate(_SLOTS)
)

VAR_INDEX = {var.id: var.index for var in VAR_SCHEMA}

def get_macro_vars() -> list:
    return [v for v in VAR_SCHEMA if v.is_macro]

def get_micro_vars() -> list:
    return [v for v in VAR_SCHEMA if not v.is_macro]

def get_vars_by_group(group: str) -> list:
    return [v for v in VAR_SCHEMA if v.group == group]

def get_default_vars() -> list:
    return [v.default for v in VAR_SCHEMA]

def get_var_label(index: int) -> str:
    if 0 <= index < TOTAL_VAR_COUNT:
        return VAR_SCHEMA[index].label
    return f"Var {index}"

def clamp_vars(values) -> list:
    """
    Returns a full 35-value vector: missing slots take their default, extra
    values are dropped, and every value is rounded and clamped to its range.
    """
    values = list(values or [])
    result = []
    for var in VAR_SCHEMA:
        raw = values[var.index] if var.index < len(values) else None
        if raw is None:
            result.append(var.default)
            continue
        try:
            number = float(raw)
        except (TypeError, ValueError):
            result.append(var.default)
            continue
        result.append(max(var.min, min(var.max, normalize_var(number))))
    return result

def clamp_macro_vars(values) -> list:
    """Pads/truncates to exactly 10 macro values, each clamped to [0, 100]."""
    return clamp_vars(list(values or [])[:MACRO_VAR_COUNT])[:MACRO_VAR_COUNT]
