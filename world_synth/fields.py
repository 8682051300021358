# world_synth/fields.py

"""
================================================================================
DERIVED FIELDS
================================================================================
Continuous scalar fields (wetness, temperature, ruggedness) sampled per grid
cell from the resolved parameters. The synthesizer uses them to bias biome
decisions: wetness scales the forest threshold, temperature scales meadow
frequency and ruggedness scales the detail-noise amplitude.

Data Contract:
---------------
- Inputs:
    - params (ResolvedParams): The resolved world recipe.
    - grid_size (int): Side length of the tile grid.
- Outputs:
    - DerivedFields: Three read-only (grid_size, grid_size) float arrays in
      [0, 1], indexed [y, x].
- Side Effects: None.
- Invariants: Each field is a pure function of (seed, params, x, y).
================================================================================
"""

from dataclasses import dataclass

import numpy as np

from .mapping_v2 import ResolvedParams
from .noise import fractal_noise_2d, hash_values, value_noise_2d

def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))

def sample_wetness(params: ResolvedParams, x: float, y: float, grid_size: int = 64) -> float:
    """Moisture from base noise, rainfall and a simulated water proximity, minus an elevation penalty."""
    field_seed = hash_values(params.seed, "wetness")
    nx = x / grid_size
    ny = y / grid_size

    base_moisture = fractal_noise_2d(nx * 4, ny * 4, field_seed, 3, 0.5, 2)
    water_proximity = value_noise_2d(nx * 2, ny * 2, field_seed + 1000)
    water_boost = 0.3 if water_proximity > (1 - params.hydrology.sea_level) else 0.0
    elevation_penalty = fractal_noise_2d(nx * 3, ny * 3, field_seed + 2000, 2) * params.structure.mountain_density * 0.2

    return _clamp01(
        base_moisture * 0.6
        + params.hydrology.rainfall_amount * 0.3
        + water_boost
        - elevation_penalty
    )

def sample_temperature(params: ResolvedParams, x: float, y: float, grid_size: int = 64) -> float:
    """Latitude-like gradient plus noise, cooled where peaks are high."""
    field_seed = hash_values(params.seed, "temperature")
    nx = x / grid_size
    ny = y / grid_size

    latitude_effect = 1 - abs(ny - 0.5) * 2 * params.biome.temperature_variance
    temp_noise = fractal_noise_2d(nx * 3, ny * 3, field_seed, 2, 0.6, 2)
    elevation_cooling = fractal_noise_2d(nx * 4, ny * 4, field_seed + 3000, 2) * params.structure.mountain_peak_height * 0.4

    return _clamp01(latitude_effect * 0.5 + temp_noise * 0.3 + 0.3 - elevation_cooling)

def sample_ruggedness(params: ResolvedParams, x: float, y: float, grid_size: int = 64) -> float:
    field_seed = hash_values(params.seed, "ruggedness")
    nx = x / grid_size
    ny = y / grid_size
    structure = params.structure

    base_rugged = fractal_noise_2d(nx * 5, ny * 5, field_seed, 3, 0.5, 2)

    mountain_noise = value_noise_2d(nx * 2, ny * 2, field_seed + 4000)
    mountain_boost = (mountain_noise - 0.6) * structure.mountain_density if mountain_noise > 0.6 else 0.0

    cliff_noise = value_noise_2d(nx * 8, ny * 8, field_seed + 5000)
    cliff_boost = structure.cliff_frequency * 0.3 if cliff_noise > 0.7 else 0.0

    erosion_smooth = structure.erosion_strength * 0.15

    return _clamp01(
        base_rugged * params.detail.terrain_roughness * 0.5
        + mountain_boost
        + cliff_boost
        - erosion_smooth
    )

@dataclass(frozen=True)
class DerivedFields:
    wetness: np.ndarray
    temperature: np.ndarray
    ruggedness: np.ndarray

    @property
    def grid_size(self) -> int:
        return self.wetness.shape[0]

@dataclass(frozen=True)
class FieldSample:
    wetness: float
    temperature: float
    ruggedness: float

# Returned for coordinates outside the grid.
NEUTRAL_SAMPLE = FieldSample(0.5, 0.5, 0.5)

def _field_array(sampler, params: ResolvedParams, grid_size: int) -> np.ndarray:
    values = np.empty((grid_size, grid_size), dtype=np.float64)
    for y in range(grid_size):
        for x in range(grid_size):
            values[y, x] = sampler(params, x, y, grid_size)
    values.flags.writeable = False
    return values

def create_derived_fields(params: ResolvedParams, grid_size: int = 64) -> DerivedFields:
    """Evaluates all three fields over the whole grid."""
    return DerivedFields(
        wetness=_field_array(sample_wetness, params, grid_size),
        temperature=_field_array(sample_temperature, params, grid_size),
        ruggedness=_field_array(sample_ruggedness, params, grid_size),
    )

def sample_fields(fields: DerivedFields, x: int, y: int) -> FieldSample:
    """Bounds-checked lookup; outside the grid every field reads 0.5."""
    size = fields.grid_size
    if not (0 <= x < size and 0 <= y < size):
        return NEUTRAL_SAMPLE
    return FieldSample(
        wetness=float(fields.wetness[y, x]),
        temperature=float(fields.temperature[y, x]),
        ruggedness=float(fields.ruggedness[y, x]),
    )
