# world_synth/presets.py

"""
Named macro-vector presets and deterministic slider randomization.
"""

from dataclasses import dataclass
from typing import Optional

from .curves import ease_in_out, normalize_var
from .noise import hash_values, seeded_random_n
from .schema import MACRO_VAR_COUNT

@dataclass(frozen=True)
class WorldPreset:
    id: str
    name: str
    description: str
    macro: tuple
    suggested_archetype: Optional[str] = None

WORLD_PRESETS = (
    WorldPreset("balanced", "Balanced", "Well-rounded terrain with variety",
                (50, 50, 50, 50, 50, 50, 50, 50, 50, 50)),
    WorldPreset("island_paradise", "Island Paradise", "Tropical islands with lush forests",
                (30, 50, 50, 40, 75, 80, 30, 40, 30, 20), "archipelago"),
    WorldPreset("alpine_peaks", "Alpine Peaks", "Dramatic mountains with snow caps",
                (50, 50, 50, 60, 25, 40, 95, 50, 60, 85), "highlands"),
    WorldPreset("rolling_meadows", "Rolling Meadows", "Gentle hills and open grasslands",
                (40, 50, 50, 35, 30, 25, 20, 60, 25, 15), "plateau"),
    WorldPreset("dense_wilderness", "Dense Wilderness", "Thick forests with hidden paths",
                (60, 50, 50, 50, 40, 95, 40, 25, 45, 30)),
    WorldPreset("river_delta", "River Delta", "Water-rich lowlands with channels",
                (35, 50, 50, 45, 65, 55, 25, 45, 35, 25), "basin"),
    WorldPreset("rugged_frontier", "Rugged Frontier", "Harsh terrain with dramatic features",
                (70, 50, 50, 70, 35, 35, 80, 30, 90, 70), "fractured"),
    WorldPreset("coastal_cliffs", "Coastal Cliffs", "Dramatic coastline with sea views",
                (45, 50, 50, 55, 55, 45, 60, 55, 50, 40), "coastal"),
    WorldPreset("mystic_valley", "Mystic Valley", "Deep valleys surrounded by peaks",
                (80, 50, 50, 40, 45, 65, 75, 40, 40, 45), "basin"),
    WorldPreset("ancient_plateau", "Ancient Plateau", "Flat highlands with steep edges",
                (55, 50, 50, 30, 20, 50, 45, 55, 20, 60), "plateau"),
    WorldPreset("fjord_lands", "Fjord Lands", "Deep water channels between mountains",
                (50, 50, 50, 65, 60, 55, 85, 35, 55, 50), "ridged"),
    WorldPreset("sparse_badlands", "Sparse Badlands", "Dry terrain with minimal vegetation",
                (65, 50, 50, 80, 15, 10, 55, 20, 85, 55), "fractured"),
)

_PRESETS_BY_ID = {preset.id: preset for preset in WORLD_PRESETS}

def get_preset(preset_id: str) -> Optional[WorldPreset]:
    return _PRESETS_BY_ID.get(preset_id)

def randomize_macro_vars(seed: int, stream_id: str = "vars-randomize:v1") -> list:
    """
    Draws a new macro vector from the seed stream. Water level is kept near
    the middle, mountain height skews high and mountain density skews low so
    random worlds stay playable.
    """
    stream_seed = hash_values(seed, stream_id)
    values = []
    for i in range(MACRO_VAR_COUNT):
        raw = seeded_random_n(stream_seed, i)
        if i == 4:
            value = 25 + raw * 50
        elif i == 6:
            value = 20 + ease_in_out(raw) * 80
        elif i == 9:
            value = raw * 70
        else:
            value = raw * 100
        values.append(normalize_var(value))
    return values
