import numpy as np
import pytest

from world_synth.curves import normalize_var
from world_synth.mapping_unified import (
    MAPPING_VERSION as UNIFIED_VERSION,
    build_resolved_params_unified,
    map_vars_realistic,
    path_wear,
)
from world_synth.mapping_v1 import DEFAULT_V1_SEED, is_v1_vector, map_v1_vars, randomize_v1_seed, validate_v1_params
from world_synth.mapping_v2 import (
    ARCHETYPES,
    ARCHETYPE_PROFILES,
    build_resolved_params,
    derive_micro_vars,
    resolve_params,
    select_archetype,
    v1_to_v2_params,
    v2_to_v1_params,
)
from world_synth.noise import hash_values
from world_synth.schema import (
    MACRO_VAR_COUNT,
    TOTAL_VAR_COUNT,
    VAR_SCHEMA,
    clamp_macro_vars,
    clamp_vars,
    get_default_vars,
    get_macro_vars,
    get_micro_vars,
    get_var_label,
    get_vars_by_group,
)

BALANCED = [50] * 10


def test_schema_layout():
    assert len(VAR_SCHEMA) == TOTAL_VAR_COUNT == 35
    assert all(v.is_macro for v in VAR_SCHEMA[:MACRO_VAR_COUNT])
    assert not any(v.is_macro for v in VAR_SCHEMA[MACRO_VAR_COUNT:])
    assert [v.index for v in VAR_SCHEMA] == list(range(35)), "Slot order must be stable"
    assert VAR_SCHEMA[4].id == "water_level"
    assert get_default_vars() == [50] * 35
    assert get_var_label(99) == "Var 99"
    assert sum(len(get_vars_by_group(g)) for g in ("structure", "hydrology", "biome", "detail", "placement")) == 35


def test_clamp_vars_pads_truncates_and_clamps():
    values = clamp_vars([120, -4, "bad", None, 49.5] + [0] * 40)
    assert len(values) == 35
    assert values[:5] == [100, 0, 50, 50, 50], f"Unexpected clamped prefix: {values[:5]}"
    assert clamp_macro_vars([10, 20]) == [10, 20] + [50] * 8
    assert len(clamp_macro_vars(list(range(30)))) == 10


def test_example_scenario_is_stable():
    first = build_resolved_params(12345, BALANCED)
    second = build_resolved_params(12345, BALANCED)
    assert first == second, "Identical input must resolve identically"
    assert first.archetype == select_archetype(12345, BALANCED)
    assert derive_micro_vars(12345, BALANCED, first.archetype) == derive_micro_vars(12345, BALANCED, first.archetype)
    assert len(first.micro) == 25


def test_archetype_base_pick_without_bias():
    # Mid-range sliders never trigger the biased branches.
    expected = ARCHETYPES[hash_values(12345, "archetype", 2, 2) % len(ARCHETYPES)]
    assert select_archetype(12345, BALANCED) == expected


def test_archetype_is_stable_across_many_seeds():
    for seed in range(50):
        macro = [(seed * 7 + i * 13) % 101 for i in range(10)]
        archetype = select_archetype(seed, macro)
        assert archetype in ARCHETYPES, f"Unknown archetype {archetype} for seed {seed}"
        assert archetype == select_archetype(seed, macro), f"Archetype flipped for seed {seed}"


def test_resolved_vars_always_in_range():
    for seed in (0, 1, 999, 2 ** 31 - 1):
        params = build_resolved_params(seed, [0, 100, -50, 500, 99, 1, 100, 0, 100, 0])
        assert len(params.vars) == 35
        assert all(0 <= v <= 100 for v in params.vars), f"Out of range var for seed {seed}: {params.vars}"
        assert params.archetype_index == ARCHETYPES.index(params.archetype)


def test_micro_override_wins_and_bad_indices_are_ignored():
    params = build_resolved_params(12345, BALANCED, {12: 99, 3: 10, 40: 5, 20: 180})
    assert params.vars[12] == 99, "Override should replace the derived value"
    assert params.vars[20] == 100, "Override values are clamped"
    assert params.vars[3] == 50, "Macro indices are not overridable"
    assert len(params.vars) == 35


def test_resolve_params_treats_full_vector_as_overrides():
    base = build_resolved_params(7, BALANCED)
    full = list(base.vars)
    full[15] = 3
    resolved = resolve_params(7, full)
    assert resolved.vars[15] == 3
    assert resolve_params(7, full, version="v1").vars == base.vars, "v1 requests re-derive the micro layer"


def test_grouped_records_follow_water_level():
    params = build_resolved_params(12345, BALANCED)
    profile = ARCHETYPE_PROFILES[params.archetype]
    assert params.structure.water_level == normalize_var(32.5 + profile.water_level_mod * 0.55)
    assert params.hydrology.sea_level == params.structure.water_level / 100


def test_v1_mapping_is_frozen():
    mapped = map_v1_vars(BALANCED)
    assert mapped.continent_scale == pytest.approx(0.06)
    assert mapped.water_level == pytest.approx(0.325)
    assert mapped.forest_density == pytest.approx(0.475)
    assert mapped.mountain_peak_height == pytest.approx(0.6)
    assert mapped.path_density == pytest.approx(0.5)
    assert mapped.terrain_roughness == pytest.approx(0.775)
    assert mapped.mountain_density == pytest.approx(0.51)
    assert (mapped.obj_x, mapped.obj_y) == (32, 32)
    assert mapped.landmark_type == 2
    assert mapped.path_wear == pytest.approx(1.25)


def test_validate_v1_params_defaults_and_clamps():
    params = validate_v1_params()
    assert params.seed == DEFAULT_V1_SEED
    assert params.vars == (50,) * 10
    params = validate_v1_params(7, [120, -3])
    assert params.vars == (100, 0) + (50,) * 8


def test_validate_v1_params_coerces_numeric_seeds():
    assert validate_v1_params(np.int64(987)).seed == 987
    assert type(validate_v1_params(np.int64(987)).seed) is int
    assert validate_v1_params(12345.0).seed == 12345
    assert validate_v1_params(np.float64(-7.5)).seed == -8, "Non-integral seeds are floored"
    for bad in ("987", True, float("nan"), None):
        assert validate_v1_params(bad).seed == DEFAULT_V1_SEED, f"{bad!r} should fall back to the default seed"


def test_v1_v2_conversion_round_trip():
    upgraded = v1_to_v2_params(42, [10, 20, 30, 40, 50, 60, 70, 80, 90, 100])
    assert upgraded.archetype == select_archetype(42, upgraded.macro)
    assert len(upgraded.micro) == 25
    assert v2_to_v1_params(upgraded) == (42, [10, 20, 30, 40, 50, 60, 70, 80, 90, 100])


def test_unified_variant_is_separate_and_stable():
    unified = build_resolved_params_unified(12345, BALANCED)
    v2 = build_resolved_params(12345, BALANCED)
    assert unified.mapping_version == UNIFIED_VERSION
    assert unified.archetype == v2.archetype, "Both variants share archetype selection"
    assert unified == build_resolved_params_unified(12345, BALANCED)
    assert all(0 <= v <= 100 for v in unified.vars)
    realistic = map_vars_realistic(BALANCED, 12345)
    assert unified.hydrology.river_width == realistic.river_width
    assert path_wear(BALANCED, 12345) == realistic.effective_path_wear


def test_schema_partitions_and_v1_helpers():
    assert len(get_macro_vars()) == MACRO_VAR_COUNT
    assert len(get_micro_vars()) == TOTAL_VAR_COUNT - MACRO_VAR_COUNT
    assert is_v1_vector(BALANCED)
    assert not is_v1_vector([50] * 35)
    assert not is_v1_vector(None)
    reseeded = randomize_v1_seed(12345)
    assert reseeded == randomize_v1_seed(12345)
    assert 0 <= reseeded <= 999999
