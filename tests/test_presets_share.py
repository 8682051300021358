from world_synth.mapping_v2 import ARCHETYPES
from world_synth.presets import WORLD_PRESETS, get_preset, randomize_macro_vars
from world_synth.share import ShareSpec, format_share_query, parse_share_query


def test_presets_are_well_formed():
    assert len(WORLD_PRESETS) == 12
    ids = [preset.id for preset in WORLD_PRESETS]
    assert len(set(ids)) == len(ids), f"Duplicate preset ids: {ids}"
    for preset in WORLD_PRESETS:
        assert len(preset.macro) == 10, f"Preset {preset.id} has {len(preset.macro)} values"
        assert all(0 <= v <= 100 for v in preset.macro), f"Preset {preset.id} out of range"
        assert preset.suggested_archetype is None or preset.suggested_archetype in ARCHETYPES


def test_get_preset():
    assert get_preset("balanced").macro == (50,) * 10
    assert get_preset("alpine_peaks").suggested_archetype == "highlands"
    assert get_preset("does_not_exist") is None


def test_randomize_macro_vars_is_deterministic_and_bounded():
    for seed in range(40):
        values = randomize_macro_vars(seed)
        assert values == randomize_macro_vars(seed), f"Randomization not deterministic for seed {seed}"
        assert len(values) == 10
        assert 25 <= values[4] <= 75, f"Water level escaped its band: {values[4]}"
        assert 20 <= values[6] <= 100, f"Mountain height escaped its band: {values[6]}"
        assert 0 <= values[9] <= 70, f"Mountain density escaped its band: {values[9]}"
    assert randomize_macro_vars(1) != randomize_macro_vars(1, stream_id="other-stream")


def test_format_share_query():
    spec = ShareSpec(seed=777, macro=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
                     micro_overrides={15: 80, 12: 40}, mapping_version="v2")
    query = format_share_query(spec)
    assert query == "seed=777&vars=10,20,30,40,50,60,70,80,90,100&v=v2&mv=12:40,15:80", query


def test_share_query_parses_back():
    spec = ShareSpec(seed=-31, macro=(0,) * 10, micro_overrides={34: 1}, mapping_version="v2-unified")
    assert parse_share_query("?" + format_share_query(spec)) == spec


def test_parse_share_query_degrades_gracefully():
    spec = parse_share_query("seed=abc&vars=1,2,3&v=v9&mv=5:10,12:250,x:3,20:bad")
    assert spec.seed == 12345, "Unparseable seed falls back to the default"
    assert spec.macro == (50,) * 10, "A vars list that is not 10 long is ignored"
    assert spec.mapping_version == "v1", "Unknown versions read as legacy v1"
    assert spec.micro_overrides == {12: 100, 20: 50}, f"Unexpected overrides: {spec.micro_overrides}"


def test_parse_share_query_leading_integers_and_clamping():
    spec = parse_share_query("seed=42abc&vars=150,-5,x,50,50,50,50,50,50,7&v=v2")
    assert spec.seed == 42
    assert spec.macro == (100, 0, 50, 50, 50, 50, 50, 50, 50, 7)
    assert spec.mapping_version == "v2"
    assert spec.micro_overrides == {}
