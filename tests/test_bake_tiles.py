import json
import os

from bake_tiles import bake_tiles, build_land_registry
from world_synth.noise import hash_values


def write_config(tmp_path, params):
    path = tmp_path / "bake.json"
    path.write_text(json.dumps({'world_synthesis_parameters': params}))
    return str(path)


def test_missing_config_fails(tmp_path):
    assert bake_tiles(str(tmp_path / "missing.json")) == 1


def test_invalid_json_fails(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    assert bake_tiles(str(path)) == 1


def test_empty_region_fails(tmp_path):
    config_path = write_config(tmp_path, {'region': {'min_x': 2, 'max_x': 1}})
    assert bake_tiles(config_path) == 1


def test_small_bake_writes_manifest(tmp_path):
    output_dir = tmp_path / "out"
    config_path = write_config(tmp_path, {
        'seed': 12345,
        'vars': [50] * 10,
        'mapping_version': "v2",
        'grid_size': 16,
        'region': {'min_x': 0, 'min_y': 0, 'max_x': 1, 'max_y': 0},
        'output_dir': str(output_dir),
    })
    assert bake_tiles(config_path) == 0

    base = os.path.join(output_dir, "seed_12345_v2")
    with open(os.path.join(base, "manifest.json")) as f:
        manifest = json.load(f)
    assert manifest['origin'] == [0, 0]
    assert len(manifest['tiles']) == 1 and len(manifest['tiles'][0]) == 2
    for entry in manifest['tiles'][0]:
        assert os.path.exists(os.path.join(base, "tiles", f"{entry['pixel_hash']}.png"))
    seeds = [entry['seed'] for entry in manifest['tiles'][0]]
    assert seeds == [hash_values(12345, 0, 0), hash_values(12345, 1, 0)]
    assert manifest['tiles'][0][0]['pixel_hash'] != manifest['tiles'][0][1]['pixel_hash'], \
        "Neighbouring tiles must be synthesized from their own seeds"


def test_region_records_get_their_own_seeds():
    registry = build_land_registry({'seed': 7, 'region': {'min_x': -1, 'min_y': 0, 'max_x': 1, 'max_y': 1}})
    lands = registry.get_lands_in_area(-1, 0, 1, 1)
    assert len(lands) == 6
    assert len({land.seed for land in lands}) == 6, f"Seeds repeat: {[land.seed for land in lands]}"
    assert registry.get_land_at(-1, 1).seed == hash_values(7, -1, 1)


def test_duplicate_land_claims_fail(tmp_path):
    config_path = write_config(tmp_path, {
        'lands': [
            {'player_id': "alice", 'pos_x': 0, 'pos_y': 0},
            {'player_id': "bob", 'pos_x': 0, 'pos_y': 0},
        ],
        'output_dir': str(tmp_path / "out"),
    })
    assert bake_tiles(config_path) == 1


def test_bake_from_claimed_lands(tmp_path):
    output_dir = tmp_path / "out"
    config_path = write_config(tmp_path, {
        'seed': 1,
        'mapping_version': "v2",
        'grid_size': 16,
        'lands': [
            {'player_id': "alice", 'seed': 111, 'vars': [80, 20], 'pos_x': 0, 'pos_y': 0},
            {'player_id': "bob", 'seed': 222, 'vars': [10, 90, 40], 'pos_x': 1, 'pos_y': 1},
        ],
        'output_dir': str(output_dir),
    })
    assert bake_tiles(config_path) == 0

    with open(os.path.join(output_dir, "seed_1_v2", "manifest.json")) as f:
        manifest = json.load(f)
    assert manifest['origin'] == [0, 0], "The region defaults to the bounding box of the lands"
    tiles = manifest['tiles']
    assert tiles[0][1] is None and tiles[1][0] is None, "Unclaimed coordinates stay empty"
    assert (tiles[0][0]['player_id'], tiles[0][0]['seed']) == ("alice", 111)
    assert tiles[0][0]['vars'] == [80, 20] + [50] * 8
    assert (tiles[1][1]['player_id'], tiles[1][1]['seed']) == ("bob", 222)
    assert tiles[1][1]['vars'] == [10, 90, 40] + [50] * 7
