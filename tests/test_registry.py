import pytest

from world_synth.runtime.registry import InMemoryLandRegistry, create_land_record, to_tile_request
from world_synth.runtime.tile_cache import make_tile_key


def test_create_land_record_normalizes():
    land = create_land_record("alice", 12.9, [10.5, 120, -4], pos_x=2, pos_y=-3, mapping_version="v2")
    assert land.seed == 12
    assert land.vars == (11, 100, 0, 50, 50, 50, 50, 50, 50, 50), f"Unexpected vars {land.vars}"
    assert land.coord == (2, -3)
    assert land.mapping_version == "v2"


def test_unknown_versions_store_as_v1():
    assert create_land_record("bob", 1, [50] * 10, mapping_version="v2-unified").mapping_version == "v1"
    assert create_land_record("bob", 1, [50] * 10, mapping_version="v1").mapping_version == "v1"


def test_add_and_lookup():
    registry = InMemoryLandRegistry()
    land = registry.add(create_land_record("alice", 1, [50] * 10, 0, 0))
    assert registry.get_land_at(0, 0) is land
    assert registry.get_land_at(1, 0) is None
    assert registry.get_land_by_player("alice") is land
    assert len(registry) == 1
    assert registry.remove(0, 0) is land
    assert registry.get_land_at(0, 0) is None


def test_claim_conflicts():
    registry = InMemoryLandRegistry([create_land_record("alice", 1, [50] * 10, 0, 0)])
    with pytest.raises(ValueError):
        registry.add(create_land_record("bob", 2, [50] * 10, 0, 0))
    with pytest.raises(ValueError):
        registry.add(create_land_record("alice", 3, [50] * 10, 5, 5))
    updated = registry.add(create_land_record("alice", 9, [60] * 10, 0, 0))
    assert registry.get_land_at(0, 0) is updated, "An owner may update their own land"


def test_area_query_is_inclusive_and_ordered():
    registry = InMemoryLandRegistry([
        create_land_record("a", 1, [], 1, 1),
        create_land_record("b", 1, [], 0, 1),
        create_land_record("c", 1, [], 2, 0),
        create_land_record("d", 1, [], 3, 3),
    ])
    found = registry.get_lands_in_area(0, 0, 2, 2)
    assert [land.player_id for land in found] == ["c", "b", "a"]


def test_to_tile_request():
    land = create_land_record("alice", 99, [50] * 10, 3, -2, "v2", {15: 80, 12: 40})
    request = to_tile_request(land, grid_size=32)
    assert request.grid_size == 32
    assert make_tile_key(request) == "3,-2|99|50,50,50,50,50,50,50,50,50,50|12:40,15:80|v2"
