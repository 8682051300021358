import pytest

from world_synth.executor import (
    ExecutorError,
    build_tile,
    execute,
    resolve_for_source,
    run_tile_generation_job,
    source_for_version,
)
from world_synth.mapping_v1 import V1Params
from world_synth.mapping_v2 import ARCHETYPES, ResolvedParams

GRID_SIZE = 16


def test_source_for_version():
    assert source_for_version("v2").use_derived_fields
    assert source_for_version("v2-unified").mapping_version == "v2-unified"
    legacy = source_for_version("v1")
    assert not legacy.use_derived_fields, "The legacy source never reads derived fields"
    unknown = source_for_version("v7", GRID_SIZE)
    assert unknown.mapping_version == "v1", "Unknown tags fall back to v1"
    assert unknown.grid_size == GRID_SIZE


def test_resolve_for_source_returns_matching_record():
    assert isinstance(resolve_for_source(source_for_version("v1"), 3, [50] * 10), V1Params)
    resolved = resolve_for_source(source_for_version("v2"), 3, [50] * 10, {12: 70})
    assert isinstance(resolved, ResolvedParams)
    assert resolved.vars[12] == 70


def test_execute_rejects_mismatched_dimensions():
    source = source_for_version("v2", GRID_SIZE)
    with pytest.raises(ExecutorError) as excinfo:
        execute(source, 1, [50] * 10, (GRID_SIZE, GRID_SIZE + 1))
    assert excinfo.value.source == source.name
    assert excinfo.value.seed == 1


def test_execute_wraps_failures():
    source = source_for_version("v2", GRID_SIZE)
    with pytest.raises(ExecutorError) as excinfo:
        execute(source, 1, object(), (GRID_SIZE, GRID_SIZE))
    assert excinfo.value.__cause__ is not None, "The underlying error should be chained"


def test_execute_is_pure():
    source = source_for_version("v2", GRID_SIZE)
    first = execute(source, 5, [50] * 10, (GRID_SIZE, GRID_SIZE))
    second = execute(source, 5, [50] * 10, (GRID_SIZE, GRID_SIZE))
    assert (first.tile_type == second.tile_type).all()
    assert (first.elevation == second.elevation).all()


def test_build_tile_records_its_inputs():
    tile = build_tile((2, -1), 12345, [50] * 10, {15: 80}, "v2", GRID_SIZE)
    assert tile.coord == (2, -1)
    assert tile.mapping_version == "v2"
    assert tile.micro_overrides == ((15, 80),)
    assert tile.archetype in ARCHETYPES
    assert len(tile.vars) == 35 and tile.vars[15] == 80
    assert tile.grid_size == GRID_SIZE
    assert len(tile.content_hash) == 64
    assert len(tile.pixel_hash) == 8

    legacy = build_tile((0, 0), 12345, [50] * 10, mapping_version="v1", grid_size=GRID_SIZE)
    assert legacy.archetype is None
    assert len(legacy.vars) == 10


def test_run_tile_generation_job():
    tile = run_tile_generation_job({'coord': (1, 2), 'seed': 5, 'macro': [50] * 10, 'grid_size': GRID_SIZE})
    assert tile.coord == (1, 2)
    assert tile.mapping_version == "v2"


def test_run_tile_generation_job_raises_executor_error():
    with pytest.raises(ExecutorError):
        run_tile_generation_job({'coord': (0, 0), 'macro': [50] * 10})
