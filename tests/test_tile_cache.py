import threading
from collections import namedtuple
from concurrent.futures import CancelledError

import pytest

from world_synth.executor import ExecutorError, GenerationTimeout
from world_synth.runtime.tile_cache import TileCache, TileRequest, make_tile_key

FakeTile = namedtuple("FakeTile", "coord seed pixel_hash")


class GatedGenerator:
    """Stands in for the generation job; each seed blocks until released."""
    def __init__(self, fail_seeds=()):
        self.calls = []
        self.fail_seeds = set(fail_seeds)
        self._gates = {}
        self._lock = threading.Lock()

    def gate(self, seed):
        with self._lock:
            return self._gates.setdefault(seed, threading.Event())

    def release(self, seed):
        self.gate(seed).set()

    def release_all(self):
        with self._lock:
            for gate in self._gates.values():
                gate.set()

    def __call__(self, args):
        with self._lock:
            self.calls.append(args['seed'])
        self.gate(args['seed']).wait(5)
        if args['seed'] in self.fail_seeds:
            raise RuntimeError("boom")
        return FakeTile(args['coord'], args['seed'], f"{args['seed']:08X}")


def request(seed, coord=(0, 0)):
    return TileRequest.create(coord, seed, [50] * 10)


@pytest.fixture
def generator():
    gen = GatedGenerator(fail_seeds={3})
    yield gen
    gen.release_all()


@pytest.fixture
def cache(generator):
    tile_cache = TileCache(config={'generation_timeout_seconds': 5.0}, generate=generator)
    yield tile_cache
    generator.release_all()
    tile_cache.shutdown(wait=True)


def test_tile_key_format():
    req = TileRequest.create((3, -2), 99, [50] * 10, {15: 80, 12: 40}, "v2")
    assert make_tile_key(req) == "3,-2|99|50,50,50,50,50,50,50,50,50,50|12:40,15:80|v2"


def test_request_drops_macro_overrides_and_clamps():
    req = TileRequest.create((0, 0), 1, [150] + [50] * 9, {3: 10, 20: 120.4})
    assert req.macro[0] == 100
    assert req.micro_overrides == ((20, 100),), "Only micro indices may be overridden"


def test_concurrent_requests_share_one_generation(cache, generator):
    first = cache.ensure_ready(request(1))
    second = cache.ensure_ready(request(1))
    assert first is second, "A key in flight must not start a second generation"
    generator.release(1)
    assert first.result(timeout=5).seed == 1
    assert generator.calls == [1]


def test_cached_tile_resolves_immediately(cache, generator):
    generator.release(1)
    tile = cache.ensure_ready(request(1)).result(timeout=5)
    again = cache.ensure_ready(request(1))
    assert again.done()
    assert again.result() is tile
    assert generator.calls == [1]


def test_status_transitions(cache, generator):
    req = request(1)
    assert cache.status(req) == 'none'
    future = cache.ensure_ready(req)
    assert cache.status(req) == 'pending'
    generator.release(1)
    future.result(timeout=5)
    assert cache.status(req) == 'cached'
    assert cache.invalidate(req)
    assert cache.status(req) == 'none'


def test_superseded_generation_is_discarded(cache, generator):
    older = cache.ensure_ready(request(1))
    newer = cache.ensure_ready(request(2))
    generator.release(2)
    assert newer.result(timeout=5).seed == 2
    generator.release(1)
    with pytest.raises(CancelledError):
        older.result(timeout=5)
    assert cache.get(request(1)) is None, "A stale result must never reach the cache"
    assert cache.get(request(2)).seed == 2


def test_generations_for_different_coords_do_not_supersede(cache, generator):
    here = cache.ensure_ready(request(1, coord=(0, 0)))
    there = cache.ensure_ready(request(2, coord=(1, 0)))
    generator.release_all()
    assert here.result(timeout=5).seed == 1
    assert there.result(timeout=5).seed == 2


def test_failure_keeps_existing_entries(cache, generator):
    cache.set(request(7), FakeTile((0, 0), 7, "old"))
    generator.release(3)
    with pytest.raises(ExecutorError):
        cache.ensure_ready(request(3)).result(timeout=5)
    assert cache.status(request(3)) == 'failed'
    assert "boom" in cache.last_error(request(3))
    assert cache.get(request(7)).pixel_hash == "old", "A failed generation must not touch other entries"


def test_generation_timeout(generator):
    tile_cache = TileCache(config={'generation_timeout_seconds': 0.05}, generate=generator)
    try:
        with pytest.raises(GenerationTimeout):
            tile_cache.ensure_ready(request(1)).result(timeout=5)
        assert tile_cache.status(request(1)) == 'failed'
    finally:
        generator.release_all()
        tile_cache.shutdown(wait=True)


def test_neighbor_coords_order():
    assert TileCache.neighbor_coords(4, 7) == [(4, 6), (4, 8), (5, 7), (3, 7)]


def test_prefetch_respects_neighbor_limit(cache, generator):
    started = cache.prefetch_neighbors((0, 0), lambda coord: request(10, coord))
    assert len(started) == 2
    generator.release(10)
    for future in started:
        assert future.result(timeout=5).seed == 10
    assert cache.has(request(10, (0, -1)))
    assert cache.has(request(10, (0, 1)))


def test_prefetch_skips_missing_neighbors(cache, generator):
    started = cache.prefetch_neighbors((0, 0), lambda coord: None)
    assert started == []


def test_prefetch_bounded_by_preload_capacity(generator):
    tile_cache = TileCache(config={'max_preload_entries': 1, 'prefetch_neighbor_limit': 4}, generate=generator)
    try:
        started = tile_cache.prefetch_neighbors((0, 0), lambda coord: request(11, coord))
        assert len(started) == 1, "Only one prefetch may be in flight"
    finally:
        generator.release_all()
        tile_cache.shutdown(wait=True)


def test_cache_hit_supersedes_pending_generation(cache, generator):
    older = cache.ensure_ready(request(1))
    cache.set(request(2), FakeTile((0, 0), 2, "newer"))
    hit = cache.ensure_ready(request(2))
    assert hit.result(timeout=5).pixel_hash == "newer"

    generator.release(1)
    with pytest.raises(CancelledError):
        older.result(timeout=5)
    assert cache.get(request(1)) is None, "An older generation must not land after a newer cache hit"


def test_rejects_requests_for_another_grid_size(cache, generator):
    other_size = TileRequest.create((0, 0), 1, [50] * 10, grid_size=32)
    with pytest.raises(ValueError):
        cache.ensure_ready(other_size)
    with pytest.raises(ValueError):
        cache.set(other_size, FakeTile((0, 0), 1, "small"))
    assert generator.calls == []

    small_cache = TileCache(config={'grid_size': 32}, generate=generator)
    try:
        generator.release(1)
        assert small_cache.ensure_ready(other_size).result(timeout=5).seed == 1
    finally:
        small_cache.shutdown(wait=True)


def test_timeout_starts_when_the_job_runs(generator):
    tile_cache = TileCache(config={'generation_workers': 1, 'generation_timeout_seconds': 0.3}, generate=generator)
    generator.release(2)
    release_first = threading.Timer(0.6, generator.release, args=(1,))
    try:
        blocked = tile_cache.ensure_ready(request(1, coord=(0, 0)))
        queued = tile_cache.ensure_ready(request(2, coord=(1, 0)))
        release_first.start()
        with pytest.raises(GenerationTimeout):
            blocked.result(timeout=5)
        assert queued.result(timeout=5).seed == 2, "Time spent queued must not count against the timeout"
    finally:
        release_first.cancel()
        generator.release_all()
        tile_cache.shutdown(wait=True)
