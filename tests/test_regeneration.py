import threading
from collections import namedtuple

import pytest

from world_synth.runtime.regeneration import RegenerationController
from world_synth.runtime.tile_cache import TileCache, TileRequest

FakeTile = namedtuple("FakeTile", "coord seed pixel_hash")


class RecordingGenerator:
    def __init__(self):
        self.calls = []
        self.started = threading.Event()
        self.gate = threading.Event()
        self.gate.set()

    def __call__(self, args):
        self.calls.append(args['seed'])
        self.started.set()
        self.gate.wait(5)
        return FakeTile(args['coord'], args['seed'], f"{args['seed']:08X}")


def request(seed):
    return TileRequest.create((0, 0), seed, [50] * 10)


@pytest.fixture
def generator():
    return RecordingGenerator()


@pytest.fixture
def make_controller(generator):
    created = []

    def factory(debounce_seconds=0.2):
        cache = TileCache(config={}, generate=generator)
        controller = RegenerationController(cache, config={'debounce_seconds': debounce_seconds})
        created.append((cache, controller))
        return controller

    yield factory
    generator.gate.set()
    for cache, controller in created:
        controller.close(timeout=5)
        cache.shutdown(wait=True)


def test_rapid_submits_coalesce(make_controller, generator):
    controller = make_controller(debounce_seconds=0.2)
    futures = [controller.submit(request(seed)) for seed in (1, 2, 3)]
    for future in futures:
        assert future.result(timeout=5).seed == 3, "Every coalesced submit resolves with the newest tile"
    assert generator.calls == [3], f"Expected a single generation, got {generator.calls}"
    assert controller.generation_id == 3


def test_immediate_submit_publishes_to_subscribers(make_controller):
    controller = make_controller(debounce_seconds=5.0)
    published = []
    notified = threading.Event()

    def on_tile(tile):
        published.append(tile)
        notified.set()

    controller.subscribe(on_tile)
    tile = controller.submit(request(4), immediate=True).result(timeout=5)
    assert notified.wait(5)
    assert published == [tile]
    assert controller.current is tile


def test_unsubscribe_stops_notifications(make_controller):
    controller = make_controller(debounce_seconds=0.0)
    published = []
    unsubscribe = controller.subscribe(published.append)
    unsubscribe()
    controller.submit(request(5)).result(timeout=5)
    assert published == []


def test_in_flight_generation_is_superseded(make_controller, generator):
    controller = make_controller(debounce_seconds=0.0)
    generator.gate.clear()
    first = controller.submit(request(1), immediate=True)
    assert generator.started.wait(5), "The first generation never started"
    second = controller.submit(request(2), immediate=True)
    generator.gate.set()
    assert second.result(timeout=5).seed == 2
    assert first.result(timeout=5).seed == 2, "Superseded waiters resolve with the newer tile"
    assert controller.current.seed == 2


def test_close_cancels_debounced_requests(make_controller):
    controller = make_controller(debounce_seconds=10.0)
    future = controller.submit(request(6))
    controller.close(timeout=5)
    assert future.cancelled()
    with pytest.raises(RuntimeError):
        controller.submit(request(7))


def test_resubmits_when_another_consumer_supersedes_the_cache(generator):
    cache = TileCache(config={}, generate=generator)
    controller = RegenerationController(cache, config={'debounce_seconds': 0.0})
    try:
        generator.gate.clear()
        future = controller.submit(request(1), immediate=True)
        assert generator.started.wait(5), "The controller's generation never started"
        # A warm-up for the same coordinate makes the controller's generation stale.
        cache.ensure_ready(request(2))
        generator.gate.set()
        assert future.result(timeout=5).seed == 1, "The controller must publish its own request"
        assert controller.current.seed == 1
        assert generator.calls.count(1) == 2
    finally:
        generator.gate.set()
        controller.close(timeout=5)
        cache.shutdown(wait=True)
