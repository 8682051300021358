# world_synth/runtime/tile_cache.py

"""
================================================================================
TILE CACHE
================================================================================
Bounded, TTL-aware storage of synthesized tiles plus the asynchronous
generation that fills it.

Per cache key the lifecycle is Idle -> Generating -> Cached | Failed.
Concurrent requests for the same key share one generation. Every generation
gets a strictly increasing id and each tile coordinate remembers the id of
its latest request: a completion whose id is no longer the latest for its
coordinate is discarded (never written to the cache) and its future is
cancelled. A failed or timed-out generation leaves existing entries
untouched and surfaces ExecutorError / GenerationTimeout on the future.
The timeout clock starts when a job starts running. A cache serves a single
grid size; requests for any other size are rejected with ValueError.

Data Contract:
---------------
- Inputs (on initialization):
    - config (dict): Overrides for the cache defaults in config.py.
    - logger: A configured Python logging object for runtime messages.
    - executor (concurrent.futures.Executor, optional): Where generation
      jobs run. Defaults to a private thread pool; a ProcessPoolExecutor
      works as well since the job entry point is pickle-able.
    - generate (callable, optional): Job function, `args dict -> Tile`.
- Outputs: Tiles, and concurrent.futures.Future objects resolving to tiles.
- Side Effects: Runs background generation; logs.
================================================================================
"""

import itertools
import logging
import threading
import time
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .. import config as DEFAULTS
from ..curves import normalize_var
from ..executor import ExecutorError, GenerationTimeout, Tile, run_tile_generation_job
from ..schema import MACRO_VAR_COUNT, TOTAL_VAR_COUNT, clamp_macro_vars
from .lru_cache import LRUCache

# ============================================
# REQUESTS & KEYS
# ============================================

@dataclass(frozen=True)
class TileRequest:
    coord: Tuple[int, int]
    seed: int
    macro: Tuple[int, ...]
    micro_overrides: Tuple[Tuple[int, int], ...] = ()
    mapping_version: str = DEFAULTS.DEFAULT_MAPPING_VERSION
    grid_size: int = DEFAULTS.GRID_SIZE

    @classmethod
    def create(cls, coord, seed: int, macro, micro_overrides: Optional[Mapping[int, float]] = None,
               mapping_version: str = DEFAULTS.DEFAULT_MAPPING_VERSION,
               grid_size: int = DEFAULTS.GRID_SIZE) -> "TileRequest":
        """Normalizes raw input: macro clamped to 10 values, overrides sorted and clamped."""
        overrides = tuple(sorted(
            (int(index), normalize_var(float(value)))
            for index, value in (micro_overrides or {}).items()
            if MACRO_VAR_COUNT <= int(index) < TOTAL_VAR_COUNT
        ))
        return cls(
            coord=(int(coord[0]), int(coord[1])),
            seed=int(seed),
            macro=tuple(clamp_macro_vars(macro)),
            micro_overrides=overrides,
            mapping_version=mapping_version,
            grid_size=grid_size,
        )

    def to_job_args(self) -> dict:
        return {
            'coord': self.coord,
            'seed': self.seed,
            'macro': list(self.macro),
            'micro_overrides': dict(self.micro_overrides),
            'mapping_version': self.mapping_version,
            'grid_size': self.grid_size,
        }

def make_tile_key(request: TileRequest) -> str:
    """"x,y|seed|m0,...,m9|i:v,...|version" with override pairs in index order."""
    x, y = request.coord
    macro = ",".join(str(v) for v in request.macro)
    overrides = ",".join(f"{index}:{value}" for index, value in sorted(request.micro_overrides))
    return f"{x},{y}|{request.seed}|{macro}|{overrides}|{request.mapping_version}"

def settle_future(future: Future, result=None, exception: Optional[BaseException] = None) -> bool:
    """Resolves a future unless a waiter already cancelled it. Returns whether it was set."""
    try:
        if exception is not None:
            future.set_exception(exception)
        else:
            future.set_result(result)
    except InvalidStateError:
        return False
    return True

# ============================================
# CACHE
# ============================================

class TileCache:
    """Tile storage with single-flight, supersession-safe generation."""
    def __init__(self, config: dict, logger: logging.Logger = None, executor=None,
                 generate: Callable[[dict], Tile] = None, clock: Callable[[], float] = time.monotonic):
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config or {}

        # --- Consolidate Configuration ---
        self.settings = {
            'max_entries': self.user_config.get('max_entries', DEFAULTS.CACHE_MAX_ENTRIES),
            'ttl_seconds': self.user_config.get('ttl_seconds', DEFAULTS.CACHE_TTL_SECONDS),
            'max_preload_entries': self.user_config.get('max_preload_entries', DEFAULTS.MAX_PRELOAD_ENTRIES),
            'prefetch_neighbor_limit': self.user_config.get('prefetch_neighbor_limit', DEFAULTS.PREFETCH_NEIGHBOR_LIMIT),
            'generation_workers': self.user_config.get('generation_workers', DEFAULTS.GENERATION_WORKERS),
            'grid_size': self.user_config.get('grid_size', DEFAULTS.GRID_SIZE),
            'generation_timeout_seconds': self.user_config.get('generation_timeout_seconds', DEFAULTS.GENERATION_TIMEOUT_SECONDS),
            'start_poll_seconds': self.user_config.get('start_poll_seconds', DEFAULTS.GENERATION_START_POLL_SECONDS),
        }

        self._cache = LRUCache(self.settings['max_entries'], self.settings['ttl_seconds'], clock)
        self._lock = threading.RLock()
        self._pending: Dict[str, Tuple[Future, int]] = {}
        self._failed: Dict[str, str] = {}
        self._latest_generation: Dict[Tuple[int, int], int] = {}
        self._generation_ids = itertools.count(1)
        self._prefetching: set = set()

        self._generate = generate or run_tile_generation_job
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings['generation_workers'], thread_name_prefix="tile-generation")
        # Supervisors wait on generation jobs so the timeout is enforced on
        # the caller side, independent of the executor.
        self._supervisor = ThreadPoolExecutor(
            max_workers=self.settings['generation_workers'] * 2, thread_name_prefix="tile-supervisor")

        self.logger.info(
            f"TileCache initialized (capacity {self.settings['max_entries']}, "
            f"ttl {self.settings['ttl_seconds']}s, timeout {self.settings['generation_timeout_seconds']}s)."
        )

    def _key(self, request: TileRequest) -> str:
        """Cache key for `request`. Keys carry no grid size, so one cache holds one size."""
        if request.grid_size != self.settings['grid_size']:
            raise ValueError(
                f"Tile request for grid size {request.grid_size} does not match the cache grid size "
                f"{self.settings['grid_size']}"
            )
        return make_tile_key(request)

    # --- Synchronous access ---

    def get(self, request: TileRequest) -> Optional[Tile]:
        with self._lock:
            return self._cache.get(self._key(request))

    def set(self, request: TileRequest, tile: Tile) -> None:
        key = self._key(request)
        with self._lock:
            self._latest_generation[request.coord] = next(self._generation_ids)
            self._cache.set(key, tile)
            self._failed.pop(key, None)

    def has(self, request: TileRequest) -> bool:
        with self._lock:
            return self._cache.has(self._key(request))

    def invalidate(self, request: TileRequest) -> bool:
        key = self._key(request)
        with self._lock:
            self._failed.pop(key, None)
            return self._cache.delete(key)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._failed.clear()

    def prune(self) -> int:
        with self._lock:
            removed = self._cache.prune()
        if removed:
            self.logger.debug(f"Pruned {removed} expired tiles.")
        return removed

    def status(self, request: TileRequest) -> str:
        """'cached', 'pending', 'failed' or 'none'."""
        key = self._key(request)
        with self._lock:
            if self._cache.has(key):
                return 'cached'
            if key in self._pending:
                return 'pending'
            if key in self._failed:
                return 'failed'
            return 'none'

    def last_error(self, request: TileRequest) -> Optional[str]:
        with self._lock:
            return self._failed.get(self._key(request))

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    # --- Asynchronous generation ---

    def ensure_ready(self, request: TileRequest) -> Future:
        """
        Returns a future for the tile, starting a generation only if the tile
        is neither cached nor already being generated. Every request becomes
        the latest one for its coordinate: a cache hit supersedes older
        generations still in flight, and requesting a key that is already in
        flight makes that generation current again.
        """
        key = self._key(request)
        with self._lock:
            tile = self._cache.get(key)
            if tile is not None:
                self._latest_generation[request.coord] = next(self._generation_ids)
                future = Future()
                future.set_result(tile)
                return future

            pending = self._pending.get(key)
            if pending is not None:
                future, generation_id = pending
                self._latest_generation[request.coord] = generation_id
                return future

            generation_id = next(self._generation_ids)
            self._latest_generation[request.coord] = generation_id
            future = Future()
            self._pending[key] = (future, generation_id)

        self.logger.debug(f"Generating tile {key} (generation {generation_id}).")
        self._supervisor.submit(self._run_generation, request, key, generation_id, future)
        return future

    def _run_generation(self, request: TileRequest, key: str, generation_id: int, future: Future) -> None:
        timeout = self.settings['generation_timeout_seconds']
        tile = None
        error = None
        job = None
        try:
            job = self._executor.submit(self._generate, request.to_job_args())
            # The timeout covers running time only, not time queued behind other jobs.
            while not (job.running() or job.done()):
                time.sleep(self.settings['start_poll_seconds'])
            tile = job.result(timeout=timeout)
        except FutureTimeoutError:
            job.cancel()
            error = GenerationTimeout(f"Tile {request.coord} was not generated within {timeout}s", seed=request.seed)
        except ExecutorError as e:
            error = e
        except Exception as e:
            error = ExecutorError(f"Tile {request.coord} failed: {e}", seed=request.seed)

        with self._lock:
            if self._pending.get(key, (None,))[0] is future:
                del self._pending[key]
            is_current = self._latest_generation.get(request.coord) == generation_id

            if not is_current:
                self.logger.debug(f"Discarding stale generation {generation_id} for tile {key}.")
                future.cancel()
                return

            if error is not None:
                self._failed[key] = str(error)
            else:
                self._cache.set(key, tile)
                self._failed.pop(key, None)

        if error is not None:
            self.logger.error(f"Generation {generation_id} for tile {key} failed: {error}")
            settle_future(future, exception=error)
        else:
            settle_future(future, result=tile)

    # --- Neighbors ---

    @staticmethod
    def neighbor_coords(x: int, y: int) -> List[Tuple[int, int]]:
        """North, south, east and west neighbors, in that order."""
        return [(x, y - 1), (x, y + 1), (x + 1, y), (x - 1, y)]

    def prefetch_neighbors(self, coord, resolve_request: Callable[[Tuple[int, int]], Optional[TileRequest]],
                           limit: int = None) -> List[Future]:
        """
        Starts generation for up to `limit` uncached neighbors of `coord`.
        At most `max_preload_entries` prefetches are in flight at once.

        Args:
            coord (tuple): The current tile coordinate.
            resolve_request (callable): Maps a neighbor coordinate to its
                TileRequest, or None when nothing exists there.
            limit (int, optional): Defaults to `prefetch_neighbor_limit`.
        """
        if limit is None:
            limit = self.settings['prefetch_neighbor_limit']
        started = []
        for neighbor in self.neighbor_coords(*coord):
            if len(started) >= limit:
                break
            request = resolve_request(neighbor)
            if request is None:
                continue
            key = self._key(request)
            with self._lock:
                if self._cache.has(key) or key in self._pending:
                    continue
                if len(self._prefetching) >= self.settings['max_preload_entries']:
                    break
                self._prefetching.add(key)
            future = self.ensure_ready(request)
            future.add_done_callback(lambda _, key=key: self._finish_prefetch(key))
            started.append(future)
        if started:
            self.logger.debug(f"Prefetching {len(started)} neighbors of tile {coord}.")
        return started

    def _finish_prefetch(self, key: str) -> None:
        with self._lock:
            self._prefetching.discard(key)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            pending = [future for future, _ in self._pending.values()]
            self._pending.clear()
        for future in pending:
            future.cancel()
        self._supervisor.shutdown(wait=wait)
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
        self.logger.info("TileCache shut down.")
