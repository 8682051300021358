# world_synth/runtime/regeneration.py

"""
================================================================================
REGENERATION CONTROLLER
================================================================================
Turns a stream of parameter edits (slider drags, preset picks) into as few
generations as possible. Each submit replaces the single pending request slot
and restarts its debounce window; one worker thread takes the slot once the
window closes and waits on the tile cache. Every submit gets a strictly
increasing generation id, and only a result whose id is still the current one
is published. Futures of coalesced or superseded submits are carried forward
and resolve with the newest result.
If the tile cache cancels the shared generation on behalf of another consumer
(a prefetch or warm-up for the same coordinate), the current request is
submitted again, up to `max_resubmits` times.

Data Contract:
---------------
- Inputs (on initialization):
    - tile_cache (TileCache): Runs and stores the generations.
    - config (dict): 'debounce_seconds' override.
    - logger: A configured Python logging object.
- Outputs:
    - `submit()` futures; `current` holds the last published tile.
- Side Effects: Starts one daemon worker thread; calls subscribers from it.
================================================================================
"""

import logging
import threading
import time
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .. import config as DEFAULTS
from ..executor import Tile
from .tile_cache import TileCache, TileRequest, settle_future

@dataclass
class _PendingRequest:
    generation_id: int
    request: TileRequest
    due: float
    waiters: List[Future] = field(default_factory=list)

class RegenerationController:
    def __init__(self, tile_cache: TileCache, config: dict, logger: logging.Logger = None,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config or {}
        self.settings = {
            'debounce_seconds': self.user_config.get('debounce_seconds', DEFAULTS.DEBOUNCE_SECONDS),
            'max_resubmits': self.user_config.get('max_resubmits', DEFAULTS.REGENERATION_MAX_RESUBMITS),
        }

        self._tile_cache = tile_cache
        self._clock = clock
        self._condition = threading.Condition()
        self._slot: Optional[_PendingRequest] = None
        self._generation_id = 0
        self._closed = False
        self._subscribers: List[Callable[[Tile], None]] = []
        self.current: Optional[Tile] = None

        self._worker = threading.Thread(target=self._run, name="regeneration-worker", daemon=True)
        self._worker.start()
        self.logger.info(f"RegenerationController started (debounce {self.settings['debounce_seconds']}s).")

    @property
    def generation_id(self) -> int:
        """Id of the most recent submit."""
        with self._condition:
            return self._generation_id

    def submit(self, request: TileRequest, immediate: bool = False) -> Future:
        """
        Queues `request` as the newest desired tile.

        Args:
            request (TileRequest): The tile to generate.
            immediate (bool): Skip the debounce window (e.g. on a preset pick).

        Returns:
            Future resolving to the tile published for this or a later submit.
        """
        future = Future()
        with self._condition:
            if self._closed:
                raise RuntimeError("RegenerationController is closed")
            self._generation_id += 1
            waiters = self._slot.waiters if self._slot is not None else []
            waiters.append(future)
            delay = 0.0 if immediate else self.settings['debounce_seconds']
            self._slot = _PendingRequest(self._generation_id, request, self._clock() + delay, waiters)
            self._condition.notify_all()
        return future

    def subscribe(self, callback: Callable[[Tile], None]) -> Callable[[], None]:
        """Registers a callback for published tiles. Returns an unsubscribe function."""
        with self._condition:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._condition:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def _take_due_request(self) -> Optional[_PendingRequest]:
        with self._condition:
            while not self._closed:
                if self._slot is None:
                    self._condition.wait()
                    continue
                remaining = self._slot.due - self._clock()
                if remaining <= 0:
                    pending, self._slot = self._slot, None
                    return pending
                self._condition.wait(timeout=remaining)
            return None

    def _is_current(self, pending: _PendingRequest) -> bool:
        with self._condition:
            return not self._closed and pending.generation_id == self._generation_id

    def _run(self) -> None:
        while True:
            pending = self._take_due_request()
            if pending is None:
                return

            tile = None
            error = None
            cancelled = False
            resubmits = 0
            while True:
                try:
                    tile = self._tile_cache.ensure_ready(pending.request).result()
                except CancelledError:
                    # Another consumer of the cache superseded the shared generation.
                    if resubmits < self.settings['max_resubmits'] and self._is_current(pending):
                        resubmits += 1
                        self.logger.debug(f"Generation {pending.generation_id} was cancelled by the cache; requesting it again.")
                        continue
                    cancelled = True
                except Exception as e:
                    error = e
                break

            with self._condition:
                if pending.generation_id != self._generation_id:
                    if self._slot is not None:
                        self.logger.debug(
                            f"Generation {pending.generation_id} superseded by {self._generation_id}; "
                            f"carrying {len(pending.waiters)} waiters forward."
                        )
                        self._slot.waiters.extend(pending.waiters)
                    else:
                        for waiter in pending.waiters:
                            waiter.cancel()
                    continue
                if tile is not None:
                    self.current = tile
                subscribers = list(self._subscribers)

            if cancelled:
                for waiter in pending.waiters:
                    waiter.cancel()
            elif error is not None:
                self.logger.error(f"Generation {pending.generation_id} failed: {error}")
                for waiter in pending.waiters:
                    settle_future(waiter, exception=error)
            else:
                self.logger.debug(f"Published generation {pending.generation_id} ({tile.pixel_hash}).")
                for waiter in pending.waiters:
                    settle_future(waiter, result=tile)
                for callback in subscribers:
                    try:
                        callback(tile)
                    except Exception:
                        self.logger.error("Tile subscriber raised.", exc_info=True)

    def close(self, timeout: float = None) -> None:
        """Stops the worker; futures still waiting for the debounce window are cancelled."""
        with self._condition:
            self._closed = True
            slot, self._slot = self._slot, None
            self._condition.notify_all()
        if slot is not None:
            for waiter in slot.waiters:
                waiter.cancel()
        self._worker.join(timeout)
        self.logger.info("RegenerationController closed.")
