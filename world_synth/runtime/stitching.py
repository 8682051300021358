# world_synth/runtime/stitching.py

"""
================================================================================
EDGE TRANSITIONS
================================================================================
Moves a player across tile boundaries. A continuous position (x, z) inside a
tile_size x tile_size tile is checked against the four edges; z = 0 is the
north edge. A crossing resolves the neighbor coordinate, looks its land up in
the registry and places the player just inside the opposite edge of the
neighbor, keeping the coordinate parallel to the crossed edge.

Data Contract:
---------------
- Inputs (TransitionSession):
    - registry (LandRegistry): Resolves neighbor coordinates to lands.
    - config (dict): 'tile_size', 'edge_margin', 'entry_safe_margin',
      'cooldown_seconds', 'trail_max_length' overrides.
    - tile_cache (TileCache, optional): Warmed for the destination tile.
- Outputs: TransitionResult per crossing; the crossing trail.
- Side Effects: Mutates the session's current land and position; calls
  listeners; logs.
- Invariants: At most one crossing per session at a time, followed by a
  cooldown during which position updates are ignored.
================================================================================
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .. import config as DEFAULTS
from .registry import LandRecord, LandRegistry, to_tile_request

class Direction(Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

_OPPOSITES = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
}

_DELTAS = {
    Direction.NORTH: (0, -1),
    Direction.SOUTH: (0, 1),
    Direction.EAST: (1, 0),
    Direction.WEST: (-1, 0),
}

def check_edge_crossing(x: float, z: float, tile_size: float = DEFAULTS.GRID_SIZE,
                        margin: float = DEFAULTS.EDGE_MARGIN) -> Optional[Direction]:
    """The edge the position is within `margin` of, checked north, south, east, west."""
    if z <= margin:
        return Direction.NORTH
    if z >= tile_size - margin:
        return Direction.SOUTH
    if x >= tile_size - margin:
        return Direction.EAST
    if x <= margin:
        return Direction.WEST
    return None

def opposite_direction(direction: Direction) -> Direction:
    return _OPPOSITES[direction]

def neighbor_coordinate(coord: Tuple[int, int], direction: Direction) -> Tuple[int, int]:
    dx, dy = _DELTAS[direction]
    return coord[0] + dx, coord[1] + dy

def entry_position(exit_position: Tuple[float, float], direction: Direction,
                   tile_size: float = DEFAULTS.GRID_SIZE,
                   safe_margin: float = DEFAULTS.ENTRY_SAFE_MARGIN) -> Tuple[float, float]:
    """
    Mirrors the crossed coordinate across the boundary and clamps it to
    [safe_margin, tile_size - safe_margin]. The safe margin must exceed the
    detection margin or the entry would immediately cross back.
    """
    x, z = exit_position
    low, high = safe_margin, tile_size - safe_margin
    if direction in (Direction.NORTH, Direction.SOUTH):
        return x, max(low, min(high, tile_size - z))
    return max(low, min(high, tile_size - x)), z

def _push_inside(position: Tuple[float, float], direction: Direction,
                 tile_size: float, safe_margin: float) -> Tuple[float, float]:
    """Position moved back inside the tile it tried to leave."""
    x, z = position
    if direction == Direction.NORTH:
        return x, safe_margin
    if direction == Direction.SOUTH:
        return x, tile_size - safe_margin
    if direction == Direction.EAST:
        return tile_size - safe_margin, z
    return safe_margin, z

@dataclass(frozen=True)
class EdgeCrossing:
    direction: Optional[Direction]
    from_coord: Tuple[int, int]
    to_coord: Tuple[int, int]
    from_land: Optional[LandRecord]
    to_land: Optional[LandRecord]
    entry: Tuple[float, float]

@dataclass(frozen=True)
class TransitionResult:
    """
    success is False only when the registry lookup failed. A crossing toward
    an unclaimed coordinate succeeds with destination None, and `position`
    is then the player's position pushed back inside the current tile.
    """
    success: bool
    destination: Optional[LandRecord]
    position: Tuple[float, float]
    crossing: Optional[EdgeCrossing] = None
    error: Optional[str] = None

class TransitionSession:
    def __init__(self, registry: LandRegistry, current_land: Optional[LandRecord], config: dict,
                 logger: logging.Logger = None, tile_cache=None,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config or {}
        self.settings = {
            'tile_size': self.user_config.get('tile_size', DEFAULTS.GRID_SIZE),
            'edge_margin': self.user_config.get('edge_margin', DEFAULTS.EDGE_MARGIN),
            'entry_safe_margin': self.user_config.get('entry_safe_margin', DEFAULTS.ENTRY_SAFE_MARGIN),
            'cooldown_seconds': self.user_config.get('cooldown_seconds', DEFAULTS.TRANSITION_COOLDOWN_SECONDS),
            'trail_max_length': self.user_config.get('trail_max_length', DEFAULTS.TRAIL_MAX_LENGTH),
        }
        if self.settings['entry_safe_margin'] <= self.settings['edge_margin']:
            raise ValueError("entry_safe_margin must be larger than edge_margin")

        self.registry = registry
        self.tile_cache = tile_cache
        self.current_land = current_land
        half = self.settings['tile_size'] / 2
        self.position: Tuple[float, float] = (half, half)
        self.trail = deque(maxlen=self.settings['trail_max_length'])

        self._clock = clock
        self._lock = threading.Lock()
        self._cooldown_until = float("-inf")
        self._listeners: List[Callable[[TransitionResult], None]] = []

    @property
    def in_transition(self) -> bool:
        return self._lock.locked()

    def add_listener(self, callback: Callable[[TransitionResult], None]) -> None:
        self._listeners.append(callback)

    def _notify(self, result: TransitionResult) -> None:
        for callback in list(self._listeners):
            try:
                callback(result)
            except Exception:
                self.logger.error("Transition listener raised.", exc_info=True)

    def _warm(self, land: LandRecord) -> None:
        """Starts generation for `land` and its neighbors. Failures here never undo a crossing."""
        if self.tile_cache is None:
            return
        grid_size = self.settings['tile_size']

        def resolve(coord):
            neighbor = self.registry.get_land_at(*coord)
            return to_tile_request(neighbor, grid_size) if neighbor is not None else None

        try:
            self.tile_cache.ensure_ready(to_tile_request(land, grid_size))
            self.tile_cache.prefetch_neighbors(land.coord, resolve)
        except Exception:
            self.logger.error(f"Warming tiles around {land.coord} failed.", exc_info=True)

    def handle_position_update(self, x: float, z: float) -> Optional[TransitionResult]:
        """
        Records the position and performs a crossing when it touches an edge.
        Returns None when nothing happened: no edge, no current land, a
        crossing already in progress, or the cooldown still running.
        """
        self.position = (x, z)
        if self.current_land is None or self._clock() < self._cooldown_until:
            return None

        direction = check_edge_crossing(x, z, self.settings['tile_size'], self.settings['edge_margin'])
        if direction is None:
            return None

        if not self._lock.acquire(blocking=False):
            return None
        try:
            result = self._cross(direction, (x, z))
        finally:
            self._cooldown_until = self._clock() + self.settings['cooldown_seconds']
            self._lock.release()

        self._notify(result)
        return result

    def _cross(self, direction: Direction, exit_position: Tuple[float, float]) -> TransitionResult:
        source = self.current_land
        target = neighbor_coordinate(source.coord, direction)
        tile_size = self.settings['tile_size']
        safe_margin = self.settings['entry_safe_margin']

        try:
            neighbor = self.registry.get_land_at(*target)
        except Exception as e:
            self.logger.error(f"Land lookup at {target} failed: {e}", exc_info=True)
            return TransitionResult(success=False, destination=None, position=exit_position, error=str(e))

        entry = entry_position(exit_position, direction, tile_size, safe_margin)
        crossing = EdgeCrossing(direction, source.coord, target, source, neighbor, entry)
        self.trail.append(crossing)

        if neighbor is None:
            position = _push_inside(exit_position, direction, tile_size, safe_margin)
            self.position = position
            self.logger.debug(f"No land {direction.value} of {source.coord}; staying inside.")
            return TransitionResult(success=True, destination=None, position=position, crossing=crossing)

        self.current_land = neighbor
        self.position = entry
        self.logger.info(f"Crossed {direction.value} from {source.coord} to {target}.")
        self._warm(neighbor)
        return TransitionResult(success=True, destination=neighbor, position=entry, crossing=crossing)

    def transition_to_land(self, land: LandRecord,
                           entry: Optional[Tuple[float, float]] = None) -> TransitionResult:
        """Teleports to `land`, at its center unless an entry position is given."""
        half = self.settings['tile_size'] / 2
        position = entry if entry is not None else (half, half)
        with self._lock:
            source = self.current_land
            self.current_land = land
            self.position = position
            crossing = EdgeCrossing(None, source.coord if source else land.coord, land.coord,
                                    source, land, position)
            self.trail.append(crossing)
            self._cooldown_until = self._clock() + self.settings['cooldown_seconds']
        self.logger.info(f"Moved to land {land.coord}.")
        self._warm(land)
        result = TransitionResult(success=True, destination=land, position=position, crossing=crossing)
        self._notify(result)
        return result
