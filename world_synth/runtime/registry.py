# world_synth/runtime/registry.py

"""
================================================================================
LAND REGISTRY
================================================================================
The only persistent state of a shared world: which identity owns which tile
coordinate and the (seed, vars) it generates from. Terrain itself is never
stored; it is re-derived from a record through the tile cache.

`LandRegistry` is the boundary other components depend on. The in-memory
implementation backs tests and the offline baker.
================================================================================
"""

import math
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from .. import config as DEFAULTS
from ..curves import normalize_var
from ..schema import MACRO_VAR_COUNT
from .tile_cache import TileRequest

@dataclass(frozen=True)
class LandRecord:
    player_id: str
    seed: int
    vars: Tuple[int, ...]
    pos_x: int
    pos_y: int
    mapping_version: str = "v1"
    micro_overrides: Tuple[Tuple[int, int], ...] = ()

    @property
    def coord(self) -> Tuple[int, int]:
        return self.pos_x, self.pos_y

def create_land_record(player_id: str, seed, vars, pos_x: int = 0, pos_y: int = 0,
                       mapping_version: str = "v2",
                       micro_overrides: Optional[Mapping[int, float]] = None) -> LandRecord:
    """
    Normalizes a claim: vars padded to exactly 10 values (missing ones are 50),
    rounded and clamped to 0..100; the seed floored. Any version other than
    'v2' is stored as 'v1'.
    """
    values = list(vars or [])
    normalized = tuple(
        normalize_var(values[i] if i < len(values) else 50)
        for i in range(MACRO_VAR_COUNT)
    )
    overrides = tuple(sorted((int(k), int(v)) for k, v in (micro_overrides or {}).items()))
    return LandRecord(
        player_id=player_id,
        seed=math.floor(seed),
        vars=normalized,
        pos_x=int(pos_x),
        pos_y=int(pos_y),
        mapping_version="v2" if mapping_version == "v2" else "v1",
        micro_overrides=overrides,
    )

class LandRegistry(Protocol):
    def get_land_at(self, x: int, y: int) -> Optional[LandRecord]:
        ...

    def get_lands_in_area(self, min_x: int, min_y: int, max_x: int, max_y: int) -> List[LandRecord]:
        ...

class InMemoryLandRegistry:
    """One record per coordinate and per player."""
    def __init__(self, lands: Iterable[LandRecord] = ()):
        self._lock = threading.Lock()
        self._by_coord: Dict[Tuple[int, int], LandRecord] = {}
        for land in lands:
            self.add(land)

    def add(self, land: LandRecord) -> LandRecord:
        with self._lock:
            existing = self._by_coord.get(land.coord)
            if existing is not None and existing.player_id != land.player_id:
                raise ValueError(f"Coordinate {land.coord} is already claimed by {existing.player_id}")
            for coord, other in list(self._by_coord.items()):
                if other.player_id == land.player_id and coord != land.coord:
                    raise ValueError(f"Player {land.player_id} already owns land at {coord}")
            self._by_coord[land.coord] = land
        return land

    def remove(self, x: int, y: int) -> Optional[LandRecord]:
        with self._lock:
            return self._by_coord.pop((x, y), None)

    def get_land_at(self, x: int, y: int) -> Optional[LandRecord]:
        with self._lock:
            return self._by_coord.get((x, y))

    def get_land_by_player(self, player_id: str) -> Optional[LandRecord]:
        with self._lock:
            for land in self._by_coord.values():
                if land.player_id == player_id:
                    return land
        return None

    def get_lands_in_area(self, min_x: int, min_y: int, max_x: int, max_y: int) -> List[LandRecord]:
        """Every record inside the inclusive box, ordered by (y, x)."""
        with self._lock:
            found = [
                land for (x, y), land in self._by_coord.items()
                if min_x <= x <= max_x and min_y <= y <= max_y
            ]
        return sorted(found, key=lambda land: (land.pos_y, land.pos_x))

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_coord)

def to_tile_request(land: LandRecord, grid_size: int = DEFAULTS.GRID_SIZE) -> TileRequest:
    return TileRequest.create(
        land.coord,
        land.seed,
        land.vars,
        dict(land.micro_overrides),
        land.mapping_version,
        grid_size,
    )
