# world_synth/runtime/__init__.py

# The long-lived, stateful side of the engine: tile storage, regeneration
# scheduling, the land registry boundary and edge transitions.

from .lru_cache import LRUCache
from .tile_cache import TileCache, TileRequest, make_tile_key
from .regeneration import RegenerationController
from .registry import InMemoryLandRegistry, LandRecord, LandRegistry, create_land_record, to_tile_request
from .stitching import Direction, TransitionResult, TransitionSession, check_edge_crossing, entry_position

__all__ = [
    "LRUCache",
    "TileCache",
    "TileRequest",
    "make_tile_key",
    "RegenerationController",
    "InMemoryLandRegistry",
    "LandRecord",
    "LandRegistry",
    "create_land_record",
    "to_tile_request",
    "Direction",
    "TransitionResult",
    "TransitionSession",
    "check_edge_crossing",
    "entry_position",
]
