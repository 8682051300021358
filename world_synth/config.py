# world_synth/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback internal constants for the world
synthesis engine. These values are used if they are not explicitly provided
by the caller's configuration dictionary.

DO NOT MODIFY THIS FILE FOR A SPECIFIC WORLD.
Instead, pass a configuration dictionary to the TerrainSynthesizer, TileCache
or RegenerationController instance.
================================================================================
"""

# --- Seeds & Versions ---
DEFAULT_SEED = 12345
DEFAULT_MAPPING_VERSION = "v2"
MAPPING_VERSIONS = ("v1", "v2", "v2-unified")

# --- Tile Geometry ---
GRID_SIZE = 64

# --- Grid Noise (numba Perlin, see noise.py) ---
# Octave settings for the [0, 1] "unit" noise sampled by the synthesizer.
UNIT_NOISE_OCTAVES = 4
UNIT_NOISE_PERSISTENCE = 0.5
UNIT_NOISE_LACUNARITY = 2.0
# Maximum random offset applied to each of the five noise layers.
NOISE_OFFSET_RANGE = 1000.0

# --- Elevation ---
BASE_FLOOR = 0.25
WATER_LEVEL_MIN = 0.08
WATER_LEVEL_MAX = 0.65
# Dry cells at the water line are lifted to water_level + this margin.
SHORE_LIFT = 0.03
EROSION_MIN_STRENGTH = 0.1
# Lakes only form when the tendency exceeds this, and only within LAKE_SHORE_CAP
# above the water level. Lake surfaces sit LAKE_SURFACE_DROP below it.
LAKE_MIN_TENDENCY = 0.1
LAKE_SHORE_CAP = 0.08
LAKE_SURFACE_DROP = 0.01

# --- Mountains ---
MOUNTAIN_REGION_THRESHOLD_BASE = 0.70
MOUNTAIN_REGION_THRESHOLD_SLOPE = 0.55
MOUNTAIN_REGION_POWER = 0.7
PATCH_MIN_REGION = 0.15
RANGE_MIN_REGION = 0.25
RANGE_SEGMENT_MIN_REGION = 0.10
MOUNTAIN_MASK_THRESHOLD = 0.20
SNOW_MASK_THRESHOLD = 0.55
SNOW_MIN_PEAK_HEIGHT = 0.40
SNOW_MIN_SHAPE = 0.45
FOREST_MAX_MOUNTAIN_MASK = 0.35

# --- Paths ---
PATH_CORE_VALUE = 1.0
PATH_SHOULDER_VALUE = 0.6
PATH_BRANCH_VALUE = 0.85
PATH_TILE_THRESHOLD = 0.30
# Shoulders are only laid down when the path wear reaches this level.
PATH_SHOULDER_MIN_WEAR = 0.8
PATH_BRANCH_MIN_DENSITY = 0.25

# --- Rivers ---
RIVER_VALLEY_CAP = 0.18
RIVER_NOISE_FREQUENCY = 0.04
# Rivers are only widened past this width; the disc radius is floor(width).
RIVER_DILATION_MIN_WIDTH = 0.8
# Cells whose (dilated) river strength exceeds this become river tiles.
RIVER_STRENGTH_CUTOFF = 0.3

# --- Moisture & Vegetation ---
MOISTURE_SHORE_BAND = 0.12
MOISTURE_SHORE_BOOST = 0.30
FOREST_MOISTURE_FLOOR = 0.20
MEADOW_MIN_FREQUENCY = 0.1

# --- Raster Classification ---
RASTER_MATCH_DISTANCE = 60.0

# --- Tile Cache ---
CACHE_MAX_ENTRIES = 100
CACHE_TTL_SECONDS = 600.0
MAX_PRELOAD_ENTRIES = 4
PREFETCH_NEIGHBOR_LIMIT = 2
GENERATION_WORKERS = 2
# How often a supervisor checks whether a queued job has started running.
GENERATION_START_POLL_SECONDS = 0.01

# --- Regeneration Controller ---
DEBOUNCE_SECONDS = 0.3
GENERATION_TIMEOUT_SECONDS = 15.0
# Times a controller re-requests a tile whose shared generation was cancelled by another consumer.
REGENERATION_MAX_RESUBMITS = 2

# --- Edge Transitions ---
EDGE_MARGIN = 1.0
# Must be larger than EDGE_MARGIN so an entry never re-triggers a crossing.
ENTRY_SAFE_MARGIN = 5.0
TRANSITION_COOLDOWN_SECONDS = 0.5
TRAIL_MAX_LENGTH = 50

# --- Spawn ---
SPAWN_EDGE_PADDING = 2
SPAWN_MAX_ATTEMPTS = 100
