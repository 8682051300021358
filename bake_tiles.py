# bake_tiles.py

"""
================================================================================
OFFLINE TILE BAKER SCRIPT
================================================================================
This script is a command-line tool for pre-rendering a rectangular region of
tiles to a directory of PNG images ("baking"). Each tile is synthesized from
its own land record. Claimed lands come from the "lands" list; without one,
every coordinate of the region gets a record whose seed is derived from the
base seed and the coordinate. Tiles are content-addressed by their pixel hash,
so identical tiles are written only once.

Config file layout:
    {
      "world_synthesis_parameters": {
        "seed": 12345,
        "vars": [50, 50, 50, 50, 50, 50, 50, 50, 50, 50],
        "micro_overrides": {"12": 80},
        "mapping_version": "v2",
        "grid_size": 64,
        "region": {"min_x": 0, "min_y": 0, "max_x": 3, "max_y": 3},
        "lands": [
          {"player_id": "alice", "seed": 7, "vars": [80, 20], "pos_x": 0, "pos_y": 0}
        ],
        "output_dir": "baked_tiles"
      }
    }

With "lands", the region defaults to their bounding box and coordinates
nobody claimed stay null in the manifest. Land entries fall back to the
top-level vars, micro_overrides and mapping_version.

Usage:
    python bake_tiles.py --config path/to/your/config.json
================================================================================
"""
import os
import sys
import json
import logging
import argparse
import time
import collections
import multiprocessing
from tqdm import tqdm

from world_synth import color_maps
from world_synth import config as DEFAULTS
from world_synth.contract import compute_world_hash, verify_tile
from world_synth.executor import ExecutorError, run_tile_generation_job
from world_synth.noise import hash_values
from world_synth.runtime.registry import InMemoryLandRegistry, create_land_record, to_tile_request

# --- Global variables for worker processes ---
worker_synthesis_config = {}
worker_tiles_dir = ""

def init_worker(synthesis_config, tiles_dir):
    """Initializes the global state for each worker process."""
    global worker_synthesis_config, worker_tiles_dir
    worker_synthesis_config = synthesis_config
    worker_tiles_dir = tiles_dir

def process_tile(job):
    """
    Synthesizes and SAVES a single tile. Returns only minimal metadata.
    """
    tx, ty = job['coord']
    tile = run_tile_generation_job(dict(job, config=worker_synthesis_config))

    verification = verify_tile(tile)
    rgba = color_maps.rasterize(tile.grid)
    compression_type = color_maps.save_tile_png(rgba, worker_tiles_dir, tile.pixel_hash)

    return {
        'tx': tx,
        'ty': ty,
        'pixel_hash': tile.pixel_hash,
        'content_hash': tile.content_hash,
        'world_hash': compute_world_hash(tile.seed, tile.vars, tile.grid),
        'archetype': tile.archetype,
        'valid': verification.is_valid,
        'errors': list(verification.errors),
        'compression_type': compression_type,
    }

def build_land_registry(params: dict) -> InMemoryLandRegistry:
    """
    The records to bake. Explicit "lands" are taken as claimed; otherwise the
    region is filled with one record per coordinate, seeded by
    hash_values(seed, x, y).
    """
    seed = params.get('seed', DEFAULTS.DEFAULT_SEED)
    macro_vars = params.get('vars', [50] * 10)
    micro_overrides = {int(k): v for k, v in params.get('micro_overrides', {}).items()}
    mapping_version = params.get('mapping_version', DEFAULTS.DEFAULT_MAPPING_VERSION)

    if 'lands' in params:
        return InMemoryLandRegistry(
            create_land_record(
                str(entry.get('player_id', f"land_{entry.get('pos_x', 0)}_{entry.get('pos_y', 0)}")),
                entry.get('seed', seed),
                entry.get('vars', macro_vars),
                entry.get('pos_x', 0),
                entry.get('pos_y', 0),
                entry.get('mapping_version', mapping_version),
                {int(k): v for k, v in entry['micro_overrides'].items()}
                if 'micro_overrides' in entry else micro_overrides,
            )
            for entry in params['lands']
        )

    region = params.get('region', {})
    min_x, min_y = region.get('min_x', 0), region.get('min_y', 0)
    max_x, max_y = region.get('max_x', 0), region.get('max_y', 0)
    return InMemoryLandRegistry(
        create_land_record(f"tile_{tx}_{ty}", hash_values(seed, tx, ty), macro_vars, tx, ty,
                           mapping_version, micro_overrides)
        for ty in range(min_y, max_y + 1) for tx in range(min_x, max_x + 1)
    )

# --- Main Baking Function ---
def bake_tiles(config_path: str) -> int:
    """
    Loads a configuration, synthesizes every land of the region and saves
    the tiles as PNG images plus a manifest.json.

    Returns:
        int: Process exit code.
    """
    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    logger = logging.getLogger("Baker")

    # 2. --- Load Configuration ---
    logger.info(f"Loading configuration from: {config_path}")
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.critical(f"Failed to load or parse config file: {e}")
        return 1

    params = config.get('world_synthesis_parameters', {})
    seed = params.get('seed', DEFAULTS.DEFAULT_SEED)
    mapping_version = params.get('mapping_version', DEFAULTS.DEFAULT_MAPPING_VERSION)
    grid_size = params.get('grid_size', DEFAULTS.GRID_SIZE)

    try:
        registry = build_land_registry(params)
    except ValueError as e:
        logger.critical(f"Invalid land records: {e}")
        return 1

    region = params.get('region')
    if region is None and 'lands' in params and len(registry):
        claimed = [(int(entry.get('pos_x', 0)), int(entry.get('pos_y', 0))) for entry in params['lands']]
        region = {
            'min_x': min(x for x, _ in claimed), 'min_y': min(y for _, y in claimed),
            'max_x': max(x for x, _ in claimed), 'max_y': max(y for _, y in claimed),
        }
    region = region or {}
    min_x, min_y = region.get('min_x', 0), region.get('min_y', 0)
    max_x, max_y = region.get('max_x', 0), region.get('max_y', 0)
    if max_x < min_x or max_y < min_y:
        logger.critical(f"Empty region: ({min_x}, {min_y}) to ({max_x}, {max_y}).")
        return 1

    lands = registry.get_lands_in_area(min_x, min_y, max_x, max_y)
    tasks = [to_tile_request(land, grid_size).to_job_args() for land in lands]

    # 3. --- Prepare Output Directories ---
    # Workers create the tiles directory on demand.
    base_output_dir = os.path.join(params.get('output_dir', "baked_tiles"), f"seed_{seed}_{mapping_version}")
    tiles_dir = os.path.join(base_output_dir, "tiles")

    # 4. --- Main Baking Loop (Parallelized) ---
    width = max_x - min_x + 1
    height = max_y - min_y + 1
    total_tiles = len(tasks)
    logger.info(f"Starting parallel bake of {total_tiles} lands in a {width}x{height} region, {mapping_version}...")

    manifest = [[None] * width for _ in range(height)]
    lands_by_coord = {land.coord: land for land in lands}
    saved_hashes = set()
    compression_stats = collections.Counter()
    invalid_tiles = []

    start_time = time.perf_counter()

    num_workers = max(1, min(total_tiles, multiprocessing.cpu_count() - 1))
    logger.info(f"Using {num_workers} worker processes.")

    try:
        with multiprocessing.Pool(processes=num_workers, initializer=init_worker,
                                  initargs=(params.get('synthesis', {}), tiles_dir)) as pool:
            results_iterator = pool.imap_unordered(process_tile, tasks)

            for result in tqdm(results_iterator, total=total_tiles, desc="Baking Tiles"):
                tx, ty = result['tx'], result['ty']
                land = lands_by_coord[(tx, ty)]
                manifest[ty - min_y][tx - min_x] = {
                    'player_id': land.player_id,
                    'seed': land.seed,
                    'vars': list(land.vars),
                    'mapping_version': land.mapping_version,
                    'pixel_hash': result['pixel_hash'],
                    'content_hash': result['content_hash'],
                    'world_hash': result['world_hash'],
                    'archetype': result['archetype'],
                }
                if not result['valid']:
                    invalid_tiles.append((tx, ty))
                    logger.error(f"Tile ({tx}, {ty}) failed verification: {', '.join(result['errors'])}")

                if result['pixel_hash'] not in saved_hashes:
                    saved_hashes.add(result['pixel_hash'])
                    compression_stats[result['compression_type']] += 1
    except ExecutorError as e:
        logger.critical(f"Baking aborted: {e}")
        return 1

    # --- Finalization ---
    os.makedirs(base_output_dir, exist_ok=True)
    manifest_path = os.path.join(base_output_dir, "manifest.json")
    with open(manifest_path, 'w') as f:
        json.dump({
            'seed': seed,
            'vars': params.get('vars', [50] * 10),
            'micro_overrides': {int(k): v for k, v in params.get('micro_overrides', {}).items()},
            'mapping_version': mapping_version,
            'grid_size': grid_size,
            'origin': [min_x, min_y],
            'tiles': manifest,
        }, f, indent=2)

    end_time = time.perf_counter()
    logger.info(f"Baking complete! Total time: {end_time - start_time:.2f} seconds.")
    logger.info("--- Deduplication & Compression Stats ---")
    logger.info(
        f"  - {total_tiles} total -> {len(saved_hashes)} unique tiles saved "
        f"({compression_stats['uniform']} uniform, {compression_stats['palettized']} palettized, "
        f"{compression_stats['full']} full)"
    )
    logger.info(f"Baked tiles and manifest.json saved to: {base_output_dir}")
    return 1 if invalid_tiles else 0


# --- Command-Line Interface ---
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Offline Tile Baker for the world synthesis engine.")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the JSON configuration file for the region to be baked."
    )
    args = parser.parse_args()

    sys.exit(bake_tiles(args.config))
