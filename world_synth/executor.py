# world_synth/executor.py

"""
================================================================================
GENERATION EXECUTOR
================================================================================
The generation boundary: a named source description plus (seed, parameters,
dimensions) goes in, a classified TerrainGrid comes out. The executor is an
in-process pure function; callers that need isolation run
`run_tile_generation_job` in a process pool and enforce their own timeout.

Data Contract:
---------------
- Inputs:
    - source (GenerationSource): Which mapping variant and grid size to run.
    - seed (int), params (vars sequence / ResolvedParams / V1Params).
    - dimensions ((width, height)): Must match the source grid size.
- Outputs:
    - TerrainGrid from `execute`; a hashed Tile from `build_tile`.
- Side Effects: None beyond logging in the job entry point.
- Invariants: Same source + seed + parameters + dimensions gives a
  byte-identical grid. Any failure surfaces as ExecutorError.
================================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from . import config as DEFAULTS
from .color_maps import rasterize
from .contract import compute_content_hash, compute_pixel_hash
from .fields import create_derived_fields
from .generator import TerrainGrid, TerrainSynthesizer, recipe_from_resolved, recipe_from_v1
from .mapping_unified import MAPPING_VERSION as UNIFIED_MAPPING_VERSION
from .mapping_unified import build_resolved_params_unified
from .mapping_v1 import V1Params, validate_v1_params
from .mapping_v2 import ResolvedParams, build_resolved_params
from .schema import MACRO_VAR_COUNT

class ExecutorError(Exception):
    """A generation failed. The message carries the underlying cause."""
    def __init__(self, message: str, source: Optional[str] = None, seed: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.seed = seed

class GenerationTimeout(ExecutorError):
    """A generation did not finish within the caller's timeout."""

@dataclass(frozen=True)
class GenerationSource:
    name: str
    mapping_version: str
    grid_size: int = DEFAULTS.GRID_SIZE
    use_derived_fields: bool = True

_SOURCE_NAMES = {
    "v1": "world-layout-v1",
    "v2": "world-layout-v2",
    UNIFIED_MAPPING_VERSION: "world-layout-v2-unified",
}

def source_for_version(version: str, grid_size: int = DEFAULTS.GRID_SIZE) -> GenerationSource:
    """Unknown version tags resolve to the legacy v1 source."""
    if version not in _SOURCE_NAMES:
        version = "v1"
    return GenerationSource(
        name=_SOURCE_NAMES[version],
        mapping_version=version,
        grid_size=grid_size,
        use_derived_fields=version != "v1",
    )

def resolve_for_source(source: GenerationSource, seed: int, vars,
                       micro_overrides: Optional[Mapping[int, float]] = None):
    """Resolves raw slider input into the parameter record the source consumes."""
    macro = list(vars or [])[:MACRO_VAR_COUNT]
    if source.mapping_version == "v1":
        return validate_v1_params(seed, macro)
    if source.mapping_version == UNIFIED_MAPPING_VERSION:
        return build_resolved_params_unified(seed, macro, micro_overrides)
    return build_resolved_params(seed, macro, micro_overrides)

def execute(source: GenerationSource, seed: int, params, dimensions: Tuple[int, int],
            config: Optional[dict] = None, logger: Optional[logging.Logger] = None) -> TerrainGrid:
    """
    Runs one generation in-process.

    Args:
        source (GenerationSource): The source description.
        seed (int): The world seed.
        params: A vars sequence, or an already resolved ResolvedParams /
            V1Params matching the source.
        dimensions (tuple): (width, height) of the requested grid.
        config (dict, optional): Synthesizer setting overrides.

    Raises:
        ExecutorError: On mismatched dimensions or any failure inside the
            synthesis run.
    """
    width, height = dimensions
    if width != height or width != source.grid_size:
        raise ExecutorError(
            f"Source {source.name} produces {source.grid_size}x{source.grid_size} grids, "
            f"got dimensions {width}x{height}",
            source=source.name, seed=seed,
        )

    try:
        if not isinstance(params, (ResolvedParams, V1Params)):
            params = resolve_for_source(source, seed, params)

        synthesizer = TerrainSynthesizer(config or {}, logger)
        if isinstance(params, V1Params):
            return synthesizer.synthesize(recipe_from_v1(params, source.grid_size), seed)

        fields = create_derived_fields(params, source.grid_size) if source.use_derived_fields else None
        return synthesizer.synthesize(recipe_from_resolved(params, source.grid_size), seed, fields)
    except ExecutorError:
        raise
    except Exception as e:
        raise ExecutorError(f"Source {source.name} failed for seed {seed}: {e}", source=source.name, seed=seed) from e

# ============================================
# TILES
# ============================================

@dataclass(frozen=True)
class Tile:
    """A synthesized grid together with everything that produced it."""
    coord: Tuple[int, int]
    seed: int
    vars: Tuple[int, ...]
    mapping_version: str
    micro_overrides: Tuple[Tuple[int, int], ...]
    archetype: Optional[str]
    grid: TerrainGrid
    content_hash: str
    pixel_hash: str

    @property
    def grid_size(self) -> int:
        return self.grid.grid_size

def build_tile(coord, seed: int, macro, micro_overrides: Optional[Mapping[int, float]] = None,
               mapping_version: str = DEFAULTS.DEFAULT_MAPPING_VERSION,
               grid_size: int = DEFAULTS.GRID_SIZE, config: Optional[dict] = None,
               logger: Optional[logging.Logger] = None) -> Tile:
    """Resolves, synthesizes and fingerprints one tile."""
    source = source_for_version(mapping_version, grid_size)
    try:
        params = resolve_for_source(source, seed, macro, micro_overrides)
    except Exception as e:
        raise ExecutorError(f"Could not resolve parameters for seed {seed}: {e}", source=source.name, seed=seed) from e

    grid = execute(source, seed, params, (grid_size, grid_size), config, logger)

    overrides = tuple(sorted((int(k), int(v)) for k, v in (micro_overrides or {}).items()))
    return Tile(
        coord=(int(coord[0]), int(coord[1])),
        seed=seed,
        vars=tuple(params.vars),
        mapping_version=source.mapping_version,
        micro_overrides=overrides,
        archetype=getattr(params, "archetype", None),
        grid=grid,
        content_hash=compute_content_hash(grid),
        pixel_hash=compute_pixel_hash(rasterize(grid)),
    )

def run_tile_generation_job(args: dict) -> Tile:
    """
    Pickle-able job entry point for thread or process pools.

    Args:
        args (dict): 'coord', 'seed', 'macro', and optionally
            'micro_overrides', 'mapping_version', 'grid_size', 'config'.
    """
    logger = logging.getLogger(f"Worker-{os.getpid()}")
    coord = args['coord']
    try:
        tile = build_tile(
            coord,
            args['seed'],
            args['macro'],
            args.get('micro_overrides'),
            args.get('mapping_version', DEFAULTS.DEFAULT_MAPPING_VERSION),
            args.get('grid_size', DEFAULTS.GRID_SIZE),
            args.get('config'),
            logger,
        )
    except ExecutorError:
        logger.critical(f"Generation of tile {coord} failed.", exc_info=True)
        raise
    except Exception as e:
        logger.critical(f"Unexpected error generating tile {coord}.", exc_info=True)
        raise ExecutorError(f"Tile {coord} failed: {e}", seed=args.get('seed')) from e
    logger.debug(f"Tile {coord} generated ({tile.pixel_hash}).")
    return tile
