# world_synth/noise.py

"""
================================================================================
HASH & NOISE CORE
================================================================================
This module provides the deterministic primitives every other part of the
engine is built on: string/number hashing, seeded pseudo-random sampling,
2D value/fractal noise and the numba-compiled gradient noise used by the
terrain synthesizer. It is designed to be a pure, stateless utility.

Data Contract:
---------------
- Inputs:
    - Seeds and coordinates (ints / floats), or NumPy coordinate arrays.
    - p: A pre-shuffled NumPy permutation table (int array) for grid noise.
- Outputs:
    - Unsigned 32-bit hashes, floats in [0, 1), or NumPy noise arrays.
- Side Effects: None. Lattice corner values are memoized, which does not
  change any result.
- Invariants: No function reads wall-clock time, platform entropy or the
  iteration order of an unordered collection. Same inputs, same outputs.
================================================================================
"""

import math
from functools import lru_cache

import numpy as np
from numba import njit

_UINT32_MASK = 0xFFFFFFFF

# ============================================
# DETERMINISTIC HASHING
# ============================================

def _format_value(value) -> str:
    """Stable text form of a hashed value (integral floats drop the '.0')."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if value is None:
        return "null"
    return str(value)

def hash_string(text: str) -> int:
    """djb2 hash, wrapped to an unsigned 32-bit integer."""
    h = 5381
    for char in text:
        h = ((h * 33) & _UINT32_MASK) ^ ord(char)
    return h & _UINT32_MASK

def hash_values(*values) -> int:
    """Hashes the ':'-joined text form of the given values."""
    return hash_string(":".join(_format_value(v) for v in values))

def seeded_random(n: float) -> float:
    """Sine-scrambled pseudo-random value in [0, 1)."""
    x = math.sin(n * 9999) * 10000
    return x - math.floor(x)

def seeded_random_n(seed: float, n: int) -> float:
    """The nth value of the stream identified by `seed`."""
    return seeded_random(hash_values(seed, n))

def seeded_random_range(seed: float, low: float, high: float) -> float:
    return low + seeded_random(seed) * (high - low)

def seeded_random_int(seed: float, low: int, high: int) -> int:
    """Deterministic integer in [low, high] (inclusive)."""
    return math.floor(seeded_random_range(seed, low, high + 1))

def shuffle_deterministic(items, seed: float) -> list:
    """Fisher-Yates shuffle driven by the seed stream. Returns a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = seeded_random_int(hash_values(seed, i), 0, i)
        result[i], result[j] = result[j], result[i]
    return result

def pick_deterministic(items, n: int, seed: float) -> list:
    shuffled = shuffle_deterministic(items, seed)
    return shuffled[:min(n, len(shuffled))]

# ============================================
# VALUE NOISE (hash lattice)
# ============================================

@lru_cache(maxsize=65536)
def _lattice_value(seed, xi: int, yi: int) -> float:
    return seeded_random(hash_values(seed, xi, yi))

def _smooth(t: float) -> float:
    return t * t * (3 - 2 * t)

def value_noise_2d(x: float, y: float, seed) -> float:
    """
    2D value noise: smoothstep-weighted bilinear interpolation over hashed
    lattice corners. Returns a value in [0, 1).
    """
    xi = math.floor(x)
    yi = math.floor(y)
    sx = _smooth(x - xi)
    sy = _smooth(y - yi)

    n00 = _lattice_value(seed, xi, yi)
    n10 = _lattice_value(seed, xi + 1, yi)
    n01 = _lattice_value(seed, xi, yi + 1)
    n11 = _lattice_value(seed, xi + 1, yi + 1)

    nx0 = n00 * (1 - sx) + n10 * sx
    nx1 = n01 * (1 - sx) + n11 * sx
    return nx0 * (1 - sy) + nx1 * sy

def fractal_noise_2d(x: float, y: float, seed, octaves: int = 4,
                     persistence: float = 0.5, lacunarity: float = 2.0) -> float:
    """Multi-octave value noise normalized by the total amplitude."""
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0
    for i in range(octaves):
        total += value_noise_2d(x * frequency, y * frequency, seed + i * 1000) * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity
    if max_value == 0:
        return 0.0
    return total / max_value

# ============================================
# GRID NOISE (numba gradient noise)
# ============================================

# Pre-defined gradient vectors for performance.
_GRADIENT_VECTORS = np.array([[0, 1], [0, -1], [1, 0], [-1, 0]])

def build_permutation_table(seed: int) -> np.ndarray:
    """
    Builds the doubled 512-entry permutation table for a seed. numpy's PCG64
    stream is stable across platforms, so the table is reproducible.
    """
    p = np.arange(256, dtype=np.int64)
    rng = np.random.default_rng(seed & 0xFFFFFFFF)
    rng.shuffle(p)
    return np.concatenate([p, p])

@njit
def _lerp(a, b, x):
    "Linear interpolation."
    return a + x * (b - a)

@njit
def _fade(t):
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6 - 15) + 10)

@njit
def _gradient(h, x, y):
    g = _GRADIENT_VECTORS[h % 4]
    return g[0] * x + g[1] * y

@njit
def perlin_point(p, x, y, octaves=1, persistence=0.5, lacunarity=2.0):
    """Multi-octave gradient noise at a single point (roughly [-1, 1])."""
    noise_val = 0.0
    amplitude = 1.0
    frequency = 1.0
    for _ in range(octaves):
        x_sample = x * frequency
        y_sample = y * frequency

        xi = int(np.floor(x_sample))
        yi = int(np.floor(y_sample))
        xf = x_sample - xi
        yf = y_sample - yi

        u = _fade(xf)
        v = _fade(yf)

        px0 = xi % 256
        px1 = (px0 + 1) % 256
        py0 = yi % 256
        py1 = (py0 + 1) % 256

        g00 = _gradient(p[p[px0] + py0], xf, yf)
        g01 = _gradient(p[p[px0] + py1], xf, yf - 1)
        g10 = _gradient(p[p[px1] + py0], xf - 1, yf)
        g11 = _gradient(p[p[px1] + py1], xf - 1, yf - 1)

        x1 = _lerp(g00, g10, u)
        x2 = _lerp(g01, g11, u)
        noise_val += _lerp(x1, x2, v) * amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return noise_val

@njit
def perlin_noise_2d(p, x, y, octaves=1, persistence=0.5, lacunarity=2.0):
    """Gradient noise over 2D coordinate arrays. Output shape matches x."""
    rows, cols = x.shape
    total_noise = np.zeros((rows, cols))
    for i in range(rows):
        for j in range(cols):
            total_noise[i, j] = perlin_point(p, x[i, j], y[i, j], octaves, persistence, lacunarity)
    return total_noise

@njit
def unit_noise_point(p, x, y, octaves=4, persistence=0.5, lacunarity=2.0):
    """Gradient noise remapped to [0, 1] around a 0.5 mean."""
    max_amp = 0.0
    amplitude = 1.0
    for _ in range(octaves):
        max_amp += amplitude
        amplitude *= persistence
    value = 0.5 + perlin_point(p, x, y, octaves, persistence, lacunarity) / max_amp
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value

@njit
def unit_noise_grid(p, x, y, octaves=4, persistence=0.5, lacunarity=2.0):
    """`unit_noise_point` over 2D coordinate arrays."""
    rows, cols = x.shape
    out = np.zeros((rows, cols))
    for i in range(rows):
        for j in range(cols):
            out[i, j] = unit_noise_point(p, x[i, j], y[i, j], octaves, persistence, lacunarity)
    return out
