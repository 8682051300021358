# world_synth/curves.py

"""
================================================================================
SHAPING CURVES & VARIABLE MIXING
================================================================================
Non-linear curves and cross-coupling helpers used by the variable mappings.
Curve helpers take and return values in [0, 1] and clamp their input; the
variable helpers work on the [0, 100] slider scale.

Data Contract:
---------------
- Inputs: plain floats.
- Outputs: plain floats (curves) or ints in [0, 100] (`normalize_var`).
- Side Effects: None.
- Invariants: Every function is pure and total over its documented domain.
================================================================================
"""

import math

def _clamp01(t: float) -> float:
    return max(0.0, min(1.0, t))

# ============================================
# CURVE FUNCTIONS
# ============================================

def power_curve(t: float, power: float) -> float:
    """>1 emphasizes high values, <1 emphasizes low values."""
    return math.pow(_clamp01(t), power)

def smoothstep(t: float) -> float:
    x = _clamp01(t)
    return x * x * (3 - 2 * x)

def smootherstep(t: float) -> float:
    x = _clamp01(t)
    return x * x * x * (x * (x * 6 - 15) + 10)

def bias_curve(t: float, bias: float) -> float:
    """Shifts the midpoint while keeping both endpoints fixed."""
    t = _clamp01(t)
    k = math.pow(1 - _clamp01(bias), 3)
    denominator = t * k - t + 1
    if denominator == 0:
        return 1.0
    return (t * k) / denominator

def gain_curve(t: float, gain: float) -> float:
    """Changes contrast around the midpoint; 0.5 maps to 0.5."""
    t = _clamp01(t)
    if t < 0.5:
        return bias_curve(2 * t, gain) / 2
    return 1 - bias_curve(2 * (1 - t), gain) / 2

def ease_in(t: float, power: float = 2) -> float:
    return power_curve(t, power)

def ease_out(t: float, power: float = 2) -> float:
    return 1 - power_curve(1 - _clamp01(t), power)

def ease_in_out(t: float, power: float = 2) -> float:
    t = _clamp01(t)
    if t < 0.5:
        return power_curve(2 * t, power) / 2
    return 1 - power_curve(2 * (1 - t), power) / 2

# ============================================
# RANGE MAPPING
# ============================================

def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    if in_max == in_min:
        return out_min
    t = (value - in_min) / (in_max - in_min)
    return out_min + t * (out_max - out_min)

def map_var(value: float, out_min: float, out_max: float, curve: str = "linear", power: float = 2) -> float:
    """
    Maps a [0, 100] slider value onto [out_min, out_max].

    Args:
        value (float): The slider value. Out-of-range input is clamped.
        out_min (float): Output at value 0.
        out_max (float): Output at value 100.
        curve (str): 'linear', 'smooth' (smoothstep) or 'power'.
        power (float): Exponent used by the 'power' curve.
    """
    t = max(0.0, min(100.0, value)) / 100
    if curve == "smooth":
        t = smoothstep(t)
    elif curve == "power":
        t = power_curve(t, power)
    return out_min + t * (out_max - out_min)

def normalize_var(value: float) -> int:
    """Rounds half-up and clamps to the [0, 100] slider range."""
    if value is None or math.isnan(value):
        return 50
    # Clamping first keeps infinities out of floor().
    return int(math.floor(max(0.0, min(100.0, value)) + 0.5))

# ============================================
# CROSS-COUPLING HELPERS
# ============================================

def blend_vars(weighted_values) -> int:
    """Weighted mean of (value, weight) pairs; 50 when the weights cancel."""
    total_weight = 0.0
    weighted_sum = 0.0
    for value, weight in weighted_values:
        weighted_sum += value * weight
        total_weight += weight
    if total_weight == 0:
        return 50
    return normalize_var(weighted_sum / total_weight)

def apply_influence(base: float, influencer: float, strength: float, direction: str = "bidirectional") -> int:
    """
    Shifts `base` by up to 50 * strength according to `influencer`.

    'positive' only raises, 'negative' only lowers, and 'bidirectional' raises
    or lowers depending on which side of 50 the influencer sits.
    """
    if direction == "positive":
        delta = (influencer / 100) * strength * 50
    elif direction == "negative":
        delta = -(influencer / 100) * strength * 50
    elif direction == "bidirectional":
        delta = ((influencer - 50) / 50) * strength * 50
    else:
        raise ValueError(f"Unknown influence direction: {direction!r}")
    return normalize_var(base + delta)

def threshold(value: float, threshold_point: float) -> float:
    """0 below the threshold, rescaled to [0, 100] above it."""
    if value < threshold_point:
        return 0.0
    if threshold_point >= 100:
        return 100.0
    return (value - threshold_point) / (100 - threshold_point) * 100

def inverse_threshold(value: float, threshold_point: float) -> float:
    """100 below the threshold, falling to 0 at 100."""
    if value < threshold_point:
        return 100.0
    if threshold_point >= 100:
        return 0.0
    return 100 - (value - threshold_point) / (100 - threshold_point) * 100
