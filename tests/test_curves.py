import math

import pytest

from world_synth.curves import (
    apply_influence,
    bias_curve,
    blend_vars,
    ease_in,
    ease_in_out,
    ease_out,
    gain_curve,
    inverse_threshold,
    map_range,
    map_var,
    normalize_var,
    smoothstep,
    smootherstep,
    threshold,
)


def test_smoothstep_endpoints_and_midpoint():
    assert smoothstep(0) == 0
    assert smoothstep(1) == 1
    assert smoothstep(0.5) == 0.5
    assert smoothstep(-3) == 0, "Input should be clamped"
    assert smoothstep(3) == 1, "Input should be clamped"


def test_bias_and_gain_keep_endpoints():
    for bias in (0.2, 0.5, 0.8):
        assert bias_curve(0, bias) == 0
        assert bias_curve(1, bias) == pytest.approx(1.0)
        assert gain_curve(0.5, bias) == pytest.approx(0.5), f"gain_curve(0.5, {bias}) should be 0.5"


def test_ease_in_out_is_symmetric():
    for t in (0.1, 0.25, 0.4):
        assert ease_in_out(t) + ease_in_out(1 - t) == pytest.approx(1.0)


def test_map_var_linear_and_clamped():
    assert map_var(50, 0.0, 1.0) == 0.5
    assert map_var(0, 0.1, 0.55) == 0.1
    assert map_var(100, 0.1, 0.55) == pytest.approx(0.55)
    assert map_var(250, 0.0, 1.0) == 1.0, "Values above 100 should clamp"
    assert map_var(-5, 0.0, 1.0) == 0.0, "Values below 0 should clamp"
    assert map_var(50, 0, 1, "smooth") == 0.5


def test_map_range_degenerate_input_range():
    assert map_range(5, 2, 2, 10, 20) == 10


def test_normalize_var_rounds_half_up_and_clamps():
    assert normalize_var(49.5) == 50
    assert normalize_var(50.49) == 50
    assert normalize_var(-12) == 0
    assert normalize_var(140) == 100
    assert normalize_var(math.inf) == 100
    assert normalize_var(math.nan) == 50
    assert normalize_var(None) == 50


def test_blend_vars_weighted_mean():
    assert blend_vars([(0, 1), (100, 1)]) == 50
    assert blend_vars([(80, 3), (0, 1)]) == 60
    assert blend_vars([]) == 50


def test_apply_influence_directions():
    assert apply_influence(50, 100, 0.4) == 70
    assert apply_influence(50, 0, 0.4) == 30
    assert apply_influence(50, 50, 1.0) == 50, "A centered influencer should not move the base"
    assert apply_influence(50, 100, 0.2, "positive") == 60
    assert apply_influence(50, 100, 0.2, "negative") == 40
    with pytest.raises(ValueError):
        apply_influence(50, 50, 0.5, "sideways")


def test_thresholds():
    assert threshold(20, 30) == 0.0
    assert threshold(65, 30) == pytest.approx(50.0)
    assert inverse_threshold(20, 30) == 100.0
    assert inverse_threshold(100, 30) == pytest.approx(0.0)


def test_easing_and_smootherstep():
    assert ease_in(0.5) == pytest.approx(0.25)
    assert ease_out(0.5) == pytest.approx(0.75)
    assert ease_in(0.3, 3) + ease_out(0.7, 3) == pytest.approx(1.0)
    assert smootherstep(0) == 0 and smootherstep(1) == 1
    assert smootherstep(0.5) == pytest.approx(0.5)
    assert smootherstep(0.25) < smoothstep(0.25), "The quintic curve is flatter near the ends"
