# tests/test_solvers.py
from __future__ import annotations

import math

from hypothesis import given, strategies as st

from skyevents.core.solvers import find_extremum, find_root


def test_root_of_sine_near_pi():
    assert abs(find_root(math.sin, 1e-12, 50, 3.0, x1=3.3) - math.pi) < 1e-9


def test_root_accepts_precomputed_endpoints():
    calls = []

    def f(x):
        calls.append(x)
        return x * x - 2.0

    x = find_root(f, 1e-12, 50, 1.0, -1.0, 2.0, 2.0)
    assert abs(x - math.sqrt(2.0)) < 1e-9
    assert 1.0 not in calls and 2.0 not in calls


def test_root_at_endpoint_returned_directly():
    assert find_root(lambda x: x - 4.0, 1e-9, 10, 4.0, x1=9.0) == 4.0


@given(st.floats(min_value=-50.0, max_value=50.0, allow_nan=False))
def test_root_of_shifted_line(c):
    x = find_root(lambda t: 3.0 * (t - c), 1e-9, 30, c - 7.0, x1=c + 11.0)
    assert abs(x - c) < 1e-8


def test_extremum_minimum():
    ex = find_extremum(lambda x: (x - 2.0) ** 2 + 1.0, 1e-10, 100, 0.0, 1.0, 5.0)
    assert not ex.is_maximum
    assert abs(ex.x - 2.0) < 1e-6
    assert abs(ex.y - 1.0) < 1e-10


def test_extremum_maximum():
    ex = find_extremum(math.sin, 1e-10, 100, 0.5, 1.4, 3.0)
    assert ex.is_maximum
    assert abs(ex.x - math.pi / 2.0) < 1e-6
    assert abs(ex.y - 1.0) < 1e-10


def test_extremum_keeps_precision_at_julian_day_scale():
    peak = 2458880.123456
    ex = find_extremum(lambda x: -((x - peak) * 100.0) ** 2, 1e-11, 100, peak - 0.5, peak + 0.1, peak + 0.5)
    assert ex.is_maximum
    assert abs(ex.x - peak) < 1e-5
