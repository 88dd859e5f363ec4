# tests/test_kepler.py
from __future__ import annotations

import math

import pytest
from hypothesis import given, strategies as st

from skyevents.core.kepler import (
    ELLIPTICAL,
    HYPERBOLIC,
    NEAR_PARABOLIC,
    PARABOLIC,
    KeplerSolver,
    eccentric_anomaly,
)
from skyevents.core.orbital_elements import ConvergenceFailureWindow

solver = KeplerSolver()


@given(
    e=st.floats(min_value=0.0, max_value=2.999, allow_nan=False),
    m=st.floats(min_value=0.001, max_value=359.999, allow_nan=False),
    q=st.floats(min_value=0.1, max_value=5.0, allow_nan=False),
)
def test_every_regime_gives_finite_positions(e, m, q):
    sol = solver.solve_mean_anomaly(e, m, q)
    assert math.isfinite(sol.v)
    assert math.isfinite(sol.r)
    assert sol.r > 0.0


@pytest.mark.parametrize("e, regime", [
    (0.5, ELLIPTICAL),
    (0.99, NEAR_PARABOLIC),
    (1.0, PARABOLIC),
    (1.05, NEAR_PARABOLIC),
    (1.5, HYPERBOLIC),
])
def test_regime_selection_near_perihelion(e, regime):
    assert solver.solve(e, 1.0, 5.0).regime == regime


def test_circular_orbit():
    sol = solver.solve_mean_anomaly(0.0, 90.0, 2.0)
    assert abs(sol.v - math.pi / 2.0) < 1e-9
    assert abs(sol.r - 2.0) < 1e-12


def test_eccentric_anomaly_satisfies_kepler():
    for e in (0.1, 0.5, 0.9):
        for m in (0.3, 1.0, 2.5, 4.0):
            ea = eccentric_anomaly(e, m)
            assert abs(math.remainder(ea - e * math.sin(ea) - m, 2.0 * math.pi)) < 1e-12


def test_parabolic_perihelion_and_symmetry():
    at_peri = solver.solve(1.0, 0.8, 0.0)
    assert at_peri.v == 0.0
    assert abs(at_peri.r - 0.8) < 1e-12
    out = solver.solve(1.0, 0.8, 40.0)
    back = solver.solve(1.0, 0.8, -40.0)
    assert abs(out.v + back.v) < 1e-12
    assert abs(out.r - back.r) < 1e-12


@pytest.mark.parametrize("boundary", [0.98, 1.1])
def test_continuity_across_regime_boundaries(boundary):
    below = solver.solve(boundary - 1e-9, 1.0, 10.0)
    above = solver.solve(boundary + 1e-9, 1.0, 10.0)
    assert below.regime != above.regime
    assert abs(below.v - above.v) < 1e-6
    assert abs(below.r - above.r) < 1e-6


def test_divergence_grows_window_and_forces_robust_regime():
    window = ConvergenceFailureWindow()
    first = solver.solve_mean_anomaly(0.99, 180.0, 1.0, windows=[window])
    assert first.forced
    assert first.regime == ELLIPTICAL
    assert window.has_failed

    again = solver.solve_mean_anomaly(0.99, 180.0, 1.0, windows=[window])
    assert again.forced
    assert again.v == first.v and again.r == first.r


def test_recorded_window_skips_the_series():
    window = ConvergenceFailureWindow()
    window.record(2.0)
    window.record(20.0)
    inside = solver.solve(1.05, 1.0, 10.0, windows=[window])
    outside = solver.solve(1.05, 1.0, 30.0, windows=[window])
    assert inside.forced and inside.regime == HYPERBOLIC
    assert not outside.forced and outside.regime == NEAR_PARABOLIC


def test_failure_callback_replaces_window_recording():
    window = ConvergenceFailureWindow()
    seen = []
    sol = solver.solve(0.99, 1.0, 182000.0, windows=[window], on_failure=lambda: seen.append(True))
    assert sol.forced
    assert seen == [True]
    assert not window.has_failed


def test_nearly_parabolic_forced_solve_uses_closed_form():
    sol = solver.solve(1.0 + 1e-6, 1.0, 5.0, force=True)
    assert sol.regime == PARABOLIC
