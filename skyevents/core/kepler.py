# skyevents/core/kepler.py
# -----------------------------------------------------------------------------
# Multi-regime Kepler solver for minor bodies
#
# Regimes by eccentricity:
#   e == 1                     parabolic, closed form (Meeus ch.34)
#   e <  0.98                  elliptical, Sinnott binary search (Meeus ch.30)
#   e >  1.1                   hyperbolic, Laguerre-Conway to 1e-12
#   0.98 <= e <= 1.1           near-parabolic series (Meeus ch.35)
#
# The near-parabolic iteration can diverge far from perihelion. A failure is
# recorded in the body's ConvergenceFailureWindow and the solve is repeated in
# the robust regime for that eccentricity; later solves inside the recorded
# window skip the series altogether.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from skyevents.core.constants import K_DEG, K_RAD, wrap_deg
from skyevents.core.orbital_elements import (
    ConvergenceFailureWindow,
    OrbitalElementSet,
    OrbitalElementsStore,
    mean_motion,
)

log = logging.getLogger(__name__)

__all__ = [
    "NEAR_PARABOLIC_E_LOW",
    "NEAR_PARABOLIC_E_HIGH",
    "KeplerSolution",
    "KeplerSolver",
    "eccentric_anomaly",
    "hyperbolic_anomaly",
    "orbit_to_ecliptic",
]

NEAR_PARABOLIC_E_LOW = 0.98
NEAR_PARABOLIC_E_HIGH = 1.1
_PARABOLIC_FORCE_BAND = 1e-4

_TWO_PI = 2.0 * math.pi
_SINNOTT_STEPS = 60
_HYPERBOLIC_TOL = 1e-12
_HYPERBOLIC_MAX_ITER = 100
_NEAR_MAX_ERR = 1e-10
_NEAR_DIVERGENCE = 10000.0
_NEAR_CAP = 50

ELLIPTICAL = "elliptical"
PARABOLIC = "parabolic"
HYPERBOLIC = "hyperbolic"
NEAR_PARABOLIC = "near-parabolic"


@dataclass(frozen=True)
class KeplerSolution:
    v: float          # true anomaly, radians
    r: float          # heliocentric distance, AU
    regime: str
    forced: bool = False


# ───────────────────────── anomaly solvers ─────────────────────────

def eccentric_anomaly(e: float, mean_anomaly: float) -> float:
    """E from E - e·sin E = M (radians), Sinnott's fixed-step binary search."""
    m = math.fmod(mean_anomaly, _TWO_PI)
    if m < 0.0:
        m += _TWO_PI
    f = 1.0
    if m > math.pi:
        m = _TWO_PI - m
        f = -1.0

    e0 = math.pi / 2.0
    d = math.pi / 4.0
    for _ in range(_SINNOTT_STEPS):
        m1 = e0 - e * math.sin(e0)
        e0 += math.copysign(d, m - m1) if m != m1 else 0.0
        d /= 2.0
    return e0 * f


def hyperbolic_anomaly(e: float, mean_anomaly: float) -> float:
    """H from e·sinh H - H = M (radians), Laguerre-Conway iteration."""
    m = abs(mean_anomaly)
    h = math.log(2.0 * m / e + 1.85)
    for _ in range(_HYPERBOLIC_MAX_ITER):
        sh = math.sinh(h)
        ch = math.cosh(h)
        f = e * sh - h - m
        f1 = e * ch - 1.0
        f2 = e * sh
        denom = f1 + math.copysign(math.sqrt(abs(16.0 * f1 * f1 - 20.0 * f * f2)), f1)
        if denom == 0.0:
            break
        dh = -5.0 * f / denom
        h += dh
        if abs(dh) < _HYPERBOLIC_TOL:
            break
    return -h if mean_anomaly < 0.0 else h


def _parabolic(q: float, dt: float) -> Tuple[float, float]:
    w = 0.03649116245 * dt / (q * math.sqrt(q))
    g = w / 2.0
    root = math.hypot(g, 1.0)
    # G + sqrt(G²+1) cancels badly for large negative G; use its reciprocal there
    y = (g + root) ** (1.0 / 3.0) if g >= 0.0 else 1.0 / (root - g) ** (1.0 / 3.0)
    s = y - 1.0 / y
    return 2.0 * math.atan(s), q * (1.0 + s * s)


def _elliptical(e: float, q: float, dt: float) -> Tuple[float, float]:
    a, n = mean_motion(q, e)
    m = math.radians(wrap_deg(n * dt))
    ea = eccentric_anomaly(e, m)
    if abs(ea) == math.pi:
        v = math.pi
    else:
        v = 2.0 * math.atan(math.sqrt((1.0 + e) / (1.0 - e)) * math.tan(ea / 2.0))
    r = a * (1.0 - e * e) / (1.0 + e * math.cos(v))
    return v, r


def _hyperbolic(e: float, q: float, dt: float) -> Tuple[float, float]:
    a, n = mean_motion(q, e)
    h = hyperbolic_anomaly(e, math.radians(n * dt))
    v = 2.0 * math.atan(math.sqrt((e + 1.0) / (e - 1.0)) * math.tanh(h / 2.0))
    r = abs(a) * (e * math.cosh(h) - 1.0)
    return v, r


def _near_parabolic(e: float, q: float, dt: float) -> Optional[Tuple[float, float]]:
    """Meeus ch.35 series; None when any loop exceeds its cap or the series blows up."""
    if dt == 0.0:
        return 0.0, q

    q1 = K_RAD * math.sqrt((1.0 + e) / q) / 2.0 / q
    q2 = q1 * dt
    s = 2.0 / 3.0 / abs(q2)
    s = 2.0 / math.tan(2.0 * math.atan(math.tan(math.atan(s) / 2.0) ** (1.0 / 3.0))) * math.copysign(1.0, dt)
    g = (1.0 - e) / (1.0 + e)
    outer = 0

    while True:
        z = 1
        y = s * s
        g1 = -y * s
        q3 = q2 + 2.0 * g * s * y / 3.0
        s0 = s

        while True:
            z += 1
            g1 = -g1 * g * y
            z1 = (z - (z + 1) * g) / (2.0 * z + 1.0)
            f = z1 * g1
            q3 += f
            if z > _NEAR_CAP or abs(f) > _NEAR_DIVERGENCE:
                return None
            if abs(f) <= _NEAR_MAX_ERR:
                break

        outer += 1
        if outer > _NEAR_CAP:
            return None

        z = 0
        while True:
            z += 1
            if z > _NEAR_CAP:
                return None
            s1 = s
            s = (2.0 * s * s * s / 3.0 + q3) / (s * s + 1.0)
            if abs(s - s1) <= _NEAR_MAX_ERR:
                break

        if abs(s - s0) <= _NEAR_MAX_ERR:
            break

    v = 2.0 * math.atan(s)
    return v, q * (1.0 + e) / (1.0 + e * math.cos(v))


def orbit_to_ecliptic(el: OrbitalElementSet, v: float, r: float) -> Tuple[float, float, float]:
    """Heliocentric J2000 ecliptic (x, y, z) in AU from true anomaly and radius."""
    u = math.radians(el.w) + v
    ci, si = math.cos(math.radians(el.i)), math.sin(math.radians(el.i))
    cl, sl = math.cos(math.radians(el.L)), math.sin(math.radians(el.L))
    cu, su = math.cos(u), math.sin(u)
    x = r * (cl * cu - sl * su * ci)
    y = r * (sl * cu + cl * su * ci)
    z = r * si * su
    return x, y, z


# ───────────────────────── solver service ─────────────────────────

class KeplerSolver:
    """Regime-selecting solver; with a store it also resolves named minor bodies."""

    def __init__(self, store: Optional[OrbitalElementsStore] = None):
        self.store = store

    def solve(
        self,
        e: float,
        q: float,
        dt: float,
        *,
        at: Optional[float] = None,
        windows: Sequence[ConvergenceFailureWindow] = (),
        force: bool = False,
        on_failure: Optional[Callable[[], None]] = None,
    ) -> KeplerSolution:
        """
        True anomaly and radius `dt` days after perihelion passage.

        `at` is the absolute instant used against the failure windows
        (defaults to `dt`). A near-parabolic failure grows `windows` (or
        calls `on_failure`) and re-solves in the robust regime.
        """
        at = dt if at is None else at
        if not force and windows and ConvergenceFailureWindow.merged(windows).covers(at):
            force = True

        if e == 1.0 or (force and abs(e - 1.0) < _PARABOLIC_FORCE_BAND):
            v, r = _parabolic(q, dt)
            return KeplerSolution(v, r, PARABOLIC, force)
        if e < NEAR_PARABOLIC_E_LOW or (force and e < 1.0):
            v, r = _elliptical(e, q, dt)
            return KeplerSolution(v, r, ELLIPTICAL, force)
        if e > NEAR_PARABOLIC_E_HIGH or force:
            v, r = _hyperbolic(e, q, dt)
            return KeplerSolution(v, r, HYPERBOLIC, force)

        result = _near_parabolic(e, q, dt)
        if result is None:
            if on_failure is not None:
                on_failure()
            else:
                for w in windows:
                    w.record(at)
            log.debug("near-parabolic series diverged (e=%.6f, q=%.6f, dt=%.3f); forcing robust regime", e, q, dt)
            return self.solve(e, q, dt, at=at, force=True)
        v, r = result
        return KeplerSolution(v, r, NEAR_PARABOLIC, False)

    def solve_mean_anomaly(
        self,
        e: float,
        mean_anomaly_deg: float,
        q: float = 1.0,
        windows: Sequence[ConvergenceFailureWindow] = (),
    ) -> KeplerSolution:
        """
        Solve from a mean anomaly in degrees; dt = M / n. For e == 1 the
        parabolic pseudo mean motion k / q^1.5 is used.
        """
        _a, n = mean_motion(q, e)
        if n == 0.0:
            n = K_DEG / q ** 1.5
        dt = mean_anomaly_deg / n
        return self.solve(e, q, dt, windows=windows)

    # ── named bodies ──
    def heliocentric_xyz(self, name: str, jde: float) -> Tuple[float, float, float]:
        """J2000 ecliptic heliocentric position (AU) of a stored minor body."""
        if self.store is None:
            raise KeyError(f"no orbital elements loaded for '{name}'")
        store = self.store
        lookup = store.lookup(name, jde)
        el = lookup.elements
        sol = self.solve(
            el.e, el.q, jde - el.Tp,
            at=jde,
            windows=lookup.windows,
            on_failure=lambda: store.record_failure(lookup, jde),
        )
        return orbit_to_ecliptic(el, sol.v, sol.r)

    def mean_orbital_period(self, name: str, jde: Optional[float] = None) -> float:
        if self.store is None or name not in self.store:
            return 0.0
        return self.store.lookup(name, jde).elements.period_days
