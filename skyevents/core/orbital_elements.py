# skyevents/core/orbital_elements.py
# -----------------------------------------------------------------------------
# Epoch-ordered osculating elements for minor bodies
#
# • OrbitalElementSet: one immutable element record (J2000 ecliptic angles).
# • ConvergenceFailureWindow: grow-only [min, max] span of instants at which the
#   near-parabolic Kepler iteration failed; solves inside it go straight to the
#   robust regime.
# • OrbitalElementsStore: owns both, per body, behind one lock.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from skyevents.core.constants import K_DEG, wrap_deg, wrap_pm180

log = logging.getLogger(__name__)

__all__ = [
    "OrbitalElementSet",
    "ConvergenceFailureWindow",
    "MinorBody",
    "ElementLookup",
    "OrbitalElementsStore",
    "mean_motion",
]


def mean_motion(q: float, e: float) -> Tuple[float, float]:
    """(a, n): semi-major axis (AU, negative for hyperbolas) and mean daily motion (deg/day)."""
    if e == 1.0:
        return math.inf, 0.0
    a = q / (1.0 - e)
    return a, K_DEG / abs(a) ** 1.5


@dataclass(frozen=True)
class OrbitalElementSet:
    epoch: float          # JDE
    q: float              # perihelion distance, AU
    e: float
    i: float              # deg
    w: float              # argument of perihelion, deg
    L: float              # longitude of ascending node, deg
    Tp: float             # time of perihelion passage, JDE
    a: float = field(default=0.0)
    n: float = field(default=0.0)
    H: Optional[float] = None
    G: Optional[float] = None

    @classmethod
    def create(cls, epoch: float, q: float, e: float, i: float, w: float, L: float, Tp: float,
               H: Optional[float] = None, G: Optional[float] = None) -> "OrbitalElementSet":
        if not (q > 0.0 and e >= 0.0):
            raise ValueError(f"invalid elements: q={q}, e={e}")
        a, n = mean_motion(q, e)
        return cls(epoch=float(epoch), q=float(q), e=float(e), i=float(i), w=float(w), L=float(L),
                   Tp=float(Tp), a=a, n=n, H=H, G=G)

    @property
    def period_days(self) -> float:
        """Orbital period, 0.0 for open orbits."""
        return 360.0 / self.n if self.e < 1.0 and self.n > 0.0 else 0.0


class ConvergenceFailureWindow:
    """Grow-only record of when the near-parabolic solver failed to converge."""

    __slots__ = ("has_failed", "min_failed", "max_failed")

    def __init__(self) -> None:
        self.has_failed = False
        self.min_failed = math.inf
        self.max_failed = -math.inf

    def __repr__(self) -> str:
        if not self.has_failed:
            return "ConvergenceFailureWindow(empty)"
        return f"ConvergenceFailureWindow({self.min_failed!r}..{self.max_failed!r})"

    def record(self, t: float) -> None:
        self.has_failed = True
        self.min_failed = min(self.min_failed, t)
        self.max_failed = max(self.max_failed, t)

    def covers(self, t: float) -> bool:
        return self.has_failed and self.min_failed <= t <= self.max_failed

    @classmethod
    def merged(cls, windows: Iterable["ConvergenceFailureWindow"]) -> "ConvergenceFailureWindow":
        out = cls()
        for w in windows:
            if w.has_failed:
                out.has_failed = True
                out.min_failed = min(out.min_failed, w.min_failed)
                out.max_failed = max(out.max_failed, w.max_failed)
        return out


@dataclass(frozen=True)
class MinorBody:
    name: str
    designation: str
    is_asteroid: bool
    elements: Tuple[OrbitalElementSet, ...]
    H: Optional[float] = None
    G: Optional[float] = None


@dataclass(frozen=True)
class ElementLookup:
    """Elements valid at one instant plus the failure windows they draw on."""
    body: str
    elements: OrbitalElementSet
    windows: Tuple[ConvergenceFailureWindow, ...]
    interpolated: bool = False

    def should_force(self, t: float) -> bool:
        return ConvergenceFailureWindow.merged(self.windows).covers(t)


def _interpolate(ta: float, t: float, tb: float, va: float, vb: float) -> float:
    return va + (vb - va) * (t - ta) / (tb - ta)


def _interpolate_modular(ta: float, t: float, tb: float, va: float, vb: float, signed: bool = False) -> float:
    vb = va + wrap_pm180(vb - va)
    v = _interpolate(ta, t, tb, va, vb)
    return wrap_pm180(v) if signed else wrap_deg(v)


class OrbitalElementsStore:
    """
    In-memory element chains and failure windows, keyed by body name. A
    body can also be looked up by designation or by case-folded name.

    Lookups clamp to the first/last epoch and interpolate strictly between
    adjacent epochs.
    """

    def __init__(self, bodies: Iterable[MinorBody] = ()) -> None:
        self._bodies: Dict[str, MinorBody] = {}
        self._windows: Dict[str, List[ConvergenceFailureWindow]] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()
        for b in bodies:
            self.add(b)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._resolve(name) is not None

    def __len__(self) -> int:
        return len(self._bodies)

    def names(self) -> List[str]:
        return list(self._bodies)

    def asteroids(self) -> List[str]:
        return [n for n, b in self._bodies.items() if b.is_asteroid]

    def comets(self) -> List[str]:
        return [n for n, b in self._bodies.items() if not b.is_asteroid]

    def add(self, body: MinorBody) -> None:
        if not body.elements:
            raise ValueError(f"{body.name}: no element sets")
        ordered = tuple(sorted(body.elements, key=lambda el: el.epoch))
        epochs = [el.epoch for el in ordered]
        if len(set(epochs)) != len(epochs):
            raise ValueError(f"{body.name}: duplicate epochs")
        with self._lock:
            self._bodies[body.name] = replace(body, elements=ordered)
            self._windows[body.name] = [ConvergenceFailureWindow() for _ in ordered]
            self._aliases[body.name.casefold()] = body.name
            if body.designation:
                self._aliases.setdefault(body.designation.casefold(), body.name)

    def _resolve(self, name: str) -> Optional[str]:
        if name in self._bodies:
            return name
        return self._aliases.get(name.casefold())

    def get(self, name: str) -> MinorBody:
        key = self._resolve(name)
        if key is None:
            raise KeyError(f"unknown minor body '{name}'")
        return self._bodies[key]

    def failure_windows(self, name: str) -> Sequence[ConvergenceFailureWindow]:
        return tuple(self._windows[self.get(name).name])

    def lookup(self, name: str, jde: Optional[float] = None) -> ElementLookup:
        body = self.get(name)
        name = body.name
        chain = body.elements
        windows = self._windows[name]

        if jde is None or jde <= chain[0].epoch:
            return ElementLookup(name, chain[0], (windows[0],))
        if jde >= chain[-1].epoch:
            return ElementLookup(name, chain[-1], (windows[-1],))

        for idx in range(len(chain) - 1):
            a, b = chain[idx], chain[idx + 1]
            if b.epoch == jde:
                return ElementLookup(name, b, (windows[idx + 1],))
            if a.epoch < jde < b.epoch:
                return ElementLookup(name, self._between(a, b, jde),
                                     (windows[idx], windows[idx + 1]), interpolated=True)

        return ElementLookup(name, chain[-1], (windows[-1],))

    @staticmethod
    def _between(a: OrbitalElementSet, b: OrbitalElementSet, t: float) -> OrbitalElementSet:
        ta, tb = a.epoch, b.epoch
        q = _interpolate(ta, t, tb, a.q, b.q)
        e = _interpolate(ta, t, tb, a.e, b.e)
        sa, n = mean_motion(q, e)

        # Tp can jump a whole orbit between epochs; bring b's onto a's orbit first
        b_tp = b.Tp
        if e < 1.0 and n > 0.0:
            full_orbit = 360.0 / n
            while b_tp >= a.Tp + full_orbit / 2.0:
                b_tp -= full_orbit
            while b_tp < a.Tp - full_orbit / 2.0:
                b_tp += full_orbit

        return OrbitalElementSet(
            epoch=t,
            q=q,
            e=e,
            i=_interpolate_modular(ta, t, tb, a.i, b.i, signed=True),
            w=_interpolate_modular(ta, t, tb, a.w, b.w),
            L=_interpolate_modular(ta, t, tb, a.L, b.L),
            Tp=_interpolate(ta, t, tb, a.Tp, b_tp),
            a=sa,
            n=n,
            H=a.H,
            G=a.G,
        )

    def record_failure(self, lookup: ElementLookup, jde: float) -> None:
        """Grow every window the lookup drew on to include `jde`."""
        with self._lock:
            for w in lookup.windows:
                w.record(jde)
        log.debug("near-parabolic solve failed for %s at JDE %.5f", lookup.body, jde)
