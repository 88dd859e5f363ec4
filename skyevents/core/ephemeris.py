# skyevents/core/ephemeris.py
# -----------------------------------------------------------------------------
# Position provider for the event engine (offline, pyERFA based)
#
# Highlights
# • PositionProvider: one abstract primitive (geocentric equatorial vector of
#   date) plus heliocentric positions; every derived quantity the search needs
#   is built on top, so test doubles only override the primitives
# • ErfaPositionProvider: epv00 (Earth), plan94 (Mercury..Neptune), moon98
#   (Moon), J2000 mean elements (Pluto), KeplerSolver (minor bodies)
# • Light time + annual aberration via erfa.ab; frame of date via pmat06/pnm06a
# • Earth state and frame matrices memoized per instant (LRU)
# • Clean error taxonomy: EphemerisError(stage, message, **context)
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import math
import os
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional, Sequence, Tuple

import erfa
import numpy as np

from skyevents.core.constants import (
    EARTH,
    JD_J2000,
    JUPITER,
    LIGHT_DAYS_PER_AU,
    C_AU_PER_DAY,
    KM_PER_AU,
    MARS,
    MERCURY,
    MOON,
    MOON_RADIUS_KM,
    NEPTUNE,
    OBLIQUITY_J2000_DEG,
    PLUTO,
    SATURN,
    SUN,
    SUN_SEMIDIAMETER_AU_ARCSEC,
    URANUS,
    VENUS,
    planet_mean_orbital_period,
    wrap_deg,
    wrap_pm180,
)
from skyevents.core.coords import SphericalPosition, Vec3, mat_vec, rotate_x, vnorm, vscale, vsub
from skyevents.core.deltat import tt_to_ut, ut_to_tt
from skyevents.core.kepler import KeplerSolver, orbit_to_ecliptic
from skyevents.core.observer import SkyObserver, greenwich_sidereal_time
from skyevents.core.orbital_elements import OrbitalElementSet, OrbitalElementsStore
from skyevents.utils.cache import LRUCache

log = logging.getLogger(__name__)

__all__ = [
    "ABERRATION",
    "NUTATION",
    "TOPOCENTRIC",
    "LOW_PRECISION",
    "SIGNED_HOUR_ANGLE",
    "REFRACTION",
    "DEFAULT_FLAGS",
    "EphemerisError",
    "EphemerisConfig",
    "PositionProvider",
    "ErfaPositionProvider",
]

# ─────────────────────────────────────────────────────────────────────────────
# Flags
# ─────────────────────────────────────────────────────────────────────────────
ABERRATION = 1
NUTATION = 2
TOPOCENTRIC = 4
LOW_PRECISION = 8
SIGNED_HOUR_ANGLE = 16
REFRACTION = 32

DEFAULT_FLAGS = ABERRATION | NUTATION

# ─────────────────────────────────────────────────────────────────────────────
# Constants / environment
# ─────────────────────────────────────────────────────────────────────────────
_PLAN94_INDEX = {
    MERCURY: 1, VENUS: 2, MARS: 4, JUPITER: 5, SATURN: 6, URANUS: 7, NEPTUNE: 8,
}

# Equatorial semidiameters at 1 AU, arcsec
_SEMIDIAMETER_1AU = {
    SUN: SUN_SEMIDIAMETER_AU_ARCSEC,
    MERCURY: 3.36,
    VENUS: 8.34,
    MARS: 4.68,
    JUPITER: 98.44,
    SATURN: 82.73,
    URANUS: 35.02,
    NEPTUNE: 33.50,
    PLUTO: 2.07,
}
_POLAR_SEMIDIAMETER_1AU = {JUPITER: 92.06, SATURN: 73.82}

# Pluto: J2000 mean elements (ecliptic), mean longitude rate in deg/century
_PLUTO_L0 = 238.96
_PLUTO_L1 = 144.96
_PLUTO_A = 39.543
_PLUTO_E = 0.249
_PLUTO_I = 17.14
_PLUTO_NODE = 110.307
_PLUTO_PERI = 224.075

_CACHE_SIZE_ENV = int(os.getenv("SKYEVENTS_EPHEMERIS_CACHE", "4096"))
_JD_MIN_ENV = float(os.getenv("SKYEVENTS_JD_MIN", "-1930633.5"))   # -10000-01-01
_JD_MAX_ENV = float(os.getenv("SKYEVENTS_JD_MAX", "5373484.5"))    # 9999-12-31


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions / config
# ─────────────────────────────────────────────────────────────────────────────
class EphemerisError(RuntimeError):
    """Categorized error for provider callers."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context


@dataclass(frozen=True)
class EphemerisConfig:
    jd_min: float = _JD_MIN_ENV
    jd_max: float = _JD_MAX_ENV
    cache_size: int = _CACHE_SIZE_ENV
    light_time_iterations: int = 3


def _split(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd - 0.5) + 0.5
    return d1, jd - d1


def _vec(a: Any) -> Vec3:
    return float(a[0]), float(a[1]), float(a[2])


def _resolve_flags(flags: Optional[int], observer: Optional[SkyObserver], base: int) -> int:
    if flags is None:
        flags = base
        if observer is not None:
            flags |= TOPOCENTRIC
    return flags


# ─────────────────────────────────────────────────────────────────────────────
# Provider interface
# ─────────────────────────────────────────────────────────────────────────────
class PositionProvider(ABC):
    """
    Body + time → position. Times named `jd_tt` are Terrestrial Time, `jd_ut`
    Universal Time. Angles are degrees, distances AU.

    Subclasses supply `equatorial_xyz` (geocentric, equator of date: true when
    NUTATION is set, mean otherwise) and `heliocentric_position`
    (J2000 ecliptic). Everything else is derived.
    """

    # ---- primitives ----------------------------------------------------------
    @abstractmethod
    def equatorial_xyz(self, body: str, jd_tt: float, flags: int = DEFAULT_FLAGS) -> Vec3:
        ...

    @abstractmethod
    def heliocentric_position(self, body: str, jd_tt: float) -> SphericalPosition:
        ...

    def obliquity(self, jd_tt: float, nutated: bool = True) -> float:
        """Obliquity of the ecliptic (deg), mean (obl06) or true (+ nut06a Δε)."""
        d1, d2 = _split(jd_tt)
        eps = float(erfa.obl06(d1, d2))
        if nutated:
            _dpsi, deps = erfa.nut06a(d1, d2)
            eps += float(deps)
        return math.degrees(eps)

    def sidereal_time(self, jd_ut: float, apparent: bool = False) -> float:
        return greenwich_sidereal_time(jd_ut, apparent)

    def mean_orbital_period(self, body: str, jd_tt: Optional[float] = None) -> float:
        return planet_mean_orbital_period(body)

    # ---- derived positions ---------------------------------------------------
    def equatorial_position(self, body: str, jd_tt: float, observer: Optional[SkyObserver] = None,
                            flags: Optional[int] = None) -> SphericalPosition:
        flags = _resolve_flags(flags, observer, DEFAULT_FLAGS)
        if body == EARTH:
            return SphericalPosition(0.0, 0.0, 0.0)
        xyz = self.equatorial_xyz(body, jd_tt, flags & ~TOPOCENTRIC)
        if flags & TOPOCENTRIC and observer is not None:
            xyz = observer.topocentric(xyz, tt_to_ut(jd_tt), apparent=bool(flags & NUTATION))
        return SphericalPosition.from_xyz(xyz)

    def ecliptic_position(self, body: str, jd_tt: float, observer: Optional[SkyObserver] = None,
                          flags: Optional[int] = None) -> SphericalPosition:
        flags = _resolve_flags(flags, observer, DEFAULT_FLAGS)
        if body == EARTH:
            return SphericalPosition(0.0, 0.0, 0.0)
        eq = self.equatorial_position(body, jd_tt, observer, flags)
        eps = self.obliquity(jd_tt, nutated=bool(flags & NUTATION))
        return SphericalPosition.from_xyz(rotate_x(eq.xyz(), eps))

    def horizontal_position(self, body: str, jd_ut: float, observer: SkyObserver,
                            flags: int = ABERRATION | LOW_PRECISION) -> SphericalPosition:
        """
        Azimuth (from north, eastward), altitude and distance. Mean equator
        and mean sidereal time; the Moon is always topocentric.
        """
        if body == EARTH:
            return SphericalPosition(0.0, 0.0, 0.0)
        flags &= ~NUTATION
        if body == MOON:
            flags |= TOPOCENTRIC
        eq = self.equatorial_position(body, ut_to_tt(jd_ut), observer, flags)
        return observer.horizontal(eq, jd_ut, refraction=bool(flags & REFRACTION))

    def hour_angle(self, body: str, jd_ut: float, observer: SkyObserver, flags: Optional[int] = None) -> float:
        if flags is None:
            flags = ABERRATION | (TOPOCENTRIC if body == MOON else 0)
        flags &= ~NUTATION
        eq = self.equatorial_position(body, ut_to_tt(jd_ut), observer, flags)
        return observer.hour_angle(eq.ra, jd_ut, signed=bool(flags & SIGNED_HOUR_ANGLE))

    # ---- derived scalars -----------------------------------------------------
    def lunar_phase(self, jd_tt: float) -> float:
        """Moon − Sun apparent longitude in [0, 360): 0 new, 90 first quarter, 180 full, 270 last."""
        moon = self.ecliptic_position(MOON, jd_tt, None, ABERRATION | LOW_PRECISION)
        sun = self.ecliptic_position(SUN, jd_tt, None, ABERRATION | LOW_PRECISION)
        return wrap_deg(moon.longitude - sun.longitude)

    def solar_elongation(self, body: str, jd_tt: float, observer: Optional[SkyObserver] = None,
                         flags: Optional[int] = None) -> float:
        if body in (SUN, EARTH):
            return 0.0
        flags = _resolve_flags(flags, observer, ABERRATION)
        sun = self.ecliptic_position(SUN, jd_tt, observer, flags)
        pos = self.ecliptic_position(body, jd_tt, observer, flags)
        return sun.distance_from(pos)

    def solar_elongation_in_longitude(self, body: str, jd_tt: float) -> float:
        """Signed apparent longitude difference, positive east of the Sun."""
        sun = self.ecliptic_position(SUN, jd_tt)
        pos = self.ecliptic_position(body, jd_tt)
        return wrap_pm180(pos.longitude - sun.longitude)

    def angular_diameter(self, body: str, jd_tt: float, observer: Optional[SkyObserver] = None,
                         polar: bool = False) -> float:
        """Apparent diameter in arcseconds; 0 for bodies without a tabulated size."""
        if body == MOON:
            flags = ABERRATION | (TOPOCENTRIC if observer is not None else 0)
            dist_km = self.equatorial_position(MOON, jd_tt, observer, flags).radius * KM_PER_AU
            if dist_km <= MOON_RADIUS_KM:
                return 0.0
            return 2.0 * math.degrees(math.asin(MOON_RADIUS_KM / dist_km)) * 3600.0
        size = (_POLAR_SEMIDIAMETER_1AU.get(body) if polar else None) or _SEMIDIAMETER_1AU.get(body)
        if size is None:
            return 0.0
        dist = self.equatorial_position(body, jd_tt, None, ABERRATION).radius
        return 2.0 * size / dist

    def is_inferior(self, body: str, jd_tt: float) -> bool:
        """True when the body is nearer to Earth than the Sun is."""
        sun = self.equatorial_position(SUN, jd_tt, None, ABERRATION).radius
        return self.equatorial_position(body, jd_tt, None, ABERRATION).radius < sun


# ─────────────────────────────────────────────────────────────────────────────
# pyERFA implementation
# ─────────────────────────────────────────────────────────────────────────────
class _EarthState(NamedTuple):
    helio: Vec3            # heliocentric position, AU (ICRS axes)
    bary_velocity: Vec3    # barycentric velocity, AU/day


def _pluto_elements() -> OrbitalElementSet:
    q = _PLUTO_A * (1.0 - _PLUTO_E)
    return OrbitalElementSet.create(
        epoch=JD_J2000, q=q, e=_PLUTO_E, i=_PLUTO_I,
        w=_PLUTO_PERI - _PLUTO_NODE, L=_PLUTO_NODE, Tp=JD_J2000,
    )


class ErfaPositionProvider(PositionProvider):
    """
    Offline provider on top of pyERFA. plan94 is good to a few arcseconds
    over 1000..3000 CE and moon98 to ~10″ near the present; both keep
    working (with ErfaWarning suppressed) outside those spans.
    """

    def __init__(self, store: Optional[OrbitalElementsStore] = None, cfg: Optional[EphemerisConfig] = None):
        self.cfg = cfg or EphemerisConfig()
        self.store = store
        self.kepler = KeplerSolver(store)
        self._pluto = _pluto_elements()
        self._earth_cache = LRUCache(self.cfg.cache_size)
        self._matrix_cache = LRUCache(self.cfg.cache_size)

    # ---- guards / caches -----------------------------------------------------
    def _check_jd_guard(self, jd_tt: float) -> None:
        if not (self.cfg.jd_min <= jd_tt <= self.cfg.jd_max):
            raise EphemerisError("validation", "Julian date outside supported span", jd_tt=float(jd_tt))

    def _earth(self, jd_tt: float) -> _EarthState:
        def compute() -> _EarthState:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", erfa.ErfaWarning)
                pvh, pvb = erfa.epv00(*_split(jd_tt))
            return _EarthState(_vec(pvh["p"]), _vec(pvb["v"]))

        return self._earth_cache.get_or_compute(jd_tt, compute)

    def _frame_matrix(self, jd_tt: float, nutation: bool) -> Sequence[Sequence[float]]:
        def compute():
            d1, d2 = _split(jd_tt)
            m = erfa.pnm06a(d1, d2) if nutation else erfa.pmat06(d1, d2)
            return tuple(tuple(float(c) for c in row) for row in m)

        return self._matrix_cache.get_or_compute((jd_tt, nutation), compute)

    # ---- heliocentric (ICRS-aligned equatorial) --------------------------------
    def _helio_equatorial(self, body: str, jd_tt: float) -> Vec3:
        if body == SUN:
            return 0.0, 0.0, 0.0
        if body == EARTH:
            return self._earth(jd_tt).helio
        if body == MOON:
            return tuple(a + b for a, b in zip(self._earth(jd_tt).helio, self._moon_geocentric(jd_tt)))
        idx = _PLAN94_INDEX.get(body)
        if idx is not None:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", erfa.ErfaWarning)
                pv = erfa.plan94(*_split(jd_tt), idx)
            return _vec(pv["p"])
        return rotate_x(self._helio_ecliptic_j2000(body, jd_tt), -OBLIQUITY_J2000_DEG)

    def _helio_ecliptic_j2000(self, body: str, jd_tt: float) -> Vec3:
        if body == PLUTO:
            t = (jd_tt - JD_J2000) / 36525.0
            mean_anomaly = wrap_deg(_PLUTO_L0 + _PLUTO_L1 * t - _PLUTO_PERI)
            sol = self.kepler.solve_mean_anomaly(_PLUTO_E, mean_anomaly, self._pluto.q)
            return orbit_to_ecliptic(self._pluto, sol.v, sol.r)
        if self.store is not None and body in self.store:
            return self.kepler.heliocentric_xyz(body, jd_tt)
        raise EphemerisError("validation", f"unknown body '{body}'", body=body)

    def _moon_geocentric(self, jd_tt: float) -> Vec3:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", erfa.ErfaWarning)
            pv = erfa.moon98(*_split(jd_tt))
        return _vec(pv["p"])

    # ---- geocentric GCRS ---------------------------------------------------------
    def _geocentric(self, body: str, jd_tt: float, flags: int) -> Vec3:
        if body == MOON:
            p = self._moon_geocentric(jd_tt)
            if flags & ABERRATION:
                p = self._moon_geocentric(jd_tt - vnorm(p) * LIGHT_DAYS_PER_AU)
            return p

        earth = self._earth(jd_tt)
        p = vsub(self._helio_equatorial(body, jd_tt), earth.helio)
        if not flags & ABERRATION:
            return p

        for _ in range(self.cfg.light_time_iterations):
            tau = vnorm(p) * LIGHT_DAYS_PER_AU
            p = vsub(self._helio_equatorial(body, jd_tt - tau), earth.helio)

        dist = vnorm(p)
        v = np.array(earth.bary_velocity) / C_AU_PER_DAY
        bm1 = math.sqrt(1.0 - float(np.dot(v, v)))
        ppr = erfa.ab(np.array(p) / dist, v, vnorm(earth.helio), bm1)
        return vscale(_vec(ppr), dist)

    # ---- primitives ---------------------------------------------------------------
    def equatorial_xyz(self, body: str, jd_tt: float, flags: int = DEFAULT_FLAGS) -> Vec3:
        self._check_jd_guard(jd_tt)
        if body == EARTH:
            return 0.0, 0.0, 0.0
        try:
            gcrs = self._geocentric(body, jd_tt, flags)
        except erfa.ErfaError as e:
            raise EphemerisError("compute", str(e), body=body, jd_tt=float(jd_tt)) from e
        return mat_vec(self._frame_matrix(jd_tt, bool(flags & NUTATION)), gcrs)

    def heliocentric_position(self, body: str, jd_tt: float) -> SphericalPosition:
        """J2000 ecliptic heliocentric position."""
        self._check_jd_guard(jd_tt)
        if body == SUN:
            return SphericalPosition(0.0, 0.0, 0.0)
        if body == PLUTO or body not in _PLAN94_INDEX and body not in (EARTH, MOON):
            return SphericalPosition.from_xyz(self._helio_ecliptic_j2000(body, jd_tt))
        try:
            eq = self._helio_equatorial(body, jd_tt)
        except erfa.ErfaError as e:
            raise EphemerisError("compute", str(e), body=body, jd_tt=float(jd_tt)) from e
        return SphericalPosition.from_xyz(rotate_x(eq, OBLIQUITY_J2000_DEG))

    def mean_orbital_period(self, body: str, jd_tt: Optional[float] = None) -> float:
        period = planet_mean_orbital_period(body)
        if period == 0.0 and body not in (SUN, MOON, EARTH):
            period = self.kepler.mean_orbital_period(body, jd_tt)
        return period
