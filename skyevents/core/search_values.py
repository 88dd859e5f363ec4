# skyevents/core/search_values.py
# -----------------------------------------------------------------------------
# Per-event-type search strategies for periodic events
#
# Each periodic event type maps to one PeriodicStrategy:
#   value       time(UT) → scalar sampled over one mean cycle
#   seek        ZERO (sign change), MIN or MAX (three-point test)
#   period      mean cycle length in days (0 → nothing to search for)
#   resolution  step of the ±5-step stabilizing sweep, days
#   divisions   samples per cycle
#   accept      optional post-refinement filter (conjunction classification)
#   annotate    optional geometry check; returns misc info, or REJECT
#   applies     which bodies can have the event at all
# -----------------------------------------------------------------------------
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from skyevents.core.constants import (
    EARTH,
    JUPITER,
    MARS,
    MEAN_JUPITER_SYS_II,
    MEAN_SYNODIC_MONTH,
    MERCURY,
    PLUTO,
    URANUS,
    VENUS,
    EventType,
    body_order,
    mean_conjunction_period,
    wrap_pm180,
)
from skyevents.core.deltat import ut_to_tt
from skyevents.core.eclipses import lunar_eclipse_info, solar_eclipse_info
from skyevents.core.ephemeris import PositionProvider
from skyevents.core.jupiter import JupiterInfo

__all__ = [
    "ZERO",
    "MIN",
    "MAX",
    "REJECT",
    "SearchContext",
    "PeriodicStrategy",
    "PERIODIC_STRATEGIES",
]

ZERO = "zero"
MIN = "min"
MAX = "max"

REJECT = object()

HOUR = 1.0 / 24.0
MINUTE_RES = 1.0 / 1440.0
SECOND_RES = 1.0 / 86400.0


@dataclass
class SearchContext:
    provider: PositionProvider
    jupiter: JupiterInfo = field(default_factory=JupiterInfo)


ValueFn = Callable[[SearchContext, str, float], float]


# ───────────────────────── value functions (time in JD UT) ─────────────────────────

def _opposition(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return wrap_pm180(ctx.provider.solar_elongation_in_longitude(body, ut_to_tt(jd_ut)) + 180.0)


def _conjunction(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return wrap_pm180(ctx.provider.solar_elongation_in_longitude(body, ut_to_tt(jd_ut)))


def _elongation(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return ctx.provider.solar_elongation(body, ut_to_tt(jd_ut))


def _quadrature(ctx: SearchContext, body: str, jd_ut: float) -> float:
    s = math.sin(math.radians(ctx.provider.solar_elongation_in_longitude(body, ut_to_tt(jd_ut))))
    return s * s


def _heliocentric_distance(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return ctx.provider.heliocentric_position(body, ut_to_tt(jd_ut)).radius


def _lunar_eclipse_separation(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return lunar_eclipse_info(ctx.provider, ut_to_tt(jd_ut)).center_separation


def _solar_eclipse_separation(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return solar_eclipse_info(ctx.provider, ut_to_tt(jd_ut)).center_separation


def _grs_offset(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return ctx.jupiter.grs_cm_offset(ut_to_tt(jd_ut))


# ───────────────────────── periods / resolutions ─────────────────────────

def _conjunction_period(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return mean_conjunction_period(body)


def _orbital_period(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return ctx.provider.mean_orbital_period(body, ut_to_tt(jd_ut)) * 1.25


def _synodic_period(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return MEAN_SYNODIC_MONTH * 1.25


def _grs_period(ctx: SearchContext, body: str, jd_ut: float) -> float:
    return MEAN_JUPITER_SYS_II * 1.25


def _body_resolution(body: str, argument: Any) -> float:
    return HOUR if body_order(body) <= body_order(MARS) else 1.0


def _minute_resolution(body: str, argument: Any) -> float:
    return MINUTE_RES


def _eclipse_resolution(body: str, argument: Any) -> float:
    return SECOND_RES if argument is True else MINUTE_RES


def _ten_divisions(body: str) -> int:
    return 10


def _thirty_divisions(body: str) -> int:
    return 30


def _orbit_divisions(body: str) -> int:
    return 20 if body_order(body) >= body_order(URANUS) else 10


# ───────────────────────── filters ─────────────────────────

def _conjunction_kind(inferior_wanted: bool) -> Callable[[SearchContext, str, float], bool]:
    def accept(ctx: SearchContext, body: str, jd_ut: float) -> bool:
        if body not in (MERCURY, VENUS):
            return True
        return ctx.provider.is_inferior(body, ut_to_tt(jd_ut)) == inferior_wanted
    return accept


def _lunar_eclipse_check(ctx: SearchContext, jd_ut: float, resolution: float) -> Any:
    info = lunar_eclipse_info(ctx.provider, ut_to_tt(jd_ut))
    return info if info.in_penumbra else REJECT


def _solar_eclipse_check(ctx: SearchContext, jd_ut: float, resolution: float) -> Any:
    info = solar_eclipse_info(ctx.provider, ut_to_tt(jd_ut))
    if not info.in_penumbra:
        return REJECT
    # reported time gets rounded; locate the fast-moving shadow at that moment
    return solar_eclipse_info(ctx.provider, ut_to_tt(jd_ut + 0.5 * resolution), locate_shadow=True)


# ───────────────────────── strategy table ─────────────────────────

def _any_body(body: str) -> bool:
    return True


def _outer_body(body: str) -> bool:
    return body_order(EARTH) < body_order(body) <= body_order(PLUTO)


def _jupiter_only(body: str) -> bool:
    return body == JUPITER


def _always_minutes(argument: Any) -> bool:
    return True


def _eclipse_minute_rounding(argument: Any) -> bool:
    # only a literal True switches to second resolution
    return argument is not True


@dataclass(frozen=True)
class PeriodicStrategy:
    value: ValueFn
    seek: str
    period: Callable[[SearchContext, str, float], float]
    resolution: Callable[[str, Any], float] = _body_resolution
    divisions: Callable[[str], int] = _ten_divisions
    accept: Optional[Callable[[SearchContext, str, float], bool]] = None
    annotate: Optional[Callable[[SearchContext, float, float], Any]] = None
    minute_rounding: Callable[[Any], bool] = _always_minutes
    applies: Callable[[str], bool] = _any_body


PERIODIC_STRATEGIES: Dict[str, PeriodicStrategy] = {
    EventType.OPPOSITION: PeriodicStrategy(
        _opposition, ZERO, _conjunction_period, resolution=_minute_resolution,
        applies=_outer_body),
    EventType.SUPERIOR_CONJUNCTION: PeriodicStrategy(
        _conjunction, ZERO, _conjunction_period, resolution=_minute_resolution,
        accept=_conjunction_kind(False)),
    EventType.INFERIOR_CONJUNCTION: PeriodicStrategy(
        _conjunction, ZERO, _conjunction_period, resolution=_minute_resolution,
        accept=_conjunction_kind(True)),
    EventType.GREATEST_ELONGATION: PeriodicStrategy(
        _elongation, MAX, _conjunction_period),
    EventType.QUADRATURE: PeriodicStrategy(
        _quadrature, MAX, _conjunction_period, resolution=_minute_resolution,
        applies=_outer_body),
    EventType.PERIHELION: PeriodicStrategy(
        _heliocentric_distance, MIN, _orbital_period, divisions=_orbit_divisions),
    EventType.APHELION: PeriodicStrategy(
        _heliocentric_distance, MAX, _orbital_period, divisions=_orbit_divisions),
    EventType.LUNAR_ECLIPSE: PeriodicStrategy(
        _lunar_eclipse_separation, MIN, _synodic_period, resolution=_eclipse_resolution,
        divisions=_thirty_divisions, annotate=_lunar_eclipse_check,
        minute_rounding=_eclipse_minute_rounding),
    EventType.SOLAR_ECLIPSE: PeriodicStrategy(
        _solar_eclipse_separation, MIN, _synodic_period, resolution=_eclipse_resolution,
        divisions=_thirty_divisions, annotate=_solar_eclipse_check,
        minute_rounding=_eclipse_minute_rounding),
    EventType.GRS_TRANSIT: PeriodicStrategy(
        _grs_offset, ZERO, _grs_period, resolution=_minute_resolution,
        applies=_jupiter_only),
}
