# skyevents/core/constants.py
from __future__ import annotations

import math
from typing import Dict, Final, Tuple

__all__ = [
    # bodies
    "SUN", "MOON", "MERCURY", "VENUS", "EARTH", "MARS", "JUPITER", "SATURN",
    "URANUS", "NEPTUNE", "PLUTO", "PLANETS", "MAJOR_BODIES", "body_order",
    "MINOR_BODY_ORDER",
    # events
    "EventType", "EQUINOX_SOLSTICE_EVENTS", "LUNAR_PHASE_EVENTS",
    "ECLIPSE_EVENTS", "LOCAL_ECLIPSE_EVENTS",
    # time
    "MINUTE", "HALF_MINUTE", "HALF_DAY", "JD_J2000", "JD_UNIX_EPOCH",
    "DAYS_PER_CENTURY", "MEAN_SYNODIC_MONTH", "MEAN_JUPITER_SYS_II",
    # physics
    "KM_PER_AU", "LIGHT_DAYS_PER_AU", "C_AU_PER_DAY", "EARTH_RADIUS_KM",
    "EARTH_POLAR_RADIUS_KM", "EARTH_FLATTENING", "SUN_RADIUS_KM",
    "MOON_RADIUS_KM", "SUN_SEMIDIAMETER_AU_ARCSEC", "K_RAD", "K_DEG",
    "OBLIQUITY_J2000_DEG",
    # altitudes
    "REFRACTION_AT_HORIZON", "AVG_SUN_MOON_RADIUS", "CIVIL_TWILIGHT",
    "NAUTICAL_TWILIGHT", "ASTRONOMICAL_TWILIGHT", "MAX_ALT_FOR_TWILIGHT",
    # periods
    "PLANET_MEAN_MOTIONS", "planet_mean_orbital_period",
    "mean_conjunction_period",
    # helpers
    "wrap_deg", "wrap_pm180", "delta_deg", "angular_separation",
]

# ───────────────────────── bodies ─────────────────────────
SUN: Final = "Sun"
MERCURY: Final = "Mercury"
VENUS: Final = "Venus"
EARTH: Final = "Earth"
MARS: Final = "Mars"
JUPITER: Final = "Jupiter"
SATURN: Final = "Saturn"
URANUS: Final = "Uranus"
NEPTUNE: Final = "Neptune"
PLUTO: Final = "Pluto"
MOON: Final = "Moon"

PLANETS: Final[Tuple[str, ...]] = (
    MERCURY, VENUS, EARTH, MARS, JUPITER, SATURN, URANUS, NEPTUNE, PLUTO,
)
MAJOR_BODIES: Final[Tuple[str, ...]] = (SUN,) + PLANETS + (MOON,)

_BODY_ORDER: Dict[str, int] = {name: i for i, name in enumerate(MAJOR_BODIES)}
MINOR_BODY_ORDER: Final = 100


def body_order(body: str) -> int:
    """Sun 0, Mercury 1 … Pluto 9, Moon 10; anything else sorts after the majors."""
    return _BODY_ORDER.get(body, MINOR_BODY_ORDER)


# ───────────────────────── event types ─────────────────────────
class EventType:
    RISE = "rise"
    SET = "set"
    SET_MINUS_1_MIN = "set_minus_1_min"
    TRANSIT = "transit"
    TWILIGHT_BEGINS = "twilight_begins"
    TWILIGHT_ENDS = "twilight_ends"
    VISIBLE_ALL_DAY = "visible_all_day"
    UNSEEN_ALL_DAY = "unseen_all_day"

    SPRING_EQUINOX = "spring_equinox"
    SUMMER_SOLSTICE = "summer_solstice"
    FALL_EQUINOX = "fall_equinox"
    WINTER_SOLSTICE = "winter_solstice"

    NEW_MOON = "new_moon"
    FIRST_QUARTER = "first_quarter"
    FULL_MOON = "full_moon"
    LAST_QUARTER = "last_quarter"

    OPPOSITION = "opposition"
    SUPERIOR_CONJUNCTION = "superior_conjunction"
    INFERIOR_CONJUNCTION = "inferior_conjunction"
    GREATEST_ELONGATION = "greatest_elongation"
    QUADRATURE = "quadrature"
    PERIHELION = "perihelion"
    APHELION = "aphelion"

    LUNAR_ECLIPSE = "lunar_eclipse"
    SOLAR_ECLIPSE = "solar_eclipse"
    LUNAR_ECLIPSE_LOCAL = "lunar_eclipse_local"
    SOLAR_ECLIPSE_LOCAL = "solar_eclipse_local"

    GRS_TRANSIT = "grs_transit"
    MOON_EVENT = "moon_event"


EQUINOX_SOLSTICE_EVENTS: Final[Tuple[str, ...]] = (
    EventType.SPRING_EQUINOX, EventType.SUMMER_SOLSTICE,
    EventType.FALL_EQUINOX, EventType.WINTER_SOLSTICE,
)
LUNAR_PHASE_EVENTS: Final[Tuple[str, ...]] = (
    EventType.NEW_MOON, EventType.FIRST_QUARTER,
    EventType.FULL_MOON, EventType.LAST_QUARTER,
)
ECLIPSE_EVENTS: Final[Tuple[str, ...]] = (EventType.LUNAR_ECLIPSE, EventType.SOLAR_ECLIPSE)
LOCAL_ECLIPSE_EVENTS: Final[Dict[str, str]] = {
    EventType.LUNAR_ECLIPSE_LOCAL: EventType.LUNAR_ECLIPSE,
    EventType.SOLAR_ECLIPSE_LOCAL: EventType.SOLAR_ECLIPSE,
}

# ───────────────────────── time ─────────────────────────
MINUTE: Final = 1.0 / 1440.0
HALF_MINUTE: Final = 1.0 / 2880.0
HALF_DAY: Final = 0.5
JD_J2000: Final = 2451545.0
JD_UNIX_EPOCH: Final = 2440587.5
DAYS_PER_CENTURY: Final = 36525.0
MEAN_SYNODIC_MONTH: Final = 29.530588853
MEAN_JUPITER_SYS_II: Final = 360.0 / 870.1869088  # days per System II rotation

# ───────────────────────── physics ─────────────────────────
KM_PER_AU: Final = 149597870.7
C_AU_PER_DAY: Final = 173.1446326846693
LIGHT_DAYS_PER_AU: Final = 1.0 / C_AU_PER_DAY
EARTH_RADIUS_KM: Final = 6378.14
EARTH_POLAR_RADIUS_KM: Final = 6356.755
EARTH_FLATTENING: Final = 1.0 - EARTH_POLAR_RADIUS_KM / EARTH_RADIUS_KM
SUN_RADIUS_KM: Final = 696000.0
MOON_RADIUS_KM: Final = 1737.4
SUN_SEMIDIAMETER_AU_ARCSEC: Final = 959.63

# Gaussian gravitational constant
K_RAD: Final = 0.01720209895
K_DEG: Final = math.degrees(K_RAD)

OBLIQUITY_J2000_DEG: Final = 84381.406 / 3600.0

# ───────────────────────── altitudes (deg) ─────────────────────────
REFRACTION_AT_HORIZON: Final = 34.0 / 60.0
AVG_SUN_MOON_RADIUS: Final = 16.0 / 60.0
CIVIL_TWILIGHT: Final = -6.0
NAUTICAL_TWILIGHT: Final = -12.0
ASTRONOMICAL_TWILIGHT: Final = -18.0
# Sun target altitudes at or below this are reported as twilight, not rise/set
MAX_ALT_FOR_TWILIGHT: Final = -5.0

# ───────────────────────── mean periods ─────────────────────────
# Rate of mean longitude, degrees per Julian century (J2000 mean elements)
PLANET_MEAN_MOTIONS: Final[Dict[str, float]] = {
    MERCURY: 149474.0722491,
    VENUS: 58519.2130302,
    EARTH: 36000.7698278,
    MARS: 19141.6964471,
    JUPITER: 3036.3027748,
    SATURN: 1223.5110686,
    URANUS: 429.8640561,
    NEPTUNE: 219.8833092,
    PLUTO: 144.96,
}


def planet_mean_orbital_period(body: str) -> float:
    """Days per revolution, 0.0 for anything that is not a planet."""
    rate = PLANET_MEAN_MOTIONS.get(body)
    if not rate:
        return 0.0
    return 100.0 * 365.25 * 360.0 / rate


def mean_conjunction_period(body: str) -> float:
    """Mean days between successive conjunctions with the Sun as seen from Earth."""
    if body == EARTH:
        return 0.0
    p0 = planet_mean_orbital_period(body)
    p1 = planet_mean_orbital_period(EARTH)
    if p0 == 0.0:
        return 0.0
    if p1 < p0:
        p0, p1 = p1, p0

    # Catch-up series, summed far enough to converge for Mars (slowest ratio)
    catch_up = 1.0
    total = 0.0
    for _ in range(25):
        total += catch_up * p0
        catch_up *= p0 / p1
    return total


# ───────────────────────── angle helpers ─────────────────────────
def wrap_deg(x: float) -> float:
    """Normalize to [0, 360)."""
    r = math.fmod(x, 360.0)
    if r < 0.0:
        r += 360.0
    return 0.0 if r == 360.0 else r


def wrap_pm180(x: float) -> float:
    """Normalize to (-180, 180]."""
    r = wrap_deg(x)
    return r - 360.0 if r > 180.0 else r


def delta_deg(a: float, b: float) -> float:
    """Signed shortest difference b - a in (-180, 180]."""
    return wrap_pm180(b - a)


def angular_separation(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in degrees (haversine form, stable near 0° and 180°)."""
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dl = math.radians(lon2 - lon1)
    s = (math.sin((p2 - p1) / 2.0) ** 2
         + math.cos(p1) * math.cos(p2) * math.sin(dl / 2.0) ** 2)
    return math.degrees(2.0 * math.asin(min(1.0, math.sqrt(max(0.0, s)))))
