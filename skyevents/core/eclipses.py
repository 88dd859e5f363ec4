# skyevents/core/eclipses.py
# -----------------------------------------------------------------------------
# Shadow geometry for lunar and solar eclipses
#
# Lunar: Earth's umbra/penumbra cross-sections at the Moon's distance, solved
#        as similar triangles along the Sun-Earth axis (Danjon-style 1.01398 /
#        1.0078 enlargement for the atmosphere).
# Solar: the same construction seen from the Moon: the Moon's shadow cone at
#        the Earth's distance, with a hybrid check for the Earth's curvature
#        and an optional ground point where the Sun-Moon axis meets the
#        (flattened) Earth.
#
# All angular quantities in EclipseInfo are arcseconds.
# -----------------------------------------------------------------------------
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from skyevents.core.constants import (
    EARTH_POLAR_RADIUS_KM,
    EARTH_RADIUS_KM,
    KM_PER_AU,
    MOON,
    MOON_RADIUS_KM,
    SUN,
    SUN_RADIUS_KM,
    wrap_deg,
    wrap_pm180,
)
from skyevents.core.coords import SphericalPosition, vadd, vscale, vsub
from skyevents.core.deltat import tt_to_ut
from skyevents.core.ephemeris import ABERRATION, NUTATION, PositionProvider
from skyevents.core.observer import SkyObserver

__all__ = [
    "EclipseInfo",
    "lunar_eclipse_info",
    "solar_eclipse_info",
    "lunar_eclipse_totality",
    "local_solar_eclipse_totality",
]

_UMBRA_ATMOSPHERE = 1.01398
_PENUMBRA_ATMOSPHERE = 1.0078


@dataclass
class EclipseInfo:
    is_solar: bool
    pos: SphericalPosition          # body the shadow may fall on
    radius: float                   # its angular radius
    shadow_pos: SphericalPosition   # shadow axis direction
    umbra_radius: float
    penumbra_radius: float
    center_separation: float
    penumbral_separation: float     # 0 at penumbral contact, negative while overlapping
    umbral_separation: float
    in_penumbra: bool
    in_umbra: bool
    total: bool
    totality: float
    penumbral_magnitude: float = 0.0
    annular: bool = False
    hybrid: bool = False
    surface_shadow: Optional[SkyObserver] = None


def _arcsec_atan(opp: float, adj: float) -> float:
    return math.degrees(math.atan(opp / adj)) * 3600.0


def lunar_eclipse_info(provider: PositionProvider, jd_tt: float, raw: bool = False) -> EclipseInfo:
    moon = provider.ecliptic_position(MOON, jd_tt, None, ABERRATION | NUTATION)
    sun = provider.ecliptic_position(SUN, jd_tt, None, ABERRATION | NUTATION)

    sun_km = sun.radius * KM_PER_AU
    moon_km = moon.radius * KM_PER_AU

    umbra = EARTH_RADIUS_KM - (SUN_RADIUS_KM - EARTH_RADIUS_KM) / sun_km * moon_km
    penumbra = EARTH_RADIUS_KM + (SUN_RADIUS_KM + EARTH_RADIUS_KM) / sun_km * moon_km

    radius = _arcsec_atan(MOON_RADIUS_KM, moon_km)
    umbra_radius = _arcsec_atan(umbra, moon_km) * _UMBRA_ATMOSPHERE
    penumbra_radius = _arcsec_atan(penumbra, moon_km) * _PENUMBRA_ATMOSPHERE

    shadow = SphericalPosition(wrap_deg(sun.longitude + 180.0), -sun.latitude)
    center = moon.distance_from(shadow) * 3600.0
    pen_sep = center - radius - penumbra_radius
    umb_sep = center - radius - umbra_radius
    in_penumbra = pen_sep <= 0.0
    in_umbra = umb_sep <= 0.0

    totality = -umb_sep / radius / 2.0
    pen_mag = -pen_sep / radius / 2.0
    if not raw:
        totality = min(totality, 1.0) if in_umbra else 0.0
        pen_mag = min(pen_mag, 1.0) if in_penumbra else 0.0

    return EclipseInfo(
        is_solar=False,
        pos=moon,
        radius=radius,
        shadow_pos=shadow,
        umbra_radius=umbra_radius,
        penumbra_radius=penumbra_radius,
        center_separation=center,
        penumbral_separation=pen_sep,
        umbral_separation=umb_sep,
        in_penumbra=in_penumbra,
        in_umbra=in_umbra,
        total=center + radius <= umbra_radius,
        totality=totality,
        penumbral_magnitude=pen_mag,
    )


def _locate_shadow(provider: PositionProvider, jd_tt: float) -> SkyObserver:
    """Ground point where the Sun-Moon axis meets the Earth's surface."""
    flattening = EARTH_RADIUS_KM / EARTH_POLAR_RADIUS_KM
    xs, ys, zs = provider.equatorial_position(SUN, jd_tt, None, ABERRATION).xyz()
    xm, ym, zm = provider.equatorial_position(MOON, jd_tt, None, ABERRATION).xyz()
    sun = (xs, ys, zs * flattening)
    moon = (xm, ym, zm * flattening)
    r = EARTH_RADIUS_KM / KM_PER_AU

    d = vsub(sun, moon)
    a = d[0] ** 2 + d[1] ** 2 + d[2] ** 2
    b = 2.0 * (moon[0] * d[0] + moon[1] * d[1] + moon[2] * d[2])
    c = moon[0] ** 2 + moon[1] ** 2 + moon[2] ** 2 - r * r
    u = (-b + math.sqrt(max(b * b - 4.0 * a * c, 0.0))) / 2.0 / a
    hx, hy, hz = vadd(moon, vscale(d, u))
    center = SphericalPosition.from_xyz((hx, hy, hz / flattening))

    gmst = provider.sidereal_time(tt_to_ut(jd_tt))
    return SkyObserver(wrap_pm180(center.longitude - gmst), center.latitude)


def solar_eclipse_info(provider: PositionProvider, jd_tt: float, locate_shadow: bool = False) -> EclipseInfo:
    moon = provider.ecliptic_position(MOON, jd_tt, None, ABERRATION)
    earth = SphericalPosition(0.0, 0.0, 0.0).translate(moon)
    sun = provider.ecliptic_position(SUN, jd_tt, None, ABERRATION).translate(moon)

    big_b = sun.radius * KM_PER_AU
    a_umbra = SUN_RADIUS_KM - MOON_RADIUS_KM
    b = earth.radius * KM_PER_AU
    umbra = MOON_RADIUS_KM - a_umbra * b / big_b
    annular = umbra < 0.0
    umbra = abs(umbra)

    radius = _arcsec_atan(EARTH_RADIUS_KM, b)
    umbra_radius = _arcsec_atan(umbra, b)
    penumbra = MOON_RADIUS_KM + (SUN_RADIUS_KM + MOON_RADIUS_KM) * b / big_b
    penumbra_radius = _arcsec_atan(penumbra, b)

    shadow = SphericalPosition(wrap_deg(sun.longitude + 180.0), -sun.latitude)
    center = earth.distance_from(shadow) * 3600.0
    pen_sep = center - radius - penumbra_radius
    umb_sep = center - radius - umbra_radius
    in_penumbra = pen_sep <= 0.0
    in_umbra = umb_sep <= 0.0

    info = EclipseInfo(
        is_solar=True,
        pos=earth,
        radius=radius,
        shadow_pos=shadow,
        umbra_radius=umbra_radius,
        penumbra_radius=penumbra_radius,
        center_separation=center,
        penumbral_separation=pen_sep,
        umbral_separation=umb_sep,
        in_penumbra=in_penumbra,
        in_umbra=in_umbra,
        total=in_umbra and not annular,
        totality=min(-umb_sep / radius / 2.0, 1.0) if in_umbra else 0.0,
        annular=annular and in_umbra,
    )

    # The Earth's bulge brings part of the surface closer to the Moon, possibly
    # out of the antumbra and into the umbra
    if info.annular:
        from_center = max(center - umbra_radius, 0.0)
        if from_center < radius:
            bulge = EARTH_RADIUS_KM * math.sin(math.acos(max(-1.0, min(1.0, from_center / radius))))
            if MOON_RADIUS_KM - a_umbra * (b - bulge) / big_b >= 0.0:
                info.annular = False
                info.hybrid = True
                info.total = False

    if locate_shadow:
        info.surface_shadow = _locate_shadow(provider, jd_tt)

    return info


def lunar_eclipse_totality(provider: PositionProvider, jd_tt: float, raw: bool = False) -> Tuple[float, float]:
    """(totality, penumbral magnitude); clamped to [0, 1] unless `raw`."""
    info = lunar_eclipse_info(provider, jd_tt, raw)
    if raw:
        return info.totality, info.penumbral_magnitude
    return min(max(info.totality, 0.0), 1.0), info.penumbral_magnitude


def local_solar_eclipse_totality(provider: PositionProvider, jd_tt: float, observer: SkyObserver,
                                 raw: bool = False) -> Tuple[float, float]:
    """
    (totality, annularity) for one observer from the topocentric Sun-Moon
    disc overlap. Totality reaches 1 when the Moon covers the Sun's disc;
    annularity reaches 1 when a smaller Moon sits wholly inside it.
    """
    separation = provider.solar_elongation(MOON, jd_tt, observer)
    if separation > 1.0 and not raw:
        return 0.0, 0.0

    moon_r = provider.angular_diameter(MOON, jd_tt, observer) / 7200.0
    sun_r = provider.angular_diameter(SUN, jd_tt) / 7200.0
    overlap = sun_r + moon_r - separation
    totality = overlap / sun_r / 2.0
    annularity = overlap / moon_r / 2.0 if moon_r < sun_r else 0.0

    if raw:
        return totality, annularity
    return min(max(totality, 0.0), 1.0), annularity
