# skyevents/core/observer.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Tuple

import erfa

from skyevents.core.constants import EARTH_POLAR_RADIUS_KM, EARTH_RADIUS_KM, KM_PER_AU, wrap_deg, wrap_pm180
from skyevents.core.coords import SphericalPosition, Vec3, vsub
from skyevents.core.deltat import ut_to_tt
from skyevents.core.validators import parse_elevation, parse_latlon

__all__ = ["SkyObserver", "greenwich_sidereal_time", "saemundsson_refraction"]


def _split(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd - 0.5) + 0.5
    return d1, jd - d1


def greenwich_sidereal_time(jd_ut: float, apparent: bool = False) -> float:
    """GMST (IAU 2006) or GAST (IAU 2006/2000A) in degrees [0, 360)."""
    u1, u2 = _split(jd_ut)
    t1, t2 = _split(ut_to_tt(jd_ut))
    theta = erfa.gst06a(u1, u2, t1, t2) if apparent else erfa.gmst06(u1, u2, t1, t2)
    return wrap_deg(math.degrees(float(theta)))


def saemundsson_refraction(h_deg: float, pressure_hPa: float = 1010.0, temperature_C: float = 10.0) -> float:
    """Saemundsson (1986) refraction (deg) for a true altitude, clamped near the horizon."""
    h = max(-1.0, min(89.9, float(h_deg)))
    arg = math.radians(h + 10.3 / (h + 5.11))
    r_arcmin = 1.02 / max(1e-6, math.tan(arg))
    scale = (pressure_hPa / 1010.0) * (283.0 / (273.0 + float(temperature_C)))
    return min((r_arcmin * scale) / 60.0, 1.0)


@dataclass(frozen=True)
class SkyObserver:
    """Observer on the reference ellipsoid; longitude positive east."""
    longitude: float
    latitude: float
    elevation_m: float = 0.0
    rho_sin_phi: float = field(init=False, repr=False)
    rho_cos_phi: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        lat, lon = parse_latlon(self.latitude, self.longitude)
        elev = parse_elevation(self.elevation_m)
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)
        object.__setattr__(self, "elevation_m", elev)

        ratio = EARTH_POLAR_RADIUS_KM / EARTH_RADIUS_KM
        phi = math.radians(lat)
        u = math.atan(ratio * math.tan(phi))
        h = elev / (EARTH_RADIUS_KM * 1000.0)
        object.__setattr__(self, "rho_sin_phi", ratio * math.sin(u) + h * math.sin(phi))
        object.__setattr__(self, "rho_cos_phi", math.cos(u) + h * math.cos(phi))

    def local_sidereal_time(self, jd_ut: float, apparent: bool = False) -> float:
        return wrap_deg(greenwich_sidereal_time(jd_ut, apparent) + self.longitude)

    def geocentric_xyz(self, jd_ut: float, apparent: bool = False) -> Vec3:
        """Observer position from Earth's centre, AU, equator of date."""
        theta = math.radians(self.local_sidereal_time(jd_ut, apparent))
        k = EARTH_RADIUS_KM / KM_PER_AU
        return (k * self.rho_cos_phi * math.cos(theta),
                k * self.rho_cos_phi * math.sin(theta),
                k * self.rho_sin_phi)

    def topocentric(self, xyz_of_date: Vec3, jd_ut: float, apparent: bool = False) -> Vec3:
        return vsub(xyz_of_date, self.geocentric_xyz(jd_ut, apparent))

    def hour_angle(self, ra: float, jd_ut: float, signed: bool = False, apparent: bool = False) -> float:
        ha = self.local_sidereal_time(jd_ut, apparent) - ra
        return wrap_pm180(ha) if signed else wrap_deg(ha)

    def horizontal(self, eq: SphericalPosition, jd_ut: float, refraction: bool = False,
                   apparent: bool = False) -> SphericalPosition:
        """Equatorial of date → (azimuth N→E, altitude, distance)."""
        H = math.radians(self.hour_angle(eq.ra, jd_ut, signed=True, apparent=apparent))
        phi = math.radians(self.latitude)
        sd = math.sin(math.radians(eq.dec))
        cd = math.cos(math.radians(eq.dec))
        sh = math.sin(phi) * sd + math.cos(phi) * cd * math.cos(H)
        alt = math.degrees(math.asin(max(-1.0, min(1.0, sh))))
        az = wrap_deg(math.degrees(math.atan2(
            -cd * math.sin(H),
            sd * math.cos(phi) - cd * math.cos(H) * math.sin(phi),
        )))
        if refraction:
            alt += saemundsson_refraction(alt)
        return SphericalPosition(az, alt, eq.radius)
