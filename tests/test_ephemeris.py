# tests/test_ephemeris.py
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from skyevents.core.constants import EARTH, JUPITER, MARS, MOON, PLUTO, SUN, VENUS
from skyevents.core.deltat import ut_to_tt
from skyevents.core.ephemeris import (
    ABERRATION,
    SIGNED_HOUR_ANGLE,
    EphemerisConfig,
    EphemerisError,
    ErfaPositionProvider,
)
from skyevents.core.observer import SkyObserver
from skyevents.core.timescales import utc_datetime_to_jd
from skyevents.core.validators import ValidationError

GREENWICH = SkyObserver(0.0, 51.48)


def _tt(*args) -> float:
    return ut_to_tt(utc_datetime_to_jd(datetime(*args, tzinfo=timezone.utc)))


def _ut(*args) -> float:
    return utc_datetime_to_jd(datetime(*args, tzinfo=timezone.utc))


# ─────────────────────────────────────────────────────────────────────────────
# Positions
# ─────────────────────────────────────────────────────────────────────────────

def test_sun_distance_at_perihelion(erfa_provider):
    jd = _tt(2018, 1, 3, 5, 35)
    assert abs(erfa_provider.equatorial_position(SUN, jd).radius - 0.98329) < 2e-4
    assert abs(erfa_provider.heliocentric_position(EARTH, jd).radius - 0.98329) < 2e-4


def test_sun_declination_at_june_solstice(erfa_provider):
    eq = erfa_provider.equatorial_position(SUN, _tt(2018, 6, 21, 10, 7))
    assert abs(eq.dec - 23.436) < 0.01


def test_full_moon_phase_angle(erfa_provider):
    assert abs(erfa_provider.lunar_phase(_tt(2018, 1, 31, 13, 27)) - 180.0) < 0.3


def test_sun_altitude_at_greenwich_noon(erfa_provider):
    pos = erfa_provider.horizontal_position(SUN, _ut(2018, 6, 21, 12, 2), GREENWICH)
    assert abs(pos.altitude - (90.0 - 51.48 + 23.436)) < 0.1
    assert 170.0 < pos.azimuth < 190.0
    ha = erfa_provider.hour_angle(SUN, _ut(2018, 6, 21, 12, 2), GREENWICH, ABERRATION | SIGNED_HOUR_ANGLE)
    assert abs(ha) < 1.0


def test_pluto_from_mean_elements(erfa_provider):
    assert 32.0 < erfa_provider.heliocentric_position(PLUTO, _tt(2018, 1, 1)).radius < 35.0


# ─────────────────────────────────────────────────────────────────────────────
# Derived scalars
# ─────────────────────────────────────────────────────────────────────────────

def test_obliquity_and_sidereal_time_at_j2000(erfa_provider):
    assert abs(erfa_provider.obliquity(2451545.0, nutated=False) - 23.4392794) < 1e-6
    assert abs(erfa_provider.sidereal_time(2451545.0) - 280.46061837) < 1e-3


def test_venus_east_of_the_sun_at_greatest_elongation(erfa_provider):
    jd = _tt(2018, 8, 17)
    assert abs(erfa_provider.solar_elongation_in_longitude(VENUS, jd) - 45.9) < 1.0
    assert abs(erfa_provider.solar_elongation(VENUS, jd) - 45.9) < 1.5


def test_inferior_bodies(erfa_provider):
    assert erfa_provider.is_inferior(VENUS, _tt(2018, 10, 26))
    assert erfa_provider.is_inferior(MARS, _tt(2018, 7, 27))
    assert not erfa_provider.is_inferior(JUPITER, _tt(2018, 5, 9))


def test_angular_diameters(erfa_provider):
    jd = _tt(2018, 1, 31, 13, 27)
    assert 1760.0 < erfa_provider.angular_diameter(MOON, jd) < 2020.0
    assert 1890.0 < erfa_provider.angular_diameter(SUN, jd) < 1960.0
    jd = _tt(2018, 5, 9)
    assert erfa_provider.angular_diameter(JUPITER, jd, polar=True) < erfa_provider.angular_diameter(JUPITER, jd)
    assert erfa_provider.angular_diameter("Ceres", jd) == 0.0


def test_mean_orbital_periods(erfa_provider):
    assert abs(erfa_provider.mean_orbital_period(MARS) - 686.98) < 1.0
    assert erfa_provider.mean_orbital_period(MOON) == 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

def test_unknown_body(erfa_provider):
    with pytest.raises(EphemerisError) as ei:
        erfa_provider.equatorial_position("Vulcan", _tt(2018, 1, 1))
    assert ei.value.stage == "validation"
    assert ei.value.context["body"] == "Vulcan"


def test_julian_date_guard():
    provider = ErfaPositionProvider(cfg=EphemerisConfig(jd_min=2400000.5, jd_max=2500000.5))
    with pytest.raises(EphemerisError):
        provider.equatorial_xyz(SUN, 2300000.5)
    assert provider.equatorial_xyz(EARTH, 2451545.0) == (0.0, 0.0, 0.0)


@pytest.mark.parametrize("lon, lat, elev", [(0.0, 95.0, 0.0), (200.0, 0.0, 0.0), (0.0, 0.0, 1e6)])
def test_observer_validation(lon, lat, elev):
    with pytest.raises(ValidationError):
        SkyObserver(lon, lat, elev)
