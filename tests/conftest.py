# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the skyevents suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass IANA zones explicitly).
- Provides the shared ERFA provider / finder and a scriptable fake provider,
  so search logic can be tested against closed-form sky motion.
- Adds a 'slow' marker for the real-ephemeris scenario searches.
"""

import math
import os
from typing import Callable, Optional

import pytest
from hypothesis import settings, HealthCheck

from skyevents.core.coords import SphericalPosition
from skyevents.core.ephemeris import DEFAULT_FLAGS, PositionProvider
from skyevents.core.observer import SkyObserver
from skyevents.version import VERSION


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # searches run real ephemerides; no per-example deadline
        max_examples=30,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=80,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"skyevents {VERSION}, Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(scope="session")
def ensure_erfa():
    """Fail early if pyERFA is missing the routines the provider relies on."""
    import erfa
    for name in ("epv00", "plan94", "moon98", "pmat06", "pnm06a", "ab", "dat"):
        assert hasattr(erfa, name), f"ERFA.{name} not available"
    return erfa


@pytest.fixture(scope="session")
def ensure_tzdata():
    from zoneinfo import ZoneInfo
    for name in ("UTC", "America/New_York", "Asia/Tokyo"):
        ZoneInfo(name)


@pytest.fixture(scope="session")
def erfa_provider(ensure_erfa):
    from skyevents.core.ephemeris import ErfaPositionProvider
    return ErfaPositionProvider()


@pytest.fixture(scope="session")
def finder(erfa_provider, ensure_tzdata):
    from skyevents.core.event_finder import EventFinder
    return EventFinder(erfa_provider)


@pytest.fixture(scope="session")
def concord() -> SkyObserver:
    """Concord, New Hampshire."""
    return SkyObserver(-71.48, 42.75)


# ──────────────────────────────────────────────────────────────────────────────
# Fake provider
# ──────────────────────────────────────────────────────────────────────────────

class FakeProvider(PositionProvider):
    """
    Closed-form sky. Each hook is a function of JD (UT for altitude and hour
    angle, TT for the rest); unset hooks fall back to fixed values.
    """

    def __init__(
        self,
        altitude: Optional[Callable[[float], float]] = None,
        hour_angle_fn: Optional[Callable[[float], float]] = None,
        elongation_in_longitude: Optional[Callable[[float], float]] = None,
        elongation: Optional[Callable[[float], float]] = None,
    ):
        self.altitude = altitude or (lambda t: -30.0)
        self.hour_angle_fn = hour_angle_fn
        self.elongation_in_longitude = elongation_in_longitude or (lambda t: 90.0)
        self.elongation = elongation or (lambda t: 90.0)

    def equatorial_xyz(self, body, jd_tt, flags=DEFAULT_FLAGS):
        return 1.0, 0.0, 0.0

    def heliocentric_position(self, body, jd_tt):
        return SphericalPosition(0.0, 0.0, 1.0)

    def horizontal_position(self, body, jd_ut, observer, flags=0):
        return SphericalPosition(180.0, self.altitude(jd_ut), 1.0)

    def hour_angle(self, body, jd_ut, observer, flags=None):
        if self.hour_angle_fn is None:
            return 0.0
        return self.hour_angle_fn(jd_ut)

    def solar_elongation_in_longitude(self, body, jd_tt):
        return self.elongation_in_longitude(jd_tt)

    def solar_elongation(self, body, jd_tt, observer=None, flags=None):
        return self.elongation(jd_tt)


def sinusoid(amplitude: float, origin: float, period: float = 1.0) -> Callable[[float], float]:
    """Altitude that peaks a quarter period after `origin` and sets half a period later."""
    return lambda t: amplitude * math.sin(2.0 * math.pi * (t - origin) / period)


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def equator_observer() -> SkyObserver:
    return SkyObserver(0.0, 0.0)
