# tests/test_deltat.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from skyevents.core.deltat import (
    decimal_year,
    delta_t,
    polynomial_delta_t,
    tt_to_ut,
    ut_to_tt,
)

JD_2018 = 2458161.5   # 2018-02-12


@pytest.fixture(scope="module", autouse=True)
def no_override():
    with pytest.MonkeyPatch.context() as mp:
        mp.delenv("SKYEVENTS_DELTA_T_OVERRIDE_SECS", raising=False)
        yield


def test_utc_era_uses_leap_second_table():
    info = delta_t(JD_2018)
    assert info.source == "erfa"
    assert info.status == "ok"
    assert abs(info.seconds - 69.184) < 1e-9


def test_polynomial_outside_utc_era():
    info = delta_t(2305447.5)   # 1600
    assert info.source == "polynomial"
    assert abs(info.seconds - 120.0) < 1.0
    assert delta_t(2816787.5).status == "extrapolated"   # ~3000


@pytest.mark.parametrize("year, expected, tol", [
    (1900.0, -2.79, 1e-9),
    (1700.0, 8.83, 1e-9),
    (1000.0, 1574.2, 1e-9),
    (2000.0, 63.86, 1e-9),
    (-1000.0, -20.0 + 32.0 * ((-1000.0 - 1820.0) / 100.0) ** 2, 1e-9),
])
def test_espenak_meeus_anchor_points(year, expected, tol):
    assert abs(polynomial_delta_t(year) - expected) < tol


def test_override(monkeypatch):
    monkeypatch.setenv("SKYEVENTS_DELTA_T_OVERRIDE_SECS", "42.5")
    info = delta_t(JD_2018)
    assert (info.seconds, info.source, info.status) == (42.5, "override", "overridden")


def test_unparseable_override_ignored(monkeypatch):
    monkeypatch.setenv("SKYEVENTS_DELTA_T_OVERRIDE_SECS", "soon")
    assert delta_t(JD_2018).source == "erfa"


def test_decimal_year():
    assert decimal_year(2451544.5) == 2000.0
    assert abs(decimal_year(JD_2018) - 2018.115) < 0.01


@given(st.floats(min_value=1538432.5, max_value=2415020.5, allow_nan=False))
def test_ut_tt_round_trip(jd_ut):
    # years -500..1900, where the model is smooth
    assert abs(tt_to_ut(ut_to_tt(jd_ut)) - jd_ut) < 1e-6


def test_ut_tt_round_trip_in_utc_era():
    assert abs(tt_to_ut(ut_to_tt(JD_2018)) - JD_2018) < 1e-9
