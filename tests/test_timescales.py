# tests/test_timescales.py
from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from skyevents.core.timescales import (
    GREGORIAN,
    CivilCalendar,
    build_timescales,
    jd_to_utc_datetime,
    local_wall_time,
    minutes_in_day,
    start_of_day,
    utc_datetime_to_jd,
    zone_offset_seconds,
)

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────
TZS = [
    "UTC",
    "Asia/Kolkata",         # +05:30 no DST
    "Australia/Eucla",      # +08:45 quarter-hour
    "America/New_York",     # DST region
    "Europe/Berlin",        # DST Europe
    "America/St_Johns",     # -03:30
    "Pacific/Kiritimati",   # +14:00 extreme positive
    "Pacific/Pago_Pago",    # -11:00 extreme negative
    "Australia/Lord_Howe",  # +10:30/+11:00 odd DST
]

REFORM = CivilCalendar(gregorian_change=(1582, 10, 15))


def _keys_ok(ts: dict) -> None:
    for k in ["jd_utc", "jd_tt", "jd_ut1", "delta_t", "dat",
              "dut1", "tz_offset_seconds", "timezone", "warnings"]:
        assert k in ts, f"missing key: {k}"

    assert isinstance(ts["jd_utc"], float)
    assert isinstance(ts["jd_tt"], float)
    assert isinstance(ts["jd_ut1"], float)
    assert isinstance(ts["delta_t"], float)
    assert isinstance(ts["dat"], float)
    assert isinstance(ts["tz_offset_seconds"], int)
    assert isinstance(ts["timezone"], str)
    assert isinstance(ts["warnings"], list)
    for w in ts["warnings"]:
        assert isinstance(w, str)


# ─────────────────────────────────────────────────────────────────────────────
# Calendar
# ─────────────────────────────────────────────────────────────────────────────

def test_j2000_julian_day() -> None:
    assert GREGORIAN.julian_day(2000, 1, 1.5) == 2451545.0
    assert GREGORIAN.date_from_jd(2451545.0) == (2000, 1, 1)


def test_reform_month_has_a_gap() -> None:
    days = REFORM.days_of_month(1582, 10)
    assert len(days) == 21
    assert 4 in days and 15 in days and 10 not in days
    assert REFORM.add_days(1582, 10, 4, 1) == (1582, 10, 15)
    assert not REFORM.is_valid_date(1582, 10, 10)
    assert GREGORIAN.is_valid_date(1582, 10, 10)


def test_julian_leap_rule_before_reform() -> None:
    assert REFORM.last_day_of_month(1500, 2) == 29
    assert GREGORIAN.last_day_of_month(1500, 2) == 28
    assert GREGORIAN.last_day_of_month(2000, 2) == 29


@given(st.integers(min_value=1721426, max_value=4000000))
def test_date_round_trip(day_number) -> None:
    jd = day_number + 0.5
    for cal in (GREGORIAN, REFORM):
        assert cal.julian_day(*cal.date_from_jd(jd)) == jd


# ─────────────────────────────────────────────────────────────────────────────
# Zones and local days
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("ymd, zone, minutes", [
    ((2018, 3, 11), "America/New_York", 1380),
    ((2018, 11, 4), "America/New_York", 1500),
    ((2018, 3, 11), "UTC", 1440),
    ((2019, 2, 29), "UTC", 0),
])
def test_minutes_in_day(ymd, zone, minutes) -> None:
    assert minutes_in_day(*ymd, zone) == minutes


def test_start_of_day_follows_zone() -> None:
    assert start_of_day(2018, 3, 11, "UTC") == 2458188.5
    assert abs(start_of_day(2018, 3, 11, "America/New_York") - (2458188.5 + 5.0 / 24.0)) < 1e-9
    assert abs(start_of_day(2018, 3, 12, "America/New_York") - (2458189.5 + 4.0 / 24.0)) < 1e-9


def test_local_wall_time() -> None:
    jd = utc_datetime_to_jd(datetime(2018, 2, 12, 1, 0, tzinfo=timezone.utc))
    wt = local_wall_time(jd, "America/New_York")
    assert wt.ymd == (2018, 2, 11)
    assert (wt.hour, wt.minute) == (20, 0)
    assert wt.utc_offset_seconds == -5 * 3600
    assert str(wt) == "2018-02-11 20:00 -05:00"
    assert zone_offset_seconds("Asia/Kolkata", jd) == 19800


def test_datetime_round_trip_to_the_millisecond() -> None:
    dt = datetime(2021, 7, 4, 12, 34, 56, 789000, tzinfo=timezone.utc)
    assert jd_to_utc_datetime(utc_datetime_to_jd(dt)) == dt


# ─────────────────────────────────────────────────────────────────────────────
# build_timescales
# ─────────────────────────────────────────────────────────────────────────────

def test_schema_and_types() -> None:
    ts = build_timescales("2020-06-01", "00:00:00", "UTC", 0.1)
    _keys_ok(ts.to_dict())


def test_dut1_policy_accept_bounds() -> None:
    build_timescales("2024-01-01", "12:00:00", "UTC", -0.9)
    build_timescales("2024-01-01", "12:00:00", "UTC", 0.9)


def test_dut1_policy_reject_out_of_bounds() -> None:
    with pytest.raises(ValueError):
        build_timescales("2024-01-01", "12:00:00", "UTC", -0.9001)
    with pytest.raises(ValueError):
        build_timescales("2024-01-01", "12:00:00", "UTC", 0.9001)


@pytest.mark.parametrize("date_str, time_str", [
    ("2019-02-29", "00:00"),
    ("2024/01/01", "00:00"),
    ("2024-01-01", "24:00"),
    ("2024-01-01", "noon"),
])
def test_bad_inputs_rejected(date_str, time_str) -> None:
    with pytest.raises(ValueError):
        build_timescales(date_str, time_str, "UTC")


def test_unknown_zone_rejected() -> None:
    with pytest.raises(ValueError):
        build_timescales("2024-01-01", "00:00", "Nowhere/Special")


def test_delta_t_monotonic_non_decreasing_daily() -> None:
    d0 = date(2020, 6, 1)
    d1 = d0 + timedelta(days=1)
    ts0 = build_timescales(d0.isoformat(), "00:00:00", "UTC", 0.0)
    ts1 = build_timescales(d1.isoformat(), "00:00:00", "UTC", 0.0)
    assert ts1.delta_t + 1e-6 >= ts0.delta_t


def test_erfa_chain_in_utc_era() -> None:
    ts = build_timescales("2018-02-12", "01:00", "UTC")
    assert ts.dat == 37.0
    assert abs(ts.delta_t - 69.184) < 1e-3
    assert "delta_t_model" not in ts.warnings


def test_model_outside_utc_era() -> None:
    ts = build_timescales("1000-01-01", "12:00", "UTC")
    assert ts.dat == 0.0
    assert "delta_t_model" in ts.warnings
    assert ts.delta_t > 1000.0


def test_dst_ambiguity_prefers_earlier_instant() -> None:
    ts = build_timescales("2020-11-01", "01:30:00", "America/New_York", 0.0)
    assert "dst_ambiguous" in ts.warnings
    assert ts.tz_offset_seconds == -4 * 3600


def test_dst_gap_uses_pre_transition_offset() -> None:
    ts = build_timescales("2018-03-11", "02:30", "America/New_York", 0.0)
    assert "dst_nonexistent" in ts.warnings
    assert jd_to_utc_datetime(ts.jd_utc) == datetime(2018, 3, 11, 7, 30, tzinfo=timezone.utc)


def test_reform_calendar_dates() -> None:
    ts = build_timescales("1582-10-04", "00:00", "UTC", calendar=REFORM)
    assert abs(build_timescales("1582-10-15", "00:00", "UTC", calendar=REFORM).jd_utc - ts.jd_utc - 1.0) < 1e-9
    with pytest.raises(ValueError):
        build_timescales("1582-10-10", "00:00", "UTC", calendar=REFORM)


def test_repeatability_same_inputs() -> None:
    a = build_timescales("1999-12-31", "23:59:59.123456", "Asia/Kolkata", 0.05)
    b = build_timescales("1999-12-31", "23:59:59.123456", "Asia/Kolkata", 0.05)
    assert a == b


# ─────────────────────────────────────────────────────────────────────────────
# Property / fuzz test (Hypothesis)
# ─────────────────────────────────────────────────────────────────────────────

def _time_str(h: int, m: int, s: float) -> str:
    if s >= 60.0:
        s = math.nextafter(60.0, 0.0)
    return f"{h:02d}:{m:02d}:{s:09.6f}"


@given(
    y=st.integers(min_value=1960, max_value=2100),
    m=st.integers(min_value=1, max_value=12),
    d=st.integers(min_value=1, max_value=28),
    hh=st.integers(min_value=0, max_value=23),
    mm=st.integers(min_value=0, max_value=59),
    ss=st.floats(min_value=0.0, max_value=59.999999, allow_nan=False, allow_infinity=False),
    tz=st.sampled_from(TZS),
    dut1=st.floats(min_value=-0.9, max_value=0.9, allow_nan=False, allow_infinity=False),
)
def test_ut1_minus_utc_matches_dut1(y, m, d, hh, mm, ss, tz, dut1) -> None:
    ts = build_timescales(f"{y:04d}-{m:02d}-{d:02d}", _time_str(hh, mm, ss), tz, dut1)
    _keys_ok(ts.to_dict())
    ut1_minus_utc_sec = (ts.jd_ut1 - ts.jd_utc) * 86400.0
    assert abs(ut1_minus_utc_sec - dut1) < 1e-4
