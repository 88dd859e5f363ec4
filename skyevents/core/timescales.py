# skyevents/core/timescales.py
# -----------------------------------------------------------------------------
# Civil time ↔ Julian Day for the event engine
#
# Public API:
#   CivilCalendar(gregorian_change=None)
#   zone_offset_seconds(zone, jd_ut) -> int
#   start_of_day(y, m, d, zone, calendar) -> JD(UT) of local midnight
#   minutes_in_day(y, m, d, zone, calendar) -> int (0 for non-existent days)
#   local_wall_time(jd_ut, zone, calendar) -> WallTime
#   build_timescales(date_str, time_str, tz_name, dut1_seconds, calendar) -> TimeScales
#
# Notes:
#   • All search math runs on JD(UT). Zone offsets are looked up by absolute
#     instant, so the calendar only decides how days are named.
#   • UTC era instants use the ERFA chain UTC → TAI → TT (utctai, taitt);
#     other epochs fall back to the ΔT model in deltat.py.
# -----------------------------------------------------------------------------
from __future__ import annotations

import math
import re
import warnings
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import erfa  # pyERFA

from skyevents.core.constants import JD_UNIX_EPOCH
from skyevents.core.deltat import UTC_ERA_END, UTC_ERA_START, decimal_year, delta_t_seconds

__all__ = [
    "CivilCalendar",
    "GREGORIAN",
    "WallTime",
    "TimeScales",
    "get_zone",
    "zone_offset_seconds",
    "jd_to_utc_datetime",
    "utc_datetime_to_jd",
    "start_of_day",
    "minutes_in_day",
    "local_wall_time",
    "build_timescales",
]

# ───────────────────────────── Calendar ─────────────────────────────

class CivilCalendar:
    """
    Day naming for Julian Day numbers.

    Proleptic Gregorian unless `gregorian_change` (first Gregorian date, e.g.
    (1582, 10, 15)) is given, in which case earlier dates are Julian and the
    dates skipped by the reform do not exist.
    """

    def __init__(self, gregorian_change: Optional[Tuple[int, int, int]] = None):
        self.gregorian_change = gregorian_change
        if gregorian_change is None:
            self._change_jd = -math.inf
        else:
            self._change_jd = self._jd(*gregorian_change, gregorian=True)

    def __repr__(self) -> str:
        return f"CivilCalendar(gregorian_change={self.gregorian_change!r})"

    @staticmethod
    def _jd(y: int, m: int, d: float, gregorian: bool) -> float:
        if m <= 2:
            y -= 1
            m += 12
        b = 0
        if gregorian:
            a = math.floor(y / 100)
            b = 2 - a + math.floor(a / 4)
        return math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1)) + d + b - 1524.5

    def julian_day(self, y: int, m: int, d: float) -> float:
        """JD at 0h of (y, m, d); `d` may carry a day fraction."""
        gregorian = (self.gregorian_change is None or (y, m, math.floor(d)) >= self.gregorian_change)
        return self._jd(y, m, d, gregorian)

    def date_from_jd(self, jd: float) -> Tuple[int, int, int]:
        """Calendar date of the day containing `jd`."""
        z = math.floor(jd + 0.5)
        if z < self._change_jd + 0.5:
            a = z
        else:
            alpha = math.floor((z - 1867216.25) / 36524.25)
            a = z + 1 + alpha - math.floor(alpha / 4)
        b = a + 1524
        c = math.floor((b - 122.1) / 365.25)
        dd = math.floor(365.25 * c)
        e = math.floor((b - dd) / 30.6001)
        day = b - dd - math.floor(30.6001 * e)
        month = e - 1 if e < 14 else e - 13
        year = c - 4716 if month > 2 else c - 4715
        return int(year), int(month), int(day)

    def is_valid_date(self, y: int, m: int, d: int) -> bool:
        if not (1 <= m <= 12 and 1 <= d <= 31):
            return False
        return self.date_from_jd(self.julian_day(y, m, d)) == (y, m, d)

    def add_days(self, y: int, m: int, d: int, days: int) -> Tuple[int, int, int]:
        return self.date_from_jd(self.julian_day(y, m, d) + days)

    def last_day_of_month(self, y: int, m: int) -> int:
        ny, nm = (y + 1, 1) if m == 12 else (y, m + 1)
        return self.date_from_jd(self.julian_day(ny, nm, 1) - 1)[2]

    def days_of_month(self, y: int, m: int) -> List[int]:
        """Existing day numbers of a month (reform months have a gap)."""
        return [d for d in range(1, self.last_day_of_month(y, m) + 1) if self.is_valid_date(y, m, d)]


GREGORIAN = CivilCalendar()

# ───────────────────────────── Zones ─────────────────────────────

_UTC = timezone.utc
_DT_MIN = datetime(1, 1, 2, tzinfo=_UTC)
_DT_MAX = datetime(9999, 12, 30, tzinfo=_UTC)


@lru_cache(maxsize=128)
def get_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown IANA time zone '{name}'") from e


def jd_to_utc_datetime(jd_ut: float) -> datetime:
    """Aware UTC datetime, millisecond-rounded and clamped to datetime's range."""
    millis = round((jd_ut - JD_UNIX_EPOCH) * 86_400_000.0)
    try:
        dt = datetime(1970, 1, 1, tzinfo=_UTC) + timedelta(milliseconds=millis)
    except OverflowError:
        return _DT_MIN if millis < 0 else _DT_MAX
    return min(max(dt, _DT_MIN), _DT_MAX)


def utc_datetime_to_jd(dt: datetime) -> float:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_UTC)
    delta = dt - datetime(1970, 1, 1, tzinfo=_UTC)
    return JD_UNIX_EPOCH + delta / timedelta(days=1)


def zone_offset_seconds(zone: Optional[str], jd_ut: float) -> int:
    z = get_zone(zone)
    off = jd_to_utc_datetime(jd_ut).astimezone(z).utcoffset()
    return int(off.total_seconds()) if off is not None else 0


def _local_jd_to_utc(zone: Optional[str], jd_local: float) -> Tuple[float, int, List[str]]:
    """
    Resolve a local (wall-clock) JD to JD(UT).
    Prefers the earlier instant when the wall time is repeated, and the
    pre-transition offset when it falls into a gap.
    """
    nearby = {
        zone_offset_seconds(zone, jd_local - 1.0),
        zone_offset_seconds(zone, jd_local),
        zone_offset_seconds(zone, jd_local + 1.0),
    }
    consistent = sorted(
        (off for off in nearby if zone_offset_seconds(zone, jd_local - off / 86400.0) == off),
        reverse=True,
    )
    warns: List[str] = []
    if not consistent:
        off = zone_offset_seconds(zone, jd_local - 1.0)
        warns.append("dst_nonexistent")
    else:
        off = consistent[0]
        if len(consistent) > 1:
            warns.append("dst_ambiguous")
    return jd_local - off / 86400.0, off, warns


def start_of_day(y: int, m: int, d: int, zone: Optional[str] = None,
                 calendar: CivilCalendar = GREGORIAN) -> float:
    """JD(UT) of local midnight starting (y, m, d)."""
    jd, _off, _w = _local_jd_to_utc(zone, calendar.julian_day(y, m, d))
    return jd


def minutes_in_day(y: int, m: int, d: int, zone: Optional[str] = None,
                   calendar: CivilCalendar = GREGORIAN) -> int:
    if not calendar.is_valid_date(y, m, d):
        return 0
    ny, nm, nd = calendar.add_days(y, m, d, 1)
    start = start_of_day(y, m, d, zone, calendar)
    end = start_of_day(ny, nm, nd, zone, calendar)
    return int(round((end - start) * 1440.0))


@dataclass(frozen=True)
class WallTime:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: float
    utc_offset_seconds: int

    @property
    def ymd(self) -> Tuple[int, int, int]:
        return self.year, self.month, self.day

    def __str__(self) -> str:
        sign = "+" if self.utc_offset_seconds >= 0 else "-"
        off = abs(self.utc_offset_seconds) // 60
        return (f"{self.year:04d}-{self.month:02d}-{self.day:02d} "
                f"{self.hour:02d}:{self.minute:02d} {sign}{off // 60:02d}:{off % 60:02d}")


def local_wall_time(jd_ut: float, zone: Optional[str] = None,
                    calendar: CivilCalendar = GREGORIAN) -> WallTime:
    off = zone_offset_seconds(zone, jd_ut)
    jd_local = jd_ut + off / 86400.0
    midnight = math.floor(jd_local + 0.5) - 0.5
    millis = round((jd_local - midnight) * 86_400_000.0)
    if millis >= 86_400_000:
        midnight += 1.0
        millis -= 86_400_000
    y, m, d = calendar.date_from_jd(midnight)
    minutes, ms = divmod(millis, 60_000)
    return WallTime(y, m, d, int(minutes // 60), int(minutes % 60), ms / 1000.0, off)


# ───────────────────────────── TimeScales ─────────────────────────────

@dataclass(frozen=True)
class TimeScales:
    jd_utc: float
    jd_tt: float
    jd_ut1: float
    delta_t: float         # TT − UT1 [s]
    dat: float             # TAI − UTC [s], 0.0 outside the UTC era
    dut1: float            # UT1 − UTC [s]
    tz_offset_seconds: int
    timezone: str
    warnings: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_DATE_RE = re.compile(r"^\s*(-?\d{1,5})-(\d{1,2})-(\d{1,2})\s*$")
_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}(?:\.\d+)?))?\s*$")
_DUT1_LIMIT = 0.9 + 1e-9


def _parse_date(date_str: str) -> Tuple[int, int, int]:
    m = _DATE_RE.match(date_str or "")
    if not m:
        raise ValueError(f"Invalid date_str '{date_str}': expected YYYY-MM-DD")
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def _parse_time(time_str: str) -> float:
    """Seconds into the day from HH:MM[:SS[.frac]]."""
    m = _TIME_RE.match(time_str or "")
    if not m:
        raise ValueError(f"Invalid time_str '{time_str}': expected HH:MM[:SS[.frac]]")
    hh = int(m.group("h")); mm = int(m.group("m")); ss = float(m.group("s") or 0.0)
    if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0.0 <= ss < 61.0):
        raise ValueError(f"Invalid time fields: hh={hh}, mm={mm}, ss={ss}")
    return hh * 3600.0 + mm * 60.0 + ss


def _split_jd(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd - 0.5) + 0.5
    return d1, jd - d1


def build_timescales(
    date_str: str,
    time_str: str,
    tz_name: str = "UTC",
    dut1_seconds: float = 0.0,
    calendar: CivilCalendar = GREGORIAN,
) -> TimeScales:
    """
    Resolve a local civil instant to the Julian Day family used by the engine.

    jd_utc is the value searches take as their reference time.
    """
    if not math.isfinite(dut1_seconds) or abs(dut1_seconds) > _DUT1_LIMIT:
        raise ValueError(f"dut1_seconds must be within ±0.9 s, got {dut1_seconds}")

    y, m, d = _parse_date(date_str)
    if not calendar.is_valid_date(y, m, d):
        raise ValueError(f"Date {date_str} does not exist in {calendar!r}")
    secs = _parse_time(time_str)
    get_zone(tz_name)

    jd_local = calendar.julian_day(y, m, d) + secs / 86400.0
    jd_utc, offset, warns = _local_jd_to_utc(tz_name, jd_local)
    jd_ut1 = jd_utc + dut1_seconds / 86400.0

    if UTC_ERA_START <= decimal_year(jd_utc) < UTC_ERA_END:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", erfa.ErfaWarning)
            u1, u2 = _split_jd(jd_utc)
            tai1, tai2 = erfa.utctai(u1, u2)
            tt1, tt2 = erfa.taitt(tai1, tai2)
            iy, im, iday, fd = erfa.jd2cal(u1, u2)
            dat = float(erfa.dat(int(iy), int(im), int(iday), float(fd)))
        jd_tt = float(tt1) + float(tt2)
    else:
        dat = 0.0
        jd_tt = jd_ut1 + delta_t_seconds(jd_ut1) / 86400.0
        warns.append("delta_t_model")

    return TimeScales(
        jd_utc=jd_utc,
        jd_tt=jd_tt,
        jd_ut1=jd_ut1,
        delta_t=(jd_tt - jd_ut1) * 86400.0,
        dat=dat,
        dut1=float(dut1_seconds),
        tz_offset_seconds=int(offset),
        timezone=tz_name,
        warnings=warns,
    )
