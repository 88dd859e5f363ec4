# skyevents/core/jupiter.py
# -----------------------------------------------------------------------------
# Jupiter rotation: System I/II central meridians and the Great Red Spot
#
# • Central-meridian longitudes: low-accuracy method of Meeus, Astronomical
#   Algorithms 2nd ed. ch.43 (light-time and phase corrected).
# • GRS longitude (System II): tabulated observations, local straight-line
#   fit inside the table, linear drift beyond it; fixed −93° without a table.
#
# GRS table text format:
#   line 1   drift before the table, deg/year
#   line 2   drift after the table, deg/year
#   line 3   interpolation span (number of rows in each local fit)
#   rest     YYYY-MM-DD,longitude
# -----------------------------------------------------------------------------
from __future__ import annotations

import bisect
import enum
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from skyevents.core.constants import JD_J2000, wrap_deg, wrap_pm180
from skyevents.core.deltat import tt_to_ut
from skyevents.core.timescales import GREGORIAN

log = logging.getLogger(__name__)

__all__ = ["DEFAULT_GRS_LONGITUDE", "DataQuality", "GrsTable", "JupiterInfo", "central_meridians"]

DEFAULT_GRS_LONGITUDE = -93.0
_DAYS_PER_YEAR = 365.2425


class DataQuality(enum.IntEnum):
    GOOD = 1
    FAIR = 2
    POOR = 3


@dataclass(frozen=True)
class GrsTable:
    pre_drift: float          # deg/day
    post_drift: float         # deg/day
    span: int
    times: Tuple[float, ...]  # JD, ascending
    longitudes: Tuple[float, ...]

    @classmethod
    def parse(cls, text: str) -> "GrsTable":
        lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
        if len(lines) < 4:
            raise ValueError("GRS table needs three header lines and at least one row")
        try:
            pre = float(lines[0]) / _DAYS_PER_YEAR
            post = float(lines[1]) / _DAYS_PER_YEAR
            span = max(2, int(float(lines[2])))
        except ValueError as e:
            raise ValueError(f"bad GRS table header: {e}") from e

        rows: List[Tuple[float, float]] = []
        for ln in lines[3:]:
            date, _, lon = ln.partition(",")
            parts = date.split("-")
            if len(parts) != 3 or not lon:
                log.debug("skipping GRS row %r", ln)
                continue
            y, m, d = (int(p) for p in parts)
            rows.append((GREGORIAN.julian_day(y, m, d), float(lon)))
        if not rows:
            raise ValueError("GRS table has no data rows")

        rows.sort()
        return cls(pre, post, span, tuple(t for t, _ in rows), tuple(v for _, v in rows))

    @property
    def first_time(self) -> float:
        return self.times[0]

    @property
    def last_time(self) -> float:
        return self.times[-1]

    def longitude(self, jd_ut: float) -> float:
        if jd_ut < self.first_time:
            return self.longitudes[0] - (self.first_time - jd_ut) * self.pre_drift
        if jd_ut > self.last_time:
            return self.longitudes[-1] + (jd_ut - self.last_time) * self.post_drift
        if len(self.times) == 1:
            return self.longitudes[0]
        return self._local_fit(jd_ut)

    def _local_fit(self, t: float) -> float:
        # least-squares line through the `span` rows nearest to t
        i = bisect.bisect_left(self.times, t)
        lo = max(0, min(i - self.span // 2, len(self.times) - self.span))
        hi = min(len(self.times), lo + self.span)
        ts = self.times[lo:hi]
        base = self.longitudes[lo]
        vs = [base + wrap_pm180(v - base) for v in self.longitudes[lo:hi]]

        n = len(ts)
        mt = sum(ts) / n
        mv = sum(vs) / n
        var = sum((x - mt) ** 2 for x in ts)
        if var == 0.0:
            return mv
        slope = sum((x - mt) * (v - mv) for x, v in zip(ts, vs)) / var
        return mv + slope * (t - mt)

    def quality(self, jd_ut: float) -> DataQuality:
        if jd_ut < self.first_time - 730.0 or jd_ut > self.last_time + 730.0:
            return DataQuality.POOR
        if jd_ut < self.first_time - 365.0 or jd_ut > self.last_time + 365.0:
            return DataQuality.FAIR
        return DataQuality.GOOD


def _sin(deg: float) -> float:
    return math.sin(math.radians(deg))


def _cos(deg: float) -> float:
    return math.cos(math.radians(deg))


def central_meridians(jd_tt: float) -> Tuple[float, float]:
    """(System I, System II) central-meridian longitudes in degrees."""
    d = jd_tt - JD_J2000

    v = 172.74 + 0.00111588 * d
    m = 357.529 + 0.9856003 * d
    n = 20.020 + 0.0830853 * d + 0.329 * _sin(v)
    j = 66.115 + 0.9025179 * d - 0.329 * _sin(v)
    a = 1.915 * _sin(m) + 0.020 * _sin(2.0 * m)
    b = 5.555 * _sin(n) + 0.168 * _sin(2.0 * n)
    k = j + a - b
    r_earth = 1.00014 - 0.01671 * _cos(m) - 0.00014 * _cos(2.0 * m)
    r_jup = 5.20872 - 0.25208 * _cos(n) - 0.00611 * _cos(2.0 * n)
    delta = math.sqrt(r_jup * r_jup + r_earth * r_earth - 2.0 * r_jup * r_earth * _cos(k))
    psi = math.degrees(math.asin(max(-1.0, min(1.0, r_earth / delta * _sin(k)))))

    w1 = 210.98 + 877.8169088 * (d - delta / 173.0) + psi - b
    w2 = 187.23 + 870.1869088 * (d - delta / 173.0) + psi - b
    phase = 57.3 * _sin(psi / 2.0) ** 2 * math.copysign(1.0, _sin(k))
    return wrap_deg(w1 + phase), wrap_deg(w2 + phase)


class JupiterInfo:
    """Central meridians and GRS position; a fixed longitude overrides the table."""

    def __init__(self, table: Optional[GrsTable] = None, fixed_grs_longitude: Optional[float] = None):
        self.table = table
        self.fixed_grs_longitude = fixed_grs_longitude

    def system_i_longitude(self, jd_tt: float) -> float:
        return central_meridians(jd_tt)[0]

    def system_ii_longitude(self, jd_tt: float) -> float:
        return central_meridians(jd_tt)[1]

    def grs_longitude(self, jd_tt: float) -> float:
        if self.fixed_grs_longitude is not None:
            return self.fixed_grs_longitude
        if self.table is None:
            return DEFAULT_GRS_LONGITUDE
        return self.table.longitude(tt_to_ut(jd_tt))

    def grs_cm_offset(self, jd_tt: float) -> float:
        """System II central meridian minus GRS longitude, in (−180, 180]; 0 at GRS transit."""
        return wrap_pm180(self.system_ii_longitude(jd_tt) - self.grs_longitude(jd_tt))

    def grs_data_quality(self, jd_ut: float) -> DataQuality:
        if self.fixed_grs_longitude is not None:
            return DataQuality.GOOD
        if self.table is None:
            return DataQuality.POOR
        return self.table.quality(jd_ut)
