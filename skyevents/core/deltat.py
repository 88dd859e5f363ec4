# skyevents/core/deltat.py
from __future__ import annotations

import math
import os
import warnings
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

import erfa  # PyERFA: dat() for TAI-UTC, jd2cal() for calendar split

TT_MINUS_TAI = 32.184

# Years in which TT-UT is taken as (TAI-UTC) + 32.184 s, i.e. UT1 ~ UTC.
# Outside this window the Espenak-Meeus polynomials are used.
UTC_ERA_START = float(os.getenv("SKYEVENTS_UTC_ERA_START", "1961.0"))
UTC_ERA_END = float(os.getenv("SKYEVENTS_UTC_ERA_END", "2030.0"))


@dataclass(frozen=True)
class DeltaTInfo:
    seconds: float   # TT - UT
    source: str      # "erfa", "polynomial", "override"
    status: str      # "ok", "extrapolated", "overridden"


def _override_seconds() -> Optional[float]:
    raw = os.getenv("SKYEVENTS_DELTA_T_OVERRIDE_SECS", "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def decimal_year(jd: float) -> float:
    return 2000.0 + (jd - 2451544.5) / 365.2425


# ───────────────────────── Espenak-Meeus polynomials ─────────────────────────
def _poly(coeffs: Tuple[float, ...], t: float) -> float:
    acc = 0.0
    for c in reversed(coeffs):
        acc = acc * t + c
    return acc


# (upper bound year, origin year, scale, coefficients)
_SEGMENTS: List[Tuple[float, float, float, Tuple[float, ...]]] = [
    (500.0, 0.0, 100.0, (10583.6, -1014.41, 33.78311, -5.952053, -0.1798452, 0.022174192, 0.0090316521)),
    (1600.0, 1000.0, 100.0, (1574.2, -556.01, 71.23472, 0.319781, -0.8503463, -0.005050998, 0.0083572073)),
    (1700.0, 1600.0, 1.0, (120.0, -0.9808, -0.01532, 1.0 / 7129.0)),
    (1800.0, 1700.0, 1.0, (8.83, 0.1603, -0.0059285, 0.00013336, -1.0 / 1174000.0)),
    (1860.0, 1800.0, 1.0, (13.72, -0.332447, 0.0068612, 0.0041116, -0.00037436, 0.0000121272,
                           -0.0000001699, 0.000000000875)),
    (1900.0, 1860.0, 1.0, (7.62, 0.5737, -0.251754, 0.01680668, -0.0004473624, 1.0 / 233174.0)),
    (1920.0, 1900.0, 1.0, (-2.79, 1.494119, -0.0598939, 0.0061966, -0.000197)),
    (1941.0, 1920.0, 1.0, (21.20, 0.84493, -0.076100, 0.0020936)),
    (1961.0, 1950.0, 1.0, (29.07, 0.407, -1.0 / 233.0, 1.0 / 2547.0)),
    (1986.0, 1975.0, 1.0, (45.45, 1.067, -1.0 / 260.0, -1.0 / 718.0)),
    (2005.0, 2000.0, 1.0, (63.86, 0.3345, -0.060374, 0.0017275, 0.000651814, 0.00002373599)),
    (2050.0, 2000.0, 1.0, (62.92, 0.32217, 0.005589)),
]


def _long_term(y: float) -> float:
    u = (y - 1820.0) / 100.0
    return -20.0 + 32.0 * u * u


def polynomial_delta_t(year: float) -> float:
    """ΔT in seconds from the Espenak-Meeus fits for a decimal year."""
    if year < -500.0:
        return _long_term(year)
    for upper, origin, scale, coeffs in _SEGMENTS:
        if year < upper:
            return _poly(coeffs, (year - origin) / scale)
    if year < 2150.0:
        return _long_term(year) - 0.5628 * (2150.0 - year)
    return _long_term(year)


# ───────────────────────── ERFA era ─────────────────────────
@lru_cache(maxsize=4096)
def _erfa_delta_t_for_day(day_number: int) -> float:
    with warnings.catch_warnings():
        # dat() flags years past its table as "dubious"; the last step still applies
        warnings.simplefilter("ignore", erfa.ErfaWarning)
        iy, im, iday, fd = erfa.jd2cal(float(day_number) + 0.5, 0.0)
        dat = erfa.dat(int(iy), int(im), int(iday), float(fd))
    return float(dat) + TT_MINUS_TAI


def delta_t(jd_ut: float) -> DeltaTInfo:
    """
    Resolve ΔT = TT - UT for a Julian Day (UT):
      1) SKYEVENTS_DELTA_T_OVERRIDE_SECS → source="override"
      2) ERFA dat() + 32.184 s inside the UTC era → source="erfa"
      3) Espenak-Meeus polynomials elsewhere → source="polynomial"
    """
    ov = _override_seconds()
    if ov is not None:
        return DeltaTInfo(seconds=ov, source="override", status="overridden")

    year = decimal_year(jd_ut)
    if UTC_ERA_START <= year < UTC_ERA_END:
        seconds = _erfa_delta_t_for_day(int(math.floor(jd_ut - 0.5)))
        return DeltaTInfo(seconds=seconds, source="erfa", status="ok")

    status = "extrapolated" if year >= UTC_ERA_END or year < -500.0 else "ok"
    return DeltaTInfo(seconds=polynomial_delta_t(year), source="polynomial", status=status)


def delta_t_seconds(jd_ut: float) -> float:
    return delta_t(jd_ut).seconds


def ut_to_tt(jd_ut: float) -> float:
    return jd_ut + delta_t_seconds(jd_ut) / 86400.0


def tt_to_ut(jd_tt: float) -> float:
    # ΔT changes by well under a second per day, so one refinement pass suffices
    guess = jd_tt - delta_t_seconds(jd_tt) / 86400.0
    return jd_tt - delta_t_seconds(guess) / 86400.0


__all__ = [
    "DeltaTInfo",
    "delta_t",
    "delta_t_seconds",
    "polynomial_delta_t",
    "decimal_year",
    "ut_to_tt",
    "tt_to_ut",
]
