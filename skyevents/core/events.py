# skyevents/core/events.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional

from skyevents.core.timescales import (
    GREGORIAN,
    CivilCalendar,
    WallTime,
    jd_to_utc_datetime,
    local_wall_time,
    minutes_in_day,
    start_of_day,
    utc_datetime_to_jd,
)

__all__ = ["AstroEvent", "EclipseCircumstances"]


@dataclass
class EclipseCircumstances:
    """Local circumstances of one eclipse; times are JD(UT), durations seconds."""
    max_eclipse: float            # percent, 0..100
    max_time: float
    annular: bool = False
    first_contact: Optional[float] = None
    last_contact: Optional[float] = None
    duration: float = 0.0
    peak_starts: Optional[float] = None
    peak_ends: Optional[float] = None
    peak_duration: float = 0.0
    penumbral_first_contact: Optional[float] = None
    penumbral_last_contact: Optional[float] = None
    penumbral_duration: Optional[float] = None

    @property
    def magnitude(self) -> float:
        return min(max(self.max_eclipse / 100.0, 0.0), 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AstroEvent:
    """
    One occurrence. `jdu` is the exact instant; `ut` is the same instant
    floored to the local minute, which is what gets displayed and compared
    when searches work at minute resolution.
    """
    event_type: str
    text: str
    jdu: float
    ut: float
    wall_time: WallTime
    zone: str = "UTC"
    value: Optional[float] = None
    misc: Any = field(default=None, compare=False)

    @classmethod
    def for_day(
        cls,
        event_type: str,
        text: str,
        year: int,
        month: int,
        day: int,
        hour_offset: float,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        value: Optional[float] = None,
        misc: Any = None,
    ) -> "AstroEvent":
        """Event `hour_offset` hours after local midnight starting (year, month, day)."""
        zone = zone or "UTC"
        start = start_of_day(year, month, day, zone, calendar)
        day_minutes = minutes_in_day(year, month, day, zone, calendar)
        minutes_into_day = min(max(math.floor(hour_offset * 60.0), 0), max(day_minutes - 1, 0))
        ut = start + minutes_into_day / 1440.0
        return cls(
            event_type=event_type,
            text=text,
            jdu=start + hour_offset / 24.0,
            ut=ut,
            wall_time=local_wall_time(ut, zone, calendar),
            zone=zone,
            value=value,
            misc=misc,
        )

    @classmethod
    def from_jdu(
        cls,
        event_type: str,
        text: str,
        jdu: float,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        value: Optional[float] = None,
        misc: Any = None,
    ) -> "AstroEvent":
        zone = zone or "UTC"
        # millisecond resolution, as wall-clock times are kept
        t = utc_datetime_to_jd(jd_to_utc_datetime(jdu))
        y, m, d = local_wall_time(t, zone, calendar).ymd
        start = start_of_day(y, m, d, zone, calendar)
        millis = round((t - start) * 86_400_000.0)
        ev = cls.for_day(event_type, text, y, m, d, millis / 3_600_000.0, zone, calendar, value, misc)
        return replace(ev, jdu=jdu)

    def with_misc(self, misc: Any) -> "AstroEvent":
        return replace(self, misc=misc)

    def __str__(self) -> str:
        out = f"{self.event_type}; {self.text}; {self.wall_time}"
        if self.value is not None:
            out += f"; {self.value}"
        if isinstance(self.misc, str):
            out += f"; {self.misc}"
        return out
