# skyevents/core/event_finder.py
# -----------------------------------------------------------------------------
# Next/previous occurrence search
#
# Search flow for one request:
#   • bias the reference time by ½ minute toward the search direction
#   • per try, produce candidate events for one unit of search:
#       day events     one local calendar day (rise/set/transit/twilight,
#                      lunar phases)
#       equinoxes      one calendar year (at most one extra try)
#       periodic       one mean cycle of the event's value function, sampled,
#                      bracketed, refined and swept (see search_values.py)
#       moon events    one call to the minute-span detector
#   • accept the first candidate, in search order, of the requested type whose
#     offset from the reference exceeds the minimum gap; otherwise advance
#   • LOCAL eclipses: find the global eclipse, then refine for the observer;
#     a rejected candidate restarts the search two days past that eclipse
#
# Not found is None, never an exception.
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
import logging
import math
import numbers
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from skyevents.core.constants import (
    AVG_SUN_MOON_RADIUS,
    EQUINOX_SOLSTICE_EVENTS,
    HALF_MINUTE,
    LOCAL_ECLIPSE_EVENTS,
    LUNAR_PHASE_EVENTS,
    MAX_ALT_FOR_TWILIGHT,
    MINUTE,
    MOON,
    NAUTICAL_TWILIGHT,
    REFRACTION_AT_HORIZON,
    SUN,
    EventType,
    wrap_pm180,
)
from skyevents.core.deltat import tt_to_ut, ut_to_tt
from skyevents.core.eclipse_circumstances import EclipseCircumstanceResolver
from skyevents.core.ephemeris import (
    ABERRATION,
    SIGNED_HOUR_ANGLE,
    TOPOCENTRIC,
    ErfaPositionProvider,
    PositionProvider,
)
from skyevents.core.events import AstroEvent
from skyevents.core.jupiter import JupiterInfo
from skyevents.core.observer import SkyObserver
from skyevents.core.search_values import (
    MAX,
    MIN,
    PERIODIC_STRATEGIES,
    REJECT,
    ZERO,
    PeriodicStrategy,
    SearchContext,
)
from skyevents.core.solvers import find_extremum, find_root
from skyevents.core.timescales import (
    GREGORIAN,
    CivilCalendar,
    local_wall_time,
    minutes_in_day,
    start_of_day,
)
from skyevents.core.validators import (
    InvalidConfigurationError,
    ValidationError,
    validate_max_tries,
    validate_zone,
)
from skyevents.utils.config import CFG, SearchSettings

log = logging.getLogger(__name__)

__all__ = [
    "EventFinder",
    "MinuteSpanResult",
    "MinuteSpanDetector",
]

_PHASE_TEXT = {
    EventType.NEW_MOON: "new moon",
    EventType.FIRST_QUARTER: "1st quarter",
    EventType.FULL_MOON: "full moon",
    EventType.LAST_QUARTER: "third quarter",
}
_SEASON_TEXT = {
    EventType.SPRING_EQUINOX: "vernal equinox",
    EventType.SUMMER_SOLSTICE: "summer solstice",
    EventType.FALL_EQUINOX: "autumnal equinox",
    EventType.WINTER_SOLSTICE: "winter solstice",
}
_PERIODIC_TEXT = {
    EventType.OPPOSITION: "opposition",
    EventType.SUPERIOR_CONJUNCTION: "superior conjunction",
    EventType.INFERIOR_CONJUNCTION: "inferior conjunction",
    EventType.GREATEST_ELONGATION: "greatest elongation",
    EventType.QUADRATURE: "quadrature",
    EventType.PERIHELION: "perihelion",
    EventType.APHELION: "aphelion",
    EventType.LUNAR_ECLIPSE: "lunar eclipse",
    EventType.SOLAR_ECLIPSE: "solar eclipse",
    EventType.GRS_TRANSIT: "GRS transit",
}

_DAY_EVENTS = (
    EventType.RISE,
    EventType.SET,
    EventType.SET_MINUS_1_MIN,
    EventType.TRANSIT,
    EventType.TWILIGHT_BEGINS,
    EventType.TWILIGHT_ENDS,
)

# minimum transit altitude still counted as a transit
_SUN_MOON_TRANSIT_MIN_ALT = -0.8333
_TRANSIT_MIN_ALT = -0.5833

_MOON_EVENT_GAP_MINUTES = 0.49

_CONTINUE = object()
_UNSET: Any = object()


# ───────────────────────── minute-span detector seam ─────────────────────────

@dataclass(frozen=True)
class MinuteSpanResult:
    """What a detector saw in the one-minute span starting at the scanned time."""
    count: int
    text: str = ""
    next_check_minutes: float = 1.0
    t0: Optional[float] = None
    t1: Optional[float] = None


class MinuteSpanDetector(ABC):
    """Reports the minute-span event (if any) in the minute starting at `jd_ut`."""

    @abstractmethod
    def scan(self, jd_ut: float, long_format: bool) -> MinuteSpanResult:
        raise NotImplementedError


# ───────────────────────── per-request state ─────────────────────────

@dataclass
class _SearchState:
    body: str
    event_type: str
    observer: Optional[SkyObserver]
    zone: str
    calendar: CivilCalendar
    delta: int
    argument: Any
    original_time: float
    test_time: float
    ymd: Tuple[int, int, int]
    tries: int = 0

    @property
    def year(self) -> int:
        return self.ymd[0]


def _is_number(v: Any) -> bool:
    return isinstance(v, numbers.Real) and not isinstance(v, bool) and not math.isnan(v)


def _unwrap(angle: float) -> float:
    return angle - 360.0 if angle > 315.0 else angle


def _format_angle(deg: float) -> str:
    total = int(round(abs(deg) * 60.0))
    return f"{total // 60}°{total % 60}′"


class EventFinder:
    """
    Finds the next (or previous) occurrence of an event for a body.

        finder = EventFinder()
        ev = finder.find_event(SUN, EventType.RISE, jd_ut, observer, "America/New_York")

    `provider` defaults to the offline ERFA provider; `jupiter` drives
    GRS_TRANSIT (fixed default GRS longitude when omitted) and `detector`
    drives MOON_EVENT; any object with a matching `scan` will do.
    """

    def __init__(
        self,
        provider: Optional[PositionProvider] = None,
        jupiter: Optional[JupiterInfo] = None,
        detector: Optional[MinuteSpanDetector] = None,
        settings: Optional[SearchSettings] = None,
    ):
        self.provider = provider or ErfaPositionProvider()
        self.jupiter = jupiter if jupiter is not None else JupiterInfo()
        self.detector = detector
        self.settings = settings or CFG
        self.ctx = SearchContext(self.provider, self.jupiter)
        self.resolver = EclipseCircumstanceResolver(self.provider)

        self._handlers: Dict[str, Callable[[_SearchState], Any]] = {}
        for et in _DAY_EVENTS:
            self._handlers[et] = self._day_candidates
        for et in EQUINOX_SOLSTICE_EVENTS:
            self._handlers[et] = self._equinox_candidates
        for et in LUNAR_PHASE_EVENTS:
            self._handlers[et] = self._lunar_phase_candidates
        for et in PERIODIC_STRATEGIES:
            self._handlers[et] = self._periodic_candidates
        self._handlers[EventType.MOON_EVENT] = self._moon_event_candidates

    # ───────────────────────── day helpers ─────────────────────────

    @staticmethod
    def _day_event(event_type: str, text: str, ymd: Tuple[int, int, int], origin: float, t: float,
                   zone: Optional[str], calendar: CivilCalendar, shift: float = 0.0,
                   value: Optional[float] = None) -> AstroEvent:
        # `origin` is the biased day start; the reported minute is floor((t - origin) in minutes)
        ev = AstroEvent.for_day(event_type, text, ymd[0], ymd[1], ymd[2], (t - origin) * 24.0,
                                zone, calendar, value)
        return replace(ev, jdu=t - shift)

    def _cyclic_event(self, angle_fn: Callable[[float], float], targets: Tuple[str, ...],
                      texts: Dict[str, str], tolerance: float, max_iter: int,
                      y: int, m: int, d: int, zone: Optional[str], calendar: CivilCalendar) -> Optional[AstroEvent]:
        mins = minutes_in_day(y, m, d, zone, calendar)
        if mins == 0:
            return None
        s = start_of_day(y, m, d, zone, calendar) - HALF_MINUTE
        e = s + mins * MINUTE
        s_tt, e_tt = ut_to_tt(s), ut_to_tt(e)
        low = _unwrap(angle_fn(s_tt))
        high = _unwrap(angle_fn(e_tt))

        for k, event_type in enumerate(targets):
            angle = k * 90.0
            if not (low <= angle < high):
                continue

            def offset(x: float, a: float = angle) -> float:
                return wrap_pm180(angle_fn(x) - a)

            x = find_root(offset, tolerance, max_iter, s_tt, low - angle, e_tt, high - angle)
            return self._day_event(event_type, texts[event_type], (y, m, d), s, tt_to_ut(x), zone, calendar,
                                   value=angle)
        return None

    def lunar_phase_event(self, y: int, m: int, d: int, zone: Optional[str] = None,
                          calendar: CivilCalendar = GREGORIAN) -> Optional[AstroEvent]:
        """The quarter phase falling on local day (y, m, d), if any."""
        return self._cyclic_event(self.provider.lunar_phase, LUNAR_PHASE_EVENTS, _PHASE_TEXT,
                                  1e-4, 6, y, m, d, zone, calendar)

    def lunar_phases_for_month(self, y: int, m: int, zone: Optional[str] = None,
                               calendar: CivilCalendar = GREGORIAN) -> List[AstroEvent]:
        days = calendar.days_of_month(y, m)
        # quarters are ~7 days apart; skip ahead after a hit unless the month has gaps
        can_skip = len(days) == calendar.last_day_of_month(y, m)
        out: List[AstroEvent] = []
        i = 0
        while i < len(days):
            ev = self.lunar_phase_event(y, m, days[i], zone, calendar)
            if ev is not None:
                out.append(ev)
                if can_skip:
                    i += 4
            i += 1
        return out

    def equinox_solstice_event(self, y: int, m: int, d: int, zone: Optional[str] = None,
                               calendar: CivilCalendar = GREGORIAN) -> Optional[AstroEvent]:
        # far from the present the seasons drift out of their usual months
        if m % 3 != 0 and -500 < y < 2700:
            return None

        def sun_longitude(jd_tt: float) -> float:
            return self.provider.ecliptic_position(SUN, jd_tt).longitude

        return self._cyclic_event(sun_longitude, EQUINOX_SOLSTICE_EVENTS, _SEASON_TEXT,
                                  1e-5, 6, y, m, d, zone, calendar)

    def _equinox_in_month(self, y: int, m: int, zone: Optional[str],
                          calendar: CivilCalendar) -> Optional[AstroEvent]:
        for d in calendar.days_of_month(y, m):
            ev = self.equinox_solstice_event(y, m, d, zone, calendar)
            if ev is not None:
                return ev
        return None

    def equinoxes_and_solstices_for_year(self, y: int, zone: Optional[str] = None,
                                         calendar: CivilCalendar = GREGORIAN) -> List[AstroEvent]:
        months = range(1, 13) if y < -500 or y > 2700 else (3, 6, 9, 12)
        out: List[AstroEvent] = []
        for m in months:
            ev = self._equinox_in_month(y, m, zone, calendar)
            if ev is not None:
                out.append(ev)
        return out

    def rise_and_set_times(
        self,
        body: str,
        y: int,
        m: int,
        d: int,
        observer: SkyObserver,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        minutes_before: float = 0.0,
        target_altitude: Optional[float] = None,
        do_twilight: Optional[bool] = None,
    ) -> List[AstroEvent]:
        """
        Horizon crossings of `body` during local day (y, m, d).

        `minutes_before` shifts the scanned day and reports each event that
        many minutes early (SET_MINUS_1_MIN, twilight-by-minutes). In twilight
        mode crossings are typed TWILIGHT_BEGINS/ENDS. Outside twilight mode a
        day without crossings yields a single VISIBLE_ALL_DAY or
        UNSEEN_ALL_DAY event.
        """
        target = target_altitude
        if target is None:
            target = -REFRACTION_AT_HORIZON
            if body in (SUN, MOON):
                target -= AVG_SUN_MOON_RADIUS
        if do_twilight is None:
            do_twilight = body == SUN and target <= MAX_ALT_FOR_TWILIGHT

        mins = minutes_in_day(y, m, d, zone, calendar)
        if mins == 0:
            return []

        shift = minutes_before * MINUTE
        start = start_of_day(y, m, d, zone, calendar) - HALF_MINUTE + shift
        segments = 6
        if body == MOON:
            segments *= 2
        if abs(observer.latitude) > 60.0:
            segments *= 2
        step = mins * MINUTE / segments
        ymd = (y, m, d)

        def altitude(t: float) -> float:
            return self.provider.horizontal_position(body, t, observer).altitude

        def offset(t: float) -> float:
            return altitude(t) - target

        results: List[AstroEvent] = []

        def check(t0: float, a0: float, t1: float, a1: float) -> None:
            rising = a0 <= target < a1
            if not (rising or a1 < target <= a0):
                return
            t = find_root(offset, 0.001, 8, t0, a0 - target, t1, a1 - target)
            if rising:
                if do_twilight:
                    et, text = EventType.TWILIGHT_BEGINS, "twilight begins"
                else:
                    et, text = EventType.RISE, "rise"
            elif do_twilight:
                et, text = EventType.TWILIGHT_ENDS, "twilight ends"
            elif minutes_before != 0:
                et, text = EventType.SET_MINUS_1_MIN, "set - 1"
            else:
                et, text = EventType.SET, "set"
            results.append(self._day_event(et, text, ymd, start, t, zone, calendar, shift))

        midday_alt = 0.0
        t0 = start
        a0 = altitude(t0)
        for i in range(segments):
            if i == segments // 2:
                midday_alt = a0
            t1 = t0 + step
            a1 = altitude(t1)
            # grazing the target: look closer before concluding there is no crossing
            if (abs(a0 - target) < 1.0 or abs(a1 - target) < 1.0) and abs(a0 - a1) < 2.0:
                sub = step / 10.0
                ta, aa = t0, a0
                for j in range(1, 11):
                    tb = t1 if j == 10 else t0 + j * sub
                    ab = a1 if j == 10 else altitude(tb)
                    check(ta, aa, tb, ab)
                    ta, aa = tb, ab
            else:
                check(t0, a0, t1, a1)
            t0, a0 = t1, a1

        if not do_twilight and not results:
            if midday_alt > target:
                et, text = EventType.VISIBLE_ALL_DAY, "visible all day"
            else:
                et, text = EventType.UNSEEN_ALL_DAY, "unseen all day"
            results.append(AstroEvent.for_day(et, text, y, m, d, 0.0, zone, calendar))
        return results

    def transit_times(self, body: str, y: int, m: int, d: int, observer: SkyObserver,
                      zone: Optional[str] = None, calendar: CivilCalendar = GREGORIAN) -> List[AstroEvent]:
        mins = minutes_in_day(y, m, d, zone, calendar)
        if mins == 0:
            return []
        start = start_of_day(y, m, d, zone, calendar) - HALF_MINUTE
        segments = 5
        step = mins * MINUTE / segments
        flags = ABERRATION | SIGNED_HOUR_ANGLE | (TOPOCENTRIC if body == MOON else 0)
        min_alt = _SUN_MOON_TRANSIT_MIN_ALT if body in (SUN, MOON) else _TRANSIT_MIN_ALT

        def hour_angle(t: float) -> float:
            return self.provider.hour_angle(body, t, observer, flags)

        results: List[AstroEvent] = []
        t0 = start
        h0 = hour_angle(t0)
        for _ in range(segments):
            t1 = t0 + step
            h1 = hour_angle(t1)
            if h0 == h1:
                break
            if h0 <= 0.0 < h1:
                t = find_root(hour_angle, 0.0057, 8, t0, h0, t1, h1)
                alt = self.provider.horizontal_position(body, t, observer).altitude
                if alt >= min_alt:
                    results.append(self._day_event(EventType.TRANSIT, "transit", (y, m, d), start, t,
                                                   zone, calendar, value=alt))
            t0, h0 = t1, h1
        return results

    def minutes_of_daylight(self, y: int, m: int, d: int, observer: SkyObserver,
                            zone: Optional[str] = None, calendar: CivilCalendar = GREGORIAN) -> int:
        events = self.rise_and_set_times(SUN, y, m, d, observer, zone, calendar, do_twilight=False)
        mins = minutes_in_day(y, m, d, zone, calendar)
        if not events:
            return 0
        if events[0].event_type == EventType.UNSEEN_ALL_DAY:
            return 0
        if events[0].event_type == EventType.VISIBLE_ALL_DAY:
            return mins

        day_start = start_of_day(y, m, d, zone, calendar)
        span_start = day_start
        total = 0.0
        last = None
        for ev in events:
            if ev.event_type == EventType.RISE:
                span_start = ev.ut
            elif ev.event_type == EventType.SET:
                total += ev.ut - span_start
            last = ev.event_type
        if last == EventType.RISE:
            total += day_start + mins * MINUTE - span_start
        return min(int(round(total * 1440.0)), mins)

    def rise_and_set_events_for_day(
        self,
        body: str,
        y: int,
        m: int,
        d: int,
        observer: SkyObserver,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        twilight_altitude: Optional[float] = None,
    ) -> List[AstroEvent]:
        events = self.rise_and_set_times(body, y, m, d, observer, zone, calendar, do_twilight=False)
        if body == SUN and twilight_altitude is not None:
            events += self.rise_and_set_times(SUN, y, m, d, observer, zone, calendar,
                                              target_altitude=twilight_altitude, do_twilight=True)
        events += self.transit_times(body, y, m, d, observer, zone, calendar)
        return sorted(events, key=lambda e: e.ut)

    def events_for_month(
        self,
        body: str,
        y: int,
        m: int,
        observer: SkyObserver,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        target_altitude: Optional[float] = None,
    ) -> List[AstroEvent]:
        """Season, lunar phases, and each day's horizon events for one month, in time order."""
        events: List[AstroEvent] = []
        season = self._equinox_in_month(y, m, zone, calendar)
        if season is not None:
            events.append(season)
        events += self.lunar_phases_for_month(y, m, zone, calendar)
        for d in calendar.days_of_month(y, m):
            events += self.rise_and_set_times(body, y, m, d, observer, zone, calendar,
                                              target_altitude=target_altitude,
                                              do_twilight=target_altitude is not None)
            events += self.transit_times(body, y, m, d, observer, zone, calendar)
        return sorted(events, key=lambda e: e.ut)

    # ───────────────────────── acceptance ─────────────────────────

    def _accept(self, st: _SearchState, events: List[AstroEvent], minute_rounding: bool = True,
                min_gap: Optional[float] = None) -> Optional[AstroEvent]:
        if st.tries == 0:
            gap = self.settings.first_try_gap_minutes
        else:
            gap = self.settings.retry_gap_minutes if min_gap is None else min_gap

        ordered = sorted(events, key=lambda e: e.jdu, reverse=st.delta < 0)
        for ev in ordered:
            if ev.event_type != st.event_type:
                continue
            t = ev.ut if minute_rounding else ev.jdu
            if (t - st.original_time) * st.delta >= gap * MINUTE:
                if st.event_type == EventType.GREATEST_ELONGATION:
                    ev = ev.with_misc(self._elongation_note(st.body, ev))
                return ev
        return None

    def _elongation_note(self, body: str, ev: AstroEvent) -> str:
        angle = _format_angle(ev.value or 0.0)
        if self.provider.solar_elongation_in_longitude(body, ut_to_tt(ev.jdu)) > 0.0:
            return f"{body} in evening sky, {angle} east of Sun"
        return f"{body} in morning sky, {angle} west of Sun"

    # ───────────────────────── candidate producers ─────────────────────────

    def _require_observer(self, st: _SearchState) -> SkyObserver:
        if st.observer is None:
            raise ValidationError([{"loc": ["observer"], "msg": f"{st.event_type} needs an observer",
                                    "type": "value_error.missing"}])
        return st.observer

    def _day_candidates(self, st: _SearchState) -> Any:
        observer = self._require_observer(st)
        if st.tries > 0:
            st.ymd = st.calendar.add_days(*st.ymd, st.delta)
        y, m, d = st.ymd
        et = st.event_type

        if et in (EventType.TWILIGHT_BEGINS, EventType.TWILIGHT_ENDS):
            arg = st.argument
            if not _is_number(arg):
                events = self.rise_and_set_times(SUN, y, m, d, observer, st.zone, st.calendar,
                                                 0.0, NAUTICAL_TWILIGHT, True)
            elif arg < 0:
                events = self.rise_and_set_times(SUN, y, m, d, observer, st.zone, st.calendar,
                                                 0.0, float(arg), True)
            else:
                before = float(arg) if et == EventType.TWILIGHT_BEGINS else -float(arg)
                events = self.rise_and_set_times(SUN, y, m, d, observer, st.zone, st.calendar,
                                                 before, None, True)
        elif et == EventType.TRANSIT:
            events = self.transit_times(st.body, y, m, d, observer, st.zone, st.calendar)
        else:
            before = 1.0 if et == EventType.SET_MINUS_1_MIN else 0.0
            events = self.rise_and_set_times(st.body, y, m, d, observer, st.zone, st.calendar, before)

        return self._accept(st, events) or _CONTINUE

    def _equinox_candidates(self, st: _SearchState) -> Any:
        if st.tries == 1:
            st.ymd = (st.year + st.delta, st.ymd[1], st.ymd[2])
        elif st.tries > 1:
            return None
        events = self.equinoxes_and_solstices_for_year(st.year, st.zone, st.calendar)
        return self._accept(st, events) or _CONTINUE

    def _lunar_phase_candidates(self, st: _SearchState) -> Any:
        if st.tries > 0:
            st.ymd = st.calendar.add_days(*st.ymd, st.delta)
        ev = self.lunar_phase_event(*st.ymd, st.zone, st.calendar)
        return self._accept(st, [ev] if ev is not None else []) or _CONTINUE

    def _periodic_candidates(self, st: _SearchState) -> Any:
        strategy = PERIODIC_STRATEGIES[st.event_type]
        if not strategy.applies(st.body):
            log.debug("%s cannot have %s; nothing to search", st.body, st.event_type)
            return None
        period = strategy.period(self.ctx, st.body, st.test_time)
        if period <= 0.0:
            log.debug("%s has no period for %s; nothing to search", st.body, st.event_type)
            return None

        divisions = strategy.divisions(st.body)
        resolution = strategy.resolution(st.body, st.argument)
        minute_rounding = strategy.minute_rounding(st.argument)

        def value(t: float) -> float:
            return strategy.value(self.ctx, st.body, t)

        times: List[float] = []
        values: List[float] = []
        events: List[AstroEvent] = []

        for i in range(divisions + 1):
            times.append(st.test_time + i * period / divisions - period / 2.0)
            values.append(value(times[i]))

            if strategy.seek == ZERO:
                if i < 1:
                    continue
                y0, y1 = values[i - 1], values[i]
                if not ((y0 <= 0.0 < y1) or (y0 > 0.0 >= y1)):
                    continue
                # a jump across ±180° is the wrap, not a crossing
                if abs(y0 - y1) > 180.0:
                    continue
                t = find_root(value, 1e-4, 10, times[i - 1], y0, times[i], y1)
            else:
                if i < 2:
                    continue
                ya, yb, yc = values[i - 2], values[i - 1], values[i]
                if strategy.seek == MIN and not (ya > yb < yc):
                    continue
                if strategy.seek == MAX and not (ya < yb > yc):
                    continue
                t = find_extremum(value, 1e-11, 100, times[i - 2], times[i - 1], times[i]).x

            if strategy.accept is not None and not strategy.accept(self.ctx, st.body, t):
                continue

            ev = self._sweep(st, strategy, value, t, resolution)
            if ev is not None:
                events.append(ev)

        accepted = self._accept(st, events, minute_rounding)
        if accepted is not None:
            return accepted
        st.test_time += period * st.delta * 0.95
        return _CONTINUE

    def _sweep(self, st: _SearchState, strategy: PeriodicStrategy, value: Callable[[float], float],
               t: float, resolution: float) -> Optional[AstroEvent]:
        """Settle the refined time on a grid of `resolution` so repeated searches agree."""
        if resolution == 1.0:
            moment = math.floor(t + 0.5) - 0.5
        else:
            moment = math.floor(t / resolution - 4.5) * resolution

        best_time, best_value = moment, value(moment)
        for _ in range(10):
            moment += resolution
            v = value(moment)
            if ((strategy.seek == ZERO and abs(best_value) > abs(v))
                    or (strategy.seek == MIN and best_value > v)
                    or (strategy.seek == MAX and best_value < v)):
                best_time, best_value = moment, v

        misc = None
        if strategy.annotate is not None:
            misc = strategy.annotate(self.ctx, best_time, resolution)
            if misc is REJECT:
                return None

        return AstroEvent.from_jdu(st.event_type, _PERIODIC_TEXT[st.event_type], best_time,
                                   st.zone, st.calendar, best_value, misc)

    def _moon_event_candidates(self, st: _SearchState) -> Any:
        if self.detector is None:
            log.debug("no minute-span detector configured")
            return None
        st.test_time = math.floor(st.test_time * 1440.0) / 1440.0
        span = self.detector.scan(st.test_time, True)
        events: List[AstroEvent] = []
        if span.count > 0:
            events.append(AstroEvent.from_jdu(EventType.MOON_EVENT, span.text or "moon event", st.test_time,
                                              st.zone, st.calendar, span.next_check_minutes, span))
        st.test_time += (st.delta * span.next_check_minutes + 0.1) / 1440.0
        return self._accept(st, events, True, _MOON_EVENT_GAP_MINUTES) or _CONTINUE

    # ───────────────────────── search driver ─────────────────────────

    def _new_state(self, body: str, event_type: str, jd_ut: float, observer: Optional[SkyObserver],
                   zone: str, calendar: CivilCalendar, do_previous: bool, argument: Any) -> _SearchState:
        delta = -1 if do_previous else 1
        original = jd_ut + delta * HALF_MINUTE
        return _SearchState(
            body=body,
            event_type=event_type,
            observer=observer,
            zone=zone,
            calendar=calendar,
            delta=delta,
            argument=argument,
            original_time=original,
            test_time=original,
            ymd=local_wall_time(original, zone, calendar).ymd,
        )

    def _handler(self, event_type: str) -> Callable[[_SearchState], Any]:
        try:
            return self._handlers[event_type]
        except KeyError:
            raise ValidationError([{"loc": ["event_type"], "msg": f"unknown event type {event_type!r}",
                                    "type": "value_error"}]) from None

    def _search(self, st: _SearchState, max_tries: Optional[int]) -> Optional[AstroEvent]:
        handler = self._handler(st.event_type)
        while max_tries is None or st.tries <= max_tries:
            result = handler(st)
            if result is not _CONTINUE:
                return result
            st.tries += 1
        log.debug("%s %s not found within %s tries", st.body, st.event_type, max_tries)
        return None

    async def _search_async(self, st: _SearchState, max_tries: Optional[int]) -> Optional[AstroEvent]:
        handler = self._handler(st.event_type)
        slice_start = time.monotonic()
        while max_tries is None or st.tries <= max_tries:
            result = handler(st)
            if result is not _CONTINUE:
                return result
            st.tries += 1
            now = time.monotonic()
            if (now - slice_start) * 1000.0 > self.settings.async_yield_ms:
                slice_start = now
                await asyncio.sleep(0)
        return None

    def _prepare(self, observer: Optional[SkyObserver], zone: Optional[str], event_type: str,
                 max_tries: Any) -> Tuple[str, Optional[int]]:
        zone = validate_zone(zone)
        max_tries = validate_max_tries(self.settings.max_tries if max_tries is _UNSET else max_tries)
        if event_type in LOCAL_ECLIPSE_EVENTS and observer is None:
            raise ValidationError([{"loc": ["observer"], "msg": f"{event_type} needs an observer",
                                    "type": "value_error.missing"}])
        return zone, max_tries

    def find_event(
        self,
        body: str,
        event_type: str,
        jd_ut: float,
        observer: Optional[SkyObserver] = None,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        do_previous: bool = False,
        argument: Any = None,
        max_tries: Any = _UNSET,
    ) -> Optional[AstroEvent]:
        """
        Next (or previous, with `do_previous`) occurrence of `event_type` for
        `body` strictly after (before) `jd_ut`. Returns None when nothing
        qualifies within `max_tries` retries (None = unbounded, default from
        settings).

        LOCAL eclipse types refine each candidate for the observer, which is
        expensive; the synchronous form therefore insists on max_tries <= 2
        and raises InvalidConfigurationError otherwise. Use
        `find_event_async` for open-ended local eclipse searches.
        """
        zone, max_tries = self._prepare(observer, zone, event_type, max_tries)

        if event_type in LOCAL_ECLIPSE_EVENTS:
            if max_tries is None or max_tries > 2:
                raise InvalidConfigurationError(
                    f"{event_type} requires find_event_async() or max_tries <= 2"
                )
            return self._find_local_eclipse(body, event_type, jd_ut, observer, zone, calendar,
                                            do_previous, argument, max_tries)

        st = self._new_state(body, event_type, jd_ut, observer, zone, calendar, do_previous, argument)
        return self._search(st, max_tries)

    def _find_local_eclipse(self, body: str, event_type: str, jd_ut: float, observer: SkyObserver,
                            zone: str, calendar: CivilCalendar, do_previous: bool, argument: Any,
                            max_tries: Optional[int]) -> Optional[AstroEvent]:
        global_type = LOCAL_ECLIPSE_EVENTS[event_type]
        delta = -1 if do_previous else 1
        reference = jd_ut + delta * HALF_MINUTE
        test_time = jd_ut
        tries = 0
        while max_tries is None or tries <= max_tries:
            st = self._new_state(body, global_type, test_time, observer, zone, calendar, do_previous, argument)
            found = self._search(st, max_tries)
            if found is None:
                return None
            local = self.resolver.resolve(found, event_type, reference, do_previous, observer, zone, calendar)
            if local is not None:
                return local
            test_time = found.jdu + delta * self.settings.local_eclipse_shift_days
            tries += 1
        return None

    async def find_event_async(
        self,
        body: str,
        event_type: str,
        jd_ut: float,
        observer: Optional[SkyObserver] = None,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
        do_previous: bool = False,
        argument: Any = None,
        max_tries: Any = _UNSET,
    ) -> Optional[AstroEvent]:
        """Same as `find_event`, yielding to the event loop during long searches."""
        zone, max_tries = self._prepare(observer, zone, event_type, max_tries)

        if event_type not in LOCAL_ECLIPSE_EVENTS:
            st = self._new_state(body, event_type, jd_ut, observer, zone, calendar, do_previous, argument)
            return await self._search_async(st, max_tries)

        global_type = LOCAL_ECLIPSE_EVENTS[event_type]
        delta = -1 if do_previous else 1
        reference = jd_ut + delta * HALF_MINUTE
        test_time = jd_ut
        tries = 0
        while max_tries is None or tries <= max_tries:
            st = self._new_state(body, global_type, test_time, observer, zone, calendar, do_previous, argument)
            found = await self._search_async(st, max_tries)
            if found is None:
                return None
            local = self.resolver.resolve(found, event_type, reference, do_previous, observer, zone, calendar)
            if local is not None:
                return local
            log.debug("%s near JD %.3f rejected for observer; retrying", event_type, found.ut)
            test_time = found.jdu + delta * self.settings.local_eclipse_shift_days
            tries += 1
            await asyncio.sleep(0)
        return None
