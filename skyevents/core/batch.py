# skyevents/core/batch.py
# -----------------------------------------------------------------------------
# Multi-month / multi-year enumeration as resumable tasks
#
# The iter_* generators produce events lazily, one unit of work (a month, a
# day, a minute scan) between yields. SlicedTask drives any of them in bounded
# wall-clock slices so a host loop stays responsive:
#
#     task = SlicedTask(iter_lunar_phases(finder, range(2020, 2030)))
#     while not task.done:
#         task.step()          # or: await task.run_async()
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
import logging
import time
from typing import Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from skyevents.core.constants import MINUTE, EventType
from skyevents.core.event_finder import EventFinder
from skyevents.core.events import AstroEvent
from skyevents.core.observer import SkyObserver
from skyevents.core.timescales import GREGORIAN, CivilCalendar
from skyevents.utils.config import CFG

log = logging.getLogger(__name__)

__all__ = [
    "SlicedTask",
    "iter_lunar_phases",
    "iter_equinoxes_and_solstices",
    "iter_rise_and_set_events",
    "iter_minute_span_events",
]

T = TypeVar("T")


def iter_lunar_phases(finder: EventFinder, years: Iterable[int], zone: Optional[str] = None,
                      calendar: CivilCalendar = GREGORIAN) -> Iterator[AstroEvent]:
    for y in years:
        for m in range(1, 13):
            yield from finder.lunar_phases_for_month(y, m, zone, calendar)


def iter_equinoxes_and_solstices(finder: EventFinder, years: Iterable[int], zone: Optional[str] = None,
                                 calendar: CivilCalendar = GREGORIAN) -> Iterator[AstroEvent]:
    for y in years:
        yield from finder.equinoxes_and_solstices_for_year(y, zone, calendar)


def iter_rise_and_set_events(
    finder: EventFinder,
    body: str,
    observer: SkyObserver,
    days: Iterable[Tuple[int, int, int]],
    zone: Optional[str] = None,
    calendar: CivilCalendar = GREGORIAN,
    twilight_altitude: Optional[float] = None,
) -> Iterator[AstroEvent]:
    for y, m, d in days:
        yield from finder.rise_and_set_events_for_day(body, y, m, d, observer, zone, calendar, twilight_altitude)


def iter_minute_span_events(finder: EventFinder, start_jd_ut: float, end_jd_ut: float,
                            zone: Optional[str] = None,
                            calendar: CivilCalendar = GREGORIAN) -> Iterator[AstroEvent]:
    """Every minute-span detection in [start, end), stepping by the detector's own check interval."""
    if finder.detector is None:
        raise ValueError("minute-span enumeration needs a detector")
    t = start_jd_ut
    while t < end_jd_ut:
        span = finder.detector.scan(t, True)
        if span.count > 0:
            yield AstroEvent.from_jdu(EventType.MOON_EVENT, span.text or "moon event", t, zone, calendar,
                                      span.next_check_minutes, span)
        t += max(span.next_check_minutes, 1.0) * MINUTE


class SlicedTask(Generic[T]):
    """Runs an iterator in wall-clock slices of `slice_ms`, collecting what it yields."""

    def __init__(self, source: Iterable[T], slice_ms: Optional[float] = None):
        self._it = iter(source)
        self.slice_ms = CFG.slice_ms if slice_ms is None else slice_ms
        self.results: List[T] = []
        self.done = False
        self.cancelled = False
        self.slices = 0

    def step(self) -> List[T]:
        """Advance for one slice; returns the items produced during it."""
        if self.done:
            return []
        produced: List[T] = []
        deadline = time.monotonic() + self.slice_ms / 1000.0
        self.slices += 1
        while True:
            try:
                item = next(self._it)
            except StopIteration:
                self.done = True
                break
            produced.append(item)
            if time.monotonic() >= deadline:
                break
        self.results.extend(produced)
        return produced

    def run(self) -> List[T]:
        while not self.done:
            self.step()
        return self.results

    async def run_async(self) -> List[T]:
        while not self.done:
            self.step()
            await asyncio.sleep(0)
        return self.results

    def cancel(self) -> None:
        if self.done:
            return
        close = getattr(self._it, "close", None)
        if close is not None:
            close()
        self.done = True
        self.cancelled = True
        log.debug("sliced task cancelled after %d slices, %d results", self.slices, len(self.results))
