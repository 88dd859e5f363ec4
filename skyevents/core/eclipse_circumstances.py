# skyevents/core/eclipse_circumstances.py
# -----------------------------------------------------------------------------
# Observer-local refinement of a global eclipse event
#
# Given the coarse global event:
#   1) maximum of raw local totality within ±½ day (extremum search)
#   2) reject duplicates (max not strictly beyond the reference, in direction)
#   3) first/last contact from the roots of raw totality either side of max
#   4) total/annular phase limits when totality or annularity exceeds 1
#   5) penumbral contacts for lunar eclipses
#   6) reject unless the body is above the horizon at peak start, peak end
#      or maximum
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Callable, Optional

from skyevents.core.constants import HALF_DAY, MINUTE, MOON, SUN, EventType
from skyevents.core.deltat import ut_to_tt
from skyevents.core.eclipses import lunar_eclipse_totality, local_solar_eclipse_totality
from skyevents.core.ephemeris import PositionProvider
from skyevents.core.events import AstroEvent, EclipseCircumstances
from skyevents.core.observer import SkyObserver
from skyevents.core.solvers import find_extremum, find_root
from skyevents.core.timescales import GREGORIAN, CivilCalendar

log = logging.getLogger(__name__)

__all__ = ["EclipseCircumstanceResolver"]

_TOL = 1e-11
_MAX_ITER = 50


class EclipseCircumstanceResolver:
    def __init__(self, provider: PositionProvider):
        self.provider = provider

    def _totality_fn(self, solar: bool, observer: SkyObserver) -> Callable[[float], float]:
        p = self.provider
        if solar:
            return lambda x: local_solar_eclipse_totality(p, ut_to_tt(x), observer, True)[0]
        return lambda x: lunar_eclipse_totality(p, ut_to_tt(x), True)[0]

    def _annularity(self, x: float, observer: SkyObserver) -> float:
        return local_solar_eclipse_totality(self.provider, ut_to_tt(x), observer, True)[1]

    def _penumbral(self, x: float) -> float:
        return lunar_eclipse_totality(self.provider, ut_to_tt(x), True)[1]

    def _above_horizon(self, body: str, jd_ut: Optional[float], observer: SkyObserver) -> bool:
        if jd_ut is None:
            return False
        return self.provider.horizontal_position(body, jd_ut, observer).altitude > 0.0

    def resolve(
        self,
        event: AstroEvent,
        event_type: str,
        reference_time: float,
        do_previous: bool,
        observer: SkyObserver,
        zone: Optional[str] = None,
        calendar: CivilCalendar = GREGORIAN,
    ) -> Optional[AstroEvent]:
        """Local eclipse event, or None when this candidate is a duplicate or not visible."""
        solar = event_type == EventType.SOLAR_ECLIPSE_LOCAL
        body = SUN if solar else MOON
        totality = self._totality_fn(solar, observer)
        lo, hi = event.ut - HALF_DAY, event.ut + HALF_DAY

        peak = find_extremum(totality, _TOL, _MAX_ITER, lo, event.ut, hi)
        t_max, y_max = peak.x, peak.y

        if not do_previous and t_max <= reference_time + MINUTE:
            return None
        if do_previous and t_max >= reference_time - MINUTE:
            return None
        if y_max <= 0.0:
            return None

        circ = EclipseCircumstances(max_eclipse=min(y_max * 100.0, 100.0), max_time=t_max)
        annularity = self._annularity(t_max, observer) if solar else 0.0
        circ.annular = annularity >= 1.0

        circ.first_contact = find_root(totality, _TOL, _MAX_ITER, lo, x1=t_max)
        circ.last_contact = find_root(totality, _TOL, _MAX_ITER, t_max, x1=hi)
        circ.duration = (circ.last_contact - circ.first_contact) * 86400.0

        if y_max > 1.0 or annularity > 1.0:
            if circ.annular:
                def phase(x: float) -> float:
                    return self._annularity(x, observer) - 1.0
            else:
                def phase(x: float) -> float:
                    return totality(x) - 1.0

            circ.peak_starts = find_root(phase, _TOL, _MAX_ITER, circ.first_contact, x1=t_max)
            circ.peak_ends = find_root(phase, _TOL, _MAX_ITER, t_max, x1=circ.last_contact)
            circ.peak_duration = (circ.peak_ends - circ.peak_starts) * 86400.0
        else:
            circ.peak_duration = 0.0

        if not solar:
            if self._penumbral(t_max) > 0.0:
                circ.penumbral_first_contact = find_root(self._penumbral, _TOL, _MAX_ITER, lo, x1=t_max)
                circ.penumbral_last_contact = find_root(self._penumbral, _TOL, _MAX_ITER, t_max, x1=hi)
                circ.penumbral_duration = (circ.penumbral_last_contact - circ.penumbral_first_contact) * 86400.0
            else:
                circ.penumbral_duration = 0.0

        if not (self._above_horizon(body, circ.peak_starts, observer)
                or self._above_horizon(body, circ.peak_ends, observer)
                or self._above_horizon(body, t_max, observer)):
            log.debug("%s at JD %.5f not visible from %s", event_type, t_max, observer)
            return None

        text = "solar eclipse" if solar else "lunar eclipse"
        return AstroEvent.from_jdu(event_type, text, t_max, zone, calendar, y_max, circ)
