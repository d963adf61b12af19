"""
Temporal Synthesis for Multi-Trace GPX Export

This module gives every trace in a collection usable timestamps before
export. Traces recorded without time get synthetic timestamps anchored on
their neighbors and an estimated moving speed; when traces are merged into
one track, a trace that starts before its predecessor ends is shifted
forward so the concatenated track never goes back in time.

Timestamps are mutated in place on the traces.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from . import constants
from . import metrics
from . import utils

logger = logging.getLogger(__name__)


def travel_duration(distance_m: float, speed_kmh: float) -> timedelta:
    """
    Time needed to cover distance_m at speed_kmh.

    Returns a zero duration when the speed is not positive.
    """
    if speed_kmh <= 0:
        return timedelta(0)
    return timedelta(milliseconds=constants.MS_PER_HOUR * distance_m / (1000 * speed_kmh))


def first_time(points: Sequence) -> Optional[datetime]:
    return next((utils.to_utc(p.time) for p in points if p.time is not None), None)


def last_time(points: Sequence) -> Optional[datetime]:
    return next((utils.to_utc(p.time) for p in reversed(points) if p.time is not None), None)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TemporalSynthesizer:
    """
    Make trace timestamps present and ordered for export.

    Args:
        traces: Traces in collection order.
        merge_all: True when the traces are exported as one merged track.
            Inter-trace gap distances are only counted in that mode.
        reference_speed: Collection moving speed in km/h, used to turn
            distances into durations.
        now: Clock used when an untimed trace has no timed anchor at all.
    """

    def __init__(self, traces: Sequence, merge_all: bool, reference_speed: float,
                 now: Callable[[], datetime] = _utc_now):
        self.traces: List = list(traces)
        self.merge_all = merge_all
        self.reference_speed = reference_speed
        self.now = now

    def run(self) -> None:
        """
        Synthesize and reorder timestamps, trace by trace in collection order.

        Traces are expected to have had time_consistency() applied.
        """
        last_points = None
        for i, trace in enumerate(self.traces):
            points = trace.get_points()
            if not points:
                continue

            if trace.first_time_data() == -1:
                start = self._untimed_start(i, points, last_points)
                logger.debug("Synthesizing timestamps for trace %d (%s) from %s",
                             i, trace.name, start.isoformat())
                trace.change_time_data(start, self.reference_speed)
            elif self.merge_all and last_points and first_time(points) < last_time(last_points):
                self._shift_after(trace, points, last_points)

            last_points = points

    def _gap(self, a, b) -> float:
        return metrics.distance_2d(a, b) if self.merge_all else 0.0

    def _untimed_start(self, i: int, points: Sequence, last_points: Optional[Sequence]) -> datetime:
        """Start time for an untimed trace, anchored backward or forward."""
        if last_points:
            gap = self._gap(last_points[-1], points[0])
            return last_time(last_points) + travel_duration(gap, self.reference_speed)

        # No predecessor: walk forward to the next timed trace and back off
        # by the distance still to cover before reaching it.
        anchor = points[-1]
        distance = self.traces[i].get_distance(no_conversion=True)
        for later in self.traces[i + 1:]:
            later_points = later.get_points()
            if not later_points:
                continue
            distance += self._gap(anchor, later_points[0])
            if later.first_time_data() != -1:
                return first_time(later_points) - travel_duration(distance, self.reference_speed)
            distance += later.get_distance(no_conversion=True)
            anchor = later_points[-1]

        logger.warning("No timed trace to anchor trace %d (%s); starting it now", i, self.traces[i].name)
        return self.now()

    def _shift_after(self, trace, points: Sequence, last_points: Sequence) -> None:
        """Move a trace so it starts after the previous trace ends."""
        gap = metrics.distance_2d(last_points[-1], points[0])
        start = last_time(last_points) + travel_duration(gap, self.reference_speed)
        own_speed = trace.get_moving_speed(no_conversion=True)
        logger.debug("Trace %d (%s) starts before its predecessor ends; shifting to %s",
                     trace.index, trace.name, start.isoformat())
        trace.change_time_data(start, own_speed if own_speed > 0 else self.reference_speed)
