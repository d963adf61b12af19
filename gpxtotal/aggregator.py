"""
Trace Aggregation for Multi-Trace GPX Export

This module holds the ordered trace collection of an editing session. It
maintains trace indices and colors on every structural change, tracks which
view has focus, computes the aggregate metrics (distance, elevation, moving
time, speed, pace, time-weighted sensor averages) and drives GPX export,
including timestamp synthesis across traces.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from . import constants
from . import utils
from .colors import ColorAllocator
from .export import GpxSerializer
from .synthesis import TemporalSynthesizer
from .trace import Trace

logger = logging.getLogger(__name__)


class RenderInProgressError(RuntimeError):
    """Raised when render() is called while a render is already running."""


# ============================================================================
# FOCUS STATE
# ============================================================================

@dataclass(frozen=True)
class AggregateFocus:
    """The aggregate (all traces) view has focus."""


@dataclass(frozen=True)
class TraceFocus:
    """A single trace has focus."""
    index: int


class FocusListener:
    """
    Receives focus and availability notifications from an Aggregator.

    The base implementation ignores every notification; UI collaborators
    override the hooks they care about.
    """

    def on_focus_exit(self, state) -> None:
        pass

    def on_focus_enter(self, state) -> None:
        pass

    def on_combine_available(self, available: bool) -> None:
        pass


# ============================================================================
# AGGREGATOR
# ============================================================================

class Aggregator:
    """
    Ordered collection of traces treated as one activity.

    Args:
        cycling: Activity type for export metadata (Cycling or Running).
        metric: Report distances in km and elevation in m (False: mi and ft).
        palette: Trace colors; defaults to constants.TRACE_COLORS.
        listener: Receives focus and combine notifications.
    """

    def __init__(self, cycling: bool = True, metric: bool = True,
                 palette: Optional[Sequence[str]] = None,
                 listener: Optional[FocusListener] = None):
        self.traces: List[Trace] = []
        self.cycling = cycling
        self.metric = metric
        self.colors = ColorAllocator(palette)
        self.listener = listener or FocusListener()
        self.focus = AggregateFocus()
        self.combine_enabled = False
        self.additional_avg_data: Optional[Dict[str, Optional[float]]] = None
        self._rendering = False

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def add_trace(self, source: Union[str, bytes, Path], name: str) -> Trace:
        """
        Parse a GPX source and append it as a new trace.

        Args:
            source: GPX text, UTF-8 bytes, or a Path to a .gpx file.
            name: Trace name.

        Returns:
            The new Trace.

        Raises:
            ValueError: If the GPX cannot be parsed or holds no points.
        """
        return self.append_trace(Trace.from_gpx(source, name))

    def append_trace(self, trace: Trace) -> Trace:
        """Append an already built trace, assigning its index and color."""
        trace.index = len(self.traces)
        trace.metric = self.metric
        if trace.set_color and trace.normal_style.color:
            self.colors.claim(trace.normal_style.color)
        else:
            trace.normal_style.color = self.colors.issue()
            trace.set_color = False
        if trace.additional_avg_data is None:
            trace.get_average_additional_data()

        self.traces.append(trace)
        self.additional_avg_data = None
        logger.info("Added trace %d (%s), color %s", trace.index, trace.name, trace.normal_style.color)
        self._update_combine()
        return trace

    def remove_trace(self, index: int) -> None:
        """
        Remove the trace at index and refocus.

        Later traces move down one index. Focus goes to the trace before the
        removed one, or to the aggregate view when there is none.
        """
        trace = self.traces.pop(index)
        self.additional_avg_data = None
        self.colors.release(trace.normal_style.color)
        for i in range(index, len(self.traces)):
            self.traces[i].index -= 1
        logger.info("Removed trace %d (%s)", index, trace.name)

        self._update_combine()
        if index > 0:
            self._transition(TraceFocus(index - 1))
        else:
            self._transition(AggregateFocus())

    def swap_traces(self, i: int, j: int) -> None:
        """Exchange the traces at i and j; focus follows a swapped trace."""
        self.traces[i], self.traces[j] = self.traces[j], self.traces[i]
        self.traces[i].index = i
        self.traces[j].index = j

        if isinstance(self.focus, TraceFocus):
            if self.focus.index == i:
                self.focus = TraceFocus(j)
            elif self.focus.index == j:
                self.focus = TraceFocus(i)

    def clear(self) -> None:
        """Remove every trace and return to the aggregate view."""
        for trace in self.traces:
            self.colors.release(trace.normal_style.color)
        self.traces = []
        self.additional_avg_data = None
        logger.info("Cleared all traces")
        self._update_combine()
        self._transition(AggregateFocus())

    def recolor_trace(self, index: int, color: str) -> None:
        """Give a trace a caller-chosen color."""
        trace = self.traces[index]
        self.colors.reassign(trace.normal_style.color, color)
        trace.normal_style.color = color
        trace.set_color = True

    def set_units(self, metric: bool) -> None:
        self.metric = metric
        for trace in self.traces:
            trace.metric = metric

    def _update_combine(self) -> None:
        available = len(self.traces) >= 2
        if available != self.combine_enabled:
            self.combine_enabled = available
            self.listener.on_combine_available(available)

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def _transition(self, new_state) -> None:
        """Leave the current focus state and enter new_state, notifying the listener."""
        self.listener.on_focus_exit(self.focus)
        self.focus = new_state
        self.listener.on_focus_enter(new_state)

    def focus_aggregate(self) -> None:
        self._transition(AggregateFocus())

    def focus_trace(self, index: int) -> None:
        if not 0 <= index < len(self.traces):
            raise IndexError(f"Trace index {index} out of range")
        self._transition(TraceFocus(index))

    def update_focus(self) -> None:
        """Return to the aggregate view if a trace currently has focus."""
        if isinstance(self.focus, TraceFocus):
            self.focus_aggregate()

    def unfocus_all(self) -> None:
        """Notify the listener that the current focus is left, keeping the state."""
        self.listener.on_focus_exit(self.focus)

    @property
    def has_focus(self) -> bool:
        return isinstance(self.focus, AggregateFocus)

    @property
    def focused_trace(self) -> Optional[Trace]:
        if isinstance(self.focus, TraceFocus):
            return self.traces[self.focus.index]
        return None

    # ------------------------------------------------------------------
    # Aggregate metrics
    # ------------------------------------------------------------------

    def distance(self) -> float:
        return sum(trace.get_distance() for trace in self.traces)

    def moving_distance(self, no_conversion: bool = False) -> float:
        return sum(trace.get_moving_distance(no_conversion) for trace in self.traces)

    def elevation(self) -> float:
        return sum(trace.get_elevation() for trace in self.traces)

    def moving_time(self) -> int:
        """Total moving time in milliseconds."""
        return sum(trace.get_moving_time() for trace in self.traces)

    def moving_speed(self, no_conversion: bool = False) -> float:
        """Moving speed in km/h (mi/h in imperial mode); 0 without moving time."""
        time_ms = self.moving_time()
        if time_ms == 0:
            return 0.0
        return self.moving_distance(no_conversion) / (time_ms / 3600)

    def moving_pace(self) -> float:
        """Moving pace in milliseconds per km (or mi); 0 without moving distance."""
        distance = self.moving_distance()
        if distance == 0:
            return 0.0
        return self.moving_time() / (distance / 1000)

    def average_additional_data(self) -> Dict[str, Optional[float]]:
        """
        Time-weighted sensor averages across traces.

        Each trace's average is weighted by its moving time; traces without
        a value for a sensor do not contribute to it. The result is cached
        as the export fallback for traces lacking a sensor.

        Returns:
            Dictionary with hr, atemp and cad rounded to one decimal, or
            None for a sensor with no contributing weight.
        """
        totals = {key: 0.0 for key in constants.SENSOR_KEYS}
        weights = {key: 0.0 for key in constants.SENSOR_KEYS}

        for trace in self.traces:
            data = trace.get_average_additional_data()
            duration = trace.get_moving_time()
            for key in constants.SENSOR_KEYS:
                if data.get(key) is not None:
                    totals[key] += data[key] * duration
                    weights[key] += duration

        self.additional_avg_data = {
            key: utils.round_float(totals[key] / weights[key], digits=1) if weights[key] > 0 else None
            for key in constants.SENSOR_KEYS
        }
        return self.additional_avg_data

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def render(self, merge_all: bool, include_time: bool, include_hr: bool,
               include_atemp: bool, include_cad: bool,
               single_trace_index: Optional[int] = None) -> List[Dict[str, str]]:
        """
        Export the collection as GPX documents.

        When time is included, at least one trace has moving time, and the
        whole collection is exported, trace timestamps are first synthesized
        and reordered in place (see TemporalSynthesizer).

        Args:
            merge_all: Produce one merged track.gpx instead of one file per trace.
            include_time: Write point timestamps.
            include_hr: Write heart rate.
            include_atemp: Write ambient temperature.
            include_cad: Write cadence.
            single_trace_index: Export only this trace.

        Returns:
            List of {"name", "text"} dictionaries.

        Raises:
            RenderInProgressError: If called while another render is running.
        """
        if self._rendering:
            raise RenderInProgressError("render() is not reentrant")
        self._rendering = True
        try:
            if include_time and single_trace_index is None and self.moving_time() > 0:
                for trace in self.traces:
                    trace.time_consistency()
                TemporalSynthesizer(
                    self.traces,
                    merge_all=merge_all,
                    reference_speed=self.moving_speed(no_conversion=True),
                ).run()

            if self.additional_avg_data is None:
                self.average_additional_data()

            serializer = GpxSerializer(self.traces, cycling=self.cycling,
                                       aggregate_data=self.additional_avg_data)
            return serializer.render(merge_all, include_time, include_hr, include_atemp,
                                     include_cad, single_trace_index)
        finally:
            self._rendering = False
