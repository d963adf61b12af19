"""
Session Summaries for Multi-Trace GPX Aggregation

This module builds the JSON-ready summary of an editing session (per-trace
rows and collection totals) and loads GPX files from disk into an
Aggregator.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from . import utils
from .aggregator import Aggregator, TraceFocus
from .trace import Trace

logger = logging.getLogger(__name__)


def load_traces(aggregator: Aggregator, paths: Iterable[Path]) -> List[Trace]:
    """
    Add GPX files to an aggregator, in the given order.

    Each trace is named after its file stem. A stem already used by a
    trace in the collection gets a numeric suffix (track_2, track_3, ...)
    so exported file names stay distinct.

    Args:
        aggregator: Target collection.
        paths: Paths to .gpx files.

    Returns:
        The traces that were added.

    Raises:
        ValueError: If a file cannot be parsed or holds no points.
    """
    added = []
    for path in paths:
        path = Path(path)
        logger.info("Loading %s", path)
        added.append(aggregator.add_trace(path, unique_name(aggregator, path.stem)))
    return added


def unique_name(aggregator: Aggregator, name: str) -> str:
    """Return name, suffixed with _2, _3, ... if a trace already uses it."""
    taken = {trace.name for trace in aggregator.traces}
    candidate = name
    suffix = 2
    while candidate in taken:
        candidate = f"{name}_{suffix}"
        suffix += 1
    return candidate


def build_trace_record(trace: Trace) -> Dict:
    """
    Summarize one trace.

    Returns:
        Dictionary with index, name, color, distance_m, elevation,
        moving_time_ms, has_time_data, point and waypoint counts, and the
        hr/atemp/cad averages.
    """
    averages = trace.get_average_additional_data()
    return {
        "index": trace.index,
        "name": trace.name,
        "color": trace.normal_style.color,
        "distance_m": utils.round_float(trace.get_distance(no_conversion=True), digits=1),
        "elevation": utils.round_float(trace.get_elevation(), digits=1),
        "moving_time_ms": trace.get_moving_time(),
        "has_time_data": trace.first_time_data() != -1,
        "points": len(trace.get_points()),
        "waypoints": len(trace.waypoints),
        "avg_hr": averages["hr"],
        "avg_atemp": averages["atemp"],
        "avg_cad": averages["cad"],
    }


def build_trace_table(aggregator: Aggregator) -> pd.DataFrame:
    """Per-trace summary rows as a DataFrame indexed by trace index."""
    records = [build_trace_record(trace) for trace in aggregator.traces]
    if not records:
        return pd.DataFrame(columns=["index", "name"]).set_index("index")
    return pd.DataFrame(records).set_index("index")


def build_session_payload(aggregator: Aggregator) -> Dict:
    """
    Build the complete summary of the current collection.

    Returns:
        Dictionary containing:
        - traces: per-trace records from build_trace_record()
        - totals: distance, moving distance, elevation, moving time,
          formatted duration, speed, pace, sensor averages
        - units: "metric" or "imperial"
        - activity: "Cycling" or "Running"
        - focus: None for the aggregate view, else the focused trace index
        - combine_enabled: whether merging is available
    """
    averages = aggregator.average_additional_data()
    moving_time = aggregator.moving_time()
    pace = aggregator.moving_pace()
    focus = aggregator.focus.index if isinstance(aggregator.focus, TraceFocus) else None

    return {
        "traces": [build_trace_record(trace) for trace in aggregator.traces],
        "totals": {
            "distance": utils.round_float(aggregator.distance(), digits=1),
            "moving_distance": utils.round_float(aggregator.moving_distance(), digits=1),
            "elevation": utils.round_float(aggregator.elevation(), digits=1),
            "moving_time_ms": moving_time,
            "duration": utils.ms_to_time(moving_time),
            "moving_speed": utils.round_float(aggregator.moving_speed(), digits=2),
            "moving_pace_ms": utils.round_float(pace, digits=0),
            "pace": utils.ms_to_time_min(pace),
            "avg_hr": averages["hr"],
            "avg_atemp": averages["atemp"],
            "avg_cad": averages["cad"],
        },
        "units": "metric" if aggregator.metric else "imperial",
        "activity": "Cycling" if aggregator.cycling else "Running",
        "focus": focus,
        "combine_enabled": aggregator.combine_enabled,
    }
