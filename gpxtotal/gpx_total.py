"""
Multi-Trace GPX Aggregation Module

Combines independently recorded GPS traces into one activity: aggregate
metrics, timestamp synthesis across traces, and GPX export.

This file serves as the single import point for callers and re-exports the
public names of the modular structure.
"""

# Import constants
from .constants import TRACE_COLORS, MERGED_FILENAME

# Import utility functions
from .utils import (
    encode_string,
    first_present,
    format_iso_utc,
    ms_to_time,
    ms_to_time_min,
)

# Import data model and loading
from .model import TracePoint, Layer, Waypoint, TraceStyle, ParsedGpx
from .data_loading import parse_gpx, load_gpx_file

# Import metrics functions
from .metrics import haversine_m, distance_2d, compute_point_metrics

# Import core components
from .trace import Trace
from .colors import ColorAllocator
from .synthesis import TemporalSynthesizer
from .export import GpxSerializer
from .aggregator import (
    Aggregator,
    AggregateFocus,
    TraceFocus,
    FocusListener,
    RenderInProgressError,
)

# Import session builder functions
from .session import (
    load_traces,
    unique_name,
    build_trace_record,
    build_trace_table,
    build_session_payload,
)

__all__ = [
    # Constants
    "TRACE_COLORS",
    "MERGED_FILENAME",
    # Utilities
    "encode_string",
    "first_present",
    "format_iso_utc",
    "ms_to_time",
    "ms_to_time_min",
    # Data model and loading
    "TracePoint",
    "Layer",
    "Waypoint",
    "TraceStyle",
    "ParsedGpx",
    "parse_gpx",
    "load_gpx_file",
    # Metrics
    "haversine_m",
    "distance_2d",
    "compute_point_metrics",
    # Core
    "Trace",
    "ColorAllocator",
    "TemporalSynthesizer",
    "GpxSerializer",
    "Aggregator",
    "AggregateFocus",
    "TraceFocus",
    "FocusListener",
    "RenderInProgressError",
    # Session builder
    "load_traces",
    "unique_name",
    "build_trace_record",
    "build_trace_table",
    "build_session_payload",
]
