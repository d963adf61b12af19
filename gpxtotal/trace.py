"""
Trace Model for Multi-Trace GPX Aggregation

This module implements a single recorded GPS track: its layers of points,
waypoints and display style, the per-trace metrics the aggregator sums
(distance, elevation gain, moving time and distance), sensor averages, and
the timestamp mutations used by temporal synthesis.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from . import constants
from . import data_loading
from . import metrics
from . import utils
from .model import Layer, TracePoint, TraceStyle, Waypoint

logger = logging.getLogger(__name__)


class Trace:
    """One independently recorded GPS track."""

    def __init__(self, name: str, layers: Optional[List[Layer]] = None,
                 waypoints: Optional[List[Waypoint]] = None,
                 color: Optional[str] = None, index: int = 0):
        self.name = name
        self.index = index
        self.layers = list(layers or [])
        self.waypoints = list(waypoints or [])
        self.normal_style = TraceStyle(color=color)
        # True when the color was chosen explicitly (from the file or by the user)
        self.set_color = color is not None
        self.metric = True
        self.additional_avg_data: Optional[Dict[str, Optional[float]]] = None

    @classmethod
    def from_gpx(cls, source: Union[str, bytes, Path], name: str) -> "Trace":
        """
        Build a trace from a GPX document.

        Args:
            source: GPX text, UTF-8 bytes, or a Path to a .gpx file.
            name: Display name, also used for the exported file name.

        Returns:
            New Trace with index 0; the aggregator assigns the real index.
        """
        if isinstance(source, Path):
            parsed = data_loading.load_gpx_file(source)
        else:
            parsed = data_loading.parse_gpx(source)
        return cls(name, layers=parsed.layers, waypoints=parsed.waypoints, color=parsed.color)

    def __repr__(self) -> str:
        return f"Trace(name={self.name!r}, index={self.index}, points={len(self.get_points())})"

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    def get_layers(self) -> List[Layer]:
        return self.layers

    def get_points(self) -> List[TracePoint]:
        """All points of all layers, in order. The point objects are shared."""
        return [point for layer in self.layers if layer.points for point in layer.points]

    def first_time_data(self) -> int:
        """Index of the first point carrying a timestamp, or -1."""
        for idx, point in enumerate(self.get_points()):
            if point.time is not None:
                return idx
        return -1

    def _layer_frames(self) -> List[pd.DataFrame]:
        return [metrics.compute_point_metrics(layer.points) for layer in self.layers if layer.points]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _convert_distance(self, meters: float, no_conversion: bool) -> float:
        if no_conversion or self.metric:
            return meters
        return meters * constants.MI_PER_KM

    def get_distance(self, no_conversion: bool = False) -> float:
        """Total 2D distance in meters (mile-scaled in imperial mode)."""
        meters = sum(metrics.total_distance(df) for df in self._layer_frames())
        return self._convert_distance(meters, no_conversion)

    def get_moving_distance(self, no_conversion: bool = False) -> float:
        meters = sum(metrics.moving_summary(df)[1] for df in self._layer_frames())
        return self._convert_distance(meters, no_conversion)

    def get_elevation(self) -> float:
        """Elevation gain in meters, or feet in imperial mode."""
        gain = sum(metrics.elevation_gain(df) for df in self._layer_frames())
        return gain if self.metric else gain * constants.FT_PER_M

    def get_moving_time(self) -> int:
        """Moving time in milliseconds."""
        return sum(metrics.moving_summary(df)[0] for df in self._layer_frames())

    def get_moving_speed(self, no_conversion: bool = False) -> float:
        """Moving speed in km/h (mi/h in imperial mode); 0 without moving time."""
        time_ms = self.get_moving_time()
        if time_ms == 0:
            return 0.0
        # meters / (ms / 3600) == km/h
        return self.get_moving_distance(no_conversion) / (time_ms / 3600)

    def get_average_additional_data(self) -> Dict[str, Optional[float]]:
        """
        Average heart rate, ambient temperature and cadence over the points
        that carry each value.

        The result is cached in additional_avg_data for the GPX serializer.

        Returns:
            Dictionary with hr, atemp and cad rounded to one decimal, or
            None for a sensor no point reports.
        """
        points = self.get_points()
        frame = pd.DataFrame(
            {key: pd.Series([getattr(p, key) for p in points], dtype="float64")
             for key in constants.SENSOR_KEYS}
        )
        self.additional_avg_data = {
            key: utils.round_float(frame[key].mean(), digits=1) if frame[key].notna().any() else None
            for key in constants.SENSOR_KEYS
        }
        return self.additional_avg_data

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def change_time_data(self, start_time: datetime, speed_kmh: float) -> None:
        """
        Regenerate every point timestamp from a start time and a speed.

        Each point is placed at start_time plus the time needed to cover its
        cumulative distance from the first point at speed_kmh. A speed that
        is not positive puts every point at start_time.

        Args:
            start_time: Timestamp of the first point.
            speed_kmh: Travel speed in km/h.
        """
        points = self.get_points()
        if not points:
            return
        start = utils.to_utc(start_time)
        distances = metrics.compute_point_metrics(points)["distance_along_m"].to_numpy()
        for point, distance in zip(points, distances):
            offset_ms = constants.MS_PER_HOUR * distance / (1000 * speed_kmh) if speed_kmh > 0 else 0.0
            point.time = start + timedelta(milliseconds=float(offset_ms))
        logger.debug("Trace %d (%s): regenerated %d timestamps from %s at %.2f km/h",
                     self.index, self.name, len(points), start.isoformat(), speed_kmh)

    def time_consistency(self) -> None:
        """
        Repair local timestamp problems before synthesis.

        Backward jumps are clamped to the latest earlier timestamp, and
        points without a timestamp get one interpolated on cumulative
        distance between their timed neighbors (clamped at the ends). The
        result is non-decreasing along the trace.
        Naive timestamps are taken as UTC; every timestamp is left
        timezone-aware.
        Traces without any timestamp are left untouched.
        """
        points = self.get_points()
        if self.first_time_data() == -1:
            return

        times_ms = np.array(
            [utils.to_utc(p.time).timestamp() * 1000 if p.time is not None else np.nan for p in points],
            dtype="float64",
        )
        known = ~np.isnan(times_ms)
        clamped = pd.Series(times_ms).cummax().to_numpy()
        distances = metrics.compute_point_metrics(points)["distance_along_m"].to_numpy()
        interpolated = np.interp(distances, distances[known], clamped[known])
        repaired = np.maximum.accumulate(np.where(known, clamped, interpolated))

        changed = 0
        for point, original, value in zip(points, times_ms, repaired):
            if np.isnan(original) or value != original:
                point.time = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
                changed += 1
            else:
                point.time = utils.to_utc(point.time)
        if changed:
            logger.debug("Trace %d (%s): repaired %d timestamps", self.index, self.name, changed)
