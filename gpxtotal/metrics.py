"""
Metrics Computation for Multi-Trace GPX Aggregation

This module provides the per-trace geometry primitives: great-circle point
distances, a per-point metric frame, elevation gain and moving time/distance.
"""

import numpy as np
import pandas as pd
from typing import Sequence, Tuple
from . import constants


def haversine_m(lat1, lon1, lat2, lon2):
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula to compute distance along the surface of a
    sphere. Works on scalars as well as numpy arrays or pandas Series.

    Args:
        lat1, lon1: Latitude and longitude of first point in degrees.
        lat2, lon2: Latitude and longitude of second point in degrees.

    Returns:
        Distance in meters between the two points.
    """
    R = constants.EARTH_RADIUS_M
    lat1_rad, lon1_rad = np.deg2rad(lat1), np.deg2rad(lon1)
    lat2_rad, lon2_rad = np.deg2rad(lat2), np.deg2rad(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return R * c


def distance_2d(a, b) -> float:
    """Distance in meters between two trace points, ignoring elevation."""
    return float(haversine_m(a.lat, a.lon, b.lat, b.lon))


def compute_point_metrics(points: Sequence) -> pd.DataFrame:
    """
    Build a per-point metric frame from an ordered point sequence.

    Args:
        points: Ordered trace points (objects with lat, lon, ele, time).

    Returns:
        DataFrame with columns lat, lon, ele, time, segment_distance_m,
        distance_along_m, dt_s and speed_kmh. The first row has a zero
        segment distance; dt_s and speed_kmh are NaN where either end of
        the step has no timestamp.
    """
    df = pd.DataFrame({
        "lat": [p.lat for p in points],
        "lon": [p.lon for p in points],
        "ele": pd.Series([p.ele for p in points], dtype="float64"),
        "time": pd.to_datetime(pd.Series([p.time for p in points], dtype=object), utc=True),
    })
    if df.empty:
        for column in ("segment_distance_m", "distance_along_m", "dt_s", "speed_kmh"):
            df[column] = pd.Series(dtype="float64")
        return df

    segment = haversine_m(df["lat"].shift(), df["lon"].shift(), df["lat"], df["lon"])
    df["segment_distance_m"] = segment.fillna(0.0)
    df["distance_along_m"] = df["segment_distance_m"].cumsum()

    dt = df["time"].diff().dt.total_seconds()
    df["dt_s"] = dt
    df["speed_kmh"] = (df["segment_distance_m"] / dt.where(dt > 0)) * 3.6

    return df


def total_distance(df: pd.DataFrame) -> float:
    """Sum of step distances in meters."""
    if df.empty:
        return 0.0
    return float(df["segment_distance_m"].sum())


def elevation_gain(df: pd.DataFrame) -> float:
    """
    Sum of positive elevation deltas in meters.

    Points without elevation are skipped rather than treated as zero.
    """
    ele = df["ele"].dropna()
    if len(ele) < 2:
        return 0.0
    return float(ele.diff().clip(lower=0).sum())


def moving_summary(df: pd.DataFrame,
                   threshold_kmh: float = constants.MOVING_SPEED_THRESHOLD_KMH) -> Tuple[int, float]:
    """
    Compute moving time and moving distance.

    A step is moving when both ends are timed, time advances, and the step
    speed is at or above threshold_kmh.

    Args:
        df: Frame from compute_point_metrics().
        threshold_kmh: Minimum speed for a step to count as moving.

    Returns:
        Tuple of (moving_time_ms, moving_distance_m).
    """
    if df.empty:
        return 0, 0.0
    moving = (df["dt_s"] > 0) & (df["speed_kmh"] >= threshold_kmh)
    moving_time_ms = int(round(float(df.loc[moving, "dt_s"].sum()) * 1000))
    moving_distance = float(df.loc[moving, "segment_distance_m"].sum())
    return moving_time_ms, moving_distance
