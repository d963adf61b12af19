"""
Utility Functions for Multi-Trace GPX Aggregation

This module provides helper functions for value conversion, rounding, XML
escaping and time formatting used throughout the aggregation pipeline.
"""

import numpy as np
from datetime import datetime, timezone
from typing import Optional


def safe_float(value) -> Optional[float]:
    """
    Safely convert a value to float, returning None on failure.

    Args:
        value: Value to convert (string, number, etc.).

    Returns:
        Float value, or None if conversion fails or the value is NaN.
    """
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if np.isnan(result):
        return None
    return result


def safe_int(value) -> Optional[int]:
    """Convert a value to a rounded int, returning None on failure."""
    result = safe_float(value)
    if result is None:
        return None
    return int(round(result))


def round_float(value, digits: int = 3) -> Optional[float]:
    """
    Round a float value, handling None, NaN, and Inf.

    Args:
        value: Value to round.
        digits: Number of decimal places. Default 3.

    Returns:
        Rounded float, or None if value is None, NaN, or Inf.
    """
    if value is None or (isinstance(value, float) and (np.isnan(value) or np.isinf(value))):
        return None
    return round(float(value), digits)


def first_present(*values):
    """
    Return the first value that is not None.

    Used for the sensor fallback chain: point value, then trace average,
    then aggregate average.
    """
    for value in values:
        if value is not None:
            return value
    return None


def encode_string(value: Optional[str]) -> str:
    """
    Escape XML-special characters for GPX text content.

    Args:
        value: Raw text. None is treated as an empty string.

    Returns:
        Text with & < > " ' replaced by their entity references.
    """
    if value is None:
        return ""
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def format_number(value) -> str:
    """Format a sensor value, dropping a trailing .0 on whole numbers."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso_utc(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: 2021-05-01T08:30:00.250Z
    """
    value = to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def ms_to_time(duration_ms: float) -> str:
    """Format a duration in milliseconds as hours and minutes, e.g. 2h05."""
    total_minutes = int(duration_ms // (1000 * 60))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h{minutes:02d}"


def ms_to_time_min(duration_ms: float) -> str:
    """Format a duration in milliseconds as minutes and seconds, e.g. 5:07."""
    total_seconds = int(duration_ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"
