"""
Data Loading and Parsing for Multi-Trace GPX Aggregation

This module parses GPX documents into layers of trace points, waypoints and
the optional per-file trace color, reading Garmin TrackPointExtension sensor
values (heart rate, ambient temperature, cadence) along the way.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import gpxpy
import gpxpy.gpx

from . import utils
from .model import Layer, ParsedGpx, TracePoint, Waypoint

logger = logging.getLogger(__name__)

# Extension tag (local name) -> sensor field
SENSOR_TAGS = {
    "hr": "hr",
    "heartrate": "hr",
    "atemp": "atemp",
    "temp": "atemp",
    "cad": "cad",
    "cadence": "cad",
}


def local_tag(element) -> str:
    """Strip the namespace from an ElementTree tag."""
    tag = element.tag
    return tag.split("}", 1)[1] if "}" in tag else tag


def read_point_sensors(point) -> Dict[str, Optional[float]]:
    """
    Extract heart rate, ambient temperature and cadence from point extensions.

    Args:
        point: gpxpy track or route point.

    Returns:
        Dictionary with hr, atemp and cad keys; missing values are None.
    """
    values = {"hr": None, "atemp": None, "cad": None}
    for ext in getattr(point, "extensions", None) or []:
        for child in ext.iter():
            key = SENSOR_TAGS.get(local_tag(child).lower())
            if key is None or child.text is None:
                continue
            if key == "atemp":
                values[key] = utils.safe_float(child.text.strip())
            else:
                values[key] = utils.safe_int(child.text.strip())
    return values


def read_color(gpx: gpxpy.gpx.GPX) -> Optional[str]:
    """Return the text of a <color> extension at document or track level."""
    extension_lists = [gpx.extensions] + [track.extensions for track in gpx.tracks]
    for extensions in extension_lists:
        for ext in extensions or []:
            for child in ext.iter():
                if local_tag(child) == "color" and child.text and child.text.strip():
                    return child.text.strip()
    return None


def convert_point(point) -> TracePoint:
    """Convert a gpxpy point into a TracePoint."""
    sensors = read_point_sensors(point)
    return TracePoint(
        lat=float(point.latitude),
        lon=float(point.longitude),
        ele=utils.safe_float(point.elevation),
        time=utils.to_utc(point.time) if point.time is not None else None,
        hr=sensors["hr"],
        atemp=sensors["atemp"],
        cad=sensors["cad"],
    )


def parse_gpx(source: Union[str, bytes]) -> ParsedGpx:
    """
    Parse a GPX document.

    Every track segment and every route becomes one layer, in document order.

    Args:
        source: GPX XML as text or UTF-8 bytes.

    Returns:
        ParsedGpx with layers, waypoints, color and document name.

    Raises:
        ValueError: If the document cannot be parsed or holds no points.
    """
    if isinstance(source, bytes):
        source = source.decode("utf-8")

    try:
        gpx = gpxpy.parse(source)
    except gpxpy.gpx.GPXException as exc:
        raise ValueError(f"Unable to parse GPX: {exc}") from exc

    parsed = ParsedGpx(color=read_color(gpx), name=gpx.name)

    for track in gpx.tracks:
        for segment in track.segments:
            if segment.points:
                parsed.layers.append(Layer(points=[convert_point(p) for p in segment.points]))

    for route in gpx.routes:
        if route.points:
            parsed.layers.append(Layer(points=[convert_point(p) for p in route.points]))

    for wpt in gpx.waypoints:
        parsed.waypoints.append(Waypoint(
            lat=float(wpt.latitude),
            lon=float(wpt.longitude),
            name=wpt.name or "",
            desc=wpt.description or "",
            cmt=wpt.comment or "",
            sym=wpt.symbol or "",
            ele=utils.safe_float(wpt.elevation),
        ))

    if not parsed.layers:
        raise ValueError("GPX document contains no track or route points")

    logger.debug(
        "Parsed GPX: %d layer(s), %d point(s), %d waypoint(s)",
        len(parsed.layers),
        sum(len(layer.points) for layer in parsed.layers),
        len(parsed.waypoints),
    )
    return parsed


def load_gpx_file(path: Path) -> ParsedGpx:
    """
    Load and parse a GPX file from disk.

    Args:
        path: Path to the .gpx file.

    Returns:
        ParsedGpx for the file contents.
    """
    with Path(path).open("r", encoding="utf-8") as file:
        return parse_gpx(file.read())
