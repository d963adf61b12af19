"""
Constants for Multi-Trace GPX Aggregation

This module defines the palette, thresholds, unit factors and GPX envelope
values used throughout the aggregation and export system.
"""

# Trace colors handed out by the least-usage allocator, in tie-break order
TRACE_COLORS = [
    "#ff0000",
    "#0000ff",
    "#46e646",
    "#00ccff",
    "#ff9900",
    "#ff00ff",
    "#ffff00",
    "#288228",
    "#9933ff",
    "#50f0be",
    "#8c645a",
]

# Earth radius in meters used for 2D point distances
EARTH_RADIUS_M = 6371000.0

# A step counts as moving at or above this speed
MOVING_SPEED_THRESHOLD_KMH = 1.0

# Unit conversion factors (imperial display mode)
MI_PER_KM = 0.621371
FT_PER_M = 3.28084

MS_PER_HOUR = 1000 * 60 * 60

# Sensor fields carried by Garmin TrackPointExtension
SENSOR_KEYS = ("hr", "atemp", "cad")

# GPX envelope
GPX_NS = "http://www.topografix.com/GPX/1/1"
GPXTPX_NS = "http://www.garmin.com/xmlschemas/TrackPointExtension/v1"
GPXX_NS = "http://www.garmin.com/xmlschemas/GpxExtensions/v3"
GPX_CREATOR = "gpxtotal"
ACTIVITY_NAME = "Activity"
GPX_LINK = "https://gpxstudio.github.io"
MERGED_FILENAME = "track.gpx"
