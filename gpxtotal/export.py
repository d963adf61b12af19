"""
GPX Export for Multi-Trace Aggregation

This module renders a trace collection into GPX 1.1 documents with Garmin
TrackPointExtension sensor data, either one document per trace or a single
merged document.
"""

import io
import logging
from typing import Dict, List, Optional, Sequence

from . import constants
from . import utils
from .utils import encode_string

logger = logging.getLogger(__name__)

GPX_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<gpx xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns="{gpx_ns}" '
    'xsi:schemaLocation="{gpx_ns} http://www.topografix.com/GPX/1/1/gpx.xsd '
    '{gpxx_ns} http://www.garmin.com/xmlschemas/GpxExtensionsv3.xsd '
    '{gpxtpx_ns} http://www.garmin.com/xmlschemas/TrackPointExtensionv1.xsd" '
    'xmlns:gpxtpx="{gpxtpx_ns}" xmlns:gpxx="{gpxx_ns}" version="1.1" creator="{creator}">\n'
    '<metadata>\n'
    '    <name>{name}</name>\n'
    '    <author>{creator}</author>\n'
    '    <link href="{link}"/>\n'
    '    <type>{activity}</type>\n'
    '</metadata>\n'
    '<trk>\n'
)


def build_header(cycling: bool) -> str:
    """GPX envelope up to and including the opening <trk> tag."""
    return GPX_HEADER.format(
        gpx_ns=constants.GPX_NS,
        gpxx_ns=constants.GPXX_NS,
        gpxtpx_ns=constants.GPXTPX_NS,
        creator=constants.GPX_CREATOR,
        link=constants.GPX_LINK,
        name=constants.ACTIVITY_NAME,
        activity="Cycling" if cycling else "Running",
    )


class GpxSerializer:
    """
    Render traces as GPX documents.

    Args:
        traces: Traces in export order.
        cycling: Activity type written to the metadata block.
        aggregate_data: Collection-wide sensor averages, the last fallback
            for points and traces without a sensor value.
    """

    def __init__(self, traces: Sequence, cycling: bool = True,
                 aggregate_data: Optional[Dict[str, Optional[float]]] = None):
        self.traces = list(traces)
        self.cycling = cycling
        self.aggregate_data = aggregate_data or {}

    def render(self, merge_all: bool, include_time: bool, include_hr: bool,
               include_atemp: bool, include_cad: bool,
               single_trace_index: Optional[int] = None) -> List[Dict[str, str]]:
        """
        Render the traces.

        One document per trace when merge_all is False, when only one trace
        exists, or when single_trace_index selects a trace; otherwise a
        single track.gpx holding every trace.

        Args:
            merge_all: Merge all traces into one document.
            include_time: Write point timestamps.
            include_hr: Write heart rate extensions.
            include_atemp: Write ambient temperature extensions.
            include_cad: Write cadence extensions.
            single_trace_index: Export only this trace.

        Returns:
            List of {"name": filename, "text": GPX document} dictionaries.
        """
        flags = {"hr": include_hr, "atemp": include_atemp, "cad": include_cad}
        if single_trace_index is not None:
            indices = [single_trace_index]
        else:
            indices = list(range(len(self.traces)))
        per_file = single_trace_index is not None or not merge_all or len(self.traces) == 1

        header = build_header(self.cycling)
        output = []
        segments = io.StringIO()
        waypoints = io.StringIO()

        for idx in indices:
            trace = self.traces[idx]
            self._write_segments(segments, trace, include_time, flags)
            self._write_waypoints(waypoints, trace)

            if per_file:
                output.append({
                    "name": f"{trace.name}.gpx",
                    "text": self._document(header, segments, waypoints, self._color_block(trace)),
                })
                segments = io.StringIO()
                waypoints = io.StringIO()

        if not per_file:
            output.append({
                "name": constants.MERGED_FILENAME,
                "text": self._document(header, segments, waypoints, ""),
            })

        for document in output:
            logger.info("Rendered %s (%d bytes)", document["name"], len(document["text"]))
        return output

    @staticmethod
    def _document(header: str, segments: io.StringIO, waypoints: io.StringIO, color: str) -> str:
        return header + segments.getvalue() + "</trk>\n" + waypoints.getvalue() + color + "</gpx>\n"

    @staticmethod
    def _color_block(trace) -> str:
        if not trace.set_color or not trace.normal_style.color:
            return ""
        return (
            "<extensions>\n"
            f"    <color>{encode_string(trace.normal_style.color)}</color>\n"
            "</extensions>\n"
        )

    def _sensor_fallbacks(self, trace) -> Dict[str, Optional[float]]:
        trace_data = trace.additional_avg_data
        if trace_data is None:
            trace_data = trace.get_average_additional_data()
        return {
            key: utils.first_present(trace_data.get(key), self.aggregate_data.get(key))
            for key in constants.SENSOR_KEYS
        }

    def _write_segments(self, buffer: io.StringIO, trace, include_time: bool,
                        flags: Dict[str, bool]) -> None:
        fallbacks = self._sensor_fallbacks(trace)
        for layer in trace.get_layers():
            if not layer.points:
                continue
            buffer.write("    <trkseg>\n")
            for point in layer.points:
                buffer.write(f'    <trkpt lat="{point.lat:.6f}" lon="{point.lon:.6f}">\n')
                if point.ele is not None:
                    buffer.write(f"        <ele>{point.ele:.1f}</ele>\n")
                if include_time and point.time is not None:
                    buffer.write(f"        <time>{utils.format_iso_utc(point.time)}</time>\n")

                sensors = []
                for key in constants.SENSOR_KEYS:
                    if not flags[key]:
                        continue
                    value = utils.first_present(getattr(point, key), fallbacks[key])
                    if value is not None:
                        sensors.append(f"                <gpxtpx:{key}>{utils.format_number(value)}</gpxtpx:{key}>\n")
                if sensors:
                    buffer.write("        <extensions>\n")
                    buffer.write("            <gpxtpx:TrackPointExtension>\n")
                    buffer.write("".join(sensors))
                    buffer.write("            </gpxtpx:TrackPointExtension>\n")
                    buffer.write("        </extensions>\n")
                buffer.write("    </trkpt>\n")
            buffer.write("    </trkseg>\n")

    @staticmethod
    def _write_waypoints(buffer: io.StringIO, trace) -> None:
        for waypoint in trace.waypoints:
            buffer.write(f'<wpt lat="{waypoint.lat:.6f}" lon="{waypoint.lon:.6f}">\n')
            if waypoint.meta_ele is not None:
                buffer.write(f"    <ele>{waypoint.meta_ele:.1f}</ele>\n")
            elif waypoint.ele is not None and waypoint.ele >= 0:
                buffer.write(f"    <ele>{waypoint.ele:.1f}</ele>\n")
            buffer.write(f"    <name>{encode_string(waypoint.name)}</name>\n")
            buffer.write(f"    <desc>{encode_string(waypoint.desc)}</desc>\n")
            buffer.write(f"    <cmt>{encode_string(waypoint.cmt)}</cmt>\n")
            buffer.write(f"    <sym>{encode_string(waypoint.sym)}</sym>\n")
            buffer.write("</wpt>\n")
