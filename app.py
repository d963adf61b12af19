"""
FastAPI Web Application for Multi-Trace GPX Aggregation

This module provides a REST API over a single editing session: loading and
arranging traces, reading aggregate statistics, and exporting the
collection as GPX documents.
"""

import threading
from typing import Optional
from urllib.parse import quote
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from gpxtotal import gpx_total


# ============================================================================
# APPLICATION SETUP
# ============================================================================

app = FastAPI()

# One session per process; sync endpoints run in a thread pool, so mutations
# and renders are serialized.
aggregator = gpx_total.Aggregator()
session_lock = threading.Lock()


class TraceUpload(BaseModel):
    name: str
    gpx: str


class SwapRequest(BaseModel):
    i: int
    j: int


class ColorRequest(BaseModel):
    color: str


class FocusRequest(BaseModel):
    index: Optional[int] = None


def attachment_header(filename: str) -> str:
    """
    Build a Content-Disposition value for a user-named download.

    The quoted filename is an ASCII fallback with quotes, backslashes and
    non-ASCII characters replaced by underscores; filename* carries the
    exact name, percent-encoded.
    """
    fallback = "".join(
        "_" if ch in "\"\\" or not 32 <= ord(ch) < 127 else ch for ch in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def check_index(index: int) -> None:
    """
    Validate a trace index against the current collection.

    Raises:
        HTTPException: If index is out of range (status 404).
    """
    if not 0 <= index < len(aggregator.traces):
        raise HTTPException(status_code=404, detail=f"Trace {index} not found")


# ============================================================================
# API ROUTES - TRACE MANAGEMENT
# ============================================================================

@app.get("/api/traces")
def get_traces():
    """
    Get the per-trace summaries, in collection order.

    Returns:
        List of trace record dictionaries.
    """
    with session_lock:
        return [gpx_total.build_trace_record(trace) for trace in aggregator.traces]


@app.post("/api/traces")
def add_trace(upload: TraceUpload):
    """
    Add a GPX document as a new trace.

    Args:
        upload: Trace name and GPX text.

    Returns:
        The new trace's summary record.

    Raises:
        HTTPException: If the GPX cannot be parsed (status 400).
    """
    with session_lock:
        try:
            trace = aggregator.add_trace(upload.gpx, upload.name)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return gpx_total.build_trace_record(trace)


@app.delete("/api/traces")
def clear_traces():
    """Remove every trace."""
    with session_lock:
        aggregator.clear()
        return {"traces": 0}


@app.delete("/api/traces/{index}")
def remove_trace(index: int):
    """
    Remove one trace; later traces move down one index.

    Raises:
        HTTPException: If index is not found (status 404).
    """
    with session_lock:
        check_index(index)
        aggregator.remove_trace(index)
        return {"traces": len(aggregator.traces)}


@app.post("/api/traces/swap")
def swap_traces(request: SwapRequest):
    """Exchange the positions of two traces."""
    with session_lock:
        check_index(request.i)
        check_index(request.j)
        aggregator.swap_traces(request.i, request.j)
        return [trace.name for trace in aggregator.traces]


@app.post("/api/traces/{index}/color")
def recolor_trace(index: int, request: ColorRequest):
    """Set an explicit color on a trace."""
    with session_lock:
        check_index(index)
        aggregator.recolor_trace(index, request.color)
        return gpx_total.build_trace_record(aggregator.traces[index])


@app.post("/api/focus")
def set_focus(request: FocusRequest):
    """Focus a single trace, or the aggregate view when index is null."""
    with session_lock:
        if request.index is None:
            aggregator.focus_aggregate()
        else:
            check_index(request.index)
            aggregator.focus_trace(request.index)
        return {"focus": request.index}


# ============================================================================
# API ROUTES - DATA RETRIEVAL
# ============================================================================

@app.get("/api/summary")
def get_summary():
    """
    Get the complete session summary.

    Returns:
        Dictionary with per-trace records, totals, units, activity type,
        focus and combine availability.
    """
    with session_lock:
        return gpx_total.build_session_payload(aggregator)


# ============================================================================
# API ROUTES - EXPORT
# ============================================================================

@app.get("/api/export")
def export_gpx(
    merge: bool = Query(False, description="Merge all traces into one track.gpx"),
    time: bool = Query(True, description="Include timestamps"),
    hr: bool = Query(False, description="Include heart rate"),
    atemp: bool = Query(False, description="Include ambient temperature"),
    cad: bool = Query(False, description="Include cadence"),
    trace: Optional[int] = Query(None, description="Export only this trace index"),
):
    """
    Export the collection as GPX documents.

    Including time may rewrite trace timestamps (synthesis for untimed
    traces and ordering of merged traces).

    Returns:
        List of {"name", "text"} dictionaries.

    Raises:
        HTTPException: If there is nothing to export (status 404).
    """
    with session_lock:
        if not aggregator.traces:
            raise HTTPException(status_code=404, detail="No traces loaded")
        if trace is not None:
            check_index(trace)
        return aggregator.render(merge, time, hr, atemp, cad, trace)


@app.get("/api/export/{index}")
def export_trace_file(index: int,
                      time: bool = Query(True, description="Include timestamps"),
                      hr: bool = Query(False, description="Include heart rate"),
                      atemp: bool = Query(False, description="Include ambient temperature"),
                      cad: bool = Query(False, description="Include cadence")):
    """
    Download a single trace as a GPX file.

    Returns:
        PlainTextResponse: GPX file with Content-Disposition header for
        download, named after the trace.

    Raises:
        HTTPException: If index is not found (status 404).
    """
    with session_lock:
        check_index(index)
        document = aggregator.render(False, time, hr, atemp, cad, index)[0]

    headers = {"Content-Disposition": attachment_header(document["name"])}
    return PlainTextResponse(
        document["text"],
        media_type="application/gpx+xml",
        headers=headers
    )


# ============================================================================
# RUN INSTRUCTIONS
# ============================================================================
# Run with: uvicorn app:app --reload
