"""
Data Model for Multi-Trace GPX Aggregation

This module defines the plain records a trace is made of: track points,
track segments ("layers"), waypoints and the trace display style.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class TracePoint:
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[datetime] = None
    hr: Optional[int] = None
    atemp: Optional[float] = None
    cad: Optional[int] = None


@dataclass
class Layer:
    """A track segment. Layers without points are skipped on export."""
    points: Optional[List[TracePoint]] = None


@dataclass
class Waypoint:
    """
    A named point of interest attached to a trace.

    meta_ele is an elevation looked up from attached point metadata and
    takes priority over the waypoint's own ele field.
    """
    lat: float
    lon: float
    name: str = ""
    desc: str = ""
    cmt: str = ""
    sym: str = ""
    ele: Optional[float] = None
    meta_ele: Optional[float] = None


@dataclass
class TraceStyle:
    color: Optional[str] = None
    weight: int = 3
    opacity: float = 1.0


@dataclass
class ParsedGpx:
    layers: List[Layer] = field(default_factory=list)
    waypoints: List[Waypoint] = field(default_factory=list)
    color: Optional[str] = None
    name: Optional[str] = None
