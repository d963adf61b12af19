"""
Trace Color Allocation

Assigns distinct display colors to traces from a fixed palette, always
handing out the least-used color (ties broken by palette order).
"""

from typing import Dict, List, Optional, Sequence
from . import constants


class ColorAllocator:
    """Least-usage color allocator over a fixed palette."""

    def __init__(self, palette: Optional[Sequence[str]] = None):
        palette = list(palette) if palette is not None else list(constants.TRACE_COLORS)
        if not palette:
            raise ValueError("Color palette must not be empty")
        self.colors: List[Dict] = [{"color": color, "count": 0} for color in palette]

    def issue(self) -> str:
        """
        Issue the least-used color.

        Returns:
            The first palette color with the lowest usage count.
        """
        entry = min(self.colors, key=lambda c: c["count"])
        entry["count"] += 1
        return entry["color"]

    def release(self, color: Optional[str]) -> None:
        """Give a color back. Unknown colors are ignored."""
        entry = self._find(color)
        if entry is not None and entry["count"] > 0:
            entry["count"] -= 1

    def claim(self, color: Optional[str]) -> None:
        """Count a caller-chosen color without least-usage selection."""
        entry = self._find(color)
        if entry is not None:
            entry["count"] += 1

    def reassign(self, old_color: Optional[str], new_color: Optional[str]) -> None:
        """Release old_color and claim new_color."""
        self.release(old_color)
        self.claim(new_color)

    def counts(self) -> Dict[str, int]:
        return {entry["color"]: entry["count"] for entry in self.colors}

    def _find(self, color: Optional[str]) -> Optional[Dict]:
        for entry in self.colors:
            if entry["color"] == color:
                return entry
        return None
