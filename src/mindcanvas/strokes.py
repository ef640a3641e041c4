"""Stroke accumulation for gesture drawing.

Owns the drawing history: committed strokes plus the stroke currently being
drawn. The history only changes through four operations:

- add_point: extend (or start) the in-progress stroke
- finish_stroke: commit the in-progress stroke when drawing ends
- undo: drop the most recent committed stroke
- clear: wipe everything

Coordinates are normalized to [0, 1] (origin top-left, y down) so renderers
can scale to any resolution.

Usage:
    strokes = StrokeAccumulator()
    strokes.add_point(Point(0.1, 0.2), "#eab308")
    strokes.add_point(Point(0.3, 0.2), "#eab308")
    strokes.finish_stroke()
    history = strokes.snapshot()
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Point:
    """A normalized canvas position."""
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict:
        return {"x": round(self.x, 4), "y": round(self.y, 4)}


@dataclass
class Stroke:
    """An ordered run of points drawn in a single color."""
    color: str
    points: list[Point] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "points": [p.to_dict() for p in self.points],
        }


@dataclass(frozen=True)
class DrawingHistory:
    """Read-only view of the drawing for renderers."""
    committed_strokes: tuple[Stroke, ...] = ()
    in_progress: Optional[Stroke] = None

    def to_dict(self) -> dict:
        return {
            "strokes": [s.to_dict() for s in self.committed_strokes],
            "in_progress": self.in_progress.to_dict() if self.in_progress else None,
        }


class StrokeAccumulator:
    """Accumulates draw points into strokes with undo and clear.

    Committed strokes always have at least ``min_stroke_points`` points;
    shorter strokes are dropped when finished. The in-progress stroke keeps
    the color it started with even if the active color changes mid-stroke.
    """

    def __init__(self, min_distance: float = 0.005, min_stroke_points: int = 2):
        self.min_distance = min_distance
        self.min_stroke_points = min_stroke_points

        self._strokes: list[Stroke] = []
        self._current: Optional[Stroke] = None
        self._last_point: Optional[Point] = None

    def add_point(self, point: Point, color: str) -> bool:
        """Add a point to the in-progress stroke.

        Returns False if the point was dropped as jitter (closer than
        ``min_distance`` to the last accepted point).
        """
        if self._last_point is not None:
            if point.distance_to(self._last_point) < self.min_distance:
                return False

        if self._current is None:
            self._current = Stroke(color=color, points=[point])
        else:
            self._current.points.append(point)

        self._last_point = point
        return True

    def finish_stroke(self) -> Optional[Stroke]:
        """End the in-progress stroke. Returns the stroke if it was committed."""
        committed = None
        if self._current is not None and len(self._current.points) >= self.min_stroke_points:
            self._strokes.append(self._current)
            committed = self._current

        self._current = None
        self._last_point = None
        return committed

    def undo(self) -> Optional[Stroke]:
        """Remove the most recently committed stroke, if any."""
        if not self._strokes:
            return None
        return self._strokes.pop()

    def clear(self):
        """Drop all committed strokes and the in-progress stroke."""
        self._strokes = []
        self._current = None
        self._last_point = None

    def snapshot(self) -> DrawingHistory:
        """Get a copy of the drawing history that later edits won't touch."""
        current = None
        if self._current is not None:
            current = Stroke(color=self._current.color, points=list(self._current.points))
        return DrawingHistory(
            committed_strokes=tuple(
                Stroke(color=s.color, points=list(s.points)) for s in self._strokes
            ),
            in_progress=current,
        )

    @property
    def stroke_count(self) -> int:
        return len(self._strokes)

    @property
    def is_drawing(self) -> bool:
        return self._current is not None
