"""
Annotation models for the XRay Annotator.

This module provides the data model shared by every other editor module:
- AnnotationKind: closed set of tool/shape identifiers
- Annotation: immutable record of a committed shape
- Draft: in-progress geometry owned by a tool, never stored
- Commit validity rules (point count and minimum size per kind)
- Conversion to and from the plain records handed to external persistence

Points are QPointF instances in image space. They are never mutated in
place; moving an annotation produces a new Annotation with new points.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import uuid4

from PySide6.QtCore import QPointF


class AnnotationKind(Enum):
    """Enum for tool and annotation kinds."""
    # Pseudo-tools, never persisted
    SELECT = "select"
    ERASER = "eraser"
    # Persisted shapes
    MARKER = "marker"
    BOX = "box"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    LINE = "line"
    RULER = "ruler"
    ANGLE = "angle"
    FREEHAND = "freehand"
    TEXT = "text"

    @property
    def is_shape(self) -> bool:
        """True for kinds that are stored as annotations."""
        return self in SHAPE_KINDS

    @classmethod
    def parse(cls, value: Any) -> Optional["AnnotationKind"]:
        """Resolve a kind or identifier string, or None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


SHAPE_KINDS = frozenset({
    AnnotationKind.MARKER,
    AnnotationKind.BOX,
    AnnotationKind.CIRCLE,
    AnnotationKind.ELLIPSE,
    AnnotationKind.LINE,
    AnnotationKind.RULER,
    AnnotationKind.ANGLE,
    AnnotationKind.FREEHAND,
    AnnotationKind.TEXT,
})

# Two-point kinds drawn with a press-drag-release gesture
DRAG_SHAPE_KINDS = frozenset({
    AnnotationKind.BOX,
    AnnotationKind.CIRCLE,
    AnnotationKind.ELLIPSE,
    AnnotationKind.LINE,
    AnnotationKind.RULER,
})

DEFAULT_COLORS: Dict[AnnotationKind, str] = {
    AnnotationKind.MARKER: "#f43f5e",    # Rose
    AnnotationKind.BOX: "#22c55e",       # Green
    AnnotationKind.CIRCLE: "#3b82f6",    # Blue
    AnnotationKind.ELLIPSE: "#ec4899",   # Pink
    AnnotationKind.LINE: "#f59e0b",      # Amber
    AnnotationKind.FREEHAND: "#ef4444",  # Red
    AnnotationKind.RULER: "#8b5cf6",     # Purple
    AnnotationKind.ANGLE: "#06b6d4",     # Cyan
    AnnotationKind.TEXT: "#a855f7",      # Violet
    AnnotationKind.SELECT: "#ffffff",
    AnnotationKind.ERASER: "#ffffff",
}


def new_annotation_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class Annotation:
    """
    A committed annotation.

    Attributes:
        id: Opaque unique identifier.
        kind: One of the shape kinds.
        points: Defining points in image space.
        color: Display color as a "#rrggbb" string.
        text: Body of a text annotation, None for other kinds.
    """
    kind: AnnotationKind
    points: Tuple[QPointF, ...]
    color: str = "#ffffff"
    text: Optional[str] = None
    id: str = field(default_factory=new_annotation_id)

    def translated(self, dx: float, dy: float) -> "Annotation":
        """Return a copy with every point moved by (dx, dy)."""
        delta = QPointF(dx, dy)
        return replace(self, points=tuple(QPointF(p) + delta for p in self.points))

    def is_valid(self) -> bool:
        return is_valid_geometry(self.kind, self.points, self.text)

    def to_record(self) -> Dict[str, Any]:
        """Plain-data record for external persistence."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "points": [{"x": p.x(), "y": p.y()} for p in self.points],
            "color": self.color,
            "text": self.text,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Annotation":
        """
        Rebuild an annotation from a record produced by to_record().

        Raises:
            ValueError: If the kind is unknown or not a shape kind.
        """
        kind = AnnotationKind.parse(record.get("kind"))
        if kind is None or not kind.is_shape:
            raise ValueError(f"Not a persisted annotation kind: {record.get('kind')!r}")
        points = tuple(QPointF(float(p["x"]), float(p["y"])) for p in record.get("points", []))
        return cls(
            kind=kind,
            points=points,
            color=record.get("color") or DEFAULT_COLORS[kind],
            text=record.get("text"),
            id=str(record.get("id") or new_annotation_id()),
        )


@dataclass(frozen=True)
class Draft:
    """In-progress geometry of the active gesture, rendered but never stored."""
    kind: AnnotationKind
    points: Tuple[QPointF, ...]
    color: str
    text: Optional[str] = None

    def to_annotation(self) -> Annotation:
        return Annotation(kind=self.kind, points=self.points, color=self.color, text=self.text)


# ─── Commit Validity ──────────────────────────────────────────────────────

def _distance(a: QPointF, b: QPointF) -> float:
    return math.hypot(b.x() - a.x(), b.y() - a.y())


def _valid_marker(points: Sequence[QPointF], text: Optional[str]) -> bool:
    return len(points) == 1


def _valid_box(points: Sequence[QPointF], text: Optional[str]) -> bool:
    if len(points) != 2:
        return False
    return points[1].x() != points[0].x() and points[1].y() != points[0].y()


def _valid_segment(points: Sequence[QPointF], text: Optional[str]) -> bool:
    # Circle radius and line/ruler length share the same rule
    return len(points) == 2 and _distance(points[0], points[1]) > 0


def _valid_ellipse(points: Sequence[QPointF], text: Optional[str]) -> bool:
    # Both radii must be non-zero
    return _valid_box(points, text)


def _valid_angle(points: Sequence[QPointF], text: Optional[str]) -> bool:
    return len(points) == 3


def _valid_freehand(points: Sequence[QPointF], text: Optional[str]) -> bool:
    return len(points) >= 2


def _valid_text(points: Sequence[QPointF], text: Optional[str]) -> bool:
    return len(points) == 2 and bool(text and text.strip())


_VALIDATORS: Dict[AnnotationKind, Callable[[Sequence[QPointF], Optional[str]], bool]] = {
    AnnotationKind.MARKER: _valid_marker,
    AnnotationKind.BOX: _valid_box,
    AnnotationKind.CIRCLE: _valid_segment,
    AnnotationKind.ELLIPSE: _valid_ellipse,
    AnnotationKind.LINE: _valid_segment,
    AnnotationKind.RULER: _valid_segment,
    AnnotationKind.ANGLE: _valid_angle,
    AnnotationKind.FREEHAND: _valid_freehand,
    AnnotationKind.TEXT: _valid_text,
}


def is_valid_geometry(
    kind: AnnotationKind,
    points: Sequence[QPointF],
    text: Optional[str] = None,
) -> bool:
    """
    Check the commit-time invariant for a kind.

    Pseudo-tools (select, eraser) are never valid annotations.
    """
    validator = _VALIDATORS.get(kind)
    if validator is None:
        return False
    return validator(points, text)


def annotations_to_records(annotations: Iterable[Annotation]) -> List[Dict[str, Any]]:
    return [a.to_record() for a in annotations]
