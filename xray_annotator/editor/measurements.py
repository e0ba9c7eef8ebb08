"""
Measurement helpers for annotations.

Pure geometry: lengths, angles, areas and bounding boxes in image-space
pixels, plus the per-kind dimension table shown for the selected shape.
"""

import math
from typing import Callable, Dict, List, Sequence, Tuple, Union

from PySide6.QtCore import QPointF, QRectF

from xray_annotator.editor.annotations import Annotation, AnnotationKind

Number = Union[int, float]


def length(p0: QPointF, p1: QPointF) -> float:
    """Euclidean distance between two points."""
    return math.hypot(p1.x() - p0.x(), p1.y() - p0.y())


def angle_deg(start: QPointF, vertex: QPointF, end: QPointF) -> float:
    """
    Angle at vertex between the arms towards start and end, in degrees.

    Returns 0 when either arm has zero length.
    """
    v1x, v1y = start.x() - vertex.x(), start.y() - vertex.y()
    v2x, v2y = end.x() - vertex.x(), end.y() - vertex.y()

    len1 = math.hypot(v1x, v1y)
    len2 = math.hypot(v2x, v2y)
    if len1 == 0 or len2 == 0:
        return 0.0

    cos_angle = max(-1.0, min(1.0, (v1x * v2x + v1y * v2y) / (len1 * len2)))
    return math.degrees(math.acos(cos_angle))


def box_size(p0: QPointF, p1: QPointF) -> Tuple[float, float]:
    """Absolute (width, height) of the rectangle spanned by two corners."""
    return abs(p1.x() - p0.x()), abs(p1.y() - p0.y())


def box_area(p0: QPointF, p1: QPointF) -> float:
    w, h = box_size(p0, p1)
    return w * h


def circle_area(radius: float) -> float:
    return math.pi * radius * radius


def ellipse_radii(p0: QPointF, p1: QPointF) -> Tuple[float, float]:
    """Half the absolute axis deltas of the bounding corners."""
    w, h = box_size(p0, p1)
    return w / 2, h / 2


def ellipse_area(rx: float, ry: float) -> float:
    return math.pi * rx * ry


def bounding_box(points: Sequence[QPointF]) -> QRectF:
    """
    Componentwise min/max over the points.

    Returns a null QRectF for an empty sequence.
    """
    if not points:
        return QRectF()
    xs = [p.x() for p in points]
    ys = [p.y() for p in points]
    return QRectF(QPointF(min(xs), min(ys)), QPointF(max(xs), max(ys)))


# ─── Per-kind Dimensions ──────────────────────────────────────────────────

def _marker_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    return {"x": points[0].x(), "y": points[0].y()}


def _box_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    w, h = box_size(points[0], points[1])
    return {"width": w, "height": h, "area": w * h}


def _circle_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    radius = length(points[0], points[1])
    return {"radius": radius, "diameter": radius * 2, "area": circle_area(radius)}


def _ellipse_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    rx, ry = ellipse_radii(points[0], points[1])
    return {"width": rx * 2, "height": ry * 2, "area": ellipse_area(rx, ry)}


def _line_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    return {"length": length(points[0], points[1])}


def _angle_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    start, vertex, end = points[0], points[1], points[2]
    return {
        "angle": angle_deg(start, vertex, end),
        "line1_length": length(start, vertex),
        "line2_length": length(vertex, end),
    }


def _text_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    w, h = box_size(points[0], points[1])
    return {"width": w, "height": h}


def _freehand_dimensions(points: Sequence[QPointF]) -> Dict[str, Number]:
    rect = bounding_box(points)
    return {
        "bounding_width": rect.width(),
        "bounding_height": rect.height(),
        "point_count": len(points),
    }


# Minimum point count and calculator per shape kind
_DIMENSIONS: Dict[AnnotationKind, Tuple[int, Callable[[Sequence[QPointF]], Dict[str, Number]]]] = {
    AnnotationKind.MARKER: (1, _marker_dimensions),
    AnnotationKind.BOX: (2, _box_dimensions),
    AnnotationKind.CIRCLE: (2, _circle_dimensions),
    AnnotationKind.ELLIPSE: (2, _ellipse_dimensions),
    AnnotationKind.LINE: (2, _line_dimensions),
    AnnotationKind.RULER: (2, _line_dimensions),
    AnnotationKind.ANGLE: (3, _angle_dimensions),
    AnnotationKind.FREEHAND: (2, _freehand_dimensions),
    AnnotationKind.TEXT: (2, _text_dimensions),
}


def dimensions(annotation: Annotation) -> Dict[str, Number]:
    """
    Dimension values for the measurement panel.

    Returns an empty dict when the annotation has too few points.
    """
    entry = _DIMENSIONS.get(annotation.kind)
    if entry is None:
        return {}
    min_points, calculator = entry
    if len(annotation.points) < min_points:
        return {}
    return calculator(annotation.points)


def _unit_for(key: str) -> str:
    if key == "angle":
        return "°"
    if key == "area":
        return "px²"
    if key == "point_count":
        return ""
    return "px"


def _label_for(key: str) -> str:
    if key == "point_count":
        return "Points"
    return key.replace("_", " ").capitalize()


def format_dimensions(values: Dict[str, Number]) -> List[Tuple[str, str]]:
    """
    Format dimension values as (label, text) rows.

    Counts are shown as integers; everything else with one decimal.
    """
    rows = []
    for key, value in values.items():
        if key == "point_count":
            text = str(int(value))
        else:
            text = f"{value:.1f}{_unit_for(key)}"
        rows.append((_label_for(key), text))
    return rows
