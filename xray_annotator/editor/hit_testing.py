"""
Hit testing for annotations.

Every test works in image space. The threshold is a screen-space pixel
budget divided by zoom, so the perceived hit radius does not change as the
user zooms. Tests that would divide by a zero length or radius report no
hit instead.
"""

import math
from typing import Callable, Dict, Iterable, Optional, Sequence

from PySide6.QtCore import QPointF

from xray_annotator.editor.annotations import Annotation, AnnotationKind

HIT_RADIUS_PX = 15.0
MARKER_HIT_ALLOWANCE = 8.0


def point_distance(a: QPointF, b: QPointF) -> float:
    return math.hypot(a.x() - b.x(), a.y() - b.y())


def point_to_segment_distance(
    point: QPointF, seg_start: QPointF, seg_end: QPointF
) -> Optional[float]:
    """
    Distance from a point to a segment, projection clamped to [0, 1].

    Returns None for a zero-length segment.
    """
    dx = seg_end.x() - seg_start.x()
    dy = seg_end.y() - seg_start.y()
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return None

    t = ((point.x() - seg_start.x()) * dx + (point.y() - seg_start.y()) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj_x = seg_start.x() + t * dx
    proj_y = seg_start.y() + t * dy
    return math.hypot(point.x() - proj_x, point.y() - proj_y)


def _near_segment(point: QPointF, a: QPointF, b: QPointF, threshold: float) -> bool:
    distance = point_to_segment_distance(point, a, b)
    return distance is not None and distance < threshold


def _hit_marker(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 1:
        return False
    return point_distance(p, points[0]) < threshold + allowance


def _hit_box(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 2:
        return False
    min_x, max_x = sorted((points[0].x(), points[1].x()))
    min_y, max_y = sorted((points[0].y(), points[1].y()))
    x, y = p.x(), p.y()

    if min_x <= x <= max_x and min_y <= y <= max_y:
        return True

    within_x_span = min_x - threshold <= x <= max_x + threshold
    within_y_span = min_y - threshold <= y <= max_y + threshold
    near_vertical_edge = (abs(x - min_x) < threshold or abs(x - max_x) < threshold) and within_y_span
    near_horizontal_edge = (abs(y - min_y) < threshold or abs(y - max_y) < threshold) and within_x_span
    return near_vertical_edge or near_horizontal_edge


def _hit_circle(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 2:
        return False
    radius = point_distance(points[1], points[0])
    return abs(point_distance(p, points[0]) - radius) < threshold


def _hit_ellipse(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 2:
        return False
    cx = (points[0].x() + points[1].x()) / 2
    cy = (points[0].y() + points[1].y()) / 2
    rx = abs(points[1].x() - points[0].x()) / 2
    ry = abs(points[1].y() - points[0].y()) / 2
    if rx == 0 or ry == 0:
        return False

    d = math.sqrt(((p.x() - cx) / rx) ** 2 + ((p.y() - cy) / ry) ** 2)
    return abs(d - 1) < threshold / min(rx, ry)


def _hit_line(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 2:
        return False
    return _near_segment(p, points[0], points[1], threshold)


def _hit_angle(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 3:
        return False
    return (_near_segment(p, points[0], points[1], threshold)
            or _near_segment(p, points[1], points[2], threshold))


def _hit_freehand(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    return any(point_distance(p, sample) < threshold for sample in points)


def _hit_text(p: QPointF, points: Sequence[QPointF], threshold: float, allowance: float) -> bool:
    if len(points) < 2:
        return False
    min_x, max_x = sorted((points[0].x(), points[1].x()))
    min_y, max_y = sorted((points[0].y(), points[1].y()))
    return (min_x - threshold <= p.x() <= max_x + threshold
            and min_y - threshold <= p.y() <= max_y + threshold)


_HIT_TESTS: Dict[AnnotationKind, Callable[[QPointF, Sequence[QPointF], float, float], bool]] = {
    AnnotationKind.MARKER: _hit_marker,
    AnnotationKind.BOX: _hit_box,
    AnnotationKind.CIRCLE: _hit_circle,
    AnnotationKind.ELLIPSE: _hit_ellipse,
    AnnotationKind.LINE: _hit_line,
    AnnotationKind.RULER: _hit_line,
    AnnotationKind.ANGLE: _hit_angle,
    AnnotationKind.FREEHAND: _hit_freehand,
    AnnotationKind.TEXT: _hit_text,
}


class HitTester:
    """
    Decides whether an image-space point is on or inside an annotation.

    Args:
        hit_radius_px: Screen-space hit radius in pixels.
        marker_allowance: Extra image-space radius for marker glyphs.
    """

    def __init__(
        self,
        hit_radius_px: float = HIT_RADIUS_PX,
        marker_allowance: float = MARKER_HIT_ALLOWANCE,
    ) -> None:
        self.hit_radius_px = hit_radius_px
        self.marker_allowance = marker_allowance

    def threshold(self, zoom: float) -> float:
        """Image-space threshold for the given zoom."""
        return self.hit_radius_px / zoom

    def hit_test(self, point: QPointF, annotation: Annotation, zoom: float) -> bool:
        test = _HIT_TESTS.get(annotation.kind)
        if test is None:
            return False
        return test(point, annotation.points, self.threshold(zoom), self.marker_allowance)

    def first_hit(
        self, point: QPointF, annotations: Iterable[Annotation], zoom: float
    ) -> Optional[Annotation]:
        """
        First annotation in collection order that the point hits.

        Collection order is z-order, so the bottom-most match wins.
        """
        for annotation in annotations:
            if self.hit_test(point, annotation, zoom):
                return annotation
        return None
