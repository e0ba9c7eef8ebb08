"""
Renderer for the annotation editor.

Turns the live annotation set, the gesture draft and the viewport into an
ordered list of primitive draw instructions in image space. The Qt canvas
applies the viewport transform and executes them on a QPainter; nothing in
this module paints.

Stroke widths, glyph sizes and font sizes are divided by zoom so they keep
a constant on-screen size.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from PySide6.QtCore import QPointF, QRectF

from xray_annotator.editor.annotations import Annotation, AnnotationKind, Draft
from xray_annotator.editor.geometry import ViewportState
from xray_annotator.editor.measurements import angle_deg, bounding_box, length

STROKE_WIDTH = 2.0
THIN_STROKE_WIDTH = 1.5
DRAFT_OPACITY = 0.7
SELECTION_PADDING_PX = 5.0
SELECTION_COLOR = "#38bdf8"

MARKER_RING_RADIUS = 10.0
MARKER_DOT_RADIUS = 3.0
# Crosshair ticks run from 12 to 15 units out from the marker center
MARKER_TICK_INNER = 12.0
MARKER_TICK_OUTER = 15.0
RULER_CAP_HALF = 6.0
ANGLE_ARC_RADIUS = 25.0
ANGLE_VERTEX_RADIUS = 4.0
TEXT_FONT_SIZE = 16.0
LABEL_FONT_SIZE = 11.0
ANGLE_LABEL_FONT_SIZE = 12.0
# Label backgrounds as #AARRGGBB
RULER_LABEL_FILL = "#b3000000"
ANGLE_LABEL_FILL = "#cc000000"
LABEL_TEXT_COLOR = "#ffffff"


# ─── Primitives ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DrawLine:
    start: QPointF
    end: QPointF
    color: str
    width: float
    opacity: float = 1.0
    dashed: bool = False


@dataclass(frozen=True)
class DrawPolyline:
    points: tuple
    color: str
    width: float
    opacity: float = 1.0


@dataclass(frozen=True)
class DrawRect:
    """Rectangle outline, optionally filled (fill is a Qt color string)."""
    rect: QRectF
    color: Optional[str]
    width: float
    opacity: float = 1.0
    fill: Optional[str] = None
    dashed: bool = False
    corner_radius: float = 0.0


@dataclass(frozen=True)
class DrawEllipse:
    center: QPointF
    rx: float
    ry: float
    color: Optional[str]
    width: float
    opacity: float = 1.0
    fill: Optional[str] = None


@dataclass(frozen=True)
class DrawArc:
    """
    Circular arc around center.

    Angles follow QPainter.drawArc: degrees, zero at three o'clock,
    positive counter-clockwise on screen.
    """
    center: QPointF
    radius: float
    start_deg: float
    span_deg: float
    color: str
    width: float
    opacity: float = 1.0


@dataclass(frozen=True)
class DrawText:
    """Text laid out inside rect, centered or top-left aligned."""
    rect: QRectF
    text: str
    color: str
    font_size: float
    opacity: float = 1.0
    bold: bool = False
    centered: bool = False


Primitive = Union[DrawLine, DrawPolyline, DrawRect, DrawEllipse, DrawArc, DrawText]


# ─── Per-kind Renderers ───────────────────────────────────────────────────

def _render_marker(points, color, text, zoom, opacity) -> List[Primitive]:
    c = points[0]
    primitives: List[Primitive] = [
        DrawEllipse(c, MARKER_RING_RADIUS / zoom, MARKER_RING_RADIUS / zoom,
                    color, STROKE_WIDTH / zoom, opacity),
        DrawEllipse(c, MARKER_DOT_RADIUS / zoom, MARKER_DOT_RADIUS / zoom,
                    None, 0.0, opacity, fill=color),
    ]
    inner = MARKER_TICK_INNER / zoom
    outer = MARKER_TICK_OUTER / zoom
    for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
        primitives.append(DrawLine(
            QPointF(c.x() + dx * outer, c.y() + dy * outer),
            QPointF(c.x() + dx * inner, c.y() + dy * inner),
            color, THIN_STROKE_WIDTH / zoom, opacity,
        ))
    return primitives


def _render_box(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    return [DrawRect(bounding_box(points[:2]), color, STROKE_WIDTH / zoom, opacity)]


def _render_circle(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    radius = length(points[0], points[1])
    return [DrawEllipse(points[0], radius, radius, color, STROKE_WIDTH / zoom, opacity)]


def _render_ellipse(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    rect = bounding_box(points[:2])
    return [DrawEllipse(rect.center(), rect.width() / 2, rect.height() / 2,
                        color, STROKE_WIDTH / zoom, opacity)]


def _render_line(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    return [DrawLine(points[0], points[1], color, STROKE_WIDTH / zoom, opacity)]


def _render_ruler(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    start, end = points[0], points[1]
    width = STROKE_WIDTH / zoom
    cap = RULER_CAP_HALF / zoom
    mid = QPointF((start.x() + end.x()) / 2, (start.y() + end.y()) / 2)
    label_rect = QRectF(mid.x() - 25 / zoom, mid.y() - 20 / zoom, 50 / zoom, 16 / zoom)
    return [
        DrawLine(start, end, color, width, opacity),
        DrawLine(QPointF(start.x(), start.y() - cap), QPointF(start.x(), start.y() + cap),
                 color, width, opacity),
        DrawLine(QPointF(end.x(), end.y() - cap), QPointF(end.x(), end.y() + cap),
                 color, width, opacity),
        DrawRect(label_rect, None, 0.0, opacity, fill=RULER_LABEL_FILL,
                 corner_radius=3 / zoom),
        DrawText(label_rect, f"{length(start, end):.1f}px", LABEL_TEXT_COLOR,
                 LABEL_FONT_SIZE / zoom, opacity, centered=True),
    ]


def _arm_direction(vertex: QPointF, point: QPointF) -> float:
    """Direction of vertex->point in QPainter arc degrees (y axis points down)."""
    return -math.degrees(math.atan2(point.y() - vertex.y(), point.x() - vertex.x()))


def _render_angle(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    start, vertex = points[0], points[1]
    width = STROKE_WIDTH / zoom
    primitives: List[Primitive] = [DrawLine(start, vertex, color, width, opacity)]

    if len(points) >= 3:
        end = points[2]
        primitives.append(DrawLine(vertex, end, color, width, opacity))

        if length(start, vertex) > 0 and length(vertex, end) > 0:
            start_dir = _arm_direction(vertex, start)
            span = (_arm_direction(vertex, end) - start_dir + 180.0) % 360.0 - 180.0
            primitives.append(DrawArc(vertex, ANGLE_ARC_RADIUS / zoom, start_dir, span,
                                      color, THIN_STROKE_WIDTH / zoom, opacity))

        label_rect = QRectF(vertex.x() + 20 / zoom, vertex.y() - 25 / zoom, 45 / zoom, 18 / zoom)
        primitives.append(DrawRect(label_rect, None, 0.0, opacity, fill=ANGLE_LABEL_FILL,
                                   corner_radius=3 / zoom))
        primitives.append(DrawText(label_rect, f"{angle_deg(start, vertex, end):.1f}°",
                                   LABEL_TEXT_COLOR, ANGLE_LABEL_FONT_SIZE / zoom, opacity,
                                   bold=True, centered=True))

    vertex_radius = ANGLE_VERTEX_RADIUS / zoom
    primitives.append(DrawEllipse(vertex, vertex_radius, vertex_radius, None, 0.0, opacity,
                                  fill=color))
    return primitives


def _render_freehand(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    return [DrawPolyline(tuple(points), color, STROKE_WIDTH / zoom, opacity)]


def _render_text(points, color, text, zoom, opacity) -> List[Primitive]:
    if len(points) < 2:
        return []
    rect = bounding_box(points[:2])
    if text is None:
        # Box still being sized
        return [DrawRect(rect, color, THIN_STROKE_WIDTH / zoom, opacity, dashed=True)]
    return [DrawText(rect, text, color, TEXT_FONT_SIZE / zoom, opacity, bold=True)]


_RENDERERS: Dict[AnnotationKind, Callable[..., List[Primitive]]] = {
    AnnotationKind.MARKER: _render_marker,
    AnnotationKind.BOX: _render_box,
    AnnotationKind.CIRCLE: _render_circle,
    AnnotationKind.ELLIPSE: _render_ellipse,
    AnnotationKind.LINE: _render_line,
    AnnotationKind.RULER: _render_ruler,
    AnnotationKind.ANGLE: _render_angle,
    AnnotationKind.FREEHAND: _render_freehand,
    AnnotationKind.TEXT: _render_text,
}


def render_shape(
    kind: AnnotationKind,
    points: Sequence[QPointF],
    color: str,
    zoom: float,
    opacity: float = 1.0,
    text: Optional[str] = None,
) -> List[Primitive]:
    """Primitives for one shape; partial point lists draw what they can."""
    renderer = _RENDERERS.get(kind)
    if renderer is None or not points:
        return []
    return renderer(tuple(points), color, text, zoom, opacity)


def highlight_rect(annotation: Annotation, zoom: float, padding_px: float = SELECTION_PADDING_PX) -> QRectF:
    """Image-space rectangle around the drawn extent of an annotation, outset by padding/zoom."""
    points = annotation.points
    if annotation.kind == AnnotationKind.CIRCLE and len(points) >= 2:
        r = length(points[0], points[1])
        rect = QRectF(points[0].x() - r, points[0].y() - r, 2 * r, 2 * r)
    elif annotation.kind == AnnotationKind.MARKER and points:
        r = MARKER_TICK_OUTER / zoom
        rect = QRectF(points[0].x() - r, points[0].y() - r, 2 * r, 2 * r)
    else:
        rect = bounding_box(points)
    pad = padding_px / zoom
    return rect.adjusted(-pad, -pad, pad, pad)


class Renderer:
    """
    Builds the frame's primitive list.

    Order: committed annotations in storage order, then the selection
    highlight, then the draft.
    """

    def __init__(
        self,
        draft_opacity: float = DRAFT_OPACITY,
        selection_padding_px: float = SELECTION_PADDING_PX,
    ) -> None:
        self.draft_opacity = draft_opacity
        self.selection_padding_px = selection_padding_px

    def render(
        self,
        annotations: Iterable[Annotation],
        viewport: ViewportState,
        draft: Optional[Draft] = None,
        selected: Optional[Annotation] = None,
    ) -> List[Primitive]:
        zoom = viewport.zoom
        primitives: List[Primitive] = []

        for annotation in annotations:
            primitives.extend(render_shape(
                annotation.kind, annotation.points, annotation.color, zoom,
                text=annotation.text,
            ))

        if selected is not None:
            primitives.append(DrawRect(
                highlight_rect(selected, zoom, self.selection_padding_px),
                SELECTION_COLOR,
                THIN_STROKE_WIDTH / zoom,
                dashed=True,
            ))

        if draft is not None:
            primitives.extend(self._render_draft(draft, zoom))

        return primitives

    def _render_draft(self, draft: Draft, zoom: float) -> List[Primitive]:
        primitives = render_shape(draft.kind, draft.points, draft.color, zoom,
                                  self.draft_opacity, draft.text)
        if draft.kind == AnnotationKind.TEXT and draft.text is not None and len(draft.points) >= 2:
            # Text entry: frame the editable area behind the typed text
            frame = DrawRect(bounding_box(draft.points[:2]), draft.color,
                             THIN_STROKE_WIDTH / zoom, self.draft_opacity, dashed=True)
            primitives.insert(0, frame)
        return primitives
