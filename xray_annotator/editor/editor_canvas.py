"""
Annotation canvas widget for the XRay Annotator.

The AnnotationCanvas is the Qt surface of the engine. It displays:
- The loaded radiograph
- All committed annotations, the selection highlight and the draft

It owns a ToolStateMachine and forwards left-button mouse, keyboard and
focus events to it; the primitives the machine renders are painted with
paint_primitives() after the viewport transform is applied.
"""

from typing import Iterable, Optional

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import (
    QColor,
    QFont,
    QFocusEvent,
    QImage,
    QInputMethodEvent,
    QKeyEvent,
    QMouseEvent,
    QPainter,
    QPainterPath,
    QPen,
)
from PySide6.QtWidgets import QWidget

from xray_annotator.editor.renderer import (
    DrawArc,
    DrawEllipse,
    DrawLine,
    DrawPolyline,
    DrawRect,
    DrawText,
    Primitive,
)
from xray_annotator.editor.tool_state_machine import ToolStateMachine
from xray_annotator.services.logging_service import get_logger

BACKGROUND_COLOR = QColor(26, 26, 26)


# ─── Primitive Painting ───────────────────────────────────────────────────

def _pen(color: Optional[str], width: float, dashed: bool = False) -> QPen:
    if color is None:
        return QPen(Qt.PenStyle.NoPen)
    pen = QPen(QColor(color), width)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    if dashed:
        pen.setStyle(Qt.PenStyle.DashLine)
    return pen


def _brush(fill: Optional[str]):
    return QColor(fill) if fill else Qt.BrushStyle.NoBrush


def _paint_line(painter: QPainter, p: DrawLine) -> None:
    painter.setPen(_pen(p.color, p.width, p.dashed))
    painter.drawLine(p.start, p.end)


def _paint_polyline(painter: QPainter, p: DrawPolyline) -> None:
    path = QPainterPath(p.points[0])
    for point in p.points[1:]:
        path.lineTo(point)
    painter.setPen(_pen(p.color, p.width))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawPath(path)


def _paint_rect(painter: QPainter, p: DrawRect) -> None:
    painter.setPen(_pen(p.color, p.width, p.dashed))
    painter.setBrush(_brush(p.fill))
    if p.corner_radius > 0:
        painter.drawRoundedRect(p.rect, p.corner_radius, p.corner_radius)
    else:
        painter.drawRect(p.rect)


def _paint_ellipse(painter: QPainter, p: DrawEllipse) -> None:
    painter.setPen(_pen(p.color, p.width))
    painter.setBrush(_brush(p.fill))
    painter.drawEllipse(p.center, p.rx, p.ry)


def _paint_arc(painter: QPainter, p: DrawArc) -> None:
    rect = QRectF(p.center.x() - p.radius, p.center.y() - p.radius, 2 * p.radius, 2 * p.radius)
    painter.setPen(_pen(p.color, p.width))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    # drawArc takes sixteenths of a degree
    painter.drawArc(rect, int(round(p.start_deg * 16)), int(round(p.span_deg * 16)))


def _paint_text(painter: QPainter, p: DrawText) -> None:
    font = QFont("monospace" if p.centered else painter.font().family())
    font.setPointSizeF(max(p.font_size, 0.1))
    font.setBold(p.bold)
    painter.setFont(font)
    painter.setPen(QColor(p.color))
    if p.centered:
        flags = Qt.AlignmentFlag.AlignCenter.value
    else:
        flags = (Qt.AlignmentFlag.AlignLeft.value | Qt.AlignmentFlag.AlignTop.value
                 | Qt.TextFlag.TextWordWrap.value)
    painter.drawText(p.rect, int(flags), p.text)


_PAINTERS = {
    DrawLine: _paint_line,
    DrawPolyline: _paint_polyline,
    DrawRect: _paint_rect,
    DrawEllipse: _paint_ellipse,
    DrawArc: _paint_arc,
    DrawText: _paint_text,
}


def paint_primitives(painter: QPainter, primitives: Iterable[Primitive]) -> None:
    """Execute primitive draw instructions on a painter already in image space."""
    for primitive in primitives:
        painter.save()
        painter.setOpacity(primitive.opacity)
        _PAINTERS[type(primitive)](painter, primitive)
        painter.restore()


class AnnotationCanvas(QWidget):
    """
    Canvas widget for annotating a radiograph.

    Signals:
        image_changed: Emitted when an image is loaded.
        status_changed: Emitted with the active tool's status prompt.
    """

    image_changed = Signal()
    status_changed = Signal(str)

    def __init__(
        self,
        machine: Optional[ToolStateMachine] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self._image: Optional[QImage] = None
        self._machine = machine or ToolStateMachine(parent=self)

        self._setup_widget()
        self._connect_signals()

    def _setup_widget(self) -> None:
        """Configure widget properties."""
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setAttribute(Qt.WidgetAttribute.WA_InputMethodEnabled, True)
        self.setMinimumSize(200, 200)
        self.setCursor(self._machine.active_tool.cursor)

    def _connect_signals(self) -> None:
        self._machine.store.changed.connect(lambda _: self.update())
        self._machine.gesture_changed.connect(self._on_gesture_changed)
        self._machine.viewport_changed.connect(lambda _: self.update())
        self._machine.selection_changed.connect(lambda _: self.update())
        self._machine.tool_changed.connect(self._on_tool_changed)

    # ─── Image Management ─────────────────────────────────────────────────

    @property
    def machine(self) -> ToolStateMachine:
        return self._machine

    @property
    def image(self) -> Optional[QImage]:
        return self._image

    def load_image(self, image: QImage) -> None:
        """
        Display a new image, fit it to the view and start a fresh history.

        Args:
            image: The decoded radiograph to annotate.
        """
        self._image = image
        self._machine.load_image(image.width(), image.height(), self.width(), self.height())
        self.image_changed.emit()
        self.update()

    # ─── Slots ────────────────────────────────────────────────────────────

    def _on_gesture_changed(self, gesture) -> None:
        self.status_changed.emit(self._machine.status_message)
        self.update()

    def _on_tool_changed(self, tool_name: str) -> None:
        self.setCursor(self._machine.active_tool.cursor)
        self.status_changed.emit(self._machine.status_message)
        self.update()

    # ─── Event Handlers ───────────────────────────────────────────────────

    def paintEvent(self, event) -> None:
        """Paint the canvas."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

        painter.fillRect(self.rect(), BACKGROUND_COLOR)

        if not self._image:
            painter.setPen(QColor(100, 100, 100))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "No X-ray image loaded")
            painter.end()
            return

        state = self._machine.viewport.state
        painter.translate(state.pan)
        painter.scale(state.zoom, state.zoom)

        painter.drawImage(0, 0, self._image)
        paint_primitives(painter, self._machine.render())

        painter.end()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            if self._machine.is_panning:
                self.setCursor(Qt.CursorShape.ClosedHandCursor)
            self._machine.pointer_press(event.position(), event.modifiers())

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        self._machine.pointer_move(event.position(), event.modifiers())

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._machine.pointer_release(event.position(), event.modifiers())
            self._update_cursor()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.isAutoRepeat() and event.key() == Qt.Key.Key_Space:
            return
        if self._machine.key_press(event.key(), event.modifiers(), event.text()):
            self._update_cursor()
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event: QKeyEvent) -> None:
        if event.isAutoRepeat():
            return
        if self._machine.key_release(event.key(), event.modifiers()):
            self._update_cursor()
            return
        super().keyReleaseEvent(event)

    def inputMethodEvent(self, event: QInputMethodEvent) -> None:
        text = event.commitString()
        if text:
            self._machine.text_input(text)
        event.accept()

    def focusOutEvent(self, event: QFocusEvent) -> None:
        self._machine.focus_lost()
        self._update_cursor()
        super().focusOutEvent(event)

    def _update_cursor(self) -> None:
        if self._machine.is_panning:
            self.setCursor(Qt.CursorShape.OpenHandCursor)
        else:
            self.setCursor(self._machine.active_tool.cursor)

    def image_to_widget(self, pos: QPointF) -> QPointF:
        return self._machine.viewport.to_screen(pos)

    def widget_to_image(self, pos: QPointF) -> QPointF:
        return self._machine.viewport.to_image(pos)
