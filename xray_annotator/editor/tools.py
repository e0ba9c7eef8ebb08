"""
Tool framework and implementations for the annotation editor.

Each tool handles pointer and keyboard events forwarded by the
ToolStateMachine and owns the transient state of its own gesture as a
single phase value. Switching tools throws the tool object away, so a
half-finished gesture can never leak into the next tool.

Tools:
- SelectTool: Select an annotation and drag it around
- DragShapeTool: Box, circle, ellipse, line and ruler (press-drag-release)
- FreehandTool: Freehand path sampled on every move
- MarkerTool: Single-click point marker
- AngleTool: Three-click angle measurement
- TextTool: Drag a box, then type the text
- EraserTool: Remove annotations along the drag path

All positions received here are already in image space.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from PySide6.QtCore import QPointF, QRectF, Qt

from xray_annotator.editor.annotations import (
    DEFAULT_COLORS,
    DRAG_SHAPE_KINDS,
    Annotation,
    AnnotationKind,
    Draft,
)
from xray_annotator.services.logging_service import get_logger

if TYPE_CHECKING:
    from xray_annotator.editor.tool_state_machine import ToolStateMachine


# Minimum text box drag size in image-space units
TEXT_MIN_DRAG_WIDTH = 20.0
TEXT_MIN_DRAG_HEIGHT = 15.0
# Minimum editable area of a text box
TEXT_MIN_EDIT_WIDTH = 100.0
TEXT_MIN_EDIT_HEIGHT = 30.0


@dataclass(frozen=True)
class GestureState:
    """
    Snapshot of the active tool's transient state.

    Attributes:
        tool: The active tool kind.
        phase: Lower-case name of the tool's current phase.
        draft: In-progress geometry to preview, if any.
        selected_id: Id of the selected annotation (select tool only).
        angle_step: 0..2 progress of the angle tool.
        text_rect: Editable area while the text tool is in text entry.
    """
    tool: AnnotationKind
    phase: str
    draft: Optional[Draft] = None
    selected_id: Optional[str] = None
    angle_step: int = 0
    text_rect: Optional[QRectF] = None


class ToolBase(ABC):
    """
    Base class for all tools.

    Tools handle pointer and keyboard events from the state machine and
    create, move or remove annotations through it.
    """

    def __init__(self, color: str = "#ffffff") -> None:
        self._logger = get_logger(__name__)
        self.color = color

    @property
    @abstractmethod
    def kind(self) -> AnnotationKind:
        """Return the kind of this tool."""
        pass

    @property
    @abstractmethod
    def phase(self) -> Enum:
        """Return the current phase of the gesture."""
        pass

    @property
    def cursor(self) -> Qt.CursorShape:
        """Return the cursor to use when this tool is active."""
        return Qt.CursorShape.CrossCursor

    @property
    def draft(self) -> Optional[Draft]:
        return None

    @property
    def selected_id(self) -> Optional[str]:
        return None

    @property
    def status_message(self) -> str:
        """Short hint for a status bar, empty when there is nothing to say."""
        return ""

    @property
    def is_editing_text(self) -> bool:
        return False

    @abstractmethod
    def on_mouse_press(
        self,
        pos: QPointF,
        machine: "ToolStateMachine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer press."""
        pass

    def on_mouse_move(
        self,
        pos: QPointF,
        machine: "ToolStateMachine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer move (with or without the button held)."""
        pass

    def on_mouse_release(
        self,
        pos: QPointF,
        machine: "ToolStateMachine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer release."""
        pass

    def on_key_press(
        self,
        key: int,
        machine: "ToolStateMachine",
        modifiers: Qt.KeyboardModifier
    ) -> bool:
        """
        Handle key press event.

        Returns True if the event was handled. Escape cancels any gesture
        in progress.
        """
        if key == Qt.Key.Key_Escape and self.is_active():
            self.cancel()
            return True
        return False

    def is_active(self) -> bool:
        """True while a gesture is in progress."""
        return self.phase.value not in (0, "idle")

    @abstractmethod
    def cancel(self) -> None:
        """Drop the gesture in progress without committing anything."""
        pass

    def on_pointer_lost(self) -> None:
        """The pressed pointer was taken over (pan mode); end the pressed phase."""
        pass

    def on_deactivate(self, machine: "ToolStateMachine") -> None:
        """Called when another tool is selected."""
        self.cancel()

    def gesture_state(self) -> GestureState:
        return GestureState(
            tool=self.kind,
            phase=self.phase.name.lower(),
            draft=self.draft,
            selected_id=self.selected_id,
        )


class DrawPhase(Enum):
    IDLE = "idle"
    DRAWING = "drawing"


class SelectPhase(Enum):
    IDLE = "idle"
    SELECTED = "selected"
    DRAGGING = "dragging"


class ErasePhase(Enum):
    IDLE = "idle"
    ERASING = "erasing"


class AngleStep(IntEnum):
    IDLE = 0
    AWAIT_VERTEX = 1
    AWAIT_END = 2


class TextPhase(Enum):
    IDLE = "idle"
    SIZING = "sizing"
    EDITING = "editing"


class SelectTool(ToolBase):
    """
    Select tool for picking and moving annotations.

    - Click on annotation: Select it
    - Drag: Move it, one history snapshot per pointer move
    - Click on empty canvas: Clear selection
    - Escape: Clear selection
    """

    def __init__(self, color: str = "#ffffff") -> None:
        super().__init__(color)
        self._phase = SelectPhase.IDLE
        self._selected_id: Optional[str] = None
        self._drag_last: Optional[QPointF] = None

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.SELECT

    @property
    def phase(self) -> SelectPhase:
        return self._phase

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.ArrowCursor

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        annotation_id = machine.select_annotation(pos)
        if annotation_id:
            self._selected_id = annotation_id
            self._drag_last = QPointF(pos)
            self._phase = SelectPhase.DRAGGING
        else:
            self.cancel()

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._phase != SelectPhase.DRAGGING or self._drag_last is None:
            return
        delta = pos - self._drag_last
        self._drag_last = QPointF(pos)
        if delta.x() == 0 and delta.y() == 0:
            return
        if not machine.move_annotation(self._selected_id, delta):
            # Selected annotation vanished (e.g. undo during drag)
            self.cancel()

    def on_mouse_release(self, pos, machine, modifiers) -> None:
        if self._phase == SelectPhase.DRAGGING:
            self._phase = SelectPhase.SELECTED
        self._drag_last = None

    def on_pointer_lost(self) -> None:
        if self._phase == SelectPhase.DRAGGING:
            self._phase = SelectPhase.SELECTED
        self._drag_last = None

    def cancel(self) -> None:
        self._phase = SelectPhase.IDLE
        self._selected_id = None
        self._drag_last = None


class DragShapeTool(ToolBase):
    """
    Tool for two-point shapes drawn with press-drag-release.

    Used for box, circle, ellipse, line and ruler. The draft always holds
    the press point and, once the pointer moved, the current point.
    """

    def __init__(self, kind: AnnotationKind, color: str = "#ffffff") -> None:
        if kind not in DRAG_SHAPE_KINDS:
            raise ValueError(f"Not a drag shape kind: {kind}")
        super().__init__(color)
        self._kind = kind
        self._phase = DrawPhase.IDLE
        self._points: Tuple[QPointF, ...] = ()

    @property
    def kind(self) -> AnnotationKind:
        return self._kind

    @property
    def phase(self) -> DrawPhase:
        return self._phase

    @property
    def draft(self) -> Optional[Draft]:
        if self._phase != DrawPhase.DRAWING:
            return None
        return Draft(self._kind, self._points, self.color)

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        self._phase = DrawPhase.DRAWING
        self._points = (QPointF(pos),)

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._phase == DrawPhase.DRAWING:
            self._points = (self._points[0], QPointF(pos))

    def on_mouse_release(self, pos, machine, modifiers) -> None:
        if self._phase != DrawPhase.DRAWING:
            return
        draft = self.draft
        self.cancel()
        machine.commit(draft.to_annotation())

    def cancel(self) -> None:
        self._phase = DrawPhase.IDLE
        self._points = ()

    def on_pointer_lost(self) -> None:
        self.cancel()


class FreehandTool(ToolBase):
    """
    Freehand drawing tool.

    Every pointer move while pressed appends a sample; no decimation.
    """

    def __init__(self, color: str = "#ffffff") -> None:
        super().__init__(color)
        self._phase = DrawPhase.IDLE
        self._points: List[QPointF] = []

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.FREEHAND

    @property
    def phase(self) -> DrawPhase:
        return self._phase

    @property
    def draft(self) -> Optional[Draft]:
        if self._phase != DrawPhase.DRAWING:
            return None
        return Draft(AnnotationKind.FREEHAND, tuple(self._points), self.color)

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        self._phase = DrawPhase.DRAWING
        self._points = [QPointF(pos)]

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._phase == DrawPhase.DRAWING:
            self._points.append(QPointF(pos))

    def on_mouse_release(self, pos, machine, modifiers) -> None:
        if self._phase != DrawPhase.DRAWING:
            return
        draft = self.draft
        self.cancel()
        machine.commit(draft.to_annotation())

    def cancel(self) -> None:
        self._phase = DrawPhase.IDLE
        self._points = []

    def on_pointer_lost(self) -> None:
        self.cancel()


class MarkerTool(ToolBase):
    """Point marker placed on press; there is no drag phase."""

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.MARKER

    @property
    def phase(self) -> DrawPhase:
        return DrawPhase.IDLE

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        machine.commit(Annotation(AnnotationKind.MARKER, (QPointF(pos),), self.color))

    def cancel(self) -> None:
        pass


class AngleTool(ToolBase):
    """
    Three-click angle measurement.

    Clicks set start, vertex and end in that order. Between clicks the
    preview follows the pointer. Escape aborts back to IDLE.
    """

    def __init__(self, color: str = "#ffffff") -> None:
        super().__init__(color)
        self._step = AngleStep.IDLE
        self._points: Tuple[QPointF, ...] = ()
        self._hover: Optional[QPointF] = None

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.ANGLE

    @property
    def phase(self) -> AngleStep:
        return self._step

    @property
    def draft(self) -> Optional[Draft]:
        if self._step == AngleStep.IDLE:
            return None
        points = self._points
        if self._hover is not None:
            points = points + (self._hover,)
        return Draft(AnnotationKind.ANGLE, points, self.color)

    @property
    def status_message(self) -> str:
        if self._step == AngleStep.AWAIT_VERTEX:
            return "Click vertex point (1/2)"
        if self._step == AngleStep.AWAIT_END:
            return "Click end point (2/2)"
        return ""

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        point = QPointF(pos)
        if self._step == AngleStep.IDLE:
            self._points = (point,)
            self._step = AngleStep.AWAIT_VERTEX
        elif self._step == AngleStep.AWAIT_VERTEX:
            self._points = self._points + (point,)
            self._step = AngleStep.AWAIT_END
        else:
            annotation = Annotation(AnnotationKind.ANGLE, self._points + (point,), self.color)
            self.cancel()
            machine.commit(annotation)
            return
        self._hover = QPointF(point)

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._step != AngleStep.IDLE:
            self._hover = QPointF(pos)

    def cancel(self) -> None:
        self._step = AngleStep.IDLE
        self._points = ()
        self._hover = None

    def gesture_state(self) -> GestureState:
        return GestureState(
            tool=self.kind,
            phase=self._step.name.lower(),
            draft=self.draft,
            angle_step=int(self._step),
        )


class TextTool(ToolBase):
    """
    Text box tool.

    Features:
    - Drag to size the box; too small a drag is discarded
    - Text entry phase bound to the box (minimum editable area enforced)
    - Commit on focus loss or Ctrl+Enter when the text is not blank
    - Escape cancels without committing
    """

    def __init__(self, color: str = "#ffffff") -> None:
        super().__init__(color)
        self._phase = TextPhase.IDLE
        self._start: Optional[QPointF] = None
        self._corner: Optional[QPointF] = None
        self._edit_rect: Optional[QRectF] = None
        self._buffer: str = ""

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.TEXT

    @property
    def phase(self) -> TextPhase:
        return self._phase

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.IBeamCursor

    @property
    def is_editing_text(self) -> bool:
        return self._phase == TextPhase.EDITING

    @property
    def text(self) -> str:
        return self._buffer

    @property
    def text_rect(self) -> Optional[QRectF]:
        return QRectF(self._edit_rect) if self._edit_rect is not None else None

    @property
    def draft(self) -> Optional[Draft]:
        if self._phase == TextPhase.SIZING:
            return Draft(AnnotationKind.TEXT, (self._start, self._corner), self.color)
        if self._phase == TextPhase.EDITING:
            rect = self._edit_rect
            return Draft(AnnotationKind.TEXT, (rect.topLeft(), rect.bottomRight()),
                         self.color, self._buffer)
        return None

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        if self._phase == TextPhase.EDITING:
            # Clicking the canvas takes focus away from the text entry
            self.commit(machine)
            return
        self._phase = TextPhase.SIZING
        self._start = QPointF(pos)
        self._corner = QPointF(pos)

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._phase == TextPhase.SIZING:
            self._corner = QPointF(pos)

    def on_mouse_release(self, pos, machine, modifiers) -> None:
        if self._phase != TextPhase.SIZING:
            return
        width = abs(self._corner.x() - self._start.x())
        height = abs(self._corner.y() - self._start.y())
        if width > TEXT_MIN_DRAG_WIDTH and height > TEXT_MIN_DRAG_HEIGHT:
            top_left = QPointF(min(self._start.x(), self._corner.x()),
                               min(self._start.y(), self._corner.y()))
            self._edit_rect = QRectF(
                top_left.x(),
                top_left.y(),
                max(width, TEXT_MIN_EDIT_WIDTH),
                max(height, TEXT_MIN_EDIT_HEIGHT),
            )
            self._buffer = ""
            self._phase = TextPhase.EDITING
        else:
            self._logger.debug(f"Text box {width:.1f}x{height:.1f} too small, discarded")
            self.cancel()

    def on_pointer_lost(self) -> None:
        if self._phase == TextPhase.SIZING:
            self.cancel()

    def on_key_press(self, key, machine, modifiers) -> bool:
        if self._phase != TextPhase.EDITING:
            return super().on_key_press(key, machine, modifiers)

        if key == Qt.Key.Key_Escape:
            self.cancel()
            return True

        if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            if modifiers & Qt.KeyboardModifier.ControlModifier:
                self.commit(machine)
            else:
                self._buffer += "\n"
            return True

        if key == Qt.Key.Key_Backspace:
            self._buffer = self._buffer[:-1]
            return True

        return False

    def on_text_input(self, text: str) -> None:
        """Append typed characters to the text entry."""
        if self._phase == TextPhase.EDITING and text and text.isprintable():
            self._buffer += text

    def commit(self, machine: "ToolStateMachine") -> bool:
        """Commit the text box if its text is not blank. Ends text entry either way."""
        if self._phase != TextPhase.EDITING:
            return False
        text = self._buffer.strip()
        rect = self._edit_rect
        self.cancel()
        if not text:
            self._logger.debug("Empty text entry, nothing committed")
            return False
        return machine.commit(Annotation(
            AnnotationKind.TEXT,
            (rect.topLeft(), rect.bottomRight()),
            self.color,
            text,
        ))

    def cancel(self) -> None:
        self._phase = TextPhase.IDLE
        self._start = None
        self._corner = None
        self._edit_rect = None
        self._buffer = ""

    def gesture_state(self) -> GestureState:
        return GestureState(
            tool=self.kind,
            phase=self._phase.name.lower(),
            draft=self.draft,
            text_rect=self.text_rect,
        )


class EraserTool(ToolBase):
    """
    Eraser tool - removes annotations under the pointer.

    Press removes the first hit; while the button stays down every move
    erases again, so dragging sweeps a path.
    """

    def __init__(self, color: str = "#ffffff") -> None:
        super().__init__(color)
        self._phase = ErasePhase.IDLE

    @property
    def kind(self) -> AnnotationKind:
        return AnnotationKind.ERASER

    @property
    def phase(self) -> ErasePhase:
        return self._phase

    def on_mouse_press(self, pos, machine, modifiers) -> None:
        self._phase = ErasePhase.ERASING
        self._erase_at(pos, machine)

    def on_mouse_move(self, pos, machine, modifiers) -> None:
        if self._phase == ErasePhase.ERASING:
            self._erase_at(pos, machine)

    def on_mouse_release(self, pos, machine, modifiers) -> None:
        self._phase = ErasePhase.IDLE

    def on_pointer_lost(self) -> None:
        self._phase = ErasePhase.IDLE

    def _erase_at(self, pos: QPointF, machine: "ToolStateMachine") -> None:
        hit = machine.hit_test_annotations(pos)
        if hit:
            machine.remove_annotation(hit.id)

    def cancel(self) -> None:
        self._phase = ErasePhase.IDLE


def create_tool(kind: AnnotationKind, colors: Optional[Dict[AnnotationKind, str]] = None) -> ToolBase:
    """
    Factory function to create tools by kind.

    Args:
        kind: The kind of tool to create.
        colors: Per-kind display colors for new annotations.

    Returns:
        A new instance of the requested tool.
    """
    palette = colors or DEFAULT_COLORS
    color = palette.get(kind, DEFAULT_COLORS.get(kind, "#ffffff"))

    if kind in DRAG_SHAPE_KINDS:
        return DragShapeTool(kind, color)

    tool_classes = {
        AnnotationKind.SELECT: SelectTool,
        AnnotationKind.ERASER: EraserTool,
        AnnotationKind.MARKER: MarkerTool,
        AnnotationKind.ANGLE: AngleTool,
        AnnotationKind.FREEHAND: FreehandTool,
        AnnotationKind.TEXT: TextTool,
    }

    if kind not in tool_classes:
        raise ValueError(f"Unknown tool kind: {kind}")

    return tool_classes[kind](color)
