"""
Tool/gesture state machine for the annotation editor.

Receives pointer and keyboard events in screen space, converts them to
image space, and dispatches them to the active tool. Panning, when active,
intercepts pointer events before any tool sees them. Keyboard accelerators
for tools, view and history are resolved here.

The machine is the only writer of its AnnotationStore.
"""

from typing import Any, Dict, List, Optional, Union

from PySide6.QtCore import QObject, QPointF, Qt, Signal

from xray_annotator.editor.annotation_store import AnnotationStore
from xray_annotator.editor.annotations import (
    DEFAULT_COLORS,
    Annotation,
    AnnotationKind,
    Draft,
)
from xray_annotator.editor.geometry import FIT_PADDING, Viewport
from xray_annotator.editor.hit_testing import HitTester
from xray_annotator.editor.measurements import dimensions
from xray_annotator.editor.renderer import Primitive, Renderer
from xray_annotator.editor.tools import GestureState, TextTool, ToolBase, create_tool
from xray_annotator.services.logging_service import get_logger

TOOL_SHORTCUTS: Dict[int, AnnotationKind] = {
    Qt.Key.Key_V: AnnotationKind.SELECT,
    Qt.Key.Key_P: AnnotationKind.MARKER,
    Qt.Key.Key_B: AnnotationKind.BOX,
    Qt.Key.Key_C: AnnotationKind.CIRCLE,
    Qt.Key.Key_L: AnnotationKind.LINE,
    Qt.Key.Key_D: AnnotationKind.FREEHAND,
    Qt.Key.Key_M: AnnotationKind.RULER,
    Qt.Key.Key_A: AnnotationKind.ANGLE,
    Qt.Key.Key_T: AnnotationKind.TEXT,
    Qt.Key.Key_E: AnnotationKind.ERASER,
}

ZOOM_IN_KEYS = (Qt.Key.Key_Plus, Qt.Key.Key_Equal)
ZOOM_OUT_KEYS = (Qt.Key.Key_Minus,)

_NO_MODIFIER = Qt.KeyboardModifier.NoModifier
_COMMAND_MODIFIERS = (
    Qt.KeyboardModifier.ControlModifier
    | Qt.KeyboardModifier.AltModifier
    | Qt.KeyboardModifier.MetaModifier
)


class ToolStateMachine(QObject):
    """
    Interprets input events against the active tool.

    Signals:
        tool_changed: Emitted with the new tool identifier string.
        selection_changed: Emitted with the selected annotation id or None.
        gesture_changed: Emitted with the new GestureState.
        viewport_changed: Emitted with the new ViewportState.
    """

    tool_changed = Signal(str)
    selection_changed = Signal(object)
    gesture_changed = Signal(object)
    viewport_changed = Signal(object)

    def __init__(
        self,
        store: Optional[AnnotationStore] = None,
        viewport: Optional[Viewport] = None,
        hit_tester: Optional[HitTester] = None,
        renderer: Optional[Renderer] = None,
        colors: Optional[Dict[AnnotationKind, str]] = None,
        fit_padding: float = FIT_PADDING,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self._store = store or AnnotationStore(self)
        self._viewport = viewport or Viewport()
        self._hit_tester = hit_tester or HitTester()
        self._renderer = renderer or Renderer()
        self._colors: Dict[AnnotationKind, str] = dict(DEFAULT_COLORS)
        if colors:
            self._colors.update(colors)
        self._fit_padding = fit_padding

        self._tool: ToolBase = create_tool(AnnotationKind.SELECT, self._colors)
        self._pan_drag = False
        self._last_gesture = self._tool.gesture_state()
        self._last_selection: Optional[str] = None

        self._store.changed.connect(self._on_store_changed)

    @classmethod
    def from_config(cls, config: Any, parent: Optional[QObject] = None) -> "ToolStateMachine":
        """
        Build a machine from a ConfigService.

        Unknown color keys in the config are ignored.
        """
        colors = {}
        for name, value in config.annotation_colors.items():
            kind = AnnotationKind.parse(name)
            if kind is not None:
                colors[kind] = value

        return cls(
            viewport=Viewport(zoom_step=config.zoom_step),
            hit_tester=HitTester(config.hit_radius_px, config.marker_hit_allowance),
            renderer=Renderer(config.draft_opacity, config.selection_padding_px),
            colors=colors,
            fit_padding=config.fit_padding,
            parent=parent,
        )

    # ─── State ────────────────────────────────────────────────────────────

    @property
    def store(self) -> AnnotationStore:
        return self._store

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def active_tool(self) -> ToolBase:
        return self._tool

    @property
    def active_kind(self) -> AnnotationKind:
        return self._tool.kind

    @property
    def threshold(self) -> float:
        """Current image-space hit threshold."""
        return self._hit_tester.threshold(self._viewport.zoom)

    @property
    def draft(self) -> Optional[Draft]:
        return self._tool.draft

    @property
    def gesture_state(self) -> GestureState:
        return self._tool.gesture_state()

    @property
    def status_message(self) -> str:
        return self._tool.status_message

    @property
    def is_panning(self) -> bool:
        return self._viewport.is_panning

    @property
    def selected_id(self) -> Optional[str]:
        """Id of the selected annotation, or None if it no longer exists."""
        annotation_id = self._tool.selected_id
        if annotation_id is None or annotation_id not in self._store:
            return None
        return annotation_id

    @property
    def selected_annotation(self) -> Optional[Annotation]:
        annotation_id = self.selected_id
        return self._store.get(annotation_id) if annotation_id else None

    @property
    def selected_dimensions(self) -> Dict[str, float]:
        annotation = self.selected_annotation
        return dimensions(annotation) if annotation else {}

    @property
    def can_undo(self) -> bool:
        return self._store.can_undo

    @property
    def can_redo(self) -> bool:
        return self._store.can_redo

    def records(self) -> List[Dict[str, Any]]:
        """Live annotation set as plain records."""
        return self._store.to_records()

    def color_for(self, kind: AnnotationKind) -> str:
        return self._colors.get(kind, "#ffffff")

    # ─── Tool Selection ───────────────────────────────────────────────────

    def set_tool(self, kind: Union[AnnotationKind, str]) -> bool:
        """
        Activate a tool. Any gesture in progress is dropped uncommitted.

        Returns False (and changes nothing) for unknown identifiers.
        """
        resolved = AnnotationKind.parse(kind)
        if resolved is None:
            self._logger.debug(f"Ignoring unknown tool identifier {kind!r}")
            return False

        self._tool.on_deactivate(self)
        self._tool = create_tool(resolved, self._colors)
        self._logger.info(f"Tool changed to: {resolved.value}")
        self.tool_changed.emit(resolved.value)
        self._sync()
        return True

    # ─── Image / View ─────────────────────────────────────────────────────

    def load_image(self, width: float, height: float,
                   viewport_width: float, viewport_height: float) -> None:
        """Fit a newly loaded image into the viewport and start a fresh history."""
        self._tool.cancel()
        self._store.reset()
        self._viewport.fit_to_image((width, height), (viewport_width, viewport_height),
                                    self._fit_padding)
        self._logger.info(
            f"Image loaded: {width}x{height}, zoom {self._viewport.zoom:.2f}"
        )
        self._emit_viewport()
        self._sync()

    def zoom_in(self) -> None:
        self._viewport.zoom_in()
        self._emit_viewport()

    def zoom_out(self) -> None:
        self._viewport.zoom_out()
        self._emit_viewport()

    def reset_view(self) -> None:
        self._viewport.reset()
        self._emit_viewport()

    def set_panning(self, active: bool) -> None:
        """Enable or disable pan mode (Space held, or a toolbar toggle)."""
        if active == self._viewport.is_panning:
            return
        self._viewport.set_panning(active)
        self._pan_drag = False
        if active:
            self._tool.on_pointer_lost()
            self._sync()
        self._logger.debug(f"Panning {'enabled' if active else 'disabled'}")

    def _emit_viewport(self) -> None:
        self.viewport_changed.emit(self._viewport.state)

    # ─── Pointer Events ───────────────────────────────────────────────────

    def pointer_press(self, screen_pos: QPointF,
                      modifiers: Qt.KeyboardModifier = _NO_MODIFIER) -> None:
        if self._viewport.is_panning:
            self._viewport.begin_pan(screen_pos)
            self._pan_drag = True
            return
        self._tool.on_mouse_press(self._viewport.to_image(screen_pos), self, modifiers)
        self._sync()

    def pointer_move(self, screen_pos: QPointF,
                     modifiers: Qt.KeyboardModifier = _NO_MODIFIER) -> None:
        if self._viewport.is_panning:
            if self._pan_drag and self._viewport.update_pan(screen_pos):
                self._emit_viewport()
            return
        self._tool.on_mouse_move(self._viewport.to_image(screen_pos), self, modifiers)
        self._sync()

    def pointer_release(self, screen_pos: QPointF,
                        modifiers: Qt.KeyboardModifier = _NO_MODIFIER) -> None:
        if self._viewport.is_panning:
            self._viewport.end_pan()
            self._pan_drag = False
            return
        self._tool.on_mouse_release(self._viewport.to_image(screen_pos), self, modifiers)
        self._sync()

    # ─── Keyboard Events ──────────────────────────────────────────────────

    def key_press(self, key: int, modifiers: Qt.KeyboardModifier = _NO_MODIFIER,
                  text: str = "") -> bool:
        """
        Handle a key press. Returns True if the key was consumed.

        While the text tool is in text entry every key goes to it, so
        typing a letter never switches tools.
        """
        if self._tool.is_editing_text:
            if not self._tool.on_key_press(key, self, modifiers):
                if text and not (modifiers & _COMMAND_MODIFIERS):
                    self._tool.on_text_input(text)
            self._sync()
            return True

        if modifiers & Qt.KeyboardModifier.ControlModifier:
            if key == Qt.Key.Key_Z:
                if modifiers & Qt.KeyboardModifier.ShiftModifier:
                    self.redo()
                else:
                    self.undo()
                return True
            return False

        if self._tool.on_key_press(key, self, modifiers):
            self._sync()
            return True

        if key == Qt.Key.Key_Space:
            self.set_panning(True)
            return True

        if key in ZOOM_IN_KEYS:
            self.zoom_in()
            return True

        if key in ZOOM_OUT_KEYS:
            self.zoom_out()
            return True

        if modifiers & _COMMAND_MODIFIERS:
            return False

        if key == Qt.Key.Key_R:
            self.reset_view()
            return True

        if key in TOOL_SHORTCUTS:
            self.set_tool(TOOL_SHORTCUTS[key])
            return True

        return False

    def key_release(self, key: int, modifiers: Qt.KeyboardModifier = _NO_MODIFIER) -> bool:
        if key == Qt.Key.Key_Space and not self._tool.is_editing_text:
            self.set_panning(False)
            return True
        return False

    def text_input(self, text: str) -> None:
        """Feed typed or input-method text to the text tool while it is in text entry."""
        if self._tool.is_editing_text:
            self._tool.on_text_input(text)
            self._sync()

    def focus_lost(self) -> None:
        """The input surface lost focus: finish text entry and stop panning."""
        if isinstance(self._tool, TextTool) and self._tool.is_editing_text:
            self._tool.commit(self)
            self._sync()
        self.set_panning(False)

    # ─── History ──────────────────────────────────────────────────────────

    def undo(self) -> bool:
        return self._store.undo()

    def redo(self) -> bool:
        return self._store.redo()

    # ─── Tool Callbacks ───────────────────────────────────────────────────

    def hit_test_annotations(self, pos: QPointF) -> Optional[Annotation]:
        """First annotation in collection order hit by an image-space point."""
        return self._hit_tester.first_hit(pos, self._store.annotations, self._viewport.zoom)

    def select_annotation(self, pos: QPointF) -> Optional[str]:
        """Id of the annotation the select tool would pick at pos, if any."""
        hit = self.hit_test_annotations(pos)
        return hit.id if hit else None

    def commit(self, annotation: Annotation) -> bool:
        return self._store.add(annotation)

    def remove_annotation(self, annotation_id: str) -> bool:
        removed = self._store.remove(annotation_id)
        if removed:
            self._logger.debug(f"Erased annotation {annotation_id}")
        return removed

    def move_annotation(self, annotation_id: Optional[str], delta: QPointF) -> bool:
        if annotation_id is None:
            return False
        return self._store.move_by(annotation_id, delta)

    # ─── Rendering ────────────────────────────────────────────────────────

    def render(self) -> List[Primitive]:
        """Primitive draw list for the current frame, in image space."""
        return self._renderer.render(
            self._store.annotations,
            self._viewport.state,
            draft=self.draft,
            selected=self.selected_annotation,
        )

    # ─── Notifications ────────────────────────────────────────────────────

    def _on_store_changed(self, annotations) -> None:
        self._sync_selection()

    def _sync(self) -> None:
        gesture = self._tool.gesture_state()
        if gesture != self._last_gesture:
            self._last_gesture = gesture
            self.gesture_changed.emit(gesture)
        self._sync_selection()

    def _sync_selection(self) -> None:
        selected = self.selected_id
        if selected != self._last_selection:
            self._last_selection = selected
            self.selection_changed.emit(selected)
