import pytest
from PySide6.QtCore import Qt

from xray_annotator.editor.annotations import DRAG_SHAPE_KINDS, AnnotationKind
from xray_annotator.editor.tools import (
    AngleStep,
    AngleTool,
    DragShapeTool,
    EraserTool,
    SelectTool,
    TextTool,
    create_tool,
)


@pytest.mark.parametrize("kind", list(AnnotationKind))
def test_factory_builds_every_kind(kind):
    tool = create_tool(kind)
    assert tool.kind is kind
    assert tool.draft is None
    assert tool.gesture_state().tool is kind


def test_factory_picks_tool_classes():
    assert isinstance(create_tool(AnnotationKind.SELECT), SelectTool)
    assert isinstance(create_tool(AnnotationKind.ERASER), EraserTool)
    assert isinstance(create_tool(AnnotationKind.ANGLE), AngleTool)
    assert isinstance(create_tool(AnnotationKind.TEXT), TextTool)
    for kind in DRAG_SHAPE_KINDS:
        assert isinstance(create_tool(kind), DragShapeTool)


def test_factory_uses_palette():
    tool = create_tool(AnnotationKind.BOX, {AnnotationKind.BOX: "#010203"})
    assert tool.color == "#010203"
    assert create_tool(AnnotationKind.CIRCLE, {AnnotationKind.BOX: "#010203"}).color == "#3b82f6"


def test_drag_shape_tool_rejects_other_kinds():
    with pytest.raises(ValueError):
        DragShapeTool(AnnotationKind.ANGLE)


def test_cursors():
    assert create_tool(AnnotationKind.SELECT).cursor == Qt.CursorShape.ArrowCursor
    assert create_tool(AnnotationKind.TEXT).cursor == Qt.CursorShape.IBeamCursor
    assert create_tool(AnnotationKind.BOX).cursor == Qt.CursorShape.CrossCursor


def test_idle_tools_ignore_escape():
    tool = create_tool(AnnotationKind.ANGLE)
    assert tool.phase is AngleStep.IDLE
    assert not tool.on_key_press(Qt.Key.Key_Escape, None, Qt.KeyboardModifier.NoModifier)
