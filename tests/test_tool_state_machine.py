import pytest
from PySide6.QtCore import QPointF, Qt

from xray_annotator.editor.annotations import AnnotationKind
from xray_annotator.editor.tool_state_machine import ToolStateMachine
from xray_annotator.services.config_service import ConfigService

CTRL = Qt.KeyboardModifier.ControlModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier


def drag(machine, *coords):
    """Press at the first point, move through the rest, release at the last."""
    points = [QPointF(x, y) for x, y in coords]
    machine.pointer_press(points[0])
    for p in points[1:]:
        machine.pointer_move(p)
    machine.pointer_release(points[-1])


def click(machine, x, y):
    machine.pointer_press(QPointF(x, y))
    machine.pointer_release(QPointF(x, y))


def type_text(machine, text):
    for ch in text:
        machine.key_press(Qt.Key.Key_unknown, Qt.KeyboardModifier.NoModifier, ch)


def only(machine):
    annotations = machine.store.annotations
    assert len(annotations) == 1
    return annotations[0]


# ─── Shape tools ──────────────────────────────────────────────────────────

def test_box_scenario(machine):
    machine.set_tool("box")
    drag(machine, (10, 10), (110, 60))

    box = only(machine)
    assert box.kind is AnnotationKind.BOX
    assert box.color == "#22c55e"
    machine.set_tool("select")
    click(machine, 60, 35)
    assert machine.selected_dimensions == {"width": 100, "height": 50, "area": 5000}


def test_ruler_scenario(machine):
    machine.set_tool("ruler")
    drag(machine, (0, 0), (30, 40))
    machine.set_tool("select")
    click(machine, 15, 20)
    assert machine.selected_dimensions["length"] == pytest.approx(50.0)


def test_circle_scenario(machine):
    machine.set_tool("circle")
    drag(machine, (0, 0), (3, 4))
    machine.set_tool("select")
    click(machine, 5, 0)
    values = machine.selected_dimensions
    assert values["radius"] == pytest.approx(5.0)
    assert values["area"] == pytest.approx(78.5, abs=0.05)


def test_drag_preview_follows_pointer(machine):
    machine.set_tool("ellipse")
    machine.pointer_press(QPointF(10, 10))
    assert machine.draft.points == (QPointF(10, 10),)
    machine.pointer_move(QPointF(40, 30))
    assert machine.draft.points == (QPointF(10, 10), QPointF(40, 30))
    assert machine.store.count == 0


def test_click_without_drag_commits_nothing(machine):
    machine.set_tool("box")
    click(machine, 10, 10)
    assert machine.store.count == 0
    assert machine.draft is None


def test_flat_box_is_discarded(machine):
    machine.set_tool("box")
    drag(machine, (10, 10), (110, 10))
    assert machine.store.count == 0


def test_freehand_samples_every_move(machine):
    machine.set_tool("freehand")
    drag(machine, (0, 0), (1, 1), (2, 3), (4, 4))
    assert len(only(machine).points) == 4


def test_freehand_single_point_is_discarded(machine):
    machine.set_tool("freehand")
    click(machine, 5, 5)
    assert machine.store.count == 0


def test_marker_commits_on_press(machine):
    machine.set_tool("marker")
    machine.pointer_press(QPointF(7, 8))
    assert only(machine).points == (QPointF(7, 8),)


def test_pointer_positions_are_converted_to_image_space(machine):
    machine.viewport.set_zoom(2.0)
    machine.viewport.set_pan(QPointF(50, 50))
    machine.set_tool("marker")
    machine.pointer_press(QPointF(150, 150))
    assert only(machine).points == (QPointF(50, 50),)


# ─── Angle ────────────────────────────────────────────────────────────────

def test_angle_three_clicks(machine):
    machine.set_tool("angle")
    assert machine.status_message == ""

    click(machine, 10, 0)
    assert machine.gesture_state.angle_step == 1
    assert machine.status_message == "Click vertex point (1/2)"
    machine.pointer_move(QPointF(3, 3))
    assert machine.draft.points == (QPointF(10, 0), QPointF(3, 3))

    click(machine, 0, 0)
    assert machine.gesture_state.angle_step == 2
    assert machine.status_message == "Click end point (2/2)"
    machine.pointer_move(QPointF(0, 7))
    assert machine.draft.points == (QPointF(10, 0), QPointF(0, 0), QPointF(0, 7))
    assert machine.store.count == 0

    click(machine, 0, 10)
    angle = only(machine)
    assert angle.points == (QPointF(10, 0), QPointF(0, 0), QPointF(0, 10))
    assert machine.gesture_state.angle_step == 0
    assert machine.draft is None


def test_escape_aborts_angle(machine):
    machine.set_tool("angle")
    click(machine, 10, 0)
    click(machine, 0, 0)

    assert machine.key_press(Qt.Key.Key_Escape)
    assert machine.gesture_state.angle_step == 0
    assert machine.draft is None
    assert machine.store.count == 0


# ─── Text ─────────────────────────────────────────────────────────────────

def _open_text_box(machine):
    machine.set_tool("text")
    drag(machine, (10, 10), (60, 40))
    assert machine.active_tool.is_editing_text


def test_text_box_enforces_minimum_edit_area(machine):
    _open_text_box(machine)
    rect = machine.gesture_state.text_rect
    assert (rect.x(), rect.y(), rect.width(), rect.height()) == (10, 10, 100, 30)


def test_text_submit_accelerator_commits(machine):
    _open_text_box(machine)
    type_text(machine, "Hi")
    machine.key_press(Qt.Key.Key_Return, CTRL)

    text = only(machine)
    assert text.kind is AnnotationKind.TEXT
    assert text.text == "Hi"
    assert text.points == (QPointF(10, 10), QPointF(110, 40))
    assert not machine.active_tool.is_editing_text


def test_typing_letters_does_not_switch_tools(machine):
    _open_text_box(machine)
    machine.key_press(Qt.Key.Key_V, Qt.KeyboardModifier.NoModifier, "v")
    assert machine.active_kind is AnnotationKind.TEXT
    assert machine.draft.text == "v"


def test_backspace_edits_buffer(machine):
    _open_text_box(machine)
    type_text(machine, "ab")
    machine.key_press(Qt.Key.Key_Backspace)
    assert machine.draft.text == "a"


def test_text_commits_on_focus_loss(machine):
    _open_text_box(machine)
    type_text(machine, "disc bulge")
    machine.focus_lost()
    assert only(machine).text == "disc bulge"


def test_blank_text_is_not_committed(machine):
    _open_text_box(machine)
    type_text(machine, "   ")
    machine.focus_lost()
    assert machine.store.count == 0
    assert machine.gesture_state.phase == "idle"


def test_escape_cancels_text(machine):
    _open_text_box(machine)
    type_text(machine, "L1")
    machine.key_press(Qt.Key.Key_Escape)
    assert machine.store.count == 0
    assert machine.draft is None


def test_small_text_drag_is_discarded(machine):
    machine.set_tool("text")
    drag(machine, (10, 10), (25, 40))
    assert not machine.active_tool.is_editing_text
    assert machine.draft is None


def test_press_outside_commits_text(machine):
    _open_text_box(machine)
    type_text(machine, "A")
    machine.pointer_press(QPointF(300, 300))
    assert only(machine).text == "A"
    assert machine.gesture_state.phase == "idle"


# ─── Select / Erase ───────────────────────────────────────────────────────

def test_select_drag_moves_with_one_snapshot_per_move(machine):
    machine.set_tool("line")
    drag(machine, (0, 0), (100, 0))
    line = only(machine)

    machine.set_tool("select")
    machine.pointer_press(QPointF(50, 3))
    assert machine.selected_id == line.id

    machine.pointer_move(QPointF(55, 3))
    machine.pointer_move(QPointF(55, 3))
    machine.pointer_move(QPointF(55, 13))
    machine.pointer_release(QPointF(55, 13))

    moved = only(machine)
    assert moved.id == line.id
    assert moved.points == (QPointF(5, 10), QPointF(105, 10))
    # add + two non-zero moves
    assert machine.store.history_length == 4
    assert machine.selected_id == line.id


def test_select_miss_clears_selection(machine):
    machine.set_tool("marker")
    click(machine, 50, 50)
    machine.set_tool("select")
    click(machine, 50, 50)
    assert machine.selected_id is not None
    click(machine, 400, 400)
    assert machine.selected_id is None


def test_eraser_removes_only_the_line_under_the_path(machine):
    machine.set_tool("line")
    drag(machine, (0, 0), (100, 0))
    drag(machine, (0, 100), (100, 100))
    keep = machine.store.annotations[1]

    machine.set_tool("eraser")
    drag(machine, (50, -30), (50, 0), (50, 30))

    assert machine.store.annotations == (keep,)


def test_eraser_erases_continuously(machine):
    machine.set_tool("line")
    drag(machine, (0, 0), (100, 0))
    drag(machine, (0, 100), (100, 100))

    machine.set_tool("eraser")
    drag(machine, (50, -5), (50, 95))
    assert machine.store.count == 0


def test_eraser_only_erases_while_pressed(machine):
    machine.set_tool("marker")
    click(machine, 50, 50)
    machine.set_tool("eraser")
    machine.pointer_move(QPointF(50, 50))
    assert machine.store.count == 1


# ─── Tool switching ───────────────────────────────────────────────────────

def test_tool_switch_discards_partial_geometry(machine):
    machine.set_tool("box")
    machine.pointer_press(QPointF(10, 10))
    machine.pointer_move(QPointF(50, 50))
    machine.set_tool("circle")
    machine.pointer_release(QPointF(50, 50))

    assert machine.store.count == 0
    assert machine.draft is None


def test_tool_switch_clears_selection(machine):
    machine.set_tool("marker")
    click(machine, 20, 20)
    machine.set_tool("select")
    click(machine, 20, 20)

    seen = []
    machine.selection_changed.connect(seen.append)
    machine.set_tool("box")
    assert machine.selected_id is None
    assert seen == [None]


def test_unknown_tool_is_a_no_op(machine):
    changes = []
    machine.tool_changed.connect(changes.append)
    machine.set_tool("box")
    assert not machine.set_tool("laser")
    assert machine.active_kind is AnnotationKind.BOX
    assert changes == ["box"]


@pytest.mark.parametrize("key, kind", [
    (Qt.Key.Key_V, AnnotationKind.SELECT),
    (Qt.Key.Key_P, AnnotationKind.MARKER),
    (Qt.Key.Key_B, AnnotationKind.BOX),
    (Qt.Key.Key_C, AnnotationKind.CIRCLE),
    (Qt.Key.Key_L, AnnotationKind.LINE),
    (Qt.Key.Key_D, AnnotationKind.FREEHAND),
    (Qt.Key.Key_M, AnnotationKind.RULER),
    (Qt.Key.Key_A, AnnotationKind.ANGLE),
    (Qt.Key.Key_T, AnnotationKind.TEXT),
    (Qt.Key.Key_E, AnnotationKind.ERASER),
])
def test_tool_accelerators(machine, key, kind):
    assert machine.key_press(key)
    assert machine.active_kind is kind


# ─── History / View ───────────────────────────────────────────────────────

def test_undo_redo_accelerators(machine):
    machine.set_tool("marker")
    click(machine, 5, 5)

    assert machine.key_press(Qt.Key.Key_Z, CTRL)
    assert machine.store.count == 0
    assert machine.can_redo

    assert machine.key_press(Qt.Key.Key_Z, CTRL | SHIFT)
    assert machine.store.count == 1
    assert not machine.can_redo


def test_undo_drops_selection_of_vanished_annotation(machine):
    machine.set_tool("marker")
    click(machine, 5, 5)
    machine.set_tool("select")
    click(machine, 5, 5)

    seen = []
    machine.selection_changed.connect(seen.append)
    machine.undo()
    assert machine.selected_id is None
    assert machine.selected_dimensions == {}
    assert seen == [None]


def test_zoom_and_reset_accelerators(machine):
    machine.key_press(Qt.Key.Key_Plus)
    assert machine.viewport.zoom == pytest.approx(1.2)
    machine.key_press(Qt.Key.Key_Equal)
    assert machine.viewport.zoom == pytest.approx(1.44)
    machine.key_press(Qt.Key.Key_Minus)
    assert machine.viewport.zoom == pytest.approx(1.2)
    assert machine.threshold == pytest.approx(12.5)

    machine.key_press(Qt.Key.Key_R)
    assert machine.viewport.zoom == 1.0


def test_space_pans_instead_of_drawing(machine):
    machine.set_tool("box")
    machine.key_press(Qt.Key.Key_Space)
    assert machine.is_panning

    drag(machine, (0, 0), (30, 40))
    assert machine.viewport.pan == QPointF(30, 40)
    assert machine.store.count == 0

    machine.key_release(Qt.Key.Key_Space)
    assert not machine.is_panning
    drag(machine, (0, 0), (10, 10))
    assert machine.store.count == 1


def test_toolbar_pan_toggle(machine):
    machine.set_tool("marker")
    machine.set_panning(True)
    click(machine, 10, 10)
    assert machine.store.count == 0
    machine.set_panning(False)
    click(machine, 10, 10)
    assert machine.store.count == 1


def _pan_during_press(machine, release_at):
    machine.key_press(Qt.Key.Key_Space)
    machine.pointer_release(QPointF(*release_at))
    machine.key_release(Qt.Key.Key_Space)


def test_pan_ends_eraser_sweep(machine):
    machine.set_tool("line")
    drag(machine, (0, 0), (100, 0))

    machine.set_tool("eraser")
    machine.pointer_press(QPointF(500, 500))
    _pan_during_press(machine, (500, 500))
    assert machine.gesture_state.phase == "idle"

    machine.pointer_move(QPointF(50, 0))
    assert machine.store.count == 1


def test_pan_ends_select_drag_but_keeps_selection(machine):
    machine.set_tool("line")
    drag(machine, (0, 0), (100, 0))
    line = only(machine)

    machine.set_tool("select")
    machine.pointer_press(QPointF(50, 3))
    _pan_during_press(machine, (50, 3))
    assert machine.gesture_state.phase == "selected"

    machine.pointer_move(QPointF(80, 80))
    assert only(machine).points == line.points
    assert machine.store.history_length == 2
    assert machine.selected_id == line.id


def test_pan_discards_freehand_stroke(machine):
    machine.set_tool("freehand")
    machine.pointer_press(QPointF(0, 0))
    machine.pointer_move(QPointF(10, 10))
    _pan_during_press(machine, (10, 10))
    assert machine.draft is None

    machine.pointer_move(QPointF(20, 20))
    assert machine.draft is None
    assert machine.store.count == 0


def test_pan_discards_shape_and_text_box_drafts(machine):
    for tool in ("box", "text"):
        machine.set_tool(tool)
        machine.pointer_press(QPointF(10, 10))
        machine.pointer_move(QPointF(80, 60))
        machine.set_panning(True)
        assert machine.draft is None
        machine.set_panning(False)
        machine.pointer_release(QPointF(80, 60))
        assert machine.store.count == 0
        assert not machine.active_tool.is_editing_text


def test_pan_toggle_keeps_text_entry(machine):
    _open_text_box(machine)
    type_text(machine, "T12")
    machine.set_panning(True)
    assert machine.active_tool.is_editing_text
    assert machine.draft.text == "T12"


def test_load_image_fits_and_resets_history(machine):
    machine.set_tool("marker")
    click(machine, 5, 5)
    machine.load_image(2000, 1000, 1000, 800)

    assert machine.store.count == 0
    assert not machine.can_undo
    assert machine.viewport.zoom == pytest.approx(0.425)
    assert machine.viewport.pan == QPointF(75, 187.5)


def test_records_export(machine):
    machine.set_tool("ruler")
    drag(machine, (0, 0), (30, 40))
    record = machine.records()[0]
    assert record["kind"] == "ruler"
    assert record["points"] == [{"x": 0.0, "y": 0.0}, {"x": 30.0, "y": 40.0}]
    assert record["text"] is None


def test_from_config(qapp, tmp_path):
    config = ConfigService(tmp_path / "config.json")
    config.set("hit_radius_px", 30)
    config.set("annotation_colors", {"box": "#123456"})
    config.set("zoom_step", 2.0)

    machine = ToolStateMachine.from_config(config)
    assert machine.threshold == 30

    machine.set_tool("box")
    drag(machine, (0, 0), (10, 10))
    assert only(machine).color == "#123456"
    # Kinds missing from the override keep their defaults
    assert machine.color_for(AnnotationKind.CIRCLE) == "#3b82f6"

    machine.zoom_in()
    assert machine.viewport.zoom == 2.0
