import pytest
from PySide6.QtCore import QPointF

from xray_annotator.editor.annotations import Annotation, AnnotationKind
from xray_annotator.editor.hit_testing import HitTester, point_to_segment_distance


def _ann(kind, *coords, text=None):
    return Annotation(kind, tuple(QPointF(x, y) for x, y in coords), text=text)


@pytest.fixture
def tester():
    return HitTester()


def hits(tester, annotation, x, y, zoom=1.0):
    return tester.hit_test(QPointF(x, y), annotation, zoom)


def test_threshold_scales_with_zoom(tester):
    assert tester.threshold(1.0) == 15.0
    assert tester.threshold(2.0) == 7.5
    assert tester.threshold(0.5) == 30.0


def test_segment_distance_clamps_projection():
    a, b = QPointF(0, 0), QPointF(100, 0)
    assert point_to_segment_distance(QPointF(50, 10), a, b) == pytest.approx(10)
    assert point_to_segment_distance(QPointF(130, 40), a, b) == pytest.approx(50)
    assert point_to_segment_distance(QPointF(1, 1), a, a) is None


def test_marker_uses_glyph_allowance(tester):
    marker = _ann(AnnotationKind.MARKER, (100, 100))
    assert hits(tester, marker, 122, 100)
    assert not hits(tester, marker, 124, 100)
    # At zoom 2 the reach is 7.5 + 8
    assert hits(tester, marker, 115, 100, zoom=2.0)
    assert not hits(tester, marker, 116, 100, zoom=2.0)


def test_box_inside_and_near_edges(tester):
    box = _ann(AnnotationKind.BOX, (110, 60), (10, 10))
    assert hits(tester, box, 60, 35)
    assert hits(tester, box, 115, 30)
    assert hits(tester, box, 120, 70)
    assert not hits(tester, box, 130, 30)
    assert not hits(tester, box, 60, 90)


def test_circle_hits_ring_only(tester):
    circle = _ann(AnnotationKind.CIRCLE, (0, 0), (50, 0))
    assert hits(tester, circle, 0, 50)
    assert hits(tester, circle, 60, 0)
    assert not hits(tester, circle, 70, 0)
    assert not hits(tester, circle, 0, 0)


def test_ellipse_hits_outline(tester):
    ellipse = _ann(AnnotationKind.ELLIPSE, (0, 0), (100, 50))
    assert hits(tester, ellipse, 100, 25)
    assert hits(tester, ellipse, 50, 0)
    assert not hits(tester, ellipse, 50, 25)


def test_degenerate_ellipse_never_hits(tester):
    flat = _ann(AnnotationKind.ELLIPSE, (0, 0), (100, 0))
    assert not hits(tester, flat, 50, 0)
    assert not hits(tester, flat, 0, 0)


def test_line_and_ruler_segment_distance(tester):
    for kind in (AnnotationKind.LINE, AnnotationKind.RULER):
        line = _ann(kind, (0, 0), (100, 0))
        assert hits(tester, line, 50, 10)
        assert not hits(tester, line, 50, 20)
        assert hits(tester, line, 110, 0)
        assert not hits(tester, line, 120, 0)


def test_zero_length_line_never_hits(tester):
    line = _ann(AnnotationKind.LINE, (5, 5), (5, 5))
    assert not hits(tester, line, 5, 5)


def test_angle_hits_either_arm(tester):
    angle = _ann(AnnotationKind.ANGLE, (100, 0), (0, 0), (0, 100))
    assert hits(tester, angle, 50, 5)
    assert hits(tester, angle, 5, 50)
    assert not hits(tester, angle, 50, 50)


def test_freehand_hits_sampled_points(tester):
    path = _ann(AnnotationKind.FREEHAND, (0, 0), (100, 0))
    assert hits(tester, path, 10, 0)
    # Far from every sample even though it lies on the implied segment
    assert not hits(tester, path, 50, 0)


def test_text_hits_expanded_rect(tester):
    text = _ann(AnnotationKind.TEXT, (10, 10), (110, 40), text="T12")
    assert hits(tester, text, 60, 25)
    assert hits(tester, text, 0, 0)
    assert not hits(tester, text, 130, 25)


def test_first_hit_returns_first_in_order(tester):
    bottom = _ann(AnnotationKind.BOX, (0, 0), (100, 100))
    top = _ann(AnnotationKind.BOX, (20, 20), (80, 80))
    assert tester.first_hit(QPointF(50, 50), [bottom, top], 1.0) is bottom
    assert tester.first_hit(QPointF(500, 500), [bottom, top], 1.0) is None


def test_custom_radius():
    tester = HitTester(hit_radius_px=30, marker_allowance=0)
    marker = _ann(AnnotationKind.MARKER, (0, 0))
    assert tester.hit_test(QPointF(29, 0), marker, 1.0)
    assert not tester.hit_test(QPointF(31, 0), marker, 1.0)
