import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication  # noqa: E402

from xray_annotator.editor.annotation_store import AnnotationStore  # noqa: E402
from xray_annotator.editor.tool_state_machine import ToolStateMachine  # noqa: E402


@pytest.fixture(scope="session")
def qapp():
    """Single offscreen QApplication shared by every widget/painter test."""
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def store(qapp):
    return AnnotationStore()


@pytest.fixture
def machine(qapp):
    """Engine at zoom 1 with no pan, so screen and image coordinates coincide."""
    return ToolStateMachine()


