"""
Main window for the XRay Annotator.

Hosts the annotation canvas with a menu bar for files, history, view and
tools, and a status bar that shows the active tool's prompt and the
dimensions of the selected annotation.
"""

from pathlib import Path
from typing import Dict, Optional

from PySide6.QtGui import QAction, QActionGroup, QImage, QKeySequence
from PySide6.QtWidgets import (
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QWidget,
)

from xray_annotator.editor.annotations import AnnotationKind
from xray_annotator.editor.editor_canvas import AnnotationCanvas
from xray_annotator.editor.measurements import format_dimensions
from xray_annotator.editor.tool_state_machine import ToolStateMachine
from xray_annotator.services.config_service import ConfigService
from xray_annotator.services.logging_service import get_logger

# Menu order with the single-key accelerator handled by the canvas
TOOL_MENU = [
    (AnnotationKind.SELECT, "&Select", "V"),
    (AnnotationKind.MARKER, "&Marker", "P"),
    (AnnotationKind.BOX, "&Box", "B"),
    (AnnotationKind.CIRCLE, "&Circle", "C"),
    (AnnotationKind.ELLIPSE, "&Ellipse", ""),
    (AnnotationKind.LINE, "&Line", "L"),
    (AnnotationKind.FREEHAND, "&Freehand", "D"),
    (AnnotationKind.RULER, "&Ruler", "M"),
    (AnnotationKind.ANGLE, "&Angle", "A"),
    (AnnotationKind.TEXT, "&Text", "T"),
    (AnnotationKind.ERASER, "E&raser", "E"),
]

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.tif *.tiff);;All files (*)"


class MainWindow(QMainWindow):
    """
    Main application window.

    Features:
    - Canvas with zoom/pan and the annotation tools
    - File, Edit, View and Tools menus
    - Status bar with the tool prompt and selected shape dimensions
    """

    def __init__(
        self,
        config_service: Optional[ConfigService] = None,
        parent: Optional[QWidget] = None
    ) -> None:
        """
        Initialize the MainWindow.

        Args:
            config_service: Optional config service for engine settings.
            parent: Optional parent widget.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._config = config_service
        self._tool_actions: Dict[AnnotationKind, QAction] = {}

        machine = ToolStateMachine.from_config(config_service) if config_service else None
        self._canvas = AnnotationCanvas(machine, self)
        self._status_label = QLabel()
        self._dimensions_label = QLabel()

        self._setup_window()
        self._setup_menu_bar()
        self._setup_status_bar()
        self._connect_signals()

        self._logger.info("MainWindow initialized")

    @property
    def canvas(self) -> AnnotationCanvas:
        return self._canvas

    def _setup_window(self) -> None:
        """Configure main window properties."""
        self.setWindowTitle("XRay Annotator")
        self.setMinimumSize(800, 600)
        self.resize(1200, 800)
        self.setCentralWidget(self._canvas)

    def _setup_menu_bar(self) -> None:
        """Create and configure the menu bar."""
        menu_bar = self.menuBar()
        machine = self._canvas.machine

        # ─── File Menu ────────────────────────────────────────────────
        file_menu = menu_bar.addMenu("&File")

        open_action = QAction("&Open Image...", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self._on_open)
        file_menu.addAction(open_action)

        file_menu.addSeparator()

        quit_action = QAction("&Quit", self)
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        # ─── Edit Menu ────────────────────────────────────────────────
        # Undo/redo keys are handled by the canvas so text entry can swallow them
        edit_menu = menu_bar.addMenu("&Edit")

        self._undo_action = QAction("&Undo\tCtrl+Z", self)
        self._undo_action.triggered.connect(machine.undo)
        self._undo_action.setEnabled(False)
        edit_menu.addAction(self._undo_action)

        self._redo_action = QAction("&Redo\tCtrl+Shift+Z", self)
        self._redo_action.triggered.connect(machine.redo)
        self._redo_action.setEnabled(False)
        edit_menu.addAction(self._redo_action)

        # ─── View Menu ────────────────────────────────────────────────
        view_menu = menu_bar.addMenu("&View")

        zoom_in_action = QAction("Zoom &In\t+", self)
        zoom_in_action.triggered.connect(machine.zoom_in)
        view_menu.addAction(zoom_in_action)

        zoom_out_action = QAction("Zoom &Out\t-", self)
        zoom_out_action.triggered.connect(machine.zoom_out)
        view_menu.addAction(zoom_out_action)

        reset_action = QAction("&Reset View\tR", self)
        reset_action.triggered.connect(machine.reset_view)
        view_menu.addAction(reset_action)

        view_menu.addSeparator()

        self._pan_action = QAction("&Pan\tSpace", self)
        self._pan_action.setCheckable(True)
        self._pan_action.toggled.connect(self._on_pan_toggled)
        view_menu.addAction(self._pan_action)

        # ─── Tools Menu ───────────────────────────────────────────────
        tools_menu = menu_bar.addMenu("&Tools")
        group = QActionGroup(self)
        group.setExclusive(True)

        for kind, label, key in TOOL_MENU:
            text = f"{label}\t{key}" if key else label
            action = QAction(text, self)
            action.setCheckable(True)
            action.setChecked(kind == machine.active_kind)
            action.triggered.connect(lambda checked=False, k=kind: machine.set_tool(k))
            group.addAction(action)
            tools_menu.addAction(action)
            self._tool_actions[kind] = action

    def _setup_status_bar(self) -> None:
        status_bar = self.statusBar()
        status_bar.addWidget(self._status_label, 1)
        status_bar.addPermanentWidget(self._dimensions_label)

    def _connect_signals(self) -> None:
        machine = self._canvas.machine
        machine.tool_changed.connect(self._on_tool_changed)
        machine.selection_changed.connect(lambda _: self._update_dimensions())
        machine.store.changed.connect(lambda _: self._update_dimensions())
        machine.store.history_changed.connect(self._on_history_changed)
        self._canvas.status_changed.connect(self._status_label.setText)

    # ─── Public Methods ───────────────────────────────────────────────────

    def open_image(self, path: Path) -> bool:
        """
        Load an image file into the canvas.

        Returns:
            True if the image was loaded.
        """
        image = QImage(str(path))
        if image.isNull():
            self._logger.error(f"Could not load image: {path}")
            QMessageBox.warning(self, "Open Image", f"Could not load image:\n{path}")
            return False

        self._canvas.load_image(image)
        self.setWindowTitle(f"XRay Annotator - {Path(path).name} ({image.width()}×{image.height()})")
        return True

    # ─── Slots ────────────────────────────────────────────────────────────

    def _on_open(self) -> None:
        """Handle File > Open Image."""
        filename, _ = QFileDialog.getOpenFileName(self, "Open Image", str(Path.home()), IMAGE_FILTER)
        if filename:
            self.open_image(Path(filename))

    def _on_pan_toggled(self, checked: bool) -> None:
        self._canvas.machine.set_panning(checked)
        self._canvas.setFocus()

    def _on_tool_changed(self, tool_name: str) -> None:
        kind = AnnotationKind.parse(tool_name)
        action = self._tool_actions.get(kind)
        if action is not None:
            action.setChecked(True)

    def _on_history_changed(self, can_undo: bool, can_redo: bool) -> None:
        self._undo_action.setEnabled(can_undo)
        self._redo_action.setEnabled(can_redo)

    def _update_dimensions(self) -> None:
        rows = format_dimensions(self._canvas.machine.selected_dimensions)
        self._dimensions_label.setText("   ".join(f"{label}: {text}" for label, text in rows))
