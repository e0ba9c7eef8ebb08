"""
Coordinate transform between screen space and image space.

Screen space is the viewport as currently panned and zoomed; image space is
the unscaled pixel grid of the loaded image. The two helpers are exact
inverses of each other:

    to_image(screen) = (screen - pan) / zoom
    to_screen(image) = image * zoom + pan
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from PySide6.QtCore import QPointF

from xray_annotator.services.logging_service import get_logger

MIN_ZOOM = 0.2
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2
FIT_PADDING = 0.85
# Smallest pan offset used when centering a freshly loaded image
MIN_CENTER_OFFSET = 20.0


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def to_image(screen_point: QPointF, pan: QPointF, zoom: float) -> QPointF:
    """Convert a screen-space point to image space."""
    return QPointF(
        (screen_point.x() - pan.x()) / zoom,
        (screen_point.y() - pan.y()) / zoom,
    )


def to_screen(image_point: QPointF, pan: QPointF, zoom: float) -> QPointF:
    """Convert an image-space point to screen space."""
    return QPointF(
        image_point.x() * zoom + pan.x(),
        image_point.y() * zoom + pan.y(),
    )


def fit_zoom(
    image_size: Tuple[float, float],
    viewport_size: Tuple[float, float],
    padding: float = FIT_PADDING,
) -> float:
    """
    Zoom level that shows the whole image with some margin.

    Never enlarges past 100% before padding is applied, and the result is
    clamped into the standard zoom range.
    """
    img_w, img_h = image_size
    view_w, view_h = viewport_size
    if img_w <= 0 or img_h <= 0 or view_w <= 0 or view_h <= 0:
        return 1.0
    return clamp_zoom(min(view_w / img_w, view_h / img_h, 1.0) * padding)


@dataclass(frozen=True)
class ViewportState:
    """Immutable view of the current zoom and pan."""
    zoom: float = 1.0
    pan: QPointF = field(default_factory=QPointF)

    def to_image(self, screen_point: QPointF) -> QPointF:
        return to_image(screen_point, self.pan, self.zoom)

    def to_screen(self, image_point: QPointF) -> QPointF:
        return to_screen(image_point, self.pan, self.zoom)


class Viewport:
    """
    Mutable zoom and pan holder.

    Zoom is clamped to [MIN_ZOOM, MAX_ZOOM] on every change. Panning is a
    drag mode: while it is active, pointer drags move the pan directly.
    """

    def __init__(self, zoom: float = 1.0, pan: Optional[QPointF] = None,
                 zoom_step: float = ZOOM_STEP) -> None:
        self._logger = get_logger(__name__)
        self._zoom: float = clamp_zoom(zoom)
        self._pan: QPointF = QPointF(pan) if pan is not None else QPointF(0, 0)
        self._zoom_step = zoom_step

        self._panning: bool = False
        self._pan_anchor: Optional[QPointF] = None

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def pan(self) -> QPointF:
        return QPointF(self._pan)

    @property
    def state(self) -> ViewportState:
        return ViewportState(self._zoom, QPointF(self._pan))

    # ─── Zoom ─────────────────────────────────────────────────────────────

    def set_zoom(self, zoom: float) -> None:
        self._zoom = clamp_zoom(zoom)

    def zoom_in(self) -> None:
        self.set_zoom(self._zoom * self._zoom_step)

    def zoom_out(self) -> None:
        self.set_zoom(self._zoom / self._zoom_step)

    def reset(self) -> None:
        """Back to 100% with no pan."""
        self._zoom = 1.0
        self._pan = QPointF(0, 0)

    def set_pan(self, pan: QPointF) -> None:
        self._pan = QPointF(pan)

    def fit_to_image(
        self,
        image_size: Tuple[float, float],
        viewport_size: Tuple[float, float],
        padding: float = FIT_PADDING,
    ) -> None:
        """Fit the image into the viewport and center it."""
        self._zoom = fit_zoom(image_size, viewport_size, padding)
        img_w, img_h = image_size
        view_w, view_h = viewport_size
        self._pan = QPointF(
            max(MIN_CENTER_OFFSET, (view_w - img_w * self._zoom) / 2),
            max(MIN_CENTER_OFFSET, (view_h - img_h * self._zoom) / 2),
        )
        self._logger.debug(f"Fitted {img_w}x{img_h} image at zoom {self._zoom:.3f}")

    # ─── Panning ──────────────────────────────────────────────────────────

    @property
    def is_panning(self) -> bool:
        return self._panning

    def set_panning(self, active: bool) -> None:
        self._panning = active
        if not active:
            self._pan_anchor = None

    def begin_pan(self, screen_point: QPointF) -> None:
        # Anchor is the pointer position relative to the current pan
        self._pan_anchor = screen_point - self._pan

    def update_pan(self, screen_point: QPointF) -> bool:
        """Move the pan with the pointer. Returns True if the pan changed."""
        if self._pan_anchor is None:
            return False
        self._pan = screen_point - self._pan_anchor
        return True

    def end_pan(self) -> None:
        self._pan_anchor = None

    # ─── Coordinate Conversion ────────────────────────────────────────────

    def to_image(self, screen_point: QPointF) -> QPointF:
        return to_image(screen_point, self._pan, self._zoom)

    def to_screen(self, image_point: QPointF) -> QPointF:
        return to_screen(image_point, self._pan, self._zoom)
