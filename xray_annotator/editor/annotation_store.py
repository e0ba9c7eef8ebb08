"""
Annotation store with snapshot-based undo/redo.

The store owns the ordered annotation set and a history of snapshots with a
cursor. Every mutation (add, remove, move_by) truncates the redo future,
appends exactly one snapshot and moves the cursor to it. Undo and redo only
move the cursor.

Snapshots are tuples of immutable Annotation objects, so consecutive
snapshots share every annotation that did not change. Memory still grows
with the number of edits; a long select-drag records one snapshot per
pointer move.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from PySide6.QtCore import QObject, QPointF, Signal

from xray_annotator.editor.annotations import Annotation
from xray_annotator.services.logging_service import get_logger

AnnotationSet = Tuple[Annotation, ...]


class AnnotationStore(QObject):
    """
    Ordered annotation collection plus undo/redo history.

    Signals:
        changed: Emitted with the new live AnnotationSet after any mutation,
            undo, redo or reset.
        history_changed: Emitted with (can_undo, can_redo).
    """

    changed = Signal(object)
    history_changed = Signal(bool, bool)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._history: List[AnnotationSet] = [()]
        self._cursor: int = 0

    # ─── Inspection ───────────────────────────────────────────────────────

    @property
    def annotations(self) -> AnnotationSet:
        """The live annotation set (always history[cursor])."""
        return self._history[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def history_length(self) -> int:
        return len(self._history)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._history) - 1

    def get(self, annotation_id: str) -> Optional[Annotation]:
        for annotation in self.annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def __contains__(self, annotation_id: str) -> bool:
        return self.get(annotation_id) is not None

    @property
    def count(self) -> int:
        return len(self.annotations)

    def to_records(self) -> List[Dict[str, Any]]:
        """The live set as plain records for external persistence."""
        return [a.to_record() for a in self.annotations]

    # ─── Mutations ────────────────────────────────────────────────────────

    def add(self, annotation: Annotation) -> bool:
        """
        Append an annotation on top of the set.

        Annotations that violate their commit invariant are not added.
        Returns True if the set changed.
        """
        if not annotation.is_valid():
            self._logger.debug(f"Discarded degenerate {annotation.kind.value} annotation")
            return False
        if annotation.id in self:
            self._logger.debug(f"Annotation {annotation.id} already present")
            return False
        self._commit(self.annotations + (annotation,))
        self._logger.debug(f"Added {annotation.kind.value} annotation {annotation.id}")
        return True

    def remove(self, annotation_id: str) -> bool:
        """Remove an annotation by id. Unknown ids are a no-op."""
        current = self.annotations
        remaining = tuple(a for a in current if a.id != annotation_id)
        if len(remaining) == len(current):
            return False
        self._commit(remaining)
        self._logger.debug(f"Removed annotation {annotation_id}")
        return True

    def move_by(self, annotation_id: str, delta: QPointF) -> bool:
        """Translate every point of an annotation. Unknown ids are a no-op."""
        current = self.annotations
        moved = False
        updated = []
        for annotation in current:
            if annotation.id == annotation_id:
                annotation = annotation.translated(delta.x(), delta.y())
                moved = True
            updated.append(annotation)
        if not moved:
            return False
        self._commit(tuple(updated))
        return True

    def reset(self, annotations: Iterable[Annotation] = ()) -> None:
        """Start a fresh history whose only snapshot holds the given annotations."""
        initial = tuple(a for a in annotations if a.is_valid())
        self._history = [initial]
        self._cursor = 0
        self._emit()

    def load_records(self, records: Iterable[Dict[str, Any]]) -> int:
        """
        Reset the store from records produced by to_records().

        Records that cannot be rebuilt (unknown kind, malformed points) are
        skipped and logged at DEBUG, as reset() drops invalid geometry.

        Returns:
            The number of annotations loaded.
        """
        annotations = []
        for record in records:
            try:
                annotations.append(Annotation.from_record(record))
            except (ValueError, KeyError, TypeError) as e:
                self._logger.debug(f"Skipping unreadable record: {e}")
        self.reset(annotations)
        return self.count

    def _commit(self, snapshot: AnnotationSet) -> None:
        del self._history[self._cursor + 1:]
        self._history.append(snapshot)
        self._cursor = len(self._history) - 1
        self._emit()

    # ─── Undo/Redo ────────────────────────────────────────────────────────

    def undo(self) -> bool:
        if not self.can_undo:
            self._logger.debug("Nothing to undo")
            return False
        self._cursor -= 1
        self._emit()
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            self._logger.debug("Nothing to redo")
            return False
        self._cursor += 1
        self._emit()
        return True

    def _emit(self) -> None:
        self.changed.emit(self.annotations)
        self.history_changed.emit(self.can_undo, self.can_redo)
