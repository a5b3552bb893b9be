"""Exception taxonomy for the editing engine.

Everything derives from FieldSketchError so a host can catch the whole
family at its event-handler boundary. Geometry itself never raises on
degenerate input; these are raised by the stateful components.
"""

from __future__ import annotations


class FieldSketchError(Exception):
    """Base class for engine errors."""


class InsufficientVertices(FieldSketchError):
    """A close/remove would leave a shape with too few vertices."""

    def __init__(self, required: int, actual: int) -> None:
        super().__init__(f"need at least {required} vertices, have {actual}")
        self.required = required
        self.actual = actual


class IndexOutOfRange(FieldSketchError, IndexError):
    """Vertex index outside the valid range for the operation."""

    def __init__(self, index: int, lower: int, upper: int) -> None:
        super().__init__(f"vertex index {index} outside [{lower}, {upper}]")
        self.index = index
        self.lower = lower
        self.upper = upper


class DegenerateEdge(FieldSketchError):
    """Zero-length edge cannot be rescaled to a new length."""


class ConcurrentSessionConflict(FieldSketchError):
    """A session was used after another session superseded it."""


class InvalidSessionState(FieldSketchError):
    """Operation not permitted in the session's current state."""


class NothingToUndo(FieldSketchError):
    """Undo requested with an empty undo stack."""


class NothingToRedo(FieldSketchError):
    """Redo requested with an empty redo stack."""


class UnknownShape(FieldSketchError, KeyError):
    """No field or path registered under the given id."""

    def __str__(self) -> str:
        return f"Shape not found: {self.args[0]}" if self.args else "Shape not found"


class PersistenceError(FieldSketchError):
    """Recoverable failure talking to the persistence collaborator."""

    def __init__(self, operation: str, shape_id: str | None, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed for {shape_id or 'store'}{detail}")
        self.operation = operation
        self.shape_id = shape_id
        self.cause = cause
