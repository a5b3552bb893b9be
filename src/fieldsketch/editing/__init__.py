"""Draw/edit state machines, vertex storage and undo history."""

from fieldsketch.editing.draw import DrawMode, DrawResult, DrawState, DrawStateMachine
from fieldsketch.editing.edit_session import EditSession, EditState
from fieldsketch.editing.history import Snapshot, UndoRedoStack
from fieldsketch.editing.metrics import ShapeMetrics
from fieldsketch.editing.session import IDLE, IdleSession, Session, SessionKind
from fieldsketch.editing.vertex_store import VertexStore

__all__ = [
    "DrawMode",
    "DrawResult",
    "DrawState",
    "DrawStateMachine",
    "EditSession",
    "EditState",
    "IDLE",
    "IdleSession",
    "Session",
    "SessionKind",
    "ShapeMetrics",
    "Snapshot",
    "UndoRedoStack",
    "VertexStore",
]
