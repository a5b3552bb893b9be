"""Session tagged variant: Idle | Drawing | Editing.

Only one non-idle session may exist at a time; PolygonRegistry enforces
that by superseding the previous session before it hands out a new one.
A superseded session refuses further use with ConcurrentSessionConflict
so a stale reference held by a UI callback can never mutate state that
no longer belongs to it.
"""

from __future__ import annotations

import uuid
from enum import Enum

from fieldsketch.errors import ConcurrentSessionConflict


class SessionKind(str, Enum):
    """Which variant a session is."""
    IDLE = "idle"
    DRAWING = "drawing"
    EDITING = "editing"


class Session:
    """Common base for every session variant."""

    kind: SessionKind = SessionKind.IDLE

    def __init__(self) -> None:
        self.session_id = f"session_{uuid.uuid4().hex[:8]}"
        self._superseded = False

    @property
    def superseded(self) -> bool:
        return self._superseded

    @property
    def is_active(self) -> bool:
        return self.kind is not SessionKind.IDLE and not self._superseded

    def supersede(self) -> None:
        """Mark this session as no longer current."""
        self._superseded = True

    def _check_current(self) -> None:
        if self._superseded:
            raise ConcurrentSessionConflict(
                f"{self.kind.value} session {self.session_id} was superseded"
            )


class IdleSession(Session):
    """No drawing or editing in progress."""

    kind = SessionKind.IDLE


IDLE = IdleSession()
