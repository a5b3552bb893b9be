"""Contracts between the engine and a host map surface.

The engine has no dependency on any map SDK. A host adapts its SDK to
MapHost: it projects geo points to pixels, reports camera-idle, and
forwards pointer events. Marker hits are resolved by the host (it owns
the rendered handles) and arrive as a MarkerRef on the event.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

from fieldsketch.geometry.point import GeoPoint, ScreenPoint


class PointerKind(str, Enum):
    CLICK = "click"
    DBLCLICK = "dblclick"
    DRAG_START = "drag_start"
    DRAG_MOVE = "drag_move"
    DRAG_END = "drag_end"
    CANCEL = "cancel"  # Escape or equivalent


class MarkerRole(str, Enum):
    VERTEX = "vertex"
    MIDPOINT = "midpoint"


@dataclass(frozen=True)
class MarkerRef:
    """A rendered handle: vertex ``index`` or the midpoint of edge ``index``."""

    owner_id: str
    role: MarkerRole
    index: int


@dataclass(frozen=True)
class Marker:
    """Where the host should draw a handle."""

    ref: MarkerRef
    position: GeoPoint


@dataclass(frozen=True)
class PointerEvent:
    kind: PointerKind
    point: Optional[GeoPoint] = None
    target: Optional[MarkerRef] = None


PointerCallback = Callable[[PointerEvent], None]


@runtime_checkable
class MapHost(Protocol):
    """Host map surface as seen by the engine."""

    def project_to_screen(self, point: GeoPoint) -> Optional[ScreenPoint]:
        """Pixel position of ``point``, or None outside the projectable viewport."""
        ...

    def on_camera_idle(self, callback: Callable[[], None]) -> None:
        ...

    def on_pointer_event(self, kind: PointerKind, callback: PointerCallback) -> None:
        ...
