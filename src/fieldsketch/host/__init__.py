"""Host map-surface contracts and the pointer-event controller."""

from fieldsketch.host.controller import FieldEditorController
from fieldsketch.host.protocols import (
    MapHost,
    Marker,
    MarkerRef,
    MarkerRole,
    PointerEvent,
    PointerKind,
)

__all__ = [
    "FieldEditorController",
    "MapHost",
    "Marker",
    "MarkerRef",
    "MarkerRole",
    "PointerEvent",
    "PointerKind",
]
