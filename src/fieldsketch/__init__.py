"""fieldsketch — draw, measure and reshape field boundaries on a map.

The engine is host-agnostic: a map surface implements ``MapHost`` and
hands pointer events to a ``FieldEditorController``.
"""

from fieldsketch.comms.event_bus import EventBus
from fieldsketch.editing.draw import DrawMode, DrawStateMachine
from fieldsketch.editing.edit_session import EditSession
from fieldsketch.geometry.point import GeoPoint, ScreenPoint
from fieldsketch.host.controller import FieldEditorController
from fieldsketch.overlay.labels import OverlayLabelManager
from fieldsketch.registry.models import DistancePath, FieldPolygon, FieldStyle
from fieldsketch.registry.registry import PolygonRegistry

__version__ = "0.1.0"

__all__ = [
    "DistancePath",
    "DrawMode",
    "DrawStateMachine",
    "EditSession",
    "EventBus",
    "FieldEditorController",
    "FieldPolygon",
    "FieldStyle",
    "GeoPoint",
    "OverlayLabelManager",
    "PolygonRegistry",
    "ScreenPoint",
]
