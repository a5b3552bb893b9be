"""Finished shapes, selection and the single active session."""

from fieldsketch.registry.models import DistancePath, FieldPolygon, FieldStyle
from fieldsketch.registry.registry import PolygonRegistry

__all__ = ["DistancePath", "FieldPolygon", "FieldStyle", "PolygonRegistry"]
