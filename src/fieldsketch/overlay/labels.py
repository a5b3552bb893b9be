"""OverlayLabelManager — floating distance and name labels for shapes.

Two separate recompute triggers:
  - vertices change  -> sync_shape() rebuilds geo anchors and text
  - camera changes   -> reproject() recomputes screen positions only

Screen positions come from a projection callback supplied by the host
map. When the callback returns None the anchor is outside the
projectable viewport and the label is hidden, never clamped to an edge.
This module only reads vertex data; it never mutates a VertexStore.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from fieldsketch.config import settings
from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint, ScreenPoint
from fieldsketch.geometry.units import format_distance, format_hectares
from fieldsketch.overlay.placement import segment_label_anchor

Projector = Callable[[GeoPoint], Optional[ScreenPoint]]
ZoomProvider = Callable[[], Optional[float]]


class LabelKind(str, Enum):
    EDGE_LENGTH = "edge_length"        # field edge, editable
    SEGMENT_LENGTH = "segment_length"  # distance path segment
    FIELD_NAME = "field_name"          # name + live area at the centroid
    PATH_TOTAL = "path_total"          # total distance at the path end


@dataclass
class Label:
    """One floating label.

    Attributes:
        owner_id: Field or path the label belongs to.
        kind: What the label shows.
        index: Edge index for per-edge labels, 0 otherwise.
        anchor: Geographic position the label is pinned to.
        text: Rendered text.
        value: Underlying number (meters for lengths, m² for areas).
        editable: True if the host should render an input for this label.
        segment: Edge endpoints, kept so the anchor can follow zoom changes.
        screen: Last projected position; None while hidden.
    """

    owner_id: str
    kind: LabelKind
    index: int
    anchor: GeoPoint
    text: str
    value: float = 0.0
    editable: bool = False
    segment: Optional[tuple[GeoPoint, GeoPoint]] = None
    screen: Optional[ScreenPoint] = None

    @property
    def key(self) -> tuple[str, LabelKind, int]:
        return (self.owner_id, self.kind, self.index)

    @property
    def visible(self) -> bool:
        return self.screen is not None


class OverlayLabelManager:
    """Keeps every shape's labels in step with its vertices and the camera."""

    def __init__(
        self,
        project_to_screen: Projector,
        zoom_provider: Optional[ZoomProvider] = None,
        radius: float = spherical.EARTH_RADIUS_M,
        km_threshold: float | None = None,
    ) -> None:
        self._project = project_to_screen
        self._zoom = zoom_provider
        self.radius = radius
        self.km_threshold = km_threshold if km_threshold is not None else settings.km_threshold_m
        self._labels: dict[str, list[Label]] = {}

    # ------------------------------------------------------------------
    # Vertex-driven updates
    # ------------------------------------------------------------------

    def sync_shape(
        self,
        owner_id: str,
        vertices: Sequence[GeoPoint],
        closed: bool,
        name: str | None = None,
        show_edges: bool = True,
        is_field: bool | None = None,
    ) -> list[Label]:
        """Rebuild the labels of one shape from its current vertices.

        Fields get editable edge labels on each midpoint and a name/area
        label at the centroid. Distance paths (``is_field=False``, the
        default for open shapes) get offset segment labels and a running
        total at the last vertex.
        """
        if is_field is None:
            is_field = closed
        labels: list[Label] = []
        pairs = spherical.edges(len(vertices), closed)
        zoom = self._zoom() if self._zoom is not None else None

        if show_edges:
            for i, (a_idx, b_idx) in enumerate(pairs):
                a, b = vertices[a_idx], vertices[b_idx]
                length = spherical.distance(a, b, self.radius)
                text = format_distance(length, self.km_threshold)
                if is_field:
                    labels.append(Label(
                        owner_id=owner_id,
                        kind=LabelKind.EDGE_LENGTH,
                        index=i,
                        anchor=spherical.midpoint(a, b),
                        text=text,
                        value=length,
                        editable=True,
                    ))
                else:
                    labels.append(Label(
                        owner_id=owner_id,
                        kind=LabelKind.SEGMENT_LENGTH,
                        index=i,
                        anchor=segment_label_anchor(a, b, zoom, self.radius),
                        text=text,
                        value=length,
                        segment=(a, b),
                    ))

        if is_field and len(vertices) >= 3:
            area = abs(spherical.signed_area(vertices, self.radius))
            area_text = format_hectares(area)
            labels.append(Label(
                owner_id=owner_id,
                kind=LabelKind.FIELD_NAME,
                index=0,
                anchor=spherical.centroid(vertices),
                text=f"{name}\n{area_text}" if name else area_text,
                value=area,
            ))
        elif not is_field and len(vertices) >= 2:
            total = spherical.perimeter(vertices, closed, self.radius)
            labels.append(Label(
                owner_id=owner_id,
                kind=LabelKind.PATH_TOTAL,
                index=0,
                anchor=vertices[-1],
                text=f"Total: {format_distance(total, self.km_threshold)}",
                value=total,
            ))

        for label in labels:
            label.screen = self._project(label.anchor)
        self._labels[owner_id] = labels
        return labels

    def remove_owner(self, owner_id: str) -> None:
        self._labels.pop(owner_id, None)

    def clear(self) -> None:
        self._labels.clear()

    # ------------------------------------------------------------------
    # Camera-driven updates
    # ------------------------------------------------------------------

    def reproject(self) -> int:
        """Recompute every screen position. Returns the visible label count."""
        zoom = self._zoom() if self._zoom is not None else None
        visible = 0
        for labels in self._labels.values():
            for label in labels:
                if label.segment is not None:
                    label.anchor = segment_label_anchor(*label.segment, zoom, self.radius)
                label.screen = self._project(label.anchor)
                if label.screen is not None:
                    visible += 1
        return visible

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def labels_for(self, owner_id: str) -> list[Label]:
        return list(self._labels.get(owner_id, ()))

    def label(self, owner_id: str, kind: LabelKind, index: int = 0) -> Optional[Label]:
        for label in self._labels.get(owner_id, ()):
            if label.kind is kind and label.index == index:
                return label
        return None

    def all_labels(self) -> list[Label]:
        return [label for labels in self._labels.values() for label in labels]

    def visible_labels(self) -> list[Label]:
        return [label for label in self.all_labels() if label.visible]

    @property
    def owners(self) -> list[str]:
        return list(self._labels)
