"""Screen-space labels for edges, fields and distance paths."""

from fieldsketch.overlay.labels import Label, LabelKind, OverlayLabelManager
from fieldsketch.overlay.placement import segment_label_anchor, segment_offset_deg

__all__ = [
    "Label",
    "LabelKind",
    "OverlayLabelManager",
    "segment_label_anchor",
    "segment_offset_deg",
]
