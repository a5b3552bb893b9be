"""VertexStore — observable ordered vertex list for one editing session.

The index of a vertex is its identity for the lifetime of the session;
inserting or removing shifts every later index. Listeners are called
synchronously from inside each mutating call, so by the time a mutation
returns every subscribed recomputation (metrics, labels) has run.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator

from loguru import logger

from fieldsketch.errors import IndexOutOfRange
from fieldsketch.geometry.point import GeoPoint

Listener = Callable[["VertexStore"], None]


class VertexStore:
    """Index-addressable, mutable sequence of GeoPoints."""

    def __init__(self, points: Iterable[GeoPoint] = ()) -> None:
        self._points: list[GeoPoint] = list(points)
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                # Remaining listeners still run
                logger.exception("VertexStore listener failed")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, point: GeoPoint) -> None:
        self._points.append(point)
        self._notify()

    def insert_at(self, index: int, point: GeoPoint) -> None:
        """Insert before ``index``; ``index == len`` appends."""
        if not 0 <= index <= len(self._points):
            raise IndexOutOfRange(index, 0, len(self._points))
        self._points.insert(index, point)
        self._notify()

    def set_at(self, index: int, point: GeoPoint) -> None:
        self._check_existing(index)
        self._points[index] = point
        self._notify()

    def remove_at(self, index: int) -> GeoPoint:
        self._check_existing(index)
        removed = self._points.pop(index)
        self._notify()
        return removed

    def replace_all(self, points: Iterable[GeoPoint]) -> None:
        """Swap in a whole snapshot (undo/redo, drag cancel). Notifies once."""
        self._points = list(points)
        self._notify()

    def _check_existing(self, index: int) -> None:
        if not 0 <= index < len(self._points):
            raise IndexOutOfRange(index, 0, len(self._points) - 1)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def to_array(self) -> tuple[GeoPoint, ...]:
        """Snapshot of the current points. GeoPoint is immutable, so a
        tuple copy is a full deep copy."""
        return tuple(self._points)

    def length(self) -> int:
        return len(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __getitem__(self, index: int) -> GeoPoint:
        return self._points[index]

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(tuple(self._points))

    def __repr__(self) -> str:
        return f"VertexStore({len(self._points)} points)"
