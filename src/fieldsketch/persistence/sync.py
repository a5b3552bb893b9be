"""SaveScheduler — fire-and-forget persistence for registry changes.

Registry events arrive synchronously inside pointer/click handlers. The
scheduler turns each into an asyncio task and returns immediately.
Operations on the same field run in order; a failure is logged and kept
for retry rather than raised into the UI. An event that arrives with no
running event loop is recorded as a failure straight away, so a later
``retry_failed`` inside a loop still persists it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from fieldsketch.errors import PersistenceError
from fieldsketch.persistence.store import FieldStore
from fieldsketch.registry.models import FieldPolygon
from fieldsketch.registry.registry import PolygonRegistry


class SaveScheduler:
    """Bridges PolygonRegistry change events to an async FieldStore."""

    def __init__(self, store: FieldStore) -> None:
        self.store = store
        self._chains: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        # field_id -> (operation, field snapshot or None, error)
        self.failures: dict[str, tuple[str, Optional[FieldPolygon], PersistenceError]] = {}
        self._registry: Optional[PolygonRegistry] = None
        self._detach: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Registry wiring
    # ------------------------------------------------------------------

    def attach(self, registry: PolygonRegistry) -> None:
        self.detach()
        self._registry = registry
        self._detach = registry.add_listener(self._on_registry_event)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
        self._detach = None
        self._registry = None

    def _on_registry_event(self, event_type: str, data: dict) -> None:
        if self._registry is None:
            return
        if event_type in ("field_created", "field_updated"):
            self.schedule_save(self._registry.get_field(data["field_id"]))
        elif event_type == "field_deleted":
            self.schedule_delete(data["field_id"])

    async def load_into(self, registry: PolygonRegistry) -> int:
        """Hydrate ``registry`` from the store."""
        fields = await self.store.load_all()
        return registry.load(fields)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_save(self, field_polygon: FieldPolygon) -> Optional[asyncio.Task]:
        # Later edits must not leak into this save
        snapshot = FieldPolygon.from_dict(field_polygon.to_dict())
        return self._enqueue(
            "save", snapshot.field_id, snapshot, lambda: self.store.save(snapshot)
        )

    def schedule_delete(self, field_id: str) -> Optional[asyncio.Task]:
        return self._enqueue("delete", field_id, None, lambda: self.store.delete(field_id))

    def _enqueue(
        self,
        operation: str,
        field_id: str,
        payload: Optional[FieldPolygon],
        call: Callable[[], Awaitable[object]],
    ) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            self._record_failure(operation, field_id, payload, PersistenceError(operation, field_id, e))
            return None
        previous = self._chains.get(field_id)
        task = loop.create_task(self._run(operation, field_id, payload, call, previous))
        self._chains[field_id] = task
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(field_id, t))
        return task

    async def _run(
        self,
        operation: str,
        field_id: str,
        payload: Optional[FieldPolygon],
        call: Callable[[], Awaitable[object]],
        previous: Optional[asyncio.Task],
    ) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await call()
        except PersistenceError as e:
            self._record_failure(operation, field_id, payload, e)
            return False
        except Exception as e:
            self._record_failure(operation, field_id, payload, PersistenceError(operation, field_id, e))
            return False
        self.failures.pop(field_id, None)
        logger.debug(f"Persisted {operation} of {field_id}")
        return True

    def _record_failure(
        self, operation: str, field_id: str, payload: Optional[FieldPolygon], error: PersistenceError
    ) -> None:
        logger.error(f"Persistence {operation} failed for {field_id}: {error}")
        self.failures[field_id] = (operation, payload, error)

    def _on_done(self, field_id: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._chains.get(field_id) is task:
            del self._chains[field_id]

    # ------------------------------------------------------------------
    # Draining and retry
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def pending_failures(self) -> list[str]:
        return list(self.failures)

    async def drain(self) -> None:
        """Wait for every scheduled operation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def retry_failed(self) -> int:
        """Re-run every failed operation. Returns how many now succeeded."""
        failed = list(self.failures.items())
        tasks = []
        for field_id, (operation, payload, _) in failed:
            task = None
            if operation == "save" and payload is not None:
                task = self.schedule_save(payload)
            elif operation == "delete":
                task = self.schedule_delete(field_id)
            if task is not None:
                tasks.append(task)
        results = await asyncio.gather(*tasks, return_exceptions=True)
        return sum(1 for r in results if r is True)
