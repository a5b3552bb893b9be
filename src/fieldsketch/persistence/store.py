"""Field persistence: the collaborator contract and a JSON file store.

The engine only ever talks to a FieldStore through ``async`` calls.
JsonFieldStore
is the reference implementation: one JSON document holding every field,
read and written on a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from fieldsketch.config import settings
from fieldsketch.errors import PersistenceError
from fieldsketch.geometry.point import GeoPoint
from fieldsketch.registry.models import FieldPolygon, FieldStyle


@runtime_checkable
class FieldStore(Protocol):
    """What the engine needs from a persistence backend."""

    async def save(self, field_polygon: FieldPolygon) -> str:
        """Create or replace a field. Returns its id."""
        ...

    async def load_all(self) -> list[FieldPolygon]:
        ...

    async def delete(self, field_id: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Stored document schema
# ---------------------------------------------------------------------------

class VertexRecord(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class StyleRecord(BaseModel):
    stroke_color: str = "#00C853"
    fill_color: str = "#00C853"
    stroke_weight: float = 2.0
    fill_opacity: float = Field(default=0.3, ge=0.0, le=1.0)


class FieldRecord(BaseModel):
    """On-disk shape of one field. Area and perimeter are not stored."""

    field_id: str
    name: str = ""
    vertices: list[VertexRecord] = Field(min_length=3)
    style: StyleRecord = Field(default_factory=StyleRecord)
    z_index: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_field(cls, field_polygon: FieldPolygon) -> FieldRecord:
        return cls(
            field_id=field_polygon.field_id,
            name=field_polygon.name,
            vertices=[VertexRecord(lat=p.lat, lng=p.lng) for p in field_polygon.vertices],
            style=StyleRecord(**field_polygon.style.to_dict()),
            z_index=field_polygon.z_index,
            created_at=field_polygon.created_at,
            updated_at=field_polygon.updated_at,
        )

    def to_field(self) -> FieldPolygon:
        kwargs = {}
        if self.created_at:
            kwargs["created_at"] = self.created_at
        return FieldPolygon(
            field_id=self.field_id,
            vertices=tuple(GeoPoint(v.lat, v.lng) for v in self.vertices),
            name=self.name,
            style=FieldStyle(**self.style.model_dump()),
            z_index=self.z_index,
            updated_at=self.updated_at,
            **kwargs,
        )


# ---------------------------------------------------------------------------
# JSON file store
# ---------------------------------------------------------------------------

class JsonFieldStore:
    """FieldStore backed by a single ``fields.json`` file.

    Args:
        storage_path: Directory for the data file (default from settings).
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self.storage_path = Path(storage_path or settings.storage_path).expanduser()
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.fields_file = self.storage_path / "fields.json"
        self._lock = threading.Lock()

    async def save(self, field_polygon: FieldPolygon) -> str:
        record = FieldRecord.from_field(field_polygon)
        try:
            await asyncio.to_thread(self._save_sync, record)
        except (OSError, ValueError) as e:
            raise PersistenceError("save", field_polygon.field_id, e) from e
        return record.field_id

    async def load_all(self) -> list[FieldPolygon]:
        try:
            records = await asyncio.to_thread(self._read_sync)
        except (OSError, ValueError) as e:
            raise PersistenceError("load_all", None, e) from e

        fields = []
        for raw in records.values():
            try:
                fields.append(FieldRecord.model_validate(raw).to_field())
            except ValidationError as e:
                logger.error(f"Skipping invalid field record {raw.get('field_id')!r}: {e}")
        return fields

    async def delete(self, field_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, field_id)
        except (OSError, ValueError) as e:
            raise PersistenceError("delete", field_id, e) from e

    # ------------------------------------------------------------------
    # Blocking helpers (run on a worker thread)
    # ------------------------------------------------------------------

    def _read_sync(self) -> dict[str, dict]:
        with self._lock:
            return self._read_unlocked()

    def _read_unlocked(self) -> dict[str, dict]:
        if not self.fields_file.exists():
            return {}
        with open(self.fields_file, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{self.fields_file} holds {type(data).__name__}, expected a list of fields")
        return {
            item["field_id"]: item
            for item in data
            if isinstance(item, dict) and "field_id" in item
        }

    def _write_unlocked(self, records: dict[str, dict]) -> None:
        tmp = self.fields_file.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(list(records.values()), f, indent=2)
        tmp.replace(self.fields_file)

    def _save_sync(self, record: FieldRecord) -> None:
        with self._lock:
            records = self._read_unlocked()
            records[record.field_id] = record.model_dump()
            self._write_unlocked(records)
        logger.debug(f"Saved field {record.field_id}")

    def _delete_sync(self, field_id: str) -> None:
        with self._lock:
            records = self._read_unlocked()
            if records.pop(field_id, None) is not None:
                self._write_unlocked(records)
                logger.debug(f"Deleted field {field_id}")
