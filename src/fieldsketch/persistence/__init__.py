"""Async persistence adapter for finished fields."""

from fieldsketch.persistence.store import FieldRecord, FieldStore, JsonFieldStore
from fieldsketch.persistence.sync import SaveScheduler

__all__ = ["FieldRecord", "FieldStore", "JsonFieldStore", "SaveScheduler"]
