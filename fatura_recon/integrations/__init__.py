"""External integrations for the fatura reconciliation engine."""

from .record_store import InMemoryRecordStore, PersistenceError, RecordStore

__all__ = ["InMemoryRecordStore", "PersistenceError", "RecordStore"]
