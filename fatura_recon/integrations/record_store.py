"""
Record store boundary.

The engine never talks to storage itself; the orchestrating service does,
through this interface. Whatever backs it must make ``transaction()``
all-or-nothing: a half-applied change set would break the guarantee that
kept and removed ids cover the stored snapshot exactly once.
"""

import copy
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, ContextManager, Dict, Iterable, Iterator, List, Optional, Protocol

import structlog

from ..models import ChangeSet, LineItem, ProjectedObligation

logger = structlog.get_logger()


class PersistenceError(Exception):
    """Raised by a record store when an operation cannot be completed."""
    def __init__(self, message: str, operation: str = "", details: Any = None):
        super().__init__(message)
        self.operation = operation
        self.details = details


class RecordStore(Protocol):
    """Operations the reconciliation service needs from durable storage."""

    def fetch_snapshot(self, statement_id: str) -> List[LineItem]:
        ...

    def apply_change_set(self, change_set: ChangeSet) -> None:
        ...

    def fetch_obligations(self, period: Optional[str] = None) -> List[ProjectedObligation]:
        ...

    def mark_reconciled(self, ids: List[str], payment_id: str) -> None:
        ...

    def create_posted_records(self, items: List[LineItem]) -> None:
        ...

    def transaction(self) -> ContextManager[None]:
        ...


class InMemoryRecordStore:
    """
    Dict-backed RecordStore.

    Every public write runs inside ``transaction()``; the outermost
    transaction snapshots the state and restores it if anything raises.
    Obligations are copied in and out so callers never share mutable
    state with the store.
    """

    def __init__(
        self,
        records: Optional[Iterable[LineItem]] = None,
        obligations: Optional[Iterable[ProjectedObligation]] = None,
    ):
        self._records: Dict[str, LineItem] = {}
        self._obligations: Dict[str, ProjectedObligation] = {}
        self._depth = 0

        for item in records or []:
            self._records[item.id] = item
        for obligation in obligations or []:
            self._obligations[obligation.id] = replace(obligation)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        saved_records = dict(self._records)
        saved_obligations = copy.deepcopy(self._obligations)
        self._depth = 1
        try:
            yield
        except Exception:
            self._records = saved_records
            self._obligations = saved_obligations
            logger.warning("Record store transaction rolled back")
            raise
        finally:
            self._depth = 0

    def fetch_snapshot(self, statement_id: str) -> List[LineItem]:
        return [item for item in self._records.values() if item.statement_id == statement_id]

    def get_record(self, record_id: str) -> Optional[LineItem]:
        return self._records.get(record_id)

    @property
    def records(self) -> List[LineItem]:
        return list(self._records.values())

    def apply_change_set(self, change_set: ChangeSet) -> None:
        with self.transaction():
            stored_ids = {item.id for item in self.fetch_snapshot(change_set.statement_id)}
            keep = set(change_set.to_keep)
            remove = set(change_set.to_remove)

            if keep & remove:
                raise PersistenceError(
                    "Change set keeps and removes the same records",
                    operation="apply_change_set",
                    details=sorted(keep & remove),
                )
            if keep | remove != stored_ids:
                raise PersistenceError(
                    "Change set does not cover the stored statement",
                    operation="apply_change_set",
                    details={
                        "missing": sorted(stored_ids - keep - remove),
                        "unknown": sorted((keep | remove) - stored_ids),
                    },
                )

            for record_id in change_set.to_remove:
                del self._records[record_id]
            self._insert(change_set.to_add, "apply_change_set")

            logger.info(
                "Change set applied",
                statement_id=change_set.statement_id,
                **change_set.summary(),
            )

    def fetch_obligations(self, period: Optional[str] = None) -> List[ProjectedObligation]:
        return [
            replace(obligation)
            for obligation in self._obligations.values()
            if period is None or obligation.due_month == period
        ]

    def get_obligation(self, obligation_id: str) -> Optional[ProjectedObligation]:
        obligation = self._obligations.get(obligation_id)
        return replace(obligation) if obligation else None

    def mark_reconciled(self, ids: List[str], payment_id: str) -> None:
        with self.transaction():
            for obligation_id in ids:
                obligation = self._obligations.get(obligation_id)
                if obligation is None:
                    raise PersistenceError(
                        f"Unknown obligation {obligation_id}",
                        operation="mark_reconciled",
                    )
                if obligation.reconciled:
                    raise PersistenceError(
                        f"Obligation {obligation_id} is already reconciled",
                        operation="mark_reconciled",
                    )
                obligation.mark_reconciled(payment_id)

    def create_posted_records(self, items: List[LineItem]) -> None:
        with self.transaction():
            self._insert(items, "create_posted_records")

    def _insert(self, items: Iterable[LineItem], operation: str) -> None:
        for item in items:
            if item.id in self._records:
                raise PersistenceError(
                    f"Record {item.id} already exists",
                    operation=operation,
                )
            self._records[item.id] = item
