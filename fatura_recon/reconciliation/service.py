"""
Reconciliation Service - coordinates the engines with the record store.

The engines are pure; this is the only place that reads from or writes to
storage. Every write goes through ``store.transaction()`` so a failure
leaves nothing half-applied, and every outcome lands in the audit log.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import uuid4

import structlog

from ..config import Settings, get_settings
from ..integrations.record_store import PersistenceError, RecordStore
from ..models import (
    AuditAction,
    BillDiff,
    ChangeSet,
    ClassifiedPair,
    ComparisonResult,
    LineItem,
    ObligationGroup,
    ReconciliationOutcome,
    ResultingTotal,
    SelectionOverrides,
    ValidationResult,
)
from ..utils.audit_logger import AuditLogger
from .bill_diff import BillDiffEngine
from .classifier import MatchClassifier, Selections, SnapshotReview
from .fatura_comparison import FaturaComparator
from .grouping import ObligationGrouper, ReconciliationValidator, build_posted_records

logger = structlog.get_logger()


class ReconciliationRejected(Exception):
    """Raised when asked to write something that failed validation."""
    def __init__(self, message: str, errors: Optional[List[str]] = None,
                 validation: Optional[ValidationResult] = None):
        super().__init__(message)
        self.errors = errors or (validation.errors if validation else [])
        self.validation = validation


@dataclass
class ImportPreview:
    """Everything the review screen needs before a re-import is applied."""
    statement_id: str
    old_items: List[LineItem] = field(default_factory=list)
    new_items: List[LineItem] = field(default_factory=list)
    bill_diff: BillDiff = field(default_factory=BillDiff)
    review: SnapshotReview = field(default_factory=SnapshotReview)
    resulting_total: ResultingTotal = field(default_factory=ResultingTotal)

    @property
    def pairs(self) -> List[ClassifiedPair]:
        return self.review.pairs

    @property
    def errors(self) -> List[str]:
        return self.bill_diff.errors


class ReconciliationService:
    """
    Orchestrates re-imports, settlements and projection checks.

    Re-import:   preview_import -> (user overrides) -> apply_import / apply_review
    Settlement:  candidate_groups -> (user picks) -> execute_reconciliation
    Drift:       compare_period
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.audit = audit or AuditLogger(str(uuid4()), self.settings)
        self.diff_engine = BillDiffEngine(self.settings)
        self.classifier = MatchClassifier(self.settings, self.diff_engine.matcher)
        self.grouper = ObligationGrouper()
        self.validator = ReconciliationValidator(self.settings)
        self.comparator = FaturaComparator(self.settings)

    # ------------------------------------------------------------------
    # Re-import
    # ------------------------------------------------------------------

    def preview_import(
        self,
        new_items: Sequence[LineItem],
        statement_id: Optional[str] = None,
    ) -> ImportPreview:
        """Diff and classify a freshly imported statement against the stored one."""
        new_items = list(new_items)
        if statement_id is None:
            statement_id = next((i.statement_id for i in new_items if i.statement_id), "")

        old_items = self.store.fetch_snapshot(statement_id)
        bill_diff = self.diff_engine.compare(old_items, new_items)
        review = self.classifier.review(old_items, new_items)
        total = self.classifier.compute_resulting_total(review.pairs)

        self.audit.record(
            AuditAction.SNAPSHOT_DIFFED,
            f"Compared {len(old_items)} stored vs {len(new_items)} imported lines",
            statement_id=statement_id,
            success=bill_diff.is_valid,
            error_message="; ".join(bill_diff.errors) or None,
            matched=len(bill_diff.matches),
            is_balanced=total.is_balanced,
        )

        return ImportPreview(
            statement_id=statement_id,
            old_items=old_items,
            new_items=new_items,
            bill_diff=bill_diff,
            review=review,
            resulting_total=total,
        )

    def apply_import(
        self,
        bill_diff: BillDiff,
        overrides: Optional[SelectionOverrides] = None,
    ) -> ChangeSet:
        """Apply the diff's default selections (plus overrides) atomically."""
        if not bill_diff.is_valid:
            self.audit.record(
                AuditAction.CHANGE_SET_REJECTED,
                "Refused to apply an invalid bill diff",
                statement_id=bill_diff.statement_id,
                success=False,
                error_message="; ".join(bill_diff.errors),
            )
            raise ReconciliationRejected("Bill diff has validation errors", errors=bill_diff.errors)

        change_set = self.diff_engine.build_change_set(bill_diff, overrides)
        self._apply(change_set)
        return change_set

    def apply_review(
        self,
        review: SnapshotReview,
        selections: Selections = None,
    ) -> ChangeSet:
        """Apply the classifier review screen's selections atomically."""
        if not review.is_valid:
            raise ReconciliationRejected("Review has validation errors", errors=review.errors)

        change_set = self.classifier.to_change_set(
            review.pairs, selections, statement_id=review.statement_id
        )
        self._apply(change_set)
        return change_set

    def _apply(self, change_set: ChangeSet) -> None:
        clashes = sorted({item.id for item in change_set.to_add} & set(change_set.to_keep))
        if clashes:
            errors = [f"Transação mantida e adicionada ao mesmo tempo: {item_id}" for item_id in clashes]
            self.audit.record(
                AuditAction.CHANGE_SET_REJECTED,
                "Refused a change set that keeps and adds the same id",
                item_ids=clashes,
                statement_id=change_set.statement_id,
                success=False,
                error_message="; ".join(errors),
            )
            raise ReconciliationRejected("Change set reuses a kept id", errors=errors)

        try:
            with self.store.transaction():
                self.store.apply_change_set(change_set)
        except PersistenceError as exc:
            self.audit.record(
                AuditAction.PERSISTENCE_FAILED,
                "Change set could not be applied",
                statement_id=change_set.statement_id,
                success=False,
                error_message=str(exc),
                operation=exc.operation,
            )
            raise

        self.audit.record(
            AuditAction.CHANGE_SET_APPLIED,
            "Change set applied",
            item_ids=change_set.to_remove + [item.id for item in change_set.to_add],
            statement_id=change_set.statement_id,
            revision=change_set.overrides_revision,
            **change_set.summary(),
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def candidate_groups(self, period: Optional[str] = None) -> List[ObligationGroup]:
        """Every unreconciled group is a candidate. None is pre-selected."""
        groups = self.grouper.group(self.store.fetch_obligations(period))
        self.audit.record(
            AuditAction.GROUPS_LISTED,
            f"Listed {len(groups)} candidate groups",
            period=period,
        )
        return groups

    def execute_reconciliation(
        self,
        payment: LineItem,
        group: ObligationGroup,
    ) -> ReconciliationOutcome:
        """
        Settle ``group`` with ``payment``.

        Posts one record per obligation and flags every obligation as
        reconciled, all inside one store transaction. Raises
        ReconciliationRejected when validation has errors; warnings are
        carried in the outcome.
        """
        validation = self.validator.validate(payment, group)
        if not validation.valid:
            self.audit.record(
                AuditAction.RECONCILIATION_REJECTED,
                "Reconciliation rejected",
                item_ids=[payment.id] + group.ids,
                statement_id=group.group_id,
                success=False,
                error_message="; ".join(validation.errors),
            )
            raise ReconciliationRejected("Reconciliation failed validation", validation=validation)

        records = build_posted_records(payment, group.items, statement_id=group.group_id)
        logger.info(
            "Executing reconciliation",
            payment_id=payment.id,
            group_id=group.group_id,
            records=len(records),
        )

        try:
            with self.store.transaction():
                self.store.create_posted_records(records)
                self.store.mark_reconciled(group.ids, payment.id)
        except PersistenceError as exc:
            self.audit.record(
                AuditAction.PERSISTENCE_FAILED,
                "Reconciliation could not be persisted",
                item_ids=[payment.id] + group.ids,
                statement_id=group.group_id,
                success=False,
                error_message=str(exc),
                operation=exc.operation,
            )
            raise

        for obligation in group.items:
            obligation.mark_reconciled(payment.id)

        outcome = ReconciliationOutcome(
            payment_id=payment.id,
            group_id=group.group_id,
            posted_records=records,
            reconciled_ids=group.ids,
            validation=validation,
        )

        self.audit.record(
            AuditAction.RECONCILIATION_EXECUTED,
            f"Reconciled {len(records)} obligations with payment {payment.id}",
            item_ids=[payment.id] + group.ids,
            statement_id=group.group_id,
            warnings=validation.warnings,
            notices=validation.notices,
        )
        return outcome

    # ------------------------------------------------------------------
    # Drift
    # ------------------------------------------------------------------

    def compare_period(self, period: str, statement_id: str) -> ComparisonResult:
        """Projected obligations of ``period`` vs. the posted ``statement_id``."""
        projected = self.store.fetch_obligations(period)
        actual = self.store.fetch_snapshot(statement_id)
        result = self.comparator.compare(projected, actual)

        self.audit.record(
            AuditAction.FATURA_COMPARED,
            self.comparator.format_summary(result) if result.is_valid else "Comparison rejected",
            statement_id=statement_id,
            success=result.is_valid,
            error_message="; ".join(result.errors) or None,
            period=period,
            total_difference_cents=result.total_difference_cents,
        )
        return result
