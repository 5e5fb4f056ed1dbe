"""Result models produced by the diff, classification, grouping and comparison engines."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from .enums import AuditAction, ChangeKind, DiffField, MatchStatus, ObligationStatus
from .line_item import LineItem, ProjectedObligation, from_cents


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MatchCandidate:
    """An accepted pairing: ``left_id`` is the old item, ``right_id`` the new one."""
    left_id: str
    right_id: str
    score: float


@dataclass
class ChangeSet:
    """
    What to do with a stored statement after a re-import.

    to_keep and to_remove together cover every old id exactly once;
    to_add only contains items of the new snapshot.
    """
    statement_id: str = ""
    to_add: List[LineItem] = field(default_factory=list)
    to_keep: List[str] = field(default_factory=list)
    to_remove: List[str] = field(default_factory=list)
    overrides_revision: int = 0

    @property
    def is_noop(self) -> bool:
        return not self.to_add and not self.to_remove

    def summary(self) -> Dict[str, int]:
        return {
            "to_add": len(self.to_add),
            "to_keep": len(self.to_keep),
            "to_remove": len(self.to_remove),
        }


@dataclass(frozen=True)
class SelectionOverrides:
    """
    User decisions layered on top of the default selections.

    ``old`` / ``new`` are keyed by line item id (bill diff), ``pairs`` by
    ClassifiedPair key. Never mutated: ``with_changes`` returns the next
    revision.
    """
    revision: int = 0
    old: Mapping[str, bool] = field(default_factory=dict)
    new: Mapping[str, bool] = field(default_factory=dict)
    pairs: Mapping[str, bool] = field(default_factory=dict)

    def with_changes(
        self,
        old: Optional[Mapping[str, bool]] = None,
        new: Optional[Mapping[str, bool]] = None,
        pairs: Optional[Mapping[str, bool]] = None,
    ) -> "SelectionOverrides":
        return replace(
            self,
            revision=self.revision + 1,
            old={**self.old, **(old or {})},
            new={**self.new, **(new or {})},
            pairs={**self.pairs, **(pairs or {})},
        )

    @property
    def is_empty(self) -> bool:
        return not (self.old or self.new or self.pairs)


@dataclass
class BillDiff:
    """Matching outcome of two snapshots plus the default selections."""
    statement_id: str = ""
    old_items: List[LineItem] = field(default_factory=list)
    new_items: List[LineItem] = field(default_factory=list)
    matches: List[MatchCandidate] = field(default_factory=list)

    # Default selections: old -> keep, new -> add
    old_selected: Dict[str, bool] = field(default_factory=dict)
    new_selected: Dict[str, bool] = field(default_factory=dict)

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def matched_old_ids(self) -> List[str]:
        return [m.left_id for m in self.matches]

    @property
    def matched_new_ids(self) -> List[str]:
        return [m.right_id for m in self.matches]

    @property
    def unmatched_old(self) -> List[LineItem]:
        matched = set(self.matched_old_ids)
        return [item for item in self.old_items if item.id not in matched]

    @property
    def unmatched_new(self) -> List[LineItem]:
        matched = set(self.matched_new_ids)
        return [item for item in self.new_items if item.id not in matched]


@dataclass
class ClassifiedPair:
    """One row of the review screen: an old item, a new item, or both."""
    key: str
    status: MatchStatus
    old: Optional[LineItem] = None
    new: Optional[LineItem] = None
    score: float = 0.0
    differences: List[DiffField] = field(default_factory=list)
    default_selected: bool = True
    reason: str = ""

    @property
    def item(self) -> LineItem:
        """The item shown for this row: the new version when there is one."""
        return self.new if self.new is not None else self.old

    @property
    def has_existing(self) -> bool:
        return self.old is not None


@dataclass
class ResultingTotal:
    """Counts and totals a set of selections would produce."""
    will_create: int = 0
    will_keep: int = 0
    will_delete: int = 0
    final_value_cents: int = 0
    expected_value_cents: int = 0
    is_balanced: bool = True

    @property
    def difference_cents(self) -> int:
        return self.final_value_cents - self.expected_value_cents

    @property
    def final_value(self) -> Decimal:
        return from_cents(self.final_value_cents)

    @property
    def expected_value(self) -> Decimal:
        return from_cents(self.expected_value_cents)


@dataclass
class ObligationGroup:
    """Candidate settlement group of projected obligations."""
    group_id: str
    items: List[ProjectedObligation] = field(default_factory=list)
    total_value_cents: int = 0
    period: str = ""
    establishments: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def total_value(self) -> Decimal:
        return from_cents(self.total_value_cents)

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]


@dataclass
class ValidationResult:
    """Outcome of validating a payment against an obligation group."""
    valid: bool = True
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    # Informational, never affects validity
    notices: List[str] = field(default_factory=list)


@dataclass
class ValueChange:
    """A projected obligation whose posted counterpart has a different value."""
    projected: ProjectedObligation
    actual: LineItem
    new_amount_cents: int

    @property
    def delta_cents(self) -> int:
        return self.new_amount_cents - self.projected.amount_cents


@dataclass
class ComparisonResult:
    """Projected vs. posted statement. Computed fresh on every comparison."""
    matched: List[ProjectedObligation] = field(default_factory=list)
    changed: List[ValueChange] = field(default_factory=list)
    removed: List[ProjectedObligation] = field(default_factory=list)
    added: List[LineItem] = field(default_factory=list)
    projected_total_cents: int = 0
    actual_total_cents: int = 0
    total_difference_cents: int = 0
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def total_difference(self) -> Decimal:
        return from_cents(self.total_difference_cents)


@dataclass
class DetectedChange:
    """A single field-level drift between a projection and a posted item."""
    kind: ChangeKind
    projected: ProjectedObligation
    actual: LineItem
    details: str


@dataclass
class ObligationUpdate:
    obligation_id: str
    amount_cents: int
    original_amount_cents: int
    status: ObligationStatus = ObligationStatus.CONFIRMED


@dataclass
class CorrectionPlan:
    """Updates, creations and deletions that align projections with reality."""
    updates: List[ObligationUpdate] = field(default_factory=list)
    creations: List[ProjectedObligation] = field(default_factory=list)
    deletions: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.updates or self.creations or self.deletions)


@dataclass
class CorrectionsImpact:
    value_impact_cents: int = 0
    transaction_impact: int = 0
    description: str = ""


@dataclass
class ReconciliationOutcome:
    """What an executed reconciliation wrote to the record store."""
    payment_id: str
    group_id: str
    posted_records: List[LineItem] = field(default_factory=list)
    reconciled_ids: List[str] = field(default_factory=list)
    validation: ValidationResult = field(default_factory=ValidationResult)
    executed_at: datetime = field(default_factory=_utcnow)


@dataclass
class AuditEntry:
    """An entry in the audit log."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)

    # Action
    action: AuditAction = AuditAction.SNAPSHOT_DIFFED

    # Context
    item_ids: List[str] = field(default_factory=list)
    statement_id: Optional[str] = None

    # Details
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    # Outcome
    success: bool = True
    error_message: Optional[str] = None
