"""Data models for the fatura reconciliation engine."""

from .enums import (
    AuditAction,
    ChangeKind,
    DiffField,
    MatchStatus,
    ObligationStatus,
)
from .line_item import (
    AlreadyReconciledError,
    InvalidAmountError,
    LineItem,
    ProjectedObligation,
    StatementSnapshot,
    from_cents,
    month_key,
    to_cents,
    to_date,
    validate_line_item,
    validate_snapshot_items,
)
from .results import (
    AuditEntry,
    BillDiff,
    ChangeSet,
    ClassifiedPair,
    ComparisonResult,
    CorrectionPlan,
    CorrectionsImpact,
    DetectedChange,
    MatchCandidate,
    ObligationGroup,
    ObligationUpdate,
    ReconciliationOutcome,
    ResultingTotal,
    SelectionOverrides,
    ValidationResult,
    ValueChange,
)

__all__ = [
    # Enums
    "AuditAction",
    "ChangeKind",
    "DiffField",
    "MatchStatus",
    "ObligationStatus",
    # Line items
    "AlreadyReconciledError",
    "InvalidAmountError",
    "LineItem",
    "ProjectedObligation",
    "StatementSnapshot",
    "from_cents",
    "month_key",
    "to_cents",
    "to_date",
    "validate_line_item",
    "validate_snapshot_items",
    # Results
    "AuditEntry",
    "BillDiff",
    "ChangeSet",
    "ClassifiedPair",
    "ComparisonResult",
    "CorrectionPlan",
    "CorrectionsImpact",
    "DetectedChange",
    "MatchCandidate",
    "ObligationGroup",
    "ObligationUpdate",
    "ReconciliationOutcome",
    "ResultingTotal",
    "SelectionOverrides",
    "ValidationResult",
    "ValueChange",
]
