"""Enumerations for the fatura reconciliation engine."""

from enum import Enum


class MatchStatus(str, Enum):
    """
    Classification of a line across two snapshots of the same statement.

    NEW: Only present in the new snapshot
    EXACT: Matched and identical in date, amount and description
    NEAR_EXACT: Matched above threshold but with at least one differing field
    VANISHED: Only present in the old snapshot
    """
    NEW = "new"
    EXACT = "exact"
    NEAR_EXACT = "near_exact"
    VANISHED = "vanished"


class DiffField(str, Enum):
    """Fields compared by the similarity scorer."""
    DATE = "date"
    AMOUNT = "amount"
    DESCRIPTION = "description"


class ChangeKind(str, Enum):
    """Kind of drift between a projected obligation and its posted item."""
    VALUE_CHANGE = "value_change"
    DATE_CHANGE = "date_change"
    DESCRIPTION_CHANGE = "description_change"


class ObligationStatus(str, Enum):
    """Lifecycle of a projected obligation."""
    PROJECTED = "projected"
    CONFIRMED = "confirmed"    # Value confirmed by a posted statement
    RECONCILED = "reconciled"  # Bound to a real payment


class AuditAction(str, Enum):
    """Type of audit action."""
    SNAPSHOT_DIFFED = "snapshot_diffed"
    CHANGE_SET_APPLIED = "change_set_applied"
    CHANGE_SET_REJECTED = "change_set_rejected"
    GROUPS_LISTED = "groups_listed"
    RECONCILIATION_REJECTED = "reconciliation_rejected"
    RECONCILIATION_EXECUTED = "reconciliation_executed"
    FATURA_COMPARED = "fatura_compared"
    PERSISTENCE_FAILED = "persistence_failed"
