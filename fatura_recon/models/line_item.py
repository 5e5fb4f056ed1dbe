"""Line item and obligation models for the fatura reconciliation engine."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .enums import ObligationStatus

AmountLike = Union[Decimal, str, int, float]


class InvalidAmountError(ValueError):
    """Raised when an amount cannot be represented as a finite cent value."""


class AlreadyReconciledError(Exception):
    """Raised when an obligation is reconciled a second time."""
    def __init__(self, obligation_id: str):
        super().__init__(f"Obligation {obligation_id} is already reconciled")
        self.obligation_id = obligation_id


def to_cents(value: AmountLike) -> int:
    """
    Convert a currency amount (reais) to integer cents.

    Floats go through their shortest string form so 100.1 becomes 10010,
    not 10009. NaN and infinities are rejected.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from exc

    if not amount.is_finite():
        raise InvalidAmountError(f"Non-finite amount: {value!r}")

    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def to_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def month_key(value: date) -> str:
    """Billing month in the YYMM form used by statement ids (2025-08 -> 2508)."""
    return f"{value.year % 100:02d}{value.month:02d}"


@dataclass(frozen=True)
class LineItem:
    """
    A single posted line of a statement (card bill or bank account).

    Amounts are signed integer cents: charges are negative, refunds and
    credits positive. Instances are immutable; a re-imported line is a
    distinct value and is only ever related to a stored one by scoring.
    """
    id: str
    date: date
    amount_cents: int
    origin_description: str
    origin_tag: str = ""
    statement_id: str = ""
    classified_description: Optional[str] = None

    # Posted records created by a reconciliation carry this flag
    from_reconciliation: bool = False
    category: Optional[str] = None
    subtype: Optional[str] = None

    @classmethod
    def from_values(
        cls,
        id: str,
        date: Union[date, str],
        amount: AmountLike,
        description: str,
        origin_tag: str = "",
        statement_id: str = "",
        **extra: Any,
    ) -> "LineItem":
        """Build a LineItem from currency units and an ISO date string."""
        return cls(
            id=id,
            date=to_date(date),
            amount_cents=to_cents(amount),
            origin_description=description,
            origin_tag=origin_tag,
            statement_id=statement_id,
            **extra,
        )

    @property
    def amount(self) -> Decimal:
        """Return amount in standard units (reais)."""
        return from_cents(self.amount_cents)

    @property
    def abs_cents(self) -> int:
        return abs(self.amount_cents)

    @property
    def description(self) -> str:
        """Classified description when available, else the original one."""
        return self.classified_description or self.origin_description

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "amount_cents": self.amount_cents,
            "amount": str(self.amount),
            "origin_description": self.origin_description,
            "classified_description": self.classified_description,
            "origin_tag": self.origin_tag,
            "statement_id": self.statement_id,
            "from_reconciliation": self.from_reconciliation,
            "category": self.category,
            "subtype": self.subtype,
        }


def validate_line_item(item: Any) -> List[str]:
    """Return the list of problems that make a line item unusable."""
    errors = []
    item_id = getattr(item, "id", None)
    label = item_id or "<sem id>"

    if not isinstance(item_id, str) or not item_id.strip():
        errors.append("Transação sem identificador")

    amount = getattr(item, "amount_cents", None)
    if isinstance(amount, bool) or not isinstance(amount, int):
        errors.append(f"Valor inválido na transação {label}: {amount!r}")

    if not isinstance(getattr(item, "date", None), date):
        errors.append(f"Data ausente na transação {label}")

    return errors


def validate_snapshot_items(items: Iterable[Any], side: str) -> List[str]:
    """Validate every item of one snapshot and check ids are unique."""
    errors = []
    seen = set()
    for item in items:
        errors.extend(f"[{side}] {msg}" for msg in validate_line_item(item))
        item_id = getattr(item, "id", None)
        if item_id:
            if item_id in seen:
                errors.append(f"[{side}] Identificador duplicado: {item_id}")
            seen.add(item_id)
    return errors


@dataclass(frozen=True)
class StatementSnapshot:
    """All line items of one billing cycle (e.g. "CARDX_2508") at one point in time."""
    statement_id: str
    items: Tuple[LineItem, ...] = ()

    @classmethod
    def from_items(
        cls,
        items: Iterable[LineItem],
        statement_id: Optional[str] = None,
    ) -> "StatementSnapshot":
        items = tuple(items)
        if statement_id is None:
            statement_id = items[0].statement_id if items else ""
        return cls(statement_id=statement_id, items=items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]

    @property
    def total_cents(self) -> int:
        """Sum of absolute amounts, the way a bill total is displayed."""
        return sum(item.abs_cents for item in self.items)

    def foreign_items(self) -> List[LineItem]:
        """Items whose statement id differs from the snapshot's."""
        return [
            item for item in self.items
            if item.statement_id and item.statement_id != self.statement_id
        ]


@dataclass
class ProjectedObligation:
    """
    A forward-looking commitment (installment, subscription) not yet posted.

    Only the reconciliation fields ever change, once, at settlement.
    """
    id: str
    due_date: date
    amount_cents: int
    establishment: str
    origin_description: str = ""
    origin_tag: str = ""
    due_month: str = ""

    # Installments
    current_installment: int = 1
    total_installments: int = 1

    # Explicit reconciliation group (e.g. "NUBANK_2507")
    group_id: Optional[str] = None

    # Classification
    category: str = ""
    subtype: str = ""

    status: ObligationStatus = ObligationStatus.PROJECTED
    reconciled: bool = False
    reconciled_at: Optional[datetime] = None
    reconciled_with: Optional[str] = None

    def __post_init__(self):
        if not self.due_month and isinstance(self.due_date, date):
            self.due_month = month_key(self.due_date)
        if not self.origin_description:
            self.origin_description = self.establishment

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def abs_cents(self) -> int:
        return abs(self.amount_cents)

    @property
    def is_installment(self) -> bool:
        return self.total_installments > 1

    @property
    def installment_label(self) -> str:
        return f"{self.current_installment}/{self.total_installments}"

    def mark_reconciled(
        self,
        payment_id: str,
        at: Optional[datetime] = None,
    ) -> None:
        """Flag the obligation as settled by ``payment_id``. Allowed once."""
        if self.reconciled:
            raise AlreadyReconciledError(self.id)
        self.reconciled = True
        self.reconciled_with = payment_id
        self.reconciled_at = at or datetime.now(timezone.utc)
        self.status = ObligationStatus.RECONCILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "due_date": self.due_date.isoformat(),
            "due_month": self.due_month,
            "amount_cents": self.amount_cents,
            "establishment": self.establishment,
            "origin_description": self.origin_description,
            "origin_tag": self.origin_tag,
            "installment": self.installment_label,
            "group_id": self.group_id,
            "category": self.category,
            "subtype": self.subtype,
            "status": self.status.value,
            "reconciled": self.reconciled,
            "reconciled_at": self.reconciled_at.isoformat() if self.reconciled_at else None,
            "reconciled_with": self.reconciled_with,
        }
