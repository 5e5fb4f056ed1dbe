"""
Reconciliation grouping and validation.

Projected obligations are grouped into candidate settlement groups. No
group is ever bound to a payment automatically: every group is a valid
candidate and the user makes the final choice. The validator then checks
the chosen binding before anything is written.
"""

from collections import Counter, OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Union

import structlog

from ..config import Settings, get_settings
from ..models import (
    LineItem,
    ObligationGroup,
    ProjectedObligation,
    ValidationResult,
    validate_line_item,
)
from ..utils.formatting import format_brl

logger = structlog.get_logger()


def generate_group_id(origin_tag: str, due_month: str) -> str:
    """Group id for obligations without an explicit one: ("Nubank", "2507") -> "NUBANK_2507"."""
    return f"{origin_tag.upper()}_{due_month}"


def group_key(obligation: ProjectedObligation) -> str:
    return obligation.group_id or generate_group_id(obligation.origin_tag, obligation.due_month)


def next_due_month(current_month: str, increment: int = 1) -> str:
    """Shift a YYMM month: ("2512", 1) -> "2601"."""
    year = 2000 + int(current_month[:2])
    month = int(current_month[2:4])
    years, month_index = divmod(month - 1 + increment, 12)
    return f"{(year + years) % 100:02d}{month_index + 1:02d}"


def build_posted_records(
    payment: LineItem,
    obligations: Sequence[ProjectedObligation],
    statement_id: Optional[str] = None,
) -> List[LineItem]:
    """
    Posted records for a settled group: one per obligation, dated and
    tagged like the payment, valued and described like the obligation.
    """
    records = []
    for obligation in obligations:
        description = obligation.origin_description or obligation.establishment
        if obligation.is_installment:
            description = f"{description} ({obligation.installment_label})"
        records.append(LineItem(
            id=f"REC_{obligation.id}",
            date=payment.date,
            amount_cents=obligation.amount_cents,
            origin_description=description,
            origin_tag=payment.origin_tag,
            statement_id=statement_id or group_key(obligation),
            classified_description=obligation.establishment or None,
            from_reconciliation=True,
            category=obligation.category or None,
            subtype=obligation.subtype or None,
        ))
    return records


class ObligationGrouper:
    """Group unreconciled obligations into candidate settlement groups."""

    def group(self, obligations: Iterable[ProjectedObligation]) -> List[ObligationGroup]:
        """
        Build candidate groups, largest total first.

        Already reconciled obligations are left out. The key is the
        obligation's explicit group id, else ORIGIN_YYMM.
        """
        obligations = list(obligations)
        available = [o for o in obligations if not o.reconciled]

        logger.info(
            "Grouping obligations",
            total=len(obligations),
            available=len(available),
        )

        if not available:
            return []

        groups = [
            self._build_group(group_id, items)
            for group_id, items in self.group_by_key(available).items()
        ]
        groups.sort(key=lambda g: g.total_value_cents, reverse=True)

        for group in groups:
            logger.debug(
                "Candidate group",
                group_id=group.group_id,
                total_cents=group.total_value_cents,
                count=group.count,
            )
        logger.info("Grouping complete", groups=len(groups))
        return groups

    @staticmethod
    def group_by_key(
        obligations: Iterable[ProjectedObligation],
    ) -> Dict[str, List[ProjectedObligation]]:
        """Plain grouping by key, reconciled obligations included."""
        groups: Dict[str, List[ProjectedObligation]] = OrderedDict()
        for obligation in obligations:
            groups.setdefault(group_key(obligation), []).append(obligation)
        return groups

    def _build_group(self, group_id: str, items: List[ProjectedObligation]) -> ObligationGroup:
        establishments = list(OrderedDict.fromkeys(o.establishment for o in items if o.establishment))
        main = establishments[0] if establishments else "Vários estabelecimentos"

        description = main
        if len(establishments) > 1:
            description += f" +{len(establishments) - 1} outros"
        description += f" ({len(items)} transações)"

        months = Counter(o.due_month for o in items)
        period = months.most_common(1)[0][0] if months else ""

        return ObligationGroup(
            group_id=group_id,
            items=list(items),
            total_value_cents=sum(o.abs_cents for o in items),
            period=period,
            establishments=establishments,
            description=description,
        )

    @staticmethod
    def format_group_info(group: ObligationGroup) -> str:
        return f"{group.description} - {format_brl(group.total_value_cents)}"


class ReconciliationValidator:
    """
    Check a user-chosen (payment, group) binding.

    Errors block execution: duplicate reconciliation, empty group,
    malformed payment. Warnings are raised only for a value difference
    above tolerance. A payment that itself came from an earlier
    reconciliation is reported in ``notices``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def validate(
        self,
        payment: Optional[LineItem],
        group: Union[ObligationGroup, Sequence[ProjectedObligation], None],
    ) -> ValidationResult:
        warnings: List[str] = []
        errors: List[str] = []

        if payment is None:
            errors.append("Transação não fornecida")
            return ValidationResult(valid=False, warnings=warnings, errors=errors)

        errors.extend(validate_line_item(payment))

        items = list(group.items if isinstance(group, ObligationGroup) else (group or []))
        if not items:
            errors.append("Nenhuma obrigação selecionada")
            return ValidationResult(valid=False, warnings=warnings, errors=errors)

        already_reconciled = [o for o in items if o.reconciled]
        if already_reconciled:
            errors.append(f"{len(already_reconciled)} transações já foram reconciliadas")

        group_total = sum(o.abs_cents for o in items)
        payment_total = abs(payment.amount_cents) if isinstance(payment.amount_cents, int) else 0
        difference = abs(group_total - payment_total)

        if self.settings.exceeds_tolerance(difference):
            warnings.append(f"Diferença de valores: {format_brl(difference)}")
            warnings.append(f"Pagamento: {format_brl(payment_total)}")
            warnings.append(f"Obrigações: {format_brl(group_total)}")

        notices = []
        if payment.from_reconciliation:
            notices.append("Esta transação já veio de uma reconciliação anterior")

        result = ValidationResult(
            valid=not errors, warnings=warnings, errors=errors, notices=notices
        )
        logger.info(
            "Reconciliation validated",
            payment_id=payment.id,
            obligations=len(items),
            valid=result.valid,
            warnings=len(warnings),
            errors=len(errors),
        )
        return result
