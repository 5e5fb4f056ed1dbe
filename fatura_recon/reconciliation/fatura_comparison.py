"""
Fatura Comparator - projected statement vs. what actually posted.

Detects drift between the projected obligations of a billing cycle and
the transactions that really posted, so corrections can be reviewed
before the projection is reconciled.
"""

from collections import defaultdict, deque
from datetime import date
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from ..config import Settings, get_settings
from ..models import (
    ChangeKind,
    ComparisonResult,
    CorrectionPlan,
    CorrectionsImpact,
    DetectedChange,
    LineItem,
    ObligationStatus,
    ObligationUpdate,
    ProjectedObligation,
    ValueChange,
    validate_line_item,
)
from ..utils.formatting import format_brl, format_signed_brl
from ..utils.text import compact_key, descriptions_similar

logger = structlog.get_logger()

# Injected lookup: compact establishment key -> (category, subtype)
CategoryRules = Mapping[str, Tuple[str, str]]

ComparisonKey = Tuple[str, int, str]


def validate_obligation(obligation) -> List[str]:
    errors = []
    obligation_id = getattr(obligation, "id", None)
    label = obligation_id or "<sem id>"
    if not isinstance(obligation_id, str) or not obligation_id.strip():
        errors.append("Obrigação sem identificador")
    amount = getattr(obligation, "amount_cents", None)
    if isinstance(amount, bool) or not isinstance(amount, int):
        errors.append(f"Valor inválido na obrigação {label}: {amount!r}")
    due_date = getattr(obligation, "due_date", None)
    if due_date is None:
        errors.append(f"Vencimento ausente na obrigação {label}")
    elif not isinstance(due_date, date):
        errors.append(f"Vencimento inválido na obrigação {label}: {due_date!r}")
    return errors


class FaturaComparator:
    """
    Match projected obligations against posted line items.

    1. Exact key: (compact description, |amount|, date)
    2. Otherwise the closest-valued remaining item with a similar
       establishment name -> value change
    3. Otherwise the projection was removed
    Posted items nobody claimed were added.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.key_length = self.settings.comparison_key_length

    def comparison_key(self, description: str, amount_cents: int, on_date) -> ComparisonKey:
        return (
            compact_key(description, self.key_length),
            abs(amount_cents),
            on_date.isoformat(),
        )

    def compare(
        self,
        projected: Sequence[ProjectedObligation],
        actual: Sequence[LineItem],
    ) -> ComparisonResult:
        """
        Compare a projected statement with the posted transactions.

        Args:
            projected: Obligations projected for the billing cycle
            actual: Line items that actually posted for the same cycle

        Returns:
            ComparisonResult; totals always cover the full inputs
        """
        projected = list(projected)
        actual = list(actual)

        logger.info(
            "Starting fatura comparison",
            projected=len(projected),
            actual=len(actual),
        )

        errors = []
        for obligation in projected:
            errors.extend(validate_obligation(obligation))
        for item in actual:
            errors.extend(validate_line_item(item))
        if errors:
            logger.warning("Fatura comparison rejected", errors=errors)
            return ComparisonResult(errors=errors)

        result = ComparisonResult()
        consumed = [False] * len(actual)

        index: Dict[ComparisonKey, Deque[int]] = defaultdict(deque)
        for position, item in enumerate(actual):
            index[self.comparison_key(item.origin_description, item.amount_cents, item.date)].append(position)

        for obligation in projected:
            key = self.comparison_key(obligation.establishment, obligation.amount_cents, obligation.due_date)
            candidates = index.get(key)
            if candidates:
                position = candidates.popleft()
                consumed[position] = True
                result.matched.append(obligation)
                continue

            position = self._find_similar(obligation, actual, consumed)
            if position is not None:
                consumed[position] = True
                self._discard_from_index(index, actual[position], position)
                result.changed.append(ValueChange(
                    projected=obligation,
                    actual=actual[position],
                    new_amount_cents=actual[position].amount_cents,
                ))
                continue

            result.removed.append(obligation)

        result.added = [item for position, item in enumerate(actual) if not consumed[position]]

        result.projected_total_cents = sum(o.abs_cents for o in projected)
        result.actual_total_cents = sum(item.abs_cents for item in actual)
        result.total_difference_cents = result.actual_total_cents - result.projected_total_cents

        if self.settings.exceeds_tolerance(result.total_difference_cents):
            result.warnings.append(
                "Diferença entre fatura projetada e real: "
                f"{format_signed_brl(result.total_difference_cents)}"
            )

        logger.info(
            "Fatura comparison complete",
            matched=len(result.matched),
            changed=len(result.changed),
            removed=len(result.removed),
            added=len(result.added),
            total_difference_cents=result.total_difference_cents,
        )
        return result

    def _find_similar(
        self,
        obligation: ProjectedObligation,
        actual: List[LineItem],
        consumed: List[bool],
    ) -> Optional[int]:
        """Position of the closest-valued unclaimed item with a similar name."""
        best = None
        best_gap = None
        for position, item in enumerate(actual):
            if consumed[position]:
                continue
            if not descriptions_similar(obligation.establishment, item.origin_description):
                continue
            gap = abs(item.abs_cents - obligation.abs_cents)
            if best_gap is None or gap < best_gap:
                best = position
                best_gap = gap
        return best

    def _discard_from_index(self, index, item: LineItem, position: int) -> None:
        bucket = index.get(self.comparison_key(item.origin_description, item.amount_cents, item.date))
        if bucket and position in bucket:
            bucket.remove(position)

    def detect_changes(
        self,
        projected: Sequence[ProjectedObligation],
        actual: Sequence[LineItem],
    ) -> List[DetectedChange]:
        """Field-level changes between each projection and its closest posted item."""
        actual = list(actual)
        consumed = [False] * len(actual)
        changes = []

        for obligation in projected:
            position = self._find_similar(obligation, actual, consumed)
            if position is None:
                continue
            consumed[position] = True
            item = actual[position]

            if self.settings.exceeds_tolerance(item.abs_cents - obligation.abs_cents):
                changes.append(DetectedChange(
                    kind=ChangeKind.VALUE_CHANGE,
                    projected=obligation,
                    actual=item,
                    details=(
                        f"Valor mudou de {format_brl(obligation.abs_cents)} "
                        f"para {format_brl(item.abs_cents)}"
                    ),
                ))

            if obligation.due_date != item.date:
                changes.append(DetectedChange(
                    kind=ChangeKind.DATE_CHANGE,
                    projected=obligation,
                    actual=item,
                    details=f"Data mudou de {obligation.due_date.isoformat()} para {item.date.isoformat()}",
                ))

            if compact_key(obligation.establishment) != compact_key(item.origin_description):
                changes.append(DetectedChange(
                    kind=ChangeKind.DESCRIPTION_CHANGE,
                    projected=obligation,
                    actual=item,
                    details=(
                        f'Descrição mudou de "{obligation.establishment}" '
                        f'para "{item.origin_description}"'
                    ),
                ))

        return changes

    def plan_corrections(
        self,
        result: ComparisonResult,
        category_rules: Optional[CategoryRules] = None,
    ) -> CorrectionPlan:
        """
        Projection updates that would make the projection match reality.

        changed -> update value (original value preserved), confirmed
        added   -> new confirmed projection linked to the posted item
        removed -> delete
        """
        plan = CorrectionPlan()

        for change in result.changed:
            plan.updates.append(ObligationUpdate(
                obligation_id=change.projected.id,
                amount_cents=change.new_amount_cents,
                original_amount_cents=change.projected.amount_cents,
                status=ObligationStatus.CONFIRMED,
            ))

        for item in result.added:
            category, subtype = self._lookup_category(item.origin_description, category_rules)
            plan.creations.append(ProjectedObligation(
                id=f"REAL_{item.id}",
                due_date=item.date,
                amount_cents=item.amount_cents,
                establishment=item.origin_description,
                origin_description=item.origin_description,
                origin_tag=item.origin_tag,
                group_id=item.statement_id or None,
                category=category,
                subtype=subtype,
                status=ObligationStatus.CONFIRMED,
            ))

        plan.deletions = [obligation.id for obligation in result.removed]
        return plan

    @staticmethod
    def _lookup_category(
        description: str,
        category_rules: Optional[CategoryRules],
    ) -> Tuple[str, str]:
        if not category_rules:
            return "", ""
        key = compact_key(description)
        if key in category_rules:
            return category_rules[key]
        for rule_key, classification in category_rules.items():
            rule = compact_key(rule_key)
            if rule and rule in key:
                return classification
        return "", ""

    @staticmethod
    def needs_corrections(result: ComparisonResult) -> bool:
        return bool(result.changed or result.removed or result.added)

    def corrections_impact(self, result: ComparisonResult) -> CorrectionsImpact:
        value_changes = sum(
            abs(change.new_amount_cents) - change.projected.abs_cents
            for change in result.changed
        )
        removed_value = sum(o.abs_cents for o in result.removed)
        added_value = sum(item.abs_cents for item in result.added)

        value_impact = value_changes + added_value - removed_value
        transaction_impact = len(result.added) - len(result.removed)

        parts = []
        if self.settings.exceeds_tolerance(value_impact):
            direction = "aumentará" if value_impact >= 0 else "diminuirá"
            parts.append(f"Valor {direction} em {format_brl(abs(value_impact))}")
        if transaction_impact:
            direction = "adicionadas" if transaction_impact > 0 else "removidas"
            parts.append(f"{abs(transaction_impact)} transações {direction}")

        return CorrectionsImpact(
            value_impact_cents=value_impact,
            transaction_impact=transaction_impact,
            description=". ".join(parts) or "Nenhum impacto significativo",
        )

    @staticmethod
    def format_summary(result: ComparisonResult) -> str:
        parts = []
        if result.matched:
            parts.append(f"{len(result.matched)} confirmadas")
        if result.changed:
            parts.append(f"{len(result.changed)} alteradas")
        if result.removed:
            parts.append(f"{len(result.removed)} removidas")
        if result.added:
            parts.append(f"{len(result.added)} novas")

        parts.append(format_signed_brl(result.total_difference_cents))
        return " | ".join(parts)
