"""
Match Classifier - four-way review of a re-imported statement.

Every line of both snapshots ends up in exactly one ClassifiedPair:

    NEW         new line without a match              selected = create it
    EXACT       matched, nothing differs              selected = keep existing
    NEAR_EXACT  matched, some field differs           selected = keep existing
    VANISHED    old line without a match              selected = keep existing

All four are selected by default. Deselecting a pair that has an existing
record replaces it with the new version (EXACT / NEAR_EXACT) or deletes it
(VANISHED), so deletions always require an explicit user action.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

import structlog

from ..config import Settings, get_settings
from ..models import (
    ChangeSet,
    ClassifiedPair,
    DiffField,
    MatchStatus,
    ResultingTotal,
    SelectionOverrides,
)
from .bill_diff import SnapshotLike, resolve_statement_id, snapshot_items, statement_errors
from .matching import GreedySnapshotMatcher

logger = structlog.get_logger()

Selections = Union[SelectionOverrides, Mapping[str, bool], None]

FIELD_LABELS = {
    DiffField.DATE: "data",
    DiffField.AMOUNT: "valor",
    DiffField.DESCRIPTION: "descrição",
}


@dataclass
class SnapshotReview:
    """Classified pairs of one comparison, plus validation errors."""
    statement_id: str = ""
    pairs: List[ClassifiedPair] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def old_key(item_id: str) -> str:
    return f"old:{item_id}"


def new_key(item_id: str) -> str:
    return f"new:{item_id}"


class MatchClassifier:
    """Assign a MatchStatus to every line of two snapshots."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        matcher: Optional[GreedySnapshotMatcher] = None,
    ):
        self.settings = settings or get_settings()
        self.matcher = matcher or GreedySnapshotMatcher(self.settings)

    def classify(self, old: SnapshotLike, new: SnapshotLike) -> List[ClassifiedPair]:
        """Classified pairs for ``old`` vs ``new``; empty when the input is malformed."""
        return self.review(old, new).pairs

    def review(self, old: SnapshotLike, new: SnapshotLike) -> SnapshotReview:
        old_items = snapshot_items(old)
        new_items = snapshot_items(new)
        statement_id = resolve_statement_id(old_items, new_items)

        errors = statement_errors(old_items, new_items)
        if errors:
            logger.warning("Classification rejected", statement_id=statement_id, errors=errors)
            return SnapshotReview(statement_id=statement_id, errors=errors)

        accepted = {m.new.id: m for m in self.matcher.match(old_items, new_items)}
        matched_old_ids = {m.old.id for m in accepted.values()}
        pairs = []

        for item in new_items:
            match = accepted.get(item.id)
            if match is None:
                pairs.append(ClassifiedPair(
                    key=new_key(item.id),
                    status=MatchStatus.NEW,
                    new=item,
                    reason="Transação não encontrada na fatura anterior",
                ))
                continue

            breakdown = match.breakdown
            if breakdown.is_identical:
                status = MatchStatus.EXACT
                reason = "Transação idêntica encontrada"
            else:
                status = MatchStatus.NEAR_EXACT
                reason = "Diferenças: " + ", ".join(
                    FIELD_LABELS[f] for f in breakdown.differences
                )

            pairs.append(ClassifiedPair(
                key=old_key(match.old.id),
                status=status,
                old=match.old,
                new=item,
                score=breakdown.score,
                differences=list(breakdown.differences),
                reason=reason,
            ))

        for item in old_items:
            if item.id in matched_old_ids:
                continue
            pairs.append(ClassifiedPair(
                key=old_key(item.id),
                status=MatchStatus.VANISHED,
                old=item,
                reason="Não encontrada na nova fatura",
            ))

        logger.info(
            "Classification complete",
            statement_id=statement_id,
            **{status.value: count for status, count in self.counts_by_status(pairs).items()},
        )
        return SnapshotReview(statement_id=statement_id, pairs=pairs)

    @staticmethod
    def counts_by_status(pairs: List[ClassifiedPair]) -> Dict[MatchStatus, int]:
        counts = Counter(pair.status for pair in pairs)
        return {status: counts.get(status, 0) for status in MatchStatus}

    @staticmethod
    def default_selections(pairs: List[ClassifiedPair]) -> Dict[str, bool]:
        return {pair.key: pair.default_selected for pair in pairs}

    def resolve_selections(
        self,
        pairs: List[ClassifiedPair],
        selections: Selections = None,
    ) -> Dict[str, bool]:
        """Defaults with user choices applied on top."""
        if isinstance(selections, SelectionOverrides):
            selections = selections.pairs
        resolved = self.default_selections(pairs)
        for key, selected in (selections or {}).items():
            if key in resolved:
                resolved[key] = bool(selected)
            else:
                logger.warning("Ignoring selection for unknown pair", key=key)
        return resolved

    def compute_resulting_total(
        self,
        pairs: List[ClassifiedPair],
        selections: Selections = None,
    ) -> ResultingTotal:
        """
        What the statement would add up to after applying ``selections``.

        ``expected_value_cents`` is the new statement's own total (NEW,
        EXACT and NEAR_EXACT lines, new values); ``final_value_cents`` is
        what the selected merge produces. They agree when the merge
        reproduces the new statement.
        """
        resolved = self.resolve_selections(pairs, selections)
        total = ResultingTotal()

        for pair in pairs:
            selected = resolved[pair.key]

            if pair.status == MatchStatus.NEW:
                if selected:
                    total.will_create += 1
                    total.final_value_cents += pair.new.abs_cents
            elif pair.status == MatchStatus.VANISHED:
                if selected:
                    total.will_keep += 1
                    total.final_value_cents += pair.old.abs_cents
                else:
                    total.will_delete += 1
            elif selected:
                total.will_keep += 1
                total.final_value_cents += pair.old.abs_cents
            else:
                # Existing record replaced by the new version
                total.will_create += 1
                total.will_delete += 1
                total.final_value_cents += pair.new.abs_cents

            if pair.status != MatchStatus.VANISHED:
                total.expected_value_cents += pair.new.abs_cents

        total.is_balanced = self.settings.within_tolerance(total.difference_cents)
        return total

    def to_change_set(
        self,
        pairs: List[ClassifiedPair],
        selections: Selections = None,
        statement_id: str = "",
    ) -> ChangeSet:
        """ChangeSet equivalent of the reviewed selections."""
        revision = selections.revision if isinstance(selections, SelectionOverrides) else 0
        resolved = self.resolve_selections(pairs, selections)
        if not statement_id:
            statement_id = next(
                (pair.item.statement_id for pair in pairs if pair.item.statement_id),
                "",
            )
        change_set = ChangeSet(statement_id=statement_id, overrides_revision=revision)

        for pair in pairs:
            selected = resolved[pair.key]
            if pair.status == MatchStatus.NEW:
                if selected:
                    change_set.to_add.append(pair.new)
            elif selected:
                change_set.to_keep.append(pair.old.id)
            else:
                change_set.to_remove.append(pair.old.id)
                if pair.new is not None:
                    change_set.to_add.append(pair.new)

        return change_set

    def merge_keep_ids(
        self,
        pairs: List[ClassifiedPair],
        selections: Selections = None,
    ) -> List[str]:
        """Ids of existing records the merge keeps."""
        return self.to_change_set(pairs, selections).to_keep
