"""
Bill Diff Engine - re-import of a statement that already exists.

Compares the stored ("old") snapshot of a billing cycle with a freshly
imported ("new") one and derives an add/keep/remove change set.

Default selections are optimistic:
- every old item is kept (nothing is ever deleted automatically)
- every new item is added, unless it confidently matched an old item,
  in which case the old record is assumed authoritative and the new
  copy is not added
"""

from typing import Dict, List, Optional, Sequence, Union

import structlog

from ..config import Settings, get_settings
from ..models import (
    BillDiff,
    ChangeSet,
    LineItem,
    SelectionOverrides,
    StatementSnapshot,
    validate_snapshot_items,
)
from .matching import GreedySnapshotMatcher

logger = structlog.get_logger()

SnapshotLike = Union[StatementSnapshot, Sequence[LineItem]]


def statement_errors(old_items: Sequence[LineItem], new_items: Sequence[LineItem]) -> List[str]:
    """Validation errors for a pair of snapshots about to be compared."""
    errors = validate_snapshot_items(old_items, "antiga")
    errors.extend(validate_snapshot_items(new_items, "nova"))

    statement_ids = sorted({
        item.statement_id
        for item in list(old_items) + list(new_items)
        if getattr(item, "statement_id", "")
    })
    if len(statement_ids) > 1:
        errors.append(
            "Faturas de ciclos diferentes não podem ser comparadas: "
            + ", ".join(statement_ids)
        )
    return errors


def reused_id_errors(
    old_items: Sequence[LineItem],
    new_items: Sequence[LineItem],
    matched_new_ids: Sequence[str],
) -> List[str]:
    """
    An unmatched new line is added while every old line is kept, so it
    cannot reuse the id of a stored line.
    """
    old_ids = {item.id for item in old_items}
    matched = set(matched_new_ids)
    return [
        f"[nova] Identificador já usado por outra transação da fatura armazenada: {item.id}"
        for item in new_items
        if item.id in old_ids and item.id not in matched
    ]


def resolve_statement_id(old_items: Sequence[LineItem], new_items: Sequence[LineItem]) -> str:
    for item in list(old_items) + list(new_items):
        if getattr(item, "statement_id", ""):
            return item.statement_id
    return ""


def snapshot_items(snapshot: SnapshotLike) -> List[LineItem]:
    if isinstance(snapshot, StatementSnapshot):
        return list(snapshot.items)
    return list(snapshot)


class BillDiffEngine:
    """
    Partition two snapshots of the same statement into matched/unmatched
    sets and derive the resulting ChangeSet.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        matcher: Optional[GreedySnapshotMatcher] = None,
    ):
        self.settings = settings or get_settings()
        self.matcher = matcher or GreedySnapshotMatcher(self.settings)

    def diff(
        self,
        old: SnapshotLike,
        new: SnapshotLike,
        overrides: Optional[SelectionOverrides] = None,
    ) -> ChangeSet:
        """Compare two snapshots and return the change set for the defaults (plus overrides)."""
        return self.build_change_set(self.compare(old, new), overrides)

    def compare(self, old: SnapshotLike, new: SnapshotLike) -> BillDiff:
        """
        Match ``new`` against ``old`` and compute default selections.

        Args:
            old: Snapshot currently stored for the billing cycle
            new: Freshly imported snapshot of the same billing cycle

        Returns:
            BillDiff with accepted matches and default selections. When the
            input is malformed, ``errors`` is filled and nothing is matched.
        """
        old_items = snapshot_items(old)
        new_items = snapshot_items(new)

        logger.info(
            "Starting bill diff",
            old_items=len(old_items),
            new_items=len(new_items),
        )

        errors = statement_errors(old_items, new_items)
        statement_id = resolve_statement_id(old_items, new_items)
        if isinstance(old, StatementSnapshot) and old.statement_id:
            statement_id = old.statement_id

        if errors:
            logger.warning("Bill diff rejected", statement_id=statement_id, errors=errors)
            return BillDiff(
                statement_id=statement_id,
                old_items=old_items,
                new_items=new_items,
                errors=errors,
            )

        old_selected: Dict[str, bool] = {item.id: True for item in old_items}
        new_selected: Dict[str, bool] = {item.id: True for item in new_items}

        accepted = self.matcher.match(old_items, new_items)
        errors = reused_id_errors(old_items, new_items, [m.new.id for m in accepted])
        if errors:
            logger.warning("Bill diff rejected", statement_id=statement_id, errors=errors)
            return BillDiff(
                statement_id=statement_id,
                old_items=old_items,
                new_items=new_items,
                errors=errors,
            )

        for match in accepted:
            # Matched copy is assumed identical to the kept record
            new_selected[match.new.id] = False

        result = BillDiff(
            statement_id=statement_id,
            old_items=old_items,
            new_items=new_items,
            matches=[match.candidate for match in accepted],
            old_selected=old_selected,
            new_selected=new_selected,
        )

        logger.info(
            "Bill diff complete",
            statement_id=statement_id,
            matched=len(result.matches),
            unmatched_old=len(result.unmatched_old),
            unmatched_new=len(result.unmatched_new),
        )
        return result

    def build_change_set(
        self,
        bill_diff: BillDiff,
        overrides: Optional[SelectionOverrides] = None,
    ) -> ChangeSet:
        """
        Turn selections into a ChangeSet.

        Selected new items are added, selected old ids kept and unselected
        old ids removed. Overrides for ids that are not part of the diff
        are ignored.
        """
        overrides = overrides or SelectionOverrides()
        change_set = ChangeSet(
            statement_id=bill_diff.statement_id,
            overrides_revision=overrides.revision,
        )

        if not bill_diff.is_valid:
            logger.warning(
                "Change set requested for an invalid diff",
                statement_id=bill_diff.statement_id,
            )
            return change_set

        self._warn_unknown(overrides.old, bill_diff.old_selected, "old")
        self._warn_unknown(overrides.new, bill_diff.new_selected, "new")

        for item in bill_diff.old_items:
            keep = overrides.old.get(item.id, bill_diff.old_selected[item.id])
            if keep:
                change_set.to_keep.append(item.id)
            else:
                change_set.to_remove.append(item.id)

        for item in bill_diff.new_items:
            if overrides.new.get(item.id, bill_diff.new_selected[item.id]):
                change_set.to_add.append(item)

        logger.info(
            "Change set built",
            statement_id=change_set.statement_id,
            revision=overrides.revision,
            **change_set.summary(),
        )
        return change_set

    def _warn_unknown(self, overrides, known: Dict[str, bool], side: str) -> None:
        unknown = [item_id for item_id in overrides if item_id not in known]
        if unknown:
            logger.warning("Ignoring overrides for unknown items", side=side, ids=unknown)
