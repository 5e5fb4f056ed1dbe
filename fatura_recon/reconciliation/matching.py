"""
Greedy one-to-one matching of a new snapshot against an old one.

Shared by the bill diff engine and the match classifier so both always
agree on which lines are "the same".
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog

from ..config import Settings, get_settings
from ..models import LineItem, MatchCandidate
from .similarity import SimilarityBreakdown, SimilarityScorer

logger = structlog.get_logger()


@dataclass(frozen=True)
class AcceptedMatch:
    old: LineItem
    new: LineItem
    breakdown: SimilarityBreakdown

    @property
    def candidate(self) -> MatchCandidate:
        return MatchCandidate(
            left_id=self.old.id,
            right_id=self.new.id,
            score=self.breakdown.score,
        )


class GreedySnapshotMatcher:
    """
    Accept-best-available matching under a confidence threshold.

    New items are visited in input order. Each one takes the best scoring
    old item still in the pool, provided the score is strictly above the
    threshold. Ties go to the earlier old item. A matched old item leaves
    the pool, so no item is ever matched twice.

    This is not a globally optimal assignment: a new item can take an old
    item that would have been a better match for a later new item.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        scorer: Optional[SimilarityScorer] = None,
    ):
        self.settings = settings or get_settings()
        self.scorer = scorer or SimilarityScorer(self.settings)
        self.threshold_points = self.settings.match_threshold_points

    def match(
        self,
        old_items: Sequence[LineItem],
        new_items: Sequence[LineItem],
    ) -> List[AcceptedMatch]:
        pool = list(old_items)
        accepted = []

        for new in new_items:
            best_index = None
            best: Optional[SimilarityBreakdown] = None

            for index, old in enumerate(pool):
                breakdown = self.scorer.explain(old, new)
                if best is None or breakdown.points > best.points:
                    best_index = index
                    best = breakdown

            if best is None or best.points <= self.threshold_points:
                logger.debug(
                    "No match above threshold",
                    new_id=new.id,
                    best_score=best.score if best else None,
                )
                continue

            old = pool.pop(best_index)
            accepted.append(AcceptedMatch(old=old, new=new, breakdown=best))
            logger.debug(
                "Match accepted",
                old_id=old.id,
                new_id=new.id,
                score=best.score,
            )

        return accepted
