"""
Similarity scoring between two statement lines.

score = 0.3 (same date) + 0.4 (same amount) + 0.3 (same description)
where a description contained in the other one earns half its weight.
Weights live in Settings as integer hundredths; the float score is only
derived at the end so 0.3 + 0.4 is exactly 0.7.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..config import Settings, get_settings
from ..models import DiffField, LineItem
from ..utils.text import normalize_description


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Score of a pair plus the fields that did not match exactly."""
    points: int
    differences: List[DiffField] = field(default_factory=list)

    @property
    def score(self) -> float:
        return self.points / 100

    @property
    def is_identical(self) -> bool:
        return not self.differences


class SimilarityScorer:
    """
    Pure, symmetric scorer for two LineItems. No partial credit for near
    dates or near amounts.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.date_weight = self.settings.score_weight_date
        self.amount_weight = self.settings.score_weight_amount
        self.description_weight = self.settings.score_weight_description

    def score(self, a: LineItem, b: LineItem) -> float:
        """Return the similarity of ``a`` and ``b`` in [0, 1]."""
        return self.explain(a, b).score

    def points(self, a: LineItem, b: LineItem) -> int:
        """Score in hundredths (0-100)."""
        return self.explain(a, b).points

    def explain(self, a: LineItem, b: LineItem) -> SimilarityBreakdown:
        points = 0
        differences = []

        if a.date == b.date:
            points += self.date_weight
        else:
            differences.append(DiffField.DATE)

        if self.settings.within_tolerance(a.amount_cents - b.amount_cents):
            points += self.amount_weight
        else:
            differences.append(DiffField.AMOUNT)

        description_points = self._description_points(
            a.origin_description, b.origin_description
        )
        points += description_points
        if description_points != self.description_weight:
            differences.append(DiffField.DESCRIPTION)

        return SimilarityBreakdown(points=points, differences=differences)

    def _description_points(self, first: str, second: str) -> int:
        desc1 = normalize_description(first)
        desc2 = normalize_description(second)

        if desc1 == desc2:
            return self.description_weight
        if desc1 and desc2 and (desc1 in desc2 or desc2 in desc1):
            return self.description_weight // 2
        return 0
