"""
Tests for the similarity scorer and the greedy matcher.
"""

import pytest

from fatura_recon.config import Settings
from fatura_recon.models import DiffField
from fatura_recon.reconciliation.matching import GreedySnapshotMatcher
from fatura_recon.reconciliation.similarity import SimilarityScorer


@pytest.fixture
def scorer(settings):
    return SimilarityScorer(settings)


class TestSimilarityScorer:
    """Weighted date / amount / description scoring."""

    def test_identical_lines_score_one(self, scorer, make_item):
        """Same date, amount and description is a perfect match."""
        a = make_item("A", "2025-08-05", -100.00, "NETFLIX")
        b = make_item("B", "2025-08-05", -100.00, "NETFLIX")

        breakdown = scorer.explain(a, b)

        assert scorer.score(a, b) == 1.0
        assert breakdown.points == 100
        assert breakdown.is_identical

    def test_amount_change_drops_amount_weight(self, scorer, make_item):
        """A different amount leaves date and description: 0.6."""
        a = make_item("A", "2025-08-05", -50.00, "UBER")
        b = make_item("B", "2025-08-05", -55.00, "UBER")

        assert scorer.score(a, b) == 0.6
        assert scorer.explain(a, b).differences == [DiffField.AMOUNT]

    def test_date_and_amount_sum_exactly_to_threshold(self, scorer, make_item):
        """0.3 + 0.4 must equal 0.7 exactly, not 0.7000000000000001."""
        a = make_item("A", "2025-08-05", -10.00, "PADARIA")
        b = make_item("B", "2025-08-05", -10.00, "MERCADO")

        assert scorer.points(a, b) == 70
        assert scorer.score(a, b) == 0.7

    def test_contained_description_earns_half_weight(self, scorer, make_item):
        a = make_item("A", "2025-08-05", -30.00, "UBER")
        b = make_item("B", "2025-08-05", -30.00, "UBER TRIP")

        breakdown = scorer.explain(a, b)

        assert breakdown.points == 85
        assert breakdown.differences == [DiffField.DESCRIPTION]

    def test_description_is_trimmed_and_case_insensitive(self, scorer, make_item):
        a = make_item("A", "2025-08-05", -30.00, "  Netflix ")
        b = make_item("B", "2025-08-05", -30.00, "NETFLIX")

        assert scorer.score(a, b) == 1.0

    def test_one_cent_difference_is_a_different_amount(self, scorer, make_item):
        """No partial credit for near amounts."""
        a = make_item("A", "2025-08-05", -30.00, "IFOOD")
        b = make_item("B", "2025-08-05", -30.01, "IFOOD")

        assert DiffField.AMOUNT in scorer.explain(a, b).differences

    def test_empty_description_never_contained(self, scorer, make_item):
        a = make_item("A", "2025-08-05", -30.00, "")
        b = make_item("B", "2025-08-05", -30.00, "IFOOD")

        assert scorer.points(a, b) == 70

    def test_score_is_symmetric(self, scorer, make_item):
        a = make_item("A", "2025-08-05", -30.00, "UBER")
        b = make_item("B", "2025-08-06", -30.00, "UBER EATS")

        assert scorer.score(a, b) == scorer.score(b, a)
        assert scorer.explain(a, b).differences == scorer.explain(b, a).differences

    def test_custom_weights(self, make_item):
        settings = Settings(
            score_weight_date=20,
            score_weight_amount=50,
            score_weight_description=30,
        )
        scorer = SimilarityScorer(settings)
        a = make_item("A", "2025-08-05", -30.00, "UBER")
        b = make_item("B", "2025-08-06", -30.00, "UBER")

        assert scorer.score(a, b) == 0.8

    def test_weights_must_add_up_to_one(self):
        with pytest.raises(ValueError):
            Settings(score_weight_date=50)


class TestGreedySnapshotMatcher:
    """One-to-one matching above the threshold."""

    def test_threshold_is_strict(self, settings, make_item):
        """A score of exactly 0.7 is not a match."""
        matcher = GreedySnapshotMatcher(settings)
        old = [make_item("A", "2025-08-05", -10.00, "PADARIA")]
        new = [make_item("B", "2025-08-05", -10.00, "MERCADO")]

        assert matcher.match(old, new) == []

    def test_old_item_is_matched_at_most_once(self, settings, make_item):
        matcher = GreedySnapshotMatcher(settings)
        old = [make_item("A", "2025-08-05", -10.00, "NETFLIX")]
        new = [
            make_item("B", "2025-08-05", -10.00, "NETFLIX"),
            make_item("C", "2025-08-05", -10.00, "NETFLIX"),
        ]

        matches = matcher.match(old, new)

        assert [(m.old.id, m.new.id) for m in matches] == [("A", "B")]

    def test_ties_go_to_earliest_old_item(self, settings, make_item):
        matcher = GreedySnapshotMatcher(settings)
        old = [
            make_item("A1", "2025-08-05", -10.00, "NETFLIX"),
            make_item("A2", "2025-08-05", -10.00, "NETFLIX"),
        ]

        matches = matcher.match(old, old)

        assert [(m.old.id, m.new.id) for m in matches] == [("A1", "A1"), ("A2", "A2")]

    def test_best_scoring_candidate_wins(self, settings, make_item):
        matcher = GreedySnapshotMatcher(settings)
        old = [
            make_item("A", "2025-08-05", -30.00, "UBER"),
            make_item("B", "2025-08-05", -30.00, "UBER TRIP"),
        ]
        new = [make_item("N", "2025-08-05", -30.00, "UBER TRIP")]

        matches = matcher.match(old, new)

        assert matches[0].old.id == "B"
        assert matches[0].candidate.score == 1.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
