"""
Tests for the Match Classifier review screen logic.
"""

import pytest

from fatura_recon.models import DiffField, MatchStatus, SelectionOverrides
from fatura_recon.reconciliation.classifier import MatchClassifier


@pytest.fixture
def classifier(settings):
    return MatchClassifier(settings)


@pytest.fixture
def reimport(make_item):
    """Stored statement vs. a re-import with one new and one missing line."""
    old = [
        make_item("A", "2025-08-05", -100.00, "NETFLIX"),
        make_item("V", "2025-08-10", -80.00, "GYM"),
    ]
    new = [
        make_item("B", "2025-08-05", -100.00, "NETFLIX"),
        make_item("N", "2025-08-12", -20.00, "SPOTIFY"),
    ]
    return old, new


class TestClassification:
    """Four-way status assignment."""

    def test_exact_match(self, classifier, make_item):
        old = [make_item("A", "2025-08-05", -100.00, "NETFLIX")]
        new = [make_item("B", "2025-08-05", -100.00, "NETFLIX")]

        pairs = classifier.classify(old, new)

        assert len(pairs) == 1
        assert pairs[0].status == MatchStatus.EXACT
        assert pairs[0].key == "old:A"
        assert pairs[0].old.id == "A"
        assert pairs[0].new.id == "B"
        assert pairs[0].reason == "Transação idêntica encontrada"

    def test_below_threshold_is_new_plus_vanished(self, classifier, make_item):
        old = [make_item("A", "2025-08-05", -50.00, "UBER")]
        new = [make_item("B", "2025-08-05", -55.00, "UBER")]

        pairs = classifier.classify(old, new)

        assert [(p.status, p.item.id) for p in pairs] == [
            (MatchStatus.NEW, "B"),
            (MatchStatus.VANISHED, "A"),
        ]

    def test_near_exact_lists_differences(self, classifier, make_item):
        old = [make_item("A", "2025-08-05", -30.00, "UBER")]
        new = [make_item("B", "2025-08-05", -30.00, "UBER TRIP")]

        pair = classifier.classify(old, new)[0]

        assert pair.status == MatchStatus.NEAR_EXACT
        assert pair.differences == [DiffField.DESCRIPTION]
        assert pair.score == 0.85
        assert pair.reason == "Diferenças: descrição"

    def test_every_item_appears_exactly_once(self, classifier, reimport):
        old, new = reimport

        pairs = classifier.classify(old, new)

        old_ids = [p.old.id for p in pairs if p.old is not None]
        new_ids = [p.new.id for p in pairs if p.new is not None]
        assert sorted(old_ids) == ["A", "V"]
        assert sorted(new_ids) == ["B", "N"]

    def test_everything_selected_by_default(self, classifier, reimport):
        pairs = classifier.classify(*reimport)

        assert all(classifier.default_selections(pairs).values())

    def test_counts_by_status(self, classifier, reimport):
        counts = classifier.counts_by_status(classifier.classify(*reimport))

        assert counts == {
            MatchStatus.NEW: 1,
            MatchStatus.EXACT: 1,
            MatchStatus.NEAR_EXACT: 0,
            MatchStatus.VANISHED: 1,
        }

    def test_same_id_on_both_sides_does_not_collide(self, classifier, make_item):
        old = [make_item("X", "2025-08-05", -10.00, "CAFE")]
        new = [make_item("X", "2025-08-20", -99.00, "LIVRARIA")]

        pairs = classifier.classify(old, new)

        assert {p.key for p in pairs} == {"new:X", "old:X"}

    def test_malformed_input_reports_errors(self, classifier, make_item):
        old = [make_item("A", "2025-08-05", -100.00, "NETFLIX", statement_id="CARDX_2508")]
        new = [make_item("B", "2025-09-05", -100.00, "NETFLIX", statement_id="CARDX_2509")]

        review = classifier.review(old, new)

        assert not review.is_valid
        assert review.pairs == []
        assert classifier.classify(old, new) == []


class TestResultingTotal:
    """Preview of the merged statement total."""

    def test_defaults_keep_vanished_line(self, classifier, reimport):
        """Keeping a line missing from the new bill unbalances the total."""
        pairs = classifier.classify(*reimport)

        total = classifier.compute_resulting_total(pairs)

        assert total.will_keep == 2
        assert total.will_create == 1
        assert total.will_delete == 0
        assert total.final_value_cents == 20000
        assert total.expected_value_cents == 12000
        assert not total.is_balanced

    def test_deselecting_vanished_line_balances(self, classifier, reimport):
        pairs = classifier.classify(*reimport)

        total = classifier.compute_resulting_total(pairs, {"old:V": False})

        assert total.will_delete == 1
        assert total.final_value_cents == 12000
        assert total.difference_cents == 0
        assert total.is_balanced

    def test_deselecting_matched_pair_replaces_record(self, classifier, make_item):
        old = [make_item("A", "2025-08-05", -30.00, "UBER")]
        new = [make_item("B", "2025-08-05", -30.00, "UBER TRIP")]
        pairs = classifier.classify(old, new)

        total = classifier.compute_resulting_total(pairs, {"old:A": False})

        assert total.will_create == 1
        assert total.will_delete == 1
        assert total.will_keep == 0
        assert total.is_balanced

    def test_unknown_selection_keys_are_ignored(self, classifier, reimport):
        pairs = classifier.classify(*reimport)

        resolved = classifier.resolve_selections(pairs, {"old:NOPE": False})

        assert "old:NOPE" not in resolved
        assert all(resolved.values())


class TestChangeSet:
    """Review selections turned into writes."""

    def test_default_change_set(self, classifier, reimport):
        pairs = classifier.classify(*reimport)

        change_set = classifier.to_change_set(pairs)

        assert change_set.statement_id == "CARDX_2508"
        assert change_set.to_keep == ["A", "V"]
        assert [item.id for item in change_set.to_add] == ["N"]
        assert change_set.to_remove == []

    def test_selection_overrides(self, classifier, reimport):
        pairs = classifier.classify(*reimport)
        overrides = SelectionOverrides().with_changes(
            pairs={"old:V": False, "old:A": False, "new:N": False}
        )

        change_set = classifier.to_change_set(pairs, overrides)

        assert change_set.to_keep == []
        assert change_set.to_remove == ["A", "V"]
        assert [item.id for item in change_set.to_add] == ["B"]
        assert change_set.overrides_revision == 1

    def test_merge_keep_ids(self, classifier, reimport):
        pairs = classifier.classify(*reimport)

        assert classifier.merge_keep_ids(pairs, {"old:V": False}) == ["A"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
