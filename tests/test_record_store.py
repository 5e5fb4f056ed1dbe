"""
Tests for the in-memory record store.
"""

import pytest

from fatura_recon.integrations import InMemoryRecordStore, PersistenceError
from fatura_recon.models import ChangeSet, ObligationStatus


@pytest.fixture
def store(make_item, make_obligation):
    return InMemoryRecordStore(
        records=[
            make_item("A", "2025-08-05", -100.00, "NETFLIX"),
            make_item("B", "2025-08-06", -80.00, "GYM"),
            make_item("Z", "2025-09-01", -5.00, "CAFE", statement_id="CARDX_2509"),
        ],
        obligations=[
            make_obligation("o1", "GYM", -80.00, "2025-08-10", origin_tag="nubank"),
            make_obligation("o2", "LOJA", -20.00, "2025-09-10", origin_tag="nubank"),
        ],
    )


class TestInMemoryRecordStore:

    def test_fetch_snapshot_by_statement(self, store):
        assert [item.id for item in store.fetch_snapshot("CARDX_2508")] == ["A", "B"]

    def test_apply_change_set(self, store, make_item):
        change_set = ChangeSet(
            statement_id="CARDX_2508",
            to_add=[make_item("N", "2025-08-09", -20.00, "SPOTIFY")],
            to_keep=["A"],
            to_remove=["B"],
        )

        store.apply_change_set(change_set)

        assert [item.id for item in store.fetch_snapshot("CARDX_2508")] == ["A", "N"]
        assert store.get_record("B") is None

    def test_change_set_must_cover_stored_ids(self, store):
        change_set = ChangeSet(statement_id="CARDX_2508", to_keep=["A"])

        with pytest.raises(PersistenceError) as exc_info:
            store.apply_change_set(change_set)

        assert exc_info.value.operation == "apply_change_set"
        assert exc_info.value.details["missing"] == ["B"]

    def test_failed_insert_leaves_store_untouched(self, store, make_item):
        change_set = ChangeSet(
            statement_id="CARDX_2508",
            to_add=[make_item("Z", "2025-08-09", -20.00, "SPOTIFY")],
            to_keep=["A"],
            to_remove=["B"],
        )

        with pytest.raises(PersistenceError):
            store.apply_change_set(change_set)

        assert [item.id for item in store.fetch_snapshot("CARDX_2508")] == ["A", "B"]

    def test_transaction_rolls_back_nested_writes(self, store, make_item):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.create_posted_records([make_item("P", "2025-08-20", -80.00, "GYM")])
                store.mark_reconciled(["o1"], "pay1")
                raise RuntimeError("boom")

        assert store.get_record("P") is None
        assert not store.get_obligation("o1").reconciled

    def test_fetch_obligations_by_period(self, store):
        assert [o.id for o in store.fetch_obligations("2508")] == ["o1"]
        assert [o.id for o in store.fetch_obligations()] == ["o1", "o2"]

    def test_obligations_are_copied_out(self, store):
        store.fetch_obligations()[0].mark_reconciled("pay1")

        assert not store.get_obligation("o1").reconciled

    def test_mark_reconciled_once(self, store):
        store.mark_reconciled(["o1"], "pay1")

        stored = store.get_obligation("o1")
        assert stored.reconciled_with == "pay1"
        assert stored.status == ObligationStatus.RECONCILED

        with pytest.raises(PersistenceError):
            store.mark_reconciled(["o1"], "pay2")

    def test_mark_unknown_obligation(self, store):
        with pytest.raises(PersistenceError):
            store.mark_reconciled(["o1", "missing"], "pay1")

        assert not store.get_obligation("o1").reconciled


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
