"""
Tests for money, text and formatting helpers.
"""

from datetime import date
from decimal import Decimal

import pytest

from fatura_recon.models import (
    AlreadyReconciledError,
    InvalidAmountError,
    LineItem,
    StatementSnapshot,
    from_cents,
    month_key,
    to_cents,
    validate_line_item,
)
from fatura_recon.utils import (
    compact_key,
    descriptions_similar,
    format_brl,
    format_currency,
    format_month,
    format_signed_brl,
)


class TestCents:

    def test_float_amounts_round_half_up(self):
        assert to_cents(100.1) == 10010
        assert to_cents(-39.9) == -3990
        assert to_cents("0.005") == 1
        assert to_cents(Decimal("12.34")) == 1234

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "abc", True])
    def test_rejects_unusable_amounts(self, value):
        with pytest.raises(InvalidAmountError):
            to_cents(value)

    def test_from_cents(self):
        assert from_cents(-3990) == Decimal("-39.90")

    def test_month_key(self):
        assert month_key(date(2025, 8, 5)) == "2508"


class TestLineItem:

    def test_from_values(self):
        item = LineItem.from_values("A", "2025-08-05T10:00:00", "-100.00", "NETFLIX")

        assert item.date == date(2025, 8, 5)
        assert item.amount_cents == -10000
        assert item.amount == Decimal("-100.00")
        assert item.description == "NETFLIX"

    def test_to_dict(self, make_item):
        data = make_item("A", "2025-08-05", -100.00, "NETFLIX").to_dict()

        assert data["date"] == "2025-08-05"
        assert data["amount"] == "-100.00"
        assert set(data) == {
            "id", "date", "amount_cents", "amount", "origin_description",
            "classified_description", "origin_tag", "statement_id",
            "from_reconciliation", "category", "subtype",
        }

    def test_validation_messages(self):
        broken = LineItem(id="", date=None, amount_cents=1.5, origin_description="X")

        errors = validate_line_item(broken)

        assert errors[0] == "Transação sem identificador"
        assert len(errors) == 3

    def test_snapshot_total_and_foreign_items(self, make_item):
        snapshot = StatementSnapshot.from_items([
            make_item("A", "2025-08-05", -100.00, "NETFLIX"),
            make_item("B", "2025-08-06", 20.00, "ESTORNO"),
            make_item("C", "2025-09-01", -5.00, "CAFE", statement_id="CARDX_2509"),
        ])

        assert snapshot.statement_id == "CARDX_2508"
        assert snapshot.total_cents == 12500
        assert [item.id for item in snapshot.foreign_items()] == ["C"]

    def test_obligation_reconciled_once(self, make_obligation):
        obligation = make_obligation("o1", "GYM", -80.00, "2025-08-10")
        obligation.mark_reconciled("pay1")

        with pytest.raises(AlreadyReconciledError):
            obligation.mark_reconciled("pay2")

        assert obligation.reconciled_with == "pay1"
        assert obligation.due_month == "2508"


class TestText:

    def test_compact_key(self):
        assert compact_key("Uber *Trip 1234") == "ubertrip1234"
        assert compact_key("Padaria São João", 10) == "padariasao"

    def test_descriptions_similar(self):
        assert descriptions_similar("SPOTIFY", "Spotify BR")
        assert not descriptions_similar("", "SPOTIFY")
        assert not descriptions_similar("GYM", "NETFLIX")


class TestFormatting:

    def test_currency(self):
        assert format_currency(123456) == "1.234,56"
        assert format_brl(-2000) == "R$ -20,00"

    def test_signed(self):
        assert format_signed_brl(7200) == "+R$ 72,00"
        assert format_signed_brl(-8000) == "-R$ 80,00"

    def test_month(self):
        assert format_month("2508") == "Ago 2025"
        assert format_month("todos") == "Todos os meses"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
