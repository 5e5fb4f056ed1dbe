"""
Shared fixtures for the fatura reconciliation tests.
"""

import pytest

from fatura_recon.config import Settings, get_settings
from fatura_recon.models import LineItem, ProjectedObligation, to_cents, to_date


@pytest.fixture(autouse=True)
def fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    return Settings(reports_dir=tmp_path / "reports")


@pytest.fixture
def make_item():
    """Factory for statement lines: make_item("A", "2025-08-05", -100, "NETFLIX")."""
    def _make(item_id, on_date, amount, description, statement_id="CARDX_2508", **extra):
        return LineItem.from_values(
            item_id,
            on_date,
            amount,
            description,
            statement_id=statement_id,
            **extra,
        )
    return _make


@pytest.fixture
def make_obligation():
    """Factory for projected obligations with amounts in reais."""
    def _make(obligation_id, establishment, amount, due_date, **extra):
        return ProjectedObligation(
            id=obligation_id,
            due_date=to_date(due_date),
            amount_cents=to_cents(amount),
            establishment=establishment,
            **extra,
        )
    return _make
