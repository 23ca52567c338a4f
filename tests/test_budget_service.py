"""
Tests for SpendMe budgets
"""
import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeBackend
from models.schemas import Budget
from tools.budget_service import TABLE, BudgetService, clean_budgets

USER = "user-1"
TODAY = date(2026, 10, 19)


def test_budget_period_validation():
    """Periods are weekly/monthly/yearly or a YYYY-MM key"""
    for period in ("weekly", "monthly", "yearly", "2026-10"):
        assert Budget(user_id=USER, amount=100, period=period).period == period
    for period in ("daily", "2026-13", "2026/10"):
        with pytest.raises(ValidationError):
            Budget(user_id=USER, amount=100, period=period)
    with pytest.raises(ValidationError):
        Budget(user_id=USER, amount=-1)
    print("✓ Budget validation")


def test_clean_budgets_keeps_latest_per_category():
    older = Budget(user_id=USER, category_id="food", amount=100,
                   created_at=datetime(2026, 9, 1, tzinfo=timezone.utc))
    newer = Budget(user_id=USER, category_id="food", amount=150,
                   created_at=datetime(2026, 10, 1, tzinfo=timezone.utc))
    rent = Budget(user_id=USER, category_id="rent", amount=900)
    orphan = Budget(user_id=USER, category_id=None, amount=5)

    cleaned = clean_budgets([older, rent, newer, orphan])
    assert {b.category_id: b.amount for b in cleaned} == {"food": 150, "rent": 900}
    print("✓ clean_budgets")


def test_crud():
    backend = FakeBackend()
    service = BudgetService(backend.client())

    created = service.create_budget(Budget(user_id=USER, category_id="food", period="2026-10", amount=300))
    assert created.id

    updated = service.update_budget(created.id, {"amount": 450})
    assert updated.amount == 450

    with pytest.raises(ValidationError):
        service.update_budget(created.id, {"period": "fortnightly"})

    assert service.get_budget(created.id).amount == 450
    service.delete_budget(created.id)
    assert service.get_budget(created.id) is None
    print("✓ Budget CRUD")


def test_set_category_budget_upserts():
    """One budget per category and period: create, update in place, remove at 0"""
    backend = FakeBackend()
    service = BudgetService(backend.client())

    created = service.set_category_budget(USER, "food", "2026-10", 300)
    updated = service.set_category_budget(USER, "food", "2026-10", 450)

    assert updated.id == created.id
    assert [r["amount"] for r in backend.tables[TABLE]] == [450]

    service.set_category_budget(USER, "food", "2026-09", 200)
    assert len(backend.tables[TABLE]) == 2

    assert service.set_category_budget(USER, "food", "2026-10", 0) is None
    assert [r["period"] for r in backend.tables[TABLE]] == ["2026-09"]
    print("✓ Category budget upsert")


def test_set_category_budget_collapses_duplicates():
    backend = FakeBackend()
    backend.seed(
        TABLE,
        {"id": "old", "user_id": USER, "category_id": "food", "period": "2026-10", "amount": 100,
         "created_at": "2026-09-01T00:00:00+00:00"},
        {"id": "new", "user_id": USER, "category_id": "food", "period": "2026-10", "amount": 150,
         "created_at": "2026-10-01T00:00:00+00:00"},
    )

    budget = BudgetService(backend.client()).set_category_budget(USER, "food", "2026-10", 500)

    assert budget.id == "new"
    assert [(r["id"], r["amount"]) for r in backend.tables[TABLE]] == [("new", 500)]
    print("✓ Duplicate budgets collapsed")


def test_current_month_budgets_join_categories():
    backend = FakeBackend()
    food = backend.seed("spendme_categories", {"user_id": USER, "name": "Food", "type": "expense"})[0]
    backend.seed(
        TABLE,
        {"user_id": USER, "category_id": food["id"], "period": "2026-10", "amount": 300,
         "created_at": "2026-10-01T00:00:00+00:00"},
        {"user_id": USER, "category_id": food["id"], "period": "2026-09", "amount": 250,
         "created_at": "2026-09-01T00:00:00+00:00"},
    )

    rows = BudgetService(backend.client()).get_current_month_budgets(USER, today=TODAY)
    assert len(rows) == 1
    assert rows[0].budget.amount == 300
    assert rows[0].category.name == "Food"
    print("✓ Current month budgets")


def test_historical_data_previous_months_only():
    backend = FakeBackend()
    backend.seed(TABLE, *[
        {"user_id": USER, "category_id": "food", "period": period, "amount": 100}
        for period in ("2026-10", "2026-09", "2026-08", "2026-03", "2026-02")
    ])

    history = BudgetService(backend.client()).get_historical_data(USER, months=6, today=TODAY)
    assert [b.period for b in history] == ["2026-09", "2026-08"]
    print("✓ Historical budgets")


if __name__ == "__main__":
    print("\n🧪 Running SpendMe Budget Tests\n")
    print("-" * 50)

    test_budget_period_validation()
    test_clean_budgets_keeps_latest_per_category()
    test_crud()
    test_set_category_budget_upserts()
    test_set_category_budget_collapses_duplicates()
    test_current_month_budgets_join_categories()
    test_historical_data_previous_months_only()

    print("-" * 50)
    print("\n✅ All tests passed!\n")
