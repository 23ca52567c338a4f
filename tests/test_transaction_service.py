"""
Tests for SpendMe transactions, installments and transfers
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeBackend
from models.schemas import Account, Transaction, TransactionFilters, TransactionType
from tools.errors import NotFoundError
from tools.transaction_service import (
    TABLE,
    TransactionService,
    build_installments,
    clean_installment_description,
    purchase_from_installment,
    transfer_description,
    validate_transfer,
)

USER = "user-1"


def purchase(**fields) -> Transaction:
    base = dict(
        user_id=USER,
        type="expense",
        amount=1000,
        account_id="card",
        category_id="electronics",
        installments=3,
        description="Laptop",
        date=date(2026, 1, 31),
    )
    base.update(fields)
    return Transaction(**base)


def test_build_installments():
    """Each row gets amount/n, a shifted date and a shared group id"""
    rows = build_installments(purchase(), group_id="group-1")

    assert len(rows) == 3
    assert [r.amount for r in rows] == [333.33, 333.33, 333.33]
    assert [r.date for r in rows] == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]
    assert [r.description for r in rows] == [
        "Laptop (Installment 1/3)",
        "Laptop (Installment 2/3)",
        "Laptop (Installment 3/3)",
    ]
    assert [r.installment_no for r in rows] == [1, 2, 3]
    assert {r.installment_group_id for r in rows} == {"group-1"}
    print("✓ Installment rows")


def test_build_installments_needs_two():
    with pytest.raises(ValueError):
        build_installments(purchase(installments=1))
    print("✓ Single installment rejected")


def test_installment_suffix_not_repeated():
    """Rebuilding from an existing row keeps one suffix"""
    rows = build_installments(purchase(description="Laptop (Installment 2/3)"))
    assert rows[0].description == "Laptop (Installment 1/3)"
    assert clean_installment_description("Phone (Installment 4/12)") == "Phone"
    assert clean_installment_description("Phone") == "Phone"
    print("✓ Installment suffix cleaned")


def test_validate_transfer():
    assert validate_transfer(250, "bank", "cash") == 250.0
    with pytest.raises(ValueError, match="required"):
        validate_transfer(None, "bank", "cash")
    with pytest.raises(ValueError, match="required"):
        validate_transfer(100, "bank", None)
    with pytest.raises(ValueError, match="itself"):
        validate_transfer(100, "bank", "bank")
    with pytest.raises(ValueError, match="valid amount"):
        validate_transfer(-5, "bank", "cash")
    with pytest.raises(ValueError, match="valid amount"):
        validate_transfer("abc", "bank", "cash")
    print("✓ Transfer validation")


def test_transfer_description():
    accounts = [
        Account(id="bank", user_id=USER, name="Ziraat", type="bank"),
        Account(id="cash", user_id=USER, name="Wallet", type="cash"),
    ]
    assert transfer_description(accounts, "bank", "cash") == "Transfer: Ziraat → Wallet"
    assert transfer_description(accounts, "bank", "gone") == "Transfer: Ziraat → Unknown account"
    print("✓ Transfer description")


def test_create_transfer_has_no_category():
    backend = FakeBackend()
    service = TransactionService(backend.client())
    accounts = [
        Account(id="bank", user_id=USER, name="Bank", type="bank"),
        Account(id="cash", user_id=USER, name="Cash", type="cash"),
    ]

    created = service.create_transfer(USER, 800, "bank", "cash", accounts, on_date=date(2026, 10, 2))

    stored = backend.tables[TABLE][0]
    assert stored["type"] == "transfer"
    assert stored["account_id"] == "bank"
    assert stored["to_account_id"] == "cash"
    assert "category_id" not in stored
    assert stored["description"] == "Transfer: Bank → Cash"
    assert created.amount == 800
    print("✓ Transfer stored")


def test_create_installment_transaction():
    backend = FakeBackend()
    service = TransactionService(backend.client())

    group_id = service.create_installment_transaction(purchase(amount=1200, installments=4))

    rows = backend.tables[TABLE]
    assert len(rows) == 4
    assert all(r["installment_group_id"] == group_id for r in rows)
    assert all(r["amount"] == 300 for r in rows)
    # One bulk insert
    assert len(backend.requests_to("POST", TABLE)) == 1

    group = service.get_installment_group(USER, group_id)
    assert [t.installment_no for t in group] == [1, 2, 3, 4]
    print("✓ Installment purchase")


def test_update_installment_replaces_group():
    backend = FakeBackend()
    service = TransactionService(backend.client())
    old_group = service.create_installment_transaction(purchase())

    edited = purchase(amount=600, installments=2, description="Laptop (Installment 1/3)")
    new_group = service.update_installment_transaction(old_group, edited)

    rows = backend.tables[TABLE]
    assert new_group != old_group
    assert len(rows) == 2
    assert [r["description"] for r in rows] == ["Laptop (Installment 1/2)", "Laptop (Installment 2/2)"]
    print("✓ Installment group replaced")


def test_update_installment_to_single_payment():
    """Dropping to one installment stores a plain row in place of the group"""
    backend = FakeBackend()
    service = TransactionService(backend.client())
    old_group = service.create_installment_transaction(purchase())

    result = service.update_installment_transaction(old_group, purchase(amount=950, installments=1))

    rows = backend.tables[TABLE]
    assert result is None
    assert len(rows) == 1
    assert rows[0]["amount"] == 950
    assert rows[0]["description"] == "Laptop"
    assert "installment_group_id" not in rows[0]
    assert service.get_installment_group(USER, old_group) == []
    print("✓ Installment group to single payment")


def test_rejected_installment_edit_keeps_group():
    backend = FakeBackend()
    service = TransactionService(backend.client())
    old_group = service.create_installment_transaction(purchase())

    bad = purchase(type="transfer", installments=1, account_id="card", to_account_id="card")
    with pytest.raises(ValueError, match="itself"):
        service.update_installment_transaction(old_group, bad)

    assert len(service.get_installment_group(USER, old_group)) == 3
    assert backend.requests_to("DELETE", TABLE) == []
    print("✓ Rejected edit keeps group")


def test_purchase_from_installment():
    """One installment row rebuilds the whole purchase"""
    second = build_installments(purchase(amount=999.99), group_id="group-1")[1]
    assert second.date == date(2026, 2, 28)

    whole = purchase_from_installment(second)

    assert whole.amount == 999.99
    assert whole.date == date(2026, 1, 28)
    assert whole.description == "Laptop"
    assert whole.installments == 3
    assert whole.installment_no is None
    assert whole.installment_group_id is None
    print("✓ Purchase from installment")


def test_update_transaction_with_date_and_enum():
    backend = FakeBackend()
    service = TransactionService(backend.client())
    row = backend.seed(TABLE, {"user_id": USER, "type": "expense", "amount": 40, "date": "2026-10-01"})[0]

    updated = service.update_transaction(
        row["id"], {"date": date(2026, 10, 2), "type": TransactionType.INCOME, "amount": 55}
    )

    assert updated.date == date(2026, 10, 2)
    assert updated.type == TransactionType.INCOME
    stored = backend.tables[TABLE][0]
    assert stored["date"] == "2026-10-02"
    assert stored["type"] == "income"

    with pytest.raises(ValueError, match="valid amount"):
        service.update_transaction(row["id"], {"amount": -1})
    with pytest.raises(NotFoundError):
        service.update_transaction("missing", {"amount": 10})
    print("✓ Transaction update")


def test_delete_installment_group_keeps_others():
    backend = FakeBackend()
    service = TransactionService(backend.client())
    group_id = service.create_installment_transaction(purchase())
    backend.seed(TABLE, {"user_id": USER, "type": "expense", "amount": 5, "date": "2026-10-01"})

    service.delete_installment_group(group_id)
    assert len(backend.tables[TABLE]) == 1
    print("✓ Installment group deleted")


def test_filters_and_stats():
    backend = FakeBackend()
    backend.seed(
        TABLE,
        {"user_id": USER, "type": "income", "amount": 3000, "date": "2026-10-01", "description": "Salary"},
        {"user_id": USER, "type": "expense", "amount": 45, "date": "2026-10-04", "description": "Coffee beans"},
        {"user_id": USER, "type": "expense", "amount": 80, "date": "2026-09-20", "description": "Iced COFFEE"},
        {"user_id": USER, "type": "transfer", "amount": 500, "date": "2026-10-05"},
        {"user_id": "other", "type": "expense", "amount": 1, "date": "2026-10-04", "description": "coffee"},
    )
    service = TransactionService(backend.client())

    found = service.get_transactions_with_filters(
        USER, TransactionFilters(type="expense", search="coffee", start_date=date(2026, 10, 1))
    )
    assert [t.amount for t in found] == [45]

    all_coffee = service.get_transactions_with_filters(USER, TransactionFilters(search="coffee"))
    assert sorted(t.amount for t in all_coffee) == [45, 80]

    stats = service.get_transaction_stats(USER, "month", today=date(2026, 10, 19))
    assert stats.total_income == 3000
    assert stats.total_expense == 45
    assert stats.balance == 2955
    assert stats.transaction_count == 3
    print("✓ Filters and stats")


def test_recent_transactions_limit():
    backend = FakeBackend()
    backend.seed(TABLE, *[
        {"user_id": USER, "type": "expense", "amount": i, "date": f"2026-10-{i:02d}"}
        for i in range(1, 13)
    ])
    recent = TransactionService(backend.client()).get_recent_transactions(USER, limit=3)
    assert [t.amount for t in recent] == [12, 11, 10]
    print("✓ Recent transactions")


if __name__ == "__main__":
    print("\n🧪 Running SpendMe Transaction Tests\n")
    print("-" * 50)

    test_build_installments()
    test_build_installments_needs_two()
    test_installment_suffix_not_repeated()
    test_validate_transfer()
    test_transfer_description()
    test_create_transfer_has_no_category()
    test_create_installment_transaction()
    test_update_installment_replaces_group()
    test_update_installment_to_single_payment()
    test_rejected_installment_edit_keeps_group()
    test_purchase_from_installment()
    test_update_transaction_with_date_and_enum()
    test_delete_installment_group_keeps_others()
    test_filters_and_stats()
    test_recent_transactions_limit()

    print("-" * 50)
    print("\n✅ All tests passed!\n")
