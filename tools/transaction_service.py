"""
Transaction CRUD against spendme_transactions
Includes installment groups and account-to-account transfers
"""
import logging
import re
import uuid
from datetime import date
from typing import Literal, Optional

from models.schemas import (
    Account,
    Transaction,
    TransactionFilters,
    TransactionStats,
    TransactionType,
)
from tools.backend import BackendClient, eq, gte, ilike, lte
from tools.dates import add_months, period_start
from tools.errors import NotFoundError

logger = logging.getLogger(__name__)

TABLE = "spendme_transactions"
WITH_JOINS = "*,spendme_categories(name,icon),spendme_accounts!spendme_transactions_account_id_fkey(name,type,icon)"

INSTALLMENT_SUFFIX_RE = re.compile(r"\s*\(Installment\s+\d+/\d+\)\s*$")


def clean_installment_description(description: str) -> str:
    """Strip a trailing '(Installment i/n)' marker"""
    return INSTALLMENT_SUFFIX_RE.sub("", description or "")


def is_installment(transaction: Transaction) -> bool:
    return bool(transaction.installments and transaction.installments > 1)


def build_installments(base: Transaction, group_id: Optional[str] = None) -> list[Transaction]:
    """
    Split one purchase into monthly installment rows.

    Every row carries round(amount / n, 2), the base date shifted by
    (i - 1) months, and a shared installment_group_id.
    """
    count = base.installments or 1
    if count < 2:
        raise ValueError("Installment purchases need at least 2 installments")

    group_id = group_id or str(uuid.uuid4())
    description = clean_installment_description(base.description or "")
    per_installment = round(base.amount / count, 2)

    return [
        base.model_copy(update={
            "id": None,
            "created_at": None,
            "amount": per_installment,
            "date": add_months(base.date, i - 1),
            "description": f"{description} (Installment {i}/{count})",
            "installment_no": i,
            "installment_group_id": group_id,
        })
        for i in range(1, count + 1)
    ]


def purchase_from_installment(installment: Transaction) -> Transaction:
    """
    The whole purchase behind one installment row: total amount, the
    first installment's date and the description without its marker.
    """
    count = installment.installments or 1
    months_back = (installment.installment_no or 1) - 1
    return installment.model_copy(update={
        "id": None,
        "created_at": None,
        "amount": round(installment.amount * count, 2),
        "date": add_months(installment.date, -months_back),
        "description": clean_installment_description(installment.description or ""),
        "installment_no": None,
        "installment_group_id": None,
    })


def validate_transfer(
    amount: Optional[float],
    from_account_id: Optional[str],
    to_account_id: Optional[str]
) -> float:
    """Check the transfer form; returns the amount as float"""
    if not amount or not from_account_id or not to_account_id:
        raise ValueError("Amount, source account and destination account are required")
    if from_account_id == to_account_id:
        raise ValueError("Cannot transfer from an account to itself")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValueError("Enter a valid amount")
    if value <= 0:
        raise ValueError("Enter a valid amount")
    return value


def transfer_description(accounts: list[Account], from_account_id: str, to_account_id: str) -> str:
    names = {a.id: a.name for a in accounts}
    return (
        f"Transfer: {names.get(from_account_id, 'Unknown account')}"
        f" → {names.get(to_account_id, 'Unknown account')}"
    )


def _row(transaction: Transaction) -> dict:
    return transaction.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})


class TransactionService:
    """Income, expense and transfer records for one backend session"""

    def __init__(self, client: BackendClient):
        self.client = client

    def get_transactions(self, user_id: str) -> list[Transaction]:
        rows = self.client.select(
            TABLE, columns=WITH_JOINS,
            filters=[eq("user_id", user_id)],
            order="date", ascending=False
        )
        return [Transaction.model_validate(r) for r in rows]

    def get_transactions_with_filters(self, user_id: str, filters: TransactionFilters) -> list[Transaction]:
        query = [eq("user_id", user_id)]
        if filters.type:
            query.append(eq("type", filters.type.value))
        if filters.category_id:
            query.append(eq("category_id", filters.category_id))
        if filters.account_id:
            query.append(eq("account_id", filters.account_id))
        if filters.start_date:
            query.append(gte("date", filters.start_date))
        if filters.end_date:
            query.append(lte("date", filters.end_date))
        if filters.search:
            query.append(ilike("description", f"%{filters.search}%"))

        rows = self.client.select(
            TABLE, columns=WITH_JOINS, filters=query,
            order="date", ascending=False
        )
        return [Transaction.model_validate(r) for r in rows]

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            row = self.client.select(TABLE, filters=[eq("id", transaction_id)], single=True)
        except NotFoundError:
            return None
        return Transaction.model_validate(row)

    def get_recent_transactions(self, user_id: str, limit: int = 10) -> list[Transaction]:
        rows = self.client.select(
            TABLE, columns=WITH_JOINS,
            filters=[eq("user_id", user_id)],
            order="date", ascending=False, limit=limit
        )
        return [Transaction.model_validate(r) for r in rows]

    def create_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.type == TransactionType.TRANSFER:
            validate_transfer(transaction.amount, transaction.account_id, transaction.to_account_id)
        rows = self.client.insert(TABLE, _row(transaction))
        return Transaction.model_validate(rows[0])

    def update_transaction(self, transaction_id: str, updates: dict) -> Transaction:
        """Patch one row; `updates` may hold dates and enums"""
        if "amount" in updates and (updates["amount"] is None or updates["amount"] < 0):
            raise ValueError("Enter a valid amount")
        rows = self.client.update(TABLE, updates, [eq("id", transaction_id)])
        if not rows:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return Transaction.model_validate(rows[0])

    def delete_transaction(self, transaction_id: str) -> None:
        self.client.delete(TABLE, [eq("id", transaction_id)])

    def get_transaction_stats(
        self,
        user_id: str,
        period: Literal["month", "year"] = "month",
        today: Optional[date] = None
    ) -> TransactionStats:
        start = period_start(today or date.today(), period)
        rows = self.client.select(
            TABLE, columns="type,amount",
            filters=[eq("user_id", user_id), gte("date", start)]
        )

        stats = TransactionStats(transaction_count=len(rows))
        for row in rows:
            if row["type"] == TransactionType.INCOME.value:
                stats.total_income += row.get("amount") or 0
            elif row["type"] == TransactionType.EXPENSE.value:
                stats.total_expense += row.get("amount") or 0
        stats.balance = stats.total_income - stats.total_expense
        return stats

    # --- installments ---

    def create_installment_transaction(self, base: Transaction) -> str:
        """Insert every installment of a purchase; returns the group id"""
        rows = build_installments(base)
        self.client.insert(TABLE, [_row(r) for r in rows])
        group_id = rows[0].installment_group_id
        logger.info(
            "Created %d installments (group %s) for user %s",
            len(rows), group_id, base.user_id
        )
        return group_id

    def get_installment_group(self, user_id: str, group_id: str) -> list[Transaction]:
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id), eq("installment_group_id", group_id)],
            order="date"
        )
        return [Transaction.model_validate(r) for r in rows]

    def update_installment_transaction(self, group_id: str, updated: Transaction) -> Optional[str]:
        """
        Replace an installment group with the edited purchase.

        Returns the new group id, or None when the purchase was changed to a
        single payment and is stored as one plain row.
        """
        cleaned = updated.model_copy(
            update={"description": clean_installment_description(updated.description or "")}
        )
        # Validated before the delete so a bad edit leaves the group untouched
        if not is_installment(cleaned):
            single = cleaned.model_copy(update={
                "installments": None, "installment_no": None, "installment_group_id": None
            })
            if single.type == TransactionType.TRANSFER:
                validate_transfer(single.amount, single.account_id, single.to_account_id)
            self.delete_installment_group(group_id)
            self.create_transaction(single)
            return None

        rows = build_installments(cleaned)
        self.delete_installment_group(group_id)
        self.client.insert(TABLE, [_row(r) for r in rows])
        return rows[0].installment_group_id

    def delete_installment_group(self, group_id: str) -> None:
        self.client.delete(TABLE, [eq("installment_group_id", group_id)])

    # --- transfers ---

    def create_transfer(
        self,
        user_id: str,
        amount: float,
        from_account_id: str,
        to_account_id: str,
        accounts: list[Account],
        description: Optional[str] = None,
        on_date: Optional[date] = None
    ) -> Transaction:
        """Money moving between two of the user's accounts; no category"""
        value = validate_transfer(amount, from_account_id, to_account_id)
        transfer = Transaction(
            user_id=user_id,
            type=TransactionType.TRANSFER,
            amount=value,
            account_id=from_account_id,
            to_account_id=to_account_id,
            category_id=None,
            description=description or transfer_description(accounts, from_account_id, to_account_id),
            date=on_date or date.today(),
        )
        return self.create_transaction(transfer)
