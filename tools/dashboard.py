"""
Dashboard aggregation
Joins transactions, accounts, budgets and categories in memory to produce
totals, category rankings, budget status, account balances and card exposure
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from models.schemas import (
    Account,
    AccountType,
    BankAccountSummary,
    Budget,
    BudgetStatus,
    Category,
    ChartItem,
    CreditCardSummary,
    DashboardStats,
    Transaction,
    TransactionType,
)
from tools.account_service import AccountService
from tools.backend import BackendClient
from tools.budget_service import BudgetService
from tools.category_service import CategoryService
from tools.dates import month_bounds
from tools.transaction_service import TransactionService

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
TOP_CATEGORY_COUNT = 5
RECENT_COUNT = 5

CATEGORY_COLORS = [
    "#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6",
    "#06B6D4", "#84CC16", "#F97316", "#EC4899", "#6366F1",
]

WALLET_TYPES = {AccountType.CASH, AccountType.WALLET}
BANK_TYPES = {AccountType.BANK, AccountType.SAVINGS}

# Keyed by lower-cased payment method
PAYMENT_METHOD_STYLES = {
    "cash": ("#10B981", "💵"),
    "nakit": ("#10B981", "💵"),
    "credit card": ("#3B82F6", "💳"),
    "kredi kartı": ("#3B82F6", "💳"),
    "debit card": ("#8B5CF6", "🏦"),
    "banka kartı": ("#8B5CF6", "🏦"),
    "bank transfer": ("#F59E0B", "📤"),
    "havale": ("#F59E0B", "📤"),
    "eft": ("#EF4444", "📤"),
    "papara": ("#6366F1", "🧾"),
    "papel": ("#6366F1", "🧾"),
    UNKNOWN.lower(): ("#6B7280", "❓"),
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def category_color(name: str) -> str:
    """Stable palette colour derived from the name's characters"""
    return CATEGORY_COLORS[sum(ord(c) for c in name) % len(CATEGORY_COLORS)]


def _sum(transactions: Iterable[Transaction]) -> float:
    return sum(t.amount or 0 for t in transactions)


def _of_type(transactions: Iterable[Transaction], tx_type: TransactionType) -> list[Transaction]:
    return [t for t in transactions if t.type == tx_type]


def account_balance(account_id: str, transactions: list[Transaction]) -> float:
    """income + transfers in - expense - transfers out for one account"""
    income = _sum(t for t in transactions if t.account_id == account_id and t.type == TransactionType.INCOME)
    expense = _sum(t for t in transactions if t.account_id == account_id and t.type == TransactionType.EXPENSE)
    transfer_in = _sum(t for t in transactions if t.to_account_id == account_id and t.type == TransactionType.TRANSFER)
    transfer_out = _sum(t for t in transactions if t.account_id == account_id and t.type == TransactionType.TRANSFER)
    return income + transfer_in - expense - transfer_out


def credit_card_summary(account: Account, transactions: list[Transaction]) -> CreditCardSummary:
    """Debt is spending plus money moved off the card, less payments onto it"""
    spent = _sum(t for t in transactions if t.account_id == account.id and t.type == TransactionType.EXPENSE)
    moved_out = _sum(t for t in transactions if t.account_id == account.id and t.type == TransactionType.TRANSFER)
    paid_in = _sum(t for t in transactions if t.to_account_id == account.id and t.type == TransactionType.TRANSFER)
    debt = spent + moved_out - paid_in
    limit = account.card_limit or 0
    return CreditCardSummary(
        id=account.id,
        name=account.name,
        limit=limit,
        debt=debt,
        available=limit - debt
    )


def top_categories(
    expenses: list[Transaction],
    category_names: dict[str, str],
    count: int = TOP_CATEGORY_COUNT
) -> list[ChartItem]:
    totals: dict[str, float] = defaultdict(float)
    for t in expenses:
        name = category_names.get(t.category_id, UNKNOWN) if t.category_id else UNKNOWN
        totals[name] += t.amount or 0

    items = [
        ChartItem(name=name, value=value, color=category_color(name))
        for name, value in totals.items()
    ]
    items.sort(key=lambda item: item.value, reverse=True)
    return items[:count]


def payment_method_breakdown(expenses: list[Transaction]) -> list[ChartItem]:
    totals: dict[str, float] = defaultdict(float)
    for t in expenses:
        totals[t.payment_method or UNKNOWN] += t.amount or 0

    items = []
    for name, value in totals.items():
        color, icon = PAYMENT_METHOD_STYLES.get(name.lower(), PAYMENT_METHOD_STYLES[UNKNOWN.lower()])
        items.append(ChartItem(
            name=name[:1].upper() + name[1:],
            value=value,
            color=color,
            icon=icon
        ))
    items.sort(key=lambda item: item.value, reverse=True)
    return items


def budget_status(
    budgets: list[Budget],
    monthly_expenses: list[Transaction],
    category_names: dict[str, str]
) -> list[BudgetStatus]:
    """Progress of every budget against this month's spending in its category"""
    statuses = []
    for budget in budgets:
        spent = _sum(t for t in monthly_expenses if t.category_id == budget.category_id)
        amount = budget.amount or 0
        statuses.append(BudgetStatus(
            category_id=budget.category_id,
            category_name=category_names.get(budget.category_id, UNKNOWN) if budget.category_id else UNKNOWN,
            budget_amount=amount,
            spent_amount=spent,
            remaining_amount=amount - spent,
            percentage_used=(spent / amount) * 100 if amount else 0.0,
            is_over_budget=spent > amount
        ))
    return statuses


def _created_key(t: Transaction) -> datetime:
    if t.created_at is None:
        return _EPOCH
    if t.created_at.tzinfo is None:
        return t.created_at.replace(tzinfo=timezone.utc)
    return t.created_at


def compute_dashboard(
    transactions: list[Transaction],
    accounts: list[Account],
    budgets: list[Budget],
    categories: list[Category],
    today: Optional[date] = None
) -> DashboardStats:
    """Build every dashboard figure from in-memory lists"""
    today = today or date.today()
    month_start, month_end = month_bounds(today)
    category_names = {c.id: c.name for c in categories if c.id}

    monthly = [t for t in transactions if month_start <= t.date <= month_end]

    all_income = _of_type(transactions, TransactionType.INCOME)
    all_expenses = _of_type(transactions, TransactionType.EXPENSE)
    monthly_income = _of_type(monthly, TransactionType.INCOME)
    monthly_expenses = _of_type(monthly, TransactionType.EXPENSE)

    total_income = _sum(all_income)
    total_expense = _sum(all_expenses)
    monthly_income_total = _sum(monthly_income)
    monthly_expense_total = _sum(monthly_expenses)

    wallet_accounts = [a for a in accounts if a.type in WALLET_TYPES]
    bank_accounts = [a for a in accounts if a.type in BANK_TYPES]
    credit_accounts = [a for a in accounts if a.type == AccountType.CREDIT_CARD]

    bank_details = [
        BankAccountSummary(id=a.id, name=a.name, balance=account_balance(a.id, transactions))
        for a in bank_accounts
    ]
    credit_cards = [credit_card_summary(a, transactions) for a in credit_accounts]

    recent = sorted(transactions, key=_created_key, reverse=True)[:RECENT_COUNT]

    stats = DashboardStats(
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        monthly_income=monthly_income_total,
        monthly_expense=monthly_expense_total,
        monthly_balance=monthly_income_total - monthly_expense_total,
        top_categories=top_categories(monthly_expenses, category_names),
        top_categories_all_time=top_categories(all_expenses, category_names),
        recent_transactions=recent,
        budget_status=budget_status(budgets, monthly_expenses, category_names),
        wallet_total=sum(account_balance(a.id, transactions) for a in wallet_accounts),
        bank_total=sum(b.balance for b in bank_details),
        bank_accounts=bank_details,
        credit_cards=credit_cards,
        total_credit_limit=sum(c.limit for c in credit_cards),
        total_credit_debt=sum(c.debt for c in credit_cards),
        total_credit_available=sum(c.available for c in credit_cards),
        payment_methods=payment_method_breakdown(monthly_expenses),
        payment_methods_all_time=payment_method_breakdown(all_expenses),
    )
    logger.debug(
        "Dashboard computed from %d transactions, %d accounts, %d budgets",
        len(transactions), len(accounts), len(budgets)
    )
    return stats


def fetch_dashboard(client: BackendClient, user_id: str, today: Optional[date] = None) -> DashboardStats:
    """Load the user's data through the services and aggregate it"""
    transactions = TransactionService(client).get_transactions(user_id)
    accounts = AccountService(client).get_accounts(user_id)
    budgets = BudgetService(client).get_budgets(user_id)
    categories = CategoryService(client).get_categories(user_id)

    return compute_dashboard(transactions, accounts, budgets, categories, today=today)
