"""
Pydantic models for SpendMe
Rows mirror the backend tables; the rest are computed views and AI replies
"""
import re
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import datetime, date
from enum import Enum


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class AccountType(str, Enum):
    CASH = "cash"
    WALLET = "wallet"
    BANK = "bank"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


# Older rows were written with Turkish type codes
ACCOUNT_TYPE_ALIASES = {
    "nakit": AccountType.CASH,
    "cuzdan": AccountType.WALLET,
    "banka": AccountType.BANK,
    "kredi_karti": AccountType.CREDIT_CARD,
    "credit": AccountType.CREDIT_CARD,
    "diger": AccountType.OTHER,
}

BUDGET_PERIODS = ("weekly", "monthly", "yearly")
MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def normalize_account_type(value) -> AccountType:
    """Map legacy and free-form account type strings onto AccountType"""
    if isinstance(value, AccountType):
        return value
    key = str(value or "").strip().lower()
    if key in ACCOUNT_TYPE_ALIASES:
        return ACCOUNT_TYPE_ALIASES[key]
    try:
        return AccountType(key)
    except ValueError:
        return AccountType.OTHER


class Account(BaseModel):
    """Row of spendme_accounts"""
    id: Optional[str] = None
    user_id: str
    name: str = Field(min_length=1)
    type: AccountType = AccountType.OTHER
    icon: Optional[str] = None
    iban: Optional[str] = None
    note: Optional[str] = None
    card_limit: Optional[float] = Field(default=None, ge=0)
    statement_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    card_note: Optional[str] = None
    card_number: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        return normalize_account_type(value)


class Category(BaseModel):
    """Row of spendme_categories; parent_id set means subcategory"""
    id: Optional[str] = None
    user_id: str
    name: str = Field(min_length=1)
    icon: Optional[str] = None
    type: CategoryType = CategoryType.EXPENSE
    is_main: bool = True
    parent_id: Optional[str] = None


class CategoryNode(BaseModel):
    """Main category with its subcategories attached"""
    category: Category
    subcategories: list[Category] = Field(default_factory=list)


class Transaction(BaseModel):
    """Row of spendme_transactions"""
    id: Optional[str] = None
    user_id: str
    type: TransactionType
    amount: float = Field(ge=0)
    account_id: Optional[str] = None
    to_account_id: Optional[str] = None  # Transfers only
    category_id: Optional[str] = None
    payment_method: Optional[str] = None
    installments: Optional[int] = Field(default=None, ge=1)
    installment_no: Optional[int] = Field(default=None, ge=1)
    installment_group_id: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    date: date
    created_at: Optional[datetime] = None


class Budget(BaseModel):
    """Row of spendme_budgets"""
    id: Optional[str] = None
    user_id: str
    category_id: Optional[str] = None
    period: str = "monthly"  # weekly / monthly / yearly or a YYYY-MM month key
    amount: float = Field(ge=0)
    created_at: Optional[datetime] = None

    @field_validator("period")
    @classmethod
    def _check_period(cls, value: str) -> str:
        if value in BUDGET_PERIODS or MONTH_KEY_RE.match(value):
            return value
        raise ValueError(f"Invalid budget period: {value!r}")


class UserProfile(BaseModel):
    """Row of spendme_user_profiles with notification defaults applied"""
    id: Optional[str] = None
    user_id: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    location: str = ""
    avatar_url: Optional[str] = None
    email_notifications: bool = True
    push_notifications: bool = True
    budget_alerts: bool = True
    transaction_reminders: bool = True
    weekly_reports: bool = False
    monthly_reports: bool = True
    security_alerts: bool = True
    marketing_emails: bool = False

    @field_validator("first_name", "last_name", "phone", "location", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator(
        "email_notifications", "push_notifications", "budget_alerts",
        "transaction_reminders", "weekly_reports", "monthly_reports",
        "security_alerts", "marketing_emails",
        mode="before"
    )
    @classmethod
    def _null_flag_uses_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class AuthUser(BaseModel):
    """Authenticated user as returned by the auth endpoint"""
    id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class TransactionFilters(BaseModel):
    """Optional filters for the transaction list"""
    type: Optional[TransactionType] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None


class TransactionStats(BaseModel):
    total_income: float = 0.0
    total_expense: float = 0.0
    balance: float = 0.0
    transaction_count: int = 0


class CategoryStat(BaseModel):
    category_id: str
    name: str
    icon: Optional[str] = None
    total: float = 0.0
    count: int = 0


# --- Dashboard ---

class ChartItem(BaseModel):
    """Named value with a display colour (and optional icon)"""
    name: str
    value: float
    color: str
    icon: Optional[str] = None


class BudgetStatus(BaseModel):
    category_id: Optional[str] = None
    category_name: str
    budget_amount: float
    spent_amount: float
    remaining_amount: float
    percentage_used: float
    is_over_budget: bool


class BankAccountSummary(BaseModel):
    id: str
    name: str
    balance: float


class CreditCardSummary(BaseModel):
    id: str
    name: str
    limit: float
    debt: float
    available: float


class DashboardStats(BaseModel):
    """Everything the dashboard view renders"""
    total_income: float = 0.0
    total_expense: float = 0.0
    balance: float = 0.0
    monthly_income: float = 0.0
    monthly_expense: float = 0.0
    monthly_balance: float = 0.0
    top_categories: list[ChartItem] = Field(default_factory=list)
    top_categories_all_time: list[ChartItem] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    budget_status: list[BudgetStatus] = Field(default_factory=list)
    wallet_total: float = 0.0
    bank_total: float = 0.0
    bank_accounts: list[BankAccountSummary] = Field(default_factory=list)
    credit_cards: list[CreditCardSummary] = Field(default_factory=list)
    total_credit_limit: float = 0.0
    total_credit_debt: float = 0.0
    total_credit_available: float = 0.0
    payment_methods: list[ChartItem] = Field(default_factory=list)
    payment_methods_all_time: list[ChartItem] = Field(default_factory=list)


# --- AI replies ---

class ParsedTransaction(BaseModel):
    """Validated income/expense parsed from free text"""
    type: Literal["income", "expense"]
    amount: float = Field(gt=0)
    description: str = ""
    category_id: str
    account_id: Optional[str] = None
    vendor: Optional[str] = None
    summary: Optional[str] = None


class ParsedTransfer(BaseModel):
    """Validated transfer parsed from free text"""
    type: Literal["transfer"] = "transfer"
    amount: float = Field(gt=0)
    description: str = ""
    from_account_id: str
    to_account_id: str
    summary: Optional[str] = None


class CategorySuggestion(BaseModel):
    category: str = "Other"
    confidence: float = 0.5
    suggestions: list[str] = Field(default_factory=list)


class SpendingAnalysis(BaseModel):
    analysis: str = "Analysis unavailable"
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class BudgetRecommendation(BaseModel):
    recommendations: list[str] = Field(default_factory=list)
    categories: dict[str, float] = Field(default_factory=dict)  # Category -> percent of income


class FinancialGoals(BaseModel):
    short_term: list[str] = Field(default_factory=list, alias="shortTerm")
    medium_term: list[str] = Field(default_factory=list, alias="mediumTerm")
    long_term: list[str] = Field(default_factory=list, alias="longTerm")

    model_config = {"populate_by_name": True}


# --- Login assistant ---

class AssistanceResponse(BaseModel):
    success: bool
    message: str
    suggestions: list[str] = Field(default_factory=list)


class PasswordStrength(BaseModel):
    score: int
    feedback: list[str] = Field(default_factory=list)
    is_strong: bool


class EmailValidation(BaseModel):
    is_valid: bool
    suggestions: list[str] = Field(default_factory=list)
