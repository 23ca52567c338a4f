"""SpendMe Data Models"""
from models.schemas import (
    Account,
    AccountType,
    AuthUser,
    Budget,
    BudgetStatus,
    Category,
    CategoryNode,
    CategoryType,
    DashboardStats,
    ParsedTransaction,
    ParsedTransfer,
    Transaction,
    TransactionFilters,
    TransactionType,
    UserProfile,
)

__all__ = [
    "Account",
    "AccountType",
    "AuthUser",
    "Budget",
    "BudgetStatus",
    "Category",
    "CategoryNode",
    "CategoryType",
    "DashboardStats",
    "ParsedTransaction",
    "ParsedTransfer",
    "Transaction",
    "TransactionFilters",
    "TransactionType",
    "UserProfile",
]
