"""
SpendMe Tools
"""
from tools.backend import BackendClient
from tools.errors import AIParseError, AIServiceError, AuthError, BackendError, BackendTimeout, NotFoundError
from tools.account_service import AccountService
from tools.category_service import CategoryService
from tools.transaction_service import TransactionService
from tools.budget_service import BudgetService
from tools.dashboard import compute_dashboard, fetch_dashboard
from tools.auth import AuthSession, sign_in, sign_out, sign_up
from tools.ai_service import AIService

__all__ = [
    # Backend
    "BackendClient",
    # Errors
    "AIParseError",
    "AIServiceError",
    "AuthError",
    "BackendError",
    "BackendTimeout",
    "NotFoundError",
    # Services
    "AccountService",
    "CategoryService",
    "TransactionService",
    "BudgetService",
    # Dashboard
    "compute_dashboard",
    "fetch_dashboard",
    # Auth
    "AuthSession",
    "sign_in",
    "sign_out",
    "sign_up",
    # AI
    "AIService",
]
