"""
LLM-backed helpers
Natural-language transaction entry plus categorisation, analysis and
budgeting suggestions. Parsing validates every id the model returns
against the user's own categories and accounts.
"""
import json
import logging
import re
from typing import Optional, Union

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI
from pydantic import ValidationError

from config import get_settings
from models.schemas import (
    Account,
    BudgetRecommendation,
    Category,
    CategorySuggestion,
    FinancialGoals,
    ParsedTransaction,
    ParsedTransfer,
    SpendingAnalysis,
    Transaction,
)
from tools.errors import AIParseError, AIServiceError

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*\n?")

TRANSFER_KEYWORDS = [
    "transfer",
    "withdrew",
    "atm",
    "credit card payment",
    "sent",
    "çektim",
    "gönderdim",
    "kredi kartı ödemesi",
]

ANALYSIS_WINDOW = 10
GOALS_WINDOW = 5


def clean_response(text: str) -> str:
    """Strip markdown code fences around a JSON reply"""
    if "```" in text:
        return FENCE_RE.sub("", text).replace("```", "").strip()
    return text.strip()


def is_transfer_text(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in TRANSFER_KEYWORDS)


def _require_str_id(field: str, value) -> None:
    if not isinstance(value, str):
        raise AIParseError(f"{field} must be a string id, got {type(value).__name__}")


def _format_categories(categories: list[Category]) -> str:
    if not categories:
        return ""
    lines = [f"- {c.name} (ID: {c.id}, Type: {c.type.value})" for c in categories]
    return "\nAvailable categories:\n" + "\n".join(lines)


def _format_accounts(accounts: list[Account]) -> str:
    if not accounts:
        return ""
    lines = [f"- {a.name} (ID: {a.id}, Type: {a.type.value})" for a in accounts]
    return "\nAvailable accounts:\n" + "\n".join(lines)


INCOME_EXPENSE_PROMPT = """Convert this natural-language statement into INCOME or EXPENSE transaction data:
"{text}"

Rules:
- Extract the amount as a number (drop units such as TL, lira, dollar, $, USD)
- Decide whether it is income or expense
- Income keywords: salary, income, received, earned, bonus, side income, rent income, maaş, gelir, aldım, kazandım
- Expense keywords: shopping, spending, payment, bill, market, restaurant, food, transport, fuel, health, education, clothing, fun
- Pick the category from the list below and return its ID
- Use only income categories for income and only expense categories for expenses
- Prefer subcategories; use a main category only when no subcategory fits
- Pick the account from the list below and return its ID
- Keep the description short and clear
- Extract the vendor (Migros, A101, BIM, Carrefour and so on)
- Add a short summary of what was bought and where
{categories}
{accounts}

IMPORTANT: Always answer with IDs, never names.

Reply with JSON only:
{{
  "type": "income|expense",
  "amount": 123.45,
  "description": "Description",
  "category_id": "category_id_here",
  "account_id": "account_id_here",
  "vendor": "Vendor name",
  "summary": "Purchase summary"
}}"""


TRANSFER_PROMPT = """Convert this natural-language statement into TRANSFER transaction data:
"{text}"

Examples:
- "I withdrew 8000 lira from my bank" -> transfer (bank -> cash)
- "Withdrew money at the ATM" -> transfer (bank -> cash)
- "Made a credit card payment" -> transfer (bank -> credit card)
- "Transfer between accounts" -> transfer (account1 -> account2)

Rules:
- Extract the amount as a number (drop units such as TL, lira, dollar, $, USD)
- The type is always "transfer"
- Identify the source account (from_account_id) and the destination account (to_account_id)
- Keep the description short and add a summary
{accounts}

IMPORTANT: Always answer with IDs, never names.

Reply with JSON only:
{{
  "type": "transfer",
  "amount": 123.45,
  "description": "Transfer description",
  "from_account_id": "source_account_id",
  "to_account_id": "destination_account_id",
  "summary": "Transfer summary"
}}"""


class AIService:
    """Thin wrapper around a chat model that speaks JSON"""

    def __init__(self, llm: Optional[BaseChatModel] = None):
        if llm is None:
            settings = get_settings()
            llm = ChatOpenAI(
                model=settings.llm_model,
                temperature=settings.llm_temperature,
                timeout=settings.http_timeout,
                api_key=settings.openai_api_key
            )
        self.llm = llm

    def _call(self, prompt: str) -> str:
        try:
            response = self.llm.invoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.error("LLM request failed: %s", e)
            raise AIServiceError(f"LLM request failed: {e}") from e

        content = response.content if isinstance(response.content, str) else str(response.content)
        if not content.strip():
            raise AIServiceError("LLM returned an empty reply")
        return content

    def _call_json(self, prompt: str):
        text = clean_response(self._call(prompt))
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise AIParseError(f"LLM reply is not valid JSON: {e}") from e

    # --- natural-language entry ---

    def parse_income_expense(
        self,
        text: str,
        categories: list[Category],
        accounts: list[Account]
    ) -> ParsedTransaction:
        """Parse an income or expense sentence into a validated transaction"""
        prompt = INCOME_EXPENSE_PROMPT.format(
            text=text,
            categories=_format_categories(categories),
            accounts=_format_accounts(accounts)
        )
        data = self._call_json(prompt)
        if not isinstance(data, dict):
            raise AIParseError("LLM reply is not a JSON object")

        category_id = data.get("category_id")
        if not category_id:
            raise AIParseError("No category id in the parsed transaction")
        _require_str_id("category_id", category_id)
        if category_id not in {c.id for c in categories}:
            raise AIParseError(f"Unknown category id: {category_id}")

        account_id = data.get("account_id")
        if account_id:
            _require_str_id("account_id", account_id)
        if account_id and account_id not in {a.id for a in accounts}:
            logger.warning("Dropping unknown account id %s from parsed transaction", account_id)
            data["account_id"] = None
        elif not account_id:
            data["account_id"] = None

        try:
            return ParsedTransaction.model_validate(data)
        except ValidationError as e:
            raise AIParseError(f"Parsed transaction is invalid: {e}") from e

    def parse_transfer(self, text: str, accounts: list[Account]) -> ParsedTransfer:
        """Parse a transfer sentence; both accounts must be known and distinct"""
        data = self._call_json(TRANSFER_PROMPT.format(text=text, accounts=_format_accounts(accounts)))
        if not isinstance(data, dict):
            raise AIParseError("LLM reply is not a JSON object")

        from_id = data.get("from_account_id")
        to_id = data.get("to_account_id")
        if not from_id or not to_id:
            raise AIParseError("Transfer is missing its source or destination account")
        _require_str_id("from_account_id", from_id)
        _require_str_id("to_account_id", to_id)

        known = {a.id for a in accounts}
        for account_id in (from_id, to_id):
            if account_id not in known:
                raise AIParseError(f"Unknown account id: {account_id}")
        if from_id == to_id:
            raise AIParseError("Cannot transfer from an account to itself")

        try:
            return ParsedTransfer.model_validate({**data, "type": "transfer"})
        except ValidationError as e:
            raise AIParseError(f"Parsed transfer is invalid: {e}") from e

    def parse_natural_language(
        self,
        text: str,
        categories: list[Category],
        accounts: list[Account]
    ) -> Union[ParsedTransaction, ParsedTransfer]:
        if is_transfer_text(text):
            return self.parse_transfer(text, accounts)
        return self.parse_income_expense(text, categories, accounts)

    # --- suggestions (never raise) ---

    def categorize_transaction(self, description: str, amount: float, tx_type: str) -> CategorySuggestion:
        prompt = f"""Suggest the best category for this transaction:

Transaction: {description}
Amount: {amount}
Type: {tx_type}

Income categories: Salary, Side Income, Investment, Rental Income, Other
Expense categories: Groceries, Transport, Bills, Health, Entertainment, Education, Clothing, Home, Other

Reply with JSON only:
{{"category": "category_name", "confidence": 0.95, "suggestions": ["suggestion1", "suggestion2", "suggestion3"]}}"""
        try:
            return CategorySuggestion.model_validate(self._call_json(prompt))
        except (AIServiceError, ValueError) as e:
            logger.warning("Categorisation failed: %s", e)
            return CategorySuggestion()

    def get_description_suggestions(self, partial: str, tx_type: str) -> list[str]:
        hint = "Use account names for transfers." if tx_type == "transfer" else ""
        prompt = f"""The user is typing this description: "{partial}"
Transaction type: {tx_type}

Give 3 different short completions. {hint}
Reply with a JSON array only: ["suggestion1", "suggestion2", "suggestion3"]"""
        try:
            data = self._call_json(prompt)
        except (AIServiceError, ValueError) as e:
            logger.warning("Description suggestions failed: %s", e)
            return []
        if not isinstance(data, list):
            return []
        return [str(item) for item in data]

    def analyze_spending(self, transactions: list[Transaction]) -> SpendingAnalysis:
        """Comment on the most recent transactions"""
        lines = "\n".join(
            f"{t.description or '-'}: {t.amount} ({t.type.value})"
            for t in transactions[:ANALYSIS_WINDOW]
        )
        prompt = f"""Analyse my recent transactions and give advice:

{lines}

Reply with JSON only:
{{"analysis": "Overall spending analysis", "insights": ["insight1", "insight2", "insight3"], "recommendations": ["recommendation1", "recommendation2", "recommendation3"]}}"""
        try:
            return SpendingAnalysis.model_validate(self._call_json(prompt))
        except (AIServiceError, ValueError) as e:
            logger.warning("Spending analysis failed: %s", e)
            return SpendingAnalysis()

    def get_budget_recommendations(self, income: float, expenses: dict[str, float]) -> BudgetRecommendation:
        """Ideal split of income across categories, in percent"""
        lines = "\n".join(f"{name}: {amount}" for name, amount in expenses.items())
        prompt = f"""Income: {income}
Expenses:
{lines}

Recommend a budget and an ideal spending split per category in percent.

Reply with JSON only:
{{"recommendations": ["recommendation1", "recommendation2", "recommendation3"], "categories": {{"Groceries": 30, "Transport": 15, "Bills": 20, "Entertainment": 10, "Other": 25}}}}"""
        try:
            return BudgetRecommendation.model_validate(self._call_json(prompt))
        except (AIServiceError, ValueError) as e:
            logger.warning("Budget recommendations failed: %s", e)
            return BudgetRecommendation()

    def suggest_financial_goals(self, transactions: list[Transaction], age: int, income: float) -> FinancialGoals:
        lines = "\n".join(f"{t.description or '-'}: {t.amount}" for t in transactions[:GOALS_WINDOW])
        prompt = f"""User profile:
Age: {age}
Monthly income: {income}

Recent transactions:
{lines}

Suggest financial goals for this profile.

Reply with JSON only:
{{"shortTerm": ["goal1", "goal2"], "mediumTerm": ["goal1", "goal2"], "longTerm": ["goal1", "goal2"]}}"""
        try:
            return FinancialGoals.model_validate(self._call_json(prompt))
        except (AIServiceError, ValueError) as e:
            logger.warning("Financial goal suggestions failed: %s", e)
            return FinancialGoals()
