"""
Budget CRUD against spendme_budgets
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel

from models.schemas import Budget, Category
from tools.backend import BackendClient, eq, in_
from tools.dates import month_key, previous_month_keys
from tools.errors import NotFoundError

logger = logging.getLogger(__name__)

TABLE = "spendme_budgets"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class BudgetWithCategory(BaseModel):
    budget: Budget
    category: Optional[Category] = None


def clean_budgets(budgets: list[Budget]) -> list[Budget]:
    """Keep only the most recently created budget for each category"""
    latest: dict[str, Budget] = {}
    for budget in budgets:
        if not budget.category_id:
            continue
        current = latest.get(budget.category_id)
        if current is None or _created(budget) > _created(current):
            latest[budget.category_id] = budget
    return list(latest.values())


def _created(budget: Budget) -> datetime:
    if budget.created_at is None:
        return _EPOCH
    if budget.created_at.tzinfo is None:
        return budget.created_at.replace(tzinfo=timezone.utc)
    return budget.created_at


class BudgetService:
    """Spending limits per category for one backend session"""

    def __init__(self, client: BackendClient):
        self.client = client

    def get_budgets(self, user_id: str) -> list[Budget]:
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id)],
            order="created_at",
            ascending=False
        )
        return [Budget.model_validate(r) for r in rows]

    def get_budget(self, budget_id: str) -> Optional[Budget]:
        try:
            row = self.client.select(TABLE, filters=[eq("id", budget_id)], single=True)
        except NotFoundError:
            return None
        return Budget.model_validate(row)

    def create_budget(self, budget: Budget) -> Budget:
        payload = budget.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
        rows = self.client.insert(TABLE, payload)
        return Budget.model_validate(rows[0])

    def update_budget(self, budget_id: str, updates: dict) -> Budget:
        if "period" in updates or "amount" in updates:
            # Reuse model validation for the changed fields
            Budget.model_validate({"user_id": "-", "amount": 0, **updates})
        rows = self.client.update(TABLE, updates, [eq("id", budget_id)])
        if not rows:
            raise NotFoundError(f"Budget {budget_id} not found")
        return Budget.model_validate(rows[0])

    def delete_budget(self, budget_id: str) -> None:
        self.client.delete(TABLE, [eq("id", budget_id)])

    def set_category_budget(
        self,
        user_id: str,
        category_id: str,
        period: str,
        amount: float
    ) -> Optional[Budget]:
        """
        Set the limit for one category and period.

        Updates the existing budget (newest first) or creates one; an amount
        of 0 removes it. Returns None when the budget was removed.
        """
        Budget(user_id=user_id, category_id=category_id, period=period, amount=amount)
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id), eq("category_id", category_id), eq("period", period)],
            order="created_at",
            ascending=False
        )
        existing = [Budget.model_validate(r) for r in rows]

        if amount == 0:
            for budget in existing:
                self.delete_budget(budget.id)
            return None

        if not existing:
            return self.create_budget(
                Budget(user_id=user_id, category_id=category_id, period=period, amount=amount)
            )

        # Older duplicates left by earlier inserts
        for stale in existing[1:]:
            self.delete_budget(stale.id)
        return self.update_budget(existing[0].id, {"amount": amount})

    def get_budgets_by_period(self, user_id: str, period: str) -> list[BudgetWithCategory]:
        """Budgets for one period with their categories joined client-side"""
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id), eq("period", period)],
            order="created_at",
            ascending=False
        )
        budgets = [Budget.model_validate(r) for r in rows]
        if not budgets:
            return []

        category_ids = list(dict.fromkeys(b.category_id for b in budgets if b.category_id))
        categories: dict[str, Category] = {}
        if category_ids:
            try:
                cat_rows = self.client.select(
                    "spendme_categories",
                    filters=[in_("id", category_ids)]
                )
                categories = {r["id"]: Category.model_validate(r) for r in cat_rows}
            except NotFoundError:
                logger.warning("Categories for period %s budgets not found", period)

        return [
            BudgetWithCategory(budget=b, category=categories.get(b.category_id))
            for b in budgets
        ]

    def get_current_month_budgets(self, user_id: str, today: Optional[date] = None) -> list[BudgetWithCategory]:
        return self.get_budgets_by_period(user_id, month_key(today or date.today()))

    def get_historical_data(self, user_id: str, months: int = 6, today: Optional[date] = None) -> list[Budget]:
        """Month-keyed budgets for the previous `months` months, newest first"""
        periods = previous_month_keys(today or date.today(), months)
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id), in_("period", periods)],
            order="period",
            ascending=False
        )
        return [Budget.model_validate(r) for r in rows]
