"""
Category CRUD against spendme_categories
Main categories have no parent; subcategories point at one
"""
import json
import logging
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Literal, Optional

from models.schemas import Category, CategoryNode, CategoryStat, CategoryType
from tools.backend import BackendClient, eq, gte, is_, not_null
from tools.dates import period_start
from tools.errors import NotFoundError

logger = logging.getLogger(__name__)

TABLE = "spendme_categories"
DEFAULTS_PATH = Path(__file__).parent.parent / "data" / "default_categories.json"


def load_default_categories() -> dict:
    """Default category tree keyed by category type"""
    with open(DEFAULTS_PATH, encoding="utf-8") as f:
        return json.load(f)


def build_category_tree(categories: list[Category]) -> list[CategoryNode]:
    """Attach subcategories to their main category, sorted by name"""
    children: dict[str, list[Category]] = defaultdict(list)
    for cat in categories:
        if cat.parent_id:
            children[cat.parent_id].append(cat)

    return [
        CategoryNode(
            category=cat,
            subcategories=sorted(children.get(cat.id, []), key=lambda c: c.name)
        )
        for cat in sorted(categories, key=lambda c: c.name)
        if not cat.parent_id
    ]


class CategoryService:
    """Income and expense categories for one backend session"""

    def __init__(self, client: BackendClient):
        self.client = client

    def _query(self, filters) -> list[Category]:
        rows = self.client.select(TABLE, filters=filters, order="name")
        return [Category.model_validate(r) for r in rows]

    def get_categories(self, user_id: str) -> list[Category]:
        return self._query([eq("user_id", user_id)])

    def get_categories_by_type(self, user_id: str, category_type: CategoryType | str) -> list[Category]:
        category_type = CategoryType(category_type)
        return self._query([eq("user_id", user_id), eq("type", category_type.value)])

    def get_main_categories(self, user_id: str) -> list[Category]:
        return self._query([eq("user_id", user_id), is_("parent_id", None)])

    def get_subcategories(self, user_id: str, parent_id: str) -> list[Category]:
        return self._query([eq("user_id", user_id), eq("parent_id", parent_id)])

    def get_category_tree(self, user_id: str) -> list[CategoryNode]:
        return build_category_tree(self.get_categories(user_id))

    def get_category(self, category_id: str) -> Optional[Category]:
        try:
            row = self.client.select(TABLE, filters=[eq("id", category_id)], single=True)
        except NotFoundError:
            return None
        return Category.model_validate(row)

    def create_category(self, category: Category) -> Category:
        payload = category.model_dump(mode="json", exclude={"id"})
        payload["is_main"] = category.parent_id is None
        rows = self.client.insert(TABLE, payload)
        return Category.model_validate(rows[0])

    def update_category(self, category_id: str, updates: dict) -> Category:
        if "parent_id" in updates:
            updates = {**updates, "is_main": updates["parent_id"] is None}
        rows = self.client.update(TABLE, updates, [eq("id", category_id)])
        if not rows:
            raise NotFoundError(f"Category {category_id} not found")
        return Category.model_validate(rows[0])

    def delete_category(self, category_id: str) -> None:
        """Delete a category together with its subcategories"""
        self.client.delete(TABLE, [eq("parent_id", category_id)])
        self.client.delete(TABLE, [eq("id", category_id)])
        logger.info("Deleted category %s and its subcategories", category_id)

    def initialize_default_categories(self, user_id: str) -> list[Category]:
        """Insert the default main categories, then their subcategories"""
        defaults = load_default_categories()

        main_rows = []
        sub_specs: dict[tuple[str, str], list[dict]] = {}
        for category_type, entries in defaults.items():
            for entry in entries:
                main_rows.append({
                    "name": entry["name"],
                    "icon": entry.get("icon"),
                    "type": category_type,
                    "is_main": True,
                    "parent_id": None,
                    "user_id": user_id,
                })
                sub_specs[(entry["name"], category_type)] = entry.get("subcategories", [])

        created = [Category.model_validate(r) for r in self.client.insert(TABLE, main_rows)]

        sub_rows = []
        for main in created:
            for sub in sub_specs.get((main.name, main.type.value), []):
                sub_rows.append({
                    "name": sub["name"],
                    "icon": sub.get("icon"),
                    "type": main.type.value,
                    "is_main": False,
                    "parent_id": main.id,
                    "user_id": user_id,
                })

        if sub_rows:
            created += [Category.model_validate(r) for r in self.client.insert(TABLE, sub_rows)]

        logger.info("Initialized %d default categories for user %s", len(created), user_id)
        return created

    def get_category_stats(
        self,
        user_id: str,
        period: Literal["month", "year"] = "month",
        today: Optional[date] = None
    ) -> list[CategoryStat]:
        """Totals per category since the start of the month or year, largest first"""
        start = period_start(today or date.today(), period)
        rows = self.client.select(
            "spendme_transactions",
            columns="amount,category_id,spendme_categories(name,icon)",
            filters=[eq("user_id", user_id), gte("date", start), not_null("category_id")]
        )

        stats: dict[str, CategoryStat] = {}
        for row in rows:
            cat_id = row["category_id"]
            joined = row.get("spendme_categories") or {}
            stat = stats.get(cat_id)
            if stat is None:
                stat = stats[cat_id] = CategoryStat(
                    category_id=cat_id,
                    name=joined.get("name") or "Unknown",
                    icon=joined.get("icon")
                )
            stat.total += row.get("amount") or 0
            stat.count += 1

        return sorted(stats.values(), key=lambda s: s.total, reverse=True)
