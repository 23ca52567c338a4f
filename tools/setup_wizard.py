"""
First-run setup
New users pick categories and accounts from a catalog of popular ones,
add their own, or copy another user's setup before anything is saved
"""
import logging
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from models.schemas import Account, Category
from tools.account_service import TABLE as ACCOUNTS_TABLE
from tools.auth import create_default_profile
from tools.backend import BackendClient, eq, in_, is_
from tools.category_service import TABLE as CATEGORIES_TABLE

logger = logging.getLogger(__name__)


class PopularData(BaseModel):
    categories: list[Category] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)


class SetupChoice(BaseModel):
    """Everything the user selected in the wizard"""
    wants_subcategories: Optional[bool] = None
    categories: list[Category] = Field(default_factory=list)
    subcategories: list[Category] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)


class SetupResult(BaseModel):
    categories: list[Category] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)


def _unique(items: list, key) -> list:
    seen = set()
    result = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        result.append(item)
    return result


def _category_key(cat: Category) -> tuple:
    return (cat.name, cat.type.value, cat.parent_id)


def _account_key(acc: Account) -> tuple:
    return (acc.name, acc.type.value)


def load_popular_data(client: BackendClient) -> PopularData:
    """Main categories and accounts across the catalog, one per (name, type)"""
    cat_rows = client.select(CATEGORIES_TABLE, filters=[is_("parent_id", None)], order="name")
    acc_rows = client.select(ACCOUNTS_TABLE, order="name")

    categories = _unique([Category.model_validate(r) for r in cat_rows], lambda c: (c.name, c.type.value))
    accounts = _unique([Account.model_validate(r) for r in acc_rows], _account_key)
    logger.info("Loaded %d popular categories and %d accounts", len(categories), len(accounts))
    return PopularData(categories=categories, accounts=accounts)


def load_subcategories(client: BackendClient, parent_ids: list[str]) -> list[Category]:
    if not parent_ids:
        return []
    rows = client.select(CATEGORIES_TABLE, filters=[in_("parent_id", parent_ids)], order="name")
    return [Category.model_validate(r) for r in rows]


def _existing(client: BackendClient, user_id: str) -> tuple[list[Category], list[Account]]:
    cats = client.select(CATEGORIES_TABLE, filters=[eq("user_id", user_id)])
    accs = client.select(ACCOUNTS_TABLE, filters=[eq("user_id", user_id)])
    return (
        [Category.model_validate(r) for r in cats],
        [Account.model_validate(r) for r in accs],
    )


def remap_categories(
    categories: list[Category],
    user_id: str,
    id_map: Optional[dict[str, str]] = None
) -> list[Category]:
    """
    Give every category a fresh id owned by `user_id`.

    Main categories are remapped first so subcategories can follow their
    parent's new id. A subcategory whose parent is neither in the list nor
    in `id_map` loses its parent.
    """
    id_map = dict(id_map or {})
    mains = [c for c in categories if not c.parent_id]
    subs = [c for c in categories if c.parent_id]

    copied = []
    for cat in mains:
        new_id = str(uuid.uuid4())
        if cat.id:
            id_map[cat.id] = new_id
        copied.append(cat.model_copy(update={
            "id": new_id, "user_id": user_id, "parent_id": None, "is_main": True
        }))

    for cat in subs:
        new_id = str(uuid.uuid4())
        parent_id = id_map.get(cat.parent_id)
        if parent_id is None:
            logger.warning("Parent %s of category %s was not copied", cat.parent_id, cat.name)
        if cat.id:
            id_map[cat.id] = new_id
        copied.append(cat.model_copy(update={
            "id": new_id, "user_id": user_id, "parent_id": parent_id, "is_main": parent_id is None
        }))

    return copied


def _reuse_existing_parents(
    categories: list[Category],
    existing: list[Category]
) -> tuple[dict[str, str], list[Category]]:
    """
    Map main categories the user already owns onto their existing ids.

    Returns the id map and the categories that still need copying.
    """
    existing_mains = {(c.name, c.type.value): c.id for c in existing if not c.parent_id}
    # Subcategories may already point at one of the user's own mains
    id_map: dict[str, str] = {c.id: c.id for c in existing if c.id and not c.parent_id}
    to_copy = []
    for cat in categories:
        if not cat.parent_id:
            existing_id = existing_mains.get((cat.name, cat.type.value))
            if existing_id and cat.id:
                id_map[cat.id] = existing_id
                continue
        to_copy.append(cat)
    return id_map, to_copy


def copy_from_user(
    client: BackendClient,
    source_user_id: str,
    target_user_id: str,
    with_subcategories: bool,
    selected_ids: Optional[list[str]] = None
) -> SetupResult:
    """
    Stage another user's categories and accounts for the target user.

    Nothing is written; the returned rows carry fresh ids and are meant to
    be added to the wizard's selection. Rows the target already has are
    skipped; subcategories of a main category the target already owns are
    attached to that existing category.
    """
    if with_subcategories:
        selected_ids = selected_ids or []
        if selected_ids:
            mains = client.select(
                CATEGORIES_TABLE,
                filters=[eq("user_id", source_user_id), in_("id", selected_ids)]
            )
            subs = client.select(
                CATEGORIES_TABLE,
                filters=[eq("user_id", source_user_id), in_("parent_id", selected_ids)]
            )
            source_categories = [Category.model_validate(r) for r in mains + subs]
        else:
            source_categories = []
    else:
        rows = client.select(
            CATEGORIES_TABLE,
            filters=[eq("user_id", source_user_id), is_("parent_id", None)]
        )
        source_categories = [Category.model_validate(r) for r in rows]

    acc_rows = client.select(ACCOUNTS_TABLE, filters=[eq("user_id", source_user_id)])
    source_accounts = [Account.model_validate(r) for r in acc_rows]

    existing_categories, existing_accounts = _existing(client, target_user_id)
    existing_cat_keys = {_category_key(c) for c in existing_categories}
    existing_acc_keys = {_account_key(a) for a in existing_accounts}

    id_map, to_copy = _reuse_existing_parents(source_categories, existing_categories)
    categories = [
        c for c in remap_categories(to_copy, target_user_id, id_map=id_map)
        if _category_key(c) not in existing_cat_keys
    ]
    accounts = [
        a.model_copy(update={"id": str(uuid.uuid4()), "user_id": target_user_id, "created_at": None})
        for a in source_accounts
        if _account_key(a) not in existing_acc_keys
    ]

    logger.info(
        "Staged %d categories and %d accounts from user %s",
        len(categories), len(accounts), source_user_id
    )
    return SetupResult(categories=categories, accounts=accounts)


def validate_choice(choice: SetupChoice) -> None:
    if choice.wants_subcategories is None:
        raise ValueError("Choose whether you want subcategories")
    if not choice.categories:
        raise ValueError("Select at least one category")
    if not choice.accounts:
        raise ValueError("Select at least one account")


def save_setup(client: BackendClient, user_id: str, choice: SetupChoice) -> SetupResult:
    """
    Persist the wizard selection for `user_id`.

    Selected categories keep their hierarchy under fresh ids. Categories
    matching an existing (name, type, parent) and accounts matching an
    existing (name, type) are not inserted again.
    """
    validate_choice(choice)

    selected = list(choice.categories)
    if choice.wants_subcategories:
        selected += choice.subcategories

    existing_categories, existing_accounts = _existing(client, user_id)
    existing_by_key = {_category_key(c): c.id for c in existing_categories}
    existing_acc_keys = {_account_key(a) for a in existing_accounts}

    id_map, to_copy = _reuse_existing_parents(selected, existing_categories)
    copied = remap_categories(to_copy, user_id, id_map=id_map)

    categories = _unique(
        [c for c in copied if _category_key(c) not in existing_by_key],
        _category_key
    )
    accounts = _unique(
        [a for a in choice.accounts if _account_key(a) not in existing_acc_keys],
        _account_key
    )

    created_categories: list[Category] = []
    if categories:
        rows = client.insert(CATEGORIES_TABLE, [
            {
                "id": c.id,
                "name": c.name,
                "icon": c.icon,
                "type": c.type.value,
                "is_main": c.parent_id is None,
                "parent_id": c.parent_id,
                "user_id": user_id,
            }
            for c in categories
        ])
        created_categories = [Category.model_validate(r) for r in rows]

    created_accounts: list[Account] = []
    if accounts:
        rows = client.insert(ACCOUNTS_TABLE, [
            {"name": a.name, "type": a.type.value, "icon": a.icon, "user_id": user_id}
            for a in accounts
        ])
        created_accounts = [Account.model_validate(r) for r in rows]

    create_default_profile(client, user_id)

    logger.info(
        "Setup saved for %s: %d categories, %d accounts",
        user_id, len(created_categories), len(created_accounts)
    )
    return SetupResult(categories=created_categories, accounts=created_accounts)
