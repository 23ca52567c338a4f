"""
Account CRUD against spendme_accounts
"""
import logging
from typing import Optional

from models.schemas import Account, AccountType, normalize_account_type
from tools.backend import BackendClient, eq
from tools.errors import NotFoundError

logger = logging.getLogger(__name__)

TABLE = "spendme_accounts"


class AccountService:
    """Accounts (cash, bank, credit card...) for one backend session"""

    def __init__(self, client: BackendClient):
        self.client = client

    def get_accounts(self, user_id: str) -> list[Account]:
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id)],
            order="created_at",
            ascending=False
        )
        return [Account.model_validate(r) for r in rows]

    def get_account(self, account_id: str) -> Optional[Account]:
        try:
            row = self.client.select(TABLE, filters=[eq("id", account_id)], single=True)
        except NotFoundError:
            return None
        return Account.model_validate(row)

    def get_accounts_by_type(self, user_id: str, account_type: AccountType | str) -> list[Account]:
        account_type = normalize_account_type(account_type)
        rows = self.client.select(
            TABLE,
            filters=[eq("user_id", user_id), eq("type", account_type.value)],
            order="created_at",
            ascending=False
        )
        return [Account.model_validate(r) for r in rows]

    def create_account(self, account: Account) -> Account:
        payload = account.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
        rows = self.client.insert(TABLE, payload)
        logger.info("Created account %r for user %s", account.name, account.user_id)
        return Account.model_validate(rows[0])

    def update_account(self, account_id: str, updates: dict) -> Account:
        if "type" in updates:
            updates = {**updates, "type": normalize_account_type(updates["type"]).value}
        rows = self.client.update(TABLE, updates, [eq("id", account_id)])
        if not rows:
            raise NotFoundError(f"Account {account_id} not found")
        return Account.model_validate(rows[0])

    def delete_account(self, account_id: str) -> None:
        self.client.delete(TABLE, [eq("id", account_id)])
        logger.info("Deleted account %s", account_id)
