"""
Account Store Module

In-memory account and combo storage. Account updates are expressed as
"compute a new record from the old one" and applied under a per-account lock,
so concurrent failures against the same account never lose an update.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Optional

from sse_gateway.common.errors import NotFoundError
from sse_gateway.domain.account import Account
from sse_gateway.domain.combo import ComboDefinition
from sse_gateway.services.account_fallback import filter_available_accounts

logger = logging.getLogger(__name__)

AccountUpdate = Callable[[Account], Optional[Account]]


class InMemoryAccountStore:
    """
    Account Store

    Holds accounts in insertion order (which is also the rotation order) and combos by name.
    """

    def __init__(
        self,
        accounts: Optional[list[Account]] = None,
        combos: Optional[list[ComboDefinition]] = None,
    ):
        self._accounts: "OrderedDict[str, Account]" = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._combos: dict[str, ComboDefinition] = {}
        for account in accounts or []:
            self.add(account)
        for combo in combos or []:
            self._combos[combo.name] = combo

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryAccountStore":
        """
        Load accounts and combos from a JSON file:

            {"accounts": [{"id": ..., "provider": ..., "credentials": {...}}],
             "combos": [{"name": ..., "models": [...]}]}
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        accounts = [Account.model_validate(item) for item in data.get("accounts", [])]
        combos = [ComboDefinition.model_validate(item) for item in data.get("combos", [])]
        logger.info(
            "Loaded gateway data: path=%s accounts=%s combos=%s",
            path,
            len(accounts),
            len(combos),
        )
        return cls(accounts=accounts, combos=combos)

    def add(self, account: Account) -> None:
        self._accounts[account.id] = account
        self._locks.setdefault(account.id, asyncio.Lock())

    def get(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def list_accounts(self, provider: Optional[str] = None) -> list[Account]:
        return [
            account
            for account in self._accounts.values()
            if provider is None or account.provider == provider
        ]

    def available(
        self,
        provider: str,
        exclude_ids: Optional[set[str]] = None,
    ) -> list[Account]:
        """Usable accounts of a provider, excluding already-tried ids."""
        exclude_ids = exclude_ids or set()
        return [
            account
            for account in filter_available_accounts(self.list_accounts(provider))
            if account.id not in exclude_ids
        ]

    @property
    def combos(self) -> list[ComboDefinition]:
        return list(self._combos.values())

    async def update(self, account_id: str, fn: AccountUpdate) -> Account:
        """
        Atomically replace an account with fn(current).

        Raises:
            NotFoundError: If the account does not exist
        """
        lock = self._locks.get(account_id)
        if lock is None:
            raise NotFoundError(f"Account not found: {account_id}", code="account_not_found")
        async with lock:
            current = self._accounts[account_id]
            updated = fn(current)
            if updated is not None:
                self._accounts[account_id] = updated
            return self._accounts[account_id]
