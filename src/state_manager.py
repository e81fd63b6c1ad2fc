import threading
from typing import Dict, Optional

from models import Transaction, ClientAccount


class StateManager:
    """
    Account store keyed by client id, with per-client locking.
    Each account carries its own transaction history for dispute lookups.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

        # Global lock protects creation of new entries in _accounts and _client_locks dicts.
        # Without it, two workers could create duplicate locks for the same client.
        self._global_lock = threading.Lock()
        self._client_locks: Dict[int, threading.Lock] = {}

    def get_client_lock(self, client_id: int) -> threading.Lock:
        """
        Get or create a lock for a specific client.
        Consumer acquires this before processing any transaction for that client.
        """
        with self._global_lock:
            if client_id not in self._client_locks:
                self._client_locks[client_id] = threading.Lock()
            return self._client_locks[client_id]

    def get_account(self, client_id: int, require_unlocked: bool = True) -> Optional[ClientAccount]:
        """
        Look up an account by client id.
        With require_unlocked, a locked account is reported as missing.
        """
        account = self._accounts.get(client_id)
        if account is None or (require_unlocked and account.locked):
            return None
        return account

    def has_account(self, client_id: int) -> bool:
        return client_id in self._accounts

    def open_account(self, transaction: Transaction) -> ClientAccount:
        """Create the account funded by a first deposit."""
        with self._global_lock:
            if transaction.client_id in self._accounts:
                raise ValueError(f"Client {transaction.client_id} already has an account")
            account = ClientAccount(client_id=transaction.client_id, available=transaction.amount)
            account.record(transaction)
            self._accounts[transaction.client_id] = account
            return account

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)
