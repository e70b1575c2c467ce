from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import asyncio
from collections import defaultdict
from models import Account, Event, EventKind


class TransactionLogRepository(ABC):
    @abstractmethod
    def record(self, event: Event) -> None:
        """Record an event that was successfully applied."""
        pass

    @abstractmethod
    def get_entries(self, tx_id: int) -> List[Event]:
        """Get accepted events for a transaction id. Empty if none."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accepted events."""
        pass

    def has_transaction(self, tx_id: int) -> bool:
        return bool(self.get_entries(tx_id))

    def initial_transaction(self, tx_id: int) -> Optional[Event]:
        """Get the first accepted deposit or withdrawal for a transaction id."""
        for entry in self.get_entries(tx_id):
            if entry.kind.carries_amount:
                return entry
        return None

    def is_charged_back(self, tx_id: int) -> bool:
        return any(e.kind == EventKind.chargeback for e in self.get_entries(tx_id))

    def is_resolved(self, tx_id: int) -> bool:
        return any(e.kind == EventKind.resolve for e in self.get_entries(tx_id))

    def is_under_dispute(self, tx_id: int) -> bool:
        """More disputes than resolves, and never charged back."""
        entries = self.get_entries(tx_id)
        disputes = sum(1 for e in entries if e.kind == EventKind.dispute)
        resolves = sum(1 for e in entries if e.kind == EventKind.resolve)
        return disputes > resolves and not self.is_charged_back(tx_id)


class AccountRepository(ABC):
    @abstractmethod
    async def add_account(self, account: Account) -> None:
        """Store a finalized account."""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """Get all stored accounts, in no particular order."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryTransactionLogRepository(TransactionLogRepository):
    def __init__(self):
        self.entries: Dict[int, List[Event]] = defaultdict(list)
        self._count = 0

    def record(self, event: Event) -> None:
        self.entries[event.tx_id].append(event)
        self._count += 1

    def get_entries(self, tx_id: int) -> List[Event]:
        return self.entries.get(tx_id, [])

    def count(self) -> int:
        return self._count


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}
        self.lock = asyncio.Lock()

    async def add_account(self, account: Account) -> None:
        async with self.lock:
            if account.client_id in self.accounts:
                raise ValueError(f"Account {account.client_id} was already collected")
            self.accounts[account.client_id] = account

    async def list_accounts(self) -> List[Account]:
        async with self.lock:
            return list(self.accounts.values())

    async def get_accounts_count(self) -> int:
        return len(self.accounts)

    def clear(self) -> None:
        """Drop all collected accounts (for testing)."""
        self.accounts.clear()
