from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import asyncio
from collections import defaultdict

from accounts import Account
from exceptions import DuplicateAccountError


class AccountRepository(ABC):
    @abstractmethod
    async def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by id. Returns None if account doesn't exist."""
        pass

    @abstractmethod
    async def add_account(self, account: Account) -> None:
        """Store a new account."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """Get all accounts ordered by id."""
        pass

    @abstractmethod
    def get_lock(self, account_id: int) -> asyncio.Lock:
        """Get the mutex guarding a specific account."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {
            1: Account(1, 1000),
            2: Account(2, 500),
            3: Account(3, 0)
        }
        self.locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_account(self, account_id: int) -> Optional[Account]:
        return self.accounts.get(account_id)

    async def add_account(self, account: Account) -> None:
        if account.id in self.accounts:
            raise DuplicateAccountError(account.id)
        self.accounts[account.id] = account

    async def get_accounts_count(self) -> int:
        return len(self.accounts)

    async def list_accounts(self) -> List[Account]:
        return [self.accounts[key] for key in sorted(self.accounts)]

    def get_lock(self, account_id: int) -> asyncio.Lock:
        return self.locks[account_id]


_account_repo = InMemoryAccountRepository()


def get_account_repository() -> AccountRepository:
    return _account_repo


def reset_repositories():
    """Reset all repositories to initial state (for testing only)."""
    global _account_repo
    _account_repo = InMemoryAccountRepository()
