from contextlib import AsyncExitStack
from typing import List, Optional, Tuple
import structlog

from accounts import Account
from config import get_settings
from exceptions import AccountNotFoundError
from models import TransactionRecord
from repositories import AccountRepository
from transfer import Transfer

# Configure structured logging
logger = structlog.get_logger()


class LedgerService:
    def __init__(self, account_repo: AccountRepository, transfer: Transfer):
        self.account_repo = account_repo
        self.transfer_operation = transfer

    async def open_account(self, account_id: int, balance: int = 0) -> Account:
        account = Account(account_id, balance)
        await self.account_repo.add_account(account)
        logger.info("Account opened", account_id=account_id, balance=balance)
        return account

    async def get_account(self, account_id: int) -> Account:
        account = await self.account_repo.get_account(account_id)
        if account is None:
            logger.warning("Account not found", account_id=account_id)
            raise AccountNotFoundError(account_id)
        return account

    async def list_accounts(self) -> List[Account]:
        return await self.account_repo.list_accounts()

    async def record_transaction(self, account_id: int, amount: int, description: str = "") -> Account:
        """Record a single balance change under the account mutex."""
        account = await self.get_account(account_id)

        async with self.account_repo.get_lock(account_id):
            account.lock()
            try:
                account.add_transaction(TransactionRecord(amount=amount, description=description))
            finally:
                account.unlock()

        logger.info(
            "Transaction recorded",
            account_id=account_id,
            amount=amount,
            new_balance=account.get_balance()
        )
        return account

    async def transfer(self, from_id: int, to_id: int, sum: int) -> Tuple[bool, Account, Account]:
        """Run a transfer holding both account mutexes.

        Mutexes are taken in ascending id order whatever the direction of
        the transfer, so opposite transfers on one pair cannot deadlock.
        """
        from_account = await self.get_account(from_id)
        to_account = await self.get_account(to_id)

        logger.info("Processing transfer", from_account_id=from_id, to_account_id=to_id, sum=sum)

        async with AsyncExitStack() as stack:
            for account_id in sorted({from_id, to_id}):
                await stack.enter_async_context(self.account_repo.get_lock(account_id))
            success = self.transfer_operation.make(from_account, to_account, sum)

        return success, from_account, to_account

    def get_fee(self) -> int:
        return self.transfer_operation.fee()

    def set_fee(self, value: int) -> int:
        self.transfer_operation.set_fee(value)
        return self.transfer_operation.fee()


_transfer: Optional[Transfer] = None


def get_transfer() -> Transfer:
    """Shared transfer operation, so fee updates outlive a single request."""
    global _transfer
    if _transfer is None:
        _transfer = Transfer(get_settings().default_transfer_fee)
    return _transfer


def reset_transfer() -> None:
    """Drop the shared transfer operation (for testing only)."""
    global _transfer
    _transfer = None


# Factory function for dependency injection
def get_ledger_service(
    account_repo: AccountRepository,
    transfer: Optional[Transfer] = None
) -> LedgerService:
    return LedgerService(account_repo, transfer or get_transfer())
