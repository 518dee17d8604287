from enum import Enum
from typing import List, Tuple
import structlog

from exceptions import InvalidStateError
from models import TransactionRecord

logger = structlog.get_logger()


class LockState(str, Enum):
    unlocked = "unlocked"
    locked = "locked"


class Account:
    """
    Ledger account: integer balance, lock flag and append-only history.

    The lock flag is a cooperative marker. It does not gate balance changes,
    it only rejects redundant lock/unlock calls. Real mutual exclusion lives
    in the repository (see ``InMemoryAccountRepository.get_lock``).
    """

    def __init__(self, account_id: int, balance: int = 0):
        self._id = account_id
        self._balance = balance
        self._lock_state = LockState.unlocked
        self._history: List[TransactionRecord] = []

    def __repr__(self) -> str:
        return f"Account(id={self._id}, balance={self._balance}, state={self._lock_state.value})"

    @property
    def id(self) -> int:
        return self._id

    @property
    def lock_state(self) -> LockState:
        return self._lock_state

    @property
    def is_locked(self) -> bool:
        return self._lock_state is LockState.locked

    def get_balance(self) -> int:
        return self._balance

    def change_balance(self, diff: int) -> None:
        """Apply ``diff`` directly, without touching the history."""
        self._balance += diff

    def add_transaction(self, record: TransactionRecord) -> None:
        """Append ``record`` to the history and apply its amount."""
        # Callers hold the lock; not checked here
        self._history.append(record)
        self._balance += record.amount

    def lock(self) -> None:
        if self._lock_state is LockState.locked:
            raise InvalidStateError(f"Account {self._id} is already locked")
        self._lock_state = LockState.locked
        logger.debug("Account locked", account_id=self._id)

    def unlock(self) -> None:
        if self._lock_state is LockState.unlocked:
            raise InvalidStateError(f"Account {self._id} is not locked")
        self._lock_state = LockState.unlocked
        logger.debug("Account unlocked", account_id=self._id)

    def get_transaction_history(self) -> Tuple[TransactionRecord, ...]:
        return tuple(self._history)
