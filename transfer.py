import structlog

from accounts import Account
from exceptions import InvalidArgumentError, LogicError
from models import TransactionRecord

logger = structlog.get_logger()

MIN_TRANSFER_SUM = 100
DEFAULT_FEE = 1


class Transfer:
    """
    Moves funds between two accounts and charges a fee to the source.

    The destination is credited first. If the source then cannot cover
    ``sum + fee`` the credit is compensated by a reversing entry on the
    destination, so its history keeps a trace of the attempt.
    """

    def __init__(self, fee: int = DEFAULT_FEE):
        self._validate_fee(fee)
        self._fee = fee

    def fee(self) -> int:
        return self._fee

    def set_fee(self, value: int) -> None:
        self._validate_fee(value)
        logger.info("Transfer fee updated", old_fee=self._fee, new_fee=value)
        self._fee = value

    def make(self, from_account: Account, to_account: Account, sum: int) -> bool:
        """Transfer ``sum`` from ``from_account`` to ``to_account``.

        Returns False when the fee is too high or the source has
        insufficient funds. Raises for self transfers and bad sums.
        """
        if from_account.id == to_account.id:
            logger.warning("Transfer rejected: same account", account_id=from_account.id)
            raise LogicError("cannot transfer to self")

        if sum < 0:
            logger.warning("Transfer rejected: negative sum", sum=sum)
            raise InvalidArgumentError(f"transfer sum must be non-negative, got {sum}")

        if sum < MIN_TRANSFER_SUM:
            logger.warning("Transfer rejected: sum below minimum", sum=sum)
            raise LogicError(f"sum below minimum transfer amount of {MIN_TRANSFER_SUM}")

        if self._fee * 2 >= sum:
            logger.info("Transfer declined: fee too high", sum=sum, fee=self._fee)
            return False

        # Source before destination
        from_account.lock()
        try:
            to_account.lock()
        except Exception:
            from_account.unlock()
            raise

        try:
            return self._move(from_account, to_account, sum)
        finally:
            to_account.unlock()
            from_account.unlock()

    def _move(self, from_account: Account, to_account: Account, sum: int) -> bool:
        to_account.add_transaction(
            TransactionRecord(amount=sum, description=f"Transfer from account {from_account.id}")
        )
        to_balance = to_account.get_balance()

        debit = sum + self._fee
        if from_account.get_balance() < debit:
            self._reverse_credit(from_account, to_account, sum)
            logger.info(
                "Transfer declined: insufficient funds",
                from_account_id=from_account.id,
                to_account_id=to_account.id,
                sum=sum,
                fee=self._fee,
                available=from_account.get_balance()
            )
            return False

        try:
            from_account.add_transaction(
                TransactionRecord(amount=-debit, description=f"Transfer to account {to_account.id}")
            )
        except Exception:
            logger.error(
                "Transfer debit failed, reversing credit",
                from_account_id=from_account.id,
                to_account_id=to_account.id,
                sum=sum,
                exc_info=True
            )
            self._reverse_credit(from_account, to_account, sum)
            raise

        logger.info(
            "Transfer completed",
            from_account_id=from_account.id,
            to_account_id=to_account.id,
            sum=sum,
            fee=self._fee,
            from_balance=from_account.get_balance(),
            to_balance=to_balance
        )
        return True

    @staticmethod
    def _reverse_credit(from_account: Account, to_account: Account, sum: int) -> None:
        to_account.add_transaction(
            TransactionRecord(amount=-sum, description=f"Rollback of transfer from account {from_account.id}")
        )

    @staticmethod
    def _validate_fee(value: int) -> None:
        if value < 0:
            raise InvalidArgumentError(f"fee must be non-negative, got {value}")
