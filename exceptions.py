class LedgerError(Exception):
    """Base class for every ledger error."""


class InvalidArgumentError(LedgerError, ValueError):
    """Raised when an argument is outside its domain (negative sum or fee)."""


class LogicError(LedgerError):
    """Raised when a transfer request is well-formed but not allowed."""


class InvalidStateError(LedgerError):
    """Raised when an account is locked twice or unlocked while unlocked."""


class AccountNotFoundError(LedgerError):
    """Raised when an account id is missing from the repository."""

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} does not exist")
        self.account_id = account_id


class DuplicateAccountError(LedgerError):
    """Raised when an account is opened with an id that is already taken."""

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} already exists")
        self.account_id = account_id
