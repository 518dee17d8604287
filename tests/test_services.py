import pytest
import asyncio

from exceptions import AccountNotFoundError, DuplicateAccountError, InvalidArgumentError, LogicError
from repositories import InMemoryAccountRepository
from services import LedgerService, get_ledger_service, get_transfer, reset_transfer
from transfer import Transfer


@pytest.fixture
def repo():
    return InMemoryAccountRepository()


@pytest.fixture
def service(repo):
    return LedgerService(repo, Transfer())


class YieldingLock:
    """Account mutex that records acquisition and yields while held."""

    def __init__(self, account_id, acquired):
        self._account_id = account_id
        self._acquired = acquired
        self._lock = asyncio.Lock()

    def locked(self):
        return self._lock.locked()

    async def __aenter__(self):
        await self._lock.acquire()
        self._acquired.append(self._account_id)
        # Let other tasks run between the first and the second acquisition
        await asyncio.sleep(0)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._lock.release()


class YieldingLockRepository(InMemoryAccountRepository):
    def __init__(self):
        super().__init__()
        self.acquired = []
        self.yielding_locks = {}

    def get_lock(self, account_id):
        if account_id not in self.yielding_locks:
            self.yielding_locks[account_id] = YieldingLock(account_id, self.acquired)
        return self.yielding_locks[account_id]


@pytest.fixture
def yielding_repo():
    return YieldingLockRepository()


@pytest.fixture
def yielding_service(yielding_repo):
    return LedgerService(yielding_repo, Transfer())


class TestAccounts:
    """Test account management through the service."""

    @pytest.mark.asyncio
    async def test_seeded_accounts(self, service):
        assert (await service.get_account(1)).get_balance() == 1000
        assert (await service.get_account(2)).get_balance() == 500
        assert (await service.get_account(3)).get_balance() == 0

    @pytest.mark.asyncio
    async def test_open_account(self, service, repo):
        account = await service.open_account(42, 250)

        assert account.id == 42
        assert account.get_balance() == 250
        assert await repo.get_accounts_count() == 4

    @pytest.mark.asyncio
    async def test_list_accounts_ordered(self, service):
        await service.open_account(0, 5)

        accounts = await service.list_accounts()

        assert [a.id for a in accounts] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_open_duplicate_account(self, service):
        with pytest.raises(DuplicateAccountError):
            await service.open_account(1, 10)

    @pytest.mark.asyncio
    async def test_unknown_account(self, service):
        with pytest.raises(AccountNotFoundError):
            await service.get_account(999)

    @pytest.mark.asyncio
    async def test_record_transaction(self, service):
        account = await service.record_transaction(1, -250, "Cash withdrawal")

        assert account.get_balance() == 750
        assert not account.is_locked
        history = account.get_transaction_history()
        assert len(history) == 1
        assert history[0].description == "Cash withdrawal"


class TestTransfers:
    """Test transfers through the service."""

    @pytest.mark.asyncio
    async def test_transfer_success(self, service):
        success, source, destination = await service.transfer(1, 2, 500)

        assert success is True
        assert source.get_balance() == 499
        assert destination.get_balance() == 1000

    @pytest.mark.asyncio
    async def test_transfer_insufficient_funds(self, service):
        success, source, destination = await service.transfer(3, 1, 200)

        assert success is False
        assert source.get_balance() == 0
        assert destination.get_balance() == 1000

    @pytest.mark.asyncio
    async def test_transfer_to_self(self, service):
        with pytest.raises(LogicError):
            await service.transfer(1, 1, 500)

    @pytest.mark.asyncio
    async def test_transfer_negative_sum(self, service):
        with pytest.raises(InvalidArgumentError):
            await service.transfer(1, 2, -5)

    @pytest.mark.asyncio
    async def test_transfer_unknown_account(self, service):
        with pytest.raises(AccountNotFoundError):
            await service.transfer(1, 999, 500)

    @pytest.mark.asyncio
    async def test_mutexes_released(self, yielding_service, yielding_repo):
        await yielding_service.transfer(2, 1, 200)

        assert yielding_repo.acquired == [1, 2]
        assert not yielding_repo.get_lock(1).locked()
        assert not yielding_repo.get_lock(2).locked()

    @pytest.mark.asyncio
    async def test_fee_update(self, service):
        assert service.get_fee() == 1
        assert service.set_fee(10) == 10

        success, source, _ = await service.transfer(1, 2, 100)

        assert success is True
        assert source.get_balance() == 890


class TestConcurrency:
    """Test concurrent transfers between the same pair of accounts."""

    @pytest.mark.asyncio
    async def test_mutexes_taken_in_ascending_id_order(self, yielding_service, yielding_repo):
        await yielding_service.transfer(2, 1, 200)
        await yielding_service.transfer(1, 3, 200)

        assert yielding_repo.acquired == [1, 2, 1, 3]

    @pytest.mark.asyncio
    async def test_self_transfer_takes_one_mutex(self, yielding_service, yielding_repo):
        with pytest.raises(LogicError):
            await yielding_service.transfer(1, 1, 200)

        assert yielding_repo.acquired == [1]
        assert not yielding_repo.get_lock(1).locked()

    @pytest.mark.asyncio
    async def test_interleaved_opposite_transfers_complete(self, yielding_service, yielding_repo):
        tasks = []
        for i in range(6):
            if i % 2 == 0:
                tasks.append(yielding_service.transfer(1, 2, 100))
            else:
                tasks.append(yielding_service.transfer(2, 1, 100))

        # Each task yields while holding its first mutex, so locking in
        # transfer direction would deadlock here
        results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=5)

        assert all(success for success, _, _ in results)
        first = await yielding_service.get_account(1)
        second = await yielding_service.get_account(2)
        assert first.get_balance() + second.get_balance() == 1500 - 6
        assert not yielding_repo.get_lock(1).locked()
        assert not yielding_repo.get_lock(2).locked()


class TestFactory:
    """Test the shared transfer operation."""

    def test_shared_transfer_uses_default_fee(self):
        reset_transfer()

        assert get_transfer().fee() == 1
        assert get_transfer() is get_transfer()

    def test_services_share_fee(self, repo):
        reset_transfer()
        get_ledger_service(repo).set_fee(7)

        assert get_ledger_service(repo).get_fee() == 7
        reset_transfer()
