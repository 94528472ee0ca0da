"""Pytest fixtures for testing"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient

from card_ledger.api.main import create_app
from card_ledger.config import Settings
from card_ledger.domain.models import AccountStatus, AuthorizationRequest, CardStatus, TransactionStatus
from card_ledger.infrastructure.database.models import Account, Card, LedgerTransaction
from card_ledger.infrastructure.database.session import build_engine, build_session_factory
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.services.authorization import AuthorizationEngine
from card_ledger.utils.card_utils import hash_card_number, last_four


# Statement closing day used by the default account fixture
CLOSING_DAY = 15
CLOCK_START = datetime(2026, 3, CLOSING_DAY, 9, 0, 0)


class FakeClock:
    """Deterministic clock; every reading moves time forward by `step`"""

    def __init__(self, start: datetime = CLOCK_START, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set(self, moment: datetime) -> None:
        self.now = moment


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite so worker threads share one database"""
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def store(database_url: str) -> Generator[LedgerStore, None, None]:
    """Create test database and store handle"""
    engine = build_engine(database_url)
    ledger_store = LedgerStore(build_session_factory(engine))
    ledger_store.create_schema()
    try:
        yield ledger_store
    finally:
        ledger_store.drop_schema()
        engine.dispose()


@pytest.fixture
def make_account(store: LedgerStore) -> Callable[..., Account]:
    def _make_account(
        credit_limit: Decimal = Decimal("5000.00"),
        current_balance: Decimal = Decimal("0.00"),
        status: AccountStatus = AccountStatus.ACTIVE,
        statement_closing_day: int = CLOSING_DAY,
        payment_due_day: int = 21,
        account_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Account:
        with store.unit_of_work() as uow:
            return uow.accounts.create(
                id=account_id or f"acct_{uuid.uuid4().hex[:12]}",
                user_id=user_id or f"user_{uuid.uuid4().hex[:8]}",
                credit_limit=credit_limit,
                current_balance=current_balance,
                status=status,
                statement_closing_day=statement_closing_day,
                payment_due_day=payment_due_day,
            )

    return _make_account


@pytest.fixture
def make_card(store: LedgerStore) -> Callable[..., Card]:
    def _make_card(
        account_id: str,
        status: CardStatus = CardStatus.ACTIVE,
        spending_limit: Optional[Decimal] = None,
        card_id: Optional[str] = None,
    ) -> Card:
        card_number = "4111" + str(uuid.uuid4().int)[:12]
        with store.unit_of_work() as uow:
            return uow.cards.create(
                id=card_id or f"card_{uuid.uuid4().hex[:12]}",
                account_id=account_id,
                last_four=last_four(card_number),
                card_hash=hash_card_number(card_number),
                expiry_month=12,
                expiry_year=2030,
                spending_limit=spending_limit,
                status=status,
            )

    return _make_card


@pytest.fixture
def account(make_account) -> Account:
    """Active account: $5000 limit, zero balance, closes on the 15th"""
    return make_account()


@pytest.fixture
def card(make_card, account: Account) -> Card:
    return make_card(account.id)


@pytest.fixture
def balance_of(store: LedgerStore) -> Callable[[str], Decimal]:
    """Read the committed balance straight from the store"""

    def _balance_of(account_id: str) -> Decimal:
        with store.unit_of_work() as uow:
            return uow.accounts.get(account_id).current_balance

    return _balance_of


@pytest.fixture
def transactions_of(store: LedgerStore) -> Callable[[str], list]:
    def _transactions_of(account_id: str) -> list[LedgerTransaction]:
        with store.unit_of_work() as uow:
            return uow.transactions.list_by_account(account_id, limit=1000)

    return _transactions_of


@pytest.fixture
def pending_purchase(store: LedgerStore, account: Account, card: Card, clock: FakeClock) -> Callable[..., LedgerTransaction]:
    """Authorize through the engine and hand back the pending row"""
    engine = AuthorizationEngine(store, clock=clock)

    def _pending_purchase(amount_cents: int, transaction_id: Optional[str] = None) -> LedgerTransaction:
        decision = engine.authorize(
            AuthorizationRequest(
                id=transaction_id or f"txn_{uuid.uuid4().hex[:12]}",
                card_id=card.id,
                amount=amount_cents,
            )
        )
        assert decision.approved is True
        assert decision.transaction.status == TransactionStatus.PENDING
        return decision.transaction

    return _pending_purchase


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    return Settings(
        database_url=database_url,
        rate_limit_enabled=False,
        webhook_secret=None,
        log_level="WARNING",
    )


@pytest.fixture
def client(store: LedgerStore, test_settings: Settings) -> TestClient:
    """Create FastAPI test client bound to the test store"""
    app = create_app(store=store, app_settings=test_settings)
    return TestClient(app)
