"""Ledger store handle: units of work over one session plus per-account locking"""

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from card_ledger.config import Settings
from card_ledger.infrastructure.database.models import Base
from card_ledger.infrastructure.database.repositories import (
    AccountRepository,
    CardRepository,
    StatementRepository,
    TransactionRepository,
)
from card_ledger.infrastructure.database.session import build_session_factory, engine_from_settings


class LedgerUnitOfWork:
    """Repositories sharing a single session (and therefore a single DB transaction)"""

    def __init__(self, session: Session):
        self.session = session
        self.accounts = AccountRepository(session)
        self.cards = CardRepository(session)
        self.transactions = TransactionRepository(session)
        self.statements = StatementRepository(session)


class AccountLockRegistry:
    """
    In-process mutual exclusion keyed by account id.

    Locks are held weakly: an entry lives only while some thread holds or
    waits on it, so the map stays bounded by the accounts in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        lock = self._lock_for(account_id)
        with lock:
            yield


class LedgerStore:
    """
    Explicit store handle handed to each engine at construction.

    Balance mutations follow one discipline: take `account_lock(account_id)`,
    then open a `unit_of_work()` inside it, so the commit happens before the
    lock is released.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.locks = AccountLockRegistry()

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "LedgerStore":
        store = cls(build_session_factory(engine_from_settings(app_settings)))
        if app_settings.auto_create_schema:
            store.create_schema()
        return store

    @property
    def engine(self):
        return self.session_factory.kw["bind"]

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def unit_of_work(self) -> Iterator[LedgerUnitOfWork]:
        """Commit on success, roll back and re-raise on any exception"""
        session = self.session_factory()
        try:
            yield LedgerUnitOfWork(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def account_lock(self, account_id: str) -> Iterator[None]:
        with self.locks.hold(account_id):
            yield

    def ping(self) -> None:
        with self.session_factory() as session:
            session.execute(text("SELECT 1"))
