"""Data access layer for ledger entities"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from card_ledger.domain.models import (
    AccountStatus,
    TransactionStatus,
    TransactionType,
)
from card_ledger.infrastructure.database.models import Account, Card, LedgerTransaction, Statement
from card_ledger.utils.date_utils import utcnow


@dataclass
class FindOrCreateResult:
    """Tagged outcome of an insert guarded by the transaction-id uniqueness constraint"""

    record: LedgerTransaction
    created: bool


class AccountRepository:
    """Repository for credit accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def get_for_update(self, account_id: str) -> Optional[Account]:
        """Fresh read of the account row, row-locked where the backend supports it"""
        return (
            self.db.query(Account)
            .filter(Account.id == account_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def list_by_user(self, user_id: str) -> List[Account]:
        return (
            self.db.query(Account)
            .filter(Account.user_id == user_id)
            .order_by(Account.created_at.desc(), Account.id.desc())
            .all()
        )

    def list_closing_on(self, closing_day: int) -> List[Account]:
        """Active accounts whose billing cycle closes on the given day of month"""
        return (
            self.db.query(Account)
            .filter(Account.statement_closing_day == closing_day)
            .filter(Account.status == AccountStatus.ACTIVE)
            .order_by(Account.id)
            .all()
        )

    def apply_balance_delta(
        self,
        account_id: str,
        delta: Decimal,
        enforce_credit_limit: bool = True,
        floor_at_zero: bool = False,
    ) -> Optional[Decimal]:
        """
        Atomically add `delta` to the stored balance and return the result.

        The arithmetic runs inside a single UPDATE so concurrent writers never
        lose an increment. Guards:
        - enforce_credit_limit: the new balance may not exceed credit_limit
        - floor_at_zero: a negative result is stored as 0; otherwise it is refused

        Returns:
            The new balance, or None when a guard refused the update
        """
        raw_balance = Account.current_balance + delta
        stmt = update(Account).where(Account.id == account_id)

        if enforce_credit_limit:
            stmt = stmt.where(raw_balance <= Account.credit_limit)

        if floor_at_zero:
            new_value = case((raw_balance < 0, Decimal("0.00")), else_=raw_balance)
        else:
            stmt = stmt.where(raw_balance >= 0)
            new_value = raw_balance

        stmt = (
            stmt.values(current_balance=new_value, updated_at=utcnow())
            .returning(Account.current_balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = self.db.execute(stmt).scalar_one_or_none()

        if new_balance is not None:
            # Keep any loaded instance in step without scheduling another UPDATE
            loaded = self.db.identity_map.get(self.db.identity_key(Account, account_id))
            if loaded is not None:
                set_committed_value(loaded, "current_balance", new_balance)

        return new_balance

    def create(self, **fields) -> Account:
        account = Account(**fields)
        self.db.add(account)
        self.db.flush()
        return account


class CardRepository:
    """Repository for cards (read-mostly from the ledger's point of view)"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, card_id: str) -> Optional[Card]:
        return self.db.query(Card).filter(Card.id == card_id).first()

    def create(self, **fields) -> Card:
        card = Card(**fields)
        self.db.add(card)
        self.db.flush()
        return card


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: str) -> Optional[LedgerTransaction]:
        return self.db.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id).first()

    def get_for_update(self, transaction_id: str) -> Optional[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.id == transaction_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def create(self, **fields) -> LedgerTransaction:
        txn = LedgerTransaction(**fields)
        self.db.add(txn)
        self.db.flush()
        return txn

    def find_or_create(self, **fields) -> FindOrCreateResult:
        """
        Insert a transaction unless one with the same id exists.

        A concurrent insert of the same id surfaces as a uniqueness violation;
        the unit of work is rolled back (nothing else in it may survive a
        duplicate) and the winning row is returned with created=False.
        """
        transaction_id = fields["id"]
        existing = self.get(transaction_id)
        if existing is not None:
            return FindOrCreateResult(record=existing, created=False)

        txn = LedgerTransaction(**fields)
        self.db.add(txn)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.get(transaction_id)
            if existing is None:
                raise
            return FindOrCreateResult(record=existing, created=False)

        return FindOrCreateResult(record=txn, created=True)

    def list_by_account(self, account_id: str, limit: int = 100) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def list_payments(self, account_id: str, limit: int = 100) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.account_id == account_id)
            .filter(LedgerTransaction.transaction_type == TransactionType.PAYMENT)
            .order_by(LedgerTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def posted_in_window(self, account_id: str, since: datetime, until: datetime) -> List[LedgerTransaction]:
        """Posted, not-yet-billed transactions with since < posted_at <= until, oldest first"""
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.account_id == account_id)
            .filter(LedgerTransaction.status == TransactionStatus.POSTED)
            .filter(LedgerTransaction.statement_id.is_(None))
            .filter(LedgerTransaction.posted_at > since)
            .filter(LedgerTransaction.posted_at <= until)
            .order_by(LedgerTransaction.created_at.asc(), LedgerTransaction.id.asc())
            .all()
        )

    def link_to_statement(self, transactions: Sequence[LedgerTransaction], statement_id: str) -> int:
        """Bulk-assign unlinked transactions to a statement; returns rows touched"""
        if not transactions:
            return 0

        ids = [t.id for t in transactions]
        result = self.db.execute(
            update(LedgerTransaction)
            .where(LedgerTransaction.id.in_(ids))
            .where(LedgerTransaction.statement_id.is_(None))
            .values(statement_id=statement_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        for txn in transactions:
            set_committed_value(txn, "statement_id", statement_id)
        return result.rowcount

    def spending_by_category(self, account_id: str, days: int = 30, now: Optional[datetime] = None) -> List[Dict]:
        """Posted purchase totals grouped by merchant category over the last `days`"""
        cutoff = (now or utcnow()) - timedelta(days=days)
        total = func.sum(LedgerTransaction.amount).label("total")
        rows = (
            self.db.query(LedgerTransaction.merchant_category_code, total)
            .filter(LedgerTransaction.account_id == account_id)
            .filter(LedgerTransaction.status == TransactionStatus.POSTED)
            .filter(LedgerTransaction.transaction_type == TransactionType.PURCHASE)
            .filter(LedgerTransaction.created_at >= cutoff)
            .group_by(LedgerTransaction.merchant_category_code)
            .order_by(total.desc())
            .all()
        )
        return [{"merchant_category_code": code, "total": amount} for code, amount in rows]


class StatementRepository:
    """Repository for billing statements"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, statement_id: str) -> Optional[Statement]:
        return self.db.query(Statement).filter(Statement.id == statement_id).first()

    def get_latest(self, account_id: str) -> Optional[Statement]:
        return (
            self.db.query(Statement)
            .filter(Statement.account_id == account_id)
            .order_by(Statement.statement_date.desc(), Statement.period_end.desc())
            .first()
        )

    def exists_since(self, account_id: str, since: date) -> bool:
        return (
            self.db.query(Statement.id)
            .filter(Statement.account_id == account_id)
            .filter(Statement.statement_date >= since)
            .first()
            is not None
        )

    def list_by_account(self, account_id: str, limit: int = 12) -> List[Statement]:
        return (
            self.db.query(Statement)
            .filter(Statement.account_id == account_id)
            .order_by(Statement.statement_date.desc())
            .limit(limit)
            .all()
        )

    def create(self, **fields) -> Statement:
        statement = Statement(**fields)
        self.db.add(statement)
        self.db.flush()
        return statement
