"""SQLAlchemy ORM models for the revolving-credit ledger"""

from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from card_ledger.domain.models import (
    AccountStatus,
    CardStatus,
    CardType,
    DeclineCode,
    StatementStatus,
    TransactionStatus,
    TransactionType,
)
from card_ledger.utils.date_utils import utcnow

Base = declarative_base()

Money = Numeric(12, 2)


def _enum_column(enum_cls, name: str) -> Enum:
    # Persist enum values ("active"), not member names ("ACTIVE")
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Account(Base):
    """Revolving credit line"""

    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    account_number = Column(String(32), unique=True, nullable=True)
    credit_limit = Column(Money, nullable=False, default=Decimal("0.00"))
    current_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    apr_rate = Column(Numeric(5, 2), nullable=False, default=Decimal("19.99"))
    statement_closing_day = Column(Integer, nullable=False, default=1)
    payment_due_day = Column(Integer, nullable=False, default=21)
    status = Column(_enum_column(AccountStatus, "account_status"), nullable=False, default=AccountStatus.ACTIVE, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    cards = relationship("Card", back_populates="account", cascade="all, delete-orphan")
    statements = relationship("Statement", back_populates="account", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("credit_limit >= 0", name="positive_credit_limit"),
        CheckConstraint("current_balance >= 0", name="valid_balance"),
        CheckConstraint("statement_closing_day BETWEEN 1 AND 28", name="valid_closing_day"),
    )

    @property
    def available_credit(self) -> Decimal:
        """Derived on read, never stored"""
        return self.credit_limit - self.current_balance


class Card(Base):
    """Payment card attached to an account; only the hash of the PAN is kept"""

    __tablename__ = "cards"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    last_four = Column(String(4), nullable=False)
    card_hash = Column(String(64), unique=True, nullable=False)
    expiry_month = Column(Integer, nullable=False)
    expiry_year = Column(Integer, nullable=False)
    card_type = Column(_enum_column(CardType, "card_type"), nullable=False, default=CardType.PHYSICAL)
    spending_limit = Column(Money, nullable=True)
    status = Column(_enum_column(CardStatus, "card_status"), nullable=False, default=CardStatus.ACTIVE)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    account = relationship("Account", back_populates="cards")


class LedgerTransaction(Base):
    """Authorization, payment or other ledger entry with a balance snapshot"""

    __tablename__ = "transactions"

    id = Column(String(128), primary_key=True)
    card_id = Column(String(64), ForeignKey("cards.id"), nullable=True, index=True)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    authorized_amount = Column(Money, nullable=True)
    currency = Column(String(3), nullable=False, default="usd")
    transaction_type = Column(_enum_column(TransactionType, "transaction_type"), nullable=False, default=TransactionType.PURCHASE)
    status = Column(_enum_column(TransactionStatus, "transaction_status"), nullable=False, default=TransactionStatus.PENDING, index=True)
    previous_balance = Column(Money, nullable=False)
    new_balance = Column(Money, nullable=False)
    authorization_code = Column(String(6), nullable=True)
    decline_code = Column(_enum_column(DeclineCode, "decline_code"), nullable=True)
    decline_reason = Column(Text, nullable=True)
    merchant_category_code = Column(Integer, nullable=True)
    merchant_name = Column(Text, nullable=True)
    merchant_address = Column(JSON, nullable=True)
    statement_id = Column(String(64), ForeignKey("statements.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    posted_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    statement = relationship("Statement", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_account_posted", "account_id", "status", "posted_at"),
    )


class Statement(Base):
    """Closed billing-period snapshot"""

    __tablename__ = "statements"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    statement_date = Column(Date, nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    previous_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    closing_balance = Column(Money, nullable=False, default=Decimal("0.00"))
    total_purchases = Column(Money, nullable=False, default=Decimal("0.00"))
    total_payments = Column(Money, nullable=False, default=Decimal("0.00"))
    total_fees = Column(Money, nullable=False, default=Decimal("0.00"))
    total_interest = Column(Money, nullable=False, default=Decimal("0.00"))
    minimum_payment_due = Column(Money, nullable=False, default=Decimal("0.00"))
    payment_due_date = Column(Date, nullable=False, index=True)
    status = Column(_enum_column(StatementStatus, "statement_status"), nullable=False, default=StatementStatus.GENERATED)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    account = relationship("Account", back_populates="statements")
    transactions = relationship("LedgerTransaction", back_populates="statement")

    __table_args__ = (
        UniqueConstraint("account_id", "statement_date", name="uq_statement_account_date"),
    )
