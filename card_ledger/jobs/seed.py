"""Sample data for local development: one user, one account, one card and a little activity"""

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from card_ledger.config import settings
from card_ledger.domain.models import (
    AccountStatus,
    AuthorizationRequest,
    CardStatus,
    CardType,
    MerchantData,
)
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.infrastructure.observability.logging import setup_logging
from card_ledger.services.authorization import AuthorizationEngine
from card_ledger.services.payments import PaymentEngine
from card_ledger.services.settlement import SettlementEngine
from card_ledger.utils.card_utils import hash_card_number, last_four
from card_ledger.utils.date_utils import Clock, utcnow

SEED_CREDIT_LIMIT = Decimal("5000.00")
SEED_CLOSING_DAY = 15
SEED_PAYMENT_DUE_DAY = 25

# (cents, merchant category, merchant name, settle?)
SAMPLE_PURCHASES = [
    (2500, 5411, "Amazon.com", True),
    (4999, 5812, "Corner Bistro", True),
    (12000, 7011, "Harbor Hotel", False),
]
SAMPLE_PAYMENT = Decimal("30.00")


@dataclass
class SeedResult:
    user_id: str
    account_id: str
    card_id: str
    card_number: str
    transaction_ids: List[str] = field(default_factory=list)


def _test_card_number() -> str:
    # Visa test range; random tail keeps card_hash unique across reseeds
    return "4111" + "".join(secrets.choice("0123456789") for _ in range(12))


def seed_ledger(store: LedgerStore, clock: Clock = utcnow, with_activity: bool = True) -> SeedResult:
    """
    Create a user's account and card, then optionally run sample activity.

    Activity goes through the engines so balances and audit snapshots stay
    consistent: two settled purchases, one open hold and one payment.
    """
    user_id = f"user_{uuid.uuid4().hex[:12]}"
    account_id = f"acct_{uuid.uuid4().hex[:12]}"
    card_id = f"card_{uuid.uuid4().hex[:8]}"
    card_number = _test_card_number()
    now = clock()

    with store.unit_of_work() as uow:
        uow.accounts.create(
            id=account_id,
            user_id=user_id,
            account_number=card_number,
            credit_limit=SEED_CREDIT_LIMIT,
            current_balance=Decimal("0.00"),
            statement_closing_day=SEED_CLOSING_DAY,
            payment_due_day=SEED_PAYMENT_DUE_DAY,
            status=AccountStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        uow.cards.create(
            id=card_id,
            account_id=account_id,
            last_four=last_four(card_number),
            card_hash=hash_card_number(card_number),
            expiry_month=12,
            expiry_year=now.year + 3,
            card_type=CardType.PHYSICAL,
            status=CardStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

    result = SeedResult(user_id=user_id, account_id=account_id, card_id=card_id, card_number=card_number)
    logging.info(
        f"Seeded account {account_id} with card {card_id}",
        extra={"account_id": account_id, "card_id": card_id, "user_id": user_id, "step": "seed_account"},
    )

    if not with_activity:
        return result

    auth = AuthorizationEngine(store, clock=clock)
    settlement = SettlementEngine(store, clock=clock)

    for cents, category, merchant, settle in SAMPLE_PURCHASES:
        transaction_id = f"txn_seed_{uuid.uuid4().hex[:12]}"
        auth.authorize(
            AuthorizationRequest(
                id=transaction_id,
                card_id=card_id,
                amount=cents,
                merchant_data=MerchantData(category=category, name=merchant),
            )
        )
        if settle:
            settlement.settle(transaction_id)
        result.transaction_ids.append(transaction_id)

    receipt = PaymentEngine(store, clock=clock).apply_payment(account_id, SAMPLE_PAYMENT)
    result.transaction_ids.append(receipt.transaction.id)

    logging.info(
        f"Seeded {len(result.transaction_ids)} sample transactions",
        extra={"account_id": account_id, "step": "seed_activity"},
    )
    return result


def main() -> None:
    setup_logging(settings.log_level, settings.service_name)
    store = LedgerStore.from_settings(settings)
    try:
        store.create_schema()
        seed_ledger(store)
    finally:
        store.engine.dispose()


if __name__ == "__main__":
    main()
