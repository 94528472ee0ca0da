"""Dependency injection for FastAPI endpoints"""

import logging

from fastapi import Depends, HTTPException, Request

from card_ledger.api.security import SignatureError, verify_signature
from card_ledger.config import Settings
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.services.authorization import AuthorizationEngine
from card_ledger.services.payments import PaymentEngine
from card_ledger.services.settlement import SettlementEngine
from card_ledger.services.statements import StatementGenerator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> LedgerStore:
    """Provide the store handle the app was built with"""
    return request.app.state.store


def get_authorization_engine(store: LedgerStore = Depends(get_store)) -> AuthorizationEngine:
    return AuthorizationEngine(store)


def get_settlement_engine(store: LedgerStore = Depends(get_store)) -> SettlementEngine:
    return SettlementEngine(store)


def get_payment_engine(
    store: LedgerStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> PaymentEngine:
    return PaymentEngine(store, currency=app_settings.default_currency)


def get_statement_generator(
    store: LedgerStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> StatementGenerator:
    return StatementGenerator(
        store,
        minimum_payment_floor=app_settings.minimum_payment_floor,
        minimum_payment_rate=app_settings.minimum_payment_rate,
    )


async def verify_webhook_signature(request: Request, app_settings: Settings = Depends(get_settings)) -> None:
    """Reject unsigned or tampered webhook deliveries when a secret is configured"""
    if not app_settings.webhook_secret:
        return

    body = await request.body()
    try:
        verify_signature(
            app_settings.webhook_secret,
            request.headers.get("X-Webhook-Signature"),
            request.headers.get("X-Webhook-Timestamp"),
            body,
            tolerance_seconds=app_settings.webhook_timestamp_tolerance_seconds,
        )
    except SignatureError as e:
        client_host = request.client.host if request.client else "unknown"
        logging.warning(
            f"Webhook signature rejected: {e}",
            extra={"request_id": get_request_id(request), "client": client_host},
        )
        raise HTTPException(status_code=401, detail=str(e))
