"""POST /v1/webhooks/* - card-network authorization and settlement callbacks"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from card_ledger.api.dependencies import (
    get_authorization_engine,
    get_request_id,
    get_settlement_engine,
    verify_webhook_signature,
)
from card_ledger.api.v1.schemas import (
    AuthorizationResponse,
    AuthorizationWebhook,
    BulkSettlementResponse,
    BulkSettlementWebhook,
    SettlementResponse,
    SettlementWebhook,
    TransactionSchema,
)
from card_ledger.domain.models import AuthorizationRequest, MerchantData, SettlementRequest
from card_ledger.services.authorization import AuthorizationEngine
from card_ledger.services.settlement import SettlementEngine

router = APIRouter(dependencies=[Depends(verify_webhook_signature)])


@router.post("/webhooks/transactions", response_model=AuthorizationResponse, response_model_exclude_none=True)
def authorize_transaction(
    body: AuthorizationWebhook,
    request: Request,
    engine: AuthorizationEngine = Depends(get_authorization_engine),
):
    """
    Approve or decline a purchase authorization.

    Always answers 200: a decline is a business outcome carried in the body.
    Duplicate deliveries of the same id return the original decision.
    """
    request_id = get_request_id(request)
    auth_request = AuthorizationRequest(
        id=body.id,
        card_id=body.card_id,
        amount=body.amount,
        currency=body.currency,
        merchant_data=MerchantData(
            category=body.merchant_data.category,
            name=body.merchant_data.name,
            address=body.merchant_data.address,
        ),
    )

    try:
        decision = engine.authorize(auth_request)
    except Exception as e:
        logging.error(f"Authorization error: {e}", extra={"request_id": request_id, "transaction_id": body.id})
        raise HTTPException(status_code=500, detail="Internal server error")

    response = AuthorizationResponse(approved=decision.approved)
    if decision.approved and decision.transaction is not None:
        response.transaction = TransactionSchema.model_validate(decision.transaction)
    if not decision.approved:
        response.reason = decision.reason
        response.decline_code = decision.decline_code
    return response


@router.post("/webhooks/settlements", response_model=SettlementResponse, response_model_exclude_none=True)
def settle_transaction(
    body: SettlementWebhook,
    request: Request,
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    """Finalize a pending authorization, optionally at a different final amount"""
    request_id = get_request_id(request)

    try:
        outcome = engine.settle(body.transaction_id, body.final_amount)
    except Exception as e:
        logging.error(f"Settlement error: {e}", extra={"request_id": request_id, "transaction_id": body.transaction_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    response = SettlementResponse(settled=outcome.settled)
    if outcome.settled:
        response.transaction = TransactionSchema.model_validate(outcome.transaction)
    else:
        response.reason = outcome.reason
        response.rejection_code = outcome.rejection_code.value if outcome.rejection_code else None
    return response


@router.post("/webhooks/settlements/bulk", response_model=BulkSettlementResponse)
def settle_transactions_bulk(
    body: BulkSettlementWebhook,
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    """Settle a batch; each item succeeds or fails on its own"""
    result = engine.settle_many(
        SettlementRequest(transaction_id=item.transaction_id, final_amount=item.final_amount)
        for item in body.settlements
    )
    return BulkSettlementResponse(settled_count=result.settled_count, failed_count=result.failed_count)
