"""/v1/statements - billing-cycle runs and statement history"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from card_ledger.api.dependencies import get_request_id, get_settings, get_statement_generator
from card_ledger.api.v1.schemas import (
    StatementGenerationResponse,
    StatementHistoryResponse,
    StatementRunResponse,
    StatementSchema,
)
from card_ledger.config import Settings
from card_ledger.services.statements import StatementGenerator

router = APIRouter()


@router.post("/statements/generate", response_model=StatementRunResponse)
def generate_statements(request: Request, generator: StatementGenerator = Depends(get_statement_generator)):
    """Run today's billing cycle manually (the scheduler calls the same code path)"""
    try:
        result = generator.generate_for_period()
    except Exception as e:
        logging.error(f"Statement run error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return StatementRunResponse(
        success=True,
        generated_count=result.generated_count,
        skipped_count=result.skipped_count,
    )


@router.post(
    "/statements/account/{account_id}/generate",
    response_model=StatementGenerationResponse,
    response_model_exclude_none=True,
)
def generate_statement_for_account(account_id: str, generator: StatementGenerator = Depends(get_statement_generator)):
    outcome = generator.generate_for_account(account_id)

    response = StatementGenerationResponse(generated=outcome.generated, reason=outcome.reason)
    if outcome.statement is not None:
        response.statement = StatementSchema.model_validate(outcome.statement)
    return response


@router.get("/statements/account/{account_id}", response_model=StatementHistoryResponse)
def get_account_statements(
    account_id: str,
    limit: Optional[int] = Query(None, ge=1, le=120),
    generator: StatementGenerator = Depends(get_statement_generator),
    app_settings: Settings = Depends(get_settings),
):
    statements = generator.list_statements(account_id, limit=limit or app_settings.statement_history_limit)
    return StatementHistoryResponse(
        account_id=account_id,
        count=len(statements),
        statements=[StatementSchema.model_validate(s) for s in statements],
    )


@router.get("/statements/{statement_id}", response_model=StatementSchema)
def get_statement(statement_id: str, generator: StatementGenerator = Depends(get_statement_generator)):
    statement = generator.get_statement(statement_id)
    if not statement:
        raise HTTPException(status_code=404, detail="Statement not found")
    return StatementSchema.model_validate(statement)
