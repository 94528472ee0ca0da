"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "card-ledger", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "card-ledger") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_authorization(
    transaction_id: str,
    card_id: str,
    approved: bool,
    decline_code: Optional[str],
    replayed: bool,
    duration_ms: float,
) -> None:
    """Log structured authorization outcome"""
    logging.info(
        "Authorization completed",
        extra={
            "transaction_id": transaction_id,
            "card_id": card_id,
            "step": "authorization_complete",
            "approval_outcome": "approved" if approved else "declined",
            "decline_code": decline_code,
            "replayed": replayed,
            "duration_ms": duration_ms,
        },
    )


def log_settlement(transaction_id: str, settled: bool, reason: Optional[str], adjustment: Optional[str]) -> None:
    logging.info(
        "Settlement completed" if settled else "Settlement rejected",
        extra={
            "transaction_id": transaction_id,
            "step": "settlement_complete",
            "settled": settled,
            "reason": reason,
            "adjustment": adjustment,
        },
    )


def log_payment(account_id: str, transaction_id: str, amount: str, previous_balance: str, new_balance: str) -> None:
    logging.info(
        "Payment applied",
        extra={
            "account_id": account_id,
            "transaction_id": transaction_id,
            "step": "payment_applied",
            "amount": amount,
            "previous_balance": previous_balance,
            "new_balance": new_balance,
        },
    )


def log_statement_run(run_date: str, generated_count: int, skipped_count: int, duration_ms: float) -> None:
    """Log the outcome of one billing-cycle batch"""
    logging.info(
        "Statement run completed",
        extra={
            "run_date": run_date,
            "step": "statement_run_complete",
            "generated_count": generated_count,
            "skipped_count": skipped_count,
            "duration_ms": duration_ms,
        },
    )
