"""Daily billing-cycle entry point for an external scheduler (cron, k8s CronJob)"""

import logging
from typing import Callable, Optional

from card_ledger.config import Settings, settings
from card_ledger.domain.models import StatementRunResult
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.infrastructure.observability.logging import setup_logging
from card_ledger.services.statements import StatementGenerator
from card_ledger.utils.date_utils import Clock, utcnow


def build_statement_job(
    store: LedgerStore,
    app_settings: Optional[Settings] = None,
    clock: Clock = utcnow,
) -> Callable[[], StatementRunResult]:
    """Bind a generator to a store and return the zero-argument callable the scheduler invokes"""
    app_settings = app_settings or settings
    generator = StatementGenerator(
        store,
        clock=clock,
        minimum_payment_floor=app_settings.minimum_payment_floor,
        minimum_payment_rate=app_settings.minimum_payment_rate,
    )

    def run() -> StatementRunResult:
        logging.info("Running daily statement billing cycle job", extra={"step": "statement_job_start"})
        result = generator.generate_for_period()
        logging.info(
            f"Statement job finished: generated {result.generated_count}, skipped {result.skipped_count}",
            extra={
                "step": "statement_job_complete",
                "generated_count": result.generated_count,
                "skipped_count": result.skipped_count,
            },
        )
        return result

    return run


def run_statement_cycle() -> StatementRunResult:
    """Run one billing-cycle tick against the configured database"""
    store = LedgerStore.from_settings(settings)
    try:
        return build_statement_job(store)()
    finally:
        store.engine.dispose()


def main() -> None:
    setup_logging(settings.log_level, settings.service_name)
    run_statement_cycle()


if __name__ == "__main__":
    main()
