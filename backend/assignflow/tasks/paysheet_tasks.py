import asyncio
import logging

from assignflow.core.celery_app import celery_app
from assignflow.core.events import NullEventSink
from assignflow.core.firebase import get_db
from assignflow.services.ledger import PaysheetLedger

logger = logging.getLogger("assignflow")


async def run_backfill(db) -> dict:
    # Workers have no socket connections, so refresh pushes go nowhere
    ledger = PaysheetLedger(db, NullEventSink())
    return await ledger.generate()


@celery_app.task(
    bind=True,
    max_retries=3,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_jitter=True,
)
def backfill_paysheets(self):
    """
    Nightly reconciliation: credit Paid assignments that never reached a paysheet.
    """
    result = asyncio.run(run_backfill(get_db()))
    logger.info(f"Paysheet backfill: {result['processed']} assignment(s), {result['paysheets']} paysheet(s)")
    return result
