"""
Payment Expiry Worker.

Runs hourly. PENDING payments whose checkout was opened more than
payment_link_ttl_hours ago move to EXPIRED.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.database import get_db_context
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_payment_expiry(now: datetime) -> int:
    from app.services.reconciliation import ReconciliationService

    cutoff = now - timedelta(hours=settings.payment_link_ttl_hours)
    async with get_db_context() as db:
        return await ReconciliationService(db).expire_stale(cutoff)


@celery_app.task(bind=True, max_retries=3)
def expire_stale_payments(self):
    """Celery task wrapper for run_payment_expiry."""
    try:
        count = asyncio.run(run_payment_expiry(datetime.now(timezone.utc)))
        logger.info(f"Payment expiry complete: {count} expired")
        return {"success": True, "count": count}
    except Exception as e:
        logger.error(f"Payment expiry failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
