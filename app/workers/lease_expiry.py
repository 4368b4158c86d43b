"""
Lease Expiry Worker.

Runs daily. Ended ACTIVE leases become EXPIRED and their units VACANT.
"""

import asyncio
import logging
from datetime import date, datetime, timezone

from app.database import get_db_context
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

# Leases are read, then their units updated, in one snapshot
LEASE_EXPIRY_ISOLATION = "REPEATABLE READ"


async def run_lease_expiry(today: date) -> int:
    from app.services.lease_service import LeaseService

    async with get_db_context(isolation_level=LEASE_EXPIRY_ISOLATION) as db:
        return await LeaseService(db).expire_ended_leases(today)


@celery_app.task(bind=True, max_retries=3)
def update_expired_leases(self):
    """
    Celery task to expire ended leases.

    Retries with exponential backoff on failure.
    """
    try:
        count = asyncio.run(run_lease_expiry(datetime.now(timezone.utc).date()))
        logger.info(f"Successfully updated {count} expired lease(s)")
        return {"success": True, "updated_count": count}
    except Exception as e:
        logger.error(f"Lease expiry failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
