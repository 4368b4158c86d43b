"""
Lease Service - lease expiry and unit vacancy.
"""

import logging
from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.fsm.states import LeaseStatus, UnitStatus
from app.models.lease import Lease
from app.models.property import Unit

logger = logging.getLogger(__name__)


class LeaseService:
    """Service for lease lifecycle housekeeping."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def expire_ended_leases(self, today: date) -> int:
        """
        Mark ACTIVE leases whose end date has passed as EXPIRED.

        A unit becomes VACANT once it has no other ACTIVE lease.
        Returns the number of leases expired.
        """
        result = await self.db.execute(
            select(Lease)
            .where(Lease.status == LeaseStatus.ACTIVE.value)
            .where(Lease.end_date < today)
        )
        leases = list(result.scalars().all())

        for lease in leases:
            lease.status = LeaseStatus.EXPIRED.value
            await self.db.flush()

            remaining = await self.db.execute(
                select(func.count(Lease.id))
                .where(Lease.unit_id == lease.unit_id)
                .where(Lease.status == LeaseStatus.ACTIVE.value)
            )
            if remaining.scalar_one() == 0:
                await self.db.execute(
                    update(Unit)
                    .where(Unit.id == lease.unit_id)
                    .values(status=UnitStatus.VACANT.value)
                    .execution_options(synchronize_session=False)
                )

        if leases:
            logger.info(f"Expired {len(leases)} lease(s)")
        return len(leases)
