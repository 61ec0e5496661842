import uuid
from sqlalchemy import select, func, case, distinct, extract, and_
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.modules.bookings.models import Booking, STATUS_CANCELED, STATUS_RESCHEDULED, STATUS_CONFIRMED
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.stats.schemas import ProviderStats, MonthlyCreditUsage

def _count_current(status: str):
    return func.count(distinct(case((Booking.status == status, Booking.id))))

class StatisticsAggregator:
    """Read-only reports over bookings and credits. Never writes."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = CreditLedger(session)

    async def provider_stats(self, provider_id: uuid.UUID) -> ProviderStats:
        # each booking counts once, by its current status
        q = (
            select(
                _count_current(STATUS_CANCELED).label("canceled"),
                _count_current(STATUS_RESCHEDULED).label("rescheduled"),
            )
            .where(Booking.provider_id == provider_id)
        )
        row = (await self.session.execute(q)).one()
        return ProviderStats(canceled=row.canceled or 0, rescheduled=row.rescheduled or 0)

    async def patient_credit_stats(self, patient_id: uuid.UUID) -> list[MonthlyCreditUsage]:
        year = extract("year", Booking.time).label("year")
        month = extract("month", Booking.time).label("month")
        q = (
            select(year, month, func.count(distinct(Booking.credit_id)).label("credits_used"))
            .where(and_(
                Booking.patient_id == patient_id,
                Booking.status == STATUS_CONFIRMED,
                Booking.credit_id.is_not(None),
            ))
            .group_by(year, month)
            .order_by(year, month)
        )
        rows = (await self.session.execute(q)).all()
        if not rows:
            return []

        total = await self.ledger.sum_available_credits(patient_id)
        return [
            MonthlyCreditUsage(
                year=int(r.year),
                month=int(r.month),
                credits_used=int(r.credits_used),
                percentage_used=int(r.credits_used) / total * 100,
            )
            for r in rows
        ]
