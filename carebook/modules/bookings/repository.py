import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.modules.bookings.models import Booking, BookingStatusHistory

class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Booking:
        obj = Booking(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, booking_id: uuid.UUID, *, fresh: bool = False) -> Booking | None:
        return await self.session.get(Booking, booking_id, populate_existing=fresh)

    async def attach_credit(self, booking: Booking, credit_id: uuid.UUID) -> Booking:
        booking.credit_id = credit_id
        await self.session.flush()
        return booking

    async def set_status_if_version(self, booking_id: uuid.UUID, expected_version: int, status: str, at: datetime) -> bool:
        # compare-and-set on version; False means someone else moved the booking first
        res = await self.session.execute(
            update(Booking)
            .where(and_(Booking.id == booking_id, Booking.version == expected_version))
            .values(status=status, version=expected_version + 1, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def list_for_patient(self, patient_id: uuid.UUID, *, limit: int = 100, offset: int = 0) -> Sequence[Booking]:
        q = select(Booking).where(Booking.patient_id == patient_id).order_by(Booking.time.asc(), Booking.id.asc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_for_provider(self, provider_id: uuid.UUID, *, limit: int = 100, offset: int = 0) -> Sequence[Booking]:
        q = select(Booking).where(Booking.provider_id == provider_id).order_by(Booking.time.asc(), Booking.id.asc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()


class StatusHistoryRepository:
    """Append-only; rows are never updated or deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, booking_id: uuid.UUID, status: str, timestamp: datetime) -> BookingStatusHistory:
        obj = BookingStatusHistory(booking_id=booking_id, status=status, timestamp=timestamp)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def last_timestamp(self, booking_id: uuid.UUID) -> datetime | None:
        res = await self.session.execute(
            select(func.max(BookingStatusHistory.timestamp)).where(BookingStatusHistory.booking_id == booking_id)
        )
        return res.scalar_one_or_none()

    async def list_for_booking(self, booking_id: uuid.UUID) -> list[BookingStatusHistory]:
        q = (
            select(BookingStatusHistory)
            .where(BookingStatusHistory.booking_id == booking_id)
            .order_by(BookingStatusHistory.timestamp.asc(), BookingStatusHistory.created_at.asc())
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())
