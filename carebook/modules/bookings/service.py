import uuid
from typing import Any
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.config import Settings
from carebook.core.errors import ValidationError
from carebook.core.validation import coerce_uuid
from carebook.modules.bookings.lifecycle import BookingLifecycleManager
from carebook.modules.bookings.models import Booking, BookingStatusHistory
from carebook.modules.bookings.repository import BookingRepository
from carebook.modules.identity.models import ROLES, ROLE_PROVIDER
from carebook.modules.identity.service import IdentityService
from carebook.modules.stats.schemas import ProviderStats
from carebook.modules.stats.service import StatisticsAggregator

class BookingService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.bookings = BookingRepository(session)
        self.lifecycle = BookingLifecycleManager(session, settings=settings)
        self.identity = IdentityService(session)
        self.stats = StatisticsAggregator(session)

    async def list_for_user(self, user_id: Any, role: str, *, limit: int = 100, offset: int = 0) -> tuple[list[Booking], ProviderStats | None]:
        """Bookings where the user acts in `role`; providers also get their stats.

        The role comes from the caller. It is never guessed from the rows.
        """
        user_id = coerce_uuid(user_id, "user_id")
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        await self.identity.require(user_id, role)

        if role == ROLE_PROVIDER:
            rows = await self.bookings.list_for_provider(user_id, limit=limit, offset=offset)
            return list(rows), await self.stats.provider_stats(user_id)
        rows = await self.bookings.list_for_patient(user_id, limit=limit, offset=offset)
        return list(rows), None

    async def history(self, booking_id: Any) -> list[BookingStatusHistory]:
        return await self.lifecycle.history(coerce_uuid(booking_id, "booking_id"))

    async def change_status(self, booking_id: Any, status: str, expected_version: int | None = None) -> Booking:
        return await self.lifecycle.transition(coerce_uuid(booking_id, "booking_id"), status, expected_version=expected_version)
