import uuid
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.base import utcnow
from carebook.core.config import Settings, settings as default_settings
from carebook.core.errors import (
    ValidationError, BookingNotFoundError, InvalidTransitionError, ConflictError, TransientError,
)
from carebook.modules.bookings.models import (
    Booking, BookingStatusHistory, STATUSES,
    STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELED, STATUS_RESCHEDULED, STATUS_COMPLETED,
)
from carebook.modules.bookings.repository import BookingRepository, StatusHistoryRepository

log = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELED},
    STATUS_CONFIRMED: {STATUS_CANCELED, STATUS_RESCHEDULED, STATUS_COMPLETED},
    STATUS_RESCHEDULED: {STATUS_CONFIRMED},
    STATUS_CANCELED: set(),
    STATUS_COMPLETED: set(),
}

_TICK = timedelta(microseconds=1)

def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())

def _next_timestamp(now: datetime, last: datetime | None) -> datetime:
    # history must be strictly ascending per booking, even if the clock stalls
    if last is None or now > last:
        return now
    return last + _TICK

class BookingLifecycleManager:
    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int | None = None,
    ):
        self.session = session
        self.settings = settings or default_settings
        self.clock = clock
        self.max_retries = self.settings.TRANSITION_MAX_RETRIES if max_retries is None else max_retries
        self.bookings = BookingRepository(session)
        self.history_rows = StatusHistoryRepository(session)

    async def create_booking(
        self,
        *,
        time: datetime,
        provider_id: uuid.UUID,
        patient_id: uuid.UUID | None = None,
        credit_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Insert a pending booking and its first history row.

        Runs in the caller's transaction; nothing is committed here.
        """
        now = now or self.clock()
        obj = await self.bookings.create(
            time=time,
            status=STATUS_PENDING,
            provider_id=provider_id,
            patient_id=patient_id,
            credit_id=credit_id,
        )
        await self.history_rows.append(obj.id, STATUS_PENDING, now)
        return obj

    async def transition(self, booking_id: uuid.UUID, new_status: str, *, expected_version: int | None = None) -> Booking:
        if new_status not in STATUSES:
            raise ValidationError(f"Unknown status '{new_status}'")

        for attempt in range(1, self.max_retries + 1):
            try:
                booking, previous, applied = await asyncio.wait_for(
                    self._apply(booking_id, new_status, expected_version),
                    timeout=self.settings.LOCK_TIMEOUT_SECONDS,
                )
                if applied:
                    await self.session.commit()
                    break
            except (asyncio.TimeoutError, OperationalError) as e:
                await self.session.rollback()
                if attempt == self.max_retries:
                    log.warning("Transition of booking %s to %s gave up after %s attempts", booking_id, new_status, attempt)
                    raise TransientError("Booking is locked; try again") from e
                delay = self.settings.RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
                log.info("Booking %s is locked (attempt %s/%s); retrying in %.3fs", booking_id, attempt, self.max_retries, delay)
                await asyncio.sleep(delay)
                continue
            except Exception:
                await self.session.rollback()
                raise

            await self.session.rollback()
            if expected_version is not None:
                raise ConflictError(f"Booking {booking_id} changed concurrently")
            log.info("Stale read on booking %s (attempt %s/%s); retrying", booking_id, attempt, self.max_retries)
        else:
            raise ConflictError(f"Booking {booking_id} kept changing; gave up after {self.max_retries} attempts")

        await self.session.refresh(booking)
        log.info("Booking %s %s -> %s (version %s)", booking_id, previous, new_status, booking.version)
        return booking

    async def _apply(self, booking_id: uuid.UUID, new_status: str, expected_version: int | None) -> tuple[Booking, str, bool]:
        # everything up to the commit; bounded by the lock timeout in transition()
        booking = await self.bookings.get(booking_id, fresh=True)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        if expected_version is not None and booking.version != expected_version:
            raise ConflictError(f"Booking {booking_id} is at version {booking.version}, not {expected_version}")
        if not can_transition(booking.status, new_status):
            raise InvalidTransitionError(booking.status, new_status)

        previous = booking.status
        ts = _next_timestamp(self.clock(), await self.history_rows.last_timestamp(booking_id))
        applied = await self.bookings.set_status_if_version(booking_id, booking.version, new_status, ts)
        if applied:
            await self.history_rows.append(booking_id, new_status, ts)
        return booking, previous, applied

    async def history(self, booking_id: uuid.UUID) -> list[BookingStatusHistory]:
        if await self.bookings.get(booking_id) is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return await self.history_rows.list_for_booking(booking_id)
