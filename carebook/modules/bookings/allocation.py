import uuid
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from carebook.core.base import utcnow
from carebook.core.db import Database
from carebook.core.errors import ValidationError, ConflictError, TransientError, InternalError
from carebook.core.validation import coerce_uuid, coerce_utc
from carebook.modules.bookings.lifecycle import BookingLifecycleManager
from carebook.modules.bookings.models import Booking
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.identity.models import ROLE_PATIENT, ROLE_PROVIDER
from carebook.modules.identity.service import IdentityService

log = logging.getLogger(__name__)

class AllocationCoordinator:
    """Creates bookings backed by a freshly claimed credit.

    Claim, booking row and initial history row commit together or not at
    all. Lost races and lock timeouts are retried with backoff a bounded
    number of times before the retryable error reaches the caller.
    """

    def __init__(self, db: Database, *, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.settings = db.settings
        self.clock = clock

    def funding_owner(self, provider_id: uuid.UUID, patient_id: uuid.UUID | None) -> uuid.UUID | None:
        if patient_id is not None:
            return patient_id
        if self.settings.ANONYMOUS_FUNDING == "provider":
            return provider_id
        return None  # "any": unrestricted pool

    async def create_booking(self, time: Any, provider_id: Any, patient_id: Any = None) -> Booking:
        when = coerce_utc(time, "time")
        provider_id = coerce_uuid(provider_id, "provider_id")
        patient_id = coerce_uuid(patient_id, "patient_id") if patient_id is not None else None
        if when <= self.clock():
            raise ValidationError("time must be in the future")

        async with self.db.session() as session:
            identity = IdentityService(session)
            await identity.require(provider_id, ROLE_PROVIDER)
            if patient_id is not None:
                await identity.require(patient_id, ROLE_PATIENT)

        owner = self.funding_owner(provider_id, patient_id)
        attempts = self.settings.ALLOCATION_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                return await self._allocate_once(when, provider_id, patient_id, owner)
            except (ConflictError, TransientError) as e:
                if attempt == attempts:
                    log.warning("Allocation for provider %s gave up after %s attempts: %s", provider_id, attempts, e.message)
                    raise
                delay = self.settings.RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
                log.info("Allocation attempt %s/%s failed (%s); retrying in %.3fs", attempt, attempts, e.code, delay)
                await asyncio.sleep(delay)

    async def _stage(self, session, when: datetime, provider_id: uuid.UUID, patient_id: uuid.UUID | None, owner: uuid.UUID | None):
        now = self.clock()
        lifecycle = BookingLifecycleManager(session, settings=self.settings, clock=self.clock)
        ledger = CreditLedger(session, row_locks=self.db.supports_row_locks)

        booking = await lifecycle.create_booking(time=when, provider_id=provider_id, patient_id=patient_id, now=now)
        credit = await ledger.claim_unused_credit(owner, booking.id, now)
        await lifecycle.bookings.attach_credit(booking, credit.id)
        return booking, credit

    async def _allocate_once(self, when: datetime, provider_id: uuid.UUID, patient_id: uuid.UUID | None, owner: uuid.UUID | None) -> Booking:
        async with self.db.session() as session:
            try:
                # only the lock waits are bounded; a commit that was sent must be seen through
                booking, credit = await asyncio.wait_for(
                    self._stage(session, when, provider_id, patient_id, owner),
                    timeout=self.settings.LOCK_TIMEOUT_SECONDS,
                )
                await session.commit()
            except asyncio.TimeoutError as e:
                await session.rollback()
                raise TransientError("Timed out waiting for the credit ledger") from e
            except OperationalError as e:
                await session.rollback()
                raise TransientError("Credit ledger is busy; try again") from e
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("Allocation failed for provider %s", provider_id)
                raise InternalError("Could not create booking") from e
            except Exception:
                await session.rollback()
                raise
        log.info("Booking %s created with credit %s (patient=%s, provider=%s)", booking.id, credit.id, patient_id, provider_id)
        return booking
