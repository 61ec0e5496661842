import uuid
import logging
from datetime import datetime
from typing import Sequence
from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.base import utcnow
from carebook.core.errors import NoCreditAvailableError, ConflictError, ValidationError
from carebook.core.validation import coerce_utc
from carebook.modules.credits.models import Credit

log = logging.getLogger(__name__)

class CreditLedger:
    """Claim/release of credits and availability counts.

    Every method runs in the caller's session; the caller owns commit and
    rollback so a claim can share a transaction with the booking it funds.
    """

    def __init__(self, session: AsyncSession, *, row_locks: bool = False, candidate_limit: int = 10):
        self.session = session
        self.row_locks = row_locks
        self.candidate_limit = candidate_limit

    async def add(self, owner_id: uuid.UUID, type: str, expiration_date: datetime, *, now: datetime | None = None) -> Credit:
        expiration_date = coerce_utc(expiration_date, "expiration_date")
        if expiration_date <= (now or utcnow()):
            raise ValidationError("expiration_date must be in the future")
        obj = Credit(owner_id=owner_id, type=type, expiration_date=expiration_date)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, credit_id: uuid.UUID) -> Credit | None:
        return await self.session.get(Credit, credit_id)

    async def list_for_owner(self, owner_id: uuid.UUID) -> Sequence[Credit]:
        q = select(Credit).where(Credit.owner_id == owner_id).order_by(Credit.expiration_date.asc(), Credit.id.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def _candidates(self, owner_id: uuid.UUID | None, now: datetime) -> list[uuid.UUID]:
        cond = [Credit.booking_id.is_(None), Credit.expiration_date > now]
        if owner_id is not None:
            cond.append(Credit.owner_id == owner_id)
        q = (
            select(Credit.id)
            .where(and_(*cond))
            .order_by(Credit.expiration_date.asc(), Credit.id.asc())
            .limit(self.candidate_limit)
        )
        if self.row_locks:
            # SELECT ... FOR UPDATE SKIP LOCKED: rows held by another claimant are passed over
            q = q.with_for_update(skip_locked=True)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def claim_unused_credit(self, owner_id: uuid.UUID | None, booking_id: uuid.UUID, now: datetime) -> Credit:
        """Attach one unused, unexpired credit of `owner_id` to `booking_id`.

        `owner_id=None` draws from every owner's pool. The swap only succeeds
        while `booking_id IS NULL`, so two claimants can never both win the
        same row. Raises NoCreditAvailableError when nothing is left and
        ConflictError when every candidate was lost to a concurrent claim.
        """
        candidates = await self._candidates(owner_id, now)
        if not candidates:
            raise NoCreditAvailableError()
        for credit_id in candidates:
            res = await self.session.execute(
                update(Credit)
                .where(and_(Credit.id == credit_id, Credit.booking_id.is_(None)))
                .values(booking_id=booking_id, version=Credit.version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 1:
                credit = await self.session.get(Credit, credit_id, populate_existing=True)
                log.debug("Claimed credit %s for booking %s", credit_id, booking_id)
                return credit
            log.debug("Credit %s taken by a concurrent claim; trying next", credit_id)
        raise ConflictError("Lost the race for every candidate credit")

    async def release(self, credit_id: uuid.UUID) -> None:
        await self.session.execute(
            update(Credit)
            .where(Credit.id == credit_id)
            .values(booking_id=None, version=Credit.version + 1)
            .execution_options(synchronize_session=False)
        )
        log.info("Released credit %s", credit_id)

    async def sum_available_credits(self, owner_id: uuid.UUID) -> int:
        # denominator for usage percentages: every credit ever owned, floored at 1
        res = await self.session.execute(select(func.count(Credit.id)).where(Credit.owner_id == owner_id))
        return max(1, res.scalar_one() or 0)
