import uuid
from datetime import timedelta
import pytest
from carebook.core.base import utcnow
from carebook.core.errors import NoCreditAvailableError, ValidationError
from carebook.modules.bookings.lifecycle import BookingLifecycleManager
from carebook.modules.credits.models import Credit
from carebook.modules.credits.repository import CreditLedger
from conftest import future


async def _pending_booking(session, provider_id, patient_id=None):
    return await BookingLifecycleManager(session).create_booking(
        time=future(), provider_id=provider_id, patient_id=patient_id,
    )


async def test_claim_picks_soonest_expiring_credit(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    later = await make_credit(patient.id, days=60)
    sooner = await make_credit(patient.id, days=10)

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, patient.id)
        credit = await CreditLedger(s).claim_unused_credit(patient.id, booking.id, utcnow())
        await s.commit()

    assert credit.id == sooner.id
    assert credit.booking_id == booking.id
    assert credit.consumed

    async with db.session() as s:
        untouched = await s.get(Credit, later.id)
        assert untouched.booking_id is None


async def test_claim_skips_expired_and_consumed_credits(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    await make_credit(patient.id, days=1)

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, patient.id)
        # two days from now the only credit has expired
        with pytest.raises(NoCreditAvailableError):
            await CreditLedger(s).claim_unused_credit(patient.id, booking.id, utcnow() + timedelta(days=2))
        await s.rollback()

    async with db.session() as s:
        first = await _pending_booking(s, provider.id, patient.id)
        await CreditLedger(s).claim_unused_credit(patient.id, first.id, utcnow())
        second = await _pending_booking(s, provider.id, patient.id)
        with pytest.raises(NoCreditAvailableError):
            await CreditLedger(s).claim_unused_credit(patient.id, second.id, utcnow())


async def test_claim_is_scoped_to_owner(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    other = await make_user("patient")
    await make_credit(other.id)

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, patient.id)
        with pytest.raises(NoCreditAvailableError):
            await CreditLedger(s).claim_unused_credit(patient.id, booking.id, utcnow())
        await s.rollback()

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, None)
        credit = await CreditLedger(s).claim_unused_credit(None, booking.id, utcnow())
        assert credit.owner_id == other.id


async def test_release_clears_association(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    credit = await make_credit(patient.id)

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, patient.id)
        await CreditLedger(s).claim_unused_credit(patient.id, booking.id, utcnow())
        await s.commit()

    async with db.session() as s:
        await CreditLedger(s).release(credit.id)
        await s.commit()

    async with db.session() as s:
        assert (await s.get(Credit, credit.id)).booking_id is None


async def test_sum_available_counts_every_owned_credit_with_floor(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    lonely = await make_user("patient")
    for _ in range(3):
        await make_credit(patient.id)

    async with db.session() as s:
        booking = await _pending_booking(s, provider.id, patient.id)
        await CreditLedger(s).claim_unused_credit(patient.id, booking.id, utcnow())
        await s.commit()

    async with db.session() as s:
        ledger = CreditLedger(s)
        # consumed credits still count towards what the patient ever owned
        assert await ledger.sum_available_credits(patient.id) == 3
        assert await ledger.sum_available_credits(lonely.id) == 1
        assert await ledger.sum_available_credits(uuid.uuid4()) == 1


async def test_add_rejects_expired_credit(session, make_user):
    patient = await make_user("patient")
    with pytest.raises(ValidationError):
        await CreditLedger(session).add(patient.id, "consult", utcnow() - timedelta(minutes=1))


async def test_add_reads_naive_expiration_as_utc(db, make_user):
    patient = await make_user("patient")
    expires = future(5)
    async with db.session() as s:
        ledger = CreditLedger(s)
        with pytest.raises(ValidationError):
            await ledger.add(patient.id, "consult", (utcnow() - timedelta(minutes=1)).replace(tzinfo=None))
        credit = await ledger.add(patient.id, "consult", expires.replace(tzinfo=None))
        await s.commit()

    async with db.session() as s:
        stored = await s.get(Credit, credit.id)
    assert stored.expiration_date == expires
