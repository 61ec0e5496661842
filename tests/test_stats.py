import uuid
import pytest
from carebook.modules.bookings.allocation import AllocationCoordinator
from carebook.modules.bookings.lifecycle import BookingLifecycleManager
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.stats.schemas import ProviderStats
from carebook.modules.stats.service import StatisticsAggregator
from conftest import future, at


async def _book(db, provider_id, patient_id=None, *path, when=None):
    booking = await AllocationCoordinator(db).create_booking(when or future(), provider_id, patient_id)
    async with db.session() as s:
        mgr = BookingLifecycleManager(s)
        for status in path:
            await mgr.transition(booking.id, status)
    return booking


async def test_provider_stats_follow_current_status(db, make_user, make_credit):
    provider = await make_user("provider")
    other = await make_user("provider")
    for _ in range(6):
        await make_credit(provider.id)
    await make_credit(other.id)

    await _book(db, provider.id, None, "canceled")
    await _book(db, provider.id, None, "confirmed", "canceled")
    await _book(db, provider.id, None, "confirmed", "rescheduled")
    # rescheduled once but confirmed again: no longer counts
    await _book(db, provider.id, None, "confirmed", "rescheduled", "confirmed")
    await _book(db, provider.id, None, "confirmed", "completed")
    await _book(db, provider.id, None)
    await _book(db, other.id, None, "canceled")

    async with db.session() as s:
        stats = await StatisticsAggregator(s).provider_stats(provider.id)
        empty = await StatisticsAggregator(s).provider_stats(uuid.uuid4())

    assert stats == ProviderStats(canceled=2, rescheduled=1)
    assert empty == ProviderStats(canceled=0, rescheduled=0)


async def test_patient_monthly_usage(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    for _ in range(8):
        await make_credit(patient.id, days=4000)

    await _book(db, provider.id, patient.id, "confirmed", when=at(2031, 3, 5))
    await _book(db, provider.id, patient.id, "confirmed", when=at(2031, 1, 15))
    await _book(db, provider.id, patient.id, "confirmed", when=at(2031, 1, 28, 23))
    await _book(db, provider.id, patient.id, "confirmed", when=at(2030, 12, 31))
    # not confirmed: ignored
    await _book(db, provider.id, patient.id, when=at(2031, 3, 10))
    await _book(db, provider.id, patient.id, "canceled", when=at(2031, 4, 1))
    await _book(db, provider.id, patient.id, "confirmed", "rescheduled", when=at(2031, 5, 1))

    async with db.session() as s:
        rows = await StatisticsAggregator(s).patient_credit_stats(patient.id)

    assert [(r.year, r.month, r.credits_used) for r in rows] == [
        (2030, 12, 1),
        (2031, 1, 2),
        (2031, 3, 1),
    ]
    assert [r.percentage_used for r in rows] == pytest.approx([12.5, 25.0, 12.5])


async def test_patient_without_bookings_has_no_rows(db, make_user, make_credit):
    patient = await make_user("patient")
    await make_credit(patient.id)
    async with db.session() as s:
        assert await StatisticsAggregator(s).patient_credit_stats(patient.id) == []


async def test_percentage_is_defined_when_patient_owns_no_credits(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    foreign = await make_credit(provider.id)

    # a confirmed booking backed by someone else's credit
    async with db.session() as s:
        mgr = BookingLifecycleManager(s)
        booking = await mgr.create_booking(time=at(2031, 6, 1), provider_id=provider.id, patient_id=patient.id)
        await CreditLedger(s).claim_unused_credit(provider.id, booking.id, booking.created_at)
        await mgr.bookings.attach_credit(booking, foreign.id)
        await s.commit()
    async with db.session() as s:
        await BookingLifecycleManager(s).transition(booking.id, "confirmed")

    async with db.session() as s:
        rows = await StatisticsAggregator(s).patient_credit_stats(patient.id)

    assert len(rows) == 1
    assert rows[0].credits_used == 1
    assert rows[0].percentage_used == pytest.approx(100.0)


async def test_anonymous_bookings_never_reach_patient_stats(db, make_user, make_credit):
    provider = await make_user("provider")
    patient = await make_user("patient")
    await make_credit(provider.id)
    await make_credit(patient.id)

    await _book(db, provider.id, None, "confirmed", when=at(2031, 2, 2))

    async with db.session() as s:
        assert await StatisticsAggregator(s).patient_credit_stats(patient.id) == []
