import uuid
from typing import Literal
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.db import Database, get_session, get_database
from carebook.modules.bookings.allocation import AllocationCoordinator
from carebook.modules.bookings.schemas import (
    BookingCreate, BookingStatusChange, BookingOut, BookingList, BookingHistory, StatusHistoryOut,
)
from carebook.modules.bookings.service import BookingService

router = APIRouter()

def svc(
    session: AsyncSession = Depends(get_session),
    db: Database = Depends(get_database),
) -> BookingService:
    return BookingService(session, db.settings)

def coordinator(db: Database = Depends(get_database)) -> AllocationCoordinator:
    return AllocationCoordinator(db)

@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    allocator: AllocationCoordinator = Depends(coordinator),
):
    return await allocator.create_booking(payload.time, payload.provider_id, payload.patient_id)

@router.get("", response_model=BookingList)
async def list_bookings(
    user_id: uuid.UUID,
    role: Literal["patient", "provider"],
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: BookingService = Depends(svc),
):
    bookings, stats = await service.list_for_user(user_id, role, limit=limit, offset=offset)
    return BookingList(bookings=[BookingOut.model_validate(b) for b in bookings], stats=stats)

@router.post("/{booking_id}/status", response_model=BookingOut)
async def change_booking_status(
    booking_id: uuid.UUID,
    payload: BookingStatusChange,
    service: BookingService = Depends(svc),
):
    return await service.change_status(booking_id, payload.status, payload.expected_version)

@router.get("/{booking_id}/history", response_model=BookingHistory)
async def booking_history(
    booking_id: uuid.UUID,
    service: BookingService = Depends(svc),
):
    rows = await service.history(booking_id)
    return BookingHistory(booking_id=booking_id, history=[StatusHistoryOut.model_validate(r) for r in rows])
