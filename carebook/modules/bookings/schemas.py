import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict
from carebook.modules.stats.schemas import ProviderStats

BookingStatus = Literal["pending", "confirmed", "canceled", "rescheduled", "completed"]

class BookingCreate(BaseModel):
    time: datetime
    provider_id: uuid.UUID
    patient_id: uuid.UUID | None = None

class BookingStatusChange(BaseModel):
    status: BookingStatus
    expected_version: int | None = None

class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    time: datetime
    status: str
    patient_id: uuid.UUID | None = None
    provider_id: uuid.UUID
    credit_id: uuid.UUID | None = None
    version: int
    created_at: datetime

class BookingList(BaseModel):
    bookings: list[BookingOut]
    stats: ProviderStats | None = None

class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    timestamp: datetime

class BookingHistory(BaseModel):
    booking_id: uuid.UUID
    history: list[StatusHistoryOut]
