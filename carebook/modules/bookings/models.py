import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, Index
from carebook.core.base import Base, TimestampedMixin, UTCDateTime

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELED = "canceled"
STATUS_RESCHEDULED = "rescheduled"
STATUS_COMPLETED = "completed"

STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELED, STATUS_RESCHEDULED, STATUS_COMPLETED)

class Booking(Base, TimestampedMixin):
    time: Mapped[datetime] = mapped_column(UTCDateTime())
    status: Mapped[str] = mapped_column(String(24), default=STATUS_PENDING, index=True)

    # null for anonymous bookings
    patient_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("user.id"), nullable=True, index=True)
    provider_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"), index=True)
    credit_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("credit.id"), nullable=True, unique=True)

class BookingStatusHistory(Base, TimestampedMixin):
    booking_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("booking.id"))
    status: Mapped[str] = mapped_column(String(24))
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index("ix_booking_status_history_booking_ts", "booking_id", "timestamp"),
    )
