import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey
from carebook.core.base import Base, TimestampedMixin, UTCDateTime

class Credit(Base, TimestampedMixin):
    type: Mapped[str] = mapped_column(String(48))  # category, e.g. consult | followup
    expiration_date: Mapped[datetime] = mapped_column(UTCDateTime())
    owner_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"), index=True)

    # set exactly once by a claim; cleared only by release()
    booking_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("booking.id", use_alter=True, name="fk_credit_booking_id"),
        nullable=True, unique=True,
    )

    @property
    def consumed(self) -> bool:
        return self.booking_id is not None
