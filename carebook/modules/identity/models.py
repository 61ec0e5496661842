from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON, Index
from carebook.core.base import Base, TimestampedMixin

ROLE_PATIENT = "patient"
ROLE_PROVIDER = "provider"
ROLES = (ROLE_PATIENT, ROLE_PROVIDER)

class User(Base, TimestampedMixin):
    email: Mapped[str] = mapped_column(String(320))
    first_name: Mapped[str] = mapped_column(String(120))
    last_name: Mapped[str] = mapped_column(String(120))
    roles: Mapped[list] = mapped_column(JSON, default=list)  # subset of ROLES

    __table_args__ = (
        Index("ux_user_email", "email", unique=True),
    )

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])
