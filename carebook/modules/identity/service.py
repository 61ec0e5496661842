import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.errors import UserNotFoundError, ValidationError, ConflictError
from carebook.modules.identity.models import User, ROLES
from carebook.modules.identity.repository import UserRepository
from carebook.modules.identity.schemas import UserCreate

class IdentityService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def register(self, payload: UserCreate) -> User:
        unknown = set(payload.roles) - set(ROLES)
        if unknown:
            raise ValidationError(f"Unknown roles: {', '.join(sorted(unknown))}")
        try:
            obj = await self.users.create(**payload.model_dump())
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Email already registered: {payload.email}")
        return obj

    async def require(self, user_id: uuid.UUID, role: str | None = None) -> User:
        """Load a user, optionally insisting on a role. Raises UserNotFoundError."""
        obj = await self.users.get(user_id)
        if obj is None or (role is not None and not obj.has_role(role)):
            label = role or "user"
            raise UserNotFoundError(f"No {label} with id {user_id}")
        return obj
