import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.modules.identity.models import User

class UserRepository:
    def __init__(self, session: AsyncSession):
        self.s = session

    async def create(self, *, email: str, first_name: str, last_name: str, roles: list[str]) -> User:
        obj = User(email=email.strip().lower(), first_name=first_name, last_name=last_name, roles=sorted(set(roles)))
        self.s.add(obj); await self.s.flush(); return obj

    async def get(self, user_id: uuid.UUID) -> User | None:
        return await self.s.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        r = await self.s.execute(select(User).where(User.email == email.strip().lower())); return r.scalar_one_or_none()
