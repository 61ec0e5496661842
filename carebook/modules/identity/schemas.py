import uuid
from typing import Literal
from pydantic import BaseModel, Field

class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    roles: list[Literal["patient", "provider"]] = Field(default_factory=list)

class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    roles: list[str]
