import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from carebook.modules.stats.schemas import MonthlyCreditUsage

class CreditOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    expiration_date: datetime
    owner_id: uuid.UUID
    booking_id: uuid.UUID | None = None

class PatientCredits(BaseModel):
    patient_id: uuid.UUID
    credits: list[CreditOut]
    stats: list[MonthlyCreditUsage]
