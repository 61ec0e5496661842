import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.db import get_session
from carebook.modules.credits.schemas import CreditOut, PatientCredits
from carebook.modules.credits.service import CreditService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> CreditService:
    return CreditService(session)

@router.get("/{patient_id}", response_model=PatientCredits)
async def patient_credits(
    patient_id: uuid.UUID,
    service: CreditService = Depends(svc),
):
    credits, stats = await service.patient_overview(patient_id)
    return PatientCredits(
        patient_id=patient_id,
        credits=[CreditOut.model_validate(c) for c in credits],
        stats=stats,
    )
