from typing import Any
from sqlalchemy.ext.asyncio import AsyncSession
from carebook.core.validation import coerce_uuid
from carebook.modules.credits.models import Credit
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.identity.models import ROLE_PATIENT
from carebook.modules.identity.service import IdentityService
from carebook.modules.stats.schemas import MonthlyCreditUsage
from carebook.modules.stats.service import StatisticsAggregator

class CreditService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = CreditLedger(session)
        self.identity = IdentityService(session)
        self.stats = StatisticsAggregator(session)

    async def patient_overview(self, patient_id: Any) -> tuple[list[Credit], list[MonthlyCreditUsage]]:
        patient_id = coerce_uuid(patient_id, "patient_id")
        await self.identity.require(patient_id, ROLE_PATIENT)
        credits = await self.ledger.list_for_owner(patient_id)
        return list(credits), await self.stats.patient_credit_stats(patient_id)
