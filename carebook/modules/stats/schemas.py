from pydantic import BaseModel

class ProviderStats(BaseModel):
    canceled: int = 0
    rescheduled: int = 0

class MonthlyCreditUsage(BaseModel):
    year: int
    month: int
    credits_used: int
    percentage_used: float
