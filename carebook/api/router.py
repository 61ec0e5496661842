from fastapi import APIRouter
from carebook.modules.bookings.router import router as bookings_router
from carebook.modules.credits.router import router as credits_router

api_router = APIRouter()
api_router.include_router(bookings_router, prefix="/bookings", tags=["bookings"])
api_router.include_router(credits_router, prefix="/credits", tags=["credits"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
