from fastapi import APIRouter

from app.api.v1.routers import (
    disbursals,
    health,
    loan_applications,
    sanctions,
    verifications,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(loan_applications.router)
api_router.include_router(verifications.router)
api_router.include_router(sanctions.router)
api_router.include_router(disbursals.router)

__all__ = ["api_router"]
