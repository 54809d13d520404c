"""API router."""

from fastapi import APIRouter

from app.api.v1.endpoints import admin, auth, payments, vps

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(vps.router, prefix="/vps", tags=["VPS"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
