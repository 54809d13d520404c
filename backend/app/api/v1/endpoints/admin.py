"""Administration endpoints (ADMIN and SUPER_ADMIN only)."""

from fastapi import APIRouter, Depends

from app.api.deps import require_admin
from app.core.exceptions import NotImplementedFeatureError

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/orders")
async def list_orders():
    raise NotImplementedFeatureError("Admin order management not yet implemented")


@router.post("/orders/{order_id}/approve")
async def approve_order(order_id: str):
    raise NotImplementedFeatureError("Order approval not yet implemented")


@router.post("/orders/{order_id}/reject")
async def reject_order(order_id: str):
    raise NotImplementedFeatureError("Order rejection not yet implemented")


@router.get("/users")
async def list_users():
    raise NotImplementedFeatureError("User management not yet implemented")


@router.post("/users/{user_id}/suspend")
async def suspend_user(user_id: str):
    raise NotImplementedFeatureError("User suspension not yet implemented")


@router.get("/infrastructure/status")
async def infrastructure_status():
    raise NotImplementedFeatureError("Infrastructure monitoring not yet implemented")


@router.get("/terraform/executions")
async def terraform_executions():
    raise NotImplementedFeatureError("Terraform monitoring not yet implemented")
