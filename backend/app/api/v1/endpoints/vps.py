"""VPS configurator endpoints: plan catalogue, price calculator, order stubs."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_current_user, get_optional_user
from app.core.exceptions import NotImplementedFeatureError
from app.core.rate_limit import RATE_LIMITS, limiter
from app.models.user import User
from app.schemas import ApiResponse, PriceBreakdown, PriceData, PriceRequest
from app.services.pricing import VPSConfiguration, calculate_price, plan_catalogue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/plans", response_model=ApiResponse[dict])
async def get_plans() -> ApiResponse[dict]:
    """Available VPS configuration options."""
    return ApiResponse(data=plan_catalogue())


@router.post("/calculate-price", response_model=ApiResponse[PriceData])
@limiter.limit(RATE_LIMITS["api_read"])
async def calculate_vps_price(
    request: Request,
    price_request: PriceRequest,
    current_user: Optional[User] = Depends(get_optional_user),
) -> ApiResponse[PriceData]:
    """Monthly price for a configuration. Identity is optional."""
    quote = calculate_price(
        VPSConfiguration(
            cpu_cores=price_request.cpu_cores,
            ram_gb=price_request.ram_gb,
            storage_gb=price_request.storage_gb,
            operating_system=price_request.operating_system,
            datacenter=price_request.datacenter,
        )
    )
    logger.debug(
        "Price calculated",
        extra={
            "user_id": str(current_user.id) if current_user else None,
            "total": str(quote.total),
        },
    )
    return ApiResponse(
        data=PriceData(
            total_price=float(quote.total),
            breakdown=PriceBreakdown(
                cpu=float(quote.cpu),
                ram=float(quote.ram),
                storage=float(quote.storage),
                operating_system=float(quote.operating_system),
            ),
        )
    )


@router.post("/orders", dependencies=[Depends(get_current_user)])
async def create_order():
    raise NotImplementedFeatureError("VPS ordering not yet implemented")


@router.get("/orders", dependencies=[Depends(get_current_user)])
async def list_orders():
    raise NotImplementedFeatureError("VPS order history not yet implemented")


@router.get("/instances", dependencies=[Depends(get_current_user)])
async def list_instances():
    raise NotImplementedFeatureError("VPS instances not yet implemented")
