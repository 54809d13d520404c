"""Payment endpoints. Every provider integration is still pending."""

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.core.exceptions import NotImplementedFeatureError

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/stripe/create-intent")
async def create_stripe_intent():
    raise NotImplementedFeatureError("Stripe integration not yet implemented")


@router.post("/paypal/create-order")
async def create_paypal_order():
    raise NotImplementedFeatureError("PayPal integration not yet implemented")


@router.post("/crypto/create-payment")
async def create_crypto_payment():
    raise NotImplementedFeatureError("Crypto integration not yet implemented")


@router.post("/confirm")
async def confirm_payment():
    raise NotImplementedFeatureError("Payment confirmation not yet implemented")


@router.get("/methods")
async def list_payment_methods():
    raise NotImplementedFeatureError("Payment methods not yet implemented")
