from fastapi import APIRouter
from marketplace.api.v1.endpoints import notifications, payment_webhooks, recurring, wallet

api_router = APIRouter()
api_router.include_router(recurring.router, prefix="/appointments/recurring", tags=["recurring-appointments"])
api_router.include_router(payment_webhooks.router, prefix="/payments/webhook", tags=["payment-webhooks"])
api_router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
