"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from snapfest.api.v1 import bookings, webhooks

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
