"""
API v1 router.

Aggregates every v1 endpoint module; mounted under ``settings.API_V1_STR``.
"""

from fastapi import APIRouter

from roomlink.api.v1 import auth, bookings, complaints, dashboard, hostels, payments, reviews

router = APIRouter(
    responses={
        400: {"description": "Bad Request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Not Found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"},
    }
)

router.include_router(auth.router)
router.include_router(hostels.router)
router.include_router(bookings.router)
router.include_router(payments.router)
router.include_router(reviews.router)
router.include_router(complaints.router)
router.include_router(dashboard.router)
