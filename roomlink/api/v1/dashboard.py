"""
Role dashboards.

The aggregates have no fixed schema, so the routes skip response models and
let FastAPI encode Decimal totals as JSON numbers.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from roomlink.api.deps import get_current_principal, get_dashboard_service
from roomlink.core.constants import TOP_HOSTELS_LIMIT, TREND_DAYS_DEFAULT, TREND_DAYS_MAX
from roomlink.core.permissions import Principal
from roomlink.services.dashboard_service import DashboardService
from roomlink.utils.datetime_utils import to_naive_utc

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _envelope(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "message": None, "data": data}


@router.get("/admin", response_model=None)
def admin_dashboard(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    principal: Principal = Depends(get_current_principal),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return _envelope(service.admin_dashboard(
        principal,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
    ))


@router.get("/admin/top-hostels", response_model=None)
def top_hostels(
    limit: int = Query(TOP_HOSTELS_LIMIT, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return _envelope({"hostels": service.top_hostels(principal, limit)})


@router.get("/admin/trends", response_model=None)
def trends(
    days: int = Query(TREND_DAYS_DEFAULT, ge=1, le=TREND_DAYS_MAX),
    principal: Principal = Depends(get_current_principal),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return _envelope(service.trends(principal, days))


@router.get("/host", response_model=None)
def host_dashboard(
    principal: Principal = Depends(get_current_principal),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return _envelope(service.host_dashboard(principal))


@router.get("/staff", response_model=None)
def staff_dashboard(
    principal: Principal = Depends(get_current_principal),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return _envelope(service.staff_dashboard(principal))
