"""
FastAPI dependencies: settings, database session, current principal and
service factories.

Cross-cutting collaborators (event bus, notifier, payment gateways) live on
``app.state`` and are read per request, so tests can swap them or override
the factory functions with ``app.dependency_overrides``.
"""

from typing import Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from roomlink.config.settings import Settings, get_settings
from roomlink.core.events import EventPublisher
from roomlink.core.exceptions import AuthenticationError
from roomlink.core.notifications import Notifier
from roomlink.core.pagination import PaginationParams, normalize_pagination
from roomlink.core.permissions import Permission, Principal, ensure_permission
from roomlink.core.security import JWTManager, PasswordHasher
from roomlink.db.session import get_db
from roomlink.integrations.base import PaymentGateway
from roomlink.models.enums import PaymentProvider
from roomlink.services.auth_service import AuthService
from roomlink.services.availability import AvailabilityChecker
from roomlink.services.booking_service import BookingService
from roomlink.services.complaint_service import ComplaintService
from roomlink.services.dashboard_service import DashboardService
from roomlink.services.hostel_service import HostelService
from roomlink.services.payment_service import PaymentService
from roomlink.services.review_service import ReviewService
from roomlink.utils.datetime_utils import Clock, utcnow

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ------------------------------------------------------------------ #
# Infrastructure
# ------------------------------------------------------------------ #
def get_app_settings() -> Settings:
    return get_settings()


def get_clock() -> Clock:
    return utcnow


def get_event_publisher(request: Request) -> Optional[EventPublisher]:
    return getattr(request.app.state, "event_bus", None)


def get_notifier(request: Request) -> Optional[Notifier]:
    return getattr(request.app.state, "notifier", None)


def get_payment_gateways(request: Request) -> Dict[PaymentProvider, PaymentGateway]:
    return getattr(request.app.state, "payment_gateways", {})


def get_jwt_manager(settings: Settings = Depends(get_app_settings)) -> JWTManager:
    return JWTManager(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        access_token_expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def get_password_hasher(settings: Settings = Depends(get_app_settings)) -> PasswordHasher:
    return PasswordHasher(rounds=settings.PASSWORD_BCRYPT_ROUNDS)


def get_pagination(page: int = 1, limit: int = 20) -> PaginationParams:
    return normalize_pagination(page, limit)


# ------------------------------------------------------------------ #
# Service factories
# ------------------------------------------------------------------ #
def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
    hasher: PasswordHasher = Depends(get_password_hasher),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(db, settings, jwt_manager, hasher, clock=clock)


def get_hostel_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock),
) -> HostelService:
    return HostelService(db, settings, publisher, clock)


def get_availability_checker(db: Session = Depends(get_db)) -> AvailabilityChecker:
    return AvailabilityChecker(db)


def get_booking_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    notifier: Optional[Notifier] = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(db, settings, publisher, notifier, clock)


def get_payment_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    gateways: Dict[PaymentProvider, PaymentGateway] = Depends(get_payment_gateways),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    notifier: Optional[Notifier] = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> PaymentService:
    return PaymentService(db, settings, gateways, publisher, notifier, clock)


def get_review_service(
    db: Session = Depends(get_db),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock),
) -> ReviewService:
    return ReviewService(db, publisher, clock)


def get_complaint_service(
    db: Session = Depends(get_db),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    notifier: Optional[Notifier] = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> ComplaintService:
    return ComplaintService(db, publisher, notifier, clock)


def get_dashboard_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> DashboardService:
    return DashboardService(db, clock)


# ------------------------------------------------------------------ #
# Current principal
# ------------------------------------------------------------------ #
def _extract_token(request: Request, bearer: Optional[str], settings: Settings) -> Optional[str]:
    return bearer or request.cookies.get(settings.AUTH_COOKIE_NAME)


def get_current_principal(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service),
) -> Principal:
    """Resolve the caller from the bearer header or the auth cookie."""
    token = _extract_token(request, bearer, settings)
    if not token:
        raise AuthenticationError("Not authenticated")
    principal = auth_service.principal_from_token(token)
    request.state.user_id = principal.user_id
    return principal


def get_optional_principal(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[Principal]:
    """Like ``get_current_principal`` but anonymous callers get ``None``."""
    token = _extract_token(request, bearer, settings)
    if not token:
        return None
    return auth_service.principal_from_token(token)


def require_permission(permission: Permission) -> Callable[..., Principal]:
    """
    Dependency factory guarding a route by capability.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_permission(Permission.DASHBOARD_ADMIN))])
    """

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        ensure_permission(principal, permission)
        return principal

    return dependency
