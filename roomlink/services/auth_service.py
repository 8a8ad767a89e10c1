"""
Registration, login with lockout, and admin user management.
"""

from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from roomlink.config.settings import Settings
from roomlink.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    DuplicateEntryError,
    ErrorCode,
    UserNotFoundError,
)
from roomlink.core.permissions import Permission, Principal, ensure_permission
from roomlink.core.security import JWTManager, PasswordHasher
from roomlink.models.enums import UserAccountStatus, UserRole
from roomlink.models.user import User
from roomlink.repositories.user_repository import UserRepository
from roomlink.schemas.auth import RegisterRequest, StaffCreateRequest
from roomlink.services.base import BaseService
from roomlink.utils.datetime_utils import Clock, utcnow

_DISABLED_STATUSES = (UserAccountStatus.SUSPENDED, UserAccountStatus.DELETED)


class AuthService(BaseService):

    def __init__(
        self,
        db: Session,
        settings: Settings,
        jwt_manager: JWTManager,
        password_hasher: PasswordHasher,
        clock: Clock = utcnow,
    ):
        super().__init__(db, clock=clock)
        self.settings = settings
        self.jwt = jwt_manager
        self.hasher = password_hasher
        self.users = UserRepository(db)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, user: User) -> str:
        return self.jwt.create_access_token(
            user.id,
            additional_claims={
                "email": user.email,
                "role": user.role.value,
                "staff_type": user.staff_type.value if user.staff_type else None,
            },
        )

    def principal_from_token(self, token: str) -> Principal:
        """Resolve a bearer token to the current user, rejecting disabled accounts."""
        payload = self.jwt.verify_token(token)
        user = self.users.get_by_id(payload["sub"])
        if user is None:
            raise AuthenticationError("User no longer exists")
        if user.account_status in _DISABLED_STATUSES:
            raise AuthorizationError("Account is disabled", ErrorCode.ACCOUNT_DISABLED)
        return Principal(
            user_id=user.id,
            role=user.role,
            email=user.email,
            staff_type=user.staff_type,
        )

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, data: RegisterRequest) -> Tuple[User, str]:
        user = self._create_user(
            name=data.name,
            email=data.email,
            password=data.password,
            phone=data.phone,
            role=data.role,
        )
        self._logger.info(f"User registered: {user.id}", extra={"user_id": user.id})
        return user, self.issue_token(user)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Authenticate with email and password.

        Repeated failures lock the account for ``LOCKOUT_MINUTES``; an expired
        lock is lifted on the next attempt.
        """
        now = self.clock()
        user = self.users.get_by_email(email)
        if user is None:
            raise AuthenticationError("Invalid email or password")

        if user.account_status in _DISABLED_STATUSES:
            raise AuthorizationError(
                f"Account is {user.account_status.value}", ErrorCode.ACCOUNT_DISABLED
            )

        if user.account_status == UserAccountStatus.LOCKED:
            if user.lockout_until and user.lockout_until > now:
                raise AccountLockedError(user.lockout_until)
            user.account_status = UserAccountStatus.ACTIVE
            user.login_attempts = 0
            user.lockout_until = None

        if not self.hasher.verify(password, user.password_hash):
            self._record_failed_login(user, now)
            raise AuthenticationError("Invalid email or password")

        user.login_attempts = 0
        user.lockout_until = None
        user.last_login = now
        self.db.commit()
        self._logger.info(f"User logged in: {user.id}", extra={"user_id": user.id})
        return user, self.issue_token(user)

    def _record_failed_login(self, user: User, now) -> None:
        user.login_attempts += 1
        if user.login_attempts >= self.settings.MAX_LOGIN_ATTEMPTS:
            user.account_status = UserAccountStatus.LOCKED
            user.lockout_until = now + timedelta(minutes=self.settings.LOCKOUT_MINUTES)
            self._logger.warning(
                f"Account locked after {user.login_attempts} failed attempts",
                extra={"user_id": user.id},
            )
        self.db.commit()

    # ------------------------------------------------------------------
    # Profile and administration
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def create_staff(self, principal: Principal, data: StaffCreateRequest) -> User:
        ensure_permission(principal, Permission.USER_MANAGE)
        if data.role == UserRole.ADMIN and principal.role != UserRole.SUPER_ADMIN:
            raise AuthorizationError("Only a super admin can create admin accounts")
        user = self._create_user(
            name=data.name,
            email=data.email,
            password=data.password,
            phone=data.phone,
            role=data.role,
            staff_type=data.staff_type,
        )
        self._logger.info(f"Staff account created: {user.id}", extra={"user_id": user.id})
        return user

    def update_user_status(self, principal: Principal, user_id: str, status: UserAccountStatus) -> User:
        ensure_permission(principal, Permission.USER_MANAGE)
        user = self.get_user(user_id)
        if user.id == principal.user_id:
            raise AuthorizationError("You cannot change the status of your own account")
        if user.role == UserRole.SUPER_ADMIN and principal.role != UserRole.SUPER_ADMIN:
            raise AuthorizationError("Only a super admin can change a super admin account")

        user.account_status = status
        if status == UserAccountStatus.ACTIVE:
            user.login_attempts = 0
            user.lockout_until = None
        self.db.commit()
        self._logger.info(
            f"User {user.id} status set to {status.value}",
            extra={"user_id": user.id},
        )
        return user

    def _create_user(self, name: str, email: str, password: str, phone: Optional[str],
                     role: UserRole, staff_type=None) -> User:
        if self.users.email_exists(email):
            raise DuplicateEntryError("A user with this email already exists", field="email")
        user = User(
            name=name,
            email=email.strip().lower(),
            phone=phone,
            password_hash=self.hasher.hash(password),
            role=role,
            staff_type=staff_type,
        )
        with self.transaction():
            self.users.add(user)
        return user
