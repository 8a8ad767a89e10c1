from datetime import timedelta

import pytest

from roomlink.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    DuplicateEntryError,
    ErrorCode,
    InvalidTokenError,
    TokenExpiredError,
)
from roomlink.core.security import JWTManager, PasswordHasher
from roomlink.models.enums import StaffType, UserAccountStatus, UserRole
from roomlink.schemas.auth import RegisterRequest, StaffCreateRequest
from roomlink.services.auth_service import AuthService
from tests.conftest import NOW, PASSWORD


@pytest.fixture
def service(db, settings, jwt_manager, hasher, clock):
    return AuthService(db, settings, jwt_manager, hasher, clock=clock)


class TestPasswordHasher:

    def test_hash_and_verify(self, hasher):
        hashed = hasher.hash("correct horse")
        assert hashed != "correct horse"
        assert hasher.verify("correct horse", hashed)
        assert not hasher.verify("wrong horse", hashed)

    def test_malformed_hash_does_not_verify(self, hasher):
        assert not hasher.verify("anything", "not-a-bcrypt-hash")

    def test_rounds_are_bounded(self):
        with pytest.raises(ValueError):
            PasswordHasher(rounds=3)


class TestJWTManager:

    def test_round_trip_claims(self, jwt_manager):
        token = jwt_manager.create_access_token("user-1", additional_claims={"role": "host"})
        payload = jwt_manager.verify_token(token)
        assert payload["sub"] == "user-1"
        assert payload["role"] == "host"

    def test_expired_token(self, jwt_manager):
        token = jwt_manager.create_access_token("user-1", expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpiredError):
            jwt_manager.verify_token(token)

    def test_wrong_secret(self, jwt_manager):
        token = JWTManager(secret_key="other-secret").create_access_token("user-1")
        with pytest.raises(InvalidTokenError):
            jwt_manager.verify_token(token)


class TestRegistration:

    def test_register_returns_token_for_principal(self, service):
        user, token = service.register(
            RegisterRequest(name="Nia Wanjiru", email="Nia@Example.com", password="long-password")
        )

        assert user.email == "nia@example.com"
        assert user.role == UserRole.USER
        principal = service.principal_from_token(token)
        assert principal.user_id == user.id
        assert principal.role == UserRole.USER

    def test_hosts_can_self_register(self, service):
        user, _ = service.register(
            RegisterRequest(name="Host Person", email="h@example.com", password="long-password", role="host")
        )
        assert user.role == UserRole.HOST

    def test_admin_role_cannot_self_register(self):
        with pytest.raises(ValueError):
            RegisterRequest(name="Sneaky", email="s@example.com", password="long-password", role="admin")

    def test_duplicate_email(self, service, guest):
        with pytest.raises(DuplicateEntryError):
            service.register(RegisterRequest(name="Again", email=guest.email, password="long-password"))


class TestLogin:

    def test_successful_login_records_time(self, service, guest):
        user, token = service.login(guest.email, PASSWORD)

        assert user.id == guest.id
        assert user.last_login == NOW
        assert token

    def test_wrong_password(self, service, guest):
        with pytest.raises(AuthenticationError):
            service.login(guest.email, "not-the-password")
        assert guest.login_attempts == 1

    def test_unknown_email(self, service):
        with pytest.raises(AuthenticationError):
            service.login("nobody@example.com", PASSWORD)

    def test_lockout_after_repeated_failures(self, service, clock, guest):
        for _ in range(3):
            with pytest.raises(AuthenticationError):
                service.login(guest.email, "bad")

        assert guest.account_status == UserAccountStatus.LOCKED
        with pytest.raises(AccountLockedError):
            service.login(guest.email, PASSWORD)

        clock.advance(minutes=16)
        user, _ = service.login(guest.email, PASSWORD)
        assert user.account_status == UserAccountStatus.ACTIVE
        assert user.login_attempts == 0

    def test_success_resets_failure_count(self, service, guest):
        with pytest.raises(AuthenticationError):
            service.login(guest.email, "bad")
        service.login(guest.email, PASSWORD)
        assert guest.login_attempts == 0

    def test_suspended_account(self, service, db, guest):
        guest.account_status = UserAccountStatus.SUSPENDED
        db.commit()
        with pytest.raises(AuthorizationError) as exc:
            service.login(guest.email, PASSWORD)
        assert exc.value.error_code == ErrorCode.ACCOUNT_DISABLED

    def test_token_rejected_once_account_disabled(self, service, db, guest):
        _, token = service.login(guest.email, PASSWORD)
        guest.account_status = UserAccountStatus.DELETED
        db.commit()
        with pytest.raises(AuthorizationError):
            service.principal_from_token(token)


class TestUserAdministration:

    def staff_request(self, role=UserRole.STAFF, **extra):
        data = dict(
            name="Desk Person",
            email=f"{role.value}-new@example.com",
            password="long-password",
            role=role,
            staff_type=StaffType.RECEPTIONIST if role == UserRole.STAFF else None,
        )
        data.update(extra)
        return StaffCreateRequest(**data)

    def test_admin_creates_staff(self, service, admin, as_principal):
        user = service.create_staff(as_principal(admin), self.staff_request())
        assert user.role == UserRole.STAFF
        assert user.staff_type == StaffType.RECEPTIONIST

    def test_only_super_admin_creates_admins(self, service, admin, make_user, as_principal):
        with pytest.raises(AuthorizationError):
            service.create_staff(as_principal(admin), self.staff_request(UserRole.ADMIN))

        root = make_user(UserRole.SUPER_ADMIN)
        assert service.create_staff(as_principal(root), self.staff_request(UserRole.ADMIN)).role == UserRole.ADMIN

    def test_staff_requires_type(self):
        with pytest.raises(ValueError):
            self.staff_request(staff_type=None)

    def test_host_cannot_create_staff(self, service, host, as_principal):
        with pytest.raises(AuthorizationError):
            service.create_staff(as_principal(host), self.staff_request())

    def test_suspend_and_reactivate(self, service, admin, guest, as_principal):
        service.update_user_status(as_principal(admin), guest.id, UserAccountStatus.SUSPENDED)
        assert guest.account_status == UserAccountStatus.SUSPENDED

        service.update_user_status(as_principal(admin), guest.id, UserAccountStatus.ACTIVE)
        assert guest.account_status == UserAccountStatus.ACTIVE

    def test_cannot_change_own_status(self, service, admin, as_principal):
        with pytest.raises(AuthorizationError):
            service.update_user_status(as_principal(admin), admin.id, UserAccountStatus.SUSPENDED)

    def test_admin_cannot_touch_super_admin(self, service, admin, make_user, as_principal):
        root = make_user(UserRole.SUPER_ADMIN)
        with pytest.raises(AuthorizationError):
            service.update_user_status(as_principal(admin), root.id, UserAccountStatus.SUSPENDED)
