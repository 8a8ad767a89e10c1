from roomlink.core.security.jwt_handler import JWTManager
from roomlink.core.security.password_hasher import PasswordHasher

__all__ = ["JWTManager", "PasswordHasher"]
