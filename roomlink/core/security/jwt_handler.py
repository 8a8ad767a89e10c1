"""
JWT access token handling.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from roomlink.core.exceptions import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)


class JWTManager:
    """
    Issue and verify signed access tokens.

    Tokens carry the user id in ``sub`` plus the role claims needed to build
    a principal without a second lookup (``email``, ``role``, ``staff_type``).
    """

    DEFAULT_ALGORITHM = "HS256"

    def __init__(
        self,
        secret_key: str,
        algorithm: str = DEFAULT_ALGORITHM,
        access_token_expire_minutes: int = 60,
    ):
        if not secret_key:
            raise ValueError("JWT secret key must not be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(
        self,
        user_id: str,
        additional_claims: Optional[Dict[str, Any]] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))

        payload = {
            "sub": str(user_id),
            "type": "access",
            "iat": now,
            "exp": expire,
            "jti": secrets.token_hex(16),
        }
        if additional_claims:
            payload.update(additional_claims)

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Access token created for user {user_id}")
        return token

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Decode a token and return its payload.

        Raises:
            TokenExpiredError: the token is past its ``exp``
            InvalidTokenError: bad signature, malformed token or wrong type
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token verification failed: token expired")
            raise TokenExpiredError()
        except jwt.InvalidTokenError as e:
            logger.warning(f"Token verification failed: {e}")
            raise InvalidTokenError()

        if payload.get("type") != "access" or not payload.get("sub"):
            raise InvalidTokenError("Token is not an access token")
        return payload
