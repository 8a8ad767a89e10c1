"""
Password hashing and verification using bcrypt.
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Hash and verify passwords with bcrypt at a configurable cost."""

    DEFAULT_ROUNDS = 12
    MIN_ROUNDS = 4
    MAX_ROUNDS = 31

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not (self.MIN_ROUNDS <= rounds <= self.MAX_ROUNDS):
            raise ValueError(
                f"Rounds must be between {self.MIN_ROUNDS} and {self.MAX_ROUNDS}, got {rounds}"
            )
        self.rounds = rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password cannot be empty")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify(self, password: str, hashed_password: str) -> bool:
        if not password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
        except ValueError as e:
            # Malformed hash stored for the user
            logger.warning(f"Error verifying password: {e}")
            return False
