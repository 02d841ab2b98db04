"""
Authentication and authorization for CineTrack.

Visitor sessions, administrator login, and JWT issuance.

Visitors get an anonymous session with a fresh visitor id; requests they
submit carry that id. The administrator logs in with a configured username
and bcrypt password hash. Both receive a signed JWT whose ``role`` claim
gates the admin routes.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from .config import AuthConfig
from .errors import AccessDeniedError, AuthenticationError

logger = logging.getLogger(__name__)

ROLE_VISITOR = "visitor"
ROLE_ADMIN = "admin"

DEFAULT_ROUNDS = 12


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """
    Hash a password for ADMIN_PASSWORD_HASH.

    Args:
        password: Plain-text password
        rounds: bcrypt cost factor (4-31)

    Returns:
        bcrypt hash string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a password against a bcrypt hash.

    Malformed hashes never match.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), encoded.encode("utf-8"))
    except ValueError:
        logger.warning("Configured admin password hash is malformed")
        return False


@dataclass(frozen=True)
class Session:
    """
    An authenticated session.

    Attributes:
        subject: Visitor id or administrator username
        role: ROLE_VISITOR or ROLE_ADMIN
        expires_at: Token expiry
    """

    subject: str
    role: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def require_admin(self) -> Session:
        if not self.is_admin:
            raise AccessDeniedError("Admin access is restricted.", self.subject, ROLE_ADMIN)
        return self


class SessionManager:
    """Issues and verifies session tokens."""

    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def create_jwt(self, subject: str, role: str) -> str:
        """
        Create a JWT for a session.

        Args:
            subject: Visitor id or admin username
            role: Session role

        Returns:
            Signed JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "role": role,
            "iat": now,
            "exp": now + timedelta(hours=self.config.token_expiry_hours),
        }
        return jwt.encode(payload, self.config.jwt_secret, algorithm=self.config.jwt_algorithm)

    def decode_jwt(self, token: str) -> Session:
        """
        Decode and verify a JWT.

        Raises:
            AuthenticationError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[self.config.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Session expired. Please sign in again.") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid session token. Please sign in again.") from e

        subject = payload.get("sub")
        role = payload.get("role")
        if not subject or role not in (ROLE_VISITOR, ROLE_ADMIN):
            raise AuthenticationError("Invalid session token. Please sign in again.")

        return Session(
            subject=subject,
            role=role,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def start_visitor_session(self) -> tuple[str, Session]:
        """Anonymous sign-in: new visitor id and its token."""
        visitor_id = f"visitor:{uuid.uuid4().hex}"
        token = self.create_jwt(visitor_id, ROLE_VISITOR)
        logger.debug("Visitor session started", extra={"visitor_id": visitor_id})
        return token, self.decode_jwt(token)

    def login_admin(self, username: str, password: str) -> tuple[str, Session]:
        """
        Verify administrator credentials.

        Raises:
            AuthenticationError: If username or password is wrong
        """
        username_ok = hmac.compare_digest(
            username.encode("utf-8"), self.config.admin_username.encode("utf-8")
        )
        password_ok = bool(self.config.admin_password_hash) and verify_password(
            password, self.config.admin_password_hash
        )
        if not (username_ok and password_ok):
            logger.warning("Failed admin login attempt", extra={"username": username})
            raise AuthenticationError("Invalid username or password.")

        token = self.create_jwt(self.config.admin_username, ROLE_ADMIN)
        logger.info("Admin signed in", extra={"username": username})
        return token, self.decode_jwt(token)
