"""
Unit tests for sessions and administrator login.

Tests cover:
- Password hashing and verification
- JWT issue/verify
- Visitor sessions
- Admin login and role checks
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from cinetrack.auth import (
    ROLE_ADMIN,
    ROLE_VISITOR,
    Session,
    SessionManager,
    hash_password,
    verify_password,
)
from cinetrack.config import AuthConfig
from cinetrack.errors import AccessDeniedError, AuthenticationError

from tests.conftest import ADMIN_PASSWORD, TEST_SECRET


class TestPasswordHash:
    """Tests for hash_password/verify_password."""

    def test_verify_correct(self):
        """The right password verifies."""
        encoded = hash_password("s3cret", rounds=4)
        assert verify_password("s3cret", encoded) is True

    def test_verify_wrong(self):
        """A wrong password does not verify."""
        encoded = hash_password("s3cret", rounds=4)
        assert verify_password("S3cret", encoded) is False

    def test_format(self):
        """Hashes are standard bcrypt strings with the given cost."""
        encoded = hash_password("s3cret", rounds=5)

        assert encoded.startswith("$2b$05$")
        assert len(encoded) == 60

    def test_random_salt(self):
        """Two hashes of one password differ."""
        assert hash_password("s3cret", rounds=4) != hash_password("s3cret", rounds=4)

    @pytest.mark.parametrize(
        "encoded",
        ["", "plaintext", "$2b$04$tooshort", "pbkdf2_sha256$1000$00$00"],
    )
    def test_malformed_hash_never_matches(self, encoded):
        """Malformed hashes fail closed."""
        assert verify_password("anything", encoded) is False


class TestSessionManager:
    """Tests for SessionManager."""

    @pytest.fixture
    def sessions(self, auth_config):
        return SessionManager(auth_config)

    def test_visitor_session(self, sessions):
        """Visitors get a fresh id and the visitor role."""
        token, session = sessions.start_visitor_session()
        _, other = sessions.start_visitor_session()

        assert session.role == ROLE_VISITOR
        assert session.subject.startswith("visitor:")
        assert session.subject != other.subject
        assert not session.is_admin
        assert sessions.decode_jwt(token) == session

    def test_admin_login(self, sessions):
        """Correct credentials give an admin session."""
        token, session = sessions.login_admin("admin", ADMIN_PASSWORD)

        assert session.role == ROLE_ADMIN
        assert session.subject == "admin"
        assert session.is_admin
        assert sessions.decode_jwt(token).is_admin

    @pytest.mark.parametrize(
        "username,password",
        [("admin", "wrong"), ("root", ADMIN_PASSWORD), ("admin", "admin")],
    )
    def test_admin_login_rejected(self, sessions, username, password):
        """Wrong username or password is rejected."""
        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            sessions.login_admin(username, password)

    def test_admin_login_without_hash(self):
        """No configured hash means nobody can log in."""
        sessions = SessionManager(AuthConfig(jwt_secret=TEST_SECRET, admin_password_hash=""))

        with pytest.raises(AuthenticationError):
            sessions.login_admin("admin", "")

    def test_expired_token(self, sessions):
        """Expired tokens are rejected."""
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "admin", "role": ROLE_ADMIN, "iat": past, "exp": past + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(AuthenticationError, match="expired"):
            sessions.decode_jwt(token)

    def test_wrong_secret(self, sessions):
        """Tokens signed with another secret are rejected."""
        token = SessionManager(
            AuthConfig(jwt_secret="another-secret-that-is-long-enough-too")
        ).create_jwt("admin", ROLE_ADMIN)

        with pytest.raises(AuthenticationError):
            sessions.decode_jwt(token)

    def test_unknown_role(self, sessions):
        """Tokens with an unknown role are rejected."""
        token = sessions.create_jwt("someone", "superuser")

        with pytest.raises(AuthenticationError):
            sessions.decode_jwt(token)

    def test_garbage_token(self, sessions):
        """Non-JWT strings are rejected."""
        with pytest.raises(AuthenticationError):
            sessions.decode_jwt("not-a-token")


class TestSession:
    """Tests for Session role checks."""

    def test_require_admin(self):
        """Visitors are denied admin access."""
        expires = datetime.now(timezone.utc)
        visitor = Session("visitor:1", ROLE_VISITOR, expires)
        admin = Session("admin", ROLE_ADMIN, expires)

        assert admin.require_admin() is admin
        with pytest.raises(AccessDeniedError, match="Admin access is restricted"):
            visitor.require_admin()
