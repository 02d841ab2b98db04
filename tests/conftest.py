"""
Shared fixtures for CineTrack tests.
"""

import pytest

from cinetrack.auth import hash_password
from cinetrack.config import AppConfig, AuthConfig, StoreBackend
from cinetrack.context import AppContext
from cinetrack.store import InMemoryDocumentStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
ADMIN_PASSWORD = "correct horse battery staple"


@pytest.fixture
def auth_config():
    """Auth configuration with a known admin password."""
    return AuthConfig(
        jwt_secret=TEST_SECRET,
        admin_username="admin",
        admin_password_hash=hash_password(ADMIN_PASSWORD, rounds=4),
    )


@pytest.fixture
def app_config(auth_config):
    """In-memory application configuration."""
    return AppConfig(
        app_id="test-app",
        store_backend=StoreBackend.MEMORY,
        auth=auth_config,
    )


@pytest.fixture
def memory_store():
    """Fresh atomic in-memory store (not connected)."""
    return InMemoryDocumentStore()


@pytest.fixture
async def context(app_config, memory_store):
    """Connected context around an in-memory store."""
    ctx = AppContext(config=app_config, store=memory_store)
    await ctx.open()
    yield ctx
    await ctx.close()
