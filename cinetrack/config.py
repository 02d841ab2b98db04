"""
Configuration management for CineTrack.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set JWT_SECRET and ADMIN_PASSWORD_HASH
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Supported document store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "/var/lib/cinetrack"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/cinetrack"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Session and administrator configuration.

    Attributes:
        jwt_secret: HMAC secret for signing session tokens
        jwt_algorithm: JWT signing algorithm
        token_expiry_hours: Session lifetime
        admin_username: Administrator login name
        admin_password_hash: bcrypt hash (see ``cinetrack-admin hash-password``)
    """

    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    token_expiry_hours: int = 24
    admin_username: str = "admin"
    admin_password_hash: str = ""

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            token_expiry_hours=int(os.getenv("JWT_EXPIRY_HOURS", "24")),
            admin_username=os.getenv("ADMIN_USERNAME", "admin"),
            admin_password_hash=os.getenv("ADMIN_PASSWORD_HASH", ""),
        )


@dataclass(frozen=True)
class CatalogConfig:
    """Catalog configuration.

    Attributes:
        seed_on_start: Insert the starter titles when the catalog is empty
    """

    seed_on_start: bool = True

    @classmethod
    def from_env(cls) -> CatalogConfig:
        """Load configuration from environment variables."""
        return cls(
            seed_on_start=os.getenv("CATALOG_SEED_ON_START", "true").lower() == "true",
        )


@dataclass(frozen=True)
class ActionConfig:
    """Request group action configuration.

    Attributes:
        max_retries: Retries of the unapplied remainder of a partially
            applied batch before compensating
    """

    max_retries: int = 2

    @classmethod
    def from_env(cls) -> ActionConfig:
        """Load configuration from environment variables."""
        return cls(max_retries=int(os.getenv("ACTION_MAX_RETRIES", "2")))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class AppConfig:
    """Complete application configuration.

    Attributes:
        app_id: Application identifier, part of every collection path
        store_backend: Which document store to use
        storage: Local storage configuration
        auth: Session and administrator configuration
        catalog: Catalog configuration
        actions: Request group action configuration
        observability: Logging configuration
    """

    app_id: str = "default-movie-app"
    store_backend: StoreBackend = StoreBackend.SQLITE
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    actions: ActionConfig = field(default_factory=ActionConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls, require_auth: bool = True) -> AppConfig:
        """Load complete configuration from environment variables.

        Args:
            require_auth: Require JWT_SECRET and ADMIN_PASSWORD_HASH. Offline
                tools that never issue sessions pass False.

        Returns:
            AppConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        backend_str = os.getenv("STORE_BACKEND", "sqlite").lower()
        try:
            store_backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: sqlite, memory")

        config = cls(
            app_id=os.getenv("CINETRACK_APP_ID", "default-movie-app"),
            store_backend=store_backend,
            storage=StorageConfig.from_env(),
            auth=AuthConfig.from_env(),
            catalog=CatalogConfig.from_env(),
            actions=ActionConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate(require_auth=require_auth)
        return config

    def validate(self, require_auth: bool = True) -> None:
        """Validate configuration consistency.

        Args:
            require_auth: Check the session and administrator settings

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.app_id.strip():
            raise ValueError("CINETRACK_APP_ID must not be empty")

        if require_auth:
            self._validate_auth()

        if self.actions.max_retries < 0:
            raise ValueError("ACTION_MAX_RETRIES must be >= 0")

        if self.store_backend == StoreBackend.MEMORY:
            logger.warning("STORE_BACKEND=memory: all data is lost on restart")
        elif not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first connect."
            )

    def _validate_auth(self) -> None:
        if not self.auth.jwt_secret:
            raise ValueError("JWT_SECRET is required to issue session tokens")
        if len(self.auth.jwt_secret) < 32:
            logger.warning("JWT_SECRET is shorter than 32 characters")

        if not self.auth.admin_password_hash:
            raise ValueError(
                "ADMIN_PASSWORD_HASH is required. Generate one with: cinetrack-admin hash-password"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Application configuration loaded",
            extra={
                "app_id": self.app_id,
                "store_backend": self.store_backend.value,
                "data_dir": self.storage.data_dir
                if self.store_backend == StoreBackend.SQLITE
                else None,
                "admin_username": self.auth.admin_username,
                "token_expiry_hours": self.auth.token_expiry_hours,
                "catalog_seed_on_start": self.catalog.seed_on_start,
                "action_max_retries": self.actions.max_retries,
                "log_level": self.observability.log_level,
            },
        )
