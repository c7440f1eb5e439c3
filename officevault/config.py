"""
Configuration management for OfficeVault.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - The snapshot directory and catalog live outside the live store file
    - Paths are resolved relative to DATA_DIR unless given explicitly

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the default retention at 15 days; the UI advertises it
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Base directory for the live store, snapshots and catalog
        live_db_path: Live store file (defaults to <data_dir>/office_manager.db)
        snapshot_dir: Snapshot directory (defaults to <data_dir>/backups)
        catalog_db_path: Catalog file (defaults to <data_dir>/backup_catalog.db)
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "./data"
    live_db_path: str | None = None
    snapshot_dir: str | None = None
    catalog_db_path: str | None = None
    busy_timeout_ms: int = 5000

    @property
    def live_path(self) -> Path:
        return Path(self.live_db_path or Path(self.data_dir) / "office_manager.db")

    @property
    def snapshot_path(self) -> Path:
        return Path(self.snapshot_dir or Path(self.data_dir) / "backups")

    @property
    def catalog_path(self) -> Path:
        return Path(self.catalog_db_path or Path(self.data_dir) / "backup_catalog.db")

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./data"),
            live_db_path=os.getenv("LIVE_DB_PATH"),
            snapshot_dir=os.getenv("SNAPSHOT_DIR"),
            catalog_db_path=os.getenv("CATALOG_DB_PATH"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class RetentionConfig:
    """Snapshot retention and copy configuration.

    Attributes:
        retention_days: Default age threshold for cleanup
        copy_chunk_bytes: Buffer size used when copying snapshot files
    """

    retention_days: int = 15
    copy_chunk_bytes: int = 1024 * 1024  # 1MB

    @classmethod
    def from_env(cls) -> RetentionConfig:
        """Load configuration from environment variables."""
        return cls(
            retention_days=int(os.getenv("BACKUP_RETENTION_DAYS", "15")),
            copy_chunk_bytes=int(os.getenv("BACKUP_COPY_CHUNK_BYTES", str(1024 * 1024))),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "3000")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ServerConfig:
    """Complete OfficeVault configuration.

    Attributes:
        storage: Local storage configuration
        retention: Retention configuration
        http: HTTP server configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            retention=RetentionConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.retention.retention_days < 0:
            raise ValueError("BACKUP_RETENTION_DAYS must be zero or positive")
        if self.retention.copy_chunk_bytes <= 0:
            raise ValueError("BACKUP_COPY_CHUNK_BYTES must be positive")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        live = self.storage.live_path.resolve()
        if live.parent == self.storage.snapshot_path.resolve():
            raise ValueError("The live store must not live inside the snapshot directory")
        if live == self.storage.catalog_path.resolve():
            raise ValueError("The catalog must be a separate file from the live store")

        if not self.storage.snapshot_path.exists():
            logger.warning(
                f"Snapshot directory does not exist: {self.storage.snapshot_path}. "
                "It will be created at startup."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "OfficeVault configuration loaded",
            extra={
                "live_store": str(self.storage.live_path),
                "snapshot_dir": str(self.storage.snapshot_path),
                "catalog": str(self.storage.catalog_path),
                "retention_days": self.retention.retention_days,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "log_level": self.observability.log_level,
            },
        )
