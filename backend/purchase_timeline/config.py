"""Configuration management for the purchase timeline backend."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class DatabaseConfig:
    """Relational store configuration."""

    url: str = "sqlite:///./purchase_timeline.db"
    echo: bool = False
    transaction_timeout_seconds: float = 15.0

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith("postgresql")


@dataclass
class StorageConfig:
    """Local document storage configuration."""

    root: Path = field(default_factory=lambda: Path("uploads"))
    max_upload_bytes: int = 50 * 1024 * 1024


@dataclass
class Settings:
    """Main configuration for the purchase timeline backend."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    default_closing_days: int = 30
    max_reorder_batch: int = 50
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        database = DatabaseConfig(
            url=os.getenv("DATABASE_URL", "sqlite:///./purchase_timeline.db"),
            echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            transaction_timeout_seconds=float(
                os.getenv("TRANSACTION_TIMEOUT_SECONDS", "15")
            ),
        )

        storage = StorageConfig(
            root=Path(os.getenv("STORAGE_ROOT", "uploads")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024))),
        )

        return cls(
            database=database,
            storage=storage,
            default_closing_days=int(os.getenv("DEFAULT_CLOSING_DAYS", "30")),
            max_reorder_batch=int(os.getenv("MAX_REORDER_BATCH", "50")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


settings = Settings.from_env()
