"""Pydantic models for application configuration with validation."""

from typing import Literal, Optional
from pydantic import BaseModel, Field


class RedisConfig(BaseModel):
    """Redis connection configuration."""

    host: str = Field(
        default="redis",
        description="Redis host name"
    )
    port: int = Field(
        default=6379,
        ge=1,
        le=65535,
        description="Redis port"
    )
    db: int = Field(
        default=0,
        ge=0,
        le=15,
        description="Redis logical database index"
    )
    max_connection_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a Redis operation when the connection drops"
    )
    connection_retry_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Wait between Redis connection retries"
    )

    @property
    def url(self) -> str:
        """Redis connection URL."""
        return f"redis://{self.host}:{self.port}/{self.db}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level"
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description="Structured JSON lines or plain text"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for the daily rotated log file; stdout only when unset"
    )
    backup_count: int = Field(
        default=365,
        ge=1,
        le=3650,
        description="Number of rotated log files to keep"
    )


class ProcessingConfig(BaseModel):
    """Event consumer configuration."""

    max_concurrent_events: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Maximum events processed concurrently"
    )
    queue_timeout_seconds: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Blocking wait when dequeuing from the rebalance queue"
    )
    idle_sleep_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Pause when at capacity before polling again"
    )
    error_recovery_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="Wait after an unexpected error in the main loop"
    )
    per_user_locking: bool = Field(
        default=True,
        description="Serialize processing of events for the same user"
    )


class RetryConfig(BaseModel):
    """Retry policy for persisting rebalance transactions."""

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Total attempts for one transaction batch write"
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Backoff before the second attempt; doubles after each failure"
    )


class APIConfig(BaseModel):
    """Intake API configuration."""

    host: str = Field(
        default="0.0.0.0",
        description="Bind address for the intake API"
    )
    port: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="Port for the intake API"
    )
    allocation_sum_tolerance: float = Field(
        default=0.0001,
        ge=0.0,
        le=1.0,
        description="Allowed distance of an allocation total from 100"
    )


class AppConfig(BaseModel):
    """Root application configuration."""

    redis: RedisConfig = Field(
        default_factory=RedisConfig,
        description="Redis connection settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )
    processing: ProcessingConfig = Field(
        default_factory=ProcessingConfig,
        description="Event consumer settings"
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Transaction write retry policy"
    )
    api: APIConfig = Field(
        default_factory=APIConfig,
        description="Intake API settings"
    )
