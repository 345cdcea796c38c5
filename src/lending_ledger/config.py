"""Configuration management for the Lending Ledger.

Two layers live here:
1. ``LedgerConfig`` - process settings loaded from the environment
   (``LENDING_LEDGER_*``) or a ``.env`` file with pydantic-settings.
2. ``LendingPolicy`` - the immutable borrowing policy the circulation
   engine consumes. Components receive a policy instance rather than
   reading constants, so tests can swap policies without touching the
   engine.
"""

import enum
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LostItemPolicy(str, enum.Enum):
    """What happens to the ledger when a loan is declared lost."""

    # The physical copy is gone: total_copies shrinks by one.
    WRITE_OFF = "write_off"
    # The copy is replaced (or charged for): the slot returns to availability.
    RELEASE = "release"


class LendingPolicy(BaseModel):
    """Borrowing rules applied by the circulation engine."""

    model_config = ConfigDict(frozen=True)

    loan_period_days: int = Field(default=14, ge=1)
    max_active_loans: int = Field(default=5, ge=1)
    daily_fine_rate: Decimal = Field(default=Decimal("0.50"), ge=0)
    lost_item_policy: LostItemPolicy = LostItemPolicy.WRITE_OFF
    lock_timeout_seconds: float = Field(default=5.0, gt=0)


class LedgerConfig(BaseSettings):
    """Settings for the Lending Ledger server and engine."""

    model_config = SettingsConfigDict(
        env_prefix="LENDING_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="lending-ledger",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/lending_ledger.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides database_path when set",
    )

    # === Lending Policy ===

    loan_period_days: int = Field(
        default=14,
        description="Days between loan date and due date",
        ge=1,
    )

    max_active_loans: int = Field(
        default=5,
        description="Maximum unresolved loans a member may hold",
        ge=1,
    )

    daily_fine_rate: Decimal = Field(
        default=Decimal("0.50"),
        description="Fine charged per day a return is late",
        ge=0,
    )

    lost_item_policy: LostItemPolicy = Field(
        default=LostItemPolicy.WRITE_OFF,
        description="Ledger effect of declaring a loan lost",
    )

    # === Concurrency ===

    lock_timeout_seconds: float = Field(
        default=5.0,
        description="Bounded wait for row locks before a retryable conflict",
        gt=0,
        le=300,
    )

    conflict_retry_attempts: int = Field(
        default=3,
        description="Times a tool retries an operation after a concurrency conflict",
        ge=1,
        le=10,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path to an absolute location."""
        return v.absolute()

    @field_validator("daily_fine_rate")
    @classmethod
    def validate_daily_fine_rate(cls, v: Decimal) -> Decimal:
        """Fines are charged in whole cents."""
        if v != v.quantize(Decimal("0.01")):
            raise ValueError("Daily fine rate must not have fractional cents")
        return v

    @property
    def lending_policy(self) -> LendingPolicy:
        """Policy snapshot handed to the circulation engine."""
        return LendingPolicy(
            loan_period_days=self.loan_period_days,
            max_active_loans=self.max_active_loans,
            daily_fine_rate=self.daily_fine_rate,
            lost_item_policy=self.lost_item_policy,
            lock_timeout_seconds=self.lock_timeout_seconds,
        )

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: LedgerConfig | None = None


def get_config() -> LedgerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = LedgerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
