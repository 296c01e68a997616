"""Configuration management for the FTMS payroll service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Application settings.

    Built once at process start and passed explicitly to the app factory,
    clients and services.
    """

    database_url: str = "sqlite+aiosqlite:///./ftms_payroll.db"
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # Auth (tokens are issued by the HR auth service)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    enable_auth: bool = True
    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("http://localhost:3000",))

    # HR integration
    hr_api_base_url: str = "http://localhost:3002"
    hr_payroll_endpoint: str = "/finance/v2/payroll-integration"
    hr_disbursement_endpoint: str = "/finance/webhooks/payroll/distribution"
    hr_api_key: str | None = None
    hr_timeout_seconds: float = 30.0
    hr_source: str = "http"

    # Audit log integration
    audit_api_base_url: str = "http://localhost:4004"
    audit_api_key: str | None = None
    audit_timeout_seconds: float = 5.0

    # Disbursement webhook delivery
    disbursement_max_attempts: int = 3
    disbursement_backoff_seconds: float = 1.0

    company_name: str = "FTMS Bus Transport"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.hr_source not in ("http", "cache"):
            raise ValueError("hr_source must be 'http' or 'cache'")
        if self.disbursement_max_attempts < 1:
            raise ValueError("disbursement_max_attempts must be at least 1")
        if self.disbursement_backoff_seconds < 0:
            raise ValueError("disbursement_backoff_seconds cannot be negative")
        if self.hr_timeout_seconds <= 0 or self.audit_timeout_seconds <= 0:
            raise ValueError("HTTP timeouts must be positive")

    @property
    def hr_payroll_url(self) -> str:
        return self.hr_api_base_url.rstrip("/") + self.hr_payroll_endpoint

    @property
    def hr_disbursement_url(self) -> str:
        return self.hr_api_base_url.rstrip("/") + self.hr_disbursement_endpoint

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=_env_bool("DEBUG", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            jwt_secret=os.getenv("JWT_SECRET", "change-me"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            enable_auth=_env_bool("ENABLE_AUTH", "true"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            hr_api_base_url=os.getenv("HR_API_BASE_URL", "http://localhost:3002"),
            hr_payroll_endpoint=os.getenv(
                "HR_PAYROLL_ENDPOINT", "/finance/v2/payroll-integration"
            ),
            hr_disbursement_endpoint=os.getenv(
                "HR_DISBURSEMENT_ENDPOINT", "/finance/webhooks/payroll/distribution"
            ),
            hr_api_key=os.getenv("HR_API_KEY") or None,
            hr_timeout_seconds=float(os.getenv("HR_TIMEOUT_SECONDS", "30")),
            hr_source=os.getenv("HR_SOURCE", "http").lower(),
            audit_api_base_url=os.getenv("AUDIT_API_BASE_URL", "http://localhost:4004"),
            audit_api_key=os.getenv("AUDIT_API_KEY") or None,
            audit_timeout_seconds=float(os.getenv("AUDIT_TIMEOUT_SECONDS", "5")),
            disbursement_max_attempts=int(os.getenv("DISBURSEMENT_MAX_ATTEMPTS", "3")),
            disbursement_backoff_seconds=float(
                os.getenv("DISBURSEMENT_BACKOFF_SECONDS", "1.0")
            ),
            company_name=os.getenv("COMPANY_NAME", "FTMS Bus Transport"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance (process entry points only)."""
    return Settings.from_env()
