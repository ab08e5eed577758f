from __future__ import annotations

from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(v, default: List[str]) -> List[str]:
    if v is None:
        return list(default)
    if isinstance(v, str):
        parts = [p.strip() for p in v.split(",") if p.strip()]
        return parts or list(default)
    if isinstance(v, (list, tuple, set)):
        return [str(p).strip() for p in v if str(p).strip()] or list(default)
    return list(default)


class AppSettings(BaseSettings):
    """
    Application-level settings for the purchase order service.

    This is separate from src.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Purchase Order API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Purchase order procurement records with append-only header versions, "
            "standard and transactional line layouts, and reconciled VAT totals."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed units of measurement and a sample supplier after migrations.",
    )

    # Session gate (tokens are issued by the external identity provider)
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC key for bearer tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # External API (spreadsheet import clients)
    API_KEY: Optional[str] = Field(
        default=None,
        description="Shared secret for /external endpoints. When unset, every external call is refused.",
    )

    # Header columns this deployment supports beyond the core set.
    PO_OPTIONAL_HEADER_COLUMNS: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated optional purchase_orders columns, e.g. 'exclusive_amount'.",
    )

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", "CORS_ALLOW_METHODS", "CORS_ALLOW_HEADERS", mode="before")
    @classmethod
    def _parse_cors_list(cls, v):
        """Accept comma-separated strings as well as lists; empty means '*'."""
        return _split_csv(v, ["*"])

    @field_validator("PO_OPTIONAL_HEADER_COLUMNS", mode="before")
    @classmethod
    def _parse_optional_columns(cls, v):
        return [c.lower() for c in _split_csv(v, [])]

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").lower() in ("prod", "production")


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    A new instance is built on each call so tests can adjust the environment.
    """
    return AppSettings()
