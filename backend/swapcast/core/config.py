import re
from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_BASIS_POINTS = 10_000

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def normalize_address(value: str) -> str:
    """Return a lower-cased hex address or raise ``ValueError``."""

    candidate = value.strip() if isinstance(value, str) else ""
    if not _ADDRESS_PATTERN.match(candidate):
        raise ValueError(f"'{value}' is not a 20-byte hex address")
    return candidate.lower()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode and SQL echo")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/swapcast.db",
        description="SQLAlchemy compatible database URL",
    )
    production_db_url: AnyUrl | str | None = Field(
        default=None,
        description="Postgres connection string required when ENVIRONMENT=production",
    )
    protocol_owner: str = Field(
        default="0x00000000000000000000000000000000000a11ce",
        description="Address allowed to run administrative paths (fees, withdrawals, manual resolution)",
    )
    treasury_address: str = Field(
        default="0x0000000000000000000000000000000000007ea5",
        description="Account credited with protocol fees",
    )
    protocol_fee_bps: int = Field(
        default=500,
        description="Initial protocol fee in basis points taken from every gross stake",
        ge=0,
    )
    max_fee_bps: int = Field(
        default=2000,
        description="Upper bound accepted by the fee configuration setter",
        ge=0,
        le=MAX_BASIS_POINTS,
    )
    min_stake_amount: int = Field(
        default=0,
        description="Protocol-wide minimum gross stake (0 disables the check)",
        ge=0,
    )
    delta_stake_bps: int = Field(
        default=100,
        description="Share of the realized swap output staked when the payload carries no amount",
        ge=1,
        le=MAX_BASIS_POINTS,
    )
    max_price_staleness_seconds: int = Field(
        default=3600,
        description="Maximum age of an oracle sample accepted for resolution",
        gt=0,
    )
    price_decimals: int = Field(
        default=8,
        description="Fixed-point scale used for oracle prices and market thresholds",
        ge=0,
        le=30,
    )
    price_api_base_url: AnyUrl = Field(
        default="https://api.coingecko.com/api/v3",
        description="Base URL of the HTTP price oracle",
    )
    price_api_vs_currency: str = Field(
        default="usd",
        description="Quote currency requested from the HTTP price oracle",
    )
    price_api_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to oracle HTTP requests",
        gt=0,
    )
    resolution_batch_size: int = Field(
        default=25,
        description="Number of due markets resolved per sweep chunk",
        ge=1,
    )
    resolution_max_markets: int | None = Field(
        default=None,
        description="Optional cap on markets processed by a single resolution sweep",
        ge=1,
    )

    @field_validator("protocol_owner", "treasury_address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("database_url", "production_db_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @model_validator(mode="after")
    def _check_fee_bounds(self) -> "Settings":
        if self.protocol_fee_bps > self.max_fee_bps:
            raise ValueError(
                "PROTOCOL_FEE_BPS must not exceed MAX_FEE_BPS "
                f"({self.protocol_fee_bps} > {self.max_fee_bps})"
            )
        return self

    @property
    def resolved_database_url(self) -> str:
        environment = self.environment.lower()
        if environment == "production":
            if not self.production_db_url:
                raise ValueError(
                    "PRODUCTION_DB_URL must be set when ENVIRONMENT=production"
                )
            return _ensure_sqlalchemy_postgres_scheme(str(self.production_db_url))
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
