from __future__ import annotations

import pytest
from pydantic import ValidationError

from swapcast.core.config import Settings, normalize_address


def test_addresses_are_lower_cased():
    settings = Settings(_env_file=None, protocol_owner="0x" + "AB" * 20)
    assert settings.protocol_owner == "0x" + "ab" * 20


def test_malformed_address_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, treasury_address="0x1234")
    with pytest.raises(ValueError):
        normalize_address("not-an-address")


def test_fee_cannot_exceed_maximum():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, protocol_fee_bps=2_500, max_fee_bps=2_000)


def test_non_positive_staleness_window_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_price_staleness_seconds=0)


def test_production_requires_postgres_url():
    settings = Settings(_env_file=None, environment="production")
    with pytest.raises(ValueError):
        settings.resolved_database_url


def test_production_url_uses_psycopg_driver():
    settings = Settings(
        _env_file=None,
        environment="production",
        production_db_url="postgres://user:pw@db.internal:5432/swapcast",
    )
    url = settings.resolved_database_url
    assert url.startswith("postgresql+psycopg://")
    assert "sslmode=require" in url
