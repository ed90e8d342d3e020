from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest

from swapcast.core.config import Settings
from swapcast.db import create_db_engine, create_session_factory, init_db
from swapcast.domain import PriceSample
from swapcast.services.ledger import PositionLedger

OWNER = "0x" + "0a" * 20
TREASURY = "0x" + "7e" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20

START_TIME = 1_700_000_000
ONE_DOLLAR = 10**8


class FakeClock:
    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class FakePriceSource:
    """In-memory oracle; a configured exception is raised instead of a sample."""

    def __init__(self) -> None:
        self.samples: dict[str, PriceSample] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def set_price(self, oracle_ref: str, price: int, timestamp: int, *, valid: bool = True) -> None:
        self.samples[oracle_ref] = PriceSample(price=price, timestamp=timestamp, valid=valid)
        self.errors.pop(oracle_ref, None)

    def fail(self, oracle_ref: str, error: Exception) -> None:
        self.errors[oracle_ref] = error

    def get_latest_sample(self, oracle_ref: str) -> PriceSample:
        self.calls.append(oracle_ref)
        if oracle_ref in self.errors:
            raise self.errors[oracle_ref]
        return self.samples.get(oracle_ref, PriceSample(price=0, timestamp=0, valid=False))


class RecordingTransport:
    """Payout transport that optionally calls back into the engine mid-transfer."""

    def __init__(self, on_transfer: Callable[..., None] | None = None) -> None:
        self.transfers: list[dict[str, object]] = []
        self.on_transfer = on_transfer

    def transfer(self, *, market_id: int, position_id: int, recipient: str, amount: int) -> None:
        self.transfers.append(
            {
                "market_id": market_id,
                "position_id": position_id,
                "recipient": recipient,
                "amount": amount,
            }
        )
        if self.on_transfer is not None:
            self.on_transfer(position_id=position_id, recipient=recipient)


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'swapcast.db'}",
        protocol_owner=OWNER,
        treasury_address=TREASURY,
        protocol_fee_bps=500,
        max_fee_bps=2000,
        min_stake_amount=0,
        delta_stake_bps=100,
        max_price_staleness_seconds=3600,
        price_decimals=8,
    )
    monkeypatch.setattr("swapcast.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("swapcast.core.config.settings", settings)
    return settings


@pytest.fixture
def engine(test_settings, tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'swapcast.db'}", echo=False)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture
def ledger(session, test_settings, clock) -> PositionLedger:
    return PositionLedger(session, settings=test_settings, clock=clock)


@pytest.fixture
def make_market(ledger, clock):
    def _make_market(
        *,
        threshold: int = 2_000 * ONE_DOLLAR,
        expires_in: int = 3_600,
        oracle_ref: str = "ethereum",
        min_stake: int | None = None,
    ) -> int:
        return ledger.create_market(
            "Will ETH close above $2,000?",
            "ETH/USD",
            clock() + expires_in,
            oracle_ref,
            threshold,
            min_stake=min_stake,
        )

    return _make_market
