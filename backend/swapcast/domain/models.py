"""Typed domain representations shared by the ledger, adapters and APIs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Protocol, runtime_checkable


class Outcome(IntEnum):
    BEARISH = 0
    BULLISH = 1

    @classmethod
    def parse(cls, value: int | str | "Outcome") -> "Outcome":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.name.lower() == lowered:
                    return member
            if lowered.isdigit():
                return cls(int(lowered))
            raise ValueError(f"unknown outcome '{value}'")
        return cls(value)


class MarketState(str, Enum):
    OPEN = "open"
    PENDING_RESOLUTION = "pending_resolution"
    RESOLVED = "resolved"


Clock = Callable[[], int]


@dataclass(slots=True, frozen=True)
class MarketSnapshot:
    """Immutable view of a market as stored in the ledger."""

    market_id: int
    description: str
    asset_pair_key: str
    expiration_time: int
    price_threshold: int
    oracle_ref: str
    total_stake_bearish: int
    total_stake_bullish: int
    total_protocol_fees: int
    position_count: int
    resolved: bool
    winning_outcome: Outcome | None
    min_stake: int | None = None
    resolution_price: int | None = None
    resolution_source: str | None = None
    resolution_notes: str | None = None
    resolved_at: int | None = None

    @property
    def total_stake(self) -> int:
        return self.total_stake_bearish + self.total_stake_bullish

    def state_at(self, now: int) -> MarketState:
        if self.resolved:
            return MarketState.RESOLVED
        if now < self.expiration_time:
            return MarketState.OPEN
        return MarketState.PENDING_RESOLUTION

    def pools_for(self, outcome: Outcome) -> tuple[int, int]:
        """Return ``(winning_pool, losing_pool)`` assuming ``outcome`` won."""

        if outcome is Outcome.BULLISH:
            return self.total_stake_bullish, self.total_stake_bearish
        return self.total_stake_bearish, self.total_stake_bullish


@dataclass(slots=True, frozen=True)
class PositionSnapshot:
    position_id: int
    market_id: int
    outcome: Outcome
    conviction_stake: int
    gross_amount: int
    fee_amount: int
    owner: str
    minted_at: int


@dataclass(slots=True, frozen=True)
class PriceSample:
    price: int
    timestamp: int
    valid: bool = True


@dataclass(slots=True, frozen=True)
class PredictionPayload:
    """Decoded prediction parameters carried inside a swap's hook data."""

    predictor: str
    market_id: int
    outcome: Outcome
    stake_amount: int | None = None


@dataclass(slots=True, frozen=True)
class ProtocolCounters:
    total_markets: int
    open_positions: int
    total_positions_minted: int
    total_staked: int
    total_protocol_fees: int
    total_claims: int
    total_claimed: int
    treasury_balance: int


@runtime_checkable
class TradeContext(Protocol):
    """What the swap venue hands the ingestion adapter for a single trade."""

    @property
    def sender(self) -> str: ...

    @property
    def hook_data(self) -> bytes | str: ...

    @property
    def amount_in(self) -> int: ...

    @property
    def amount_out(self) -> int: ...


@runtime_checkable
class PriceSource(Protocol):
    def get_latest_sample(self, oracle_ref: str) -> PriceSample: ...


@runtime_checkable
class PayoutTransport(Protocol):
    """Moves a settled payout out of a market's escrow to the claimant."""

    def transfer(self, *, market_id: int, position_id: int, recipient: str, amount: int) -> None: ...
