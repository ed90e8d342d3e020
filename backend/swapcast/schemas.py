from typing import Any

from pydantic import BaseModel, Field, field_validator

from .domain import Outcome


class MarketBase(BaseModel):
    market_id: int
    description: str
    asset_pair_key: str
    expiration_time: int
    price_threshold: int
    oracle_ref: str
    min_stake: int | None = None


class Market(MarketBase):
    state: str
    total_stake_bearish: int
    total_stake_bullish: int
    total_stake: int
    total_protocol_fees: int
    position_count: int
    resolved: bool
    winning_outcome: str | None = None
    resolution_price: int | None = None
    resolution_source: str | None = None
    resolution_notes: str | None = None
    resolved_at: int | None = None

    model_config = {"from_attributes": True}

    @field_validator("winning_outcome", mode="before")
    @classmethod
    def _outcome_name(cls, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            return Outcome.parse(value).name
        return Outcome(value).name


class MarketList(BaseModel):
    total: int
    items: list[Market]


class Position(BaseModel):
    position_id: int
    market_id: int
    outcome: str
    conviction_stake: int
    gross_amount: int
    fee_amount: int
    owner: str
    minted_at: int
    claimable: int | None = Field(
        default=None,
        description="Payout if the position were claimed now; null while unresolved or losing",
    )

    model_config = {"from_attributes": True}

    @field_validator("outcome", mode="before")
    @classmethod
    def _outcome_name(cls, value: Any) -> str:
        if isinstance(value, str):
            return Outcome.parse(value).name
        return Outcome(value).name


class PositionList(BaseModel):
    total: int
    items: list[Position]


class ClaimRequest(BaseModel):
    caller: str = Field(min_length=1)


class ClaimResponse(BaseModel):
    position_id: int
    market_id: int
    amount_paid: int


class Overview(BaseModel):
    total_markets: int
    open_positions: int
    total_positions_minted: int
    total_staked: int
    total_protocol_fees: int
    total_claims: int
    total_claimed: int
    treasury_balance: int

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    kind: str
    detail: str
    retryable: bool = False
