from __future__ import annotations

import pytest
from pydantic import ValidationError

from swapcast import schemas
from swapcast.domain import Outcome, PositionSnapshot, ProtocolCounters


def test_position_schema_from_snapshot():
    snapshot = PositionSnapshot(
        position_id=3,
        market_id=1,
        outcome=Outcome.BEARISH,
        conviction_stake=950,
        gross_amount=1_000,
        fee_amount=50,
        owner="0x" + "a1" * 20,
        minted_at=1_700_000_000,
    )

    payload = schemas.Position.model_validate(snapshot)

    assert payload.outcome == "BEARISH"
    assert payload.claimable is None
    assert payload.conviction_stake == 950


def test_market_schema_accepts_outcome_names_and_values():
    base = {
        "market_id": 1,
        "description": "ETH above 2k?",
        "asset_pair_key": "ETH/USD",
        "expiration_time": 1,
        "price_threshold": 2_000,
        "oracle_ref": "ethereum",
        "state": "resolved",
        "total_stake_bearish": 0,
        "total_stake_bullish": 0,
        "total_stake": 0,
        "total_protocol_fees": 0,
        "position_count": 0,
        "resolved": True,
    }

    assert schemas.Market(**base, winning_outcome=1).winning_outcome == "BULLISH"
    assert schemas.Market(**base, winning_outcome="bearish").winning_outcome == "BEARISH"
    assert schemas.Market(**base).winning_outcome is None


def test_large_amounts_survive_serialization():
    amount = 10**40
    overview = schemas.Overview.model_validate(
        ProtocolCounters(
            total_markets=1,
            open_positions=0,
            total_positions_minted=1,
            total_staked=amount,
            total_protocol_fees=0,
            total_claims=0,
            total_claimed=0,
            treasury_balance=0,
        )
    )
    assert overview.model_dump()["total_staked"] == amount


def test_claim_request_requires_caller():
    with pytest.raises(ValidationError):
        schemas.ClaimRequest(caller="")
