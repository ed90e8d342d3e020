from __future__ import annotations

import pytest

from swapcast.domain import Outcome
from swapcast.errors import (
    InsufficientTreasuryBalance,
    InvalidAddress,
    InvalidConfiguration,
    InvalidFeeRate,
    NotProtocolOwner,
)
from swapcast.models import TransferKind
from swapcast.repositories import FundsRepository

from conftest import ALICE, BOB, OWNER, TREASURY


def test_protocol_state_is_seeded_from_settings(ledger):
    state = ledger.protocol.state()
    assert state.owner == OWNER
    assert state.treasury_address == TREASURY
    assert state.fee_bps == 500
    assert state.max_price_staleness_seconds == 3600


def test_fee_setter_is_owner_only(ledger):
    with pytest.raises(NotProtocolOwner):
        ledger.protocol.set_fee_configuration(ALICE, fee_bps=100)
    assert ledger.protocol.fee_bps == 500


def test_fee_setter_enforces_maximum(ledger):
    with pytest.raises(InvalidFeeRate):
        ledger.protocol.set_fee_configuration(OWNER, fee_bps=2_001)
    ledger.protocol.set_fee_configuration(OWNER, fee_bps=2_000)
    assert ledger.protocol.fee_bps == 2_000


def test_fee_setter_can_move_treasury(ledger, make_market):
    ledger.protocol.set_fee_configuration(OWNER, fee_bps=500, treasury_address=BOB)
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)

    assert ledger.treasury.address == BOB
    assert ledger.treasury.balance() == 50


def test_fee_setter_rejects_bad_treasury(ledger):
    with pytest.raises(InvalidAddress):
        ledger.protocol.set_fee_configuration(OWNER, fee_bps=100, treasury_address="nowhere")


def test_staleness_and_minimum_setters(ledger):
    ledger.protocol.set_max_price_staleness(OWNER, 60)
    ledger.protocol.set_min_stake_amount(OWNER, 10)
    assert ledger.protocol.max_price_staleness_seconds == 60
    assert ledger.protocol.min_stake_amount == 10

    with pytest.raises(InvalidConfiguration):
        ledger.protocol.set_max_price_staleness(OWNER, 0)
    with pytest.raises(InvalidConfiguration):
        ledger.protocol.set_min_stake_amount(OWNER, -1)


def test_ownership_transfer(ledger):
    ledger.protocol.transfer_ownership(OWNER, ALICE)

    with pytest.raises(NotProtocolOwner):
        ledger.protocol.set_fee_configuration(OWNER, fee_bps=100)
    ledger.protocol.set_fee_configuration(ALICE, fee_bps=100)
    assert ledger.protocol.fee_bps == 100


def test_treasury_accumulates_fees(ledger, make_market):
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)
    ledger.open_position(market_id, Outcome.BEARISH, 3_000, BOB)

    assert ledger.treasury.balance() == 50 + 150


def test_zero_fee_deposit_is_noop(ledger, session):
    ledger.treasury.deposit(0, market_id=1, payer=ALICE)
    assert FundsRepository(session).list_transfers(kind=TransferKind.FEE.value) == []


def test_withdraw_is_owner_only(ledger, make_market):
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)

    with pytest.raises(NotProtocolOwner):
        ledger.treasury.withdraw(ALICE, 10, ALICE)


def test_withdraw_moves_funds(ledger, make_market, session):
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)

    remaining = ledger.treasury.withdraw(OWNER, 30, BOB)

    assert remaining == 20
    funds = FundsRepository(session)
    assert funds.balance_of(BOB) == 30
    withdrawals = funds.list_transfers(kind=TransferKind.WITHDRAWAL.value)
    assert [(t.source, t.destination, t.amount) for t in withdrawals] == [(TREASURY, BOB, 30)]


def test_withdraw_more_than_balance_fails(ledger, make_market):
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)

    with pytest.raises(InsufficientTreasuryBalance):
        ledger.treasury.withdraw(OWNER, 51, BOB)
    assert ledger.treasury.balance() == 50


def test_counters_aggregate_protocol_activity(ledger, make_market, clock):
    market_id = make_market()
    ledger.open_position(market_id, Outcome.BULLISH, 1_000, ALICE)
    ledger.open_position(market_id, Outcome.BEARISH, 1_000, BOB)
    make_market()

    counters = ledger.counters()
    assert counters.total_markets == 2
    assert counters.open_positions == 2
    assert counters.total_positions_minted == 2
    assert counters.total_staked == 1_900
    assert counters.total_protocol_fees == 100
    assert counters.treasury_balance == 100
    assert counters.total_claims == 0
