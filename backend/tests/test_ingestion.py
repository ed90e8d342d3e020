from __future__ import annotations

import pytest

from ingestion import StakeIngestionAdapter, SwapEvent, encode_prediction, ingest_swap
from swapcast.domain import Outcome, TradeContext
from swapcast.errors import InvalidPredictionData, MarketNotFound
from swapcast.services.ledger import PositionLedger

from conftest import ALICE, BOB


def _swap(hook_data, *, amount_out: int = 50_000, sender: str = BOB) -> SwapEvent:
    return SwapEvent(sender=sender, hook_data=hook_data, amount_in=amount_out, amount_out=amount_out)


def test_swap_event_satisfies_trade_context():
    assert isinstance(_swap(b""), TradeContext)


def test_explicit_stake_opens_position(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger)

    result = adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 1_000)))

    assert result.ok is True
    assert result.should_abort_swap is False
    position = ledger.read_position(result.position_id)
    # The predictor from the payload owns the position, not the swap sender.
    assert position.owner == ALICE
    assert position.conviction_stake == 950
    assert ledger.read_market(market_id).total_stake_bullish == 950


def test_delta_mode_stakes_share_of_output(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger, stake_bps=100)

    result = adapter.after_swap(
        _swap(encode_prediction(ALICE, market_id, Outcome.BEARISH), amount_out=50_000)
    )

    assert result.ok
    assert result.gross_stake == 500
    position = ledger.read_position(result.position_id)
    assert position.gross_amount == 500
    assert position.conviction_stake == 475


def test_delta_mode_zero_stake_aborts(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger, stake_bps=100)

    result = adapter.after_swap(
        _swap(encode_prediction(ALICE, market_id, Outcome.BEARISH), amount_out=99)
    )

    assert result.ok is False
    assert result.should_abort_swap
    assert result.error_kind == "zero_stake"
    assert ledger.read_market(market_id).position_count == 0


def test_malformed_payload_aborts_without_writes(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger)

    result = adapter.after_swap(_swap(b"\x00" * 10))

    assert result.ok is False
    assert result.error_kind == "invalid_prediction_data"
    assert result.market_id is None
    assert ledger.read_market(market_id).total_stake == 0


def test_expired_market_aborts(ledger, make_market, clock):
    market_id = make_market(expires_in=30)
    clock.advance(30)
    adapter = StakeIngestionAdapter(ledger)

    result = adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 1_000)))

    assert result.ok is False
    assert result.error_kind == "market_expired"
    assert result.market_id == market_id
    assert ledger.treasury.balance() == 0


def test_market_id_zero_is_reported_as_missing(ledger):
    adapter = StakeIngestionAdapter(ledger)

    result = adapter.after_swap(_swap(encode_prediction(ALICE, 0, Outcome.BULLISH, 1_000)))

    assert result.error_kind == "market_not_found"


def test_oversized_market_id_is_reported_as_missing(ledger, make_market):
    make_market()
    adapter = StakeIngestionAdapter(ledger)

    result = adapter.after_swap(_swap(encode_prediction(ALICE, 2**200, Outcome.BULLISH, 1_000)))

    assert result.ok is False
    assert result.should_abort_swap
    assert result.error_kind == "market_not_found"
    assert result.market_id == 2**200


def test_repeat_prediction_aborts_swap(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger)
    adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 1_000)))

    repeat = adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BEARISH, 1_000)))

    assert repeat.ok is False
    assert repeat.error_kind == "already_predicted"
    assert ledger.has_predicted(market_id, ALICE)
    assert ledger.read_market(market_id).total_stake_bearish == 0


def test_ingest_raises_instead_of_returning(ledger):
    adapter = StakeIngestionAdapter(ledger)
    with pytest.raises(MarketNotFound):
        adapter.ingest(_swap(encode_prediction(ALICE, 999, Outcome.BULLISH, 1_000)))
    with pytest.raises(InvalidPredictionData):
        adapter.ingest(_swap("0x1234"))


def test_failed_swap_leaves_earlier_positions_intact(ledger, make_market):
    market_id = make_market()
    adapter = StakeIngestionAdapter(ledger)
    first = adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 1_000)))
    failed = adapter.after_swap(_swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 0)))

    assert first.ok and not failed.ok
    market = ledger.read_market(market_id)
    assert market.position_count == 1
    assert market.total_stake_bullish == 950


def test_ingest_swap_commits_in_own_transaction(session_factory, test_settings, clock):
    with session_factory() as session:
        market_id = PositionLedger(session, settings=test_settings, clock=clock).create_market(
            "Will ETH close above $2,000?", "ETH/USD", clock() + 600, "ethereum", 2_000
        )
        session.commit()

    result = ingest_swap(
        _swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 2_000)),
        settings=test_settings,
        clock=clock,
        session_factory=session_factory,
    )
    assert result.ok

    with session_factory() as session:
        ledger = PositionLedger(session, settings=test_settings, clock=clock)
        assert ledger.read_market(market_id).total_stake_bullish == 1_900


def test_result_serializes_for_venue_glue(ledger, make_market):
    market_id = make_market()
    result = StakeIngestionAdapter(ledger).after_swap(
        _swap(encode_prediction(ALICE, market_id, Outcome.BULLISH, 10))
    )

    assert result.to_dict() == {
        "ok": True,
        "position_id": result.position_id,
        "market_id": market_id,
        "predictor": ALICE,
        "gross_stake": 10,
        "error_kind": None,
        "error_message": None,
    }
