"""Turns a swap carrying prediction hook data into a single ledger mutation.

Venue-side contract: :meth:`StakeIngestionAdapter.after_swap` reports the
outcome as an :class:`IngestionResult`. When ``ok`` is false the venue MUST
abort its own swap; the ledger has already discarded every write the
prediction made, so trade and prediction either both happen or neither does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from swapcast.core.config import Settings, get_settings
from swapcast.db import atomic, session_scope
from swapcast.domain import Clock, PredictionPayload, TradeContext
from swapcast.errors import InvalidPredictionData, SwapCastError
from swapcast.fees import delta_stake
from swapcast.services.ledger import PositionLedger

from .hook_data import decode_prediction


@dataclass(slots=True, frozen=True)
class SwapEvent:
    """Plain :class:`TradeContext` implementation used by venue glue and scripts."""

    sender: str
    hook_data: bytes | str
    amount_in: int
    amount_out: int


@dataclass(slots=True, frozen=True)
class IngestionResult:
    ok: bool
    position_id: int | None = None
    market_id: int | None = None
    predictor: str | None = None
    gross_stake: int | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def should_abort_swap(self) -> bool:
        return not self.ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "position_id": self.position_id,
            "market_id": self.market_id,
            "predictor": self.predictor,
            "gross_stake": self.gross_stake,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
        }


class StakeIngestionAdapter:
    def __init__(self, ledger: PositionLedger, *, stake_bps: int | None = None) -> None:
        self.ledger = ledger
        self.stake_bps = stake_bps or ledger.protocol.settings.delta_stake_bps

    def resolve_stake(self, payload: PredictionPayload, trade: TradeContext) -> int:
        if payload.stake_amount is not None:
            return payload.stake_amount
        try:
            return delta_stake(trade.amount_out, self.stake_bps)
        except (TypeError, ValueError) as exc:
            raise InvalidPredictionData(amount_out=trade.amount_out, reason=str(exc)) from exc

    def ingest(self, trade: TradeContext) -> int:
        """Record the prediction embedded in ``trade``; raises on any failure."""

        payload = decode_prediction(trade.hook_data)
        gross_stake = self.resolve_stake(payload, trade)
        with atomic(self.ledger.session):
            return self.ledger.open_position(
                payload.market_id,
                payload.outcome,
                gross_stake,
                payload.predictor,
            )

    def after_swap(self, trade: TradeContext) -> IngestionResult:
        payload: PredictionPayload | None = None
        gross_stake: int | None = None
        try:
            payload = decode_prediction(trade.hook_data)
            gross_stake = self.resolve_stake(payload, trade)
            with atomic(self.ledger.session):
                position_id = self.ledger.open_position(
                    payload.market_id,
                    payload.outcome,
                    gross_stake,
                    payload.predictor,
                )
        except SwapCastError as exc:
            logger.warning(
                "Prediction rejected, swap from {} must abort: {}",
                trade.sender,
                exc,
            )
            return IngestionResult(
                ok=False,
                market_id=payload.market_id if payload else None,
                predictor=payload.predictor if payload else None,
                gross_stake=gross_stake,
                error_kind=exc.kind,
                error_message=str(exc),
            )

        return IngestionResult(
            ok=True,
            position_id=position_id,
            market_id=payload.market_id,
            predictor=payload.predictor,
            gross_stake=gross_stake,
        )


def ingest_swap(
    trade: TradeContext,
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> IngestionResult:
    """Process one swap in its own transaction."""

    with session_scope(session_factory) as session:
        ledger = PositionLedger(session, settings=settings or get_settings(), clock=clock)
        result = StakeIngestionAdapter(ledger).after_swap(trade)
    return result


__all__ = ["IngestionResult", "StakeIngestionAdapter", "SwapEvent", "ingest_swap"]
