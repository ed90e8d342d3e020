"""Read-side conveniences used by the API layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from loguru import logger
from sqlalchemy.orm import Session

from swapcast.core.config import Settings
from swapcast.domain import Clock, MarketSnapshot, MarketState, PositionSnapshot
from swapcast.errors import SwapCastError
from swapcast.schemas import Market, Overview, Position

from .ledger import PositionLedger
from .settlement import SettlementEngine

_STATUS_ALIASES = {
    "open": MarketState.OPEN,
    "pending": MarketState.PENDING_RESOLUTION,
    "pending_resolution": MarketState.PENDING_RESOLUTION,
    "resolved": MarketState.RESOLVED,
}


@dataclass(slots=True)
class MarketQuery:
    status: str | None = None
    limit: int = 50
    offset: int = 0

    @property
    def state(self) -> MarketState | None:
        if self.status is None or self.status == "all":
            return None
        try:
            return _STATUS_ALIASES[self.status.lower()]
        except KeyError as exc:
            raise ValueError(f"unknown market status '{self.status}'") from exc

    def to_ledger_kwargs(self) -> dict[str, Any]:
        return {"state": self.state, "limit": self.limit, "offset": self.offset}


@dataclass(slots=True)
class MarketQueryResult:
    total: int
    markets: Sequence[Market]


class MarketService:
    """Read-only facade over the ledger that returns API schemas."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._ledger = PositionLedger(session, settings=settings, clock=clock)
        self._settlement = SettlementEngine(self._ledger)

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    def list_markets(self, query: MarketQuery) -> MarketQueryResult:
        page = self._ledger.list_markets(**query.to_ledger_kwargs())
        logger.debug("Listed {} of {} markets (status={})", len(page.markets), page.total, query.status)
        return MarketQueryResult(
            total=page.total,
            markets=[self._market_payload(market) for market in page.markets],
        )

    def get_market(self, market_id: int) -> Market:
        return self._market_payload(self._ledger.read_market(market_id))

    def get_position(self, position_id: int) -> Position:
        return self._position_payload(self._ledger.read_position(position_id))

    def positions_for_owner(self, owner: str) -> list[Position]:
        return [self._position_payload(item) for item in self._ledger.positions_for_owner(owner)]

    def overview(self) -> Overview:
        return Overview.model_validate(self._ledger.counters())

    def _market_payload(self, market: MarketSnapshot) -> Market:
        return Market(
            market_id=market.market_id,
            description=market.description,
            asset_pair_key=market.asset_pair_key,
            expiration_time=market.expiration_time,
            price_threshold=market.price_threshold,
            oracle_ref=market.oracle_ref,
            min_stake=market.min_stake,
            state=market.state_at(self._ledger.now()).value,
            total_stake_bearish=market.total_stake_bearish,
            total_stake_bullish=market.total_stake_bullish,
            total_stake=market.total_stake,
            total_protocol_fees=market.total_protocol_fees,
            position_count=market.position_count,
            resolved=market.resolved,
            winning_outcome=market.winning_outcome,
            resolution_price=market.resolution_price,
            resolution_source=market.resolution_source,
            resolution_notes=market.resolution_notes,
            resolved_at=market.resolved_at,
        )

    def _position_payload(self, position: PositionSnapshot) -> Position:
        try:
            claimable: int | None = self._settlement.quote(position.position_id)
        except SwapCastError:
            claimable = None
        payload = Position.model_validate(position)
        return payload.model_copy(update={"claimable": claimable})


__all__ = ["MarketQuery", "MarketQueryResult", "MarketService"]
