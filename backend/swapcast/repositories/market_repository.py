"""Market and position data access helpers."""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from swapcast.models import Claim, Market, Position, Prediction, ResolutionAttempt


class MarketRepository:
    """Encapsulate market, position and claim persistence concerns.

    The repository performs no validation; the ledger service decides what
    may be written and in which order.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def add_market(self, market: Market) -> Market:
        self._session.add(market)
        self._session.flush()
        return market

    def add_position(self, position: Position) -> Position:
        self._session.add(position)
        self._session.flush()
        return position

    def add_prediction(self, prediction: Prediction) -> Prediction:
        self._session.add(prediction)
        self._session.flush()
        return prediction

    def add_claim(self, claim: Claim) -> Claim:
        self._session.add(claim)
        self._session.flush()
        return claim

    def add_resolution_attempt(self, attempt: ResolutionAttempt) -> ResolutionAttempt:
        self._session.add(attempt)
        self._session.flush()
        return attempt

    def mark_resolved(self, market_id: int, **values: Any) -> bool:
        """Compare-and-set the resolution columns; False if already resolved."""

        statement = (
            update(Market)
            .where(Market.market_id == market_id, Market.resolved.is_(False))
            .values(resolved=True, **values)
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(statement)
        return result.rowcount == 1

    def delete_position(self, position_id: int) -> bool:
        """Compare-and-delete a position; False if it no longer exists."""

        statement = (
            delete(Position)
            .where(Position.position_id == position_id)
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(statement)
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Queries

    def get_market(self, market_id: int, *, for_update: bool = False) -> Market | None:
        query = (
            select(Market)
            .where(Market.market_id == market_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def get_position(self, position_id: int, *, for_update: bool = False) -> Position | None:
        query = select(Position).where(Position.position_id == position_id)
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def get_prediction(self, market_id: int, predictor: str) -> Prediction | None:
        return self._session.get(Prediction, (market_id, predictor))

    def list_markets(
        self,
        *,
        resolved: bool | None = None,
        expires_before: int | None = None,
        expires_after: int | None = None,
        limit: int | None = 50,
        offset: int = 0,
    ) -> tuple[list[Market], int]:
        filters: list[Any] = []
        if resolved is not None:
            filters.append(Market.resolved.is_(resolved))
        if expires_before is not None:
            filters.append(Market.expiration_time <= expires_before)
        if expires_after is not None:
            filters.append(Market.expiration_time > expires_after)

        query = (
            select(Market)
            .where(*filters)
            .order_by(Market.expiration_time.asc(), Market.market_id.asc())
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)

        total_query = select(func.count(Market.market_id)).where(*filters)

        markets = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return markets, total

    def expired_unresolved_market_ids(self, now: int, *, limit: int | None = None) -> list[int]:
        query = (
            select(Market.market_id)
            .where(Market.resolved.is_(False), Market.expiration_time <= now)
            .order_by(Market.expiration_time.asc(), Market.market_id.asc())
        )
        if limit:
            query = query.limit(limit)
        return list(self._session.execute(query).scalars().all())

    def active_market_ids(self, now: int) -> list[int]:
        query = (
            select(Market.market_id)
            .where(Market.resolved.is_(False), Market.expiration_time > now)
            .order_by(Market.expiration_time.asc(), Market.market_id.asc())
        )
        return list(self._session.execute(query).scalars().all())

    def positions_for_market(self, market_id: int) -> list[Position]:
        query = (
            select(Position)
            .where(Position.market_id == market_id)
            .order_by(Position.position_id.asc())
        )
        return list(self._session.execute(query).scalars().all())

    def positions_for_owner(self, owner: str) -> list[Position]:
        query = (
            select(Position)
            .where(Position.owner == owner)
            .order_by(Position.position_id.asc())
        )
        return list(self._session.execute(query).scalars().all())

    def claims_for_market(self, market_id: int) -> list[Claim]:
        query = select(Claim).where(Claim.market_id == market_id).order_by(Claim.position_id)
        return list(self._session.execute(query).scalars().all())

    def resolution_attempts(self, market_id: int) -> list[ResolutionAttempt]:
        query = (
            select(ResolutionAttempt)
            .where(ResolutionAttempt.market_id == market_id)
            .order_by(ResolutionAttempt.attempt_id.asc())
        )
        return list(self._session.execute(query).scalars().all())

    def count_positions(self) -> int:
        return self._session.execute(select(func.count(Position.position_id))).scalar_one()

    def all_markets(self) -> Sequence[Market]:
        return self._session.execute(select(Market)).scalars().all()

    def all_claims(self) -> Sequence[Claim]:
        return self._session.execute(select(Claim)).scalars().all()


__all__ = ["MarketRepository"]
