"""Position ledger: the single source of truth for markets and positions.

Every write to a market's stake totals, a position, or an escrow balance goes
through :class:`PositionLedger`. Each mutating method runs inside
:func:`swapcast.db.atomic`, so a failure leaves no partially applied state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from loguru import logger
from sqlalchemy.orm import Session

from swapcast.core.config import Settings
from swapcast.db import atomic
from swapcast.domain import (
    Clock,
    MarketSnapshot,
    MarketState,
    Outcome,
    PositionSnapshot,
    ProtocolCounters,
)
from swapcast.errors import (
    AlreadyPredicted,
    InvalidMarketParameters,
    InvalidPredictionData,
    MarketAlreadyResolved,
    MarketExpired,
    MarketNotFound,
    NotExpiredYet,
    NotOwner,
    PositionNotFound,
    StakeBelowMinimum,
    ZeroStake,
)
from swapcast.fees import split_stake
from swapcast.models import (
    Claim,
    Market,
    Position,
    Prediction,
    ResolutionAttempt,
    ResolutionSource,
    TransferKind,
    escrow_account,
)
from swapcast.repositories import FundsRepository, MarketRepository

from .protocol import ProtocolService, require_address
from .treasury import TreasurySink


@dataclass(slots=True)
class MarketPage:
    total: int
    markets: Sequence[MarketSnapshot]


# Ids arrive as uint256 from hook data; anything past a signed 64-bit key cannot exist.
MAX_ROW_ID = 2**63 - 1


def _is_row_id(value: int) -> bool:
    return 1 <= value <= MAX_ROW_ID


def _coerce_outcome(value: int | Outcome) -> Outcome:
    try:
        return Outcome(value)
    except (TypeError, ValueError) as exc:
        raise InvalidPredictionData(outcome=value) from exc


def market_snapshot(market: Market) -> MarketSnapshot:
    return MarketSnapshot(
        market_id=market.market_id,
        description=market.description,
        asset_pair_key=market.asset_pair_key,
        expiration_time=market.expiration_time,
        price_threshold=market.price_threshold,
        oracle_ref=market.oracle_ref,
        total_stake_bearish=market.total_stake_bearish,
        total_stake_bullish=market.total_stake_bullish,
        total_protocol_fees=market.total_protocol_fees,
        position_count=market.position_count,
        resolved=bool(market.resolved),
        winning_outcome=(
            Outcome(market.winning_outcome) if market.winning_outcome is not None else None
        ),
        min_stake=market.min_stake,
        resolution_price=market.resolution_price,
        resolution_source=market.resolution_source,
        resolution_notes=market.resolution_notes,
        resolved_at=market.resolved_at,
    )


def position_snapshot(position: Position) -> PositionSnapshot:
    return PositionSnapshot(
        position_id=position.position_id,
        market_id=position.market_id,
        outcome=Outcome(position.outcome),
        conviction_stake=position.conviction_stake,
        gross_amount=position.gross_amount,
        fee_amount=position.fee_amount,
        owner=position.owner,
        minted_at=position.minted_at,
    )


class PositionLedger:
    def __init__(
        self,
        session: Session,
        *,
        protocol: ProtocolService | None = None,
        treasury: TreasurySink | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self.protocol = protocol or ProtocolService(session, settings=settings, clock=clock)
        self.treasury = treasury or TreasurySink(session, self.protocol)
        self._markets = MarketRepository(session)
        self._funds = FundsRepository(session)

    @property
    def session(self) -> Session:
        return self._session

    def now(self) -> int:
        return self.protocol.clock()

    # ------------------------------------------------------------------
    # Market creation boundary

    def create_market(
        self,
        description: str,
        asset_pair_key: str,
        expiration_time: int,
        oracle_ref: str,
        price_threshold: int,
        *,
        min_stake: int | None = None,
    ) -> int:
        now = self.now()
        if not description or not description.strip():
            raise InvalidMarketParameters("market description must not be empty")
        if not asset_pair_key or not asset_pair_key.strip():
            raise InvalidMarketParameters("asset pair key must not be empty")
        if not oracle_ref or not oracle_ref.strip():
            raise InvalidMarketParameters("oracle reference must not be empty")
        if price_threshold <= 0:
            raise InvalidMarketParameters(price_threshold=price_threshold)
        if expiration_time <= now:
            raise InvalidMarketParameters(expiration_time=expiration_time, current_time=now)
        if min_stake is not None and min_stake < 0:
            raise InvalidMarketParameters(min_stake=min_stake)

        with atomic(self._session):
            market = self._markets.add_market(
                Market(
                    description=description.strip(),
                    asset_pair_key=asset_pair_key.strip(),
                    expiration_time=expiration_time,
                    price_threshold=price_threshold,
                    oracle_ref=oracle_ref.strip(),
                    min_stake=min_stake,
                    total_stake_bearish=0,
                    total_stake_bullish=0,
                    total_protocol_fees=0,
                    position_count=0,
                    resolved=False,
                    created_at=now,
                )
            )
        logger.info(
            "Market created: id={}, pair={}, expires={}, threshold={}",
            market.market_id,
            market.asset_pair_key,
            market.expiration_time,
            market.price_threshold,
        )
        return market.market_id

    def set_market_min_stake(self, caller: str, market_id: int, amount: int | None) -> MarketSnapshot:
        self.protocol.require_owner(caller)
        if amount is not None and amount < 0:
            raise InvalidMarketParameters(min_stake=amount)
        with atomic(self._session):
            market = self._load_market(market_id, for_update=True)
            market.min_stake = amount
        logger.info("Market {} minimum stake set to {}", market_id, amount)
        return market_snapshot(market)

    # ------------------------------------------------------------------
    # Stake ledger

    def open_position(
        self,
        market_id: int,
        outcome: int | Outcome,
        gross_amount: int,
        owner: str,
    ) -> int:
        side = _coerce_outcome(outcome)
        holder = require_address(owner, field="owner")

        with atomic(self._session):
            market = self._load_market(market_id, for_update=True)
            now = self.now()
            if now >= market.expiration_time:
                raise MarketExpired(
                    market_id=market_id,
                    expiration_time=market.expiration_time,
                    current_time=now,
                )
            if market.resolved:
                raise MarketAlreadyResolved(market_id=market_id)
            if self._markets.get_prediction(market.market_id, holder) is not None:
                raise AlreadyPredicted(market_id=market_id, owner=holder)
            if gross_amount <= 0:
                raise ZeroStake(market_id=market_id, gross_amount=gross_amount)

            fee, net_stake = split_stake(gross_amount, self.protocol.fee_bps)
            if net_stake <= 0:
                raise ZeroStake(market_id=market_id, gross_amount=gross_amount, fee=fee)

            minimum = market.min_stake if market.min_stake is not None else self.protocol.min_stake_amount
            if minimum and gross_amount < minimum:
                raise StakeBelowMinimum(sent_amount=gross_amount, min_required=minimum)

            if side is Outcome.BULLISH:
                market.total_stake_bullish = market.total_stake_bullish + net_stake
            else:
                market.total_stake_bearish = market.total_stake_bearish + net_stake
            market.total_protocol_fees = market.total_protocol_fees + fee
            market.position_count = market.position_count + 1

            position = self._markets.add_position(
                Position(
                    market_id=market.market_id,
                    outcome=int(side),
                    conviction_stake=net_stake,
                    gross_amount=gross_amount,
                    fee_amount=fee,
                    owner=holder,
                    minted_at=now,
                )
            )
            self._markets.add_prediction(
                Prediction(
                    market_id=market.market_id,
                    predictor=holder,
                    position_id=position.position_id,
                    created_at=now,
                )
            )

            escrow = self._funds.ensure_account(escrow_account(market.market_id), now=now)
            escrow.balance += net_stake
            escrow.updated_at = now
            self._funds.record_transfer(
                kind=TransferKind.STAKE.value,
                source=holder,
                destination=escrow.address,
                amount=net_stake,
                market_id=market.market_id,
                position_id=position.position_id,
                created_at=now,
            )
            self.treasury.deposit(fee, market_id=market.market_id, payer=holder)

        logger.info(
            "Stake recorded: market={}, position={}, owner={}, outcome={}, stake={}, fee={}",
            market.market_id,
            position.position_id,
            holder,
            side.name,
            net_stake,
            fee,
        )
        return position.position_id

    def transfer_position(self, position_id: int, caller: str, new_owner: str) -> PositionSnapshot:
        sender = require_address(caller, field="caller")
        receiver = require_address(new_owner, field="new_owner")
        with atomic(self._session):
            position = self._load_position(position_id, for_update=True)
            if position.owner != sender:
                raise NotOwner(position_id=position_id, caller=sender)
            position.owner = receiver
        logger.info("Position {} transferred from {} to {}", position_id, sender, receiver)
        return position_snapshot(position)

    # ------------------------------------------------------------------
    # Resolution

    def mark_resolved(
        self,
        market_id: int,
        winning_outcome: int | Outcome,
        *,
        price: int | None = None,
        source: ResolutionSource = ResolutionSource.ORACLE,
        notes: str | None = None,
        allow_early: bool = False,
    ) -> MarketSnapshot:
        outcome = _coerce_outcome(winning_outcome)
        with atomic(self._session):
            market = self._load_market(market_id, for_update=True)
            if market.resolved:
                raise MarketAlreadyResolved(market_id=market_id)
            now = self.now()
            if now < market.expiration_time and not allow_early:
                raise NotExpiredYet(
                    market_id=market_id,
                    expiration_time=market.expiration_time,
                    current_time=now,
                )
            written = self._markets.mark_resolved(
                market_id,
                winning_outcome=int(outcome),
                resolution_price=price,
                resolution_source=source.value,
                resolution_notes=notes,
                resolved_at=now,
            )
            if not written:
                raise MarketAlreadyResolved(market_id=market_id)
            market = self._load_market(market_id)

        logger.info(
            "Market resolved: id={}, outcome={}, price={}, source={}, pool={}",
            market_id,
            outcome.name,
            price,
            source.value,
            market.total_stake_bearish + market.total_stake_bullish,
        )
        return market_snapshot(market)

    def record_resolution_failure(self, market_id: int, reason: str, detail: str | None = None) -> None:
        with atomic(self._session):
            self._markets.add_resolution_attempt(
                ResolutionAttempt(
                    market_id=market_id,
                    reason=reason,
                    detail=detail,
                    attempted_at=self.now(),
                )
            )

    # ------------------------------------------------------------------
    # Settlement

    def destroy_position(
        self,
        position_id: int,
        *,
        claimant: str | None = None,
        amount_paid: int = 0,
    ) -> PositionSnapshot:
        """Remove a position permanently.

        Only the settlement engine's claim path calls this. When ``claimant``
        is given the claim is recorded in the same unit of work.
        """

        with atomic(self._session):
            position = self._load_position(position_id, for_update=True)
            snapshot = position_snapshot(position)
            if not self._markets.delete_position(position_id):
                raise PositionNotFound(position_id=position_id)
            if claimant is not None:
                self._markets.add_claim(
                    Claim(
                        position_id=snapshot.position_id,
                        market_id=snapshot.market_id,
                        outcome=int(snapshot.outcome),
                        conviction_stake=snapshot.conviction_stake,
                        claimant=claimant,
                        amount_paid=amount_paid,
                        claimed_at=self.now(),
                    )
                )
        logger.debug("Position {} destroyed", position_id)
        return snapshot

    # ------------------------------------------------------------------
    # Reads

    def read_market(self, market_id: int) -> MarketSnapshot:
        return market_snapshot(self._load_market(market_id))

    def read_position(self, position_id: int) -> PositionSnapshot:
        return position_snapshot(self._load_position(position_id))

    def market_state(self, market_id: int) -> MarketState:
        return self.read_market(market_id).state_at(self.now())

    def list_markets(
        self,
        *,
        state: MarketState | None = None,
        limit: int | None = 50,
        offset: int = 0,
    ) -> MarketPage:
        now = self.now()
        filters: dict[str, object] = {}
        if state is MarketState.OPEN:
            filters = {"resolved": False, "expires_after": now}
        elif state is MarketState.PENDING_RESOLUTION:
            filters = {"resolved": False, "expires_before": now}
        elif state is MarketState.RESOLVED:
            filters = {"resolved": True}
        markets, total = self._markets.list_markets(limit=limit, offset=offset, **filters)
        return MarketPage(total=total, markets=[market_snapshot(market) for market in markets])

    def active_market_ids(self) -> list[int]:
        return self._markets.active_market_ids(self.now())

    def expired_unresolved_market_ids(self, *, limit: int | None = None) -> list[int]:
        return self._markets.expired_unresolved_market_ids(self.now(), limit=limit)

    def positions_for_market(self, market_id: int) -> list[PositionSnapshot]:
        return [position_snapshot(item) for item in self._markets.positions_for_market(market_id)]

    def has_predicted(self, market_id: int, owner: str) -> bool:
        """True once ``owner`` has opened a position on the market, even if it was since moved."""

        holder = require_address(owner, field="owner")
        if not _is_row_id(market_id):
            return False
        return self._markets.get_prediction(market_id, holder) is not None

    def positions_for_owner(self, owner: str) -> list[PositionSnapshot]:
        holder = require_address(owner, field="owner")
        return [position_snapshot(item) for item in self._markets.positions_for_owner(holder)]

    def claims_for_market(self, market_id: int) -> list[Claim]:
        return self._markets.claims_for_market(market_id)

    def resolution_attempts(self, market_id: int) -> list[ResolutionAttempt]:
        return self._markets.resolution_attempts(market_id)

    def escrow_balance(self, market_id: int) -> int:
        return self._funds.balance_of(escrow_account(market_id))

    def counters(self) -> ProtocolCounters:
        markets = self._markets.all_markets()
        claims = self._markets.all_claims()
        return ProtocolCounters(
            total_markets=len(markets),
            open_positions=self._markets.count_positions(),
            total_positions_minted=sum(market.position_count for market in markets),
            total_staked=sum(
                market.total_stake_bearish + market.total_stake_bullish for market in markets
            ),
            total_protocol_fees=sum(market.total_protocol_fees for market in markets),
            total_claims=len(claims),
            total_claimed=sum(claim.amount_paid for claim in claims),
            treasury_balance=self.treasury.balance(),
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _load_market(self, market_id: int, *, for_update: bool = False) -> Market:
        if not _is_row_id(market_id):
            raise MarketNotFound(market_id=market_id)
        market = self._markets.get_market(market_id, for_update=for_update)
        if market is None:
            raise MarketNotFound(market_id=market_id)
        return market

    def _load_position(self, position_id: int, *, for_update: bool = False) -> Position:
        if not _is_row_id(position_id):
            raise PositionNotFound(position_id=position_id)
        position = self._markets.get_position(position_id, for_update=for_update)
        if position is None:
            raise PositionNotFound(position_id=position_id)
        return position


__all__ = ["MarketPage", "PositionLedger", "market_snapshot", "position_snapshot"]
