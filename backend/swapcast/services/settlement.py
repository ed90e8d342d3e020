"""Pull-based reward settlement."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from swapcast.db import atomic
from swapcast.domain import MarketSnapshot, PayoutTransport, PositionSnapshot
from swapcast.errors import (
    DegenerateMarket,
    LosingPosition,
    MarketNotResolved,
    NotOwner,
    PayoutTransferFailed,
    SwapCastError,
)
from swapcast.models import TransferKind, escrow_account
from swapcast.repositories import FundsRepository

from .ledger import PositionLedger
from .protocol import require_address


def compute_payout(stake: int, winning_pool: int, losing_pool: int) -> int:
    """Pari-mutuel payout: the stake back plus a floored share of the losing pool."""

    if winning_pool <= 0:
        raise DegenerateMarket(winning_pool=winning_pool, losing_pool=losing_pool)
    if stake < 0 or losing_pool < 0 or stake > winning_pool:
        raise DegenerateMarket(stake=stake, winning_pool=winning_pool, losing_pool=losing_pool)
    return stake + stake * losing_pool // winning_pool


@dataclass(slots=True, frozen=True)
class ClaimReceipt:
    position_id: int
    market_id: int
    claimant: str
    amount_paid: int


class AccountPayoutTransport:
    """Default transport: moves funds from market escrow into the claimant's account."""

    def __init__(self, session: Session, ledger: PositionLedger) -> None:
        self._funds = FundsRepository(session)
        self._ledger = ledger

    def transfer(self, *, market_id: int, position_id: int, recipient: str, amount: int) -> None:
        now = self._ledger.now()
        escrow = self._funds.ensure_account(escrow_account(market_id), now=now)
        if escrow.balance < amount:
            raise PayoutTransferFailed(
                market_id=market_id, requested=amount, escrow_balance=escrow.balance
            )
        escrow.balance -= amount
        escrow.updated_at = now
        account = self._funds.ensure_account(recipient, now=now)
        account.balance += amount
        account.updated_at = now
        self._funds.record_transfer(
            kind=TransferKind.PAYOUT.value,
            source=escrow.address,
            destination=recipient,
            amount=amount,
            market_id=market_id,
            position_id=position_id,
            created_at=now,
        )


class SettlementEngine:
    """Pays a winning position exactly once and removes it from circulation."""

    def __init__(
        self,
        ledger: PositionLedger,
        transport: PayoutTransport | None = None,
    ) -> None:
        self.ledger = ledger
        self.transport = transport or AccountPayoutTransport(ledger.session, ledger)

    def quote(self, position_id: int) -> int:
        position = self.ledger.read_position(position_id)
        market = self.ledger.read_market(position.market_id)
        return self._payout_for(position, market)

    def claim(self, position_id: int, caller: str) -> int:
        claimant = require_address(caller, field="caller")
        position = self.ledger.read_position(position_id)
        if position.owner != claimant:
            raise NotOwner(position_id=position_id, caller=claimant)
        market = self.ledger.read_market(position.market_id)
        amount = self._payout_for(position, market)

        with atomic(self.ledger.session):
            # Destroy first: a re-entrant claim issued from inside the
            # transfer must already see the position as gone.
            self.ledger.destroy_position(position_id, claimant=claimant, amount_paid=amount)
            try:
                self.transport.transfer(
                    market_id=market.market_id,
                    position_id=position_id,
                    recipient=claimant,
                    amount=amount,
                )
            except SwapCastError:
                raise
            except Exception as exc:
                raise PayoutTransferFailed(position_id=position_id, amount=amount) from exc

        logger.info(
            "Reward claimed: position={}, market={}, user={}, amount={}",
            position_id,
            market.market_id,
            claimant,
            amount,
        )
        return amount

    def claim_receipt(self, position_id: int, caller: str) -> ClaimReceipt:
        position = self.ledger.read_position(position_id)
        amount = self.claim(position_id, caller)
        return ClaimReceipt(
            position_id=position_id,
            market_id=position.market_id,
            claimant=position.owner,
            amount_paid=amount,
        )

    @staticmethod
    def _payout_for(position: PositionSnapshot, market: MarketSnapshot) -> int:
        if not market.resolved or market.winning_outcome is None:
            raise MarketNotResolved(market_id=market.market_id)
        if position.outcome != market.winning_outcome:
            raise LosingPosition(
                position_id=position.position_id,
                predicted_outcome=position.outcome.name,
                winning_outcome=market.winning_outcome.name,
            )
        winning_pool, losing_pool = market.pools_for(market.winning_outcome)
        return compute_payout(position.conviction_stake, winning_pool, losing_pool)


__all__ = ["AccountPayoutTransport", "ClaimReceipt", "SettlementEngine", "compute_payout"]
