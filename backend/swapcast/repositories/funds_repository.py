"""Account balances, fund movements and protocol configuration persistence."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from swapcast.models import Account, FundTransfer, ProtocolState


class FundsRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Accounts

    def get_account(self, address: str, *, for_update: bool = False) -> Account | None:
        query = select(Account).where(Account.address == address)
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def ensure_account(self, address: str, *, now: int) -> Account:
        account = self.get_account(address, for_update=True)
        if account is None:
            account = Account(address=address, balance=0, updated_at=now)
            self._session.add(account)
            self._session.flush()
        return account

    def balance_of(self, address: str) -> int:
        account = self.get_account(address)
        return account.balance if account is not None else 0

    # ------------------------------------------------------------------
    # Transfers

    def record_transfer(
        self,
        *,
        kind: str,
        source: str,
        destination: str,
        amount: int,
        created_at: int,
        market_id: int | None = None,
        position_id: int | None = None,
    ) -> FundTransfer:
        transfer = FundTransfer(
            kind=kind,
            source=source,
            destination=destination,
            amount=amount,
            market_id=market_id,
            position_id=position_id,
            created_at=created_at,
        )
        self._session.add(transfer)
        self._session.flush()
        return transfer

    def list_transfers(
        self,
        *,
        kind: str | None = None,
        market_id: int | None = None,
        address: str | None = None,
    ) -> list[FundTransfer]:
        filters: list[Any] = []
        if kind:
            filters.append(FundTransfer.kind == kind)
        if market_id is not None:
            filters.append(FundTransfer.market_id == market_id)
        if address:
            filters.append(
                (FundTransfer.source == address) | (FundTransfer.destination == address)
            )
        query = select(FundTransfer).where(*filters).order_by(FundTransfer.transfer_id.asc())
        return list(self._session.execute(query).scalars().all())

    # ------------------------------------------------------------------
    # Protocol configuration

    def get_protocol_state(self, *, for_update: bool = False) -> ProtocolState | None:
        query = select(ProtocolState).where(ProtocolState.state_id == 1)
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def save_protocol_state(self, state: ProtocolState) -> ProtocolState:
        self._session.add(state)
        self._session.flush()
        return state


__all__ = ["FundsRepository"]
