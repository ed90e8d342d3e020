"""Protocol fee sink."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from swapcast.db import atomic
from swapcast.errors import InsufficientTreasuryBalance, InvalidConfiguration
from swapcast.models import TransferKind
from swapcast.repositories import FundsRepository

from .protocol import ProtocolService, require_address


class TreasurySink:
    """Accumulates protocol fees; only the protocol owner may withdraw."""

    def __init__(self, session: Session, protocol: ProtocolService) -> None:
        self._session = session
        self._protocol = protocol
        self._funds = FundsRepository(session)

    @property
    def address(self) -> str:
        return self._protocol.treasury_address

    def balance(self) -> int:
        return self._funds.balance_of(self.address)

    def deposit(self, amount: int, *, market_id: int, payer: str) -> int:
        """Credit ``amount`` and record the fee movement; returns the new balance."""

        if amount < 0:
            raise InvalidConfiguration(fee_amount=amount)
        if amount == 0:
            return self.balance()

        now = self._protocol.clock()
        with atomic(self._session):
            account = self._funds.ensure_account(self.address, now=now)
            account.balance += amount
            account.updated_at = now
            self._funds.record_transfer(
                kind=TransferKind.FEE.value,
                source=payer,
                destination=account.address,
                amount=amount,
                market_id=market_id,
                created_at=now,
            )
        logger.info("Fee paid: market={}, payer={}, amount={}", market_id, payer, amount)
        return account.balance

    def withdraw(self, caller: str, amount: int, recipient: str) -> int:
        self._protocol.require_owner(caller)
        destination = require_address(recipient, field="recipient")
        if amount <= 0:
            raise InvalidConfiguration(withdrawal_amount=amount)

        now = self._protocol.clock()
        with atomic(self._session):
            account = self._funds.ensure_account(self.address, now=now)
            if account.balance < amount:
                raise InsufficientTreasuryBalance(requested=amount, available=account.balance)
            account.balance -= amount
            account.updated_at = now
            receiver = self._funds.ensure_account(destination, now=now)
            receiver.balance += amount
            receiver.updated_at = now
            self._funds.record_transfer(
                kind=TransferKind.WITHDRAWAL.value,
                source=account.address,
                destination=destination,
                amount=amount,
                created_at=now,
            )
        logger.info("Treasury withdrawal: amount={}, recipient={}", amount, destination)
        return account.balance


__all__ = ["TreasurySink"]
