"""Runtime protocol configuration guarded by the protocol owner."""

from __future__ import annotations

import time

from loguru import logger
from sqlalchemy.orm import Session

from swapcast.core.config import Settings, get_settings, normalize_address
from swapcast.db import atomic
from swapcast.domain import Clock
from swapcast.errors import InvalidAddress, InvalidConfiguration, NotProtocolOwner
from swapcast.fees import validate_fee_bps
from swapcast.models import ProtocolState
from swapcast.repositories import FundsRepository


def system_clock() -> int:
    return int(time.time())


def require_address(value: str, *, field: str = "address") -> str:
    try:
        return normalize_address(value)
    except ValueError as exc:
        raise InvalidAddress(field=field, value=value) from exc


class ProtocolService:
    """Owns the singleton ``protocol_state`` row.

    The row is seeded from :class:`Settings` the first time it is needed and
    from then on only changes through the owner-gated setters below.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self.settings = settings or get_settings()
        self.clock = clock or system_clock
        self._funds = FundsRepository(session)

    def state(self, *, for_update: bool = False) -> ProtocolState:
        state = self._funds.get_protocol_state(for_update=for_update)
        if state is None:
            state = ProtocolState(
                state_id=1,
                owner=self.settings.protocol_owner,
                treasury_address=self.settings.treasury_address,
                fee_bps=self.settings.protocol_fee_bps,
                min_stake_amount=self.settings.min_stake_amount,
                max_price_staleness_seconds=self.settings.max_price_staleness_seconds,
                updated_at=self.clock(),
            )
            self._funds.save_protocol_state(state)
            logger.info(
                "Seeded protocol state: owner={}, treasury={}, fee_bps={}",
                state.owner,
                state.treasury_address,
                state.fee_bps,
            )
        return state

    @property
    def fee_bps(self) -> int:
        return self.state().fee_bps

    @property
    def treasury_address(self) -> str:
        return self.state().treasury_address

    @property
    def min_stake_amount(self) -> int:
        return self.state().min_stake_amount

    @property
    def max_price_staleness_seconds(self) -> int:
        return self.state().max_price_staleness_seconds

    def require_owner(self, caller: str) -> str:
        normalized = require_address(caller, field="caller")
        owner = self.state().owner
        if normalized != owner:
            logger.warning("Rejected privileged call from {}", normalized)
            raise NotProtocolOwner(caller=normalized)
        return normalized

    # ------------------------------------------------------------------
    # Setters

    def set_fee_configuration(
        self,
        caller: str,
        *,
        fee_bps: int,
        treasury_address: str | None = None,
    ) -> ProtocolState:
        self.require_owner(caller)
        validate_fee_bps(fee_bps, self.settings.max_fee_bps)
        with atomic(self._session):
            state = self.state(for_update=True)
            state.fee_bps = fee_bps
            if treasury_address is not None:
                state.treasury_address = require_address(treasury_address, field="treasury_address")
            state.updated_at = self.clock()
            self._funds.save_protocol_state(state)
        logger.info(
            "Fee configuration changed: fee_bps={}, treasury={}",
            state.fee_bps,
            state.treasury_address,
        )
        return state

    def set_min_stake_amount(self, caller: str, amount: int) -> ProtocolState:
        self.require_owner(caller)
        if amount < 0:
            raise InvalidConfiguration(min_stake_amount=amount)
        with atomic(self._session):
            state = self.state(for_update=True)
            state.min_stake_amount = amount
            state.updated_at = self.clock()
            self._funds.save_protocol_state(state)
        logger.info("Minimum stake amount changed to {}", amount)
        return state

    def set_max_price_staleness(self, caller: str, seconds: int) -> ProtocolState:
        self.require_owner(caller)
        if seconds <= 0:
            raise InvalidConfiguration(max_price_staleness_seconds=seconds)
        with atomic(self._session):
            state = self.state(for_update=True)
            state.max_price_staleness_seconds = seconds
            state.updated_at = self.clock()
            self._funds.save_protocol_state(state)
        logger.info("Maximum oracle staleness changed to {}s", seconds)
        return state

    def transfer_ownership(self, caller: str, new_owner: str) -> ProtocolState:
        previous = self.require_owner(caller)
        normalized = require_address(new_owner, field="new_owner")
        with atomic(self._session):
            state = self.state(for_update=True)
            state.owner = normalized
            state.updated_at = self.clock()
            self._funds.save_protocol_state(state)
        logger.info("Protocol ownership transferred from {} to {}", previous, normalized)
        return state


__all__ = ["ProtocolService", "require_address", "system_clock"]
