"""Oracle-driven market resolution.

Per market: ``OPEN`` while ``now < expiration_time``, then (implicitly)
``PENDING_RESOLUTION`` until a single successful write moves it to the
terminal ``RESOLVED`` state. Reading the oracle and deciding the outcome are
side-effect free, so a failed attempt is simply retried on a later tick.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from swapcast.domain import MarketState, Outcome, PriceSample, PriceSource
from swapcast.errors import (
    InvalidConfiguration,
    InvalidOracleData,
    MarketAlreadyResolved,
    NotExpiredYet,
    OracleError,
    StaleOracleData,
)
from swapcast.models import ResolutionSource

from .ledger import PositionLedger


def decide_outcome(price: int, threshold: int) -> Outcome:
    """Bullish when the price reaches the threshold; equality resolves Bullish."""

    return Outcome.BULLISH if price >= threshold else Outcome.BEARISH


@dataclass(slots=True, frozen=True)
class ResolutionOutcome:
    market_id: int
    winning_outcome: Outcome
    price: int | None
    source: ResolutionSource
    resolved_at: int


class OracleResolutionEngine:
    def __init__(
        self,
        ledger: PositionLedger,
        price_source: PriceSource,
        *,
        max_staleness_seconds: int | None = None,
    ) -> None:
        self.ledger = ledger
        self.price_source = price_source
        self._max_staleness_override = max_staleness_seconds

    @property
    def max_staleness_seconds(self) -> int:
        if self._max_staleness_override is not None:
            return self._max_staleness_override
        return self.ledger.protocol.max_price_staleness_seconds

    def market_state(self, market_id: int) -> MarketState:
        return self.ledger.market_state(market_id)

    def has_due_market(self) -> int | None:
        """Return the oldest expired, unresolved market id, if any."""

        due = self.ledger.expired_unresolved_market_ids(limit=1)
        return due[0] if due else None

    def due_markets(self, *, limit: int | None = None) -> list[int]:
        return self.ledger.expired_unresolved_market_ids(limit=limit)

    def resolve(self, market_id: int) -> ResolutionOutcome:
        market = self.ledger.read_market(market_id)
        if market.resolved:
            raise MarketAlreadyResolved(market_id=market_id)
        now = self.ledger.now()
        if now < market.expiration_time:
            raise NotExpiredYet(
                market_id=market_id,
                expiration_time=market.expiration_time,
                current_time=now,
            )

        try:
            sample = self._fetch_sample(market.oracle_ref)
            self._validate_sample(market_id, sample, now)
        except OracleError as exc:
            logger.warning("Resolution of market {} deferred: {}", market_id, exc)
            self.ledger.record_resolution_failure(market_id, exc.kind, str(exc))
            raise

        outcome = decide_outcome(sample.price, market.price_threshold)
        resolved = self.ledger.mark_resolved(
            market_id,
            outcome,
            price=sample.price,
            source=ResolutionSource.ORACLE,
        )
        return ResolutionOutcome(
            market_id=market_id,
            winning_outcome=outcome,
            price=sample.price,
            source=ResolutionSource.ORACLE,
            resolved_at=resolved.resolved_at or now,
        )

    def resolve_manual(
        self,
        caller: str,
        market_id: int,
        outcome: int | Outcome,
        *,
        reason: str,
        price: int | None = None,
    ) -> ResolutionOutcome:
        """Privileged override for a persistently stale or disputed oracle."""

        self.ledger.protocol.require_owner(caller)
        if not reason or not reason.strip():
            raise InvalidConfiguration("manual resolution requires a reason")
        resolved = self.ledger.mark_resolved(
            market_id,
            outcome,
            price=price,
            source=ResolutionSource.MANUAL,
            notes=reason.strip(),
        )
        logger.warning(
            "Market {} resolved manually by {}: outcome={}, reason={}",
            market_id,
            caller,
            resolved.winning_outcome.name if resolved.winning_outcome is not None else None,
            reason,
        )
        return ResolutionOutcome(
            market_id=market_id,
            winning_outcome=resolved.winning_outcome,
            price=price,
            source=ResolutionSource.MANUAL,
            resolved_at=resolved.resolved_at or self.ledger.now(),
        )

    def _fetch_sample(self, oracle_ref: str) -> PriceSample:
        try:
            sample = self.price_source.get_latest_sample(oracle_ref)
        except OracleError:
            raise
        except Exception as exc:
            raise InvalidOracleData(
                f"price source failed for '{oracle_ref}': {exc}", oracle_ref=oracle_ref
            ) from exc
        if sample is None:
            raise InvalidOracleData(oracle_ref=oracle_ref, reason="no sample")
        return sample

    def _validate_sample(self, market_id: int, sample: PriceSample, now: int) -> None:
        if not sample.valid or sample.price <= 0:
            raise InvalidOracleData(market_id=market_id, price=sample.price, valid=sample.valid)
        if sample.timestamp > now:
            raise InvalidOracleData(
                market_id=market_id, last_updated_at=sample.timestamp, current_time=now
            )
        if now - sample.timestamp > self.max_staleness_seconds:
            raise StaleOracleData(
                market_id=market_id,
                last_updated_at=sample.timestamp,
                current_time=now,
                max_staleness=self.max_staleness_seconds,
            )


__all__ = ["OracleResolutionEngine", "ResolutionOutcome", "decide_outcome"]
