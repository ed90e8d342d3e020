"""Error taxonomy shared by the ledger, ingestion, resolution and settlement paths."""

from __future__ import annotations

from typing import Any


class SwapCastError(Exception):
    """Base class for every failure raised by the settlement core.

    ``kind`` is a stable identifier surfaced across boundaries (ingestion
    results, API payloads, sweep summaries); ``retryable`` tells the caller
    whether trying the same call later can succeed.
    """

    kind = "swapcast_error"
    retryable = False

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.context = context
        super().__init__(message or self._default_message())

    def _default_message(self) -> str:
        if not self.context:
            return self.kind
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.kind}: {details}"


# ----------------------------------------------------------------------
# Lookup failures


class NotFoundError(SwapCastError):
    kind = "not_found"


class MarketNotFound(NotFoundError):
    kind = "market_not_found"


class PositionNotFound(NotFoundError):
    kind = "position_not_found"


# ----------------------------------------------------------------------
# Validation: surfaced to the caller, abort any enclosing operation


class ValidationError(SwapCastError):
    kind = "validation_error"


class MarketExpired(ValidationError):
    kind = "market_expired"


class MarketAlreadyResolved(ValidationError):
    kind = "market_already_resolved"


class InvalidPredictionData(ValidationError):
    kind = "invalid_prediction_data"


class AlreadyPredicted(ValidationError):
    kind = "already_predicted"


class ZeroStake(ValidationError):
    kind = "zero_stake"


class StakeBelowMinimum(ValidationError):
    kind = "stake_below_minimum"


class InvalidMarketParameters(ValidationError):
    kind = "invalid_market_parameters"


class InvalidAddress(ValidationError):
    kind = "invalid_address"


class InvalidFeeRate(ValidationError):
    kind = "invalid_fee_rate"


class InvalidConfiguration(ValidationError):
    kind = "invalid_configuration"


class LosingPosition(ValidationError):
    kind = "losing_position"


class InsufficientTreasuryBalance(ValidationError):
    kind = "insufficient_treasury_balance"


# ----------------------------------------------------------------------
# Timing: wait and retry later


class TimingError(SwapCastError):
    kind = "timing_error"
    retryable = True


class NotExpiredYet(TimingError):
    kind = "not_expired_yet"


class MarketNotResolved(TimingError):
    kind = "market_not_resolved"


# ----------------------------------------------------------------------
# Oracle: transient, retried on the next scheduler tick


class OracleError(SwapCastError):
    kind = "oracle_error"
    retryable = True


class StaleOracleData(OracleError):
    kind = "stale_oracle_data"


class InvalidOracleData(OracleError):
    kind = "invalid_oracle_data"


# ----------------------------------------------------------------------
# Authorization: fatal to the call


class AuthorizationError(SwapCastError):
    kind = "authorization_error"


class NotOwner(AuthorizationError):
    kind = "not_owner"


class NotProtocolOwner(AuthorizationError):
    kind = "not_protocol_owner"


# ----------------------------------------------------------------------
# Integrity: bugs, refuse to proceed


class IntegrityError(SwapCastError):
    kind = "integrity_error"


class DegenerateMarket(IntegrityError):
    kind = "degenerate_market"


class PayoutTransferFailed(IntegrityError):
    kind = "payout_transfer_failed"


__all__ = [
    "AlreadyPredicted",
    "AuthorizationError",
    "DegenerateMarket",
    "InsufficientTreasuryBalance",
    "IntegrityError",
    "InvalidAddress",
    "InvalidConfiguration",
    "InvalidFeeRate",
    "InvalidMarketParameters",
    "InvalidOracleData",
    "InvalidPredictionData",
    "LosingPosition",
    "MarketAlreadyResolved",
    "MarketExpired",
    "MarketNotFound",
    "MarketNotResolved",
    "NotExpiredYet",
    "NotFoundError",
    "NotOwner",
    "NotProtocolOwner",
    "OracleError",
    "PayoutTransferFailed",
    "PositionNotFound",
    "StakeBelowMinimum",
    "StaleOracleData",
    "SwapCastError",
    "TimingError",
    "ValidationError",
    "ZeroStake",
]
