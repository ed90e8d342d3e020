"""Integer fee and stake arithmetic.

All amounts are integers in the token's smallest unit and every division
floors. The fee is derived once, at ingestion, from the gross amount.
"""

from __future__ import annotations

from .core.config import MAX_BASIS_POINTS
from .errors import InvalidFeeRate, ZeroStake


def _require_amount(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def validate_fee_bps(fee_bps: int, max_fee_bps: int = MAX_BASIS_POINTS) -> int:
    if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
        raise InvalidFeeRate(fee_bps=fee_bps, max_fee_bps=max_fee_bps)
    if not 0 <= fee_bps <= max_fee_bps:
        raise InvalidFeeRate(fee_bps=fee_bps, max_fee_bps=max_fee_bps)
    return fee_bps


def compute_fee(gross_amount: int, fee_bps: int) -> int:
    _require_amount(gross_amount, "gross_amount")
    validate_fee_bps(fee_bps)
    return gross_amount * fee_bps // MAX_BASIS_POINTS


def split_stake(gross_amount: int, fee_bps: int) -> tuple[int, int]:
    """Return ``(fee, net_stake)`` for a gross amount."""

    fee = compute_fee(gross_amount, fee_bps)
    return fee, gross_amount - fee


def delta_stake(amount_out: int, stake_bps: int) -> int:
    """Stake derived from a swap's realized output; never silently zero."""

    _require_amount(amount_out, "amount_out")
    if not 0 < stake_bps <= MAX_BASIS_POINTS:
        raise ValueError(f"stake_bps must be within 1..{MAX_BASIS_POINTS}, got {stake_bps}")
    stake = amount_out * stake_bps // MAX_BASIS_POINTS
    if stake <= 0:
        raise ZeroStake(amount_out=amount_out, stake_bps=stake_bps)
    return stake


__all__ = ["compute_fee", "delta_stake", "split_stake", "validate_fee_bps"]
