"""Price oracle integrations."""

from .client import CoinGeckoPriceSource, to_fixed_point

__all__ = ["CoinGeckoPriceSource", "to_fixed_point"]
