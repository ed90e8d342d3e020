"""Repository abstractions for database interactions."""

from .funds_repository import FundsRepository
from .market_repository import MarketRepository

__all__ = [
    "FundsRepository",
    "MarketRepository",
]
