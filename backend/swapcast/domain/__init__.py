"""Domain models representing markets, positions and external capabilities."""

from .models import (
    Clock,
    MarketSnapshot,
    MarketState,
    Outcome,
    PayoutTransport,
    PositionSnapshot,
    PredictionPayload,
    PriceSample,
    PriceSource,
    ProtocolCounters,
    TradeContext,
)

__all__ = [
    "Clock",
    "MarketSnapshot",
    "MarketState",
    "Outcome",
    "PayoutTransport",
    "PositionSnapshot",
    "PredictionPayload",
    "PriceSample",
    "PriceSource",
    "ProtocolCounters",
    "TradeContext",
]
