"""Swap-venue adapter that records predictions carried in hook data."""

from .hook_data import decode_prediction, encode_prediction
from .service import IngestionResult, StakeIngestionAdapter, SwapEvent, ingest_swap

__all__ = [
    "IngestionResult",
    "StakeIngestionAdapter",
    "SwapEvent",
    "decode_prediction",
    "encode_prediction",
    "ingest_swap",
]
