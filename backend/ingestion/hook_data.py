"""Codec for the prediction parameters packed into a swap's hook data.

Layout (big-endian, tightly packed)::

    predictor   address   20 bytes
    market_id   uint256   32 bytes
    outcome     uint8      1 byte   (0 = bearish, 1 = bullish)
    stake       uint128   16 bytes  (omitted in delta mode)
"""

from __future__ import annotations

from swapcast.domain import Outcome, PredictionPayload
from swapcast.errors import InvalidPredictionData

ADDRESS_BYTES = 20
MARKET_ID_BYTES = 32
OUTCOME_BYTES = 1
STAKE_BYTES = 16

DELTA_PAYLOAD_LENGTH = ADDRESS_BYTES + MARKET_ID_BYTES + OUTCOME_BYTES
EXPLICIT_PAYLOAD_LENGTH = DELTA_PAYLOAD_LENGTH + STAKE_BYTES

MAX_UINT128 = (1 << 128) - 1
MAX_UINT256 = (1 << 256) - 1
ZERO_ADDRESS = "0x" + "00" * ADDRESS_BYTES


def _as_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        text = data.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            return bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidPredictionData("hook data is not valid hex") from exc
    raise InvalidPredictionData(f"unsupported hook data type {type(data).__name__}")


def decode_prediction(data: bytes | bytearray | memoryview | str) -> PredictionPayload:
    raw = _as_bytes(data)
    if len(raw) not in (DELTA_PAYLOAD_LENGTH, EXPLICIT_PAYLOAD_LENGTH):
        raise InvalidPredictionData(
            length=len(raw),
            expected=f"{DELTA_PAYLOAD_LENGTH} or {EXPLICIT_PAYLOAD_LENGTH}",
        )

    cursor = 0
    address_bytes = raw[cursor : cursor + ADDRESS_BYTES]
    cursor += ADDRESS_BYTES
    market_id = int.from_bytes(raw[cursor : cursor + MARKET_ID_BYTES], "big")
    cursor += MARKET_ID_BYTES
    outcome_value = raw[cursor]
    cursor += OUTCOME_BYTES

    predictor = "0x" + address_bytes.hex()
    if predictor == ZERO_ADDRESS:
        raise InvalidPredictionData("predictor must not be the zero address")
    try:
        outcome = Outcome(outcome_value)
    except ValueError as exc:
        raise InvalidPredictionData(outcome=outcome_value) from exc

    stake_amount = None
    if len(raw) == EXPLICIT_PAYLOAD_LENGTH:
        stake_amount = int.from_bytes(raw[cursor : cursor + STAKE_BYTES], "big")

    return PredictionPayload(
        predictor=predictor,
        market_id=market_id,
        outcome=outcome,
        stake_amount=stake_amount,
    )


def encode_prediction(
    predictor: str,
    market_id: int,
    outcome: int | Outcome,
    stake_amount: int | None = None,
) -> bytes:
    """Pack prediction parameters; used by venue-side glue and tests."""

    address = predictor.lower()
    if address.startswith("0x"):
        address = address[2:]
    try:
        address_bytes = bytes.fromhex(address)
    except ValueError as exc:
        raise InvalidPredictionData(predictor=predictor) from exc
    if len(address_bytes) != ADDRESS_BYTES:
        raise InvalidPredictionData(predictor=predictor)
    if not 0 <= market_id <= MAX_UINT256:
        raise InvalidPredictionData(market_id=market_id)
    side = Outcome(outcome)

    packed = (
        address_bytes
        + market_id.to_bytes(MARKET_ID_BYTES, "big")
        + int(side).to_bytes(OUTCOME_BYTES, "big")
    )
    if stake_amount is not None:
        if not 0 <= stake_amount <= MAX_UINT128:
            raise InvalidPredictionData(f"stake amount {stake_amount} exceeds uint128")
        packed += stake_amount.to_bytes(STAKE_BYTES, "big")
    return packed


__all__ = [
    "DELTA_PAYLOAD_LENGTH",
    "EXPLICIT_PAYLOAD_LENGTH",
    "decode_prediction",
    "encode_prediction",
]
