from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

import httpx
from loguru import logger

from swapcast.core.config import settings
from swapcast.domain import PriceSample
from swapcast.errors import InvalidOracleData


def to_fixed_point(value: Any, decimals: int) -> int:
    """Scale a decimal quote to an integer with ``decimals`` places, rounding down."""

    scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


class CoinGeckoPriceSource:
    """HTTP price oracle backed by the CoinGecko ``/simple/price`` endpoint.

    A market's ``oracle_ref`` is the CoinGecko coin id (``"ethereum"``,
    ``"bitcoin"``). Prices are converted to fixed-point integers with
    ``price_decimals`` places so they compare directly with market thresholds.
    """

    price_path = "/simple/price"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        vs_currency: str | None = None,
        price_decimals: int | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or str(settings.price_api_base_url)
        self.vs_currency = (vs_currency or settings.price_api_vs_currency).lower()
        self.price_decimals = settings.price_decimals if price_decimals is None else price_decimals
        self.timeout = timeout or settings.price_api_timeout_seconds
        client_kwargs: dict[str, Any] = {"base_url": self.base_url, "timeout": self.timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

    def fetch_quote(self, coin_id: str) -> dict[str, Any]:
        params = {
            "ids": coin_id,
            "vs_currencies": self.vs_currency,
            "include_last_updated_at": "true",
        }
        logger.debug("Price oracle GET {} params={}", self.price_path, params)
        response = self.client.get(self.price_path, params=params)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise InvalidOracleData(oracle_ref=coin_id, reason="unexpected payload shape")
        quote = payload.get(coin_id)
        if not isinstance(quote, dict):
            raise InvalidOracleData(oracle_ref=coin_id, reason="coin missing from response")
        return quote

    def get_latest_sample(self, oracle_ref: str) -> PriceSample:
        coin_id = oracle_ref.strip().lower()
        try:
            quote = self.fetch_quote(coin_id)
        except httpx.HTTPError as exc:
            logger.warning("Price oracle request for {} failed: {}", coin_id, exc)
            raise InvalidOracleData(
                f"price oracle request failed for '{coin_id}': {exc}", oracle_ref=coin_id
            ) from exc

        raw_price = quote.get(self.vs_currency)
        raw_timestamp = quote.get("last_updated_at")
        if raw_price is None or raw_timestamp is None:
            return PriceSample(price=0, timestamp=0, valid=False)

        try:
            price = self.to_fixed_point(raw_price)
            timestamp = int(raw_timestamp)
        except (InvalidOperation, OverflowError, TypeError, ValueError):
            return PriceSample(price=0, timestamp=0, valid=False)
        return PriceSample(price=price, timestamp=timestamp, valid=price > 0)

    def to_fixed_point(self, value: Any) -> int:
        return to_fixed_point(value, self.price_decimals)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "CoinGeckoPriceSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
