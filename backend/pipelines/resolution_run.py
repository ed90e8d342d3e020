"""Standalone job that resolves expired markets against the price oracle.

Meant to be run by an external scheduler (cron, a workflow runner). Each
market is resolved in its own transaction so one failing oracle read never
blocks the rest of the sweep; failed markets stay pending and are retried on
the next run.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from swapcast.core.config import Settings, get_settings
from swapcast.db import init_db, session_scope
from swapcast.domain import Clock, PriceSource
from swapcast.errors import InvalidOracleData, StaleOracleData, SwapCastError
from swapcast.oracle import CoinGeckoPriceSource
from swapcast.services.ledger import PositionLedger
from swapcast.services.resolution import OracleResolutionEngine


@dataclass(slots=True)
class ResolutionSummary:
    checked: int = 0
    resolved: int = 0
    stale: int = 0
    invalid: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "resolved": self.resolved,
            "stale": self.stale,
            "invalid": self.invalid,
            "failures": self.failures,
        }


class ResolutionPipeline:
    """Resolve every market that has expired but not yet settled."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        price_source: PriceSource | None = None,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_price_source = price_source is None
        self.price_source = price_source or CoinGeckoPriceSource(
            base_url=str(self.settings.price_api_base_url),
            vs_currency=self.settings.price_api_vs_currency,
            price_decimals=self.settings.price_decimals,
            timeout=self.settings.price_api_timeout_seconds,
        )
        self._session_factory = session_factory
        self._clock = clock

    def run(
        self,
        *,
        limit: int | None = None,
        batch_size: int | None = None,
    ) -> ResolutionSummary:
        if self._session_factory is None:
            init_db()
        summary = ResolutionSummary()
        batch_size = batch_size or self.settings.resolution_batch_size
        limit = limit or self.settings.resolution_max_markets

        logger.info("Starting resolution sweep: limit={}, batch_size={}", limit, batch_size)

        with session_scope(self._session_factory) as session:
            candidates = self._ledger(session).expired_unresolved_market_ids(limit=limit)
        if not candidates:
            logger.info("No expired markets awaiting resolution; sweep completed with no updates")
            return summary

        logger.info("Resolution sweep evaluating {} markets", len(candidates))
        for chunk in _chunked(candidates, batch_size):
            for market_id in chunk:
                summary.checked += 1
                self._resolve_one(market_id, summary)

        logger.info(
            "Resolution sweep finished: checked={}, resolved={}, stale={}, invalid={}, failures={}",
            summary.checked,
            summary.resolved,
            summary.stale,
            summary.invalid,
            len(summary.failures),
        )
        return summary

    def close(self) -> None:
        if self._owns_price_source and hasattr(self.price_source, "close"):
            self.price_source.close()

    def _ledger(self, session: Session) -> PositionLedger:
        return PositionLedger(session, settings=self.settings, clock=self._clock)

    def _resolve_one(self, market_id: int, summary: ResolutionSummary) -> None:
        # Errors are handled inside the scope so the recorded attempt row commits.
        with session_scope(self._session_factory) as session:
            engine = OracleResolutionEngine(self._ledger(session), self.price_source)
            try:
                outcome = engine.resolve(market_id)
            except StaleOracleData as exc:
                summary.stale += 1
                summary.failures.append(_failure(market_id, exc))
                return
            except InvalidOracleData as exc:
                summary.invalid += 1
                summary.failures.append(_failure(market_id, exc))
                return
            except SwapCastError as exc:
                logger.warning("Market {} skipped during sweep: {}", market_id, exc)
                summary.failures.append(_failure(market_id, exc))
                return

        summary.resolved += 1
        logger.info(
            "Market {} resolved {} at price {}",
            market_id,
            outcome.winning_outcome.name,
            outcome.price,
        )


def _failure(market_id: int, exc: SwapCastError) -> dict[str, Any]:
    return {
        "market_id": market_id,
        "reason": exc.kind,
        "detail": str(exc),
        "retryable": exc.retryable,
    }


def _chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    if size <= 0:
        yield items
        return
    for index in range(0, len(items), size):
        yield items[index : index + size]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve expired prediction markets against the price oracle",
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of markets to resolve")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Override the number of markets processed per chunk",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary report will be written",
    )
    return parser.parse_args(argv)


def _write_summary(summary: ResolutionSummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), default=str, indent=2))
    logger.info("Resolution summary written to {}", path)


def main(argv: Sequence[str] | None = None) -> ResolutionSummary:
    args = _parse_args(argv)
    settings = get_settings()
    pipeline = ResolutionPipeline(settings)
    try:
        summary = pipeline.run(limit=args.limit, batch_size=args.batch_size)
    finally:
        pipeline.close()

    if args.summary_path:
        _write_summary(summary, args.summary_path)
    return summary


if __name__ == "__main__":
    main()
