import argparse
from decimal import InvalidOperation

from loguru import logger

from swapcast.core.config import get_settings
from swapcast.db import init_db, session_scope
from swapcast.errors import SwapCastError
from swapcast.oracle import to_fixed_point
from swapcast.services.ledger import PositionLedger
from swapcast.services.protocol import system_clock


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a binary price prediction market")
    parser.add_argument("--description", required=True, help="Human readable market question")
    parser.add_argument("--pair", required=True, help="Asset pair key, e.g. ETH/USD")
    parser.add_argument("--oracle-ref", required=True, help="Price feed id, e.g. ethereum")
    parser.add_argument(
        "--threshold",
        required=True,
        help="Price threshold as a decimal quote (scaled by PRICE_DECIMALS)",
    )
    expiry = parser.add_mutually_exclusive_group(required=True)
    expiry.add_argument("--expires-at", type=int, help="Expiration as a unix timestamp")
    expiry.add_argument("--expires-in", type=int, help="Expiration as seconds from now")
    parser.add_argument(
        "--min-stake",
        type=int,
        default=None,
        help="Per-market minimum gross stake overriding the protocol minimum",
    )
    return parser.parse_args(argv)


def expiration_from_args(args: argparse.Namespace, now: int) -> int:
    if args.expires_at is not None:
        return args.expires_at
    return now + args.expires_in


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    init_db()

    try:
        threshold = to_fixed_point(args.threshold, settings.price_decimals)
    except (InvalidOperation, ValueError):
        logger.error("Invalid threshold '{}'", args.threshold)
        return 2
    expiration_time = expiration_from_args(args, system_clock())

    try:
        with session_scope() as session:
            market_id = PositionLedger(session, settings=settings).create_market(
                args.description,
                args.pair,
                expiration_time,
                args.oracle_ref,
                threshold,
                min_stake=args.min_stake,
            )
    except SwapCastError as exc:
        logger.error("Market creation rejected: {}", exc)
        return 1

    logger.info("Created market {} expiring at {}", market_id, expiration_time)
    print(market_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
