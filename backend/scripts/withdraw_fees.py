import argparse

from loguru import logger

from swapcast.core.config import get_settings
from swapcast.db import init_db, session_scope
from swapcast.errors import SwapCastError
from swapcast.services.protocol import ProtocolService
from swapcast.services.treasury import TreasurySink


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Withdraw accumulated protocol fees from the treasury")
    parser.add_argument("--caller", required=True, help="Address of the protocol owner")
    parser.add_argument("--recipient", required=True, help="Address receiving the withdrawn fees")
    parser.add_argument(
        "--amount",
        type=int,
        default=None,
        help="Amount to withdraw in base units (defaults to the full treasury balance)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    init_db()

    try:
        with session_scope() as session:
            treasury = TreasurySink(session, ProtocolService(session, settings=settings))
            amount = args.amount if args.amount is not None else treasury.balance()
            remaining = treasury.withdraw(args.caller, amount, args.recipient)
    except SwapCastError as exc:
        logger.error("Withdrawal rejected: {}", exc)
        return 1

    logger.info("Withdrew {} to {}; treasury balance now {}", amount, args.recipient, remaining)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
