from __future__ import annotations

from scripts.create_market import expiration_from_args, parse_args

BASE_ARGS = [
    "--description",
    "Will ETH close above $2,000?",
    "--pair",
    "ETH/USD",
    "--oracle-ref",
    "ethereum",
    "--threshold",
    "2000",
]


def test_explicit_expiration_is_kept_even_when_zero():
    args = parse_args(BASE_ARGS + ["--expires-at", "0"])
    assert expiration_from_args(args, now=1_700_000_000) == 0


def test_relative_expiration_counts_from_now():
    args = parse_args(BASE_ARGS + ["--expires-in", "3600"])
    assert expiration_from_args(args, now=1_700_000_000) == 1_700_003_600
