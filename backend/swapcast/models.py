from __future__ import annotations

import time
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .db import Base


class TokenAmount(TypeDecorator):
    """Non-negative arbitrary-precision integer persisted as a decimal string.

    Token amounts routinely exceed 64 bits (18-decimal units), which neither
    SQLite INTEGER nor a float-backed NUMERIC round-trips exactly.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = int(value)
        if amount < 0:
            raise ValueError(f"token amounts must be non-negative, got {amount}")
        return str(amount)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class ResolutionSource(str, Enum):
    ORACLE = "oracle"
    MANUAL = "manual"


class TransferKind(str, Enum):
    STAKE = "stake"
    FEE = "fee"
    PAYOUT = "payout"
    WITHDRAWAL = "withdrawal"


def unix_now() -> int:
    return int(time.time())


def escrow_account(market_id: int) -> str:
    """Pseudo-account holding the net stakes of one market."""

    return f"escrow:{market_id}"


class Market(Base):
    __tablename__ = "markets"
    __table_args__ = {"sqlite_autoincrement": True}

    market_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    asset_pair_key: Mapped[str] = mapped_column(String, nullable=False)
    expiration_time: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    price_threshold: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    oracle_ref: Mapped[str] = mapped_column(String, nullable=False)
    min_stake: Mapped[int | None] = mapped_column(TokenAmount, nullable=True)

    total_stake_bearish: Mapped[int] = mapped_column(TokenAmount, nullable=False, default=0)
    total_stake_bullish: Mapped[int] = mapped_column(TokenAmount, nullable=False, default=0)
    total_protocol_fees: Mapped[int] = mapped_column(TokenAmount, nullable=False, default=0)
    position_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    winning_outcome: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resolution_price: Mapped[int | None] = mapped_column(TokenAmount, nullable=True)
    resolution_source: Mapped[str | None] = mapped_column(String(20), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=unix_now)

    positions: Mapped[list["Position"]] = relationship("Position", back_populates="market")
    claims: Mapped[list["Claim"]] = relationship("Claim", back_populates="market")
    resolution_attempts: Mapped[list["ResolutionAttempt"]] = relationship(
        "ResolutionAttempt", back_populates="market", cascade="all, delete-orphan"
    )


class Position(Base):
    __tablename__ = "positions"
    __table_args__ = {"sqlite_autoincrement": True}

    position_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("markets.market_id"), nullable=False, index=True
    )
    outcome: Mapped[int] = mapped_column(Integer, nullable=False)
    conviction_stake: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    gross_amount: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    fee_amount: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    owner: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    minted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    market: Mapped[Market] = relationship("Market", back_populates="positions")


class Prediction(Base):
    """One row per (market, predictor); survives transfers and claims."""

    __tablename__ = "predictions"

    market_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("markets.market_id"), primary_key=True
    )
    predictor: Mapped[str] = mapped_column(String(42), primary_key=True)
    position_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Claim(Base):
    """Permanent record of a destroyed (claimed) position."""

    __tablename__ = "claims"

    position_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    market_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("markets.market_id"), nullable=False, index=True
    )
    outcome: Mapped[int] = mapped_column(Integer, nullable=False)
    conviction_stake: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    claimant: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    amount_paid: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    claimed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    market: Mapped[Market] = relationship("Market", back_populates="claims")


class Account(Base):
    __tablename__ = "accounts"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(TokenAmount, nullable=False, default=0)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=unix_now)


class FundTransfer(Base):
    __tablename__ = "fund_transfers"
    __table_args__ = {"sqlite_autoincrement": True}

    transfer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    destination: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    market_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    position_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ProtocolState(Base):
    """Singleton row holding the runtime-adjustable protocol configuration."""

    __tablename__ = "protocol_state"

    state_id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    owner: Mapped[str] = mapped_column(String(42), nullable=False)
    treasury_address: Mapped[str] = mapped_column(String(42), nullable=False)
    fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    min_stake_amount: Mapped[int] = mapped_column(TokenAmount, nullable=False, default=0)
    max_price_staleness_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=unix_now)


class ResolutionAttempt(Base):
    __tablename__ = "resolution_attempts"
    __table_args__ = {"sqlite_autoincrement": True}

    attempt_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("markets.market_id"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    market: Mapped[Market] = relationship("Market", back_populates="resolution_attempts")
