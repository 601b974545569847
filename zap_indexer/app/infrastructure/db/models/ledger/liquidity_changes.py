from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class LiquidityChangesDB(BaseDB):
    """
    Liquidity deposits / withdrawals.

    The sign of the liquidity units (change_amount for legacy pools, liquidity
    for AMM pools) gives the direction: negative = withdrawal. Token amounts are
    always stored as positive magnitudes.
    """

    __tablename__ = "liquidity_changes"
    __table_args__ = (
        PrimaryKeyConstraint("transaction_hash", "event_sequence"),
        Index("ix_liquidity_changes_pool_address", "pool_address"),
        Index("ix_liquidity_changes_initiator_address", "initiator_address"),
        Index("ix_liquidity_changes_block_timestamp", "block_timestamp"),
    )

    transaction_hash: Mapped[str] = mapped_column(String, nullable=False)
    event_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    initiator_address: Mapped[str] = mapped_column(String, nullable=False)
    pool_address: Mapped[str] = mapped_column(String, nullable=False)
    router_address: Mapped[str | None] = mapped_column(String, nullable=True)

    shape: Mapped[str] = mapped_column(String(16), nullable=False)

    # legacy
    change_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    token_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    zil_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)

    # amm
    amount_0: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    amount_1: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    liquidity: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
