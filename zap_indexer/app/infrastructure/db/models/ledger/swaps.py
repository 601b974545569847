from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class SwapsDB(BaseDB):
    """
    Normalized swap legs for both exchange contract generations.

    One row = one swap event. A multi-hop trade produces one row per leg,
    all sharing the transaction hash and ordered by event_sequence.

    Shape-specific columns are nullable:
      - amm:    amount_0_in / amount_1_in / amount_0_out / amount_1_out, router, to
      - legacy: token_amount / zil_amount / is_sending_zil

    Idempotency:
      - PK matches the canonical event identity: (transaction_hash, event_sequence)
    """

    __tablename__ = "swaps"
    __table_args__ = (
        PrimaryKeyConstraint("transaction_hash", "event_sequence"),
        Index("ix_swaps_pool_address", "pool_address"),
        Index("ix_swaps_initiator_address", "initiator_address"),
        Index("ix_swaps_block_timestamp", "block_timestamp"),
        Index("ix_swaps_block_height_tx", "block_height", "transaction_hash"),
    )

    # -------------------------------------------------------------------------
    # Identity / ordering
    # -------------------------------------------------------------------------
    transaction_hash: Mapped[str] = mapped_column(String, nullable=False)
    event_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # -------------------------------------------------------------------------
    # Parties / contracts
    # -------------------------------------------------------------------------
    initiator_address: Mapped[str] = mapped_column(String, nullable=False)
    # AMM: pool contract. Legacy: the token whose ZIL pair was traded.
    pool_address: Mapped[str] = mapped_column(String, nullable=False)
    router_address: Mapped[str | None] = mapped_column(String, nullable=True)
    to_address: Mapped[str | None] = mapped_column(String, nullable=True)

    shape: Mapped[str] = mapped_column(String(16), nullable=False)

    # -------------------------------------------------------------------------
    # AMM amounts (wrt the pool)
    # -------------------------------------------------------------------------
    amount_0_in: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    amount_1_in: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    amount_0_out: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    amount_1_out: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)

    # -------------------------------------------------------------------------
    # Legacy amounts
    # -------------------------------------------------------------------------
    token_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    zil_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 0), nullable=True)
    # True = pool receives ZIL
    is_sending_zil: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
