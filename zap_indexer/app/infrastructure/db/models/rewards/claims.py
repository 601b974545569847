from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class ClaimsDB(BaseDB):
    """
    Fulfilled distribution: an address redeemed its allocation for an epoch.

    Only written when a matching row exists in distributions.
    """

    __tablename__ = "claims"
    __table_args__ = (
        PrimaryKeyConstraint("transaction_hash", "event_sequence"),
        UniqueConstraint(
            "distributor_address",
            "epoch_number",
            "initiator_address",
            name="uq_claims_distributor_epoch_initiator",
        ),
    )

    transaction_hash: Mapped[str] = mapped_column(String, nullable=False)
    event_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    distributor_address: Mapped[str] = mapped_column(String, nullable=False)
    epoch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    initiator_address: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 0), nullable=False)
