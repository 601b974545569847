from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Index, Integer, Numeric, PrimaryKeyConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class DistributionsDB(BaseDB):
    """
    One leaf of an epoch's reward Merkle tree.

    At most one allocation per (distributor, epoch, address). Rows are
    written once per epoch in a single transaction and never updated: the
    proof is bound to the root published on-chain.
    """

    __tablename__ = "distributions"
    __table_args__ = (
        PrimaryKeyConstraint("distributor_address", "epoch_number", "address_hex"),
        Index("ix_distributions_address_bech32", "address_bech32"),
    )

    distributor_address: Mapped[str] = mapped_column(String, nullable=False)
    epoch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    address_hex: Mapped[str] = mapped_column(String, nullable=False)
    address_bech32: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 0), nullable=False)

    """Space separated hex: leaf hash, sibling hashes, root."""
    proof: Mapped[str] = mapped_column(Text, nullable=False)
