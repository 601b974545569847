from __future__ import annotations

from sqlalchemy import BigInteger, PrimaryKeyConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class BackfillCompletionsDB(BaseDB):
    """
    Marker written once the historical backfill of a (contract, event) pair
    reached the chain head. block_height is that head: block_syncs must be
    gap-free from the next height onward.
    """

    __tablename__ = "backfill_completions"
    __table_args__ = (PrimaryKeyConstraint("contract_address", "event_name"),)

    contract_address: Mapped[str] = mapped_column(String, nullable=False)
    event_name: Mapped[str] = mapped_column(String, nullable=False)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
