from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, PrimaryKeyConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class SyncCheckpointsDB(BaseDB):
    """
    Durable progress of one ingestion worker.

    last_block_height is the highest block whose events for this
    (contract, event) pair are fully committed. It only moves forward, in the
    same transaction as the window it covers.
    """

    __tablename__ = "sync_checkpoints"
    __table_args__ = (PrimaryKeyConstraint("contract_address", "event_name"),)

    contract_address: Mapped[str] = mapped_column(String, nullable=False)
    event_name: Mapped[str] = mapped_column(String, nullable=False)
    last_block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
