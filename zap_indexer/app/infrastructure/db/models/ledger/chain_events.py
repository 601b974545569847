from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class ChainEventsDB(BaseDB):
    """
    Raw contract events as fetched from the event source.

    Each row is uniquely identified by (block_height, tx_hash, event_index).
    Rows are never deleted; the only mutation is the `processed` status flip
    from 'pending' to 'processed' or 'failed'.
    """

    __tablename__ = "chain_events"
    __table_args__ = (
        PrimaryKeyConstraint("block_height", "tx_hash", "event_index"),
        Index("ix_chain_events_contract_event", "contract_address", "event_name", "block_height"),
        Index("ix_chain_events_processed", "processed"),
    )

    """Height of the block the event was emitted in."""
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)

    """Block timestamp (UTC)."""
    block_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    """Hash of the emitting transaction."""
    tx_hash: Mapped[str] = mapped_column(String, nullable=False)

    """Position of the event in its transaction's event list."""
    event_index: Mapped[int] = mapped_column(Integer, nullable=False)

    contract_address: Mapped[str] = mapped_column(String, nullable=False)
    initiator_address: Mapped[str] = mapped_column(String, nullable=False)
    event_name: Mapped[str] = mapped_column(String, nullable=False)

    """Named event parameters, verbatim (amounts stay decimal strings)."""
    event_params: Mapped[Any] = mapped_column(JSON, nullable=False)

    """pending / processed / failed"""
    processed: Mapped[str] = mapped_column(String(16), nullable=False)
