from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, PrimaryKeyConstraint
from sqlalchemy.orm import Mapped, mapped_column

from zap_indexer.app.infrastructure.db.db_base import BaseDB


class BlockSyncsDB(BaseDB):
    """
    One row per block height observed while polling, even when the block
    carried no indexed events. A missing height means the indexer lost data.
    """

    __tablename__ = "block_syncs"
    __table_args__ = (PrimaryKeyConstraint("block_height"),)

    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    num_txs: Mapped[int] = mapped_column(Integer, nullable=False)
