"""Import every table model so BaseDB.metadata is complete (Alembic, tests)."""
from __future__ import annotations

from zap_indexer.app.infrastructure.db.db_base import BaseDB
from zap_indexer.app.infrastructure.db.models.ledger.chain_events import ChainEventsDB
from zap_indexer.app.infrastructure.db.models.ledger.liquidity_changes import LiquidityChangesDB
from zap_indexer.app.infrastructure.db.models.ledger.swaps import SwapsDB
from zap_indexer.app.infrastructure.db.models.rewards.claims import ClaimsDB
from zap_indexer.app.infrastructure.db.models.rewards.distributions import DistributionsDB
from zap_indexer.app.infrastructure.db.models.sync.backfill_completions import BackfillCompletionsDB
from zap_indexer.app.infrastructure.db.models.sync.block_syncs import BlockSyncsDB
from zap_indexer.app.infrastructure.db.models.sync.sync_checkpoints import SyncCheckpointsDB

metadata = BaseDB.metadata

__all__ = [
    "BaseDB",
    "BackfillCompletionsDB",
    "BlockSyncsDB",
    "ChainEventsDB",
    "ClaimsDB",
    "DistributionsDB",
    "LiquidityChangesDB",
    "SwapsDB",
    "SyncCheckpointsDB",
    "metadata",
]
