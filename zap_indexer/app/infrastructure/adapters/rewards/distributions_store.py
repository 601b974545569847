from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine

from zap_indexer.app.domain.models import LiquidityEvent
from zap_indexer.app.infrastructure.db.models.ledger.liquidity_changes import LiquidityChangesDB
from zap_indexer.app.infrastructure.db.models.ledger.swaps import SwapsDB
from zap_indexer.app.infrastructure.db.models.rewards.distributions import DistributionsDB
from zap_indexer.app.infrastructure.db.models.sync.backfill_completions import BackfillCompletionsDB
from zap_indexer.app.infrastructure.db.models.sync.block_syncs import BlockSyncsDB
from zap_indexer.app.infrastructure.db.models.sync.sync_checkpoints import SyncCheckpointsDB
from zap_indexer.app.infrastructure.db.statements import as_utc, insert_ignore, to_int, to_numeric

logger = logging.getLogger(__name__)


class SqlAlchemyDistributionsStore:
    """
    Ledger reads and distribution writes for the distribution engine.

    insert_distributions writes every leaf of an epoch in one transaction,
    in chunks, with ON CONFLICT DO NOTHING: a concurrent run of the same
    epoch loses silently and the engine detects it by re-reading the rows.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = 10_000) -> None:
        self._engine = engine
        self._batch_size = batch_size

    # ---------------------------------------------------------------------
    # distributions
    # ---------------------------------------------------------------------

    async def stored_root(self, *, distributor_address: str, epoch_number: int) -> bytes | None:
        stmt = (
            select(DistributionsDB.proof)
            .where(
                DistributionsDB.distributor_address == distributor_address,
                DistributionsDB.epoch_number == epoch_number,
            )
            .limit(1)
        )
        async with self._engine.connect() as conn:
            proof = (await conn.execute(stmt)).scalar_one_or_none()
        if proof is None:
            return None
        return bytes.fromhex(proof.split()[-1])

    async def load_distributions(self, *, distributor_address: str, epoch_number: int) -> list[dict[str, Any]]:
        stmt = (
            select(
                DistributionsDB.address_hex,
                DistributionsDB.address_bech32,
                DistributionsDB.amount,
                DistributionsDB.proof,
            )
            .where(
                DistributionsDB.distributor_address == distributor_address,
                DistributionsDB.epoch_number == epoch_number,
            )
            .order_by(DistributionsDB.address_hex)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [
            {
                "address_hex": r["address_hex"],
                "address_bech32": r["address_bech32"],
                "amount": to_int(r["amount"]),
                "proof": r["proof"],
            }
            for r in rows
        ]

    async def insert_distributions(
        self,
        *,
        distributor_address: str,
        epoch_number: int,
        rows: Sequence[dict],
    ) -> int:
        payload = [
            {
                "distributor_address": distributor_address,
                "epoch_number": epoch_number,
                "address_hex": r["address_hex"],
                "address_bech32": r["address_bech32"],
                "amount": to_numeric(r["amount"]),
                "proof": r["proof"],
            }
            for r in rows
        ]

        inserted = 0
        async with self._engine.begin() as conn:
            for i in range(0, len(payload), self._batch_size):
                batch = payload[i : i + self._batch_size]
                stmt = insert_ignore(
                    conn,
                    DistributionsDB,
                    index_elements=["distributor_address", "epoch_number", "address_hex"],
                )
                result = await conn.execute(stmt, batch)
                inserted += max(result.rowcount, 0)

        logger.info(
            "Inserted %s/%s distribution rows for distributor=%s epoch=%s",
            inserted,
            len(payload),
            distributor_address,
            epoch_number,
        )
        return inserted

    # ---------------------------------------------------------------------
    # readiness
    # ---------------------------------------------------------------------

    async def synced_through(self, *, pairs: Sequence[tuple[str, str]], timestamp: datetime) -> bool:
        """
        True if every (contract, event) pair finished its backfill and has a
        checkpoint at or past the first block synced at/after ``timestamp``.
        """
        if not pairs:
            return False

        async with self._engine.connect() as conn:
            end_block = (
                await conn.execute(
                    select(func.min(BlockSyncsDB.block_height)).where(
                        BlockSyncsDB.block_timestamp >= timestamp
                    )
                )
            ).scalar_one_or_none()
            if end_block is None:
                return False

            pair_filter = or_(
                *(
                    and_(
                        SyncCheckpointsDB.contract_address == contract,
                        SyncCheckpointsDB.event_name == event,
                    )
                    for contract, event in pairs
                )
            )
            checkpoints = {
                (r.contract_address, r.event_name): r.last_block_height
                for r in await conn.execute(
                    select(
                        SyncCheckpointsDB.contract_address,
                        SyncCheckpointsDB.event_name,
                        SyncCheckpointsDB.last_block_height,
                    ).where(pair_filter)
                )
            }
            completions = {
                (r.contract_address, r.event_name)
                for r in await conn.execute(
                    select(
                        BackfillCompletionsDB.contract_address,
                        BackfillCompletionsDB.event_name,
                    )
                )
            }

        for pair in pairs:
            if pair not in completions:
                logger.info("Pair %s/%s has not finished backfilling", *pair)
                return False
            checkpoint = checkpoints.get(pair)
            if checkpoint is None or checkpoint < end_block:
                logger.info("Pair %s/%s is behind block %s", pair[0], pair[1], end_block)
                return False
        return True

    # ---------------------------------------------------------------------
    # ledger reads
    # ---------------------------------------------------------------------

    async def liquidity_history(self, *, pools: Sequence[str], until: datetime) -> list[LiquidityEvent]:
        stmt = (
            select(
                LiquidityChangesDB.pool_address,
                LiquidityChangesDB.initiator_address,
                LiquidityChangesDB.block_timestamp,
                LiquidityChangesDB.change_amount,
                LiquidityChangesDB.liquidity,
            )
            .where(
                LiquidityChangesDB.pool_address.in_(list(pools)),
                LiquidityChangesDB.block_timestamp < until,
            )
            .order_by(
                LiquidityChangesDB.block_timestamp,
                LiquidityChangesDB.transaction_hash,
                LiquidityChangesDB.event_sequence,
            )
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()

        return [
            LiquidityEvent(
                pool_address=r.pool_address,
                address=r.initiator_address,
                timestamp=as_utc(r.block_timestamp),
                units=to_int(r.change_amount if r.change_amount is not None else r.liquidity),
            )
            for r in rows
        ]

    async def swap_volumes(self, *, pools: Sequence[str], start: datetime, end: datetime) -> dict[str, int]:
        """Per-address swap volume on the ZIL (legacy) / token1 (AMM) side."""
        stmt = select(
            SwapsDB.initiator_address,
            SwapsDB.zil_amount,
            SwapsDB.amount_1_in,
            SwapsDB.amount_1_out,
        ).where(
            SwapsDB.pool_address.in_(list(pools)),
            SwapsDB.block_timestamp >= start,
            SwapsDB.block_timestamp < end,
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()

        volumes: dict[str, int] = defaultdict(int)
        for r in rows:
            if r.zil_amount is not None:
                volumes[r.initiator_address] += to_int(r.zil_amount)
            else:
                volumes[r.initiator_address] += to_int(r.amount_1_in) + to_int(r.amount_1_out)
        return dict(volumes)
