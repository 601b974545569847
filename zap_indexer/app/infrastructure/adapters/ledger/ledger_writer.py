from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from zap_indexer.app.domain.errors import GapDetected
from zap_indexer.app.domain.models import (
    AmmLiquidityAmounts,
    AmmSwapAmounts,
    BlockInfo,
    ClaimRecord,
    EventStatus,
    LegacyLiquidityAmounts,
    LegacySwapAmounts,
    LiquidityChangeRecord,
    NormalizedEvent,
    RawEvent,
    SwapRecord,
    SyncState,
)
from zap_indexer.app.domain.ports.out import ClaimReconciler
from zap_indexer.app.infrastructure.db.models.ledger.chain_events import ChainEventsDB
from zap_indexer.app.infrastructure.db.models.ledger.liquidity_changes import LiquidityChangesDB
from zap_indexer.app.infrastructure.db.models.ledger.swaps import SwapsDB
from zap_indexer.app.infrastructure.db.models.sync.backfill_completions import BackfillCompletionsDB
from zap_indexer.app.infrastructure.db.models.sync.block_syncs import BlockSyncsDB
from zap_indexer.app.infrastructure.db.models.sync.sync_checkpoints import SyncCheckpointsDB
from zap_indexer.app.infrastructure.db.statements import (
    insert_ignore,
    insert_or_advance,
    storage_errors,
    to_numeric,
)

logger = logging.getLogger(__name__)

_CHAIN_EVENT_KEY = ("block_height", "tx_hash", "event_index")
_RECORD_KEY = ("transaction_hash", "event_sequence")


class SqlAlchemyLedgerWriter:
    """
    Ledger adapter: persists one ingestion window per transaction.

    Per event:
      1) INSERT chain_events row as 'pending' ON CONFLICT DO NOTHING.
         A conflict means the event was already ingested: nothing else happens.
      2) Project the domain record (swap / liquidity change / claim).
      3) Flip the chain event to 'processed', or 'failed' when normalization
         or claim reconciliation rejected it.

    Block syncs and the (contract, event) checkpoint are written in the same
    transaction, so a crash never leaves a half-committed window.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        claim_reconciler: ClaimReconciler | None = None,
    ) -> None:
        self._engine = engine
        self._claim_reconciler = claim_reconciler

    # ---------------------------------------------------------------------
    # sync state
    # ---------------------------------------------------------------------

    async def load_sync_state(self, *, contract_address: str, event_name: str) -> SyncState:
        with storage_errors("load_sync_state"):
            async with self._engine.connect() as conn:
                checkpoint = (
                    await conn.execute(
                        select(SyncCheckpointsDB.last_block_height).where(
                            SyncCheckpointsDB.contract_address == contract_address,
                            SyncCheckpointsDB.event_name == event_name,
                        )
                    )
                ).scalar_one_or_none()
                completed_at = (
                    await conn.execute(
                        select(BackfillCompletionsDB.block_height).where(
                            BackfillCompletionsDB.contract_address == contract_address,
                            BackfillCompletionsDB.event_name == event_name,
                        )
                    )
                ).scalar_one_or_none()

        return SyncState(
            contract_address=contract_address,
            event_name=event_name,
            last_block_height=checkpoint,
            backfill_completed_at=completed_at,
        )

    async def mark_backfill_complete(
        self,
        *,
        contract_address: str,
        event_name: str,
        block_height: int,
    ) -> None:
        with storage_errors("mark_backfill_complete"):
            async with self._engine.begin() as conn:
                stmt = insert_ignore(
                    conn, BackfillCompletionsDB, index_elements=["contract_address", "event_name"]
                ).values(
                    contract_address=contract_address,
                    event_name=event_name,
                    block_height=block_height,
                )
                await conn.execute(stmt)

    async def missing_block_syncs(self, *, from_block: int, to_block: int) -> list[int]:
        """Heights in [from_block, to_block] without a block_syncs row yet."""
        if from_block > to_block:
            return []
        with storage_errors("missing_block_syncs"):
            async with self._engine.connect() as conn:
                rows = await conn.execute(
                    select(BlockSyncsDB.block_height).where(
                        BlockSyncsDB.block_height.between(from_block, to_block)
                    )
                )
                known = {r[0] for r in rows}
        return [h for h in range(from_block, to_block + 1) if h not in known]

    async def check_block_sync_gaps(self, *, contract_address: str, event_name: str) -> None:
        """
        Raise GapDetected if block_syncs is not contiguous from the backfill
        completion height up to this worker's checkpoint.
        """
        state = await self.load_sync_state(contract_address=contract_address, event_name=event_name)
        if state.backfill_completed_at is None or state.last_block_height is None:
            return

        start = state.backfill_completed_at + 1
        end = state.last_block_height
        if start > end:
            return

        with storage_errors("check_block_sync_gaps"):
            async with self._engine.connect() as conn:
                present = (
                    await conn.execute(
                        select(func.count()).select_from(BlockSyncsDB).where(
                            BlockSyncsDB.block_height.between(start, end)
                        )
                    )
                ).scalar_one()

        expected = end - start + 1
        if present < expected:
            raise GapDetected(
                contract_address=contract_address,
                event_name=event_name,
                missing=expected - present,
            )

    # ---------------------------------------------------------------------
    # window
    # ---------------------------------------------------------------------

    async def persist_window(
        self,
        *,
        contract_address: str,
        event_name: str,
        to_block: int,
        events: Sequence[NormalizedEvent],
        block_syncs: Sequence[BlockInfo] = (),
    ) -> int:
        inserted = 0
        with storage_errors("persist_window"):
            async with self._engine.begin() as conn:
                for event in events:
                    if await self._persist_event(conn, event):
                        inserted += 1

                for block in block_syncs:
                    stmt = insert_ignore(conn, BlockSyncsDB, index_elements=["block_height"]).values(
                        block_height=block.height,
                        block_timestamp=block.timestamp,
                        num_txs=block.num_txs,
                    )
                    await conn.execute(stmt)

                await conn.execute(
                    insert_or_advance(
                        conn,
                        SyncCheckpointsDB,
                        index_elements=["contract_address", "event_name"],
                        values={
                            "contract_address": contract_address,
                            "event_name": event_name,
                            "last_block_height": to_block,
                            "updated_at": datetime.now(timezone.utc),
                        },
                        column="last_block_height",
                    )
                )

        return inserted

    async def _persist_event(self, conn: AsyncConnection, event: NormalizedEvent) -> bool:
        raw = event.raw
        result = await conn.execute(
            insert_ignore(conn, ChainEventsDB, index_elements=_CHAIN_EVENT_KEY).values(
                **_chain_event_row(raw)
            )
        )
        if result.rowcount == 0:
            logger.debug("Chain event already ingested: %s", raw.key)
            return False

        status = EventStatus.PROCESSED
        record = event.record
        if event.failed:
            logger.warning(
                "Marking chain event failed: key=%s event=%s error=%s",
                raw.key,
                raw.event_name,
                event.error,
            )
            status = EventStatus.FAILED
        elif isinstance(record, SwapRecord):
            await conn.execute(
                insert_ignore(conn, SwapsDB, index_elements=_RECORD_KEY).values(**_swap_row(record))
            )
        elif isinstance(record, LiquidityChangeRecord):
            await conn.execute(
                insert_ignore(conn, LiquidityChangesDB, index_elements=_RECORD_KEY).values(
                    **_liquidity_row(record)
                )
            )
        elif isinstance(record, ClaimRecord):
            if self._claim_reconciler is None:
                raise RuntimeError("Claim events require a ClaimReconciler")
            if not await self._claim_reconciler.reconcile(conn, record):
                status = EventStatus.FAILED

        await conn.execute(
            update(ChainEventsDB)
            .where(
                ChainEventsDB.block_height == raw.block_height,
                ChainEventsDB.tx_hash == raw.tx_hash,
                ChainEventsDB.event_index == raw.event_index,
            )
            .values(processed=status.value)
        )
        return True


# -----------------------------------------------------------------------------
# row builders
# -----------------------------------------------------------------------------
def _chain_event_row(raw: RawEvent) -> dict[str, Any]:
    return {
        "block_height": raw.block_height,
        "block_timestamp": raw.block_timestamp,
        "tx_hash": raw.tx_hash,
        "event_index": raw.event_index,
        "contract_address": raw.contract_address,
        "initiator_address": raw.initiator_address,
        "event_name": raw.event_name,
        "event_params": raw.params,
        "processed": EventStatus.PENDING.value,
    }


def _swap_row(record: SwapRecord) -> dict[str, Any]:
    row: dict[str, Any] = {
        "transaction_hash": record.transaction_hash,
        "event_sequence": record.event_sequence,
        "block_height": record.block_height,
        "block_timestamp": record.block_timestamp,
        "initiator_address": record.initiator_address,
        "pool_address": record.pool_address,
        "router_address": record.router_address,
        "shape": record.shape,
    }
    amounts = record.amounts
    if isinstance(amounts, AmmSwapAmounts):
        row.update(
            to_address=amounts.to_address,
            amount_0_in=to_numeric(amounts.amount_0_in),
            amount_1_in=to_numeric(amounts.amount_1_in),
            amount_0_out=to_numeric(amounts.amount_0_out),
            amount_1_out=to_numeric(amounts.amount_1_out),
        )
    elif isinstance(amounts, LegacySwapAmounts):
        row.update(
            token_amount=to_numeric(amounts.token_amount),
            zil_amount=to_numeric(amounts.zil_amount),
            is_sending_zil=amounts.is_sending_zil,
        )
    return row


def _liquidity_row(record: LiquidityChangeRecord) -> dict[str, Any]:
    row: dict[str, Any] = {
        "transaction_hash": record.transaction_hash,
        "event_sequence": record.event_sequence,
        "block_height": record.block_height,
        "block_timestamp": record.block_timestamp,
        "initiator_address": record.initiator_address,
        "pool_address": record.pool_address,
        "router_address": record.router_address,
        "shape": record.shape,
    }
    amounts = record.amounts
    if isinstance(amounts, AmmLiquidityAmounts):
        row.update(
            amount_0=to_numeric(amounts.amount_0),
            amount_1=to_numeric(amounts.amount_1),
            liquidity=to_numeric(amounts.liquidity),
        )
    elif isinstance(amounts, LegacyLiquidityAmounts):
        row.update(
            change_amount=to_numeric(amounts.change_amount),
            token_amount=to_numeric(amounts.token_amount),
            zil_amount=to_numeric(amounts.zil_amount),
        )
    return row
