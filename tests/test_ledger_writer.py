import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from conftest import ALICE, DISTRIBUTOR, EXCHANGE, POOL_A, ts
from zap_indexer.app.domain.errors import GapDetected, StorageUnavailable
from zap_indexer.app.domain.models import (
    BlockInfo,
    ClaimRecord,
    LegacyLiquidityAmounts,
    LegacySwapAmounts,
    LiquidityChangeRecord,
    NormalizedEvent,
    RawEvent,
    SwapRecord,
)
from zap_indexer.app.infrastructure.adapters.ledger.ledger_writer import SqlAlchemyLedgerWriter
from zap_indexer.app.infrastructure.db.models.ledger.chain_events import ChainEventsDB
from zap_indexer.app.infrastructure.db.models.ledger.liquidity_changes import LiquidityChangesDB
from zap_indexer.app.infrastructure.db.models.ledger.swaps import SwapsDB
from zap_indexer.app.infrastructure.db.models.sync.block_syncs import BlockSyncsDB
from zap_indexer.app.infrastructure.db.statements import to_int


def raw(event_name: str, block_height: int, tx_byte: str = "01", event_index: int = 0) -> RawEvent:
    return RawEvent(
        block_height=block_height,
        block_timestamp=ts(1_600_000_000 + block_height),
        tx_hash="0x" + tx_byte * 32,
        event_index=event_index,
        contract_address=EXCHANGE,
        initiator_address=ALICE,
        event_name=event_name,
        params={"address": ALICE, "pool": POOL_A},
    )


def swap_event(block_height: int, tx_byte: str = "01") -> NormalizedEvent:
    r = raw("Swapped", block_height, tx_byte)
    return NormalizedEvent(
        raw=r,
        record=SwapRecord(
            transaction_hash=r.tx_hash,
            event_sequence=r.event_index,
            block_height=r.block_height,
            block_timestamp=r.block_timestamp,
            initiator_address=ALICE,
            pool_address=POOL_A,
            router_address=None,
            shape="legacy",
            amounts=LegacySwapAmounts(token_amount=10, zil_amount=20, is_sending_zil=True),
        ),
    )


def mint_event(block_height: int, tx_byte: str = "02", units: int = 1000) -> NormalizedEvent:
    r = raw("Mint", block_height, tx_byte)
    return NormalizedEvent(
        raw=r,
        record=LiquidityChangeRecord(
            transaction_hash=r.tx_hash,
            event_sequence=r.event_index,
            block_height=r.block_height,
            block_timestamp=r.block_timestamp,
            initiator_address=ALICE,
            pool_address=POOL_A,
            router_address=None,
            shape="legacy",
            amounts=LegacyLiquidityAmounts(change_amount=units, token_amount=5, zil_amount=7),
        ),
    )


def block(height: int) -> BlockInfo:
    return BlockInfo(height=height, timestamp=ts(1_600_000_000 + height), num_txs=1)


async def count(engine, model) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(model))).scalar_one()


async def statuses(engine) -> list[str]:
    async with engine.connect() as conn:
        rows = await conn.execute(select(ChainEventsDB.processed).order_by(ChainEventsDB.block_height))
        return [r[0] for r in rows]


async def test_persist_window_projects_records(engine, ledger):
    inserted = await ledger.persist_window(
        contract_address=EXCHANGE,
        event_name="Swapped",
        to_block=120,
        events=[swap_event(101), mint_event(102)],
    )

    assert inserted == 2
    assert await count(engine, SwapsDB) == 1
    assert await count(engine, LiquidityChangesDB) == 1
    assert await statuses(engine) == ["processed", "processed"]

    async with engine.connect() as conn:
        swap = (await conn.execute(select(SwapsDB.is_sending_zil, SwapsDB.zil_amount))).one()
    assert swap.is_sending_zil is True
    assert to_int(swap.zil_amount) == 20

    state = await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Swapped")
    assert state.last_block_height == 120
    assert not state.backfilled


async def test_persisting_twice_is_idempotent(engine, ledger):
    for _ in range(2):
        await ledger.persist_window(
            contract_address=EXCHANGE,
            event_name="Swapped",
            to_block=110,
            events=[swap_event(101)],
        )

    second = await ledger.persist_window(
        contract_address=EXCHANGE,
        event_name="Swapped",
        to_block=110,
        events=[swap_event(101)],
    )
    assert second == 0
    assert await count(engine, ChainEventsDB) == 1
    assert await count(engine, SwapsDB) == 1


async def test_failed_event_is_kept_without_projection(engine, ledger):
    failed = NormalizedEvent(raw=raw("Swapped", 101), error="bad payload")

    inserted = await ledger.persist_window(
        contract_address=EXCHANGE,
        event_name="Swapped",
        to_block=101,
        events=[failed],
    )

    assert inserted == 1
    assert await statuses(engine) == ["failed"]
    assert await count(engine, SwapsDB) == 0


async def test_checkpoint_only_moves_forward(ledger):
    await ledger.persist_window(contract_address=EXCHANGE, event_name="Mint", to_block=200, events=[])
    await ledger.persist_window(contract_address=EXCHANGE, event_name="Mint", to_block=150, events=[])

    state = await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Mint")
    assert state.last_block_height == 200


async def test_checkpoints_are_per_pair(ledger):
    await ledger.persist_window(contract_address=EXCHANGE, event_name="Mint", to_block=200, events=[])

    other = await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Burnt")
    assert other.last_block_height is None


async def test_block_sync_gaps(ledger):
    await ledger.persist_window(contract_address=EXCHANGE, event_name="Mint", to_block=100, events=[])
    await ledger.mark_backfill_complete(contract_address=EXCHANGE, event_name="Mint", block_height=100)

    await ledger.persist_window(
        contract_address=EXCHANGE,
        event_name="Mint",
        to_block=103,
        events=[],
        block_syncs=[block(101), block(102), block(103)],
    )
    await ledger.check_block_sync_gaps(contract_address=EXCHANGE, event_name="Mint")

    # 104 is skipped
    await ledger.persist_window(
        contract_address=EXCHANGE,
        event_name="Mint",
        to_block=105,
        events=[],
        block_syncs=[block(105)],
    )
    with pytest.raises(GapDetected) as exc_info:
        await ledger.check_block_sync_gaps(contract_address=EXCHANGE, event_name="Mint")
    assert exc_info.value.missing == 1

    assert await ledger.missing_block_syncs(from_block=100, to_block=106) == [100, 104, 106]


async def test_backfill_completion_is_written_once(ledger):
    await ledger.mark_backfill_complete(contract_address=EXCHANGE, event_name="Mint", block_height=100)
    await ledger.mark_backfill_complete(contract_address=EXCHANGE, event_name="Mint", block_height=500)

    state = await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Mint")
    assert state.backfilled
    assert state.backfill_completed_at == 100


def claim_event(block_height: int, tx_byte: str = "03") -> NormalizedEvent:
    r = raw("Claimed", block_height, tx_byte)
    return NormalizedEvent(
        raw=r,
        record=ClaimRecord(
            transaction_hash=r.tx_hash,
            event_sequence=r.event_index,
            block_height=r.block_height,
            block_timestamp=r.block_timestamp,
            distributor_address=DISTRIBUTOR,
            epoch_number=1,
            initiator_address=ALICE,
            amount=10,
        ),
    )


class BrokenReconciler:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def reconcile(self, conn, claim):
        raise self.exc


@pytest.mark.parametrize(
    "error, expected",
    [
        (
            OperationalError("SELECT amount FROM distributions", {}, Exception("connection reset")),
            StorageUnavailable,
        ),
        (RuntimeError("reconciler bug"), RuntimeError),
    ],
)
async def test_window_commits_in_full_or_not_at_all(engine, error, expected):
    ledger = SqlAlchemyLedgerWriter(engine, claim_reconciler=BrokenReconciler(error))
    await ledger.persist_window(contract_address=EXCHANGE, event_name="Swapped", to_block=100, events=[])

    with pytest.raises(expected):
        await ledger.persist_window(
            contract_address=EXCHANGE,
            event_name="Swapped",
            to_block=103,
            events=[swap_event(101), mint_event(102), claim_event(103)],
            block_syncs=[block(101), block(102), block(103)],
        )

    assert await count(engine, ChainEventsDB) == 0
    assert await count(engine, SwapsDB) == 0
    assert await count(engine, LiquidityChangesDB) == 0
    assert await count(engine, BlockSyncsDB) == 0
    state = await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Swapped")
    assert state.last_block_height == 100


async def test_database_failures_surface_as_storage_unavailable(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'ledger.db'}")
    ledger = SqlAlchemyLedgerWriter(engine)
    try:
        with pytest.raises(StorageUnavailable):
            await ledger.load_sync_state(contract_address=EXCHANGE, event_name="Swapped")
        with pytest.raises(StorageUnavailable):
            await ledger.persist_window(contract_address=EXCHANGE, event_name="Swapped", to_block=1, events=[])
    finally:
        await engine.dispose()
