import pytest

from conftest import ALICE, BOB, EXCHANGE, POOL_A, POOL_B, ROUTER, ts
from zap_indexer.app.domain.models import (
    AmmLiquidityAmounts,
    AmmSwapAmounts,
    LegacyLiquidityAmounts,
    LegacySwapAmounts,
    LiquidityChangeRecord,
    NormalizedEvent,
    RawEvent,
    SwapRecord,
)
from zap_indexer.app.infrastructure.adapters.ledger.pool_reserves import (
    PoolReserve,
    SqlAlchemyReserveAggregator,
)


def _raw(tx: str, event_index: int, block_height: int, name: str, contract: str = EXCHANGE) -> RawEvent:
    return RawEvent(
        block_height=block_height,
        block_timestamp=ts(1_600_000_000 + block_height),
        tx_hash=tx,
        event_index=event_index,
        contract_address=contract,
        initiator_address=ALICE,
        event_name=name,
        params={},
    )


def liquidity(tx, block_height, pool, amounts, *, initiator=ALICE, event_index=0) -> NormalizedEvent:
    shape = "legacy" if isinstance(amounts, LegacyLiquidityAmounts) else "amm"
    raw = _raw(tx, event_index, block_height, "Mint")
    return NormalizedEvent(
        raw=raw,
        record=LiquidityChangeRecord(
            transaction_hash=tx,
            event_sequence=event_index,
            block_height=block_height,
            block_timestamp=raw.block_timestamp,
            initiator_address=initiator,
            pool_address=pool,
            router_address=None if shape == "legacy" else ROUTER,
            shape=shape,
            amounts=amounts,
        ),
    )


def swap(tx, block_height, pool, amounts, *, initiator=ALICE, event_index=0) -> NormalizedEvent:
    shape = "legacy" if isinstance(amounts, LegacySwapAmounts) else "amm"
    raw = _raw(tx, event_index, block_height, "Swap")
    return NormalizedEvent(
        raw=raw,
        record=SwapRecord(
            transaction_hash=tx,
            event_sequence=event_index,
            block_height=block_height,
            block_timestamp=raw.block_timestamp,
            initiator_address=initiator,
            pool_address=pool,
            router_address=None if shape == "legacy" else ROUTER,
            shape=shape,
            amounts=amounts,
        ),
    )


@pytest.fixture
async def seeded(engine, ledger):
    events = [
        liquidity("0x01", 10, POOL_A, LegacyLiquidityAmounts(change_amount=1000, token_amount=500, zil_amount=700)),
        liquidity("0x02", 11, POOL_A, LegacyLiquidityAmounts(change_amount=-1000, token_amount=500, zil_amount=700)),
        swap("0x03", 12, POOL_A, LegacySwapAmounts(token_amount=10, zil_amount=20, is_sending_zil=True)),
        liquidity("0x04", 13, POOL_B, AmmLiquidityAmounts(amount_0=4, amount_1=9, liquidity=6), initiator=BOB),
        # two-hop trade: A then B in one transaction
        swap("0x05", 14, POOL_A, LegacySwapAmounts(token_amount=1, zil_amount=2, is_sending_zil=False)),
        swap(
            "0x05",
            14,
            POOL_B,
            AmmSwapAmounts(amount_0_in=10, amount_1_in=0, amount_0_out=0, amount_1_out=25),
            event_index=1,
        ),
    ]
    await ledger.persist_window(contract_address=EXCHANGE, event_name="*", to_block=14, events=events)
    return SqlAlchemyReserveAggregator(engine)


async def test_deposit_and_withdrawal_cancel_out(seeded):
    reserves = {r.pool_address: r for r in await seeded.pool_reserves()}

    # +500/+700, -500/-700, then swap (-10 token, +20 zil) and (+1 token, -2 zil)
    assert reserves[POOL_A] == PoolReserve(pool_address=POOL_A, reserve_0=-9, reserve_1=18)
    # mint (+4, +9) and swap (+10 in, -25 out)
    assert reserves[POOL_B] == PoolReserve(pool_address=POOL_B, reserve_0=14, reserve_1=-16)


async def test_reserves_of_one_pool(seeded):
    assert [r.pool_address for r in await seeded.pool_reserves(POOL_B)] == [POOL_B]


async def test_empty_ledger_has_no_reserves(engine):
    assert await SqlAlchemyReserveAggregator(engine).pool_reserves() == []


async def test_pool_transactions_merge_legs(seeded):
    txs = await seeded.pool_transactions()

    assert [(t.transaction_hash, t.tx_type) for t in txs] == [
        ("0x01", "liquidity"),
        ("0x02", "liquidity"),
        ("0x03", "swap"),
        ("0x04", "liquidity"),
        ("0x05", "swap"),
    ]
    multi_hop = txs[-1]
    assert multi_hop.pool_address == POOL_A
    assert multi_hop.token_amount == 1
    assert multi_hop.is_sending_zil is False
    assert multi_hop.leg2_pool_address == POOL_B
    assert multi_hop.leg2_amount_1_out == 25

    withdrawal = txs[1]
    assert withdrawal.change_amount == -1000
    assert withdrawal.block_timestamp == ts(1_600_000_011)


async def test_pool_transactions_filters(seeded):
    by_pool = await seeded.pool_transactions(pool_address=POOL_B)
    assert [t.transaction_hash for t in by_pool] == ["0x04", "0x05"]

    by_address = await seeded.pool_transactions(address=BOB)
    assert [t.transaction_hash for t in by_address] == ["0x04"]

    by_range = await seeded.pool_transactions(from_block=11, to_block=12, limit=1)
    assert [t.transaction_hash for t in by_range] == ["0x02"]
