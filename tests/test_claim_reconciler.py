from sqlalchemy import select

from conftest import ALICE, BOB, DISTRIBUTOR, ts
from zap_indexer.app.domain.addresses import to_bech32_address
from zap_indexer.app.domain.models import ClaimRecord, NormalizedEvent, RawEvent
from zap_indexer.app.infrastructure.adapters.rewards.distributions_store import (
    SqlAlchemyDistributionsStore,
)
from zap_indexer.app.infrastructure.db.models.ledger.chain_events import ChainEventsDB
from zap_indexer.app.infrastructure.db.models.rewards.claims import ClaimsDB


def claim_event(tx_byte: str, address: str, amount: int, epoch_number: int = 1) -> NormalizedEvent:
    raw = RawEvent(
        block_height=500,
        block_timestamp=ts(1_700_000_000),
        tx_hash="0x" + tx_byte * 32,
        event_index=0,
        contract_address=DISTRIBUTOR,
        initiator_address=address,
        event_name="Claimed",
        params={"epoch_number": str(epoch_number), "data": [{"params": [address, str(amount)]}]},
    )
    return NormalizedEvent(
        raw=raw,
        record=ClaimRecord(
            transaction_hash=raw.tx_hash,
            event_sequence=0,
            block_height=raw.block_height,
            block_timestamp=raw.block_timestamp,
            distributor_address=DISTRIBUTOR,
            epoch_number=epoch_number,
            initiator_address=address,
            amount=amount,
        ),
    )


async def seed_distribution(engine, address: str, amount: int) -> None:
    store = SqlAlchemyDistributionsStore(engine)
    await store.insert_distributions(
        distributor_address=DISTRIBUTOR,
        epoch_number=1,
        rows=[
            {
                "address_hex": address,
                "address_bech32": to_bech32_address(address),
                "amount": amount,
                "proof": "00 00",
            }
        ],
    )


async def persist(ledger, *events: NormalizedEvent) -> None:
    await ledger.persist_window(
        contract_address=DISTRIBUTOR,
        event_name="Claimed",
        to_block=500,
        events=list(events),
    )


async def chain_event_statuses(engine) -> dict[str, str]:
    async with engine.connect() as conn:
        rows = await conn.execute(select(ChainEventsDB.tx_hash, ChainEventsDB.processed))
        return {r.tx_hash: r.processed for r in rows}


async def claimed_addresses(engine) -> list[str]:
    async with engine.connect() as conn:
        rows = await conn.execute(select(ClaimsDB.initiator_address).order_by(ClaimsDB.initiator_address))
        return [r[0] for r in rows]


async def test_matching_claim_is_recorded(engine, ledger):
    await seed_distribution(engine, ALICE, 1_000)

    await persist(ledger, claim_event("c1", ALICE, 1_000))

    assert await claimed_addresses(engine) == [ALICE]
    assert await chain_event_statuses(engine) == {"0x" + "c1" * 32: "processed"}


async def test_orphan_claim_is_failed(engine, ledger):
    await seed_distribution(engine, ALICE, 1_000)

    await persist(ledger, claim_event("c2", BOB, 1_000))

    assert await claimed_addresses(engine) == []
    assert await chain_event_statuses(engine) == {"0x" + "c2" * 32: "failed"}


async def test_amount_mismatch_is_failed(engine, ledger):
    await seed_distribution(engine, ALICE, 1_000)

    await persist(ledger, claim_event("c3", ALICE, 999))

    assert await claimed_addresses(engine) == []
    assert await chain_event_statuses(engine) == {"0x" + "c3" * 32: "failed"}


async def test_double_claim_keeps_first(engine, ledger):
    await seed_distribution(engine, ALICE, 1_000)

    await persist(ledger, claim_event("c4", ALICE, 1_000), claim_event("c5", ALICE, 1_000))

    async with engine.connect() as conn:
        tx_hashes = [r[0] for r in await conn.execute(select(ClaimsDB.transaction_hash))]
    assert tx_hashes == ["0x" + "c4" * 32]
    # the duplicate is not an error
    assert set((await chain_event_statuses(engine)).values()) == {"processed"}
