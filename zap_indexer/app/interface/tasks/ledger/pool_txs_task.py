from __future__ import annotations

from zap_indexer.app.application.services.block_bounds import (
    BlockRange,
    resolve_block_bounds_from_table,
)
from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.infrastructure.adapters.ledger.pool_reserves import PoolTransaction
from zap_indexer.app.infrastructure.db.engine import create_app_async_engine
from zap_indexer.app.infrastructure.factories.ledger.reserve_aggregator_factory import (
    reserve_aggregator_factory,
)


async def pool_txs_task(
    *,
    from_block: int | str = "earliest",
    to_block: int | str = "latest",
    pool_address: str | None = None,
    address: str | None = None,
    limit: int | None = None,
    backend: str = "sqlalchemy",
) -> list[PoolTransaction]:
    """
    Task: swaps and liquidity changes of a block range, oldest first.

    from_block / to_block can be:
    - int (a specific block height),
    - "earliest" (the first block in chain_events),
    - "latest" (the last block in chain_events).
    """
    engine = create_app_async_engine()
    try:
        resolved_from_block, resolved_to_block = await resolve_block_bounds_from_table(
            engine=engine,
            from_block=from_block,
            to_block=to_block,
        )
        block_range = BlockRange(from_block=resolved_from_block, to_block=resolved_to_block)
        block_range.validate()

        aggregator = reserve_aggregator_factory(backend=backend, engine=engine)
        return await aggregator.pool_transactions(
            pool_address=to_hex_address(pool_address) if pool_address else None,
            address=to_hex_address(address) if address else None,
            from_block=block_range.from_block,
            to_block=block_range.to_block,
            limit=limit,
        )
    finally:
        await engine.dispose()
