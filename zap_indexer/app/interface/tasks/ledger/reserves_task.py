from __future__ import annotations

from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.infrastructure.adapters.ledger.pool_reserves import PoolReserve
from zap_indexer.app.infrastructure.db.engine import create_app_async_engine
from zap_indexer.app.infrastructure.factories.ledger.reserve_aggregator_factory import (
    reserve_aggregator_factory,
)


async def reserves_task(
    *,
    pool_address: str | None = None,
    backend: str = "sqlalchemy",
) -> list[PoolReserve]:
    """Task: current reserves of every pool (or one pool) from the ledger."""
    engine = create_app_async_engine()
    try:
        aggregator = reserve_aggregator_factory(backend=backend, engine=engine)
        return await aggregator.pool_reserves(
            to_hex_address(pool_address) if pool_address else None
        )
    finally:
        await engine.dispose()
