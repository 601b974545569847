from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from zap_indexer.app.infrastructure.adapters.ledger.pool_reserves import (
    SqlAlchemyReserveAggregator,
)

ReserveAggregatorFactory = Callable[[AsyncEngine], SqlAlchemyReserveAggregator]

_RESERVE_AGGREGATOR_REGISTRY: Dict[str, ReserveAggregatorFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyReserveAggregator(engine),
}


def reserve_aggregator_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> SqlAlchemyReserveAggregator:
    try:
        factory = _RESERVE_AGGREGATOR_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported reserve aggregator backend: {backend!r}")
    return factory(engine)
