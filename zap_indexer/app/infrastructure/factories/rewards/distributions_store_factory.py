from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from zap_indexer.app.domain.ports.out import DistributionStore
from zap_indexer.app.infrastructure.adapters.rewards.distributions_store import (
    SqlAlchemyDistributionsStore,
)

DistributionStoreFactory = Callable[[AsyncEngine], DistributionStore]

_DEFAULT_BATCH_SIZE = 10_000

_DISTRIBUTION_STORE_REGISTRY: Dict[str, DistributionStoreFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyDistributionsStore(engine, batch_size=_DEFAULT_BATCH_SIZE),
}


def distributions_store_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> DistributionStore:
    try:
        factory = _DISTRIBUTION_STORE_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported distribution store backend: {backend!r}")
    return factory(engine)
