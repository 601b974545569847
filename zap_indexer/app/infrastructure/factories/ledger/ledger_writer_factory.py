from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from zap_indexer.app.domain.ports.out import LedgerWriter
from zap_indexer.app.infrastructure.adapters.ledger.ledger_writer import SqlAlchemyLedgerWriter
from zap_indexer.app.infrastructure.adapters.rewards.claim_reconciler import (
    SqlAlchemyClaimReconciler,
)

LedgerWriterFactory = Callable[[AsyncEngine], LedgerWriter]


def _make_sqlalchemy_ledger_writer(engine: AsyncEngine) -> LedgerWriter:
    """
    Wire dependencies for SQLAlchemy backend:
    - claim reconciler sharing the window transaction
    - ledger writer projecting swaps / liquidity changes / claims
    """
    return SqlAlchemyLedgerWriter(engine, claim_reconciler=SqlAlchemyClaimReconciler())


_LEDGER_WRITER_REGISTRY: Dict[str, LedgerWriterFactory] = {
    "sqlalchemy": _make_sqlalchemy_ledger_writer,
}


def ledger_writer_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> LedgerWriter:
    try:
        factory = _LEDGER_WRITER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported ledger writer backend: {backend!r}")
    return factory(engine)
