from __future__ import annotations

import asyncio
import logging
import signal

from zap_indexer.app.application.services.ingestion.worker import (
    IngestionWorker,
    WorkerSettings,
    run_workers,
)
from zap_indexer.app.config import settings
from zap_indexer.app.domain.models import WorkerState
from zap_indexer.app.infrastructure.config.distributions import load_network_config
from zap_indexer.app.infrastructure.db.engine import create_app_async_engine
from zap_indexer.app.infrastructure.decoders.zilswap.event_normalizer import ZilswapEventNormalizer
from zap_indexer.app.infrastructure.factories.fetchers.chain_clients_factory import (
    chain_client_factory,
    event_source_factory,
)
from zap_indexer.app.infrastructure.factories.ledger.ledger_writer_factory import (
    ledger_writer_factory,
)

logger = logging.getLogger(__name__)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C still raises KeyboardInterrupt.
            pass


async def sync_task(
    *,
    backend: str = "sqlalchemy",
    source_backend: str = "viewblock",
    chain_backend: str = "zilliqa",
    stop_event: asyncio.Event | None = None,
) -> dict[str, WorkerState]:
    """
    Task: run one ingestion worker per configured (contract, event) pair.

    Workers backfill, then poll until SIGINT / SIGTERM. Returns the final
    state of every worker.
    """
    network_config = load_network_config(settings.config_file, settings.network)
    registry = network_config.contract_registry()

    stop = stop_event or asyncio.Event()
    if stop_event is None:
        _install_signal_handlers(stop)

    engine = create_app_async_engine()
    source = event_source_factory(backend=source_backend, settings=settings)
    chain = chain_client_factory(backend=chain_backend, settings=settings)
    try:
        ledger = ledger_writer_factory(backend=backend, engine=engine)
        normalizer = ZilswapEventNormalizer()
        worker_settings = WorkerSettings(
            start_block=settings.start_block,
            block_window_size=settings.block_window_size,
            max_window_events=settings.max_window_events,
            poll_interval_seconds=settings.poll_interval_seconds,
            fetch_max_attempts=settings.fetch_max_attempts,
            fetch_backoff_seconds=settings.fetch_backoff_seconds,
            fetch_backoff_max_seconds=settings.fetch_backoff_max_seconds,
        )

        workers = [
            IngestionWorker(
                contract_address=address,
                event_name=event_name,
                shape=shape,
                source=source,
                chain=chain,
                normalizer=normalizer,
                ledger=ledger,
                settings=worker_settings,
                stop_event=stop,
            )
            for address, event_name, shape in registry.worker_pairs()
        ]
        logger.info("Starting %s ingestion workers on %s", len(workers), settings.network)

        return await run_workers(workers)
    finally:
        await source.aclose()
        await chain.aclose()
        await engine.dispose()
