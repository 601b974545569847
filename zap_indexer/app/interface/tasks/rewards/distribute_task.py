from __future__ import annotations

from zap_indexer.app.application.services.distribution.engine import (
    DistributionEngine,
    DistributionPlan,
    DistributionResult,
)
from zap_indexer.app.application.services.distribution.epochs import EmissionSchedule, EpochInfo
from zap_indexer.app.config import settings
from zap_indexer.app.infrastructure.config.distributions import (
    DistributorConfig,
    NetworkConfig,
    load_network_config,
)
from zap_indexer.app.infrastructure.db.engine import create_app_async_engine
from zap_indexer.app.infrastructure.factories.rewards.distributions_store_factory import (
    distributions_store_factory,
)


def build_plan(network_config: NetworkConfig, distributor: DistributorConfig) -> DistributionPlan:
    e = distributor.emission
    return DistributionPlan(
        distributor_address=distributor.distributor_address,
        developer_address=distributor.developer_address,
        schedule=EmissionSchedule(
            epoch_period=e.epoch_period,
            tokens_per_epoch=e.tokens_per_epoch,
            decimals=e.decimals,
            distribution_start_time=e.distribution_start_time,
            total_number_of_epochs=e.total_number_of_epochs,
            tokens_for_retroactive_distribution=e.tokens_for_retroactive_distribution,
            developer_token_ratio_bps=e.developer_token_ratio_bps,
            initial_trader_token_ratio_bps=e.initial_trader_token_ratio_bps,
        ),
        pool_weights=dict(distributor.incentivized_pools),
        required_pairs=tuple(network_config.exchange_pairs()),
        redirected_addresses=tuple(distributor.redirected_addresses),
    )


async def distribute_task(
    *,
    distributor: str,
    epoch_number: int | None = None,
    backend: str = "sqlalchemy",
) -> DistributionResult:
    """
    Task: generate the reward tree of one epoch for one distributor.

    distributor is the configured name or the distributor contract address.
    Without epoch_number the last finished epoch is generated.
    """
    network_config = load_network_config(settings.config_file, settings.network)
    plan = build_plan(network_config, network_config.distributor(distributor))

    if epoch_number is None:
        current = EpochInfo.current(plan.schedule)
        epoch_number = max(0, current.epoch_number - 1)

    engine = create_app_async_engine()
    try:
        store = distributions_store_factory(backend=backend, engine=engine)
        return await DistributionEngine(store=store, plan=plan).run(epoch_number)
    finally:
        await engine.dispose()
