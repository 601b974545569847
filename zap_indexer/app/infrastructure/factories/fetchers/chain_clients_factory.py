from __future__ import annotations

from typing import Callable, Dict

from zap_indexer.app.config import Settings
from zap_indexer.app.infrastructure.fetchers.viewblock_event_source import ViewBlockEventSource
from zap_indexer.app.infrastructure.fetchers.zilliqa_chain_client import ZilliqaChainClient

EventSourceFactory = Callable[[Settings], ViewBlockEventSource]
ChainClientFactory = Callable[[Settings], ZilliqaChainClient]

_EVENT_SOURCE_REGISTRY: Dict[str, EventSourceFactory] = {
    "viewblock": lambda s: ViewBlockEventSource(
        base_url=str(s.viewblock_api_url),
        api_key=s.viewblock_api_key.get_secret_value(),
        network=s.network,
        timeout_s=s.http_timeout_seconds,
    ),
}

_CHAIN_CLIENT_REGISTRY: Dict[str, ChainClientFactory] = {
    "zilliqa": lambda s: ZilliqaChainClient(
        rpc_url=str(s.zilliqa_rpc_url),
        timeout_s=s.http_timeout_seconds,
    ),
}


def event_source_factory(*, backend: str, settings: Settings) -> ViewBlockEventSource:
    try:
        factory = _EVENT_SOURCE_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported event source backend: {backend!r}")
    return factory(settings)


def chain_client_factory(*, backend: str, settings: Settings) -> ZilliqaChainClient:
    try:
        factory = _CHAIN_CLIENT_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported chain client backend: {backend!r}")
    return factory(settings)
