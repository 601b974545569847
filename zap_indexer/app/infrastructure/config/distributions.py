from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.domain.errors import ConfigurationError
from zap_indexer.app.domain.models import ContractShape
from zap_indexer.app.infrastructure.decoders.zilswap.contract_registry import (
    ContractRegistry,
    IndexedContract,
)

_MAX_BPS = 10_000


def _hex(value: str) -> str:
    try:
        return to_hex_address(value)
    except ValueError as exc:
        raise ValueError(f"invalid address {value!r}") from exc


class ExchangeContractConfig(BaseModel):
    address: str
    shape: ContractShape

    @field_validator("address")
    @classmethod
    def normalize_address(cls, v: str) -> str:
        return _hex(v)


class EmissionConfig(BaseModel):
    """
    Emission schedule of one distributor.

    Epoch n (n >= 1, or n >= 0 without a retroactive epoch) covers
    [distribution_start_time + k * epoch_period, ... + epoch_period) where k
    counts regular epochs from zero. When tokens_for_retroactive_distribution
    is set, epoch 0 instead covers [0, distribution_start_time) with that budget.
    """

    epoch_period: int = Field(..., gt=0)
    tokens_per_epoch: int = Field(..., ge=0)
    decimals: int = Field(12, ge=0, le=38)
    distribution_start_time: int = Field(..., ge=0)
    total_number_of_epochs: int = Field(..., gt=0)
    tokens_for_retroactive_distribution: Optional[int] = Field(None, ge=0)

    developer_token_ratio_bps: int = Field(1_500, ge=0, le=_MAX_BPS)
    # Only applies to the initial (retroactive) epoch.
    initial_trader_token_ratio_bps: int = Field(0, ge=0, le=_MAX_BPS)

    @model_validator(mode="after")
    def check_shares(self) -> "EmissionConfig":
        if self.developer_token_ratio_bps + self.initial_trader_token_ratio_bps > _MAX_BPS:
            raise ValueError("developer + trader share must not exceed 10000 bps")
        return self


class DistributorConfig(BaseModel):
    name: str
    reward_token_symbol: str
    reward_token_address: str
    distributor_address: str
    developer_address: str
    emission: EmissionConfig
    # pool address -> relative weight
    incentivized_pools: dict[str, int]
    # allocations to these addresses are redirected to the developer address
    redirected_addresses: list[str] = Field(default_factory=list)

    @field_validator("reward_token_address", "distributor_address", "developer_address")
    @classmethod
    def normalize_address(cls, v: str) -> str:
        return _hex(v)

    @field_validator("redirected_addresses")
    @classmethod
    def normalize_addresses(cls, v: list[str]) -> list[str]:
        return [_hex(a) for a in v]

    @field_validator("incentivized_pools")
    @classmethod
    def check_weights(cls, v: dict[str, int]) -> dict[str, int]:
        if not v:
            raise ValueError("at least one incentivized pool is required")
        out: dict[str, int] = {}
        for pool, weight in v.items():
            if weight <= 0:
                raise ValueError(f"pool weight must be positive, got {weight} for {pool}")
            out[_hex(pool)] = weight
        return out


class NetworkConfig(BaseModel):
    exchange_contracts: list[ExchangeContractConfig] = Field(default_factory=list)
    distributions: list[DistributorConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_distributors(self) -> "NetworkConfig":
        seen: set[str] = set()
        for d in self.distributions:
            if d.distributor_address in seen:
                raise ValueError(f"duplicate distributor address {d.distributor_address}")
            seen.add(d.distributor_address)
        return self

    def contract_registry(self) -> ContractRegistry:
        contracts = [IndexedContract(address=c.address, shape=c.shape) for c in self.exchange_contracts]
        contracts += [
            IndexedContract(address=d.distributor_address, shape="distributor") for d in self.distributions
        ]
        return ContractRegistry(contracts)

    def distributor(self, key: str) -> DistributorConfig:
        """Look a distributor up by name or by address."""
        for d in self.distributions:
            if d.name == key:
                return d
        try:
            address = to_hex_address(key)
        except ValueError:
            address = None
        for d in self.distributions:
            if d.distributor_address == address:
                return d
        raise ConfigurationError(f"Unknown distributor: {key!r}")

    def exchange_pairs(self) -> list[tuple[str, str]]:
        """(contract, event) pairs whose ledger rows feed distributions."""
        return [
            (address, event_name)
            for address, event_name, shape in self.contract_registry().worker_pairs()
            if shape != "distributor"
        ]


def parse_network_config(raw: Any, network: str) -> NetworkConfig:
    if not isinstance(raw, dict) or network not in raw:
        raise ConfigurationError(f"No configuration for network {network!r}")
    try:
        return NetworkConfig.model_validate(raw[network])
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {network} configuration: {exc}") from exc


def load_network_config(path: str | Path, network: str) -> NetworkConfig:
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {exc}") from exc
    return parse_network_config(raw, network)
