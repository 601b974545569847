from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable, Mapping

from zap_indexer.app.domain.addresses import to_hex_address
from zap_indexer.app.domain.models import ContractShape

# Event names each contract generation emits that the ledger cares about.
SHAPE_EVENTS: Final[Mapping[ContractShape, tuple[str, ...]]] = {
    "legacy": ("Mint", "Burnt", "Swapped"),
    "amm": ("Swap", "Mint", "Burn"),
    "distributor": ("Claimed",),
}


@dataclass(frozen=True)
class IndexedContract:
    address: str
    shape: ContractShape


class ContractRegistry:
    """
    Table of known contracts (lowercase hex address -> event shape).

    Ingestion runs one worker per (contract address, event name) pair listed
    here; contracts and events not in the table are never fetched.
    """

    def __init__(self, contracts: Iterable[IndexedContract]) -> None:
        self._shapes: dict[str, ContractShape] = {}
        for c in contracts:
            address = to_hex_address(c.address)
            existing = self._shapes.get(address)
            if existing is not None and existing != c.shape:
                raise ValueError(
                    f"Contract {address} registered with two shapes: {existing!r}, {c.shape!r}"
                )
            self._shapes[address] = c.shape

    def worker_pairs(self) -> list[tuple[str, str, ContractShape]]:
        """Every (contract, event, shape) combination that needs an ingestion worker."""
        return [
            (address, event_name, shape)
            for address, shape in sorted(self._shapes.items())
            for event_name in SHAPE_EVENTS[shape]
        ]
