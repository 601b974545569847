from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from zap_indexer.app.application.services.distribution.allocation import (
    allocate,
    time_weighted_liquidity,
)
from zap_indexer.app.application.services.distribution.epochs import EmissionSchedule, EpochInfo
from zap_indexer.app.domain.addresses import address_bytes, to_bech32_address
from zap_indexer.app.domain.errors import ConfigurationError, DistributionConflict, EpochNotReady
from zap_indexer.app.domain.merkle import MerkleTree
from zap_indexer.app.domain.ports.out import DistributionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistributionPlan:
    """Everything the engine needs to know about one distributor."""

    distributor_address: str
    developer_address: str
    schedule: EmissionSchedule
    pool_weights: Mapping[str, int]
    # (contract, event) pairs that must be synced past the epoch end
    required_pairs: tuple[tuple[str, str], ...]
    redirected_addresses: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DistributionResult:
    epoch_number: int
    root: bytes
    leaves: int
    total_amount: int
    created: bool


class DistributionEngine:
    """
    Computes and persists one epoch's reward tree.

    Steps:
      1) epoch must be within the schedule and over, and the ledger must be
         synced past its end block (EpochNotReady otherwise)
      2) time-weighted liquidity per pool/address (+ swap volume when the
         epoch has a trader share)
      3) split the budget, build the Merkle tree over address-sorted leaves
      4) insert all leaves in one transaction, then re-read them: stored
         rows must equal the computed ones (DistributionConflict otherwise)

    An epoch that already has rows is never recomputed; its root is returned.
    """

    def __init__(
        self,
        *,
        store: DistributionStore,
        plan: DistributionPlan,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._plan = plan
        self._clock = clock

    async def run(self, epoch_number: int) -> DistributionResult:
        plan = self._plan
        epoch = EpochInfo(plan.schedule, epoch_number)
        epoch.ensure_active()

        stored = await self._store.stored_root(
            distributor_address=plan.distributor_address,
            epoch_number=epoch_number,
        )
        if stored is not None:
            logger.info(
                "Epoch %s for distributor %s already generated, root=%s",
                epoch_number,
                plan.distributor_address,
                stored.hex(),
            )
            rows = await self._store.load_distributions(
                distributor_address=plan.distributor_address,
                epoch_number=epoch_number,
            )
            return DistributionResult(
                epoch_number=epoch_number,
                root=stored,
                leaves=len(rows),
                total_amount=sum(r["amount"] for r in rows),
                created=False,
            )

        if self._clock() < epoch.end_time:
            raise EpochNotReady(f"Epoch {epoch_number} ends at {epoch.end.isoformat()}, not over yet")

        if not await self._store.synced_through(pairs=list(plan.required_pairs), timestamp=epoch.end):
            raise EpochNotReady(
                f"Ledger is not synced past the end of epoch {epoch_number} ({epoch.end.isoformat()})"
            )

        amounts = await self.compute(epoch)
        if not amounts:
            raise ConfigurationError(f"Epoch {epoch_number} has an empty token budget")
        tree = MerkleTree((address_bytes(a), amount) for a, amount in amounts.items())
        rows = [
            {
                "address_hex": "0x" + leaf.address.hex(),
                "address_bech32": to_bech32_address("0x" + leaf.address.hex()),
                "amount": leaf.amount,
                "proof": proof,
            }
            for leaf, proof in tree.proofs()
        ]

        await self._store.insert_distributions(
            distributor_address=plan.distributor_address,
            epoch_number=epoch_number,
            rows=rows,
        )

        stored_rows = await self._store.load_distributions(
            distributor_address=plan.distributor_address,
            epoch_number=epoch_number,
        )
        if sorted(stored_rows, key=lambda r: r["address_hex"]) != sorted(rows, key=lambda r: r["address_hex"]):
            raise DistributionConflict(
                f"Stored leaves for distributor {plan.distributor_address} epoch {epoch_number} "
                "differ from the computed ones"
            )

        total = sum(r["amount"] for r in rows)
        logger.info(
            "Generated epoch %s for distributor %s: %s leaves, %s tokens, root=%s",
            epoch_number,
            plan.distributor_address,
            len(rows),
            total,
            tree.root.hex(),
        )
        return DistributionResult(
            epoch_number=epoch_number,
            root=tree.root,
            leaves=len(rows),
            total_amount=total,
            created=True,
        )

    async def compute(self, epoch: EpochInfo) -> dict[str, int]:
        """Per-address amounts for the epoch; no writes."""
        plan = self._plan
        pools = sorted(plan.pool_weights)

        history = await self._store.liquidity_history(pools=pools, until=epoch.end)
        liquidity = time_weighted_liquidity(history, start=epoch.start, end=epoch.end)

        volumes: dict[str, int] = {}
        if epoch.tokens_for_traders() > 0:
            volumes = await self._store.swap_volumes(pools=pools, start=epoch.start, end=epoch.end)

        return allocate(
            epoch=epoch,
            pool_weights=plan.pool_weights,
            liquidity=liquidity,
            volumes=volumes,
            developer_address=plan.developer_address,
            redirected_addresses=plan.redirected_addresses,
        )
