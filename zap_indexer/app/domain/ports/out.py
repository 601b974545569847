from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from zap_indexer.app.domain.models import (
    BlockInfo,
    ClaimRecord,
    ContractShape,
    DomainRecord,
    EventPage,
    LiquidityEvent,
    NormalizedEvent,
    RawEvent,
    SyncState,
)


class EventSource(Protocol):
    """
    Port for the remote block-explorer API serving paginated contract events.

    Implementations are stateless apart from their HTTP connection pool and
    raise the SourceError family on failure.
    """

    async def fetch_events(
        self,
        contract_address: str,
        event_name: str,
        from_block: int,
        page_token: str | None = None,
        *,
        to_block: int | None = None,
    ) -> EventPage:
        ...


class ChainClient(Protocol):
    """Port for chain head / block header lookups used by block sync checkpoints."""

    async def latest_block(self) -> int: ...

    async def get_block(self, height: int) -> BlockInfo: ...


class EventNormalizer(Protocol):
    def normalize(self, raw: RawEvent, shape: ContractShape) -> DomainRecord | None:
        """
        Map a raw event into a domain record.

        Return:
          - DomainRecord for events the contract shape knows about
          - None if the (contract, event) pair is not indexed
        Raise NormalizationError on malformed payloads.
        """
        ...


class LedgerWriter(Protocol):
    """
    Port for persisting ingestion progress.

    Every write method is one transaction: a window's chain events, domain
    rows, block syncs and checkpoint commit together or not at all.
    """

    async def load_sync_state(self, *, contract_address: str, event_name: str) -> SyncState: ...

    async def persist_window(
        self,
        *,
        contract_address: str,
        event_name: str,
        to_block: int,
        events: Sequence[NormalizedEvent],
        block_syncs: Sequence[BlockInfo] = (),
    ) -> int: ...

    async def mark_backfill_complete(
        self,
        *,
        contract_address: str,
        event_name: str,
        block_height: int,
    ) -> None: ...

    async def missing_block_syncs(self, *, from_block: int, to_block: int) -> list[int]: ...

    async def check_block_sync_gaps(self, *, contract_address: str, event_name: str) -> None: ...


class ClaimReconciler(Protocol):
    async def reconcile(self, conn: object, claim: ClaimRecord) -> bool:
        """Persist the claim if it matches a distribution. Return False if it was rejected."""
        ...


class DistributionStore(Protocol):
    """Port for ledger reads and distribution writes used by the distribution engine."""

    async def stored_root(self, *, distributor_address: str, epoch_number: int) -> bytes | None: ...

    async def synced_through(self, *, pairs: Sequence[tuple[str, str]], timestamp: datetime) -> bool: ...

    async def liquidity_history(self, *, pools: Sequence[str], until: datetime) -> list[LiquidityEvent]: ...

    async def swap_volumes(
        self, *, pools: Sequence[str], start: datetime, end: datetime
    ) -> dict[str, int]: ...

    async def insert_distributions(
        self,
        *,
        distributor_address: str,
        epoch_number: int,
        rows: Sequence[dict],
    ) -> int: ...

    async def load_distributions(self, *, distributor_address: str, epoch_number: int) -> list[dict]: ...
