from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Union

ContractShape = Literal["amm", "legacy", "distributor"]
SwapShape = Literal["amm", "legacy"]


class EventStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class WorkerState(str, enum.Enum):
    NOT_STARTED = "not_started"
    BACKFILLING = "backfilling"
    CAUGHT_UP = "caught_up"
    POLLING = "polling"
    HALTED = "halted"


# -----------------------------------------------------------------------------
# Source-side records
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class TxEvent:
    """Any event emitted in the same transaction (needed for legacy liquidity amounts)."""

    name: str
    address: str
    params: Any


@dataclass(frozen=True)
class RawEvent:
    """
    One contract event as returned by the event source.

    Identity is (block_height, tx_hash, event_index); event_index is the
    position of the event in its transaction's event list.
    """

    block_height: int
    block_timestamp: datetime
    tx_hash: str
    event_index: int
    contract_address: str
    initiator_address: str
    event_name: str
    params: Any
    tx_value: str = "0"
    tx_events: tuple[TxEvent, ...] = ()
    internal_transfers: tuple[dict[str, Any], ...] = ()

    @property
    def key(self) -> tuple[int, str, int]:
        return (self.block_height, self.tx_hash, self.event_index)


@dataclass(frozen=True)
class EventPage:
    events: list[RawEvent]
    next_page_token: str | None = None


@dataclass(frozen=True)
class BlockInfo:
    height: int
    timestamp: datetime
    num_txs: int


# -----------------------------------------------------------------------------
# Normalized ledger records
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class AmmSwapAmounts:
    amount_0_in: int
    amount_1_in: int
    amount_0_out: int
    amount_1_out: int
    to_address: str | None = None


@dataclass(frozen=True)
class LegacySwapAmounts:
    token_amount: int
    zil_amount: int
    # True = the pool receives ZIL and sends out the token.
    is_sending_zil: bool


@dataclass(frozen=True)
class SwapRecord:
    transaction_hash: str
    event_sequence: int
    block_height: int
    block_timestamp: datetime
    initiator_address: str
    pool_address: str
    router_address: str | None
    shape: SwapShape
    amounts: AmmSwapAmounts | LegacySwapAmounts

    kind: Literal["swap"] = field(default="swap", init=False)


@dataclass(frozen=True)
class AmmLiquidityAmounts:
    amount_0: int
    amount_1: int
    # Signed: negative on burn.
    liquidity: int


@dataclass(frozen=True)
class LegacyLiquidityAmounts:
    # Signed pool shares: negative on withdrawal.
    change_amount: int
    token_amount: int
    zil_amount: int


@dataclass(frozen=True)
class LiquidityChangeRecord:
    transaction_hash: str
    event_sequence: int
    block_height: int
    block_timestamp: datetime
    initiator_address: str
    pool_address: str
    router_address: str | None
    shape: SwapShape
    amounts: AmmLiquidityAmounts | LegacyLiquidityAmounts

    kind: Literal["liquidity_change"] = field(default="liquidity_change", init=False)

    @property
    def units(self) -> int:
        """Signed liquidity units used for time weighting and reserve direction."""
        if isinstance(self.amounts, LegacyLiquidityAmounts):
            return self.amounts.change_amount
        return self.amounts.liquidity


@dataclass(frozen=True)
class ClaimRecord:
    transaction_hash: str
    event_sequence: int
    block_height: int
    block_timestamp: datetime
    distributor_address: str
    epoch_number: int
    initiator_address: str
    amount: int

    kind: Literal["claim"] = field(default="claim", init=False)


DomainRecord = Union[SwapRecord, LiquidityChangeRecord, ClaimRecord]


@dataclass(frozen=True)
class NormalizedEvent:
    """Outcome of normalizing one raw event: a record, a skip, or a failure."""

    raw: RawEvent
    record: DomainRecord | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# -----------------------------------------------------------------------------
# Sync state
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class SyncState:
    contract_address: str
    event_name: str
    last_block_height: int | None
    backfill_completed_at: int | None

    @property
    def backfilled(self) -> bool:
        return self.backfill_completed_at is not None


@dataclass(frozen=True)
class WindowResult:
    from_block: int
    to_block: int
    fetched: int
    inserted_events: int
    failed: int


# -----------------------------------------------------------------------------
# Distribution inputs
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class LiquidityEvent:
    pool_address: str
    address: str
    timestamp: datetime
    # signed liquidity units, negative on withdrawal
    units: int
