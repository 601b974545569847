from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from zap_indexer.app.application.services.block_bounds import BlockRange
from zap_indexer.app.domain.errors import (
    GapDetected,
    NormalizationError,
    SourceError,
    SourceRateLimited,
    SourceResultTooLarge,
    SourceUnavailable,
    StorageUnavailable,
)
from zap_indexer.app.domain.models import (
    BlockInfo,
    ContractShape,
    NormalizedEvent,
    RawEvent,
    WindowResult,
    WorkerState,
)
from zap_indexer.app.domain.ports.out import ChainClient, EventNormalizer, EventSource, LedgerWriter

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class WorkerSettings:
    start_block: int = 0
    block_window_size: int = 1_000
    max_window_events: int = 5_000
    poll_interval_seconds: float = 60.0
    fetch_max_attempts: int = 5
    fetch_backoff_seconds: float = 1.0
    fetch_backoff_max_seconds: float = 60.0


class IngestionWorker:
    """
    Syncs one (contract, event) pair from the event source into the ledger.

    Lifecycle:
      NOT_STARTED -> BACKFILLING -> CAUGHT_UP <-> POLLING
      any state   -> HALTED       (block sync gap, needs an operator)

    Progress lives only in the store (sync_checkpoints), so a restarted
    worker resumes from checkpoint + 1 and re-fetching a window is harmless.
    """

    def __init__(
        self,
        *,
        contract_address: str,
        event_name: str,
        shape: ContractShape,
        source: EventSource,
        chain: ChainClient,
        normalizer: EventNormalizer,
        ledger: LedgerWriter,
        settings: WorkerSettings | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.contract_address = contract_address
        self.event_name = event_name
        self.shape = shape
        self._source = source
        self._chain = chain
        self._normalizer = normalizer
        self._ledger = ledger
        self._settings = settings or WorkerSettings()
        self._stop = stop_event or asyncio.Event()
        self._state = WorkerState.NOT_STARTED
        self._backoff = wait_exponential(
            multiplier=self._settings.fetch_backoff_seconds,
            max=self._settings.fetch_backoff_max_seconds,
        )

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def name(self) -> str:
        return f"{self.contract_address}/{self.event_name}"

    # ---------------------------------------------------------------------
    # lifecycle
    # ---------------------------------------------------------------------

    async def run(self) -> WorkerState:
        """Backfill, then poll every poll interval until the stop event is set."""
        logger.info("Worker %s starting", self.name)
        while not self._stop.is_set():
            try:
                if self._state in (WorkerState.NOT_STARTED, WorkerState.BACKFILLING):
                    await self.backfill()
                else:
                    await self.poll_once()
            except GapDetected as exc:
                logger.error("Worker %s halted: %s", self.name, exc)
                self._state = WorkerState.HALTED
                return self._state
            except (SourceError, StorageUnavailable) as exc:
                logger.warning("Worker %s cycle aborted, retrying next tick: %r", self.name, exc)

            await self._sleep(self._settings.poll_interval_seconds)

        logger.info("Worker %s stopped in state %s", self.name, self._state.value)
        return self._state

    async def backfill(self) -> None:
        state = await self._ledger.load_sync_state(
            contract_address=self.contract_address,
            event_name=self.event_name,
        )
        if state.backfilled:
            self._state = WorkerState.CAUGHT_UP
            return

        self._state = WorkerState.BACKFILLING
        head = await self._with_retry(self._chain.latest_block)
        next_block = self._resume_from(state.last_block_height)
        logger.info("Worker %s backfilling blocks %s..%s", self.name, next_block, head)

        while next_block <= head:
            if self._stop.is_set():
                return
            to_block = min(next_block + self._settings.block_window_size - 1, head)
            result = await self.sync_window(BlockRange(from_block=next_block, to_block=to_block))
            logger.info(
                "Worker %s backfilled %s..%s fetched=%s inserted=%s failed=%s",
                self.name,
                result.from_block,
                result.to_block,
                result.fetched,
                result.inserted_events,
                result.failed,
            )
            next_block = to_block + 1

        await self._ledger.mark_backfill_complete(
            contract_address=self.contract_address,
            event_name=self.event_name,
            block_height=next_block - 1,
        )
        self._state = WorkerState.CAUGHT_UP
        logger.info("Worker %s caught up at block %s", self.name, next_block - 1)

    async def poll_once(self) -> int:
        """Sync checkpoint + 1 .. head, recording a block sync for every height."""
        await self._ledger.check_block_sync_gaps(
            contract_address=self.contract_address,
            event_name=self.event_name,
        )
        self._state = WorkerState.POLLING
        try:
            state = await self._ledger.load_sync_state(
                contract_address=self.contract_address,
                event_name=self.event_name,
            )
            head = await self._with_retry(self._chain.latest_block)
            next_block = self._resume_from(state.last_block_height)

            inserted = 0
            while next_block <= head and not self._stop.is_set():
                to_block = min(next_block + self._settings.block_window_size - 1, head)
                result = await self.sync_window(
                    BlockRange(from_block=next_block, to_block=to_block),
                    record_block_syncs=True,
                )
                inserted += result.inserted_events
                next_block = to_block + 1

            if inserted:
                logger.info("Worker %s polled up to %s, inserted=%s", self.name, head, inserted)
            return inserted
        finally:
            self._state = WorkerState.CAUGHT_UP

    # ---------------------------------------------------------------------
    # windows
    # ---------------------------------------------------------------------

    async def sync_window(self, block_range: BlockRange, *, record_block_syncs: bool = False) -> WindowResult:
        """
        Fetch, normalize and commit one block window.

        Windows the source refuses, or that exceed max_window_events, are
        split in half down to a single block.
        """
        block_range.validate()
        try:
            raw_events = await self._fetch_window(block_range)
        except SourceResultTooLarge:
            if block_range.from_block == block_range.to_block:
                raise
            raw_events = None

        if raw_events is None or (
            len(raw_events) > self._settings.max_window_events
            and block_range.from_block < block_range.to_block
        ):
            mid = (block_range.from_block + block_range.to_block) // 2
            logger.info(
                "Worker %s splitting window %s..%s at %s",
                self.name,
                block_range.from_block,
                block_range.to_block,
                mid,
            )
            left = await self.sync_window(
                BlockRange(from_block=block_range.from_block, to_block=mid),
                record_block_syncs=record_block_syncs,
            )
            right = await self.sync_window(
                BlockRange(from_block=mid + 1, to_block=block_range.to_block),
                record_block_syncs=record_block_syncs,
            )
            return WindowResult(
                from_block=block_range.from_block,
                to_block=block_range.to_block,
                fetched=left.fetched + right.fetched,
                inserted_events=left.inserted_events + right.inserted_events,
                failed=left.failed + right.failed,
            )

        normalized = self._normalize(raw_events)
        block_syncs: Sequence[BlockInfo] = ()
        if record_block_syncs:
            block_syncs = await self._block_syncs(block_range)

        inserted = await self._ledger.persist_window(
            contract_address=self.contract_address,
            event_name=self.event_name,
            to_block=block_range.to_block,
            events=normalized,
            block_syncs=block_syncs,
        )
        return WindowResult(
            from_block=block_range.from_block,
            to_block=block_range.to_block,
            fetched=len(raw_events),
            inserted_events=inserted,
            failed=sum(1 for e in normalized if e.failed),
        )

    async def _fetch_window(self, block_range: BlockRange) -> list[RawEvent]:
        events: list[RawEvent] = []
        page_token: str | None = None
        while True:
            page = await self._with_retry(
                self._source.fetch_events,
                self.contract_address,
                self.event_name,
                block_range.from_block,
                page_token,
                to_block=block_range.to_block,
            )
            # Late events below from_block are kept; only heights past the window are dropped.
            events.extend(e for e in page.events if e.block_height <= block_range.to_block)
            # No point paging further once the window will be split anyway.
            if (
                len(events) > self._settings.max_window_events
                and block_range.from_block < block_range.to_block
            ):
                return events
            if page.next_page_token is None:
                return events
            page_token = page.next_page_token

    def _normalize(self, raw_events: Sequence[RawEvent]) -> list[NormalizedEvent]:
        out: list[NormalizedEvent] = []
        for raw in sorted(raw_events, key=lambda e: e.key):
            try:
                record = self._normalizer.normalize(raw, self.shape)
            except NormalizationError as exc:
                logger.warning("Failed to normalize %s %s: %s", raw.event_name, raw.key, exc)
                out.append(NormalizedEvent(raw=raw, error=str(exc)))
                continue
            if record is None:
                continue
            out.append(NormalizedEvent(raw=raw, record=record))
        return out

    async def _block_syncs(self, block_range: BlockRange) -> list[BlockInfo]:
        missing = await self._ledger.missing_block_syncs(
            from_block=block_range.from_block,
            to_block=block_range.to_block,
        )
        return [await self._with_retry(self._chain.get_block, height) for height in missing]

    # ---------------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------------

    def _resume_from(self, last_block_height: int | None) -> int:
        if last_block_height is None:
            return self._settings.start_block
        return max(last_block_height + 1, self._settings.start_block)

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, SourceRateLimited) and exc.retry_after:
            delay = max(delay, min(exc.retry_after, self._settings.fetch_backoff_max_seconds))
        return delay

    async def _with_retry(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.fetch_max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((SourceUnavailable, SourceRateLimited)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await fn(*args, **kwargs)
        raise AssertionError("unreachable")

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


async def run_workers(workers: Sequence[IngestionWorker]) -> dict[str, WorkerState]:
    """
    Run every worker as its own task until they all stop.

    Workers share nothing but the database; one worker crashing or halting
    does not stop the others.
    """
    results = await asyncio.gather(*(w.run() for w in workers), return_exceptions=True)
    states: dict[str, WorkerState] = {}
    for worker, result in zip(workers, results):
        if isinstance(result, BaseException):
            logger.error("Worker %s crashed: %r", worker.name, result, exc_info=result)
            states[worker.name] = WorkerState.HALTED
        else:
            states[worker.name] = result
    return states
