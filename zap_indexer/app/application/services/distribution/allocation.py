from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Mapping

from zap_indexer.app.application.services.distribution.epochs import EpochInfo
from zap_indexer.app.domain.models import LiquidityEvent

logger = logging.getLogger(__name__)


def time_weighted_liquidity(
    events: Iterable[LiquidityEvent],
    *,
    start: datetime,
    end: datetime,
) -> dict[str, dict[str, int]]:
    """
    Liquidity units held x seconds held, per pool and address, over [start, end).

    Events before ``start`` only build up the opening balance; events at or
    after ``end`` are ignored. A negative running balance counts as zero.
    """
    start_s = int(start.timestamp())
    end_s = int(end.timestamp())

    by_holder: dict[tuple[str, str], list[tuple[int, int]]] = defaultdict(list)
    for e in events:
        by_holder[(e.pool_address, e.address)].append((int(e.timestamp.timestamp()), e.units))

    out: dict[str, dict[str, int]] = defaultdict(dict)
    for (pool, address), changes in by_holder.items():
        changes.sort(key=lambda c: c[0])
        balance = 0
        cursor = start_s
        weighted = 0
        for ts, units in changes:
            if ts >= end_s:
                break
            if ts > cursor:
                weighted += max(balance, 0) * (ts - cursor)
                cursor = ts
            balance += units
        weighted += max(balance, 0) * (end_s - cursor)
        if weighted > 0:
            out[pool][address] = weighted
    return dict(out)


def allocate(
    *,
    epoch: EpochInfo,
    pool_weights: Mapping[str, int],
    liquidity: Mapping[str, Mapping[str, int]],
    volumes: Mapping[str, int],
    developer_address: str,
    redirected_addresses: Iterable[str] = (),
) -> dict[str, int]:
    """
    Split the epoch budget into per-address token amounts.

    Every division rounds down; the developer address receives its share,
    the allocations of redirected addresses, and the rounding remainder, so
    the amounts always sum to exactly ``epoch.tokens_for_epoch()``.
    """
    budget = epoch.tokens_for_epoch()
    accumulator: dict[str, int] = defaultdict(int)

    lp_tokens = epoch.tokens_for_liquidity_providers()
    total_weight = sum(pool_weights.values())
    if total_weight > 0:
        for pool, weight in sorted(pool_weights.items()):
            pool_tokens = lp_tokens * weight // total_weight
            holders = liquidity.get(pool, {})
            pool_liquidity = sum(holders.values())
            if pool_liquidity <= 0:
                logger.info("Pool %s had no liquidity in epoch %s", pool, epoch.epoch_number)
                continue
            for address, weighted in holders.items():
                accumulator[address] += pool_tokens * weighted // pool_liquidity

    trader_tokens = epoch.tokens_for_traders()
    total_volume = sum(volumes.values())
    if trader_tokens > 0 and total_volume > 0:
        for address, volume in volumes.items():
            accumulator[address] += trader_tokens * volume // total_volume

    for address in redirected_addresses:
        redirected = accumulator.pop(address, 0)
        if redirected:
            logger.info("Redirecting %s tokens from %s to developer", redirected, address)
            accumulator[developer_address] += redirected

    accumulator[developer_address] += epoch.tokens_for_developers()

    distributed = sum(accumulator.values())
    if distributed > budget:
        raise ArithmeticError(f"Allocated {distributed} tokens, more than the budget of {budget}")
    accumulator[developer_address] += budget - distributed

    return {address: amount for address, amount in accumulator.items() if amount > 0}
