from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .ingestion.sync_task import sync_task as ingestion__sync_task
from .ledger.pool_txs_task import pool_txs_task as ledger__pool_txs_task
from .ledger.reserves_task import reserves_task as ledger__reserves_task
from .rewards.distribute_task import distribute_task as rewards__distribute_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "ingestion__sync_task": ingestion__sync_task,
    "rewards__distribute_task": rewards__distribute_task,
    "ledger__reserves_task": ledger__reserves_task,
    "ledger__pool_txs_task": ledger__pool_txs_task,
}
