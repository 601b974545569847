from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine


BlockSelector = int | str
_EARLIEST: Literal["earliest"] = "earliest"
_LATEST: Literal["latest"] = "latest"

_BLOCK_TABLES = ("chain_events", "block_syncs", "swaps", "liquidity_changes")


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


async def resolve_block_bounds_from_table(
    *,
    engine: AsyncEngine,
    from_block: BlockSelector,
    to_block: BlockSelector,
    source_table: str = "chain_events",
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into concrete block heights using a ledger table.

    - If both are ints -> they are returned as-is.
    - If from_block is "earliest" / "" -> MIN(block_height) from source_table.
    - If to_block is "latest" / ""     -> MAX(block_height) from source_table.
    """
    if isinstance(from_block, int) and isinstance(to_block, int):
        return from_block, to_block

    if source_table not in _BLOCK_TABLES:
        raise ValueError(f"Unsupported source table: {source_table!r}")

    sql = text(
        f"""
        SELECT
            MIN(block_height) AS min_block,
            MAX(block_height) AS max_block
        FROM {source_table}
        """
    )

    async with engine.connect() as conn:
        result = await conn.execute(sql)
        row = result.one_or_none()

    if row is None or row.min_block is None or row.max_block is None:
        raise RuntimeError(f"No rows found in {source_table!r}")

    min_block: int = row.min_block
    max_block: int = row.max_block

    if isinstance(from_block, int):
        fb = from_block
    else:
        fb_str = from_block.strip().lower()
        if fb_str in ("", _EARLIEST):
            fb = min_block
        elif fb_str.isdigit():
            fb = int(fb_str)
        else:
            raise ValueError(f"Unsupported from_block value: {from_block!r}")

    if isinstance(to_block, int):
        tb = to_block
    else:
        tb_str = to_block.strip().lower()
        if tb_str in ("", _LATEST):
            tb = max_block
        elif tb_str.isdigit():
            tb = int(tb_str)
        else:
            raise ValueError(f"Unsupported to_block value: {to_block!r}")

    return fb, tb
