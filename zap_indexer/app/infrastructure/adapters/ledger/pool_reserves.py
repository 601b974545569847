from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from zap_indexer.app.infrastructure.db.statements import as_utc, to_int


@dataclass(frozen=True)
class PoolReserve:
    pool_address: str
    # legacy: token side / AMM: token0
    reserve_0: int
    # legacy: ZIL side / AMM: token1
    reserve_1: int


@dataclass(frozen=True)
class PoolTransaction:
    transaction_hash: str
    event_sequence: int
    block_height: int
    block_timestamp: datetime
    initiator_address: str
    pool_address: str
    router_address: str | None
    to_address: str | None
    tx_type: str
    shape: str

    amount_0_in: int | None = None
    amount_1_in: int | None = None
    amount_0_out: int | None = None
    amount_1_out: int | None = None
    token_amount: int | None = None
    zil_amount: int | None = None
    is_sending_zil: bool | None = None

    change_amount: int | None = None
    amount_0: int | None = None
    amount_1: int | None = None
    liquidity: int | None = None

    # second swap leg of the same transaction (multi-hop)
    leg2_pool_address: str | None = None
    leg2_amount_0_in: int | None = None
    leg2_amount_1_in: int | None = None
    leg2_amount_0_out: int | None = None
    leg2_amount_1_out: int | None = None
    leg2_token_amount: int | None = None
    leg2_zil_amount: int | None = None
    leg2_is_sending_zil: bool | None = None


# Net flow of each ledger row into its pool.
#   swaps (legacy): is_sending_zil = pool receives ZIL -> +zil, -token
#   swaps (amm):    in - out per side
#   liquidity:      sign(units) * amount; units = change_amount | liquidity
_RESERVE_LEGS_SQL = """
    SELECT
        pool_address,
        CASE
            WHEN shape = 'legacy' THEN
                CASE WHEN is_sending_zil THEN -token_amount ELSE token_amount END
            ELSE amount_0_in - amount_0_out
        END AS reserve_0,
        CASE
            WHEN shape = 'legacy' THEN
                CASE WHEN is_sending_zil THEN zil_amount ELSE -zil_amount END
            ELSE amount_1_in - amount_1_out
        END AS reserve_1
    FROM swaps

    UNION ALL

    SELECT
        pool_address,
        CASE
            WHEN COALESCE(change_amount, liquidity) < 0 THEN -1
            WHEN COALESCE(change_amount, liquidity) > 0 THEN 1
            ELSE 0
        END * COALESCE(token_amount, amount_0) AS reserve_0,
        CASE
            WHEN COALESCE(change_amount, liquidity) < 0 THEN -1
            WHEN COALESCE(change_amount, liquidity) > 0 THEN 1
            ELSE 0
        END * COALESCE(zil_amount, amount_1) AS reserve_1
    FROM liquidity_changes
"""

# Swap legs numbered per transaction; leg 1 carries leg 2 in its leg2_*
# columns, legs 3+ stay standalone rows.
_POOL_TXS_SQL = """
    WITH legs AS (
        SELECT
            s.*,
            ROW_NUMBER() OVER (
                PARTITION BY s.transaction_hash
                ORDER BY s.event_sequence
            ) AS leg
        FROM swaps s
    ),
    txs AS (
        SELECT
            l1.transaction_hash,
            l1.event_sequence,
            l1.block_height,
            l1.block_timestamp,
            l1.initiator_address,
            l1.pool_address,
            l1.router_address,
            l1.to_address,
            'swap' AS tx_type,
            l1.shape,
            l1.amount_0_in,
            l1.amount_1_in,
            l1.amount_0_out,
            l1.amount_1_out,
            l1.token_amount,
            l1.zil_amount,
            l1.is_sending_zil,
            NULL AS change_amount,
            NULL AS amount_0,
            NULL AS amount_1,
            NULL AS liquidity,
            l2.pool_address AS leg2_pool_address,
            l2.amount_0_in AS leg2_amount_0_in,
            l2.amount_1_in AS leg2_amount_1_in,
            l2.amount_0_out AS leg2_amount_0_out,
            l2.amount_1_out AS leg2_amount_1_out,
            l2.token_amount AS leg2_token_amount,
            l2.zil_amount AS leg2_zil_amount,
            l2.is_sending_zil AS leg2_is_sending_zil
        FROM legs l1
        LEFT JOIN legs l2
          ON l1.leg = 1
         AND l2.transaction_hash = l1.transaction_hash
         AND l2.leg = 2
        WHERE l1.leg <> 2

        UNION ALL

        SELECT
            lc.transaction_hash,
            lc.event_sequence,
            lc.block_height,
            lc.block_timestamp,
            lc.initiator_address,
            lc.pool_address,
            lc.router_address,
            NULL AS to_address,
            'liquidity' AS tx_type,
            lc.shape,
            NULL AS amount_0_in,
            NULL AS amount_1_in,
            NULL AS amount_0_out,
            NULL AS amount_1_out,
            lc.token_amount,
            lc.zil_amount,
            NULL AS is_sending_zil,
            lc.change_amount,
            lc.amount_0,
            lc.amount_1,
            lc.liquidity,
            NULL AS leg2_pool_address,
            NULL AS leg2_amount_0_in,
            NULL AS leg2_amount_1_in,
            NULL AS leg2_amount_0_out,
            NULL AS leg2_amount_1_out,
            NULL AS leg2_token_amount,
            NULL AS leg2_zil_amount,
            NULL AS leg2_is_sending_zil
        FROM liquidity_changes lc
    )
    SELECT * FROM txs
"""

_INT_FIELDS = (
    "amount_0_in",
    "amount_1_in",
    "amount_0_out",
    "amount_1_out",
    "token_amount",
    "zil_amount",
    "change_amount",
    "amount_0",
    "amount_1",
    "liquidity",
    "leg2_amount_0_in",
    "leg2_amount_1_in",
    "leg2_amount_0_out",
    "leg2_amount_1_out",
    "leg2_token_amount",
    "leg2_zil_amount",
)


def _opt_int(value: Any) -> int | None:
    return None if value is None else to_int(value)


def _opt_bool(value: Any) -> bool | None:
    return None if value is None else bool(value)


class SqlAlchemyReserveAggregator:
    """
    Read-only projections over the ledger: pool reserves and the interleaved
    pool transaction feed. Nothing here writes.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def pool_reserves(self, pool_address: str | None = None) -> list[PoolReserve]:
        where = ""
        params: dict[str, Any] = {}
        if pool_address is not None:
            where = "WHERE pool_address = :pool_address"
            params["pool_address"] = pool_address

        sql = text(
            f"""
            SELECT
                pool_address,
                SUM(reserve_0) AS reserve_0,
                SUM(reserve_1) AS reserve_1
            FROM ({_RESERVE_LEGS_SQL}) reserve_legs
            {where}
            GROUP BY pool_address
            ORDER BY pool_address
            """
        )

        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql, params)).mappings().all()

        return [
            PoolReserve(
                pool_address=r["pool_address"],
                reserve_0=to_int(r["reserve_0"]),
                reserve_1=to_int(r["reserve_1"]),
            )
            for r in rows
        ]

    async def pool_transactions(
        self,
        pool_address: str | None = None,
        address: str | None = None,
        from_block: int | None = None,
        to_block: int | None = None,
        limit: int | None = None,
    ) -> list[PoolTransaction]:
        conditions: list[str] = []
        params: dict[str, Any] = {}
        if pool_address is not None:
            conditions.append("(pool_address = :pool_address OR leg2_pool_address = :pool_address)")
            params["pool_address"] = pool_address
        if address is not None:
            conditions.append("initiator_address = :address")
            params["address"] = address
        if from_block is not None:
            conditions.append("block_height >= :from_block")
            params["from_block"] = from_block
        if to_block is not None:
            conditions.append("block_height <= :to_block")
            params["to_block"] = to_block

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT :limit"
            params["limit"] = limit

        sql = text(
            f"""
            {_POOL_TXS_SQL}
            {where}
            ORDER BY block_height, transaction_hash, event_sequence
            {limit_sql}
            """
        )

        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql, params)).mappings().all()

        out: list[PoolTransaction] = []
        for r in rows:
            values = dict(r)
            for key in _INT_FIELDS:
                values[key] = _opt_int(values[key])
            values["is_sending_zil"] = _opt_bool(values["is_sending_zil"])
            values["leg2_is_sending_zil"] = _opt_bool(values["leg2_is_sending_zil"])
            values["block_timestamp"] = _parse_timestamp(values["block_timestamp"])
            out.append(PoolTransaction(**values))
        return out


def _parse_timestamp(value: Any) -> datetime:
    # text() results skip type processing; SQLite hands back ISO strings.
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)
