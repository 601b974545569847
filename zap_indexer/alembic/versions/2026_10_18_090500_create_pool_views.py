"""create_pool_views

Read-only views for the query layer.

Revision ID: 2026_10_18_090500
Revises: 2026_10_18_090000
Create Date: 2026-10-18 09:05:00.000000

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '2026_10_18_090500'
down_revision: Union[str, Sequence[str], None] = '2026_10_18_090000'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


POOL_RESERVES_VIEW = """
CREATE VIEW pool_reserves AS
SELECT
    pool_address,
    SUM(reserve_0) AS reserve_0,
    SUM(reserve_1) AS reserve_1
FROM (
    SELECT
        pool_address,
        -- legacy: is_sending_zil = pool receives ZIL
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
        END * COALESCE(token_amount, amount_0),
        CASE
            WHEN COALESCE(change_amount, liquidity) < 0 THEN -1
            WHEN COALESCE(change_amount, liquidity) > 0 THEN 1
            ELSE 0
        END * COALESCE(zil_amount, amount_1)
    FROM liquidity_changes
) reserve_legs
GROUP BY pool_address
"""

POOL_TXS_VIEW = """
CREATE VIEW pool_txs AS
WITH legs AS (
    SELECT
        s.*,
        ROW_NUMBER() OVER (PARTITION BY s.transaction_hash ORDER BY s.event_sequence) AS leg
    FROM swaps s
)
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
    NULL::numeric AS change_amount,
    NULL::numeric AS amount_0,
    NULL::numeric AS amount_1,
    NULL::numeric AS liquidity,
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
    NULL, NULL, NULL, NULL,
    lc.token_amount,
    lc.zil_amount,
    NULL::boolean,
    lc.change_amount,
    lc.amount_0,
    lc.amount_1,
    lc.liquidity,
    NULL, NULL, NULL, NULL, NULL, NULL, NULL, NULL::boolean
FROM liquidity_changes lc
"""


def upgrade() -> None:
    op.execute(POOL_RESERVES_VIEW)
    op.execute(POOL_TXS_VIEW)


def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS pool_txs")
    op.execute("DROP VIEW IF EXISTS pool_reserves")
