"""state_migration_corrections

One-off ledger corrections after the exchange contract state migration:

- remove the liquidity withdrawals of the white-hat exploit transactions
- re-attribute liquidity of two contract addresses replaced in the migration

Every touched row is recorded in ledger_corrections first (deleted rows
verbatim), and downgrade() restores them from there.

Revision ID: 2026_10_18_091000
Revises: 2026_10_18_090500
Create Date: 2026-10-18 09:10:00.000000

"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence, Union

from alembic import op
import sqlalchemy as sa

from zap_indexer.app.domain.addresses import to_hex_address

# revision identifiers, used by Alembic.
revision: str = '2026_10_18_091000'
down_revision: Union[str, Sequence[str], None] = '2026_10_18_090500'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EXPLOIT_INITIATOR = 'zil15p46v72tl4gvqn6d93u4zu8jvmdpzy7vf7ycsj'
EXPLOIT_BLOCKS = (1616134, 1616250)

# old contract address -> replacement
REPLACED_ADDRESSES = {
    'zil1zep7ypnuah8gejfyapqv5mr7m8yp3lfv3mmk7c': 'zil12t5yy6xwadasjmn40skfxq59q3wjagxd8sk9g3',
    'zil1j02fmhfzmlpcx8fx89dr7r8thh584vd4aee0wx': 'zil1nvsh5cflvamgsvmx2t3rqdz2jl8x7x9k7fqc6w',
}

_NUMERIC_COLUMNS = ('change_amount', 'token_amount', 'zil_amount', 'amount_0', 'amount_1', 'liquidity')

liquidity_changes = sa.table(
    'liquidity_changes',
    sa.column('transaction_hash', sa.String()),
    sa.column('event_sequence', sa.Integer()),
    sa.column('block_height', sa.BigInteger()),
    sa.column('block_timestamp', sa.DateTime(timezone=True)),
    sa.column('initiator_address', sa.String()),
    sa.column('pool_address', sa.String()),
    sa.column('router_address', sa.String()),
    sa.column('shape', sa.String()),
    *(sa.column(c, sa.Numeric(38, 0)) for c in _NUMERIC_COLUMNS),
)


def _jsonable(row: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out


def _restore(row_data: dict[str, Any]) -> dict[str, Any]:
    out = dict(row_data)
    for c in _NUMERIC_COLUMNS:
        if out.get(c) is not None:
            out[c] = Decimal(out[c])
    out['block_timestamp'] = datetime.fromisoformat(out['block_timestamp'])
    return out


def upgrade() -> None:
    corrections = op.create_table(
        'ledger_corrections',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('revision', sa.String(), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('table_name', sa.String(), nullable=False),
        sa.Column('transaction_hash', sa.String(), nullable=False),
        sa.Column('event_sequence', sa.Integer(), nullable=False),
        sa.Column('column_name', sa.String(), nullable=True),
        sa.Column('old_value', sa.String(), nullable=True),
        sa.Column('new_value', sa.String(), nullable=True),
        sa.Column('row_data', sa.JSON(), nullable=True),
        sa.Column('applied_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    bind = op.get_bind()
    exploit_initiator = to_hex_address(EXPLOIT_INITIATOR)

    # 1) white-hat exploit withdrawals
    exploit_filter = sa.and_(
        liquidity_changes.c.initiator_address == exploit_initiator,
        liquidity_changes.c.change_amount < 0,
        liquidity_changes.c.block_height.between(*EXPLOIT_BLOCKS),
    )
    deleted = bind.execute(sa.select(liquidity_changes).where(exploit_filter)).mappings().all()
    if deleted:
        op.bulk_insert(
            corrections,
            [
                {
                    'revision': revision,
                    'action': 'delete',
                    'table_name': 'liquidity_changes',
                    'transaction_hash': r['transaction_hash'],
                    'event_sequence': r['event_sequence'],
                    'row_data': _jsonable(r),
                }
                for r in deleted
            ],
        )
        bind.execute(sa.delete(liquidity_changes).where(exploit_filter))

    # 2) replaced contract addresses
    for old, new in REPLACED_ADDRESSES.items():
        old_hex, new_hex = to_hex_address(old), to_hex_address(new)
        keys = bind.execute(
            sa.select(liquidity_changes.c.transaction_hash, liquidity_changes.c.event_sequence).where(
                liquidity_changes.c.initiator_address == old_hex
            )
        ).all()
        if not keys:
            continue
        op.bulk_insert(
            corrections,
            [
                {
                    'revision': revision,
                    'action': 'update',
                    'table_name': 'liquidity_changes',
                    'transaction_hash': k.transaction_hash,
                    'event_sequence': k.event_sequence,
                    'column_name': 'initiator_address',
                    'old_value': old_hex,
                    'new_value': new_hex,
                }
                for k in keys
            ],
        )
        bind.execute(
            sa.update(liquidity_changes)
            .where(liquidity_changes.c.initiator_address == old_hex)
            .values(initiator_address=new_hex)
        )


def downgrade() -> None:
    bind = op.get_bind()
    corrections = sa.table(
        'ledger_corrections',
        sa.column('revision', sa.String()),
        sa.column('action', sa.String()),
        sa.column('transaction_hash', sa.String()),
        sa.column('event_sequence', sa.Integer()),
        sa.column('old_value', sa.String()),
        sa.column('row_data', sa.JSON()),
    )
    rows = bind.execute(sa.select(corrections).where(corrections.c.revision == revision)).mappings().all()

    for r in rows:
        if r['action'] == 'update':
            bind.execute(
                sa.update(liquidity_changes)
                .where(
                    liquidity_changes.c.transaction_hash == r['transaction_hash'],
                    liquidity_changes.c.event_sequence == r['event_sequence'],
                )
                .values(initiator_address=r['old_value'])
            )
    restored = [_restore(r['row_data']) for r in rows if r['action'] == 'delete']
    if restored:
        op.bulk_insert(liquidity_changes, restored)

    op.drop_table('ledger_corrections')
