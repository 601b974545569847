"""create_ledger_tables

Revision ID: 2026_10_18_090000
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_10_18_090000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_AMOUNT = sa.Numeric(38, 0)


def _tx_identity() -> list[sa.Column]:
    return [
        sa.Column('transaction_hash', sa.String(), nullable=False),
        sa.Column('event_sequence', sa.Integer(), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_timestamp', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'chain_events',
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tx_hash', sa.String(), nullable=False),
        sa.Column('event_index', sa.Integer(), nullable=False),
        sa.Column('contract_address', sa.String(), nullable=False),
        sa.Column('initiator_address', sa.String(), nullable=False),
        sa.Column('event_name', sa.String(), nullable=False),
        sa.Column('event_params', sa.JSON(), nullable=False),
        sa.Column('processed', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('block_height', 'tx_hash', 'event_index', name='pk_chain_events'),
    )
    op.create_index('ix_chain_events_contract_event', 'chain_events', ['contract_address', 'event_name', 'block_height'])
    op.create_index('ix_chain_events_processed', 'chain_events', ['processed'])

    op.create_table(
        'swaps',
        *_tx_identity(),
        sa.Column('initiator_address', sa.String(), nullable=False),
        sa.Column('pool_address', sa.String(), nullable=False),
        sa.Column('router_address', sa.String(), nullable=True),
        sa.Column('to_address', sa.String(), nullable=True),
        sa.Column('shape', sa.String(length=16), nullable=False),
        sa.Column('amount_0_in', _AMOUNT, nullable=True),
        sa.Column('amount_1_in', _AMOUNT, nullable=True),
        sa.Column('amount_0_out', _AMOUNT, nullable=True),
        sa.Column('amount_1_out', _AMOUNT, nullable=True),
        sa.Column('token_amount', _AMOUNT, nullable=True),
        sa.Column('zil_amount', _AMOUNT, nullable=True),
        sa.Column('is_sending_zil', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('transaction_hash', 'event_sequence', name='pk_swaps'),
    )
    op.create_index('ix_swaps_pool_address', 'swaps', ['pool_address'])
    op.create_index('ix_swaps_initiator_address', 'swaps', ['initiator_address'])
    op.create_index('ix_swaps_block_timestamp', 'swaps', ['block_timestamp'])
    op.create_index('ix_swaps_block_height_tx', 'swaps', ['block_height', 'transaction_hash'])

    op.create_table(
        'liquidity_changes',
        *_tx_identity(),
        sa.Column('initiator_address', sa.String(), nullable=False),
        sa.Column('pool_address', sa.String(), nullable=False),
        sa.Column('router_address', sa.String(), nullable=True),
        sa.Column('shape', sa.String(length=16), nullable=False),
        sa.Column('change_amount', _AMOUNT, nullable=True),
        sa.Column('token_amount', _AMOUNT, nullable=True),
        sa.Column('zil_amount', _AMOUNT, nullable=True),
        sa.Column('amount_0', _AMOUNT, nullable=True),
        sa.Column('amount_1', _AMOUNT, nullable=True),
        sa.Column('liquidity', _AMOUNT, nullable=True),
        sa.PrimaryKeyConstraint('transaction_hash', 'event_sequence', name='pk_liquidity_changes'),
    )
    op.create_index('ix_liquidity_changes_pool_address', 'liquidity_changes', ['pool_address'])
    op.create_index('ix_liquidity_changes_initiator_address', 'liquidity_changes', ['initiator_address'])
    op.create_index('ix_liquidity_changes_block_timestamp', 'liquidity_changes', ['block_timestamp'])

    op.create_table(
        'block_syncs',
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('num_txs', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('block_height', name='pk_block_syncs'),
    )

    op.create_table(
        'backfill_completions',
        sa.Column('contract_address', sa.String(), nullable=False),
        sa.Column('event_name', sa.String(), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('contract_address', 'event_name', name='pk_backfill_completions'),
    )

    op.create_table(
        'sync_checkpoints',
        sa.Column('contract_address', sa.String(), nullable=False),
        sa.Column('event_name', sa.String(), nullable=False),
        sa.Column('last_block_height', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('contract_address', 'event_name', name='pk_sync_checkpoints'),
    )

    op.create_table(
        'distributions',
        sa.Column('distributor_address', sa.String(), nullable=False),
        sa.Column('epoch_number', sa.Integer(), nullable=False),
        sa.Column('address_hex', sa.String(), nullable=False),
        sa.Column('address_bech32', sa.String(), nullable=False),
        sa.Column('amount', _AMOUNT, nullable=False),
        sa.Column('proof', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('distributor_address', 'epoch_number', 'address_hex', name='pk_distributions'),
    )
    op.create_index('ix_distributions_address_bech32', 'distributions', ['address_bech32'])

    op.create_table(
        'claims',
        *_tx_identity(),
        sa.Column('distributor_address', sa.String(), nullable=False),
        sa.Column('epoch_number', sa.Integer(), nullable=False),
        sa.Column('initiator_address', sa.String(), nullable=False),
        sa.Column('amount', _AMOUNT, nullable=False),
        sa.PrimaryKeyConstraint('transaction_hash', 'event_sequence', name='pk_claims'),
        sa.UniqueConstraint(
            'distributor_address', 'epoch_number', 'initiator_address',
            name='uq_claims_distributor_epoch_initiator',
        ),
    )


def downgrade() -> None:
    op.drop_table('claims')
    op.drop_index('ix_distributions_address_bech32', table_name='distributions')
    op.drop_table('distributions')
    op.drop_table('sync_checkpoints')
    op.drop_table('backfill_completions')
    op.drop_table('block_syncs')
    op.drop_index('ix_liquidity_changes_block_timestamp', table_name='liquidity_changes')
    op.drop_index('ix_liquidity_changes_initiator_address', table_name='liquidity_changes')
    op.drop_index('ix_liquidity_changes_pool_address', table_name='liquidity_changes')
    op.drop_table('liquidity_changes')
    op.drop_index('ix_swaps_block_height_tx', table_name='swaps')
    op.drop_index('ix_swaps_block_timestamp', table_name='swaps')
    op.drop_index('ix_swaps_initiator_address', table_name='swaps')
    op.drop_index('ix_swaps_pool_address', table_name='swaps')
    op.drop_table('swaps')
    op.drop_index('ix_chain_events_processed', table_name='chain_events')
    op.drop_index('ix_chain_events_contract_event', table_name='chain_events')
    op.drop_table('chain_events')
