"""
Add transaction.deleted_at and exclude deleted rows from the occurrence index

Revision ID: 0002_txn_soft_delete
Revises: 0001_initial
Create Date: 2025-11-24 10:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_txn_soft_delete'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table('transaction') as batch:
        batch.add_column(sa.Column('deleted_at', sa.DateTime(), nullable=True))

    op.drop_index('uq_txn_contract_due_date', table_name='transaction')
    op.create_index(
        'uq_txn_contract_due_date',
        'transaction',
        ['contract_id', 'due_date'],
        unique=True,
        sqlite_where=sa.text("status != 'CANCELLED' AND deleted_at IS NULL"),
        postgresql_where=sa.text("status != 'CANCELLED' AND deleted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index('uq_txn_contract_due_date', table_name='transaction')
    op.create_index(
        'uq_txn_contract_due_date',
        'transaction',
        ['contract_id', 'due_date'],
        unique=True,
        sqlite_where=sa.text("status != 'CANCELLED'"),
        postgresql_where=sa.text("status != 'CANCELLED'"),
    )
    with op.batch_alter_table('transaction') as batch:
        batch.drop_column('deleted_at')
