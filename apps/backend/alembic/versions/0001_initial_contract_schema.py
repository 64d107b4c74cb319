"""
Initial schema: companies, bank accounts, contracts and transactions

Revision ID: 0001_initial
Revises:
Create Date: 2025-11-10 09:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    ]


def upgrade() -> None:
    # enum columns store member names (on SQLite these are plain VARCHAR)
    bank_account_type = sa.Enum('CHECKING', 'SAVINGS', 'INVESTMENT', 'CREDIT_CARD', name='bank_account_type')
    txn_type = sa.Enum('REVENUE', 'EXPENSE', 'TRANSFER', name='txn_type')
    contract_frequency = sa.Enum(
        'DAILY', 'WEEKLY', 'MONTHLY', 'QUARTERLY', 'SEMIANNUAL', 'YEARLY',
        name='contract_frequency',
    )
    txn_status = sa.Enum('PENDING', 'PAID', 'OVERDUE', 'CANCELLED', name='txn_status')

    op.create_table(
        'company',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('document', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.UniqueConstraint('name', name='uq_company_name'),
    )

    op.create_table(
        'bankaccount',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('company.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('bank_name', sa.String(length=120), nullable=True),
        sa.Column('account_number', sa.String(length=40), nullable=True),
        sa.Column('type', bank_account_type, nullable=False),
        sa.Column('current_balance', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('credit_limit', sa.Numeric(18, 4), nullable=True),
        sa.Column('available_credit', sa.Numeric(18, 4), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'name', name='uq_bank_account_name'),
        sa.CheckConstraint("type != 'CREDIT_CARD' OR credit_limit IS NOT NULL", name='ck_credit_card_requires_limit'),
    )

    op.create_table(
        'category',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('company.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'type', 'name', name='uq_category_name'),
        sa.CheckConstraint("type != 'TRANSFER'", name='ck_category_not_transfer'),
    )

    op.create_table(
        'contact',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('company.id'), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('document', sa.String(length=32), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'contract',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('company.id'), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('amount', sa.Numeric(18, 4), nullable=False),
        sa.Column('frequency', contract_frequency, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('total_installments', sa.Integer(), nullable=True),
        sa.Column('auto_generate', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('bank_account_id', sa.Integer(), sa.ForeignKey('bankaccount.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id'), nullable=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contact.id'), nullable=True),
        sa.Column('payment_method', sa.String(length=40), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("type != 'TRANSFER'", name='ck_contract_not_transfer'),
        sa.CheckConstraint('amount > 0', name='ck_contract_amount_positive'),
        sa.CheckConstraint(
            'total_installments IS NULL OR total_installments > 0',
            name='ck_contract_installments_positive',
        ),
    )
    op.create_index('ix_contract_company_active', 'contract', ['company_id', 'is_active'])

    op.create_table(
        'transaction',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('company.id'), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('amount', sa.Numeric(18, 4), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('status', txn_status, nullable=False, server_default='PENDING'),
        sa.Column('contract_id', sa.Integer(), sa.ForeignKey('contract.id', ondelete='SET NULL'), nullable=True),
        sa.Column('bank_account_id', sa.Integer(), sa.ForeignKey('bankaccount.id'), nullable=True),
        sa.Column('account_from_id', sa.Integer(), sa.ForeignKey('bankaccount.id'), nullable=True),
        sa.Column('account_to_id', sa.Integer(), sa.ForeignKey('bankaccount.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id'), nullable=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contact.id'), nullable=True),
        sa.Column('payment_method', sa.String(length=40), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(type = 'TRANSFER' AND account_from_id IS NOT NULL AND account_to_id IS NOT NULL)"
            " OR (type = 'EXPENSE' AND account_to_id IS NULL)"
            " OR (type = 'REVENUE' AND account_from_id IS NULL)",
            name='ck_txn_account_rules',
        ),
        sa.CheckConstraint('amount >= 0', name='ck_txn_amount_not_negative'),
    )
    op.create_index('ix_txn_company_status_due', 'transaction', ['company_id', 'status', 'due_date'])
    # one live row per (contract, due date); cancelled rows do not block a replacement
    op.create_index(
        'uq_txn_contract_due_date',
        'transaction',
        ['contract_id', 'due_date'],
        unique=True,
        sqlite_where=sa.text("status != 'CANCELLED'"),
        postgresql_where=sa.text("status != 'CANCELLED'"),
    )


def downgrade() -> None:
    op.drop_index('uq_txn_contract_due_date', table_name='transaction')
    op.drop_index('ix_txn_company_status_due', table_name='transaction')
    op.drop_table('transaction')
    op.drop_index('ix_contract_company_active', table_name='contract')
    op.drop_table('contract')
    op.drop_table('contact')
    op.drop_table('category')
    op.drop_table('bankaccount')
    op.drop_table('company')
