"""add calendar provider accounts

Revision ID: a1c4e9f27d3b
Revises:
Create Date: 2026-10-19 10:12:41.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c4e9f27d3b'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        'calendar_provider_accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('account_email', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('access_token_encrypted', sa.LargeBinary(), nullable=False),
        sa.Column('refresh_token_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('provider_config', postgresql.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True)
    )

    op.create_index('ix_calendar_provider_accounts_tenant_id', 'calendar_provider_accounts', ['tenant_id'])

    # One active account per tenant and provider, deactivated rows are kept
    op.create_index(
        'uq_calendar_provider_accounts_active',
        'calendar_provider_accounts',
        ['tenant_id', 'provider'],
        unique=True,
        postgresql_where=sa.text('is_active')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_calendar_provider_accounts_active', table_name='calendar_provider_accounts')
    op.drop_index('ix_calendar_provider_accounts_tenant_id', table_name='calendar_provider_accounts')
    op.drop_table('calendar_provider_accounts')
