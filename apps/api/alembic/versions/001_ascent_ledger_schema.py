"""ascent ledger schema: users, crisis protocols, recovery check-ins, fog checks, token ledger

Revision ID: 001
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'app_user',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False, unique=True),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('operating_mode', sa.Text(), nullable=False, server_default='ASCENT'),
        sa.Column('recovery_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('token_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_tokens_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('life_lines', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_log_date', sa.Date(), nullable=True),
        sa.CheckConstraint("operating_mode IN ('ASCENT', 'RECOVERY')", name='ck_app_user_operating_mode'),
    )

    op.create_table(
        'crisis_protocol',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('crisis_type', sa.Text(), nullable=False),
        sa.Column('burden_to_cut', sa.Text(), nullable=False),
        sa.Column('oxygen_source', sa.Text(), nullable=False),
        sa.Column('is_burden_cut', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_oxygen_scheduled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('oxygen_level_start', sa.Integer(), nullable=True),
        sa.Column('oxygen_level_current', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "crisis_type IN ('TOXIC_ENV', 'BURNOUT', 'FINANCIAL', 'IMPOSTER')",
            name='ck_crisis_protocol_crisis_type',
        ),
        sa.CheckConstraint(
            'oxygen_level_current IS NULL OR (oxygen_level_current BETWEEN 1 AND 10)',
            name='ck_crisis_protocol_oxygen_current_range',
        ),
        sa.CheckConstraint(
            'oxygen_level_start IS NULL OR (oxygen_level_start BETWEEN 1 AND 10)',
            name='ck_crisis_protocol_oxygen_start_range',
        ),
    )
    op.create_index('ix_crisis_protocol_user_id', 'crisis_protocol', ['user_id'])
    # At most one active protocol per user
    op.create_index(
        'uq_crisis_protocol_one_active_per_user',
        'crisis_protocol',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('completed_at IS NULL'),
        sqlite_where=sa.text('completed_at IS NULL'),
    )

    op.create_table(
        'recovery_checkin',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('protocol_id', sa.Uuid(as_uuid=True), sa.ForeignKey('crisis_protocol.id'), nullable=False),
        sa.Column('week_of', sa.Date(), nullable=False),
        sa.Column('protocol_completed', sa.Boolean(), nullable=True),
        sa.Column('oxygen_connected', sa.Boolean(), nullable=True),
        sa.Column('oxygen_level_current', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'protocol_id', 'week_of', name='uq_recovery_checkin_user_protocol_week'),
        sa.CheckConstraint(
            'oxygen_level_current IS NULL OR (oxygen_level_current BETWEEN 1 AND 10)',
            name='ck_recovery_checkin_oxygen_range',
        ),
    )
    op.create_index('ix_recovery_checkin_user_id', 'recovery_checkin', ['user_id'])
    op.create_index('ix_recovery_checkin_protocol_id', 'recovery_checkin', ['protocol_id'])

    op.create_table(
        'fog_check',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('protocol_id', sa.Uuid(as_uuid=True), sa.ForeignKey('crisis_protocol.id'), nullable=True),
        sa.Column('observation', sa.Text(), nullable=False),
        sa.Column('strategic_question', sa.Text(), nullable=False),
        sa.Column('fog_check_type', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_fog_check_user_id', 'fog_check', ['user_id'])
    op.create_index('ix_fog_check_user_type_created', 'fog_check', ['user_id', 'fog_check_type', 'created_at'])

    op.create_table(
        'token_transaction',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('related_entity_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_token_transaction_user_id', 'token_transaction', ['user_id'])
    op.create_index('ix_token_transaction_user_created', 'token_transaction', ['user_id', 'created_at'])
    op.create_index('ix_token_transaction_user_entity', 'token_transaction', ['user_id', 'related_entity_id'])


def downgrade() -> None:
    op.drop_table('token_transaction')
    op.drop_table('fog_check')
    op.drop_table('recovery_checkin')
    op.drop_index('uq_crisis_protocol_one_active_per_user', table_name='crisis_protocol')
    op.drop_table('crisis_protocol')
    op.drop_table('app_user')
