"""initial coaching schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum('ADMIN', 'TRAINER', 'CLIENT', name='role', native_enum=False)
INVITATION_STATUS = sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', name='invitationstatus', native_enum=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', ROLE, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('tier', sa.String(), nullable=True),
        sa.Column('registration_type', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('token_hash', sa.String(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_refresh_tokens_expires_at'), 'refresh_tokens', ['expires_at'], unique=False)
    op.create_index(op.f('ix_refresh_tokens_jti'), 'refresh_tokens', ['jti'], unique=True)
    op.create_index(op.f('ix_refresh_tokens_user_id'), 'refresh_tokens', ['user_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_id', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('trainer_id', sa.Uuid(), nullable=True),
        sa.Column('current_trainer_id', sa.Uuid(), nullable=True),
        sa.Column('current_theme_primary_color', sa.String(), nullable=True),
        sa.Column('current_theme_secondary_color', sa.String(), nullable=True),
        sa.Column('current_theme_accent_color', sa.String(), nullable=True),
        sa.Column('current_theme_logo_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['current_trainer_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_clients_email'), 'clients', ['email'], unique=True)
    op.create_index(op.f('ix_clients_user_id'), 'clients', ['user_id'], unique=False)
    op.create_index(op.f('ix_clients_trainer_id'), 'clients', ['trainer_id'], unique=False)

    op.create_table(
        'client_trainer_relationships',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('trainer_id', sa.Uuid(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'trainer_id', name='uq_client_trainer')
    )
    op.create_index(op.f('ix_client_trainer_relationships_client_id'), 'client_trainer_relationships', ['client_id'], unique=False)
    op.create_index(op.f('ix_client_trainer_relationships_trainer_id'), 'client_trainer_relationships', ['trainer_id'], unique=False)

    op.create_table(
        'client_invitations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('trainer_id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('status', INVITATION_STATUS, nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', 'trainer_id', name='uq_invitation_email_trainer')
    )
    op.create_index(op.f('ix_client_invitations_email'), 'client_invitations', ['email'], unique=False)
    op.create_index(op.f('ix_client_invitations_token'), 'client_invitations', ['token'], unique=True)
    op.create_index(op.f('ix_client_invitations_trainer_id'), 'client_invitations', ['trainer_id'], unique=False)

    op.create_table(
        'trainer_brands',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('trainer_id', sa.Uuid(), nullable=False),
        sa.Column('logo_url', sa.String(), nullable=True),
        sa.Column('primary_color', sa.String(), nullable=True),
        sa.Column('secondary_color', sa.String(), nullable=True),
        sa.Column('accent_color', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trainer_id')
    )

    op.create_table(
        'exercises',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('levels', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'plans',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('month', sa.String(), nullable=True),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('trainer_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plans_client_id'), 'plans', ['client_id'], unique=False)
    op.create_index(op.f('ix_plans_trainer_id'), 'plans', ['trainer_id'], unique=False)

    op.create_table(
        'sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('plan_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sessions_plan_id'), 'sessions', ['plan_id'], unique=False)
    op.create_index(op.f('ix_sessions_client_id'), 'sessions', ['client_id'], unique=False)

    op.create_table(
        'series',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_series_session_id'), 'series', ['session_id'], unique=False)
    op.create_index(op.f('ix_series_client_id'), 'series', ['client_id'], unique=False)

    op.create_table(
        'plan_exercises',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('plan_id', sa.Uuid(), nullable=False),
        sa.Column('series_id', sa.Uuid(), nullable=False),
        sa.Column('exercise_id', sa.Uuid(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['series_id'], ['series.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['exercise_id'], ['exercises.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plan_exercises_plan_id'), 'plan_exercises', ['plan_id'], unique=False)
    op.create_index(op.f('ix_plan_exercises_series_id'), 'plan_exercises', ['series_id'], unique=False)
    op.create_index(op.f('ix_plan_exercises_exercise_id'), 'plan_exercises', ['exercise_id'], unique=False)

    op.create_table(
        'evaluations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('plan_exercise_id', sa.Uuid(), nullable=False),
        sa.Column('time_rating', sa.Integer(), nullable=True),
        sa.Column('weight_rating', sa.Integer(), nullable=True),
        sa.Column('repetitions_rating', sa.Integer(), nullable=True),
        sa.Column('exercise_rating', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['plan_exercise_id'], ['plan_exercises.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_evaluations_plan_exercise_id'), 'evaluations', ['plan_exercise_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_evaluations_plan_exercise_id'), table_name='evaluations')
    op.drop_table('evaluations')
    op.drop_index(op.f('ix_plan_exercises_exercise_id'), table_name='plan_exercises')
    op.drop_index(op.f('ix_plan_exercises_series_id'), table_name='plan_exercises')
    op.drop_index(op.f('ix_plan_exercises_plan_id'), table_name='plan_exercises')
    op.drop_table('plan_exercises')
    op.drop_index(op.f('ix_series_client_id'), table_name='series')
    op.drop_index(op.f('ix_series_session_id'), table_name='series')
    op.drop_table('series')
    op.drop_index(op.f('ix_sessions_client_id'), table_name='sessions')
    op.drop_index(op.f('ix_sessions_plan_id'), table_name='sessions')
    op.drop_table('sessions')
    op.drop_index(op.f('ix_plans_trainer_id'), table_name='plans')
    op.drop_index(op.f('ix_plans_client_id'), table_name='plans')
    op.drop_table('plans')
    op.drop_table('exercises')
    op.drop_table('trainer_brands')
    op.drop_index(op.f('ix_client_invitations_trainer_id'), table_name='client_invitations')
    op.drop_index(op.f('ix_client_invitations_token'), table_name='client_invitations')
    op.drop_index(op.f('ix_client_invitations_email'), table_name='client_invitations')
    op.drop_table('client_invitations')
    op.drop_index(op.f('ix_client_trainer_relationships_trainer_id'), table_name='client_trainer_relationships')
    op.drop_index(op.f('ix_client_trainer_relationships_client_id'), table_name='client_trainer_relationships')
    op.drop_table('client_trainer_relationships')
    op.drop_index(op.f('ix_clients_trainer_id'), table_name='clients')
    op.drop_index(op.f('ix_clients_user_id'), table_name='clients')
    op.drop_index(op.f('ix_clients_email'), table_name='clients')
    op.drop_table('clients')
    op.drop_table('audit_logs')
    op.drop_index(op.f('ix_refresh_tokens_user_id'), table_name='refresh_tokens')
    op.drop_index(op.f('ix_refresh_tokens_jti'), table_name='refresh_tokens')
    op.drop_index(op.f('ix_refresh_tokens_expires_at'), table_name='refresh_tokens')
    op.drop_table('refresh_tokens')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
