"""Create recruiting workflow tables

Revision ID: 001_recruiting_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_recruiting_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, cycles, candidates, applications and the two ledgers."""
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='MEMBER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'recruiting_cycles',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('form_url', sa.String(length=1000), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('round_config', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_cycle_active', 'recruiting_cycles', ['is_active'])

    op.create_table(
        'candidates',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('student_id', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', name='uq_candidates_student_id'),
        sa.UniqueConstraint('email', name='uq_candidates_email'),
    )

    op.create_table(
        'applications',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('cycle_id', sa.BigInteger(), nullable=False),
        sa.Column('current_round', sa.String(length=50), nullable=False, server_default='RESUME_REVIEW'),
        sa.Column('outcome', sa.String(length=50), nullable=False, server_default='PENDING'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['cycle_id'], ['recruiting_cycles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'cycle_id', name='uq_application_candidate_cycle'),
    )
    op.create_index('idx_application_cycle_round', 'applications', ['cycle_id', 'current_round', 'outcome'])

    op.create_table(
        'decisions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('round', sa.String(length=50), nullable=False),
        sa.Column('reviewer_id', sa.BigInteger(), nullable=False),
        sa.Column('verdict', sa.String(length=50), nullable=False),
        sa.Column('is_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['reviewer_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_decision_application_round', 'decisions', ['application_id', 'round', 'id'])

    op.create_table(
        'transition_records',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('from_round', sa.String(length=50), nullable=False),
        sa.Column('to_round', sa.String(length=50), nullable=False),
        sa.Column('outcome', sa.String(length=50), nullable=False),
        sa.Column('verdict', sa.String(length=50), nullable=True),
        sa.Column('batch_id', sa.String(length=64), nullable=False),
        sa.Column('decision_ids', sa.JSON(), nullable=False),
        sa.Column('last_decision_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transition_records_batch_id', 'transition_records', ['batch_id'])
    op.create_index('idx_transition_application_round', 'transition_records', ['application_id', 'from_round', 'id'])

    op.create_table(
        'notification_deliveries',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.BigInteger(), nullable=False),
        sa.Column('transition_id', sa.BigInteger(), nullable=True),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['transition_id'], ['transition_records.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_delivery_status', 'notification_deliveries', ['status'])
    op.create_index('idx_delivery_application', 'notification_deliveries', ['application_id'])


def downgrade() -> None:
    """Drop recruiting workflow tables."""
    op.drop_table('notification_deliveries')
    op.drop_table('transition_records')
    op.drop_table('decisions')
    op.drop_table('applications')
    op.drop_table('candidates')
    op.drop_table('recruiting_cycles')
    op.drop_table('users')
