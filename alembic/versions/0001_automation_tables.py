"""Add automation, resume and discovered job tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _catalog_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('label', sa.String(length=500), nullable=False),
        sa.Column('value', sa.String(length=500), nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(f'ix_{name}_value', name, ['value'], unique=False)
    op.create_index(f'ix_{name}_created_by', name, ['created_by'], unique=False)


def upgrade() -> None:
    op.create_table(
        'resumes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False, default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_resumes_user_id', 'resumes', ['user_id'], unique=False)

    op.create_table(
        'automations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('job_board', sa.String(length=50), nullable=False, default='jsearch'),
        sa.Column('keywords', sa.String(length=500), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False, default=''),
        sa.Column('resume_id', sa.Integer(), nullable=True),
        sa.Column('match_threshold', sa.Integer(), nullable=False, default=80),
        sa.Column('schedule_hour', sa.Integer(), nullable=False, default=8),
        sa.Column('status', sa.String(length=20), nullable=False, default='active'),
        sa.Column('next_run_at', sa.DateTime(), nullable=True),
        sa.Column('last_run_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_automations_user_id', 'automations', ['user_id'], unique=False)
    op.create_index('ix_automations_status', 'automations', ['status'], unique=False)
    op.create_index('ix_automations_next_run_at', 'automations', ['next_run_at'], unique=False)

    op.create_table(
        'automation_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('automation_id', sa.Integer(), nullable=False),
        sa.Column('jobs_searched', sa.Integer(), nullable=False, default=0),
        sa.Column('jobs_deduplicated', sa.Integer(), nullable=False, default=0),
        sa.Column('jobs_processed', sa.Integer(), nullable=False, default=0),
        sa.Column('jobs_matched', sa.Integer(), nullable=False, default=0),
        sa.Column('jobs_saved', sa.Integer(), nullable=False, default=0),
        sa.Column('status', sa.String(length=30), nullable=False, default='running'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('blocked_reason', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['automation_id'], ['automations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_automation_runs_automation_id', 'automation_runs', ['automation_id'], unique=False)

    for name in ('job_titles', 'companies', 'locations'):
        _catalog_table(name)

    op.create_table(
        'discovered_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('automation_id', sa.Integer(), nullable=True),
        sa.Column('job_title_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('job_type', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=False, default=''),
        sa.Column('job_url', sa.String(length=2048), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('source_board', sa.String(length=50), nullable=True),
        sa.Column('salary', sa.String(length=255), nullable=True),
        sa.Column('match_score', sa.Integer(), nullable=False),
        sa.Column('match_data', sa.JSON(), nullable=True),
        sa.Column('discovery_status', sa.String(length=20), nullable=False, default='new'),
        sa.Column('discovered_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['automation_id'], ['automations.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['job_title_id'], ['job_titles.id']),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_discovered_jobs_user_id', 'discovered_jobs', ['user_id'], unique=False)
    op.create_index('ix_discovered_jobs_job_url', 'discovered_jobs', ['job_url'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_discovered_jobs_job_url', table_name='discovered_jobs')
    op.drop_index('ix_discovered_jobs_user_id', table_name='discovered_jobs')
    op.drop_table('discovered_jobs')
    for name in ('locations', 'companies', 'job_titles'):
        op.drop_index(f'ix_{name}_created_by', table_name=name)
        op.drop_index(f'ix_{name}_value', table_name=name)
        op.drop_table(name)
    op.drop_index('ix_automation_runs_automation_id', table_name='automation_runs')
    op.drop_table('automation_runs')
    op.drop_index('ix_automations_next_run_at', table_name='automations')
    op.drop_index('ix_automations_status', table_name='automations')
    op.drop_index('ix_automations_user_id', table_name='automations')
    op.drop_table('automations')
    op.drop_index('ix_resumes_user_id', table_name='resumes')
    op.drop_table('resumes')
