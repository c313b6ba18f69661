"""create_schedule_tables

Revision ID: 20261018_create_schedule
Revises:
Create Date: 2026-10-18 09:12:41.305118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_create_schedule'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create projects and the tables owned by a schedule import."""
    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='1'),
        sa.Column('current_schedule_import_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_projects_uuid', 'projects', ['uuid'], unique=True)
    op.create_index('ix_projects_code', 'projects', ['code'], unique=True)
    op.create_index('ix_projects_is_active', 'projects', ['is_active'])

    op.create_table(
        'schedule_imports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('xer_project_id', sa.String(50), nullable=True),
        sa.Column('xer_project_name', sa.String(200), nullable=True),
        sa.Column('data_date', sa.Date(), nullable=True),
        sa.Column('project_start', sa.Date(), nullable=True),
        sa.Column('project_finish', sa.Date(), nullable=True),
        sa.Column('overall_progress', sa.Float(), server_default='0.0'),
        sa.Column('activities_count', sa.Integer(), server_default='0'),
        sa.Column('relationships_count', sa.Integer(), server_default='0'),
        sa.Column('wbs_count', sa.Integer(), server_default='0'),
        sa.Column('critical_path', sa.JSON(), nullable=True),
        sa.Column('warnings', sa.JSON(), nullable=True),
        sa.Column('imported_at', sa.DateTime(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_schedule_imports_uuid', 'schedule_imports', ['uuid'], unique=True)
    op.create_index('ix_schedule_imports_project_id', 'schedule_imports', ['project_id'])

    with op.batch_alter_table('projects') as batch_op:
        batch_op.create_foreign_key(
            'fk_projects_current_schedule_import',
            'schedule_imports',
            ['current_schedule_import_id'],
            ['id'],
            ondelete='SET NULL',
        )

    op.create_table(
        'schedule_wbs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('import_id', sa.Integer(), sa.ForeignKey('schedule_imports.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('wbs_id', sa.String(50), nullable=False),
        sa.Column('parent_wbs_id', sa.String(50), nullable=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('short_name', sa.String(100), nullable=True),
        sa.Column('sequence_number', sa.Integer(), server_default='0'),
        sa.Column('depth', sa.Integer(), server_default='0'),
        sa.Column('percent_complete', sa.Float(), server_default='0.0'),
        sa.Column('weight', sa.Float(), server_default='0.0'),
        sa.Column('activity_count', sa.Integer(), server_default='0'),
        sa.Column('has_activities', sa.Boolean(), server_default='0'),
        sa.UniqueConstraint('import_id', 'wbs_id', name='uq_schedule_wbs_import_wbs'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_schedule_wbs_import_id', 'schedule_wbs', ['import_id'])
    op.create_index('ix_schedule_wbs_project_id', 'schedule_wbs', ['project_id'])

    op.create_table(
        'schedule_activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('import_id', sa.Integer(), sa.ForeignKey('schedule_imports.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('activity_id', sa.String(50), nullable=False),
        sa.Column('activity_code', sa.String(100), nullable=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('wbs_id', sa.String(50), nullable=True),
        sa.Column('calendar_id', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='NotStarted'),
        sa.Column('activity_type', sa.String(30), nullable=True),
        sa.Column('percent_complete', sa.Float(), server_default='0.0'),
        sa.Column('duration_days', sa.Integer(), server_default='0'),
        sa.Column('planned_start', sa.Date(), nullable=True),
        sa.Column('planned_finish', sa.Date(), nullable=True),
        sa.Column('actual_start', sa.Date(), nullable=True),
        sa.Column('actual_finish', sa.Date(), nullable=True),
        sa.Column('constraint_type', sa.String(20), nullable=True),
        sa.Column('constraint_date', sa.Date(), nullable=True),
        sa.Column('early_start', sa.Date(), nullable=True),
        sa.Column('early_finish', sa.Date(), nullable=True),
        sa.Column('late_start', sa.Date(), nullable=True),
        sa.Column('late_finish', sa.Date(), nullable=True),
        sa.Column('total_float', sa.Integer(), nullable=True),
        sa.Column('free_float', sa.Integer(), nullable=True),
        sa.Column('is_critical', sa.Boolean(), server_default='0'),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
        sa.UniqueConstraint('import_id', 'activity_id', name='uq_schedule_activity_import_activity'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_schedule_activities_import_id', 'schedule_activities', ['import_id'])
    op.create_index('ix_schedule_activities_project_id', 'schedule_activities', ['project_id'])
    op.create_index('ix_schedule_activities_wbs_id', 'schedule_activities', ['wbs_id'])
    op.create_index('ix_schedule_activities_is_critical', 'schedule_activities', ['is_critical'])

    op.create_table(
        'schedule_relationships',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('import_id', sa.Integer(), sa.ForeignKey('schedule_imports.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('predecessor_activity_id', sa.String(50), nullable=False),
        sa.Column('successor_activity_id', sa.String(50), nullable=False),
        sa.Column('relationship_type', sa.String(20), nullable=False),
        sa.Column('lag_days', sa.Integer(), server_default='0'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_schedule_relationships_import_id', 'schedule_relationships', ['import_id'])
    op.create_index('ix_schedule_relationships_project_id', 'schedule_relationships', ['project_id'])


def downgrade() -> None:
    """Drop schedule tables and projects."""
    op.drop_table('schedule_relationships')
    op.drop_table('schedule_activities')
    op.drop_table('schedule_wbs')
    with op.batch_alter_table('projects') as batch_op:
        batch_op.drop_constraint('fk_projects_current_schedule_import', type_='foreignkey')
    op.drop_table('schedule_imports')
    op.drop_table('projects')
