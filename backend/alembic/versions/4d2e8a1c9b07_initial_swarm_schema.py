"""initial swarm schema: missions, tasks, agents, findings, activity_log

Revision ID: 4d2e8a1c9b07
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4d2e8a1c9b07'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'missions',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('phase', sa.String(length=20), nullable=False),
        sa.Column('total_tasks', sa.Integer(), nullable=False),
        sa.Column('completed_tasks', sa.Integer(), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_missions_phase'), 'missions', ['phase'], unique=False)
    op.create_index(op.f('ix_missions_started_at'), 'missions', ['started_at'], unique=False)

    op.create_table(
        'tasks',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('mission_id', sa.String(length=64), nullable=False),
        sa.Column('division_id', sa.String(length=128), nullable=False),
        sa.Column('division_name', sa.String(length=255), nullable=False),
        sa.Column('queue_id', sa.String(length=128), nullable=False),
        sa.Column('queue_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('search_terms', sa.JSON(), nullable=False),
        sa.Column('databases', sa.JSON(), nullable=False),
        sa.Column('depth', sa.String(length=32), nullable=False),
        sa.Column('topic', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('assigned_to', sa.String(length=64), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['mission_id'], ['missions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tasks_mission_id'), 'tasks', ['mission_id'], unique=False)
    op.create_index(op.f('ix_tasks_queue_id'), 'tasks', ['queue_id'], unique=False)
    op.create_index(op.f('ix_tasks_status'), 'tasks', ['status'], unique=False)
    op.create_index(op.f('ix_tasks_assigned_to'), 'tasks', ['assigned_to'], unique=False)

    op.create_table(
        'agents',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('current_task_id', sa.String(length=128), nullable=True),
        sa.Column('division_id', sa.String(length=128), nullable=True),
        sa.Column('queue_id', sa.String(length=128), nullable=True),
        sa.Column('mission_id', sa.String(length=64), nullable=True),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_heartbeat', sa.DateTime(timezone=True), nullable=False),
        sa.Column('disconnected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tasks_completed', sa.Integer(), nullable=False),
        sa.Column('papers_analyzed', sa.Integer(), nullable=False),
        sa.Column('quality_score', sa.Float(), nullable=False),
        sa.Column('qc_passes', sa.Integer(), nullable=False),
        sa.Column('qc_fails', sa.Integer(), nullable=False),
        sa.Column('flagged', sa.Boolean(), nullable=False),
        sa.Column('max_tasks', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_agents_status'), 'agents', ['status'], unique=False)
    op.create_index(op.f('ix_agents_queue_id'), 'agents', ['queue_id'], unique=False)
    op.create_index(op.f('ix_agents_mission_id'), 'agents', ['mission_id'], unique=False)
    op.create_index(op.f('ix_agents_last_heartbeat'), 'agents', ['last_heartbeat'], unique=False)

    op.create_table(
        'findings',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('agent_id', sa.String(length=64), nullable=True),
        sa.Column('task_id', sa.String(length=128), nullable=True),
        sa.Column('mission_id', sa.String(length=64), nullable=False),
        sa.Column('division_id', sa.String(length=128), nullable=True),
        sa.Column('queue_id', sa.String(length=128), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('citations', sa.JSON(), nullable=False),
        sa.Column('confidence', sa.String(length=10), nullable=False),
        sa.Column('contradictions', sa.JSON(), nullable=False),
        sa.Column('gaps', sa.JSON(), nullable=False),
        sa.Column('papers_analyzed', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('qc_status', sa.String(length=20), nullable=False),
        sa.Column('qc_notes', sa.Text(), nullable=True),
        sa.Column('qc_agent_id', sa.String(length=64), nullable=True),
        sa.Column('qc_cycle', sa.Integer(), nullable=False),
        sa.Column('qc_reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_findings_agent_id'), 'findings', ['agent_id'], unique=False)
    op.create_index(op.f('ix_findings_mission_id'), 'findings', ['mission_id'], unique=False)
    op.create_index(op.f('ix_findings_division_id'), 'findings', ['division_id'], unique=False)
    op.create_index(op.f('ix_findings_qc_status'), 'findings', ['qc_status'], unique=False)

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('mission_id', sa.String(length=64), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_activity_log_mission_id'), 'activity_log', ['mission_id'], unique=False)
    op.create_index(op.f('ix_activity_log_created_at'), 'activity_log', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_activity_log_created_at'), table_name='activity_log')
    op.drop_index(op.f('ix_activity_log_mission_id'), table_name='activity_log')
    op.drop_table('activity_log')
    op.drop_index(op.f('ix_findings_qc_status'), table_name='findings')
    op.drop_index(op.f('ix_findings_division_id'), table_name='findings')
    op.drop_index(op.f('ix_findings_mission_id'), table_name='findings')
    op.drop_index(op.f('ix_findings_agent_id'), table_name='findings')
    op.drop_table('findings')
    op.drop_index(op.f('ix_agents_last_heartbeat'), table_name='agents')
    op.drop_index(op.f('ix_agents_mission_id'), table_name='agents')
    op.drop_index(op.f('ix_agents_queue_id'), table_name='agents')
    op.drop_index(op.f('ix_agents_status'), table_name='agents')
    op.drop_table('agents')
    op.drop_index(op.f('ix_tasks_assigned_to'), table_name='tasks')
    op.drop_index(op.f('ix_tasks_status'), table_name='tasks')
    op.drop_index(op.f('ix_tasks_queue_id'), table_name='tasks')
    op.drop_index(op.f('ix_tasks_mission_id'), table_name='tasks')
    op.drop_table('tasks')
    op.drop_index(op.f('ix_missions_started_at'), table_name='missions')
    op.drop_index(op.f('ix_missions_phase'), table_name='missions')
    op.drop_table('missions')
