"""create mission portal tables

Revision ID: 20260301_0900
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20260301_0900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
    ]


def upgrade() -> None:
    # Organizations
    op.create_table(
        'orgs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orgs_id', 'orgs', ['id'])

    # Missions; cost is generated by the database
    op.create_table(
        'missions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False, server_default='Untitled Mission'),
        sa.Column('store', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Scheduled'),
        sa.Column('starts_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('location', postgresql.JSONB(), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('fee', sa.Float(), nullable=True),
        sa.Column('cost', sa.Float(), sa.Computed('coalesce(budget, 0) + coalesce(fee, 0)', persisted=True)),
        sa.Column('requires_video', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_photos', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('time_on_site_min', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('template_id', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_missions_id', 'missions', ['id'])
    op.create_index('ix_missions_org_id', 'missions', ['org_id'])

    # Checklist items, replaced as a whole on every save
    op.create_table(
        'mission_checklist_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mission_id', sa.Integer(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('answer_type', sa.String(length=20), nullable=False, server_default='text'),
        sa.Column('yes_no', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_photo', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_video', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_comment', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_timer', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mission_id'], ['missions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mission_checklist_items_id', 'mission_checklist_items', ['id'])
    op.create_index('ix_mission_checklist_items_mission_id', 'mission_checklist_items', ['mission_id'])

    # Submissions
    op.create_table(
        'mission_submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('mission_id', sa.Integer(), nullable=False),
        sa.Column('agent_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='submitted'),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('meta_json', postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['mission_id'], ['missions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mission_submissions_id', 'mission_submissions', ['id'])
    op.create_index('ix_mission_submissions_org_id', 'mission_submissions', ['org_id'])
    op.create_index('ix_mission_submissions_mission_id', 'mission_submissions', ['mission_id'])

    # Inline answers
    op.create_table(
        'mission_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('value_yn', sa.Boolean(), nullable=True),
        sa.Column('value_text', sa.Text(), nullable=True),
        sa.Column('value_number', sa.Float(), nullable=True),
        sa.Column('value_duration_ms', sa.BigInteger(), nullable=True),
        sa.Column('media_path', sa.String(length=1000), nullable=True),
        sa.Column('media_type', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['submission_id'], ['mission_submissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mission_answers_id', 'mission_answers', ['id'])
    op.create_index('ix_mission_answers_submission_id', 'mission_answers', ['submission_id'])

    # Uploaded media
    op.create_table(
        'mission_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=True),
        sa.Column('mission_id', sa.Integer(), nullable=True),
        sa.Column('path', sa.String(length=1000), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mission_attachments_id', 'mission_attachments', ['id'])
    op.create_index('ix_mission_attachments_mission_id', 'mission_attachments', ['mission_id'])

    # Attachment-referencing answers
    op.create_table(
        'mission_submission_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('mission_id', sa.Integer(), nullable=True),
        sa.Column('checklist_item_id', sa.Integer(), nullable=True),
        sa.Column('answer_type', sa.String(length=20), nullable=True),
        sa.Column('yes_no', sa.Boolean(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('timer_seconds', sa.Integer(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('photo_attachment_id', sa.Integer(), nullable=True),
        sa.Column('order_photo_attachment_id', sa.Integer(), nullable=True),
        sa.Column('video_attachment_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['submission_id'], ['mission_submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['photo_attachment_id'], ['mission_attachments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['order_photo_attachment_id'], ['mission_attachments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['video_attachment_id'], ['mission_attachments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_mission_submission_items_id', 'mission_submission_items', ['id'])
    op.create_index('ix_mission_submission_items_submission_id', 'mission_submission_items', ['submission_id'])

    # Reports: one row per (org, mission, type)
    op.create_table(
        'reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('mission_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='mission'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Generating'),
        sa.Column('generated_at', sa.DateTime(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=True),
        sa.Column('pdf_url', sa.Text(), nullable=True),
        sa.Column('kpis', postgresql.JSONB(), nullable=True),
        sa.Column('meta', postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'mission_id', 'type', name='uq_reports_org_mission_type')
    )
    op.create_index('ix_reports_id', 'reports', ['id'])
    op.create_index('ix_reports_org_id', 'reports', ['org_id'])
    op.create_index('ix_reports_mission_id', 'reports', ['mission_id'])


def downgrade() -> None:
    op.drop_table('reports')
    op.drop_table('mission_submission_items')
    op.drop_table('mission_attachments')
    op.drop_table('mission_answers')
    op.drop_table('mission_submissions')
    op.drop_table('mission_checklist_items')
    op.drop_table('missions')
    op.drop_table('orgs')
