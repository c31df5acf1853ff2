"""Shared case store schema

Revision ID: 001_case_store
Revises:
Create Date: 2024-10-01 00:00:00.000000

Case-owned tables cascade on case deletion. Evidence tables are keyed on
(case_id, id) since upstream evidence ids repeat across cases.
evidence_media.url is Text so long object-store URLs and small inline data
URLs fit.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_case_store'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _case_fk(primary_key: bool = False) -> sa.Column:
    return sa.Column(
        'case_id',
        sa.String(length=100),
        sa.ForeignKey('cases.id', ondelete='CASCADE'),
        nullable=False,
        primary_key=primary_key,
    )


def _ts(nullable: bool = False) -> sa.Column:
    return sa.Column('timestamp', sa.DateTime(timezone=True), nullable=nullable)


CASE_TABLES = (
    'evidence_calls',
    'evidence_messages',
    'evidence_locations',
    'evidence_media',
    'team_messages',
    'activity_logs',
    'ai_insights',
    'ai_chat_logs',
)

# Keyed on (case_id, id); the primary key already indexes case_id
EVIDENCE_TABLES = (
    'evidence_calls',
    'evidence_messages',
    'evidence_locations',
    'evidence_media',
)


def upgrade() -> None:
    """Create case, evidence, collaboration and AI archive tables."""
    op.create_table(
        'cases',
        sa.Column('id', sa.String(length=100), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('device', sa.String(length=255), nullable=True),
        sa.Column('owner', sa.String(length=255), nullable=True),
        sa.Column('extraction_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_cases_extraction_date', 'cases', ['extraction_date'])

    op.create_table(
        'evidence_calls',
        _case_fk(primary_key=True),
        sa.Column('id', sa.String(length=255), primary_key=True),
        _ts(),
        sa.Column('from_party', sa.String(length=100), nullable=False),
        sa.Column('to_party', sa.String(length=100), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
    )

    op.create_table(
        'evidence_messages',
        _case_fk(primary_key=True),
        sa.Column('id', sa.String(length=255), primary_key=True),
        _ts(),
        sa.Column('from_party', sa.String(length=100), nullable=False),
        sa.Column('to_party', sa.String(length=100), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('app', sa.String(length=20), nullable=False),
    )

    op.create_table(
        'evidence_locations',
        _case_fk(primary_key=True),
        sa.Column('id', sa.String(length=255), primary_key=True),
        _ts(),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=True),
    )

    op.create_table(
        'evidence_media',
        _case_fk(primary_key=True),
        sa.Column('id', sa.String(length=255), primary_key=True),
        _ts(nullable=True),
        sa.Column('type', sa.String(length=20), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('comments', sa.JSON(), nullable=True),
    )

    op.create_table(
        'team_messages',
        sa.Column('id', sa.String(length=100), primary_key=True),
        _case_fk(),
        sa.Column('sender_id', sa.String(length=100), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        _ts(),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
    )

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.String(length=100), primary_key=True),
        _case_fk(),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('target', sa.String(length=255), nullable=True),
        _ts(),
        sa.Column('type', sa.String(length=20), nullable=False),
    )

    op.create_table(
        'officers',
        sa.Column('id', sa.String(length=100), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('avatar', sa.Text(), nullable=True),
        sa.Column('online', sa.Boolean(), nullable=False),
    )

    op.create_table(
        'ai_insights',
        sa.Column('id', sa.String(length=100), primary_key=True),
        _case_fk(),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('generated_by', sa.String(length=100), nullable=True),
        _ts(),
    )

    op.create_table(
        'ai_chat_logs',
        sa.Column('id', sa.String(length=100), primary_key=True),
        _case_fk(),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        _ts(),
    )

    for table in CASE_TABLES:
        if table not in EVIDENCE_TABLES:
            op.create_index(f'ix_{table}_case_id', table, ['case_id'])
        op.create_index(f'ix_{table}_timestamp', table, ['timestamp'])


def downgrade() -> None:
    """Drop every table, dependents first."""
    for table in reversed(CASE_TABLES):
        op.drop_index(f'ix_{table}_timestamp', table_name=table)
        if table not in EVIDENCE_TABLES:
            op.drop_index(f'ix_{table}_case_id', table_name=table)
        op.drop_table(table)
    op.drop_table('officers')
    op.drop_index('ix_cases_extraction_date', table_name='cases')
    op.drop_table('cases')
