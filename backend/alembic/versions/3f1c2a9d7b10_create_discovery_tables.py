"""create discovery tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create engagements, stakeholder_sessions, discovery_results and engagement_documents."""
    op.create_table(
        "engagements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("engagement_overview", sa.Text(), nullable=True),
        sa.Column("board_id", sa.String(length=64), nullable=True),
        sa.Column("board_item_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "stakeholder_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("stakeholder_name", sa.String(length=255), nullable=False),
        sa.Column("stakeholder_email", sa.String(length=255), nullable=True),
        sa.Column("stakeholder_role", sa.String(length=255), nullable=True),
        sa.Column("steering_prompt", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("conversation_state", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagements.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stakeholder_sessions_engagement_id", "stakeholder_sessions", ["engagement_id"])
    op.create_index("ix_stakeholder_sessions_token", "stakeholder_sessions", ["token"], unique=True)

    op.create_table(
        "discovery_results",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("raw_conversation", sa.JSON(), nullable=False),
        sa.Column("answers_structured", sa.JSON(), nullable=False),
        sa.Column("ai_summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("key_themes", sa.JSON(), nullable=True),
        sa.Column("priority_level", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["stakeholder_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_discovery_results_session_id", "discovery_results", ["session_id"], unique=True)

    op.create_table(
        "engagement_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("content_type", sa.String(length=255), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("blob_key", sa.String(length=512), nullable=False),
        sa.Column("processing_status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagements.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_engagement_documents_engagement_id", "engagement_documents", ["engagement_id"])


def downgrade() -> None:
    """Drop all discovery tables."""
    op.drop_index("ix_engagement_documents_engagement_id", table_name="engagement_documents")
    op.drop_table("engagement_documents")
    op.drop_index("ix_discovery_results_session_id", table_name="discovery_results")
    op.drop_table("discovery_results")
    op.drop_index("ix_stakeholder_sessions_token", table_name="stakeholder_sessions")
    op.drop_index("ix_stakeholder_sessions_engagement_id", table_name="stakeholder_sessions")
    op.drop_table("stakeholder_sessions")
    op.drop_table("engagements")
