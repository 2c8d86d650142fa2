"""Add governance tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

This migration creates the governance record-keeping tables:
- governance_meetings (one row per meeting, unique per date and type)
- governance_minutes (versioned minutes with a single in-flight version)
- governance_motions (motions numbered per meeting, with vote results)
- governance_annotations (notes on motions, minutes and external artifacts)
- governance_review_flags (compliance and legal follow-ups)
- audit_log (who changed which governance object)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enum types
    op.execute(
        """
        CREATE TYPE governance_meeting_type AS ENUM (
            'BOARD', 'EXECUTIVE', 'SPECIAL', 'ANNUAL'
        )
        """
    )
    op.execute(
        """
        CREATE TYPE minutes_status AS ENUM (
            'DRAFT', 'SUBMITTED', 'REVISED', 'APPROVED', 'PUBLISHED', 'ARCHIVED'
        )
        """
    )
    op.execute(
        """
        CREATE TYPE motion_result AS ENUM (
            'PASSED', 'FAILED', 'TABLED', 'WITHDRAWN'
        )
        """
    )
    op.execute(
        """
        CREATE TYPE review_flag_type AS ENUM (
            'INSURANCE_REVIEW', 'LEGAL_REVIEW', 'POLICY_REVIEW', 'COMPLIANCE_CHECK', 'GENERAL'
        )
        """
    )
    op.execute(
        """
        CREATE TYPE review_flag_status AS ENUM (
            'OPEN', 'IN_PROGRESS', 'RESOLVED', 'DISMISSED'
        )
        """
    )

    # Create governance_meetings table
    op.create_table(
        "governance_meetings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type",
            postgresql.ENUM(
                "BOARD", "EXECUTIVE", "SPECIAL", "ANNUAL",
                name="governance_meeting_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("attendance_count", sa.Integer(), nullable=True),
        sa.Column("quorum_met", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("date", "type", name="uq_governance_meetings_date_type"),
        sa.CheckConstraint(
            "attendance_count IS NULL OR attendance_count >= 0",
            name="ck_governance_meetings_attendance",
        ),
    )
    op.create_index("ix_governance_meetings_date", "governance_meetings", ["date"])
    op.create_index("ix_governance_meetings_type", "governance_meetings", ["type"])
    op.create_index(
        "ix_governance_meetings_created_by_id", "governance_meetings", ["created_by_id"]
    )

    # Create governance_minutes table
    op.create_table(
        "governance_minutes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "meeting_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("governance_meetings.id"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "status",
            postgresql.ENUM(
                "DRAFT", "SUBMITTED", "REVISED", "APPROVED", "PUBLISHED", "ARCHIVED",
                name="minutes_status",
                create_type=False,
            ),
            nullable=False,
            server_default="DRAFT",
        ),
        # Document
        sa.Column("content", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("summary", sa.Text(), nullable=True),
        # Version chain
        sa.Column(
            "based_on_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("governance_minutes.id"),
            nullable=True,
        ),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        # Review
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        # Actors
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("last_edited_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("submitted_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("published_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("archived_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Workflow timestamps
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "meeting_id", "version", name="uq_governance_minutes_meeting_version"
        ),
        sa.CheckConstraint("version > 0", name="ck_governance_minutes_version"),
    )
    op.create_index("ix_governance_minutes_meeting_id", "governance_minutes", ["meeting_id"])
    op.create_index("ix_governance_minutes_status", "governance_minutes", ["status"])
    # At most one in-flight version per meeting
    op.create_index(
        "uq_governance_minutes_in_flight",
        "governance_minutes",
        ["meeting_id"],
        unique=True,
        postgresql_where=sa.text(
            "status IN ('DRAFT', 'SUBMITTED', 'REVISED', 'APPROVED') "
            "AND superseded_at IS NULL"
        ),
    )

    # Create governance_motions table
    op.create_table(
        "governance_motions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "meeting_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("governance_meetings.id"),
            nullable=False,
        ),
        sa.Column("motion_number", sa.Integer(), nullable=False),
        sa.Column("motion_text", sa.Text(), nullable=False),
        sa.Column("moved_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("seconded_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Vote
        sa.Column("votes_yes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("votes_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("votes_abstain", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "result",
            postgresql.ENUM(
                "PASSED", "FAILED", "TABLED", "WITHDRAWN",
                name="motion_result",
                create_type=False,
            ),
            nullable=True,
        ),
        sa.Column("result_notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "meeting_id", "motion_number", name="uq_governance_motions_meeting_number"
        ),
        sa.CheckConstraint(
            "votes_yes >= 0 AND votes_no >= 0 AND votes_abstain >= 0",
            name="ck_governance_motions_votes",
        ),
    )
    op.create_index("ix_governance_motions_meeting_id", "governance_motions", ["meeting_id"])
    op.create_index("ix_governance_motions_result", "governance_motions", ["result"])

    # Create governance_annotations table
    op.create_table(
        "governance_annotations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "motion_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("governance_motions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("anchor", sa.String(500), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_governance_annotations_target",
        "governance_annotations",
        ["target_type", "target_id"],
    )
    op.create_index(
        "ix_governance_annotations_motion_id", "governance_annotations", ["motion_id"]
    )
    op.create_index(
        "ix_governance_annotations_is_published", "governance_annotations", ["is_published"]
    )
    op.create_index(
        "ix_governance_annotations_created_by_id", "governance_annotations", ["created_by_id"]
    )

    # Create governance_review_flags table
    op.create_table(
        "governance_review_flags",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "flag_type",
            postgresql.ENUM(
                "INSURANCE_REVIEW", "LEGAL_REVIEW", "POLICY_REVIEW", "COMPLIANCE_CHECK",
                "GENERAL",
                name="review_flag_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            postgresql.ENUM(
                "OPEN", "IN_PROGRESS", "RESOLVED", "DISMISSED",
                name="review_flag_status",
                create_type=False,
            ),
            nullable=False,
            server_default="OPEN",
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        # Resolution
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("resolved_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_governance_review_flags_target",
        "governance_review_flags",
        ["target_type", "target_id"],
    )
    op.create_index(
        "ix_governance_review_flags_flag_type", "governance_review_flags", ["flag_type"]
    )
    op.create_index("ix_governance_review_flags_status", "governance_review_flags", ["status"])
    op.create_index(
        "ix_governance_review_flags_due_date", "governance_review_flags", ["due_date"]
    )
    op.create_index(
        "ix_governance_review_flags_created_by_id", "governance_review_flags", ["created_by_id"]
    )

    # Create audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("object_type", sa.String(100), nullable=False),
        sa.Column("object_id", sa.String(100), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_audit_log_object_type", "audit_log", ["object_type"])
    op.create_index("ix_audit_log_object_id", "audit_log", ["object_id"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])


def downgrade() -> None:
    # Drop indexes
    op.drop_index("ix_audit_log_actor_id", "audit_log")
    op.drop_index("ix_audit_log_object_id", "audit_log")
    op.drop_index("ix_audit_log_object_type", "audit_log")
    op.drop_index("ix_governance_review_flags_created_by_id", "governance_review_flags")
    op.drop_index("ix_governance_review_flags_due_date", "governance_review_flags")
    op.drop_index("ix_governance_review_flags_status", "governance_review_flags")
    op.drop_index("ix_governance_review_flags_flag_type", "governance_review_flags")
    op.drop_index("ix_governance_review_flags_target", "governance_review_flags")
    op.drop_index("ix_governance_annotations_created_by_id", "governance_annotations")
    op.drop_index("ix_governance_annotations_is_published", "governance_annotations")
    op.drop_index("ix_governance_annotations_motion_id", "governance_annotations")
    op.drop_index("ix_governance_annotations_target", "governance_annotations")
    op.drop_index("ix_governance_motions_result", "governance_motions")
    op.drop_index("ix_governance_motions_meeting_id", "governance_motions")
    op.drop_index("uq_governance_minutes_in_flight", "governance_minutes")
    op.drop_index("ix_governance_minutes_status", "governance_minutes")
    op.drop_index("ix_governance_minutes_meeting_id", "governance_minutes")
    op.drop_index("ix_governance_meetings_created_by_id", "governance_meetings")
    op.drop_index("ix_governance_meetings_type", "governance_meetings")
    op.drop_index("ix_governance_meetings_date", "governance_meetings")

    # Drop tables in reverse order
    op.drop_table("audit_log")
    op.drop_table("governance_review_flags")
    op.drop_table("governance_annotations")
    op.drop_table("governance_motions")
    op.drop_table("governance_minutes")
    op.drop_table("governance_meetings")

    # Drop enum types
    op.execute("DROP TYPE review_flag_status")
    op.execute("DROP TYPE review_flag_type")
    op.execute("DROP TYPE motion_result")
    op.execute("DROP TYPE minutes_status")
    op.execute("DROP TYPE governance_meeting_type")
