"""negotiation ledger: proposals, versions, sessions, batches and outbox

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_SESSION_PREDICATE = "status IN ('open', 'awaiting_response', 'responded')"


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=36), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "projects",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_projects_owner", "projects", ["owner_id"])

    op.create_table(
        "advisors",
        _id(),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_advisors_user", "advisors", ["user_id"])

    op.create_table(
        "proposals",
        _id(),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("advisor_id", sa.String(length=36), nullable=False),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("timeline_days", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.Column("current_version_id", sa.String(length=36), nullable=True),
        sa.Column("has_active_negotiation", sa.Boolean(), nullable=False),
        sa.Column("negotiation_count", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["advisor_id"], ["advisors.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_proposals_project_status", "proposals", ["project_id", "status"])
    op.create_index("idx_proposals_advisor", "proposals", ["advisor_id"])

    op.create_table(
        "proposal_versions",
        _id(),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("timeline_days", sa.Integer(), nullable=False),
        sa.Column("scope_text", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column("source_session_id", sa.String(length=36), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("proposal_id", "version_number", name="uq_proposal_versions_number"),
        sa.UniqueConstraint("proposal_id", "content_hash", name="uq_proposal_versions_content_hash"),
    )

    op.create_table(
        "proposal_line_items",
        _id(),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("proposal_version_id", sa.String(length=36), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("source_line_item_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_optional", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["proposal_version_id"], ["proposal_versions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_line_items_version_order", "proposal_line_items", ["proposal_version_id", "display_order"])
    op.create_index("idx_line_items_proposal", "proposal_line_items", ["proposal_id"])

    op.create_table(
        "negotiation_sessions",
        _id(),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("negotiated_version_id", sa.String(length=36), nullable=False),
        sa.Column("initiator_id", sa.String(length=36), nullable=False),
        sa.Column("consultant_advisor_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("target_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("target_reduction_percent", sa.Numeric(7, 4), nullable=True),
        sa.Column("global_comment", sa.Text(), nullable=True),
        sa.Column("bulk_message", sa.Text(), nullable=True),
        sa.Column("initiator_message", sa.Text(), nullable=True),
        sa.Column("consultant_response_message", sa.Text(), nullable=True),
        sa.Column("result_version_id", sa.String(length=36), nullable=True),
        sa.Column("cancelled_by", sa.String(length=36), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["negotiated_version_id"], ["proposal_versions.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["consultant_advisor_id"], ["advisors.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_negotiation_sessions_active_proposal",
        "negotiation_sessions",
        ["proposal_id"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_SESSION_PREDICATE),
        postgresql_where=sa.text(ACTIVE_SESSION_PREDICATE),
    )
    op.create_index("idx_negotiation_sessions_project_status", "negotiation_sessions", ["project_id", "status"])

    op.create_table(
        "line_item_negotiations",
        _id(),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("line_item_id", sa.String(length=36), nullable=False),
        sa.Column("adjustment_type", sa.String(length=32), nullable=True),
        sa.Column("original_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("adjustment_value", sa.Numeric(14, 4), nullable=True),
        sa.Column("initiator_target_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("consultant_response_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("final_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("initiator_note", sa.Text(), nullable=True),
        sa.Column("consultant_note", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["session_id"], ["negotiation_sessions.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["line_item_id"], ["proposal_line_items.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "line_item_id", name="uq_line_item_negotiations_session_item"),
    )

    op.create_table(
        "negotiation_comments",
        _id(),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("author_type", sa.String(length=32), nullable=False),
        sa.Column("comment_type", sa.String(length=32), nullable=False),
        sa.Column("entity_reference", sa.String(length=255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["session_id"], ["negotiation_sessions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_negotiation_comments_session", "negotiation_comments", ["session_id", "created_at"])

    op.create_table(
        "bulk_negotiation_batches",
        _id(),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("initiator_id", sa.String(length=36), nullable=False),
        sa.Column("reduction_type", sa.String(length=16), nullable=False),
        sa.Column("reduction_value", sa.Numeric(14, 4), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_bulk_batches_project_created", "bulk_negotiation_batches", ["project_id", "created_at"])

    op.create_table(
        "bulk_negotiation_members",
        _id(),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["batch_id"], ["bulk_negotiation_batches.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_bulk_members_batch", "bulk_negotiation_members", ["batch_id"])
    op.create_index("idx_bulk_members_proposal", "bulk_negotiation_members", ["proposal_id"])

    op.create_table(
        "notification_outbox",
        _id(),
        sa.Column("recipient_id", sa.String(length=36), nullable=False),
        sa.Column("template", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notification_outbox_status_created", "notification_outbox", ["status", "created_at"])

    op.create_table(
        "activity_log",
        _id(),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("actor_type", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_activity_log_entity", "activity_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("idx_activity_log_entity", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_index("idx_notification_outbox_status_created", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_index("idx_bulk_members_proposal", table_name="bulk_negotiation_members")
    op.drop_index("idx_bulk_members_batch", table_name="bulk_negotiation_members")
    op.drop_table("bulk_negotiation_members")
    op.drop_index("idx_bulk_batches_project_created", table_name="bulk_negotiation_batches")
    op.drop_table("bulk_negotiation_batches")
    op.drop_index("idx_negotiation_comments_session", table_name="negotiation_comments")
    op.drop_table("negotiation_comments")
    op.drop_table("line_item_negotiations")
    op.drop_index("idx_negotiation_sessions_project_status", table_name="negotiation_sessions")
    op.drop_index("uq_negotiation_sessions_active_proposal", table_name="negotiation_sessions")
    op.drop_table("negotiation_sessions")
    op.drop_index("idx_line_items_proposal", table_name="proposal_line_items")
    op.drop_index("idx_line_items_version_order", table_name="proposal_line_items")
    op.drop_table("proposal_line_items")
    op.drop_table("proposal_versions")
    op.drop_index("idx_proposals_advisor", table_name="proposals")
    op.drop_index("idx_proposals_project_status", table_name="proposals")
    op.drop_table("proposals")
    op.drop_index("idx_advisors_user", table_name="advisors")
    op.drop_table("advisors")
    op.drop_index("idx_projects_owner", table_name="projects")
    op.drop_table("projects")
