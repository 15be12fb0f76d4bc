"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-02-19

All 9 tables as defined in app/models/database_models.py:
users, theses, thesis_collaborators, thesis_invitations, thesis_versions,
citations, thesis_reviews, chat_messages, notifications.

Enum columns store member names (SQLAlchemy's default for Enum classes).
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "userrole": ("ADMIN", "USER"),
    "thesisstatus": ("DRAFT", "IN_REVIEW", "PUBLISHED"),
    "collaboratorrole": ("OWNER", "ADMIN", "EDITOR", "REVIEWER", "VIEWER"),
    "citationtype": ("BOOK", "ARTICLE", "CONFERENCE", "WEBSITE", "OTHER"),
    "invitationstatus": ("PENDING", "ACCEPTED", "REVOKED", "FAILED"),
    "reviewstatus": ("PENDING", "RESOLVED"),
    "notificationtype": (
        "COLLABORATOR_JOINED",
        "ROLE_CHANGED",
        "COMMENT_ADDED",
        "COMMENT_RESOLVED",
        "VERSION_CREATED",
        "VERSION_RESTORED",
        "CHAT_MESSAGE",
        "STATUS_CHANGED",
    ),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    for name, labels in ENUMS.items():
        sa.Enum(*labels, name=name).create(op.get_bind(), checkfirst=True)

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role", _enum("userrole"), nullable=False, server_default="USER"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── theses ────────────────────────────────────────────────────────────
    op.create_table(
        "theses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("status", _enum("thesisstatus"), nullable=False, server_default="DRAFT", index=True),
        sa.Column("content", sa.JSON, nullable=False),
        sa.Column("permissions", sa.JSON, nullable=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("supervisor_email", sa.String(255), nullable=True),
        sa.Column("supervisor_id", sa.String(255), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── thesis_collaborators ──────────────────────────────────────────────
    op.create_table(
        "thesis_collaborators",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("role", _enum("collaboratorrole"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("thesis_id", "user_id", name="uq_collaborator_thesis_user"),
    )

    # ── thesis_invitations ────────────────────────────────────────────────
    op.create_table(
        "thesis_invitations",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("role", _enum("collaboratorrole"), nullable=False),
        sa.Column("token", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("status", _enum("invitationstatus"), nullable=False, server_default="PENDING"),
        sa.Column("is_supervisor", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("invited_by", sa.String(255), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("accepted_by", sa.String(255), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── thesis_versions ───────────────────────────────────────────────────
    op.create_table(
        "thesis_versions",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("content", sa.JSON, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("language", sa.String(10), nullable=True),
        sa.Column("changes", sa.JSON, nullable=True),
        sa.Column("created_by", sa.String(255), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("thesis_id", "version_number", name="uq_version_thesis_number"),
    )

    # ── citations ─────────────────────────────────────────────────────────
    op.create_table(
        "citations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("section_id", sa.String(36), nullable=True, index=True),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("source", sa.String(500), nullable=True),
        sa.Column("authors", sa.JSON, nullable=False),
        sa.Column("year", sa.String(20), nullable=False, server_default=""),
        sa.Column("type", _enum("citationtype"), nullable=False, server_default="ARTICLE"),
        sa.Column("doi", sa.String(255), nullable=True),
        sa.Column("url", sa.String(1000), nullable=True),
        sa.Column("journal", sa.String(500), nullable=True),
        sa.Column("volume", sa.String(50), nullable=True),
        sa.Column("issue", sa.String(50), nullable=True),
        sa.Column("pages", sa.String(50), nullable=True),
        sa.Column("publisher", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── thesis_reviews ────────────────────────────────────────────────────
    op.create_table(
        "thesis_reviews",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("section_id", sa.String(36), nullable=False, index=True),
        sa.Column("reviewer_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("status", _enum("reviewstatus"), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── chat_messages ─────────────────────────────────────────────────────
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sender_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )

    # ── notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("thesis_id", sa.String(36), sa.ForeignKey("theses.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("type", _enum("notificationtype"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("event_key", sa.String(255), nullable=False),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.UniqueConstraint("user_id", "event_key", name="uq_notification_user_event"),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("chat_messages")
    op.drop_table("thesis_reviews")
    op.drop_table("citations")
    op.drop_table("thesis_versions")
    op.drop_table("thesis_invitations")
    op.drop_table("thesis_collaborators")
    op.drop_table("theses")
    op.drop_table("users")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
