"""
SQLAlchemy ORM models for the Otro7a Manager database.

Thesis content (metadata, front matter, chapters, back matter) lives in a
single JSON column; everything that is queried on its own (collaborators,
citations, versions, comments, messages, notifications) has its own table.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    Enum as SQLEnum,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from app.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class UserRole(str, enum.Enum):
    """Platform-wide role of an account."""

    ADMIN = "admin"
    USER = "user"


class ThesisStatus(str, enum.Enum):
    """Lifecycle status of a thesis."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    PUBLISHED = "published"


class CollaboratorRole(str, enum.Enum):
    """Role a user holds on a single thesis."""

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    REVIEWER = "reviewer"
    VIEWER = "viewer"


class CitationType(str, enum.Enum):
    """Kinds of bibliography entries."""

    BOOK = "book"
    ARTICLE = "article"
    CONFERENCE = "conference"
    WEBSITE = "website"
    OTHER = "other"


class InvitationStatus(str, enum.Enum):
    """Delivery / acceptance state of a collaboration invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    FAILED = "failed"


class ReviewStatus(str, enum.Enum):
    """State of a review comment on a section."""

    PENDING = "pending"
    RESOLVED = "resolved"


class NotificationType(str, enum.Enum):
    """Events that fan out to thesis collaborators."""

    COLLABORATOR_JOINED = "collaborator_joined"
    ROLE_CHANGED = "role_changed"
    COMMENT_ADDED = "comment_added"
    COMMENT_RESOLVED = "comment_resolved"
    VERSION_CREATED = "version_created"
    VERSION_RESTORED = "version_restored"
    CHAT_MESSAGE = "chat_message"
    STATUS_CHANGED = "status_changed"


# Models
class User(Base):
    """User account (synced from the upstream identity provider)."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # matches the identity provider's UUID
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    collaborations = relationship(
        "ThesisCollaborator", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Thesis(Base):
    """Top-level thesis document."""

    __tablename__ = "theses"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    language = Column(String(10), nullable=False, default="en")
    status = Column(SQLEnum(ThesisStatus), default=ThesisStatus.DRAFT, nullable=False, index=True)
    content = Column(JSON, nullable=False)
    permissions = Column(JSON, nullable=True)  # isPublic / allowComments / allowSharing

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    supervisor_email = Column(String(255), nullable=True)
    supervisor_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    collaborators = relationship(
        "ThesisCollaborator", back_populates="thesis", cascade="all, delete-orphan", passive_deletes=True
    )
    versions = relationship(
        "ThesisVersion", back_populates="thesis", cascade="all, delete-orphan", passive_deletes=True
    )
    citations = relationship(
        "Citation", back_populates="thesis", cascade="all, delete-orphan", passive_deletes=True
    )


class ThesisCollaborator(Base):
    """Membership of a user on a thesis with a role."""

    __tablename__ = "thesis_collaborators"
    __table_args__ = (UniqueConstraint("thesis_id", "user_id", name="uq_collaborator_thesis_user"),)

    id = Column(Integer, primary_key=True, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(SQLEnum(CollaboratorRole), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    thesis = relationship("Thesis", back_populates="collaborators")
    user = relationship("User", back_populates="collaborations")


class ThesisInvitation(Base):
    """Emailed invitation to join a thesis with a role."""

    __tablename__ = "thesis_invitations"

    id = Column(Integer, primary_key=True, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(SQLEnum(CollaboratorRole), nullable=False)
    token = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(SQLEnum(InvitationStatus), default=InvitationStatus.PENDING, nullable=False)
    is_supervisor = Column(Boolean, default=False, nullable=False)
    invited_by = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_by = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)


class ThesisVersion(Base):
    """Immutable snapshot of a thesis' content with its diff to the previous one."""

    __tablename__ = "thesis_versions"
    __table_args__ = (UniqueConstraint("thesis_id", "version_number", name="uq_version_thesis_number"),)

    id = Column(Integer, primary_key=True, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    content = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    language = Column(String(10), nullable=True)
    changes = Column(JSON, nullable=True)  # list of diff records
    created_by = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    thesis = relationship("Thesis", back_populates="versions")


class Citation(Base):
    """Bibliography entry attached to a thesis."""

    __tablename__ = "citations"

    id = Column(String(36), primary_key=True, default=_uuid)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    section_id = Column(String(36), nullable=True, index=True)  # id inside the content tree
    text = Column(Text, nullable=False)  # title of the cited work
    source = Column(String(500), nullable=True)
    authors = Column(JSON, nullable=False, default=list)
    year = Column(String(20), nullable=False, default="")
    type = Column(SQLEnum(CitationType), default=CitationType.ARTICLE, nullable=False)
    doi = Column(String(255), nullable=True)
    url = Column(String(1000), nullable=True)
    journal = Column(String(500), nullable=True)
    volume = Column(String(50), nullable=True)
    issue = Column(String(50), nullable=True)
    pages = Column(String(50), nullable=True)
    publisher = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    thesis = relationship("Thesis", back_populates="citations")


class ThesisReview(Base):
    """Review comment left on one section of a thesis."""

    __tablename__ = "thesis_reviews"

    id = Column(Integer, primary_key=True, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    section_id = Column(String(36), nullable=False, index=True)
    reviewer_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(SQLEnum(ReviewStatus), default=ReviewStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class ChatMessage(Base):
    """Chat message exchanged between collaborators of a thesis."""

    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class Notification(Base):
    """Per-user notification produced by a thesis event."""

    __tablename__ = "notifications"
    __table_args__ = (UniqueConstraint("user_id", "event_key", name="uq_notification_user_event"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    thesis_id = Column(String(36), ForeignKey("theses.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)
    event_key = Column(String(255), nullable=False)
    read = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
