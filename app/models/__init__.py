"""Database and schema models for Otro7a Manager."""
from app.models.database_models import (
    User,
    Thesis,
    ThesisCollaborator,
    ThesisInvitation,
    ThesisVersion,
    Citation,
    ThesisReview,
    ChatMessage,
    Notification,
    UserRole,
    ThesisStatus,
    CollaboratorRole,
    CitationType,
    InvitationStatus,
    ReviewStatus,
    NotificationType,
)
from app.models.schemas import (
    ThesisCreateRequest,
    ThesisResponse,
    ThesisSummary,
    CitationResponse,
    CollaboratorResponse,
    NotificationResponse,
    VersionSummary,
    VersionDetail,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Thesis",
    "ThesisCollaborator",
    "ThesisInvitation",
    "ThesisVersion",
    "Citation",
    "ThesisReview",
    "ChatMessage",
    "Notification",
    "UserRole",
    "ThesisStatus",
    "CollaboratorRole",
    "CitationType",
    "InvitationStatus",
    "ReviewStatus",
    "NotificationType",
    # Pydantic schemas
    "ThesisCreateRequest",
    "ThesisResponse",
    "ThesisSummary",
    "CitationResponse",
    "CollaboratorResponse",
    "NotificationResponse",
    "VersionSummary",
    "VersionDetail",
    "HealthCheckResponse",
]
