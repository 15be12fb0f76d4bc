"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum


# Enums (matching database enums)
class ThesisStatusSchema(str, Enum):
    """Thesis status for API payloads."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    PUBLISHED = "published"


class CollaboratorRoleSchema(str, Enum):
    """Collaborator roles for API payloads."""

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    REVIEWER = "reviewer"
    VIEWER = "viewer"


class CitationTypeSchema(str, Enum):
    """Citation types for API payloads."""

    BOOK = "book"
    ARTICLE = "article"
    CONFERENCE = "conference"
    WEBSITE = "website"
    OTHER = "other"


class CitationStyleSchema(str, Enum):
    """Supported bibliography styles."""

    APA = "apa"
    MLA = "mla"
    CHICAGO = "chicago"
    HARVARD = "harvard"
    VANCOUVER = "vancouver"


class ReviewStatusSchema(str, Enum):
    """Review comment states."""

    PENDING = "pending"
    RESOLVED = "resolved"


# ---------------------------------------------------------------------------
# Thesis Schemas
# ---------------------------------------------------------------------------

class AuthorSchema(BaseModel):
    """Person named in the thesis metadata."""

    firstName: str = ""
    lastName: str = ""
    email: Optional[str] = None
    affiliation: Optional[str] = None


class ThesisPermissions(BaseModel):
    """Sharing switches stored on a thesis."""

    isPublic: bool = False
    allowComments: bool = True
    allowSharing: bool = False


class ThesisCreateRequest(BaseModel):
    """Metadata submitted by the thesis creation form."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    keywords: Union[str, List[str]] = ""
    language: Optional[str] = Field(None, min_length=2, max_length=10)
    universityName: Optional[str] = None
    departmentName: Optional[str] = None
    degree: Optional[str] = None
    thesisDate: Optional[str] = None
    authors: List[AuthorSchema] = []
    supervisors: List[AuthorSchema] = []
    committeeMembers: List[AuthorSchema] = []
    include_outline: bool = False


class ThesisUpdateRequest(BaseModel):
    """Partial update of thesis-level fields."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    language: Optional[str] = Field(None, min_length=2, max_length=10)
    status: Optional[ThesisStatusSchema] = None
    permissions: Optional[ThesisPermissions] = None


class ThesisContentUpdateRequest(BaseModel):
    """Autosave payload replacing the whole content tree."""

    content: Dict[str, Any]
    base_updated_at: Optional[datetime] = None


class MetadataUpdateRequest(BaseModel):
    """Fields of the content metadata block; unset fields are left alone."""

    model_config = ConfigDict(extra="allow")

    description: Optional[str] = None
    keywords: Optional[Union[str, List[str]]] = None
    universityName: Optional[str] = None
    departmentName: Optional[str] = None
    degree: Optional[str] = None
    shortTitle: Optional[str] = None
    thesisDate: Optional[str] = None
    authors: Optional[List[AuthorSchema]] = None
    supervisors: Optional[List[AuthorSchema]] = None
    committeeMembers: Optional[List[AuthorSchema]] = None


class ThesisSummary(BaseModel):
    """Row of the thesis list."""

    id: str
    title: str
    description: Optional[str] = None
    language: str
    status: ThesisStatusSchema
    role: CollaboratorRoleSchema
    user_id: str
    created_at: datetime
    updated_at: datetime


class ThesisResponse(BaseModel):
    """Full thesis including its content tree."""

    id: str
    title: str
    description: Optional[str] = None
    language: str
    status: ThesisStatusSchema
    content: Dict[str, Any]
    permissions: Optional[ThesisPermissions] = None
    user_id: str
    supervisor_email: Optional[str] = None
    supervisor_id: Optional[str] = None
    role: CollaboratorRoleSchema
    created_at: datetime
    updated_at: datetime


class ThesisStatsResponse(BaseModel):
    """Dashboard counters for the current user."""

    total: int = 0
    owned: int = 0
    shared: int = 0
    draft: int = 0
    in_review: int = 0
    published: int = 0


class ThesisProgressResponse(BaseModel):
    """Completion statistics computed from the content tree."""

    total_sections: int
    completed_sections: int
    completion_ratio: float
    missing_required: List[str]
    word_count: int
    chapter_count: int
    figure_count: int
    table_count: int
    footnote_count: int


# ---------------------------------------------------------------------------
# Structure Schemas
# ---------------------------------------------------------------------------

class ChapterCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    content: str = ""


class ChapterUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    content: Optional[str] = None


class OrderRequest(BaseModel):
    """Complete ordered list of ids for a container."""

    ids: List[str] = Field(..., min_length=1)
    location: Optional[str] = None


class SectionCreateRequest(BaseModel):
    location: str = Field(..., description="frontMatter, backMatter or a chapter id")
    title: str = Field("New Section", min_length=1, max_length=500)
    type: str = "custom"
    content: str = ""
    required: bool = False


class SectionUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    type: Optional[str] = None
    content: Optional[str] = None
    required: Optional[bool] = None


class SectionResponse(BaseModel):
    location: str
    section: Dict[str, Any]


class FigureCreateRequest(BaseModel):
    url: str = Field(..., min_length=1)
    caption: str = ""
    title: str = ""
    alt_text: str = ""
    width: int = Field(600, gt=0)
    height: int = Field(400, gt=0)
    position: str = "inline"

    @field_validator("position")
    @classmethod
    def _check_position(cls, v: str) -> str:
        if v not in ("inline", "float-left", "float-right"):
            raise ValueError("position must be inline, float-left or float-right")
        return v


class TableCreateRequest(BaseModel):
    title: str = ""
    caption: str = ""
    headers: List[str] = Field(..., min_length=1)
    rows: List[List[str]] = []


class FootnoteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Citation Schemas
# ---------------------------------------------------------------------------

class CitationBase(BaseModel):
    text: str = Field(..., min_length=1)
    source: Optional[str] = None
    authors: List[str] = []
    year: str = ""
    type: CitationTypeSchema = CitationTypeSchema.ARTICLE
    doi: Optional[str] = None
    url: Optional[str] = None
    journal: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    publisher: Optional[str] = None
    section_id: Optional[str] = None


class CitationCreateRequest(CitationBase):
    pass


class CitationUpdateRequest(BaseModel):
    text: Optional[str] = Field(None, min_length=1)
    source: Optional[str] = None
    authors: Optional[List[str]] = None
    year: Optional[str] = None
    type: Optional[CitationTypeSchema] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    journal: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    publisher: Optional[str] = None
    section_id: Optional[str] = None

    @field_validator("text", "year", "type")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    @field_validator("authors")
    @classmethod
    def _authors_list(cls, v: Optional[List[str]]) -> List[str]:
        return v if v is not None else []


class CitationResponse(CitationBase):
    id: str
    thesis_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CitationDraft(CitationBase):
    """Citation candidate returned by a lookup; not persisted."""

    text: str = ""


class ReferenceParseRequest(BaseModel):
    text: str = Field(..., min_length=1)
    save: bool = False
    type: CitationTypeSchema = CitationTypeSchema.ARTICLE


class ParsedReferenceResponse(BaseModel):
    title: str
    authors: List[str]
    author_last_names: List[str]
    author_first_initials: List[str]
    author_middle_initials: List[str]
    year: str
    journal: str
    volume: str
    issue: str
    pages: str
    doi: str
    url: str
    citation: Optional[CitationResponse] = None


class FormattedCitation(BaseModel):
    id: str
    style: CitationStyleSchema
    formatted: str


class BibliographyResponse(BaseModel):
    style: CitationStyleSchema
    entries: List[FormattedCitation]


# ---------------------------------------------------------------------------
# Collaboration Schemas
# ---------------------------------------------------------------------------

class CollaboratorResponse(BaseModel):
    user_id: str
    email: str
    name: Optional[str] = None
    role: CollaboratorRoleSchema
    created_at: datetime


class CollaboratorUpdateRequest(BaseModel):
    role: CollaboratorRoleSchema


class InvitationCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: CollaboratorRoleSchema = CollaboratorRoleSchema.EDITOR


class SupervisorInviteRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class InvitationResponse(BaseModel):
    id: int
    thesis_id: str
    email: str
    role: CollaboratorRoleSchema
    status: str
    is_supervisor: bool
    created_at: datetime
    responded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvitationAcceptResponse(BaseModel):
    thesis_id: str
    role: CollaboratorRoleSchema
    message: str


class InviteEmailRequest(BaseModel):
    """Body of the stateless send-invite-email function."""

    to: Optional[str] = None
    thesisTitle: Optional[str] = None
    inviteLink: Optional[str] = None
    role: Optional[str] = None


# ---------------------------------------------------------------------------
# Review / Chat / Notification Schemas
# ---------------------------------------------------------------------------

class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class CommentUpdateRequest(BaseModel):
    status: ReviewStatusSchema


class CommentResponse(BaseModel):
    id: int
    thesis_id: str
    section_id: str
    reviewer_id: str
    reviewer_email: Optional[str] = None
    content: str
    status: ReviewStatusSchema
    created_at: datetime
    updated_at: datetime


class ChatMessageCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class ChatMessageResponse(BaseModel):
    id: int
    thesis_id: str
    sender_id: str
    sender_email: Optional[str] = None
    content: str
    created_at: datetime


class NotificationResponse(BaseModel):
    id: int
    thesis_id: Optional[str] = None
    type: str
    message: str
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


# ---------------------------------------------------------------------------
# Version Schemas
# ---------------------------------------------------------------------------

class VersionCreateRequest(BaseModel):
    description: str = Field("", max_length=2000)


class VersionDiffItem(BaseModel):
    path: str
    type: str
    oldValue: Optional[Any] = None
    newValue: Optional[Any] = None
    description: Optional[str] = None


class VersionSummary(BaseModel):
    id: int
    thesis_id: str
    version_number: int
    description: Optional[str] = None
    language: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    change_count: int = 0


class VersionDetail(VersionSummary):
    content: Dict[str, Any]
    changes: List[VersionDiffItem] = []


class VersionCompareResponse(BaseModel):
    from_version: int
    to_version: int
    changes: List[VersionDiffItem]


# ---------------------------------------------------------------------------
# Export Schemas
# ---------------------------------------------------------------------------

class ExportSection(BaseModel):
    title: str = ""
    content: str = ""
    type: Optional[str] = None


class ExportChapter(BaseModel):
    title: str = ""
    content: str = ""
    sections: List[ExportSection] = []


class GenerateDocxRequest(BaseModel):
    """Body of the stateless generate-docx function."""

    chapters: List[ExportChapter] = []
    frontMatter: List[ExportSection] = []
    backMatter: List[ExportSection] = []
    metadata: Dict[str, Any] = {}
    title: Optional[str] = None


# Health Schemas
class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    timestamp: datetime
