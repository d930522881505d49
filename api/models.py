"""
API request and response models for the Folio REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/, projects/ and
contacts/, which own the internal domain representation. Route handlers map
between the two.

Every response uses the same envelope:
  success -> {"success": true, "message"?: str, "data": ..., "pagination"?: {...}}
  failure -> {"success": false, "message": str, "code": str, "errors"?: [str]}
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Admin
from contacts.models import Contact
from projects.models import Project

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Single-line text: no control characters, so the value is safe in a mail header.
SINGLE_LINE_PATTERN = r"^[^\x00-\x1f\x7f]+$"

# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    code: str
    errors: Optional[list[str]] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Admin / auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/admin/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    # Length floor is enforced by CredentialStore so the policy stays configurable.
    password: str = Field(min_length=1, max_length=72)


class LoginRequest(BaseModel):
    """Request body for POST /api/admin/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/admin/profile. Omitted fields stay unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/admin/change-password."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=1, max_length=72)


class AdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_admin(cls, admin: Admin) -> "AdminResponse":
        return cls(
            id=admin.id,
            username=admin.username,
            email=admin.email,
            role=admin.role,
            created_at=admin.created_at or "",
            last_login=admin.last_login,
        )


class AdminEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: AdminResponse


class AuthData(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


class AuthResponse(BaseModel):
    """Response for POST /register and POST /login."""

    success: bool = True
    message: str
    data: AuthData


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    short_description: Optional[str]
    image_url: Optional[str]
    live_url: Optional[str]
    github_url: Optional[str]
    tags: list[str]
    technologies: list[str]
    featured: bool
    sort_order: int
    created_at: str
    updated_at: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        """Factory Method -- the mapping lives beside the output model."""
        return cls(
            id=project.id,
            title=project.title,
            description=project.description,
            short_description=project.short_description,
            image_url=project.image_url,
            live_url=project.live_url,
            github_url=project.github_url,
            tags=project.tags,
            technologies=project.technologies,
            featured=project.featured,
            sort_order=project.sort_order,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: ProjectResponse


class ProjectListResponse(BaseModel):
    success: bool = True
    data: list[ProjectResponse]
    pagination: Pagination


class ProjectStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    featured: int
    total_tags: int


class ProjectStatsEnvelope(BaseModel):
    success: bool = True
    data: ProjectStats


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class ContactStatusEnum(str, Enum):
    new = "new"
    read = "read"
    replied = "replied"
    archived = "archived"


class ContactCreate(BaseModel):
    """Request body for POST /api/contact."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100, pattern=SINGLE_LINE_PATTERN)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    message: str = Field(min_length=10, max_length=5000)


class ContactStatusUpdate(BaseModel):
    status: ContactStatusEnum


class ContactReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str


class ContactReceiptEnvelope(BaseModel):
    success: bool = True
    message: str
    data: ContactReceipt


class ContactResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    message: str
    status: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: str

    @classmethod
    def from_contact(cls, contact: Contact) -> "ContactResponse":
        return cls(
            id=contact.id,
            name=contact.name,
            email=contact.email,
            message=contact.message,
            status=contact.status,
            ip_address=contact.ip_address,
            user_agent=contact.user_agent,
            created_at=contact.created_at,
        )


class ContactEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: ContactResponse


class ContactListResponse(BaseModel):
    success: bool = True
    data: list[ContactResponse]
    pagination: Pagination


class ContactStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    by_status: dict[str, int]


class ContactStatsEnvelope(BaseModel):
    success: bool = True
    data: ContactStats


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardData(BaseModel):
    model_config = ConfigDict(frozen=True)

    projects: ProjectStats
    contacts: ContactStats


class DashboardResponse(BaseModel):
    """Response for GET /api/admin/dashboard."""

    success: bool = True
    data: DashboardData
