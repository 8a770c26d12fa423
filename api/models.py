"""
API request and response models for Folio REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
content/models.py, which own the internal domain representation. Route
handlers map between the two.

One request schema per operation. A failed schema check becomes a 422 whose
error.fields lists {field, message, value} per problem (see api/main.py).

Separation of concerns: auth/ and content/ models = domain truth;
api/ models = API contract.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import Identity
from content.models import BlogPost, Contact, Project, SiteSettings, Task
from content.tasks import progress

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NAME_PATTERN = r"^[a-zA-Z\s]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
GITHUB_URL_PATTERN = r"^https://github\.com/.+"
HTTP_URL_PATTERN = r"^https?://.+"

_PASSWORD_CLASSES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def check_password_strength(value: str) -> str:
    if not _PASSWORD_CLASSES.match(value):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


def _normalize_tags(values: list[str]) -> list[str]:
    """Lowercase, strip and deduplicate tags while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        normalized = str(v).strip().lower()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TaskCategoryEnum(str, Enum):
    work = "Work"
    personal = "Personal"
    study = "Study"
    health = "Health"
    other = "Other"


class TaskPriorityEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskStatusEnum(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskSortEnum(str, Enum):
    newest = "newest"
    oldest = "oldest"
    priority = "priority"
    due_date = "dueDate"
    title = "title"


class ContactStatusEnum(str, Enum):
    new = "New"
    read = "Read"
    in_progress = "In Progress"
    replied = "Replied"
    closed = "Closed"


class ContactProjectTypeEnum(str, Enum):
    web = "Web Development"
    mobile = "Mobile App"
    ecommerce = "E-commerce"
    api = "API Development"
    consultation = "Consultation"
    other = "Other"


class BudgetEnum(str, Enum):
    under_1k = "Under $1,000"
    k1_5 = "$1,000 - $5,000"
    k5_10 = "$5,000 - $10,000"
    k10_25 = "$10,000 - $25,000"
    above_25k = "Above $25,000"
    unspecified = "Not specified"


class TimelineEnum(str, Enum):
    asap = "ASAP"
    weeks = "1-2 weeks"
    month = "1 month"
    months = "2-3 months"
    long = "3+ months"
    flexible = "Flexible"


class ProjectCategoryEnum(str, Enum):
    web = "Web Development"
    mobile = "Mobile App"
    desktop = "Desktop App"
    api = "API"
    other = "Other"


class ProjectStatusEnum(str, Enum):
    in_progress = "In Progress"
    completed = "Completed"
    on_hold = "On Hold"
    cancelled = "Cancelled"


class ProjectSortEnum(str, Enum):
    newest = "newest"
    oldest = "oldest"
    title = "title"
    views = "views"
    likes = "likes"
    featured = "featured"


class BlogStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    """One failed field check in a validation error."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    value: Any = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    lock_until accompanies account_locked; retry_after accompanies
    too_many_requests and rate_limited; fields accompanies validation_error.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[FieldError]] = None
    lock_until: Optional[str] = None
    retry_after: Optional[int] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    confirm_password: str = Field(max_length=128)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Password confirmation does not match password")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/profile. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: Optional[EmailStr] = None


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/v1/auth/change-password."""

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)
    confirm_password: str = Field(max_length=128)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Password confirmation does not match new password")
        return self


class ResendVerificationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr


class CreateAdminRequest(BaseModel):
    """Request body for POST /api/v1/auth/create-admin. Omitted fields fall back to ADMIN_* settings."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{id}."""

    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: str
    is_active: bool
    is_verified: bool
    last_login_at: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        """Build the public view of an identity. Hashes and lockout state stay server-side."""
        return cls(
            id=identity.id,
            email=identity.email,
            name=identity.display_name,
            role=identity.role,
            is_active=identity.is_active,
            is_verified=identity.is_verified,
            last_login_at=identity.last_login_at.isoformat() if identity.last_login_at else None,
            created_at=identity.created_at.isoformat() if identity.created_at else None,
        )


class AdminUserResponse(UserResponse):
    """UserResponse plus lockout state, for the admin user list."""

    failed_login_count: int = 0
    locked_until: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "AdminUserResponse":
        base = UserResponse.from_identity(identity).model_dump()
        return cls(
            **base,
            failed_login_count=identity.failed_login_count,
            locked_until=identity.locked_until.isoformat() if identity.locked_until else None,
        )


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    user: UserResponse


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class VerifyTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool = True
    user: UserResponse


class VerifyEmailResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class ResendVerificationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    cooldown: int


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks.

    An anonymous caller may also send "sessionId" in this body; it is read by
    the session dependency and ignored here.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    category: TaskCategoryEnum = TaskCategoryEnum.personal
    priority: TaskPriorityEnum = TaskPriorityEnum.medium
    due_date: Optional[date] = None
    tags: list[str] = Field(default_factory=list, max_length=10)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: list[str]) -> list[str]:
        return _normalize_tags(values)


class TaskUpdate(BaseModel):
    """Request body for PUT /api/v1/tasks/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[TaskCategoryEnum] = None
    priority: Optional[TaskPriorityEnum] = None
    status: Optional[TaskStatusEnum] = None
    completed: Optional[bool] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = Field(default=None, max_length=10)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        return _normalize_tags(values) if values is not None else None


class SubtaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)


class SubtaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    completed: bool
    completed_at: Optional[str]


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    category: str
    priority: str
    status: str
    completed: bool
    completed_at: Optional[str]
    due_date: Optional[str]
    tags: list[str]
    subtasks: list[SubtaskResponse]
    progress: int
    archived: bool
    archived_at: Optional[str]
    owner_identity_id: Optional[int]
    owner_session_id: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            category=task.category,
            priority=task.priority,
            status=task.status,
            completed=task.completed,
            completed_at=task.completed_at,
            due_date=task.due_date,
            tags=task.tags,
            subtasks=[
                SubtaskResponse(id=s.id, title=s.title, completed=s.completed, completed_at=s.completed_at)
                for s in task.subtasks
            ],
            progress=progress(task),
            archived=task.archived,
            archived_at=task.archived_at,
            owner_identity_id=task.owner_identity_id,
            owner_session_id=task.owner_session_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    tasks: list[TaskResponse]
    count: int


class TaskStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    completed: int
    pending: int
    high_priority: int
    overdue: int
    due_today: int


class TaskBulkChanges(BaseModel):
    """The fields a bulk update may set. Omitted fields are unchanged."""

    category: Optional[TaskCategoryEnum] = None
    priority: Optional[TaskPriorityEnum] = None
    status: Optional[TaskStatusEnum] = None
    completed: Optional[bool] = None
    due_date: Optional[date] = None


class TaskBulkUpdate(BaseModel):
    """Request body for POST /api/v1/tasks/bulk-update."""

    task_ids: list[int] = Field(default_factory=list, max_length=500)
    updates: TaskBulkChanges = Field(default_factory=TaskBulkChanges)


class TaskBulkDelete(BaseModel):
    """Request body for DELETE /api/v1/tasks/bulk-delete."""

    task_ids: list[int] = Field(default_factory=list, max_length=500)


class BulkUpdateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    modified_count: int


class BulkDeleteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    deleted_count: int


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class ContactCreate(BaseModel):
    """Request body for POST /api/v1/contact."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    subject: str = Field(min_length=5, max_length=100)
    message: str = Field(min_length=10, max_length=1000)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    company: Optional[str] = Field(default=None, max_length=100)
    project_type: ContactProjectTypeEnum = ContactProjectTypeEnum.other
    budget: BudgetEnum = BudgetEnum.unspecified
    timeline: TimelineEnum = TimelineEnum.flexible


class ContactStatusUpdate(BaseModel):
    status: ContactStatusEnum


class ContactNoteCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=500)


class ContactNoteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    added_by: int
    added_at: str


class ContactResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    subject: str
    message: str
    phone: Optional[str]
    company: Optional[str]
    project_type: Optional[str]
    budget: Optional[str]
    timeline: Optional[str]
    status: str
    is_spam: bool
    is_archived: bool
    notes: Optional[list[ContactNoteResponse]] = None
    read_at: Optional[str]
    replied_at: Optional[str]
    created_at: str

    @classmethod
    def from_contact(cls, contact: Contact, include_notes: bool = True) -> "ContactResponse":
        """Admin notes are internal: pass include_notes=False for the sender's view."""
        notes = None
        if include_notes:
            notes = [
                ContactNoteResponse(content=n.content, added_by=n.added_by, added_at=n.added_at) for n in contact.notes
            ]
        return cls(
            id=contact.id,
            name=contact.name,
            email=contact.email,
            subject=contact.subject,
            message=contact.message,
            phone=contact.phone,
            company=contact.company,
            project_type=contact.project_type,
            budget=contact.budget,
            timeline=contact.timeline,
            status=contact.status,
            is_spam=contact.is_spam,
            is_archived=contact.is_archived,
            notes=notes,
            read_at=contact.read_at,
            replied_at=contact.replied_at,
            created_at=contact.created_at,
        )


class ContactSubmittedResponse(BaseModel):
    """Public acknowledgement for POST /contact. Spam status is not disclosed."""

    model_config = ConfigDict(frozen=True)

    message: str
    id: int


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    pages: int
    total: int
    limit: int


class ContactListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    contacts: list[ContactResponse]
    pagination: Pagination


class ContactStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    spam: int
    by_status: dict[str, int]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """Request body for POST /api/v1/projects."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    long_description: str = Field(default="", max_length=2000)
    technologies: list[str] = Field(default_factory=list, max_length=30)
    category: ProjectCategoryEnum = ProjectCategoryEnum.web
    status: ProjectStatusEnum = ProjectStatusEnum.completed
    project_url: Optional[str] = Field(default=None, max_length=500, pattern=HTTP_URL_PATTERN)
    github_url: Optional[str] = Field(default=None, max_length=500, pattern=GITHUB_URL_PATTERN)
    featured: bool = False
    is_public: bool = True
    tags: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("technologies")
    @classmethod
    def check_technologies(cls, values: list[str]) -> list[str]:
        cleaned = [v.strip() for v in values if v.strip()]
        for v in cleaned:
            if len(v) > 30:
                raise ValueError("Each technology name cannot exceed 30 characters")
        return cleaned

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: list[str]) -> list[str]:
        return _normalize_tags(values)


class ProjectUpdate(BaseModel):
    """Request body for PUT /api/v1/projects/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    long_description: Optional[str] = Field(default=None, max_length=2000)
    technologies: Optional[list[str]] = Field(default=None, max_length=30)
    category: Optional[ProjectCategoryEnum] = None
    status: Optional[ProjectStatusEnum] = None
    project_url: Optional[str] = Field(default=None, max_length=500, pattern=HTTP_URL_PATTERN)
    github_url: Optional[str] = Field(default=None, max_length=500, pattern=GITHUB_URL_PATTERN)
    featured: Optional[bool] = None
    is_public: Optional[bool] = None
    tags: Optional[list[str]] = Field(default=None, max_length=20)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        return _normalize_tags(values) if values is not None else None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    long_description: str
    technologies: list[str]
    category: str
    status: str
    project_url: Optional[str]
    github_url: Optional[str]
    featured: bool
    is_public: bool
    view_count: int
    likes: int
    tags: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            title=project.title,
            description=project.description,
            long_description=project.long_description,
            technologies=project.technologies,
            category=project.category,
            status=project.status,
            project_url=project.project_url,
            github_url=project.github_url,
            featured=project.featured,
            is_public=project.is_public,
            view_count=project.view_count,
            likes=project.likes,
            tags=project.tags,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    projects: list[ProjectResponse]
    pagination: Pagination


class LikeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    likes: int


class TermCount(BaseModel):
    """A category, tag or technology with the number of items using it."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int


class ProjectCategoriesResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    categories: list[TermCount]


class ProjectOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    public: int
    private: int
    featured: int
    completed: int
    in_progress: int
    total_views: int
    total_likes: int


class ProjectStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    overview: ProjectOverview
    categories: list[TermCount]
    technologies: list[TermCount]


# ---------------------------------------------------------------------------
# Blog
# ---------------------------------------------------------------------------


def _clean_categories(values: list[str]) -> list[str]:
    result: list[str] = []
    for v in values:
        cleaned = v.strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BlogPostCreate(BaseModel):
    """Request body for POST /api/v1/blog. The slug is derived from the title."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=100_000)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    featured_image: Optional[str] = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list, max_length=20)
    categories: list[str] = Field(default_factory=list, max_length=10)
    status: BlogStatusEnum = BlogStatusEnum.draft
    publish_date: Optional[datetime] = None
    seo_title: Optional[str] = Field(default=None, max_length=60)
    seo_description: Optional[str] = Field(default=None, max_length=160)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: list[str]) -> list[str]:
        return _normalize_tags(values)

    @field_validator("categories")
    @classmethod
    def clean_categories(cls, values: list[str]) -> list[str]:
        return _clean_categories(values)

    @field_validator("publish_date")
    @classmethod
    def publish_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None


class BlogPostUpdate(BaseModel):
    """Request body for PUT /api/v1/blog/{id}. Omitted fields are unchanged.

    A new title re-derives the slug.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=100_000)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    featured_image: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[list[str]] = Field(default=None, max_length=20)
    categories: Optional[list[str]] = Field(default=None, max_length=10)
    status: Optional[BlogStatusEnum] = None
    publish_date: Optional[datetime] = None
    seo_title: Optional[str] = Field(default=None, max_length=60)
    seo_description: Optional[str] = Field(default=None, max_length=160)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        return _normalize_tags(values) if values is not None else None

    @field_validator("categories")
    @classmethod
    def clean_categories(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_categories(values) if values is not None else None

    @field_validator("publish_date")
    @classmethod
    def publish_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None


class BlogPostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    slug: str
    url: str
    content: str
    excerpt: str
    featured_image: Optional[str]
    tags: list[str]
    categories: list[str]
    status: str
    publish_date: Optional[str]
    reading_time: int
    seo_title: Optional[str]
    seo_description: Optional[str]
    view_count: int
    like_count: int
    author_id: Optional[int]
    created_at: str
    updated_at: str

    @classmethod
    def from_post(cls, post: BlogPost) -> "BlogPostResponse":
        return cls(
            id=post.id,
            title=post.title,
            slug=post.slug,
            url=f"/blog/{post.slug}",
            content=post.content,
            excerpt=post.excerpt,
            featured_image=post.featured_image,
            tags=post.tags,
            categories=post.categories,
            status=post.status,
            publish_date=post.publish_date,
            reading_time=post.reading_time,
            seo_title=post.seo_title,
            seo_description=post.seo_description,
            view_count=post.view_count,
            like_count=post.like_count,
            author_id=post.owner_identity_id,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class BlogPostListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts: list[BlogPostResponse]
    pagination: Pagination


class FeaturedPostsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts: list[BlogPostResponse]


class BlogPostDetailResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    post: BlogPostResponse
    related_posts: list[BlogPostResponse]


class PopularTagsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    tags: list[TermCount]


class PopularCategoriesResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    categories: list[TermCount]


class BlogStatsResponse(BaseModel):
    """Totals cover published posts; the *_count fields count every status."""

    model_config = ConfigDict(frozen=True)

    total_posts: int
    total_views: int
    total_likes: int
    avg_reading_time: float
    draft_count: int
    published_count: int
    archived_count: int


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------


class SocialLinkModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    platform: str = Field(min_length=1, max_length=50)
    url: str = Field(max_length=500, pattern=HTTP_URL_PATTERN)
    icon: str = Field(min_length=1, max_length=50)


class FooterUpdate(BaseModel):
    """Request body for PUT /api/v1/settings/footer. Omitted fields are unchanged."""

    copyright: Optional[str] = Field(default=None, max_length=200)
    social_links: Optional[list[SocialLinkModel]] = Field(default=None, max_length=20)
    custom_text: Optional[str] = Field(default=None, max_length=1000)


class SiteUpdate(BaseModel):
    """Request body for PUT /api/v1/settings/site. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)


class FooterSection(BaseModel):
    copyright: str
    social_links: list[SocialLinkModel]
    custom_text: str


class SiteSection(BaseModel):
    title: str
    description: str


class SettingsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    footer: FooterSection
    site: SiteSection
    updated_at: str

    @classmethod
    def from_settings(cls, settings: SiteSettings) -> "SettingsResponse":
        return cls(
            footer=FooterSection(
                copyright=settings.copyright,
                social_links=[
                    SocialLinkModel(platform=link.platform, url=link.url, icon=link.icon)
                    for link in settings.social_links
                ],
                custom_text=settings.custom_text,
            ),
            site=SiteSection(title=settings.site_title, description=settings.site_description),
            updated_at=settings.updated_at,
        )
