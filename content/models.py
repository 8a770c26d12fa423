"""
content/models.py -- Domain dataclasses for portfolio content.

Pure data containers. Persistence lives in content/store.py, the one-row site
settings policy in content/settings.py.

Every owned resource carries owner_identity_id and owner_session_id so the
ownership check in auth/ownership.py can treat tasks, contacts and projects
alike. Blog posts are owned by their author. Timestamps are ISO 8601 strings
(UTC), set by the store.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Subtask:
    """One checklist item inside a task, stored with its parent."""

    id: str
    title: str
    completed: bool = False
    completed_at: Optional[str] = None


@dataclass
class Task:
    """A to-do item owned by an identity or by an anonymous browser session.

    completed and status move together: completed is True exactly when status
    is "completed", and completed_at is set at that transition.

    id is None before the record is written to the database.
    """

    title: str
    description: str = ""
    category: str = "Personal"
    priority: str = "medium"
    status: str = "pending"
    completed: bool = False
    completed_at: Optional[str] = None
    due_date: Optional[str] = None  # ISO 8601 date or datetime
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    archived: bool = False
    archived_at: Optional[str] = None
    owner_identity_id: Optional[int] = None
    owner_session_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ContactNote:
    content: str
    added_by: int
    added_at: str


@dataclass
class Contact:
    """A message submitted through the public contact form.

    is_spam is decided on submission by content.spam.looks_like_spam; the admin
    can still mark a message as spam later, which also closes it.
    Owner ids record who sent it (identity or session) so the sender can read
    it back; everything else about contacts is admin only.
    """

    name: str
    email: str
    subject: str
    message: str
    phone: Optional[str] = None
    company: Optional[str] = None
    project_type: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    status: str = "New"
    is_spam: bool = False
    is_archived: bool = False
    notes: list[ContactNote] = field(default_factory=list)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    owner_identity_id: Optional[int] = None
    owner_session_id: Optional[str] = None
    read_at: Optional[str] = None
    replied_at: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Project:
    """A portfolio project. Created by the admin, readable by anyone when public."""

    title: str
    description: str
    long_description: str = ""
    technologies: list[str] = field(default_factory=list)
    category: str = "Web Development"
    status: str = "Completed"
    project_url: Optional[str] = None
    github_url: Optional[str] = None
    featured: bool = False
    is_public: bool = True
    view_count: int = 0
    likes: int = 0
    tags: list[str] = field(default_factory=list)
    owner_identity_id: Optional[int] = None
    # Projects are never session-owned; present for the ownership check.
    owner_session_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class BlogPost:
    """An article written by the admin. Only published posts are public.

    slug is derived from the title and unique across all posts. publish_date is
    stamped the first time the post is published; reading_time is in minutes.
    """

    title: str
    slug: str
    content: str
    excerpt: str = ""
    featured_image: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    status: str = "draft"
    publish_date: Optional[str] = None
    reading_time: int = 0
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    view_count: int = 0
    like_count: int = 0
    owner_identity_id: Optional[int] = None
    owner_session_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class SocialLink:
    platform: str
    url: str
    icon: str


@dataclass
class SiteSettings:
    """The single site-wide settings row (footer and site metadata)."""

    copyright: str
    site_title: str
    site_description: str
    custom_text: str = ""
    social_links: list[SocialLink] = field(default_factory=list)
    updated_at: str = ""
