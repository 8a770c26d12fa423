"""
content/store.py -- SQLAlchemy Core persistence layer for portfolio content.

Pattern: Repository + Data Mapper (same as auth/store.py).
ContentStore is the repository; the _row_to_* functions are the mappers.
Routes never touch SQL directly.

Security:
  All queries use bound parameters. Search terms go through
  ColumnOperators.icontains(..., autoescape=True) so % and _ in user input
  match literally.

List columns (tags, technologies, categories, social_links) and embedded
records (task subtasks, contact notes) are stored as JSON arrays in TEXT
columns. Timestamps are ISO 8601 strings (UTC); task due dates are
plain ISO dates (YYYY-MM-DD) so they compare correctly as strings.

The site_settings table holds at most one row, enforced by CHECK (id = 1).
Blog post slugs are unique; a clash surfaces as SlugExists.

Schema migration notes:
  Columns added after the first release (task subtasks and archiving, contact
  notes and archiving) are added with ALTER TABLE ADD COLUMN on startup so an
  existing SQLite file is upgraded in place.

DB path: content/folio_content.db unless CONTENT_DB_URL is set.

Layer rule: no imports from api/, auth/, or mail/.
"""

import json
from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from content.models import BlogPost, Contact, ContactNote, Project, SiteSettings, SocialLink, Subtask, Task
from core.errors import SlugExists

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'folio_content.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("category", String(20), nullable=False),
    Column("priority", String(10), nullable=False),
    Column("status", String(20), nullable=False),
    Column("completed", Integer, nullable=False, server_default="0"),
    Column("completed_at", String(32)),
    Column("due_date", String(32)),
    Column("tags", Text),  # JSON array
    Column("subtasks", Text),  # JSON array of {id, title, completed, completed_at}
    Column("archived", Integer, nullable=False, server_default="0"),
    Column("archived_at", String(32)),
    Column("owner_identity_id", Integer, index=True),
    Column("owner_session_id", String(128), index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_contacts = Table(
    "contacts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False),
    Column("email", String(255), nullable=False),
    Column("subject", String(100), nullable=False),
    Column("message", Text, nullable=False),
    Column("phone", String(30)),
    Column("company", String(100)),
    Column("project_type", String(30)),
    Column("budget", String(30)),
    Column("timeline", String(30)),
    Column("status", String(20), nullable=False, server_default="New"),
    Column("is_spam", Integer, nullable=False, server_default="0"),
    Column("is_archived", Integer, nullable=False, server_default="0"),
    Column("notes", Text),  # JSON array of {content, added_by, added_at}
    Column("ip_address", String(45)),
    Column("user_agent", String(500)),
    Column("owner_identity_id", Integer),
    Column("owner_session_id", String(128)),
    Column("read_at", String(32)),
    Column("replied_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("description", String(500), nullable=False),
    Column("long_description", Text, nullable=False, server_default=""),
    Column("technologies", Text),  # JSON array
    Column("category", String(30), nullable=False),
    Column("status", String(20), nullable=False),
    Column("project_url", String(500)),
    Column("github_url", String(500)),
    Column("featured", Integer, nullable=False, server_default="0"),
    Column("is_public", Integer, nullable=False, server_default="1"),
    Column("view_count", Integer, nullable=False, server_default="0"),
    Column("likes", Integer, nullable=False, server_default="0"),
    Column("tags", Text),  # JSON array
    Column("owner_identity_id", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_blog_posts = Table(
    "blog_posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("slug", String(200), nullable=False, unique=True),
    Column("content", Text, nullable=False),
    Column("excerpt", String(500), nullable=False, server_default=""),
    Column("featured_image", String(500)),
    Column("tags", Text),  # JSON array
    Column("categories", Text),  # JSON array
    Column("status", String(20), nullable=False, index=True),
    Column("publish_date", String(32)),
    Column("reading_time", Integer, nullable=False, server_default="0"),
    Column("seo_title", String(60)),
    Column("seo_description", String(160)),
    Column("view_count", Integer, nullable=False, server_default="0"),
    Column("like_count", Integer, nullable=False, server_default="0"),
    Column("owner_identity_id", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_site_settings = Table(
    "site_settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("copyright", String(200), nullable=False),
    Column("custom_text", Text, nullable=False, server_default=""),
    Column("social_links", Text),  # JSON array of {platform, url, icon}
    Column("site_title", String(200), nullable=False),
    Column("site_description", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint("id = 1", name="single_row"),
)

_JSON_COLUMNS = ("tags", "technologies", "categories")
_RECORD_COLUMNS = ("subtasks", "notes")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------

_ADDED_COLUMNS = {
    "tasks": [
        ("subtasks", "TEXT"),
        ("archived", "INTEGER NOT NULL DEFAULT 0"),
        ("archived_at", "VARCHAR(32)"),
    ],
    "contacts": [
        ("is_archived", "INTEGER NOT NULL DEFAULT 0"),
        ("notes", "TEXT"),
    ],
}


def _migrate_tables(conn) -> None:
    """Add columns that an older SQLite file is missing.

    metadata.create_all() creates missing tables but never alters existing
    ones. Table and column names are constants, not user input.
    """
    for table, additions in _ADDED_COLUMNS.items():
        existing = {row[1] for row in conn.execute(text(f"PRAGMA table_info({table})"))}
        for col, typ in additions:
            if col not in existing:
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col} {typ}"))  # nosemgrep
    conn.commit()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode_lists(fields: dict) -> dict:
    for key in _JSON_COLUMNS:
        if key in fields and fields[key] is not None:
            fields[key] = json.dumps(fields[key])
    for key in _RECORD_COLUMNS:
        if key in fields and fields[key] is not None:
            fields[key] = json.dumps([asdict(record) for record in fields[key]])
    return fields


def _all_of(clauses: list):
    where = None
    for clause in clauses:
        where = clause if where is None else where & clause
    return where


def _tally(lists, limit: Optional[int] = None) -> list[tuple[str, int]]:
    """Count values across JSON-array cells, most common first, ties by name."""
    counts: Counter = Counter()
    for raw in lists:
        counts.update(json.loads(raw) if raw else [])
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit] if limit is not None else ranked


def _owner_clause(table: Table, owner_identity_id: Optional[int], owner_session_id: Optional[str]):
    """WHERE clause scoping a query to one owner.

    Identity wins when both are given, mirroring Caller.owner_fields().
    """
    if owner_identity_id is not None:
        return table.c.owner_identity_id == owner_identity_id
    return table.c.owner_session_id == owner_session_id


def _search_clause(term: str, *columns):
    clause = None
    for col in columns:
        match = col.icontains(term, autoescape=True)
        clause = match if clause is None else clause | match
    return clause


def _task_order(sort: str) -> list:
    if sort == "oldest":
        return [_tasks.c.created_at.asc(), _tasks.c.id.asc()]
    if sort == "priority":
        rank = case((_tasks.c.priority == "high", 0), (_tasks.c.priority == "medium", 1), else_=2)
        return [rank, _tasks.c.created_at.desc()]
    if sort == "dueDate":
        # Tasks without a due date sort last.
        return [_tasks.c.due_date.is_(None), _tasks.c.due_date.asc(), _tasks.c.id.asc()]
    if sort == "title":
        return [func.lower(_tasks.c.title).asc()]
    return [_tasks.c.created_at.desc(), _tasks.c.id.desc()]


def _project_order(sort: str) -> list:
    if sort == "oldest":
        return [_projects.c.created_at.asc(), _projects.c.id.asc()]
    if sort == "title":
        return [func.lower(_projects.c.title).asc()]
    if sort == "views":
        return [_projects.c.view_count.desc()]
    if sort == "likes":
        return [_projects.c.likes.desc()]
    if sort == "featured":
        return [_projects.c.featured.desc(), _projects.c.created_at.desc()]
    return [_projects.c.created_at.desc(), _projects.c.id.desc()]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ContentStore:
    """Repository for tasks, contacts, projects and the site settings row.

    Usage:
        store = ContentStore()
        task = store.create_task(Task(title="Write tests", owner_session_id="abc"))
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout_seconds: float = 5.0) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout_seconds
        else:
            engine_kwargs["pool_timeout"] = timeout_seconds
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)
        if db_url.startswith("sqlite"):
            with self.engine.connect() as conn:
                _migrate_tables(conn)

    def _count(self, conn, table: Table, where=None) -> int:
        query = select(func.count()).select_from(table)
        if where is not None:
            query = query.where(where)
        return conn.execute(query).scalar() or 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> Task:
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    category=task.category,
                    priority=task.priority,
                    status=task.status,
                    completed=1 if task.completed else 0,
                    completed_at=task.completed_at,
                    due_date=task.due_date,
                    tags=json.dumps(task.tags),
                    subtasks=json.dumps([asdict(s) for s in task.subtasks]),
                    archived=1 if task.archived else 0,
                    archived_at=task.archived_at,
                    owner_identity_id=task.owner_identity_id,
                    owner_session_id=task.owner_session_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            task_id = result.inserted_primary_key[0]
        return self.get_task(task_id)

    def get_task(self, task_id: int) -> Optional[Task]:
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def list_tasks(
        self,
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
        completed: Optional[bool] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "newest",
        archived: Optional[bool] = False,
        limit: Optional[int] = 100,
    ) -> list[Task]:
        """Return one owner's tasks, filtered and sorted.

        Archived tasks are left out unless archived is True (only archived) or
        None (both). limit=None returns every match.
        """
        query = _tasks.select().where(_owner_clause(_tasks, owner_identity_id, owner_session_id))
        if archived is not None:
            query = query.where(_tasks.c.archived == (1 if archived else 0))
        if completed is not None:
            query = query.where(_tasks.c.completed == (1 if completed else 0))
        if category:
            query = query.where(_tasks.c.category == category)
        if priority:
            query = query.where(_tasks.c.priority == priority)
        if search:
            query = query.where(_search_clause(search, _tasks.c.title, _tasks.c.description, _tasks.c.tags))
        query = query.order_by(*_task_order(sort))
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_task(r) for r in rows]

    def _open_tasks_due(
        self, owner_identity_id: Optional[int], owner_session_id: Optional[str], due_clause
    ) -> list[Task]:
        query = (
            _tasks.select()
            .where(
                _owner_clause(_tasks, owner_identity_id, owner_session_id)
                & (_tasks.c.archived == 0)
                & (_tasks.c.completed == 0)
                & _tasks.c.due_date.is_not(None)
                & due_clause
            )
            .order_by(_tasks.c.due_date.asc(), _tasks.c.id.asc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_task(r) for r in rows]

    def overdue_tasks(
        self,
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
        today: str = "",
    ) -> list[Task]:
        """Open, unarchived tasks due before today (ISO date), earliest first."""
        return self._open_tasks_due(owner_identity_id, owner_session_id, func.substr(_tasks.c.due_date, 1, 10) < today)

    def tasks_due_today(
        self,
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
        today: str = "",
    ) -> list[Task]:
        return self._open_tasks_due(owner_identity_id, owner_session_id, func.substr(_tasks.c.due_date, 1, 10) == today)

    def set_task_archived(self, task_id: int, archived: bool) -> Optional[Task]:
        now = _now_iso()
        return self.update_task(task_id, archived=archived, archived_at=now if archived else None)

    def bulk_update_tasks(
        self,
        task_ids: list[int],
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
        completed: Optional[bool] = None,
        status: Optional[str] = None,
        **fields,
    ) -> int:
        """Apply one change to the owner's unarchived tasks among task_ids.

        completed and status follow content.tasks.completion_fields, evaluated
        per row in SQL so completed_at survives on tasks already done. Returns
        the number of rows changed.
        """
        now = _now_iso()
        if status is not None:
            completed = status == "completed"
        if completed is not None:
            if status is None:
                reopened = case((_tasks.c.status == "completed", "pending"), else_=_tasks.c.status)
                status = "completed" if completed else reopened
            fields["status"] = status
            fields["completed"] = 1 if completed else 0
            kept_or_now = case((_tasks.c.completed == 1, _tasks.c.completed_at), else_=now)
            fields["completed_at"] = kept_or_now if completed else None
        fields = _encode_lists(fields)
        fields["updated_at"] = now
        where = (
            _tasks.c.id.in_(task_ids)
            & _owner_clause(_tasks, owner_identity_id, owner_session_id)
            & (_tasks.c.archived == 0)
        )
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(where).values(**fields))
            conn.commit()
        return result.rowcount

    def bulk_delete_tasks(
        self,
        task_ids: list[int],
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
    ) -> int:
        where = _tasks.c.id.in_(task_ids) & _owner_clause(_tasks, owner_identity_id, owner_session_id)
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(where))
            conn.commit()
        return result.rowcount

    def update_task(self, task_id: int, **fields) -> Optional[Task]:
        """Apply a partial update. Returns the updated task, or None if absent."""
        for key in ("completed", "archived"):
            if key in fields:
                fields[key] = 1 if fields[key] else 0
        fields = _encode_lists(fields)
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_task(task_id)

    def delete_task(self, task_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    def task_stats(
        self,
        owner_identity_id: Optional[int] = None,
        owner_session_id: Optional[str] = None,
        today: str = "",
    ) -> dict[str, int]:
        """Count one owner's unarchived tasks by state. today is an ISO date (YYYY-MM-DD)."""
        tasks = self.list_tasks(owner_identity_id=owner_identity_id, owner_session_id=owner_session_id, limit=None)
        counts = {"total": 0, "completed": 0, "pending": 0, "high_priority": 0, "overdue": 0, "due_today": 0}
        for task in tasks:
            counts["total"] += 1
            if task.completed:
                counts["completed"] += 1
                continue
            counts["pending"] += 1
            if task.priority == "high":
                counts["high_priority"] += 1
            if task.due_date and today:
                due = task.due_date[:10]
                if due < today:
                    counts["overdue"] += 1
                elif due == today:
                    counts["due_today"] += 1
        return counts

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def create_contact(self, contact: Contact) -> Contact:
        now = _now_iso()
        values = asdict(contact)
        for key in ("id", "created_at", "updated_at"):
            values.pop(key)
        values["is_spam"] = 1 if contact.is_spam else 0
        values["is_archived"] = 1 if contact.is_archived else 0
        values["notes"] = json.dumps(values["notes"])
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.insert().values(**values, created_at=now, updated_at=now))
            conn.commit()
            contact_id = result.inserted_primary_key[0]
        return self.get_contact(contact_id)

    def get_contact(self, contact_id: int) -> Optional[Contact]:
        with self.engine.connect() as conn:
            row = conn.execute(_contacts.select().where(_contacts.c.id == contact_id)).fetchone()
        return _row_to_contact(row) if row is not None else None

    def list_contacts(
        self,
        status: Optional[str] = None,
        is_spam: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        is_archived: Optional[bool] = None,
    ) -> tuple[list[Contact], int]:
        """Return (page of contacts newest first, total matching count)."""
        clauses = []
        if status:
            clauses.append(_contacts.c.status == status)
        if is_spam is not None:
            clauses.append(_contacts.c.is_spam == (1 if is_spam else 0))
        if is_archived is not None:
            clauses.append(_contacts.c.is_archived == (1 if is_archived else 0))
        if search:
            clauses.append(
                _search_clause(search, _contacts.c.name, _contacts.c.email, _contacts.c.subject, _contacts.c.message)
            )
        where = _all_of(clauses)

        query = _contacts.select()
        if where is not None:
            query = query.where(where)
        query = query.order_by(_contacts.c.created_at.desc(), _contacts.c.id.desc())
        query = query.offset((page - 1) * limit).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = self._count(conn, _contacts, where)
        return [_row_to_contact(r) for r in rows], total

    def update_contact_status(self, contact_id: int, status: str) -> Optional[Contact]:
        """Set status; the first move to Read / Replied stamps read_at / replied_at."""
        contact = self.get_contact(contact_id)
        if contact is None:
            return None
        now = _now_iso()
        fields: dict = {"status": status, "updated_at": now}
        if status == "Read" and contact.read_at is None:
            fields["read_at"] = now
        elif status == "Replied" and contact.replied_at is None:
            fields["replied_at"] = now
        with self.engine.connect() as conn:
            conn.execute(_contacts.update().where(_contacts.c.id == contact_id).values(**fields))
            conn.commit()
        return self.get_contact(contact_id)

    def _update_contact(self, contact_id: int, **fields) -> Optional[Contact]:
        fields = _encode_lists(fields)
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.update().where(_contacts.c.id == contact_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_contact(contact_id)

    def add_contact_note(self, contact_id: int, content: str, added_by: int) -> Optional[Contact]:
        contact = self.get_contact(contact_id)
        if contact is None:
            return None
        note = ContactNote(content=content, added_by=added_by, added_at=_now_iso())
        return self._update_contact(contact_id, notes=[*contact.notes, note])

    def mark_contact_spam(self, contact_id: int) -> Optional[Contact]:
        """Flag as spam and close the conversation."""
        return self._update_contact(contact_id, is_spam=1, status="Closed")

    def archive_contact(self, contact_id: int) -> Optional[Contact]:
        return self._update_contact(contact_id, is_archived=1)

    def delete_contact(self, contact_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.delete().where(_contacts.c.id == contact_id))
            conn.commit()
        return result.rowcount > 0

    def contact_stats(self) -> dict:
        """Return {"total", "spam", "by_status": {status: count}}."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_contacts.c.status, func.count()).select_from(_contacts).group_by(_contacts.c.status)
            ).fetchall()
            total = self._count(conn, _contacts)
            spam = self._count(conn, _contacts, _contacts.c.is_spam == 1)
        return {"total": total, "spam": spam, "by_status": {status: count for status, count in rows}}

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _projects.insert().values(
                    title=project.title,
                    description=project.description,
                    long_description=project.long_description,
                    technologies=json.dumps(project.technologies),
                    category=project.category,
                    status=project.status,
                    project_url=project.project_url,
                    github_url=project.github_url,
                    featured=1 if project.featured else 0,
                    is_public=1 if project.is_public else 0,
                    view_count=0,
                    likes=0,
                    tags=json.dumps(project.tags),
                    owner_identity_id=project.owner_identity_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            project_id = result.inserted_primary_key[0]
        return self.get_project(project_id)

    def get_project(self, project_id: int) -> Optional[Project]:
        with self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        return _row_to_project(row) if row is not None else None

    def list_projects(
        self,
        include_private: bool = False,
        category: Optional[str] = None,
        status: Optional[str] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        sort: str = "newest",
        page: int = 1,
        limit: int = 12,
    ) -> tuple[list[Project], int]:
        """Return (page of projects, total matching count)."""
        clauses = []
        if not include_private:
            clauses.append(_projects.c.is_public == 1)
        if category:
            clauses.append(_projects.c.category == category)
        if status:
            clauses.append(_projects.c.status == status)
        if featured is not None:
            clauses.append(_projects.c.featured == (1 if featured else 0))
        if search:
            clauses.append(
                _search_clause(
                    search,
                    _projects.c.title,
                    _projects.c.description,
                    _projects.c.technologies,
                    _projects.c.tags,
                )
            )
        where = _all_of(clauses)

        query = _projects.select()
        if where is not None:
            query = query.where(where)
        query = query.order_by(*_project_order(sort)).offset((page - 1) * limit).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = self._count(conn, _projects, where)
        return [_row_to_project(r) for r in rows], total

    def featured_projects(self, limit: int = 3) -> list[Project]:
        query = (
            _projects.select()
            .where((_projects.c.featured == 1) & (_projects.c.is_public == 1))
            .order_by(_projects.c.created_at.desc(), _projects.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_project(r) for r in rows]

    def update_project(self, project_id: int, **fields) -> Optional[Project]:
        for key in ("featured", "is_public"):
            if key in fields:
                fields[key] = 1 if fields[key] else 0
        fields = _encode_lists(fields)
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_projects.update().where(_projects.c.id == project_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_project(project_id)

    def _increment(self, table: Table, row_id: int, column: str) -> bool:
        col = table.c[column]
        with self.engine.connect() as conn:
            # Single UPDATE so concurrent increments never lose a count.
            result = conn.execute(table.update().where(table.c.id == row_id).values({col: col + 1}))
            conn.commit()
        return result.rowcount > 0

    def increment_views(self, project_id: int) -> Optional[Project]:
        if not self._increment(_projects, project_id, "view_count"):
            return None
        return self.get_project(project_id)

    def like_project(self, project_id: int) -> Optional[Project]:
        if not self._increment(_projects, project_id, "likes"):
            return None
        return self.get_project(project_id)

    def project_categories(self) -> list[tuple[str, int]]:
        """Public projects per category, largest first."""
        count = func.count().label("count")
        query = (
            select(_projects.c.category, count)
            .where(_projects.c.is_public == 1)
            .group_by(_projects.c.category)
            .order_by(count.desc(), _projects.c.category.asc())
        )
        with self.engine.connect() as conn:
            return [(category, n) for category, n in conn.execute(query).fetchall()]

    def project_stats(self, top_technologies: int = 10) -> dict:
        """Return {"overview": {...counts}, "categories": [...], "technologies": [...]}.

        categories and technologies count public projects only.
        """
        public = case((_projects.c.is_public == 1, 1), else_=0)
        query = select(
            func.count(),
            func.coalesce(func.sum(public), 0),
            func.coalesce(func.sum(_projects.c.featured), 0),
            func.coalesce(func.sum(case((_projects.c.status == "Completed", 1), else_=0)), 0),
            func.coalesce(func.sum(case((_projects.c.status == "In Progress", 1), else_=0)), 0),
            func.coalesce(func.sum(_projects.c.view_count), 0),
            func.coalesce(func.sum(_projects.c.likes), 0),
        ).select_from(_projects)
        with self.engine.connect() as conn:
            total, public_count, featured, completed, in_progress, views, likes = conn.execute(query).one()
            technologies = conn.execute(
                select(_projects.c.technologies).where(_projects.c.is_public == 1)
            ).scalars().all()
        return {
            "overview": {
                "total": total,
                "public": public_count,
                "private": total - public_count,
                "featured": featured,
                "completed": completed,
                "in_progress": in_progress,
                "total_views": views,
                "total_likes": likes,
            },
            "categories": self.project_categories(),
            "technologies": _tally(technologies, top_technologies),
        }

    def delete_project(self, project_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_projects.delete().where(_projects.c.id == project_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Blog posts
    # ------------------------------------------------------------------

    def create_blog_post(self, post: BlogPost) -> BlogPost:
        """Insert a post. Raises SlugExists when another post has the same slug."""
        now = _now_iso()
        values = asdict(post)
        for key in ("id", "owner_session_id", "created_at", "updated_at"):
            values.pop(key)
        values = _encode_lists(values)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_blog_posts.insert().values(**values, created_at=now, updated_at=now))
                conn.commit()
                post_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise SlugExists() from exc
        return self.get_blog_post(post_id)

    def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        with self.engine.connect() as conn:
            row = conn.execute(_blog_posts.select().where(_blog_posts.c.id == post_id)).fetchone()
        return _row_to_blog_post(row) if row is not None else None

    def find_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        with self.engine.connect() as conn:
            row = conn.execute(_blog_posts.select().where(_blog_posts.c.slug == slug)).fetchone()
        return _row_to_blog_post(row) if row is not None else None

    def list_blog_posts(
        self,
        status: Optional[str] = None,
        tag: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        newest_published_first: bool = True,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[BlogPost], int]:
        """Return (page of posts, total matching count).

        The public listing sorts by publish date and also searches tags; the
        admin listing sorts by creation time.
        """
        clauses = []
        if status:
            clauses.append(_blog_posts.c.status == status)
        if tag:
            clauses.append(_blog_posts.c.tags.contains(json.dumps(tag.lower()), autoescape=True))
        if category:
            clauses.append(_blog_posts.c.categories.contains(json.dumps(category), autoescape=True))
        if search:
            columns = [_blog_posts.c.title, _blog_posts.c.content, _blog_posts.c.excerpt]
            if newest_published_first:
                columns.append(_blog_posts.c.tags)
            clauses.append(_search_clause(search, *columns))
        where = _all_of(clauses)

        query = _blog_posts.select()
        if where is not None:
            query = query.where(where)
        if newest_published_first:
            query = query.order_by(_blog_posts.c.publish_date.desc(), _blog_posts.c.id.desc())
        else:
            query = query.order_by(_blog_posts.c.created_at.desc(), _blog_posts.c.id.desc())
        query = query.offset((page - 1) * limit).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = self._count(conn, _blog_posts, where)
        return [_row_to_blog_post(r) for r in rows], total

    def featured_blog_posts(self, limit: int = 3) -> list[BlogPost]:
        """Latest published posts that carry a featured image."""
        query = (
            _blog_posts.select()
            .where(
                (_blog_posts.c.status == "published")
                & _blog_posts.c.featured_image.is_not(None)
                & (_blog_posts.c.featured_image != "")
            )
            .order_by(_blog_posts.c.publish_date.desc(), _blog_posts.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_blog_post(r) for r in rows]

    def related_blog_posts(self, post: BlogPost, limit: int = 3) -> list[BlogPost]:
        """Other published posts sharing at least one tag with post."""
        if not post.tags:
            return []
        shares_tag = None
        for tag in post.tags:
            match = _blog_posts.c.tags.contains(json.dumps(tag), autoescape=True)
            shares_tag = match if shares_tag is None else shares_tag | match
        query = (
            _blog_posts.select()
            .where((_blog_posts.c.status == "published") & (_blog_posts.c.id != post.id) & shares_tag)
            .order_by(_blog_posts.c.publish_date.desc(), _blog_posts.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_blog_post(r) for r in rows]

    def update_blog_post(self, post_id: int, **fields) -> Optional[BlogPost]:
        """Partial update. Raises SlugExists when a new slug clashes with another post."""
        fields = _encode_lists(fields)
        fields["updated_at"] = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_blog_posts.update().where(_blog_posts.c.id == post_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise SlugExists() from exc
        if result.rowcount == 0:
            return None
        return self.get_blog_post(post_id)

    def increment_blog_views(self, post_id: int) -> Optional[BlogPost]:
        if not self._increment(_blog_posts, post_id, "view_count"):
            return None
        return self.get_blog_post(post_id)

    def delete_blog_post(self, post_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_blog_posts.delete().where(_blog_posts.c.id == post_id))
            conn.commit()
        return result.rowcount > 0

    def popular_blog_terms(self, column: str, limit: int = 10) -> list[tuple[str, int]]:
        """Most used tags or categories across published posts: [(term, count)]."""
        query = select(_blog_posts.c[column]).where(_blog_posts.c.status == "published")
        with self.engine.connect() as conn:
            cells = conn.execute(query).scalars().all()
        return _tally(cells, limit)

    def blog_stats(self) -> dict:
        """Totals over published posts plus a count per status."""
        published = _blog_posts.c.status == "published"
        totals = select(
            func.count(),
            func.coalesce(func.sum(_blog_posts.c.view_count), 0),
            func.coalesce(func.sum(_blog_posts.c.like_count), 0),
            func.coalesce(func.avg(_blog_posts.c.reading_time), 0),
        ).where(published)
        by_status = select(_blog_posts.c.status, func.count()).group_by(_blog_posts.c.status)
        with self.engine.connect() as conn:
            posts, views, likes, avg_reading = conn.execute(totals).one()
            counts = dict(conn.execute(by_status).fetchall())
        return {
            "total_posts": posts,
            "total_views": views,
            "total_likes": likes,
            "avg_reading_time": float(avg_reading),
            "draft_count": counts.get("draft", 0),
            "published_count": counts.get("published", 0),
            "archived_count": counts.get("archived", 0),
        }

    # ------------------------------------------------------------------
    # Site settings (single row)
    # ------------------------------------------------------------------

    def get_site_settings(self) -> Optional[SiteSettings]:
        with self.engine.connect() as conn:
            row = conn.execute(_site_settings.select().where(_site_settings.c.id == 1)).fetchone()
        return _row_to_site_settings(row) if row is not None else None

    def insert_site_settings(self, settings: SiteSettings) -> bool:
        """Insert the settings row. Returns False if it already exists."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _site_settings.insert().values(
                        id=1,
                        copyright=settings.copyright,
                        custom_text=settings.custom_text,
                        social_links=json.dumps([asdict(link) for link in settings.social_links]),
                        site_title=settings.site_title,
                        site_description=settings.site_description,
                        updated_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError:
            # A concurrent get-or-create inserted the row first.
            return False
        return True

    def update_site_settings(self, **fields) -> Optional[SiteSettings]:
        if "social_links" in fields:
            fields["social_links"] = json.dumps([asdict(link) for link in fields["social_links"]])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_site_settings.update().where(_site_settings.c.id == 1).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_site_settings()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description or "",
        category=row.category,
        priority=row.priority,
        status=row.status,
        completed=bool(row.completed),
        completed_at=row.completed_at,
        due_date=row.due_date,
        tags=json.loads(row.tags) if row.tags else [],
        subtasks=[Subtask(**s) for s in json.loads(row.subtasks)] if row.subtasks else [],
        archived=bool(row.archived),
        archived_at=row.archived_at,
        owner_identity_id=row.owner_identity_id,
        owner_session_id=row.owner_session_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_contact(row) -> Contact:
    return Contact(
        id=row.id,
        name=row.name,
        email=row.email,
        subject=row.subject,
        message=row.message,
        phone=row.phone,
        company=row.company,
        project_type=row.project_type,
        budget=row.budget,
        timeline=row.timeline,
        status=row.status,
        is_spam=bool(row.is_spam),
        is_archived=bool(row.is_archived),
        notes=[ContactNote(**n) for n in json.loads(row.notes)] if row.notes else [],
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        owner_identity_id=row.owner_identity_id,
        owner_session_id=row.owner_session_id,
        read_at=row.read_at,
        replied_at=row.replied_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        title=row.title,
        description=row.description,
        long_description=row.long_description or "",
        technologies=json.loads(row.technologies) if row.technologies else [],
        category=row.category,
        status=row.status,
        project_url=row.project_url,
        github_url=row.github_url,
        featured=bool(row.featured),
        is_public=bool(row.is_public),
        view_count=row.view_count,
        likes=row.likes,
        tags=json.loads(row.tags) if row.tags else [],
        owner_identity_id=row.owner_identity_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_site_settings(row) -> SiteSettings:
    links = json.loads(row.social_links) if row.social_links else []
    return SiteSettings(
        copyright=row.copyright,
        custom_text=row.custom_text or "",
        social_links=[SocialLink(**link) for link in links],
        site_title=row.site_title,
        site_description=row.site_description,
        updated_at=row.updated_at,
    )


def _row_to_blog_post(row) -> BlogPost:
    return BlogPost(
        id=row.id,
        title=row.title,
        slug=row.slug,
        content=row.content,
        excerpt=row.excerpt or "",
        featured_image=row.featured_image,
        tags=json.loads(row.tags) if row.tags else [],
        categories=json.loads(row.categories) if row.categories else [],
        status=row.status,
        publish_date=row.publish_date,
        reading_time=row.reading_time,
        seo_title=row.seo_title,
        seo_description=row.seo_description,
        view_count=row.view_count,
        like_count=row.like_count,
        owner_identity_id=row.owner_identity_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
