"""
api/routes/v1/projects.py -- Portfolio project REST endpoints.

Routes:
  GET    /api/v1/projects            -- list (public sees is_public only; admin sees all)
  GET    /api/v1/projects/featured   -- featured public projects
  GET    /api/v1/projects/categories -- public project count per category
  GET    /api/v1/projects/stats/overview -- totals, categories, top technologies (admin only)
  GET    /api/v1/projects/{id}       -- one project; counts a view
  PUT    /api/v1/projects/{id}/like  -- add a like (public)
  POST   /api/v1/projects            -- create (admin only)
  PUT    /api/v1/projects/{id}       -- partial update (admin, ownership checked)
  PUT    /api/v1/projects/{id}/toggle-featured   -- flip featured (admin)
  PUT    /api/v1/projects/{id}/toggle-visibility -- flip is_public (admin)
  DELETE /api/v1/projects/{id}       -- delete (admin, ownership checked)

A private project is indistinguishable from a missing one for non-admins:
both answer not_found.
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import (
    LikeResponse,
    Pagination,
    ProjectCategoriesResponse,
    ProjectCategoryEnum,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectSortEnum,
    ProjectStatsResponse,
    ProjectStatusEnum,
    ProjectUpdate,
    TermCount,
)
from auth.dependencies import require_admin, try_get_current_user
from auth.models import Identity
from auth.ownership import Caller, check_access
from content.models import Project
from content.store import ContentStore
from core.errors import NotFound

router = APIRouter()


def _visible_project(store: ContentStore, project_id: int, identity: Optional[Identity]) -> Project:
    project = store.get_project(project_id)
    if project is None or (not project.is_public and not (identity and identity.is_admin)):
        raise NotFound("Project not found.")
    return project


def _term_counts(pairs: list[tuple[str, int]]) -> list[TermCount]:
    return [TermCount(name=name, count=count) for name, count in pairs]


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    request: Request,
    category: Optional[ProjectCategoryEnum] = Query(default=None),
    status: Optional[ProjectStatusEnum] = Query(default=None),
    featured: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    sort: ProjectSortEnum = Query(default=ProjectSortEnum.newest),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    identity: Optional[Identity] = Depends(try_get_current_user),
) -> ProjectListResponse:
    store: ContentStore = request.app.state.content_store
    projects, total = store.list_projects(
        include_private=bool(identity and identity.is_admin),
        category=category.value if category else None,
        status=status.value if status else None,
        featured=featured,
        search=search,
        sort=sort.value,
        page=page,
        limit=limit,
    )
    return ProjectListResponse(
        projects=[ProjectResponse.from_project(p) for p in projects],
        pagination=Pagination(page=page, pages=math.ceil(total / limit), total=total, limit=limit),
    )


@router.get("/projects/featured", response_model=list[ProjectResponse])
def featured_projects(request: Request, limit: int = Query(default=3, ge=1, le=20)) -> list[ProjectResponse]:
    store: ContentStore = request.app.state.content_store
    return [ProjectResponse.from_project(p) for p in store.featured_projects(limit)]


@router.get("/projects/categories", response_model=ProjectCategoriesResponse)
def project_categories(request: Request) -> ProjectCategoriesResponse:
    store: ContentStore = request.app.state.content_store
    return ProjectCategoriesResponse(categories=_term_counts(store.project_categories()))


@router.get("/projects/stats/overview", response_model=ProjectStatsResponse)
def project_stats(request: Request, current_user: Identity = Depends(require_admin)) -> ProjectStatsResponse:
    store: ContentStore = request.app.state.content_store
    stats = store.project_stats()
    return ProjectStatsResponse(
        overview=stats["overview"],
        categories=_term_counts(stats["categories"]),
        technologies=_term_counts(stats["technologies"]),
    )


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(
    request: Request,
    project_id: int,
    identity: Optional[Identity] = Depends(try_get_current_user),
) -> ProjectResponse:
    store: ContentStore = request.app.state.content_store
    _visible_project(store, project_id, identity)
    return ProjectResponse.from_project(store.increment_views(project_id))


@router.put("/projects/{project_id}/like", response_model=LikeResponse)
def like_project(
    request: Request,
    project_id: int,
    identity: Optional[Identity] = Depends(try_get_current_user),
) -> LikeResponse:
    store: ContentStore = request.app.state.content_store
    _visible_project(store, project_id, identity)
    return LikeResponse(likes=store.like_project(project_id).likes)


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    current_user: Identity = Depends(require_admin),
) -> ProjectResponse:
    store: ContentStore = request.app.state.content_store
    project = Project(
        title=body.title,
        description=body.description,
        long_description=body.long_description,
        technologies=body.technologies,
        category=body.category.value,
        status=body.status.value,
        project_url=body.project_url,
        github_url=body.github_url,
        featured=body.featured,
        is_public=body.is_public,
        tags=body.tags,
        owner_identity_id=current_user.id,
    )
    return ProjectResponse.from_project(store.create_project(project))


@router.put("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    request: Request,
    project_id: int,
    body: ProjectUpdate,
    current_user: Identity = Depends(require_admin),
) -> ProjectResponse:
    store: ContentStore = request.app.state.content_store
    project = check_access(Caller(identity=current_user), store.get_project(project_id))
    fields = {k: v for k, v in body.model_dump(mode="json", exclude_unset=True).items() if v is not None}
    if not fields:
        return ProjectResponse.from_project(project)
    return ProjectResponse.from_project(store.update_project(project_id, **fields))


@router.put("/projects/{project_id}/toggle-featured", response_model=ProjectResponse)
def toggle_featured(
    request: Request,
    project_id: int,
    current_user: Identity = Depends(require_admin),
) -> ProjectResponse:
    store: ContentStore = request.app.state.content_store
    project = check_access(Caller(identity=current_user), store.get_project(project_id))
    return ProjectResponse.from_project(store.update_project(project_id, featured=not project.featured))


@router.put("/projects/{project_id}/toggle-visibility", response_model=ProjectResponse)
def toggle_visibility(
    request: Request,
    project_id: int,
    current_user: Identity = Depends(require_admin),
) -> ProjectResponse:
    store: ContentStore = request.app.state.content_store
    project = check_access(Caller(identity=current_user), store.get_project(project_id))
    return ProjectResponse.from_project(store.update_project(project_id, is_public=not project.is_public))


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(
    request: Request,
    project_id: int,
    current_user: Identity = Depends(require_admin),
) -> Response:
    store: ContentStore = request.app.state.content_store
    check_access(Caller(identity=current_user), store.get_project(project_id))
    store.delete_project(project_id)
    return Response(status_code=204)
