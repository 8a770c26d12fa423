"""
api/routes/v1/blog.py -- Blog REST endpoints.

Routes:
  GET    /api/v1/blog                     -- published posts, newest first (public)
  GET    /api/v1/blog/featured            -- latest published posts with an image (public)
  GET    /api/v1/blog/tags/popular        -- most used tags (public)
  GET    /api/v1/blog/categories/popular  -- most used categories (public)
  GET    /api/v1/blog/admin/all           -- every post, any status (admin only)
  GET    /api/v1/blog/admin/stats         -- totals and counts per status (admin only)
  GET    /api/v1/blog/{slug}              -- one published post; counts a view (public)
  POST   /api/v1/blog                     -- create (admin only)
  PUT    /api/v1/blog/{id}                -- partial update (admin only)
  DELETE /api/v1/blog/{id}                -- delete (admin only)

Drafts and archived posts answer not_found on the public routes. The slug,
reading time and (when the admin leaves it blank) the excerpt are derived
from the title and content; see content/blog.py.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import (
    BlogPostCreate,
    BlogPostDetailResponse,
    BlogPostListResponse,
    BlogPostResponse,
    BlogPostUpdate,
    BlogStatsResponse,
    BlogStatusEnum,
    FeaturedPostsResponse,
    Pagination,
    PopularCategoriesResponse,
    PopularTagsResponse,
    TermCount,
)
from auth.dependencies import require_admin
from auth.models import Identity
from content.blog import make_excerpt, publish_fields, reading_time, slugify
from content.models import BlogPost
from content.store import ContentStore
from core.errors import NotFound, SlugExists

logger = logging.getLogger("folio.api.blog")

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _post_list(posts: list[BlogPost], page: int, limit: int, total: int) -> BlogPostListResponse:
    return BlogPostListResponse(
        posts=[BlogPostResponse.from_post(p) for p in posts],
        pagination=Pagination(page=page, pages=math.ceil(total / limit), total=total, limit=limit),
    )


def _load_post(store: ContentStore, post_id: int) -> BlogPost:
    post = store.get_blog_post(post_id)
    if post is None:
        raise NotFound("Blog post not found.")
    return post


@router.get("/blog", response_model=BlogPostListResponse)
def list_posts(
    request: Request,
    tag: Optional[str] = Query(default=None, max_length=50),
    category: Optional[str] = Query(default=None, max_length=50),
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BlogPostListResponse:
    store: ContentStore = request.app.state.content_store
    posts, total = store.list_blog_posts(
        status="published", tag=tag, category=category, search=search, page=page, limit=limit
    )
    return _post_list(posts, page, limit, total)


@router.get("/blog/featured", response_model=FeaturedPostsResponse)
def featured_posts(request: Request, limit: int = Query(default=3, ge=1, le=20)) -> FeaturedPostsResponse:
    store: ContentStore = request.app.state.content_store
    return FeaturedPostsResponse(posts=[BlogPostResponse.from_post(p) for p in store.featured_blog_posts(limit)])


@router.get("/blog/tags/popular", response_model=PopularTagsResponse)
def popular_tags(request: Request, limit: int = Query(default=10, ge=1, le=50)) -> PopularTagsResponse:
    store: ContentStore = request.app.state.content_store
    terms = store.popular_blog_terms("tags", limit)
    return PopularTagsResponse(tags=[TermCount(name=name, count=count) for name, count in terms])


@router.get("/blog/categories/popular", response_model=PopularCategoriesResponse)
def popular_categories(request: Request, limit: int = Query(default=10, ge=1, le=50)) -> PopularCategoriesResponse:
    store: ContentStore = request.app.state.content_store
    terms = store.popular_blog_terms("categories", limit)
    return PopularCategoriesResponse(categories=[TermCount(name=name, count=count) for name, count in terms])


@router.get("/blog/admin/all", response_model=BlogPostListResponse)
def list_all_posts(
    request: Request,
    status: Optional[BlogStatusEnum] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: Identity = Depends(require_admin),
) -> BlogPostListResponse:
    store: ContentStore = request.app.state.content_store
    posts, total = store.list_blog_posts(
        status=status.value if status else None,
        search=search,
        newest_published_first=False,
        page=page,
        limit=limit,
    )
    return _post_list(posts, page, limit, total)


@router.get("/blog/admin/stats", response_model=BlogStatsResponse)
def blog_stats(request: Request, current_user: Identity = Depends(require_admin)) -> BlogStatsResponse:
    store: ContentStore = request.app.state.content_store
    return BlogStatsResponse(**store.blog_stats())


@router.get("/blog/{slug}", response_model=BlogPostDetailResponse)
def get_post(request: Request, slug: str) -> BlogPostDetailResponse:
    """Return a published post with up to three related posts. Counts a view."""
    store: ContentStore = request.app.state.content_store
    post = store.find_blog_post_by_slug(slug)
    if post is None or post.status != "published":
        raise NotFound("Blog post not found.")
    post = store.increment_blog_views(post.id)
    return BlogPostDetailResponse(
        post=BlogPostResponse.from_post(post),
        related_posts=[BlogPostResponse.from_post(p) for p in store.related_blog_posts(post)],
    )


@router.post("/blog", response_model=BlogPostResponse, status_code=201)
def create_post(
    request: Request,
    body: BlogPostCreate,
    current_user: Identity = Depends(require_admin),
) -> BlogPostResponse:
    store: ContentStore = request.app.state.content_store
    slug = slugify(body.title)
    if store.find_blog_post_by_slug(slug) is not None:
        raise SlugExists()

    post = BlogPost(
        title=body.title,
        slug=slug,
        content=body.content,
        excerpt=body.excerpt or make_excerpt(body.content),
        featured_image=body.featured_image,
        tags=body.tags,
        categories=body.categories,
        reading_time=reading_time(body.content),
        seo_title=body.seo_title,
        seo_description=body.seo_description,
        owner_identity_id=current_user.id,
        **publish_fields(
            None,
            _now_iso(),
            status=body.status.value,
            publish_date=body.publish_date.isoformat() if body.publish_date else None,
        ),
    )
    saved = store.create_blog_post(post)
    logger.info("Blog post %s created as %s", saved.id, saved.status)
    return BlogPostResponse.from_post(saved)


@router.put("/blog/{post_id}", response_model=BlogPostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: BlogPostUpdate,
    current_user: Identity = Depends(require_admin),
) -> BlogPostResponse:
    """Partial update. A new title re-derives the slug; new content recomputes the reading time."""
    store: ContentStore = request.app.state.content_store
    post = _load_post(store, post_id)

    fields = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    status = fields.pop("status", None)
    publish_date = fields.pop("publish_date", None)
    fields.update(
        publish_fields(
            post.publish_date,
            _now_iso(),
            status=status.value if status else None,
            publish_date=publish_date.isoformat() if publish_date else None,
        )
    )

    if "title" in fields and fields["title"] != post.title:
        slug = slugify(fields["title"])
        other = store.find_blog_post_by_slug(slug)
        if other is not None and other.id != post_id:
            raise SlugExists()
        fields["slug"] = slug
    if "content" in fields:
        fields["reading_time"] = reading_time(fields["content"])
        if not fields.get("excerpt") and not post.excerpt:
            fields["excerpt"] = make_excerpt(fields["content"])

    if not fields:
        return BlogPostResponse.from_post(post)
    return BlogPostResponse.from_post(store.update_blog_post(post_id, **fields))


@router.delete("/blog/{post_id}", status_code=204)
def delete_post(request: Request, post_id: int, current_user: Identity = Depends(require_admin)) -> Response:
    store: ContentStore = request.app.state.content_store
    if not store.delete_blog_post(post_id):
        raise NotFound("Blog post not found.")
    return Response(status_code=204)
