"""
api/routes/v1/settings.py -- Site settings REST endpoints.

Routes:
  GET /api/v1/settings/public  -- footer and site metadata (public)
  GET /api/v1/settings         -- same, for the admin editor (admin only)
  PUT /api/v1/settings/footer  -- copyright, social links, custom text (admin only)
  PUT /api/v1/settings/site    -- site title and description (admin only)

All reads go through SettingsService.get_or_create(), so the first request
against an empty database creates the default row.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import FooterUpdate, SettingsResponse, SiteUpdate
from auth.dependencies import require_admin
from auth.models import Identity
from content.models import SocialLink
from content.settings import SettingsService

router = APIRouter()


@router.get("/settings/public", response_model=SettingsResponse)
def public_settings(request: Request) -> SettingsResponse:
    service: SettingsService = request.app.state.settings_service
    return SettingsResponse.from_settings(service.get_or_create())


@router.get("/settings", response_model=SettingsResponse)
def get_settings_admin(request: Request, current_user: Identity = Depends(require_admin)) -> SettingsResponse:
    service: SettingsService = request.app.state.settings_service
    return SettingsResponse.from_settings(service.get_or_create())


@router.put("/settings/footer", response_model=SettingsResponse)
def update_footer(
    request: Request,
    body: FooterUpdate,
    current_user: Identity = Depends(require_admin),
) -> SettingsResponse:
    service: SettingsService = request.app.state.settings_service
    links = None
    if body.social_links is not None:
        links = [SocialLink(platform=link.platform, url=link.url, icon=link.icon) for link in body.social_links]
    updated = service.update_footer(copyright=body.copyright, social_links=links, custom_text=body.custom_text)
    return SettingsResponse.from_settings(updated)


@router.put("/settings/site", response_model=SettingsResponse)
def update_site(
    request: Request,
    body: SiteUpdate,
    current_user: Identity = Depends(require_admin),
) -> SettingsResponse:
    service: SettingsService = request.app.state.settings_service
    updated = service.update_site(title=body.title, description=body.description)
    return SettingsResponse.from_settings(updated)
