"""
content/settings.py -- Site-wide settings (footer, title, description).

SettingsService is constructed once in the application lifespan and handed to
the routes through app.state. There is no module-level settings object.

get_or_create() is idempotent: the first call inserts the default row, every
later call (including a concurrent first call that loses the insert race)
reads the existing one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from content.models import SiteSettings, SocialLink
from content.store import ContentStore

logger = logging.getLogger("folio.content.settings")

DEFAULT_SOCIAL_LINKS = (
    SocialLink(platform="GitHub", url="https://github.com/", icon="fab fa-github"),
    SocialLink(platform="LinkedIn", url="https://www.linkedin.com/", icon="fab fa-linkedin"),
    SocialLink(platform="Twitter", url="https://x.com/", icon="fab fa-twitter"),
    SocialLink(platform="Instagram", url="https://www.instagram.com/", icon="fab fa-instagram"),
)


def default_site_settings(year: int | None = None) -> SiteSettings:
    year = year or datetime.now(timezone.utc).year
    return SiteSettings(
        copyright=f"© {year} Portfolio. All rights reserved.",
        custom_text="",
        social_links=list(DEFAULT_SOCIAL_LINKS),
        site_title="Portfolio | Full Stack Developer",
        site_description="Creating innovative web solutions with cutting-edge technologies.",
    )


class SettingsService:
    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def get_or_create(self) -> SiteSettings:
        current = self.store.get_site_settings()
        if current is not None:
            return current
        if self.store.insert_site_settings(default_site_settings()):
            logger.info("Default site settings created")
        return self.store.get_site_settings()

    def update_footer(
        self,
        copyright: str | None = None,
        social_links: list[SocialLink] | None = None,
        custom_text: str | None = None,
    ) -> SiteSettings:
        """Replace any footer field that is not None."""
        self.get_or_create()
        fields: dict = {}
        if copyright is not None:
            fields["copyright"] = copyright
        if social_links is not None:
            fields["social_links"] = social_links
        if custom_text is not None:
            fields["custom_text"] = custom_text
        if not fields:
            return self.get_or_create()
        return self.store.update_site_settings(**fields)

    def update_site(self, title: str | None = None, description: str | None = None) -> SiteSettings:
        self.get_or_create()
        fields: dict = {}
        if title is not None:
            fields["site_title"] = title
        if description is not None:
            fields["site_description"] = description
        if not fields:
            return self.get_or_create()
        return self.store.update_site_settings(**fields)
