"""
Site Merger

Merges the `site` block of a remote app payload into the local Site
record and links it to the app. An app whose payload carries no usable
site block has its site reference cleared.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.contracts.sync import SyncStats
from src.models.orm import App, Site
from src.repositories.sites import SiteRepository
from src.services.app_sync.field_mapper import parse_remote_timestamp, string_keyed
from src.services.app_sync.statistics import record_site_synced

logger = logging.getLogger(__name__)

UNTITLED_SITE = "Untitled site"

# Site key candidates, in preference order
SITE_KEY_FIELDS = ("code", "access_token", "id")


def _first_string(data: dict[str, Any], *keys: str) -> str | None:
    """First non-empty string among keys."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _first_present(data: dict[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _mapping_or_none(value: Any) -> dict[str, Any] | None:
    return string_keyed(value) or None


def url_path_for_mode(mode: str) -> str:
    """Public path prefix of a site: /workflow/ for workflows, /chatbot/ otherwise."""
    if mode == "workflow":
        return "/workflow/"
    return "/chatbot/"


def build_site_url(site_data: dict[str, Any], mode: str) -> str | None:
    """
    Reconstruct a site URL from app_base_url and the access code.

    Returns None when either part is missing.
    """
    base_url = site_data.get("app_base_url")
    code = _first_string(site_data, "code", "access_token")
    if not isinstance(base_url, str) or not base_url or code is None:
        return None
    return base_url.rstrip("/") + url_path_for_mode(mode) + code


class SiteMerger:
    """Find-or-create the app's Site and copy the remote site fields onto it."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.sites = SiteRepository(session)

    async def merge(self, app: App, app_data: dict[str, Any], stats: SyncStats) -> SyncStats:
        site_data = app_data.get("site")
        if not isinstance(site_data, dict) or not site_data:
            if app.site is not None:
                logger.debug(f"Clearing site of app {app.remote_app_id}")
            app.site = None
            return stats

        site_data = string_keyed(site_data)
        site_key = _first_string(site_data, *SITE_KEY_FIELDS)
        if site_key is None:
            logger.debug(f"Site block of app {app.remote_app_id} has no key, skipping")
            return stats

        site = await self.sites.get_by_site_id(site_key)
        is_new = site is None
        if site is None:
            site = Site(site_id=site_key)
            self.sites.add(site)

        mode = app_data.get("mode")
        self.apply_site_fields(site, site_data, mode if isinstance(mode, str) else "chat")
        app.site = site

        return record_site_synced(stats, is_new)

    def apply_site_fields(self, site: Site, data: dict[str, Any], mode: str) -> None:
        title = _first_present(data, "title", "name")
        site.title = title if isinstance(title, str) else UNTITLED_SITE
        site.description = _text_or_none(data.get("description"))

        site_url = _first_string(data, "url", "site_url") or build_site_url(data, mode)
        if site_url:
            site.site_url = site_url

        site.is_enabled = _first_string(data, "code", "access_token") is not None

        site.default_language = _text_or_none(data.get("default_language"))
        site.theme = _text_or_none(data.get("theme"))
        site.copyright = _text_or_none(data.get("copyright"))
        site.privacy_policy = _text_or_none(data.get("privacy_policy"))
        site.disclaimer = _text_or_none(_first_present(data, "custom_disclaimer", "disclaimer"))

        site.custom_domain = _mapping_or_none(_first_present(data, "customize_domain", "custom_domain"))
        site.custom_config = _mapping_or_none(_first_present(data, "custom_config", "config"))

        published = data.get("created_at")
        if published is not None:
            try:
                site.published_at = parse_remote_timestamp(published, allow_unix=True)
            except ValueError as e:
                logger.warning(
                    f"Could not parse site timestamp created_at={published!r} for site {site.site_id}: {e}",
                    extra={"site_id": site.site_id},
                )

        site.last_synced_at = datetime.now(timezone.utc)
