"""
Site Repository
"""

from src.models.orm import Site
from src.repositories.base import BaseRepository


class SiteRepository(BaseRepository[Site]):
    """Sites are looked up by their remote-derived key."""

    model = Site

    async def get_by_site_id(self, site_id: str) -> Site | None:
        return await self.get(site_id=site_id)
