"""
HTTP client for the public mod portal API.

The portal is read with blocking ``requests`` calls that are pushed to a
worker thread with ``asyncio.to_thread`` so the event loop never waits on the
network. A paginated catalog fetch is one atomic unit: if any page fails the
whole fetch fails and nothing partial is returned.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from modfeed.configuration.update_settings import PortalSettings
from modfeed.datatypes.mod_datatypes import ModDetails, RemoteModEntry
from modfeed.errors import PortalDecodeError, PortalNetworkError
from modfeed.util.format_utils import parse_portal_timestamp
from modfeed.util.logger import get_logger

logger = get_logger("portal_client")

DEFAULT_THUMBNAIL = "/assets/.thumb.png"

# Portal category keys -> display names
CATEGORY_NAMES: Dict[str, str] = {
    "": "No Category",
    "no-category": "No Category",
    "content": "Content",
    "overhaul": "Overhaul",
    "tweaks": "Tweaks",
    "utilities": "Utilities",
    "scenarios": "Scenarios",
    "mod-packs": "Mod Packs",
    "localizations": "Localizations",
    "internal": "Internal",
}


def category_display_name(key: Optional[str]) -> str:
    """Map a portal category key to its display name; unknown keys are title-cased."""
    if key is None:
        return CATEGORY_NAMES[""]
    return CATEGORY_NAMES.get(key, key.replace("-", " ").title())


class PortalClient:
    """
    Reads the mod catalog and per-mod details from the portal.

    Args:
        base_url: Portal root, e.g. ``https://mods.factorio.com``.
        assets_url: Root that thumbnail paths are relative to.
        page_size: ``"max"`` or a positive integer as string.
        timeout: Per-request timeout in seconds.
        max_pages: Upper bound on followed ``next`` links.
        session: Optional ``requests.Session`` (tests inject one).
    """

    def __init__(
        self,
        base_url: str = "https://mods.factorio.com",
        assets_url: str = "https://assets-mod.factorio.com",
        page_size: str = "max",
        timeout: float = 30.0,
        max_pages: int = 500,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.assets_url = assets_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self.max_pages = max_pages
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: PortalSettings, session: requests.Session | None = None) -> "PortalClient":
        return cls(
            base_url=settings.base_url,
            assets_url=settings.assets_url,
            page_size=settings.page_size,
            timeout=settings.fetch_timeout_seconds,
            max_pages=settings.max_pages,
            session=session,
        )

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Public async API
    # ------------------------------------------------------------------

    async def fetch_catalog(self) -> List[RemoteModEntry]:
        """
        Fetch the complete current catalog.

        Raises:
            PortalNetworkError: transport failure, timeout or bad status.
            PortalDecodeError: malformed payload or runaway pagination.
        """
        return await asyncio.to_thread(self._fetch_catalog_sync)

    async def fetch_mod_details(self, slug: str) -> ModDetails:
        """Fetch the changelog and thumbnail of one mod."""
        return await asyncio.to_thread(self._fetch_mod_details_sync, slug)

    # ------------------------------------------------------------------
    # Blocking implementation (runs in a worker thread)
    # ------------------------------------------------------------------

    def _get_json(self, url: str) -> Any:
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise PortalNetworkError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise PortalDecodeError(f"Invalid JSON from {url}: {exc}", url=url) from exc

    def _fetch_catalog_sync(self) -> List[RemoteModEntry]:
        url: Optional[str] = f"{self.base_url}/api/mods?page_size={self.page_size}"
        entries: List[RemoteModEntry] = []
        seen: set[str] = set()
        pages = 0

        while url:
            if pages >= self.max_pages:
                raise PortalDecodeError(
                    f"Catalog pagination exceeded {self.max_pages} pages", url=url
                )
            payload = self._get_json(url)
            pages += 1

            if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
                raise PortalDecodeError("Catalog page has no 'results' list", url=url)

            for raw in payload["results"]:
                entry = self._parse_entry(raw, url)
                if entry.slug in seen:
                    logger.debug("[PORTAL CLIENT] Duplicate catalog entry %s ignored", entry.slug)
                    continue
                seen.add(entry.slug)
                entries.append(entry)

            url = self._next_page_url(payload)

        logger.debug("[PORTAL CLIENT] Fetched %d mods over %d page(s)", len(entries), pages)
        return entries

    @staticmethod
    def _next_page_url(payload: Dict[str, Any]) -> Optional[str]:
        pagination = payload.get("pagination")
        if not isinstance(pagination, dict):
            return None
        links = pagination.get("links")
        if not isinstance(links, dict):
            return None
        return links.get("next") or None

    def _parse_entry(self, raw: Any, url: str) -> RemoteModEntry:
        if not isinstance(raw, dict):
            raise PortalDecodeError("Catalog entry is not an object", url=url)

        slug = raw.get("name")
        owner = raw.get("owner")
        if not isinstance(slug, str) or not slug or not isinstance(owner, str):
            raise PortalDecodeError(f"Catalog entry missing name/owner: {raw!r:.200}", url=url)

        release = raw.get("latest_release") or {}
        if not isinstance(release, dict):
            release = {}
        info_json = release.get("info_json") or {}
        if not isinstance(info_json, dict):
            info_json = {}

        try:
            downloads = int(raw.get("downloads_count") or 0)
        except (TypeError, ValueError):
            downloads = 0

        thumbnail = raw.get("thumbnail")
        return RemoteModEntry(
            slug=slug,
            title=str(raw.get("title") or slug),
            owner=owner,
            summary=str(raw.get("summary") or ""),
            category=category_display_name(raw.get("category")),
            downloads_count=downloads,
            factorio_version=str(info_json.get("factorio_version") or ""),
            version=str(release.get("version") or ""),
            released_at=parse_portal_timestamp(release.get("released_at")),
            changelog=raw.get("changelog") if isinstance(raw.get("changelog"), str) else None,
            thumbnail=f"{self.assets_url}{thumbnail}" if isinstance(thumbnail, str) and thumbnail else None,
        )

    def _fetch_mod_details_sync(self, slug: str) -> ModDetails:
        url = f"{self.base_url}/api/mods/{quote(slug)}/full"
        payload = self._get_json(url)
        if not isinstance(payload, dict):
            raise PortalDecodeError(f"Details for {slug} are not an object", url=url)

        changelog = payload.get("changelog")
        thumbnail = payload.get("thumbnail") or DEFAULT_THUMBNAIL
        return ModDetails(
            changelog=changelog if isinstance(changelog, str) else None,
            thumbnail=f"{self.assets_url}{thumbnail}",
        )
