import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from .auth import SpotifyAuth
from .errors import ApiError, AuthorizationRejected, TransportError

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# Fixed pause between track pages; not a backoff.
DEFAULT_PAGE_DELAY = 0.1


@dataclass
class Page:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_url: Optional[str] = None
    total: int = 0
    offset: int = 0


class SpotifyClient:
    """Thin async Spotify Web API client.

    Every request carries a bearer token obtained from the SpotifyAuth it was
    built with. A 401 triggers one forced refresh and one retry; collections
    are read lazily by following the ``next`` cursor.
    """

    def __init__(
        self,
        auth: SpotifyAuth,
        *,
        config: Optional[Dict[str, Any]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.auth = auth
        self.config = config if config is not None else auth.config
        self.page_delay = float(self.config.get("spotify_page_delay", DEFAULT_PAGE_DELAY))

        self._http = http_client
        self._owns_http = http_client is None
        self._sleep = sleep

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=30.0)
        return self._http

    # -----------------
    # HTTP helpers
    # -----------------

    async def _get(self, url: str, params: Optional[Dict[str, Any]], token: str) -> httpx.Response:
        try:
            return await self.http.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.TransportError as e:
            raise TransportError(str(e) or type(e).__name__, url=url) from e

    async def request_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``url`` and return the decoded JSON object.

        401: one forced refresh then one retry; a second 401 raises
        AuthorizationRejected. Any other non-2xx raises ApiError.
        """

        token = await self.auth.get_valid_access_token()
        resp = await self._get(url, params, token)

        if resp.status_code == 401:
            logger.info("Spotify rejected the access token, forcing a refresh...")
            # Retry with the refreshed token as-is, even if it is already inside the expiry margin.
            token = (await self.auth.refresh()).access_token
            resp = await self._get(url, params, token)
            if resp.status_code == 401:
                raise AuthorizationRejected(url)

        if not resp.is_success:
            raise ApiError(resp.status_code, resp.text, url=url)

        try:
            payload = resp.json()
        except json.JSONDecodeError:
            raise ApiError(resp.status_code, f"response was not JSON: {resp.text}", url=url) from None

        if not isinstance(payload, dict):
            raise ApiError(resp.status_code, f"response was not an object: {resp.text}", url=url)
        return payload

    async def fetch_page(self, url: str, params: Optional[Dict[str, Any]] = None, *, offset: int = 0) -> Page:
        payload = await self.request_json(url, params)

        items = payload.get("items") or []
        next_url = payload.get("next") or None
        total = payload.get("total")
        page_offset = payload.get("offset")
        return Page(
            items=list(items) if isinstance(items, list) else [],
            next_url=str(next_url) if next_url else None,
            total=int(total) if isinstance(total, int) else 0,
            offset=page_offset if isinstance(page_offset, int) else offset,
        )

    # -----------------
    # Pagination
    # -----------------

    async def iter_pages(self, url: str, *, page_size: int, throttle: bool = False) -> AsyncIterator[Page]:
        """Yield pages in server order until the ``next`` cursor runs out.

        ``limit``/``offset`` go on the first request only; ``next`` URLs
        already embed them. With ``throttle`` a fixed delay precedes every
        page after the first.
        """

        next_url: Optional[str] = url
        params: Optional[Dict[str, Any]] = {"limit": int(page_size), "offset": 0}
        offset = 0
        first = True

        while next_url:
            if throttle and not first:
                await self._sleep(self.page_delay)

            page = await self.fetch_page(next_url, params, offset=offset)
            yield page

            first = False
            params = None
            offset = page.offset + int(page_size)
            next_url = page.next_url

    async def fetch_all(self, url: str, *, page_size: int, throttle: bool = False) -> AsyncIterator[Dict[str, Any]]:
        async for page in self.iter_pages(url, page_size=page_size, throttle=throttle):
            for item in page.items:
                yield item

    # -----------------
    # Convenience endpoints
    # -----------------

    async def me(self) -> Dict[str, Any]:
        return await self.request_json(f"{SPOTIFY_API_BASE_URL}/me")

    def user_playlists_url(self) -> str:
        return f"{SPOTIFY_API_BASE_URL}/me/playlists"

    def playlist_tracks_url(self, playlist_id: str) -> str:
        return f"{SPOTIFY_API_BASE_URL}/playlists/{playlist_id}/tracks"
