import asyncio
import json
import logging
import urllib.parse
import webbrowser
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from .callback_server import CallbackListener
from .errors import (
    AuthorizationDenied,
    AuthorizationInProgress,
    NoRefreshToken,
    ReauthorizationRequired,
    TokenExchangeFailed,
)
from .token_manager import TokenManager, TokenState, utcnow

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"

DEFAULT_REDIRECT_URI = "http://localhost:8888/callback"
DEFAULT_SCOPES = ("playlist-read-private", "playlist-read-collaborative")
DEFAULT_AUTH_TIMEOUT = 300.0


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except json.JSONDecodeError:
        payload = None

    if isinstance(payload, dict):
        detail = payload.get("error_description") or payload.get("error")
        if detail:
            return str(detail)
    return f"HTTP {resp.status_code}: {resp.text}"


class SpotifyAuth:
    """Spotify OAuth (Authorization Code) helper that owns the token state.

    One instance holds the only copy of the access/refresh tokens. The
    paginated client reads tokens through :meth:`get_valid_access_token` and
    asks for :meth:`refresh` on a 401; nothing else mutates the state.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        token_manager: Optional[TokenManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utcnow,
        open_browser: Callable[[str], Any] = webbrowser.open,
    ):
        self.config = config or {}
        self.token_manager = token_manager or TokenManager()
        self.client_id = str(self.config.get("spotify_client_id", "")).strip()
        self.client_secret = str(self.config.get("spotify_client_secret", "")).strip()
        self.redirect_uri = str(self.config.get("spotify_redirect_uri") or DEFAULT_REDIRECT_URI).strip()
        self.token = TokenState()

        self._http = http_client
        self._owns_http = http_client is None
        self._clock = clock
        self._open_browser = open_browser
        self._refresh_lock = asyncio.Lock()
        self._session: Optional[CallbackListener] = None

    async def __aenter__(self) -> "SpotifyAuth":
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
            self._http = httpx.AsyncClient(timeout=30.0, follow_redirects=False)
        return self._http

    # -----------------
    # Interactive flow
    # -----------------

    def get_authorize_url(self, *, scopes: Optional[Iterable[str]] = None) -> str:
        scope_list = list(scopes if scopes is not None else self.config.get("spotify_scopes") or DEFAULT_SCOPES)
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "show_dialog": "true" if self.config.get("spotify_show_dialog", True) else "false",
        }
        if scope_str:
            params["scope"] = scope_str

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    async def authenticate(self, scopes: Optional[Iterable[str]] = None) -> TokenState:
        """Run the browser login and return the exchanged token state.

        Raises AuthTimeout, AuthorizationDenied or TokenExchangeFailed. The
        local listener is closed before this returns, whatever the outcome.
        """

        if self._session is not None:
            raise AuthorizationInProgress()

        auth_url = self.get_authorize_url(scopes=scopes)
        timeout = float(self.config.get("spotify_auth_timeout", DEFAULT_AUTH_TIMEOUT))
        listener = CallbackListener(self.redirect_uri, self._handle_callback, timeout=timeout)

        self._session = listener
        try:
            async with listener:
                logger.info("Opening the browser for Spotify authentication...")
                logger.info("Authorization URL: %s", auth_url)
                try:
                    self._open_browser(auth_url)
                except webbrowser.Error as e:
                    logger.warning("Could not open a browser (%s); open the URL above manually.", e)
                return await listener.wait()
        finally:
            self._session = None

    async def _handle_callback(self, params: Dict[str, str]) -> TokenState:
        if params.get("error"):
            raise AuthorizationDenied(params["error"])
        code = params.get("code")
        if not code:
            raise AuthorizationDenied("missing_code")
        return await self.exchange_code(code)

    # -----------------
    # Token endpoint
    # -----------------

    async def exchange_code(self, code: str) -> TokenState:
        payload = await self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        self._store(TokenState.from_token_response(payload, now=self._clock()))
        logger.info("Spotify tokens obtained; access token expires at %s", self.token.expires_at)
        return self.token

    async def refresh(self) -> TokenState:
        async with self._refresh_lock:
            refresh_token = self.token.refresh_token
            if not refresh_token:
                raise NoRefreshToken()

            payload = await self._post_form(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )
            # Spotify usually omits refresh_token on refresh; keep the existing one.
            self._store(
                TokenState.from_token_response(payload, now=self._clock(), previous_refresh_token=refresh_token)
            )
            logger.info("Spotify access token refreshed; expires at %s", self.token.expires_at)
            return self.token

    async def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            resp = await self.http.post(
                SPOTIFY_TOKEN_URL,
                data=data,
                auth=httpx.BasicAuth(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeFailed(str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise TokenExchangeFailed(_error_detail(resp))

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise TokenExchangeFailed(f"response was not JSON: {resp.text}") from e

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenExchangeFailed(f"response has no access_token: {payload}")

        return payload

    def _store(self, token: TokenState) -> None:
        self.token = token
        if self.config.get("spotify_cache_tokens", True):
            self.persist()

    # -----------------
    # Validity
    # -----------------

    def is_valid(self) -> bool:
        return self.token.is_valid(now=self._clock())

    async def get_valid_access_token(self) -> str:
        if not self.is_valid():
            if not self.token.refresh_token:
                raise ReauthorizationRequired()
            logger.info("Spotify token expired, refreshing automatically...")
            await self.refresh()
        return self.token.access_token

    # -----------------
    # Persistence
    # -----------------

    def persist(self) -> bool:
        return self.token_manager.save(self.token, client_id=self.client_id, redirect_uri=self.redirect_uri)

    def restore(self) -> bool:
        """Load the cached token; return True only if it is usable right now."""
        loaded = self.token_manager.load()
        if loaded is None:
            return False

        self.token = loaded
        if self.is_valid():
            logger.info("Loaded Spotify token, valid until %s", self.token.expires_at)
            return True

        logger.warning("Loaded Spotify token is expired, a refresh is needed")
        return False

    def logout(self) -> bool:
        self.token = TokenState()
        return self.token_manager.clear()
