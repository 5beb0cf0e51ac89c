import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)

DEFAULT_TOKEN_CACHE_PATH = os.path.join("data", "spotify_tokens.json")

# Tokens are treated as expired this long before their real expiry.
EXPIRY_MARGIN = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_instant(value: Any) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class TokenState:
    """Access/refresh token pair plus the absolute expiry of the access token."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if (self.access_token is None) != (self.expires_at is None):
            raise ValueError("access_token and expires_at must be set together")

    @staticmethod
    def from_token_response(
        payload: Dict[str, Any],
        *,
        now: datetime,
        previous_refresh_token: Optional[str] = None,
    ) -> "TokenState":
        """Convert a Spotify token endpoint response into a TokenState.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (omitted on most refresh responses)
        - scope (space-delimited string)
        """

        expires_in = float(payload.get("expires_in", 0))
        return TokenState(
            access_token=str(payload["access_token"]),
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
        )

    def is_valid(self, *, now: Optional[datetime] = None) -> bool:
        if not self.access_token or self.expires_at is None:
            return False
        return self.expires_at > (now or utcnow()) + EXPIRY_MARGIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TokenState":
        access_token = data.get("accessToken") or None
        expires_at = _parse_instant(data.get("expiresAt"))
        if access_token is None or expires_at is None:
            # A half-written pair is unusable; keep only the refresh token.
            access_token, expires_at = None, None
        return TokenState(
            access_token=access_token,
            refresh_token=data.get("refreshToken") or None,
            expires_at=expires_at,
        )


class TokenManager:
    """Reads and writes the token file used to survive process restarts."""

    def __init__(self, *, cache_path: str = DEFAULT_TOKEN_CACHE_PATH):
        self.cache_path = cache_path

    def ensure_cache_dir(self) -> None:
        directory = os.path.dirname(self.cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def exists(self) -> bool:
        return os.path.exists(self.cache_path)

    def load(self) -> Optional[TokenState]:
        """Load the cached token state, or None when absent or unreadable."""
        if not self.exists():
            return None

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read token file %s: %s", self.cache_path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Token file %s does not contain a JSON object", self.cache_path)
            return None

        try:
            return TokenState.from_dict(data)
        except ValueError as e:
            logger.warning("Token file %s has an invalid expiresAt: %s", self.cache_path, e)
            return None

    def save(self, token: TokenState, *, client_id: str = "", redirect_uri: str = "") -> bool:
        """Persist token state together with the client it belongs to."""
        data = token.to_dict()
        data["clientId"] = client_id
        data["redirectUri"] = redirect_uri

        try:
            self.ensure_cache_dir()
            with open(self.cache_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Could not write token file %s: %s", self.cache_path, e)
            return False

        logger.debug("Saved Spotify token state to %s", self.cache_path)
        return True

    def clear(self) -> bool:
        try:
            if self.exists():
                os.remove(self.cache_path)
            return True
        except OSError as e:
            logger.error("Could not remove token file %s: %s", self.cache_path, e)
            return False
