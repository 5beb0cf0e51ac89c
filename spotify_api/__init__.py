"""Spotify Web API integration (OAuth authorization code + cursor pagination).

- auth: browser login through a one-shot local callback listener, refresh
- client: bearer-authenticated requests, retry-on-401, lazy page streams
- data_loader: playlist/track mappers and per-collection streams
"""

from .auth import SpotifyAuth
from .client import Page, SpotifyClient
from .data_loader import PlaylistSummary, SpotifyDataLoader, TrackRecord
from .errors import (
    ApiError,
    AuthorizationDenied,
    AuthorizationInProgress,
    AuthorizationRejected,
    AuthTimeout,
    ListenerUnavailable,
    NoRefreshToken,
    ReauthorizationRequired,
    SpotifyError,
    TokenExchangeFailed,
    TransportError,
)
from .token_manager import TokenManager, TokenState

__all__ = [
    "SpotifyAuth",
    "SpotifyClient",
    "SpotifyDataLoader",
    "TokenManager",
    "TokenState",
    "Page",
    "PlaylistSummary",
    "TrackRecord",
    "SpotifyError",
    "AuthTimeout",
    "ListenerUnavailable",
    "AuthorizationDenied",
    "AuthorizationInProgress",
    "TokenExchangeFailed",
    "NoRefreshToken",
    "ReauthorizationRequired",
    "AuthorizationRejected",
    "ApiError",
    "TransportError",
]
