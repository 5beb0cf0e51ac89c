from typing import Optional


class SpotifyError(RuntimeError):
    """Base class for every failure raised by spotify_api."""


class AuthTimeout(SpotifyError):
    def __init__(self, timeout: float):
        super().__init__(f"Spotify authorization not completed within {timeout:g} seconds")
        self.timeout = timeout


class AuthorizationDenied(SpotifyError):
    def __init__(self, error: str):
        super().__init__(f"Spotify authorization denied: {error}")
        self.error = error


class AuthorizationInProgress(SpotifyError):
    def __init__(self):
        super().__init__("A Spotify authorization attempt is already in progress")


class TokenExchangeFailed(SpotifyError):
    def __init__(self, detail: str):
        super().__init__(f"Spotify token request failed: {detail}")
        self.detail = detail


class NoRefreshToken(SpotifyError):
    def __init__(self):
        super().__init__("No Spotify refresh token available")


class ReauthorizationRequired(SpotifyError):
    def __init__(self):
        super().__init__("Spotify token expired and no refresh token is available. Re-authentication required.")


class AuthorizationRejected(SpotifyError):
    def __init__(self, url: str):
        super().__init__(f"Spotify rejected the access token twice for {url}")
        self.url = url


class ApiError(SpotifyError):
    def __init__(self, status: int, body: str, *, url: Optional[str] = None):
        super().__init__(f"Spotify API error {status}: {body}")
        self.status = status
        self.body = body
        self.url = url


class TransportError(SpotifyError):
    def __init__(self, detail: str, *, url: Optional[str] = None):
        super().__init__(f"Spotify API request failed: {detail}")
        self.detail = detail
        self.url = url


class ListenerUnavailable(SpotifyError):
    def __init__(self, address: str, detail: str):
        super().__init__(f"Could not open the login callback listener on {address}: {detail}")
        self.address = address
        self.detail = detail
