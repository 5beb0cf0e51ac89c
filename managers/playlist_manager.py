import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from managers.export_manager import EXTRACTIONS_DIR, build_export_filename, generate_timestamp, write_tracks_csv
from managers.metadata_manager import METADATA_FILE, load_metadata, marked_playlists, merge_playlists, save_metadata
from spotify_api.auth import SpotifyAuth
from spotify_api.client import SpotifyClient
from spotify_api.data_loader import SpotifyDataLoader
from spotify_api.errors import SpotifyError, TokenExchangeFailed
from spotify_api.token_manager import DEFAULT_TOKEN_CACHE_PATH, TokenManager
from utils.logger import log_info, log_success, log_warning, log_error


@dataclass(frozen=True)
class ExtractionResult:
    playlist: str
    filename: str
    tracks_count: int


class PlaylistManager:
    """Runs the three user-facing workflows: sync, list and extract.

    Network access goes through one SpotifyAuth/SpotifyClient pair; playlists
    are extracted one at a time, and a failing playlist is reported without
    stopping the others.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        auth: Optional[SpotifyAuth] = None,
        client: Optional[SpotifyClient] = None,
    ):
        self.config = config or {}
        self.metadata_file = self.config.get("playlists_file") or METADATA_FILE
        self.extractions_dir = self.config.get("extractions_dir") or EXTRACTIONS_DIR

        if auth is None:
            token_manager = TokenManager(cache_path=self.config.get("token_cache_file") or DEFAULT_TOKEN_CACHE_PATH)
            auth = SpotifyAuth(self.config, token_manager=token_manager)
        self.auth = auth
        self.client = client or SpotifyClient(self.auth, config=self.config)
        self.loader = SpotifyDataLoader(self.client)

    async def __aenter__(self) -> "PlaylistManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.auth.aclose()

    async def initialize(self) -> None:
        """Make sure a usable token exists: cached, refreshed, or from a new browser login."""
        log_info("🚀 Initializing...")
        await self._ensure_token()

        profile = await self.client.me()
        log_info(f"👤 Signed in as {profile.get('display_name') or profile.get('id') or 'unknown user'}")

    async def _ensure_token(self) -> None:
        if self.auth.restore():
            log_success("Existing authentication is valid")
            return

        if self.auth.token.refresh_token:
            try:
                await self.auth.refresh()
                log_success("Cached authentication refreshed")
                return
            except TokenExchangeFailed as e:
                log_warning(f"Could not refresh the cached token: {e}")

        log_info("🔐 Authentication required...")
        await self.auth.authenticate()
        log_success("Authentication successful")

    async def sync_playlists(self) -> List[dict]:
        """Fetch every playlist and merge it into the metadata file, keeping to_extract flags."""
        await self.initialize()

        log_info("📋 Fetching your playlists...")
        summaries = []
        async for summary in self.loader.iter_playlists():
            summaries.append(summary)
        log_info(f"📋 {len(summaries)} playlists fetched")

        existing = load_metadata(self.metadata_file)
        log_info(f"📊 Existing: {len(existing)}, discovered: {len(summaries)}")

        merged, new_count = merge_playlists(summaries, existing)
        if new_count > 0:
            log_info(f"✨ {new_count} new playlists discovered")

        save_metadata(merged, self.metadata_file)
        log_success(f"Sync complete - {len(merged)} playlists")
        return merged

    async def extract_marked_playlists(self) -> List[ExtractionResult]:
        """Export every playlist flagged to_extract into a date-stamped CSV file."""
        await self.initialize()

        metadata = load_metadata(self.metadata_file)
        to_extract = marked_playlists(metadata)

        if not to_extract:
            log_info("ℹ️ No playlist is marked for extraction")
            log_info(f"💡 Set \"to_extract\": true in {self.metadata_file} or use the menu to mark playlists")
            return []

        log_info(f"🎵 {len(to_extract)} playlists to extract:")
        for playlist in to_extract:
            log_info(f"  - {playlist.get('name')} ({playlist.get('tracks_total')} tracks)")

        timestamp = generate_timestamp()
        os.makedirs(self.extractions_dir, exist_ok=True)

        results: List[ExtractionResult] = []
        for playlist in tqdm(to_extract, desc="Extracting", unit="playlist"):
            name = playlist.get("name") or playlist["id"]
            try:
                log_info(f"🎵 Extracting \"{name}\"...")
                tracks = [t async for t in self.loader.iter_playlist_tracks(playlist["id"])]

                filename = build_export_filename(name, timestamp)
                write_tracks_csv(tracks, playlist, os.path.join(self.extractions_dir, filename))

                results.append(ExtractionResult(playlist=name, filename=filename, tracks_count=len(tracks)))
                log_success(f"\"{name}\": {len(tracks)} tracks → {filename}")
            except (SpotifyError, OSError, ValueError, TypeError, KeyError) as e:
                log_error(f"Extraction failed for \"{name}\": {e}")

        log_info(f"🎉 Extraction finished - {len(results)} files created in {self.extractions_dir}/")
        return results

    def list_playlists(self) -> List[dict]:
        """Print stored playlists with their extraction status (no network access)."""
        metadata = load_metadata(self.metadata_file)

        if not metadata:
            log_info("📋 No playlists found. Run sync first.")
            return []

        log_info(f"📋 Your playlists ({len(metadata)} total):")
        log_info("=" * 60)
        log_info(f"🎯 To extract: {len(marked_playlists(metadata))}")
        log_info("")

        for index, playlist in enumerate(metadata, start=1):
            status = "🎯" if playlist.get("to_extract") else "⚪"
            log_info(f"{status} {index:>3}. {playlist.get('name')} ({playlist.get('tracks_total')} tracks)")

        log_info("")
        log_info(f"💡 To mark/unmark playlists, edit \"to_extract\" in {self.metadata_file} or use the menu")
        return metadata
