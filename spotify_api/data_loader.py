from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional

from .client import SpotifyClient

PLAYLIST_PAGE_SIZE = 50
TRACK_PAGE_SIZE = 100


@dataclass(frozen=True)
class PlaylistSummary:
    id: str
    name: str
    total_tracks: int


@dataclass(frozen=True)
class TrackRecord:
    position: int
    name: str
    artists: str
    album: str
    release_date: Optional[str]
    duration_ms: int
    duration_formatted: str
    popularity: Optional[int]
    explicit: bool
    external_url: Optional[str]
    spotify_id: Optional[str]
    added_at: Optional[str]
    added_by: str


def parse_duration_ms(duration_ms: Any) -> int:
    try:
        return max(0, int(duration_ms or 0))
    except (TypeError, ValueError):
        return 0


def format_duration(duration_ms: Any) -> str:
    """Format milliseconds as m:ss (65000 -> "1:05")."""

    minutes, rest = divmod(parse_duration_ms(duration_ms), 60000)
    return f"{minutes}:{rest // 1000:02d}"


def join_artist_names(artists: Any) -> str:
    if not isinstance(artists, list):
        return ""
    names = [str(a.get("name")).strip() for a in artists if isinstance(a, dict) and a.get("name")]
    return ", ".join(n for n in names if n)


def map_playlist(item: Any) -> Optional[PlaylistSummary]:
    if not isinstance(item, dict) or not item.get("id"):
        return None
    tracks = item.get("tracks") if isinstance(item.get("tracks"), dict) else {}
    total = tracks.get("total")
    return PlaylistSummary(
        id=str(item["id"]),
        name=str(item.get("name") or ""),
        total_tracks=int(total) if isinstance(total, int) else 0,
    )


def _is_track_item(item: Any) -> bool:
    # Podcast episodes share playlists with tracks; only keep type == "track".
    return isinstance(item, dict) and isinstance(item.get("track"), dict) and item["track"].get("type") == "track"


def map_tracks(items: List[Any], offset: int) -> List[TrackRecord]:
    """Map one page of playlist items to TrackRecords.

    Non-track items are dropped first and the survivors are numbered
    ``offset + index + 1``, so a page with dropped items leaves a gap before
    the next page's first position.
    """

    out: List[TrackRecord] = []
    for index, item in enumerate(i for i in items if _is_track_item(i)):
        track = item["track"]
        album = track.get("album") if isinstance(track.get("album"), dict) else {}
        urls = track.get("external_urls") if isinstance(track.get("external_urls"), dict) else {}
        added_by = item.get("added_by") if isinstance(item.get("added_by"), dict) else {}

        out.append(
            TrackRecord(
                position=offset + index + 1,
                name=str(track.get("name") or ""),
                artists=join_artist_names(track.get("artists")),
                album=str(album.get("name") or ""),
                release_date=album.get("release_date"),
                duration_ms=parse_duration_ms(track.get("duration_ms")),
                duration_formatted=format_duration(track.get("duration_ms")),
                popularity=track.get("popularity"),
                explicit=bool(track.get("explicit")),
                external_url=urls.get("spotify"),
                spotify_id=track.get("id"),
                added_at=item.get("added_at"),
                added_by=str(added_by.get("id") or "unknown"),
            )
        )
    return out


class SpotifyDataLoader:
    """Lazy streams of mapped playlists and playlist tracks."""

    def __init__(self, client: SpotifyClient):
        self.client = client

    async def iter_playlists(self, *, page_size: int = PLAYLIST_PAGE_SIZE) -> AsyncIterator[PlaylistSummary]:
        async for page in self.client.iter_pages(self.client.user_playlists_url(), page_size=page_size):
            for item in page.items:
                summary = map_playlist(item)
                if summary is not None:
                    yield summary

    async def iter_playlist_tracks(
        self,
        playlist_id: str,
        *,
        page_size: int = TRACK_PAGE_SIZE,
    ) -> AsyncIterator[TrackRecord]:
        url = self.client.playlist_tracks_url(playlist_id)
        async for page in self.client.iter_pages(url, page_size=page_size, throttle=True):
            for record in map_tracks(page.items, page.offset):
                yield record

    async def list_all_playlists(self, *, page_size: int = PLAYLIST_PAGE_SIZE) -> List[PlaylistSummary]:
        return [p async for p in self.iter_playlists(page_size=page_size)]

    async def load_playlist_tracks(self, playlist_id: str, *, page_size: int = TRACK_PAGE_SIZE) -> List[TrackRecord]:
        return [t async for t in self.iter_playlist_tracks(playlist_id, page_size=page_size)]
