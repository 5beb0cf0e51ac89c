import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.client import Page
from spotify_api.data_loader import (
    PlaylistSummary,
    SpotifyDataLoader,
    format_duration,
    join_artist_names,
    map_playlist,
    map_tracks,
)


def track_item(idx, *, artists=("Artist",), added_by="user1"):
    return {
        "added_at": "2020-01-01T00:00:00Z",
        "added_by": {"id": added_by} if added_by else None,
        "track": {
            "type": "track",
            "id": f"id{idx}",
            "name": f"Song {idx}",
            "artists": [{"name": a} for a in artists],
            "album": {"name": "Album", "release_date": "2020-01-01"},
            "duration_ms": 185000,
            "explicit": idx % 2 == 0,
            "popularity": 50,
            "external_urls": {"spotify": f"https://open.spotify.com/track/id{idx}"},
        },
    }


def episode_item(idx):
    return {
        "added_at": "2020-01-01T00:00:00Z",
        "track": {"type": "episode", "id": f"ep{idx}", "name": f"Episode {idx}"},
    }


class TestFormatDuration(unittest.TestCase):
    def test_examples(self):
        self.assertEqual(format_duration(0), "0:00")
        self.assertEqual(format_duration(65000), "1:05")
        self.assertEqual(format_duration(600000), "10:00")
        self.assertEqual(format_duration(185999), "3:05")

    def test_malformed_input(self):
        self.assertEqual(format_duration(None), "0:00")
        self.assertEqual(format_duration("abc"), "0:00")


class TestPlaylistMapper(unittest.TestCase):
    def test_projection(self):
        item = {"id": "p1", "name": "Road trip", "tracks": {"total": 42}, "owner": {"id": "me"}}
        self.assertEqual(map_playlist(item), PlaylistSummary(id="p1", name="Road trip", total_tracks=42))

    def test_missing_fields(self):
        self.assertEqual(map_playlist({"id": "p1"}), PlaylistSummary(id="p1", name="", total_tracks=0))
        self.assertIsNone(map_playlist(None))
        self.assertIsNone(map_playlist({"name": "no id"}))


class TestTrackMapper(unittest.TestCase):
    def test_full_record(self):
        (record,) = map_tracks([track_item(7, artists=("A", "B"))], offset=0)

        self.assertEqual(record.position, 1)
        self.assertEqual(record.name, "Song 7")
        self.assertEqual(record.artists, "A, B")
        self.assertEqual(record.album, "Album")
        self.assertEqual(record.release_date, "2020-01-01")
        self.assertEqual(record.duration_ms, 185000)
        self.assertEqual(record.duration_formatted, "3:05")
        self.assertEqual(record.popularity, 50)
        self.assertFalse(record.explicit)
        self.assertEqual(record.external_url, "https://open.spotify.com/track/id7")
        self.assertEqual(record.spotify_id, "id7")
        self.assertEqual(record.added_at, "2020-01-01T00:00:00Z")
        self.assertEqual(record.added_by, "user1")

    def test_positions_use_page_offset(self):
        records = map_tracks([track_item(0), track_item(1), track_item(2)], offset=100)
        self.assertEqual([r.position for r in records], [101, 102, 103])

    def test_non_tracks_are_dropped_before_numbering(self):
        items = [episode_item(0), track_item(1), episode_item(2), track_item(3)]

        records = map_tracks(items, offset=20)

        self.assertEqual([r.spotify_id for r in records], ["id1", "id3"])
        self.assertEqual([r.position for r in records], [21, 22])

    def test_missing_track_and_unknown_adder(self):
        items = [{"track": None}, "garbage", track_item(1, added_by=None)]
        records = map_tracks(items, offset=0)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].added_by, "unknown")

    def test_non_numeric_duration(self):
        item = {"track": {"type": "track", "name": "x", "duration_ms": "abc"}}

        (record,) = map_tracks([item], offset=0)

        self.assertEqual(record.duration_ms, 0)
        self.assertEqual(record.duration_formatted, "0:00")
        self.assertEqual(record.artists, "")
        self.assertEqual(record.added_by, "unknown")

    def test_join_artist_names(self):
        self.assertEqual(join_artist_names([{"name": "A"}, {"name": "B"}, {"name": "C"}]), "A, B, C")
        self.assertEqual(join_artist_names(None), "")


class FakeClient:
    """Serves pre-built pages and records throttle flags."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def user_playlists_url(self):
        return "playlists"

    def playlist_tracks_url(self, playlist_id):
        return f"tracks/{playlist_id}"

    async def iter_pages(self, url, *, page_size, throttle=False):
        self.calls.append((url, page_size, throttle))
        for page in self.pages:
            yield page


class TestSpotifyDataLoader(unittest.IsolatedAsyncioTestCase):
    async def test_track_positions_across_pages_keep_the_gap(self):
        pages = [
            Page(items=[track_item(0), episode_item(1), track_item(2)], next_url="n", total=5, offset=0),
            Page(items=[track_item(3), track_item(4)], next_url=None, total=5, offset=3),
        ]
        client = FakeClient(pages)
        loader = SpotifyDataLoader(client)

        tracks = await loader.load_playlist_tracks("pl1", page_size=3)

        self.assertEqual([t.position for t in tracks], [1, 2, 4, 5])
        self.assertEqual(client.calls, [("tracks/pl1", 3, True)])

    async def test_playlists_are_not_throttled(self):
        pages = [
            Page(items=[{"id": "a", "name": "A", "tracks": {"total": 1}}], next_url="n", total=2, offset=0),
            Page(items=[{"id": "b", "name": "B", "tracks": {"total": 2}}], next_url=None, total=2, offset=1),
        ]
        client = FakeClient(pages)
        loader = SpotifyDataLoader(client)

        playlists = await loader.list_all_playlists()

        self.assertEqual([p.id for p in playlists], ["a", "b"])
        self.assertEqual(client.calls, [("playlists", 50, False)])


if __name__ == "__main__":
    unittest.main(verbosity=2)
