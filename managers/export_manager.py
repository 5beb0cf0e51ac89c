import os
import re
import csv
from datetime import datetime
from typing import Iterable, Optional
from spotify_api.data_loader import TrackRecord

# Default directory for CSV extractions
EXTRACTIONS_DIR = "data/extractions"

MAX_FILENAME_LENGTH = 50

CSV_HEADERS = [
    "Position",
    "Title",
    "Artists",
    "Album",
    "Release Date",
    "Duration",
    "Popularity",
    "Explicit",
    "Spotify URL",
    "Spotify ID",
]


def sanitize_filename(name: str) -> str:
    """Lowercase, keep [a-z0-9] and whitespace, turn whitespace runs into '_', cap the length."""
    cleaned = re.sub(r"[^a-z0-9\s]", "", (name or "").lower())
    cleaned = re.sub(r"\s+", "_", cleaned)
    return cleaned[:MAX_FILENAME_LENGTH]


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Date stamp used as filename prefix (YYYYMMDD)."""
    return (now or datetime.now()).strftime("%Y%m%d")


def build_export_filename(playlist_name: str, timestamp: str) -> str:
    return f"{timestamp}_{sanitize_filename(playlist_name)}.csv"


def _track_row(track: TrackRecord) -> list:
    return [
        track.position,
        track.name,
        track.artists,
        track.album,
        track.release_date or "",
        track.duration_formatted,
        "" if track.popularity is None else track.popularity,
        "Yes" if track.explicit else "No",
        track.external_url or "",
        track.spotify_id or "",
    ]


def write_tracks_csv(tracks: Iterable[TrackRecord], playlist: dict, filepath: str, now: Optional[datetime] = None) -> int:
    """
    Write a playlist's tracks to a CSV file.

    The file starts with '#' comment lines (playlist name, track count,
    export date) and a blank line, followed by the header row.

    Returns:
        Number of track rows written
    """
    tracks = list(tracks)
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    exported_on = (now or datetime.now()).strftime("%Y-%m-%d")

    with open(filepath, "w", encoding="utf-8", newline="") as f:
        f.write(f"# Playlist: {playlist.get('name', '')}\n")
        f.write(f"# Total: {len(tracks)} tracks\n")
        f.write(f"# Exported on: {exported_on}\n")
        f.write("\n")

        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for track in tracks:
            writer.writerow(_track_row(track))

    return len(tracks)
