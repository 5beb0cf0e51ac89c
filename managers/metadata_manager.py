import os
import json
from typing import Iterable, List, Tuple
from utils.logger import log_info, log_warning
from spotify_api.data_loader import PlaylistSummary

# Default location of the playlist metadata (id, name, tracks_total, to_extract)
METADATA_FILE = "data/playlists.json"


def load_metadata(path: str = METADATA_FILE) -> List[dict]:
    """Load stored playlist metadata. Missing or unreadable files yield an empty list."""
    if not os.path.exists(path):
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        log_warning(f"Could not load playlist metadata from {path}: {e}")
        return []

    if not isinstance(data, list):
        log_warning(f"Playlist metadata in {path} is not a list, ignoring it")
        return []

    return [p for p in data if isinstance(p, dict) and p.get("id")]


def save_metadata(metadata: List[dict], path: str = METADATA_FILE):
    """Write playlist metadata as pretty-printed JSON, creating the directory if needed."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(metadata, f, indent=2, ensure_ascii=False)
    log_info(f"💾 Playlist metadata saved to {path}")


def merge_playlists(summaries: Iterable[PlaylistSummary], existing: List[dict]) -> Tuple[List[dict], int]:
    """
    Merge freshly fetched playlists with stored metadata.

    Playlists keep the API order. The to_extract flag of known playlists is
    preserved; new playlists start unflagged. Playlists that no longer exist
    on Spotify are dropped.

    Returns:
        (merged metadata, number of playlists not seen before)
    """
    existing_by_id = {p["id"]: p for p in existing}

    merged = []
    new_count = 0
    for summary in summaries:
        previous = existing_by_id.get(summary.id)
        if previous is None:
            new_count += 1
        merged.append({
            "id": summary.id,
            "name": summary.name,
            "tracks_total": summary.total_tracks,
            "to_extract": bool(previous.get("to_extract")) if previous else False,
        })

    return merged, new_count


def set_extract_flags(metadata: List[dict], selected_ids: Iterable[str]) -> int:
    """Set to_extract=True exactly for selected_ids. Returns how many flags changed."""
    selected = set(selected_ids or [])
    changed = 0
    for playlist in metadata:
        flag = playlist.get("id") in selected
        if bool(playlist.get("to_extract")) != flag:
            changed += 1
        playlist["to_extract"] = flag
    return changed


def marked_playlists(metadata: List[dict]) -> List[dict]:
    return [p for p in metadata if p.get("to_extract")]
