# Managers module exports
from managers.metadata_manager import load_metadata, save_metadata, merge_playlists, set_extract_flags, marked_playlists
from managers.export_manager import sanitize_filename, generate_timestamp, build_export_filename, write_tracks_csv
from managers.playlist_manager import PlaylistManager, ExtractionResult

__all__ = [
    # Metadata manager
    "load_metadata",
    "save_metadata",
    "merge_playlists",
    "set_extract_flags",
    "marked_playlists",
    # Export manager
    "sanitize_filename",
    "generate_timestamp",
    "build_export_filename",
    "write_tracks_csv",
    # Playlist manager
    "PlaylistManager",
    "ExtractionResult",
]
