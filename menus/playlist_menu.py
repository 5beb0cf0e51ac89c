import questionary

from managers.metadata_manager import load_metadata, save_metadata, set_extract_flags
from utils.logger import log_info, log_warning, log_success


def mark_playlists_menu(config: dict) -> int:
    """Let the user toggle the to_extract flag of the synced playlists.

    Currently flagged playlists start checked. Returns the number of flags
    that changed (0 when cancelled).
    """
    metadata_file = config["playlists_file"]
    metadata = load_metadata(metadata_file)

    if not metadata:
        log_warning("No playlists found. Run sync first.")
        return 0

    choices = []
    for p in metadata:
        name = (p.get("name") or "(unnamed)").strip()
        total = p.get("tracks_total")
        title = f"{name} ({total if total is not None else '?'} tracks)"
        choices.append(questionary.Choice(title=title, value=p["id"], checked=bool(p.get("to_extract"))))

    selected = questionary.checkbox(
        "Select playlists to extract (space toggles, enter confirms):",
        choices=choices,
    ).ask()

    if selected is None:
        log_info("Cancelled, no changes saved.")
        return 0

    changed = set_extract_flags(metadata, selected)
    if changed == 0:
        log_info("No changes.")
        return 0

    save_metadata(metadata, metadata_file)
    log_success(f"{len(selected)} playlists marked for extraction ({changed} changed)")
    return changed
