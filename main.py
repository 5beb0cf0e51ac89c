import asyncio
import json
import sys

from config import load_config, validate_config, check_spotify_credentials
from managers.playlist_manager import PlaylistManager
from menus.main_menu import main_menu
from menus.playlist_menu import mark_playlists_menu
from spotify_api.errors import SpotifyError
from utils.logger import setup_logging, log_info, log_error, log_success, log_warning

ACTIONS = ("sync", "list", "extract", "menu")

USAGE = "📖 Usage: python main.py [sync|list|extract|menu]"


async def run_sync(config: dict) -> None:
    async with PlaylistManager(config) as manager:
        await manager.sync_playlists()


async def run_extract(config: dict) -> None:
    async with PlaylistManager(config) as manager:
        await manager.extract_marked_playlists()


def run_action(config: dict, action: str) -> bool:
    """Run one network/file action; log failures instead of crashing. Returns success."""
    try:
        if action == "sync":
            log_info("🔄 === PLAYLIST SYNC ===")
            asyncio.run(run_sync(config))
        elif action == "extract":
            log_info("🎯 === EXTRACT MARKED PLAYLISTS ===")
            asyncio.run(run_extract(config))
        elif action == "list":
            log_info("📋 === PLAYLISTS ===")
            PlaylistManager(config).list_playlists()
        return True
    except SpotifyError as e:
        log_error(str(e))
    except OSError as e:
        log_error(f"File error: {e}")
    return False


def interactive_loop(config: dict) -> None:
    while True:
        choice = main_menu()

        if choice == "Sync playlists from Spotify":
            run_action(config, "sync")

        elif choice == "List playlists":
            run_action(config, "list")

        elif choice == "Mark playlists for extraction":
            mark_playlists_menu(config)

        elif choice == "Extract marked playlists":
            run_action(config, "extract")

        elif choice == "Log out (clear cached token)":
            manager = PlaylistManager(config)
            if manager.auth.logout():
                log_success("Cleared cached Spotify token.")
            else:
                log_warning("Could not clear token cache.")

        elif choice == "Exit":
            log_info("Exiting program...")
            break


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    action = argv[0] if argv else "menu"

    if action not in ACTIONS:
        print(USAGE)
        return 2

    try:
        config = load_config()
    except json.JSONDecodeError as e:
        print(f"Config file contains invalid JSON: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(log_file=config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(error)
        return 1

    if action != "list":
        creds = check_spotify_credentials(config)
        if not creds["ok"]:
            log_error(creds["message"])
            return 1

    if action == "menu":
        interactive_loop(config)
        return 0

    return 0 if run_action(config, action) else 1


if __name__ == "__main__":
    sys.exit(main())
