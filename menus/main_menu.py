import questionary

MAIN_MENU_CHOICES = [
    "Sync playlists from Spotify",
    "List playlists",
    "Mark playlists for extraction",
    "Extract marked playlists",
    "Log out (clear cached token)",
    "Exit",
]


def main_menu() -> str:
    """Display the main menu and return the selected action."""
    choice = questionary.select(
        "🎵 Spotify Playlist Exporter: what would you like to do?",
        choices=MAIN_MENU_CHOICES,
    ).ask()
    # Ctrl-C returns None from questionary
    return choice or "Exit"
