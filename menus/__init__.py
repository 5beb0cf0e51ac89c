# Menus module exports
from menus.main_menu import main_menu, MAIN_MENU_CHOICES
from menus.playlist_menu import mark_playlists_menu

__all__ = [
    "main_menu",
    "MAIN_MENU_CHOICES",
    "mark_playlists_menu",
]
