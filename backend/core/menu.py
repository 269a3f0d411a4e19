"""
Main menu served to signed-in users.

Static for now; entries are ordered as they appear in the frontend sidebar.
"""
from typing import Dict, List

MAIN_MENU: List[Dict[str, str]] = [
    {"id": "dashboard", "title": "Dashboard", "path": "/dashboard", "icon": "home"},
    {"id": "users", "title": "Users", "path": "/users", "icon": "users"},
    {"id": "profile", "title": "Profile", "path": "/profile", "icon": "user"},
    {"id": "settings", "title": "Settings", "path": "/settings", "icon": "settings"},
]


def get_main_menu() -> List[Dict[str, str]]:
    """Return a copy of the main menu entries."""
    return [dict(item) for item in MAIN_MENU]
