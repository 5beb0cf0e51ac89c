import json
import os
from typing import Any, Dict

from dotenv import load_dotenv

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    "playlists_file": "data/playlists.json",
    "extractions_dir": "data/extractions",
    "token_cache_file": "data/spotify_tokens.json",
    "log_file": "",

    # Spotify Web API (OAuth authorization code)
    # Client id/secret usually come from .env (SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET).
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_redirect_uri": "http://localhost:8888/callback",
    "spotify_scopes": [
        "playlist-read-private",
        "playlist-read-collaborative",
    ],
    "spotify_show_dialog": True,
    "spotify_auth_timeout": 300,
    "spotify_cache_tokens": True,
    "spotify_page_delay": 0.1,
}

# Environment variables that override config.json
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": "spotify_client_id",
    "SPOTIFY_CLIENT_SECRET": "spotify_client_secret",
    "SPOTIFY_REDIRECT_URI": "spotify_redirect_uri",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "playlists_file": {"type": str, "required": True},
    "extractions_dir": {"type": str, "required": True},
    "token_cache_file": {"type": str, "required": True},
    "log_file": {"type": str, "required": False},

    "spotify_client_id": {"type": str, "required": False},
    "spotify_client_secret": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_show_dialog": {"type": bool, "required": False},
    "spotify_auth_timeout": {"type": (int, float), "required": False, "min": 10, "max": 3600},
    "spotify_cache_tokens": {"type": bool, "required": False},
    "spotify_page_delay": {"type": (int, float), "required": False, "min": 0, "max": 5},
}


def load_config(path: str = CONFIG_PATH, *, use_env: bool = True) -> Dict[str, Any]:
    """Load configuration from file (optional), apply defaults, then .env / environment overrides."""
    config: Dict[str, Any] = {}

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a JSON object.")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = list(value) if isinstance(value, list) else value

    if use_env:
        load_dotenv()
        for env_key, config_key in ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value:
                config[config_key] = value

    return config


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; don't let True pass as a number
        expected_type = rules.get("type")
        if expected_type and (
            not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)
        ):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    client_secret = str(config.get("spotify_client_secret", "")).strip()
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()

    missing = []
    if not client_id:
        missing.append("SPOTIFY_CLIENT_ID")
    if not client_secret:
        missing.append("SPOTIFY_CLIENT_SECRET")
    if not redirect_uri:
        missing.append("spotify_redirect_uri")

    if missing:
        return {
            "ok": False,
            "missing": missing,
            "redirect_uri": redirect_uri,
            "message": (
                f"Missing Spotify settings: {', '.join(missing)}.\n"
                "Create a .env file with SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET\n"
                "(or set them in config.json)."
            ),
        }

    return {
        "ok": True,
        "missing": [],
        "redirect_uri": redirect_uri,
        "message": "Spotify credentials look OK.",
    }
