"""Centralized path and port configuration.

Credentials and tokens live in separate XDG locations:
    $XDG_CONFIG_HOME/gcal/gcal-credentials.json  - OAuth client credentials
    $XDG_DATA_HOME/gcal/gcal-tokens.json         - OAuth tokens

When the XDG variables are unset the defaults are ~/.config and
~/.local/share. Paths are resolved on every call so environment changes
(and tests using monkeypatch) take effect immediately.
"""

import os
from pathlib import Path

APP_NAME = "gcal"

CREDENTIALS_FILE = "gcal-credentials.json"
TOKEN_FILE = "gcal-tokens.json"

DEFAULT_CALLBACK_PORT = 8085
CALLBACK_PORT_ENV = "GCAL_CALLBACK_PORT"


def get_config_dir() -> Path:
    """Return the directory holding the OAuth client credentials."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / APP_NAME


def get_data_dir() -> Path:
    """Return the directory holding the OAuth token.

    The directory is not created here; the token store creates it on save.
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / APP_NAME


def get_credentials_path() -> Path:
    return get_config_dir() / CREDENTIALS_FILE


def get_token_path() -> Path:
    return get_data_dir() / TOKEN_FILE


def get_callback_port() -> int:
    """Return the OAuth callback port.

    Returns:
        Value of GCAL_CALLBACK_PORT if it is a valid port number,
        otherwise the default (8085).
    """
    raw = os.environ.get(CALLBACK_PORT_ENV, "").strip()
    if raw.isdigit() and 0 <= int(raw) <= 65535:
        return int(raw)
    return DEFAULT_CALLBACK_PORT


def get_credential_status() -> dict:
    """Get status of the configured credential files.

    Returns:
        Dictionary with paths and whether each file exists.
    """
    credentials_path = get_credentials_path()
    token_path = get_token_path()
    return {
        "config_dir": str(get_config_dir()),
        "data_dir": str(get_data_dir()),
        "credentials": {
            "path": str(credentials_path),
            "exists": credentials_path.exists(),
        },
        "token": {
            "path": str(token_path),
            "exists": token_path.exists(),
        },
        "callback_port": get_callback_port(),
    }
