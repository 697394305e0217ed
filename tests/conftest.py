"""Shared fixtures for gcal-cli tests.

Every test that touches credential or token files gets its own XDG
directories, so nothing reads from or writes to the real home directory.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


@dataclass
class GcalPaths:
    config_dir: Path
    data_dir: Path
    credentials_path: Path
    token_path: Path


@pytest.fixture
def gcal_paths(tmp_path, monkeypatch) -> GcalPaths:
    """Point the XDG config and data dirs at a temporary directory."""
    config_home = tmp_path / "config"
    data_home = tmp_path / "data"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_home))
    monkeypatch.delenv("GCAL_CALLBACK_PORT", raising=False)

    return GcalPaths(
        config_dir=config_home / "gcal",
        data_dir=data_home / "gcal",
        credentials_path=config_home / "gcal" / "gcal-credentials.json",
        token_path=data_home / "gcal" / "gcal-tokens.json",
    )


@pytest.fixture
def mock_credentials(gcal_paths) -> Path:
    """Create a credentials file in the temporary config dir."""
    gcal_paths.config_dir.mkdir(parents=True, exist_ok=True)
    creds = {
        "clientId": "test-client-id.apps.googleusercontent.com",
        "clientSecret": "test-client-secret",
    }
    with open(gcal_paths.credentials_path, "w") as f:
        json.dump(creds, f)
    return gcal_paths.credentials_path


@pytest.fixture
def write_token(gcal_paths):
    """Write a token file; returns a function taking the expiry offset."""

    def _write(
        expires_in: timedelta | None = timedelta(hours=1),
        access_token: str = "test-access-token",
        refresh_token: str = "test-refresh-token",
    ) -> Path:
        gcal_paths.data_dir.mkdir(parents=True, exist_ok=True)
        if expires_in is None:
            expiry = "0001-01-01T00:00:00Z"
        else:
            expiry = (datetime.now(timezone.utc) + expires_in).isoformat()
        token = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expiry": expiry,
        }
        with open(gcal_paths.token_path, "w") as f:
            json.dump(token, f)
        return gcal_paths.token_path

    return _write
