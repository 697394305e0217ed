"""OAuth token persistence.

Tokens are stored as JSON with owner-only permissions:

    {
      "access_token": "...",
      "refresh_token": "...",
      "token_type": "Bearer",
      "expiry": "2026-01-25T10:00:00+00:00"
    }

An unknown expiry is written as the zero timestamp "0001-01-01T00:00:00Z",
which is also what older token files use for it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from gcal_cli.google.exceptions import TokenStoreError

logger = logging.getLogger(__name__)

ZERO_EXPIRY = "0001-01-01T00:00:00Z"

# Tokens this close to expiry are treated as expired. Matches the refresh
# threshold google-auth applies to Credentials.expired, so API calls never
# refresh behind the token store.
EXPIRY_LEEWAY = timedelta(minutes=3, seconds=45)


def _parse_expiry(value: Any) -> datetime | None:
    if value in (None, "", ZERO_EXPIRY):
        return None
    if not isinstance(value, str):
        raise ValueError(f"expiry must be an RFC3339 string, got {type(value).__name__}")

    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.year <= 1:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _format_expiry(expiry: datetime | None) -> str:
    if expiry is None:
        return ZERO_EXPIRY
    return expiry.isoformat()


@dataclass
class TokenRecord:
    """Bearer session state."""

    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: datetime | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check whether the access token can be used without a refresh."""
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.expiry - EXPIRY_LEEWAY > now

    @classmethod
    def from_oauth_token(
        cls, token: dict[str, Any], previous: TokenRecord | None = None
    ) -> TokenRecord:
        """Build a record from an Authlib token dict.

        Providers usually omit the refresh token on refresh responses, in
        which case the previous record's refresh token is kept.
        """
        expires_at = token.get("expires_at")
        expiry = datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None

        refresh_token = token.get("refresh_token") or (previous.refresh_token if previous else "")

        return cls(
            access_token=token.get("access_token") or "",
            refresh_token=refresh_token or "",
            token_type=token.get("token_type") or "Bearer",
            expiry=expiry,
        )

    def to_oauth_token(self) -> dict[str, Any]:
        """Convert to the token dict Authlib sessions expect."""
        token: dict[str, Any] = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
        }
        if self.expiry is not None:
            token["expires_at"] = int(self.expiry.timestamp())
        return token

    def to_dict(self) -> dict[str, str]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expiry": _format_expiry(self.expiry),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token") or "",
            token_type=data.get("token_type") or "Bearer",
            expiry=_parse_expiry(data.get("expiry")),
        )


class TokenStore:
    """Loads and saves the OAuth token file.

    Example:
        >>> store = TokenStore(Path("~/.local/share/gcal/gcal-tokens.json").expanduser())
        >>> record = store.load()
        >>> if record is None:
        ...     print("run 'gcal auth' first")
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> TokenRecord | None:
        """Load token from storage.

        Returns:
            The stored TokenRecord, or None if no token file exists yet.

        Raises:
            TokenStoreError: If the file cannot be read or parsed.
        """
        try:
            with open(self.path) as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info("No existing token found")
            return None
        except json.JSONDecodeError as e:
            raise TokenStoreError(f"parse token {self.path}: {e}") from e
        except OSError as e:
            raise TokenStoreError(f"read token {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise TokenStoreError(f"parse token {self.path}: expected a JSON object")

        try:
            record = TokenRecord.from_dict(data)
        except ValueError as e:
            raise TokenStoreError(f"parse token {self.path}: {e}") from e

        logger.debug(f"Loaded token from {self.path}")
        return record

    def save(self, record: TokenRecord) -> None:
        """Write the token with 0600 permissions, replacing any existing file.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        parent = self.path.parent
        parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        # mkstemp creates the file with mode 0600
        fd, temp_path = tempfile.mkstemp(prefix=".gcal-tokens-", suffix=".tmp", dir=parent)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(record.to_dict(), f, indent=2)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.info(f"Token saved to {self.path}")

    def delete(self) -> bool:
        """Remove the token file.

        Returns:
            True if a file was removed.
        """
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Token removed from {self.path}")
        return True
