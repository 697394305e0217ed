"""OAuth client credential loading.

The credentials file is a flat JSON object:

    {"clientId": "...apps.googleusercontent.com", "clientSecret": "..."}
"""

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from gcal_cli.google.exceptions import CredentialsNotFoundError, NotConfiguredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientCredentials:
    """OAuth client identity."""

    client_id: str
    client_secret: str


def _parse_credentials(data: object, path: Path) -> ClientCredentials:
    if not isinstance(data, dict):
        raise NotConfiguredError(f"parse credentials {path}: expected a JSON object")

    client_id = data.get("clientId")
    client_secret = data.get("clientSecret")
    if not isinstance(client_id, str) or not isinstance(client_secret, str):
        raise NotConfiguredError("credentials file missing clientId or clientSecret")
    if not client_id or not client_secret:
        raise NotConfiguredError("credentials file missing clientId or clientSecret")

    return ClientCredentials(client_id=client_id, client_secret=client_secret)


def load_credentials(path: str | Path) -> ClientCredentials:
    """Load OAuth client credentials from file.

    Args:
        path: Path to the credentials JSON file.

    Returns:
        The loaded ClientCredentials.

    Raises:
        NotConfiguredError: If the file is missing, unreadable, malformed,
            or either field is empty.
    """
    path = Path(path)
    if not path.exists():
        raise CredentialsNotFoundError(str(path))

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise NotConfiguredError(f"parse credentials {path}: {e}") from e
    except OSError as e:
        raise NotConfiguredError(f"read credentials {path}: {e}") from e

    return _parse_credentials(data, path)


def import_credentials(source: str | Path, dest: str | Path) -> ClientCredentials:
    """Validate a credentials file and copy it into place.

    Args:
        source: File to import.
        dest: Destination path (its directory is created if needed).

    Returns:
        The validated ClientCredentials.

    Raises:
        NotConfiguredError: If the source file is not a valid credentials file.
    """
    source = Path(source).expanduser()
    dest = Path(dest)

    creds = load_credentials(source)

    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)
    dest.chmod(0o600)

    logger.info(f"Imported credentials from {source} to {dest}")
    return creds
