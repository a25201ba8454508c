"""GitHub App authentication."""

import base64
import binascii
import logging
import threading
import time
from pathlib import Path

import jwt
import requests

from interactive_reviewer.config import GitHubSettings
from interactive_reviewer.errors import GitHubAPIError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Installation tokens live for an hour; refresh a little early
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60


def _looks_like_pem(text: str) -> bool:
    stripped = text.strip()
    return "-----BEGIN" in stripped and "-----END" in stripped and "PRIVATE KEY" in stripped


def load_private_key(settings: GitHubSettings) -> str:
    """Load the GitHub App private key.

    The key may be given inline (PEM, optionally with escaped newlines),
    base64 encoded, or as a path to a PEM file.

    Raises:
        ValueError: If no valid PEM key can be found
    """
    if settings.private_key:
        raw = settings.private_key.strip()
        if _looks_like_pem(raw.replace("\\n", "\n")):
            return raw.replace("\\n", "\n")
        try:
            decoded = base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError("GitHub private key is neither PEM nor base64 encoded PEM") from e
        if _looks_like_pem(decoded):
            return decoded
        raise ValueError("Decoded GitHub private key is not in PEM format")

    if settings.private_key_path:
        path = Path(settings.private_key_path)
        if not path.exists():
            raise ValueError(f"GitHub private key file not found: {path}")
        content = path.read_text()
        if not _looks_like_pem(content):
            raise ValueError(f"GitHub private key file is not in PEM format: {path}")
        return content

    raise ValueError("No GitHub private key configured")


class GitHubAppAuth:
    """Issues installation access tokens for a GitHub App.

    Tokens are cached per repository owner until shortly before they expire.
    """

    def __init__(self, app_id: str, private_key: str, api_url: str = GITHUB_API_URL) -> None:
        self.app_id = app_id
        self._private_key = private_key
        self._api_url = api_url.rstrip("/")
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _app_jwt(self) -> str:
        now = int(time.time())
        payload = {
            "iat": now - 60,  # Issued 60 seconds ago (clock drift)
            "exp": now + 600,
            "iss": self.app_id,
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def token_for(self, owner: str) -> str:
        """Get an installation token for the installation on ``owner``.

        Raises:
            GitHubAPIError: If the installation or token cannot be obtained
        """
        with self._lock:
            cached = self._tokens.get(owner)
            if cached and cached[1] - TOKEN_REFRESH_MARGIN_SECONDS > time.time():
                return cached[0]

        headers = {
            "Authorization": f"Bearer {self._app_jwt()}",
            "Accept": "application/vnd.github+json",
        }

        try:
            response = requests.get(
                f"{self._api_url}/orgs/{owner}/installation", headers=headers, timeout=10
            )
            if response.status_code == 404:
                response = requests.get(
                    f"{self._api_url}/users/{owner}/installation", headers=headers, timeout=10
                )
            if response.status_code != 200:
                raise GitHubAPIError(
                    f"Failed to get installation for {owner}: "
                    f"{response.status_code} {response.text}",
                    status=response.status_code,
                )
            installation_id = response.json()["id"]

            response = requests.post(
                f"{self._api_url}/app/installations/{installation_id}/access_tokens",
                headers=headers,
                timeout=10,
            )
            if response.status_code != 201:
                raise GitHubAPIError(
                    f"Failed to get access token: {response.status_code} {response.text}",
                    status=response.status_code,
                )
            token = response.json()["token"]
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub App authentication failed: {e}") from e

        logger.info(f"Obtained installation token for {owner} (installation {installation_id})")
        with self._lock:
            self._tokens[owner] = (token, time.time() + 3600)
        return token
