"""
Bot identity credentials

Each hosted bot (caption, OCR) has its own Bot Framework app id and password.
CredentialCache maps the bot id found on inbound activities (the recipient) to
that bot's AppCredentials, memoized for the life of the process. AppCredentials
exchanges the app password for a bearer token and caches the token until
shortly before it expires.
"""

from __future__ import annotations
import asyncio
import time
from typing import Any, Dict, Optional, Tuple

from .exceptions import APIError, ConfigurationError
from .http_client import SharedHttpClient, get_http_client
from .utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEN_ENDPOINT = "https://login.microsoftonline.com/botframework.com/oauth2/v2.0/token"
DEFAULT_TOKEN_SCOPE = "https://api.botframework.com/.default"

# Refresh tokens this many seconds before the reported expiry
TOKEN_REFRESH_MARGIN_S = 300


class AppCredentials:
    """OAuth client credentials for one bot app registration [SFT]"""

    def __init__(
        self,
        app_id: str,
        app_password: str,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        scope: str = DEFAULT_TOKEN_SCOPE,
        http_client: Optional[SharedHttpClient] = None,
    ):
        self.app_id = app_id
        self.app_password = app_password
        self.token_endpoint = token_endpoint
        self.scope = scope
        self.http_client = http_client

        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"AppCredentials(app_id={self.app_id!r})"

    def _token_is_fresh(self) -> bool:
        return self._token is not None and time.time() < self._expires_at - TOKEN_REFRESH_MARGIN_S

    async def get_token(self) -> str:
        """
        Get a bearer token for this app, requesting a new one when needed

        Raises:
            APIError: The token endpoint rejected the request or answered garbage
        """
        if self._token_is_fresh():
            return self._token

        async with self._lock:
            # Another task may have refreshed while we waited
            if self._token_is_fresh():
                return self._token

            client = self.http_client or await get_http_client()
            response = await client.post(
                self.token_endpoint,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.app_id,
                    "client_secret": self.app_password,
                    "scope": self.scope,
                },
            )

            if response.status_code != 200:
                logger.error(
                    f"❌ Token request for app {self.app_id} failed: HTTP {response.status_code}",
                    extra={
                        "event": "credentials.token.error",
                        "detail": {"app_id": self.app_id, "status": response.status_code},
                    },
                )
                raise APIError(f"Token request failed with HTTP {response.status_code}")

            try:
                body = response.json()
                token = body["access_token"]
                expires_in = float(body.get("expires_in", 3600))
            except (ValueError, KeyError, TypeError) as e:
                raise APIError(f"Token endpoint returned an unreadable response: {e}") from e

            self._token = token
            self._expires_at = time.time() + expires_in
            logger.debug(
                f"Token refreshed for app {self.app_id}",
                extra={"event": "credentials.token.refreshed", "detail": {"expires_in": expires_in}},
            )
            return token


class CredentialCache:
    """
    Keyed cache from bot id to AppCredentials

    Lookups for the same bot id return the same AppCredentials instance, so
    its token cache is shared by every turn addressed to that bot.
    """

    def __init__(self, config: Dict[str, Any], http_client: Optional[SharedHttpClient] = None):
        self.token_endpoint = config.get("BOT_TOKEN_ENDPOINT") or DEFAULT_TOKEN_ENDPOINT
        self.scope = config.get("BOT_TOKEN_SCOPE") or DEFAULT_TOKEN_SCOPE
        self.http_client = http_client

        # bot id -> (app id, app password); bots without a configured id are not hosted
        self._identities: Dict[str, Tuple[str, str]] = {}
        for prefix in ("CAPTION", "OCR"):
            bot_id = config.get(f"{prefix}_BOT_ID")
            if bot_id:
                self._identities[bot_id] = (
                    config.get(f"{prefix}_MICROSOFT_APP_ID") or "",
                    config.get(f"{prefix}_MICROSOFT_APP_PASSWORD") or "",
                )

        self._cache: Dict[str, AppCredentials] = {}

    def get_credentials(self, bot_id: str) -> AppCredentials:
        """
        Resolve the credentials of a configured bot

        Raises:
            ConfigurationError: bot_id is not one of the configured bots
        """
        credentials = self._cache.get(bot_id)
        if credentials is not None:
            return credentials

        if bot_id not in self._identities:
            raise ConfigurationError(f"No credentials configured for bot id '{bot_id}'")

        app_id, app_password = self._identities[bot_id]
        credentials = AppCredentials(
            app_id,
            app_password,
            token_endpoint=self.token_endpoint,
            scope=self.scope,
            http_client=self.http_client,
        )
        self._cache[bot_id] = credentials
        logger.debug(f"Credentials resolved for bot {bot_id}", extra={"event": "credentials.resolved"})
        return credentials
