"""Tests for bot credential resolution and token caching."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import http_response
from visionbot.credentials import AppCredentials, CredentialCache
from visionbot.exceptions import APIError, ConfigurationError

CONFIG = {
    "CAPTION_BOT_ID": "28:caption-bot",
    "CAPTION_MICROSOFT_APP_ID": "caption-app",
    "CAPTION_MICROSOFT_APP_PASSWORD": "caption-secret",
    "OCR_BOT_ID": "28:ocr-bot",
    "OCR_MICROSOFT_APP_ID": "ocr-app",
    "OCR_MICROSOFT_APP_PASSWORD": "ocr-secret",
}


def _token_client(*responses):
    client = MagicMock()
    client.post = AsyncMock(side_effect=list(responses))
    return client


class TestCredentialCache:
    def test_resolves_each_bot(self):
        cache = CredentialCache(CONFIG)
        assert cache.get_credentials("28:caption-bot").app_id == "caption-app"
        assert cache.get_credentials("28:ocr-bot").app_id == "ocr-app"

    def test_second_lookup_returns_cached_instance(self):
        cache = CredentialCache(CONFIG)
        first = cache.get_credentials("28:ocr-bot")
        second = cache.get_credentials("28:ocr-bot")
        assert first is second

    def test_unknown_bot_is_a_configuration_error(self):
        cache = CredentialCache(CONFIG)
        with pytest.raises(ConfigurationError):
            cache.get_credentials("28:someone-else")

    def test_unconfigured_caption_bot(self):
        config = {k: v for k, v in CONFIG.items() if not k.startswith("CAPTION")}
        cache = CredentialCache(config)
        with pytest.raises(ConfigurationError):
            cache.get_credentials("")

    def test_repr_hides_password(self):
        credentials = CredentialCache(CONFIG).get_credentials("28:ocr-bot")
        assert "ocr-secret" not in repr(credentials)


class TestAppCredentials:
    @pytest.mark.asyncio
    async def test_token_request_and_cache(self):
        client = _token_client(http_response(200, "POST", json={"access_token": "tok-1", "expires_in": 3600}))
        credentials = AppCredentials("app", "secret", http_client=client)

        assert await credentials.get_token() == "tok-1"
        assert await credentials.get_token() == "tok-1"

        client.post.assert_awaited_once()
        data = client.post.call_args.kwargs["data"]
        assert data["grant_type"] == "client_credentials"
        assert data["client_id"] == "app"
        assert data["client_secret"] == "secret"
        assert data["scope"] == "https://api.botframework.com/.default"

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self):
        client = _token_client(
            http_response(200, "POST", json={"access_token": "tok-1", "expires_in": 3600}),
            http_response(200, "POST", json={"access_token": "tok-2", "expires_in": 3600}),
        )
        credentials = AppCredentials("app", "secret", http_client=client)

        assert await credentials.get_token() == "tok-1"
        credentials._expires_at = time.time() - 1
        assert await credentials.get_token() == "tok-2"
        assert client.post.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_token_request(self):
        client = _token_client(http_response(401, "POST", json={"error": "invalid_client"}))
        credentials = AppCredentials("app", "wrong", http_client=client)
        with pytest.raises(APIError):
            await credentials.get_token()

    @pytest.mark.asyncio
    async def test_unreadable_token_response(self):
        client = _token_client(http_response(200, "POST", json={"token_type": "Bearer"}))
        credentials = AppCredentials("app", "secret", http_client=client)
        with pytest.raises(APIError):
            await credentials.get_token()
