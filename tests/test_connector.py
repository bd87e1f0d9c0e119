"""Tests for the connector client and TurnContext reply helpers."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import make_consent_invoke, make_message
from visionbot.connector import ConnectorClient, TurnContext, context_for
from visionbot.exceptions import APIError
from visionbot.http_client import SharedHttpClient


def _credentials():
    credentials = MagicMock()
    credentials.get_token = AsyncMock(return_value="bot-token")
    return credentials


def _connector(handler) -> ConnectorClient:
    http_client = SharedHttpClient()
    http_client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ConnectorClient("https://smba.example.net/emea/", _credentials(), http_client)


class TestConnectorClient:
    @pytest.mark.asyncio
    async def test_reply_is_posted_under_the_inbound_activity(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"id": "sent-1"})

        connector = _connector(handler)
        turn = TurnContext(make_message(text="hi"), connector)

        assert await turn.send_text("hello back") == "sent-1"

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url).startswith("https://smba.example.net/emea/v3/conversations/")
        assert str(request.url).endswith("conversation-1/activities/msg-1")
        assert request.headers["Authorization"] == "Bearer bot-token"
        body = json.loads(request.content)
        assert body["text"] == "hello back"
        assert body["recipient"]["id"] == "29:user-1"

    @pytest.mark.asyncio
    async def test_typing_indicator(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={})

        await TurnContext(make_message(), _connector(handler)).send_typing()
        assert bodies[0]["type"] == "typing"

    @pytest.mark.asyncio
    async def test_delete_activity(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        turn = TurnContext(make_consent_invoke("decline", "r1"), _connector(handler))
        await turn.delete_activity("card-1")

        assert requests[0].method == "DELETE"
        assert str(requests[0].url).endswith("conversation-1/activities/card-1")

    @pytest.mark.asyncio
    async def test_rejected_send_raises(self):
        connector = _connector(lambda request: httpx.Response(403))
        with pytest.raises(APIError):
            await TurnContext(make_message(), connector).send_text("nope")


def test_context_requires_service_url():
    activity = make_message()
    activity.service_url = None
    with pytest.raises(APIError):
        context_for(activity, _credentials(), SharedHttpClient())


class TestConnectorRetries:
    @pytest.mark.asyncio
    async def test_timed_out_reply_is_sent_once(self):
        requests = []

        def handler(request):
            requests.append(request)
            if len(requests) == 1:
                raise httpx.ReadTimeout("slow channel", request=request)
            return httpx.Response(201, json={"id": "sent-2"})

        turn = TurnContext(make_message(), _connector(handler))
        with pytest.raises(httpx.ReadTimeout):
            await turn.send_text("I found English text in that image.")

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_reply_rejected_by_server_error_is_not_resent(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(503)

        turn = TurnContext(make_message(), _connector(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await turn.send_text("hello")

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_delete_is_still_retried(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(503) if len(requests) == 1 else httpx.Response(200)

        connector = _connector(handler)
        connector.http_client._wait_with_jitter = AsyncMock()
        await TurnContext(make_message(), connector).delete_activity("card-1")

        assert [r.method for r in requests] == ["DELETE", "DELETE"]
