"""
Shared fixtures for the vision bot tests.

Nothing here touches the network: turns record what the workflows send,
the vision gateway is an AsyncMock, and HTTP traffic goes to fake clients
returning real httpx.Response objects.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from visionbot.activity import (
    Activity,
    ActivityTypes,
    Attachment,
    FILE_CONSENT_INVOKE_NAME,
    FILE_DOWNLOAD_INFO_CONTENT_TYPE,
    ChannelAccount,
    ConversationAccount,
)
from visionbot.image_source import ImageSourceResolver
from visionbot.result_store import InMemoryResultStore

BOT_ID = "28:ocr-bot"
USER_ID = "29:user-1"
CONVERSATION_ID = "a:conversation-1"
SERVICE_URL = "https://smba.example.net/emea/"


class FakeTurn:
    """Stands in for TurnContext and records every outbound action"""

    def __init__(self, activity: Activity):
        self.activity = activity
        self.credentials = MagicMock()
        self.sent: List[Activity] = []
        self.deleted: List[str] = []

    async def send_activity(self, activity: Activity) -> Optional[str]:
        self.sent.append(activity)
        return f"sent-{len(self.sent)}"

    async def send_typing(self) -> None:
        await self.send_activity(self.activity.create_reply(activity_type=ActivityTypes.TYPING))

    async def send_text(self, text: str, attachments=None) -> Optional[str]:
        return await self.send_activity(self.activity.create_reply(text=text, attachments=attachments))

    async def send_attachments(self, attachments) -> Optional[str]:
        return await self.send_activity(self.activity.create_reply(attachments=attachments))

    async def delete_activity(self, activity_id: str) -> None:
        self.deleted.append(activity_id)

    @property
    def messages(self) -> List[Activity]:
        return [a for a in self.sent if a.type == ActivityTypes.MESSAGE]

    @property
    def texts(self) -> List[str]:
        return [a.text for a in self.messages if a.text]


def make_message(
    text: str = "",
    attachments: Optional[List[Attachment]] = None,
    conversation_id: str = CONVERSATION_ID,
    conversation_type: str = "personal",
) -> Activity:
    return Activity(
        type=ActivityTypes.MESSAGE,
        id="msg-1",
        text=text,
        attachments=list(attachments or []),
        from_account=ChannelAccount(USER_ID, "User"),
        recipient=ChannelAccount(BOT_ID, "OCR Bot"),
        conversation=ConversationAccount(conversation_id, conversation_type=conversation_type),
        service_url=SERVICE_URL,
        channel_id="msteams",
    )


def make_consent_invoke(
    action: str,
    result_id: Optional[str],
    upload_info: Optional[Dict[str, Any]] = None,
    reply_to_id: Optional[str] = "card-1",
    conversation_id: str = CONVERSATION_ID,
) -> Activity:
    value: Dict[str, Any] = {"action": action, "context": {"resultId": result_id}}
    if upload_info is not None:
        value["uploadInfo"] = upload_info
    return Activity(
        type=ActivityTypes.INVOKE,
        id="invoke-1",
        name=FILE_CONSENT_INVOKE_NAME,
        value=value,
        from_account=ChannelAccount(USER_ID, "User"),
        recipient=ChannelAccount(BOT_ID, "OCR Bot"),
        conversation=ConversationAccount(conversation_id, conversation_type="personal"),
        service_url=SERVICE_URL,
        reply_to_id=reply_to_id,
    )


def file_attachment(name: str = "scan.png", url: str = "https://files.example.com/dl/scan.png") -> Attachment:
    return Attachment(
        content_type=FILE_DOWNLOAD_INFO_CONTENT_TYPE,
        name=name,
        content={"downloadUrl": url, "uniqueId": "file-1", "fileType": "png"},
    )


def inline_image(url: str = "https://smba.example.net/v3/attachments/img-1/views/original") -> Attachment:
    return Attachment(content_type="image/png", content_url=url)


def http_response(status: int = 200, method: str = "GET", url: str = "https://example.com", **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request(method, url), **kwargs)


@pytest.fixture
def fake_http_client():
    """SharedHttpClient double; each verb is an AsyncMock returning a 200 response"""
    client = MagicMock()
    client.get = AsyncMock(return_value=http_response(200, content=b"\x89PNG-bytes"))
    client.post = AsyncMock(return_value=http_response(200, "POST", json={}))
    client.put = AsyncMock(return_value=http_response(201, "PUT"))
    client.delete = AsyncMock(return_value=http_response(200, "DELETE"))
    return client


@pytest.fixture
def credential_cache():
    credentials = MagicMock()
    credentials.get_token = AsyncMock(return_value="bot-token")
    cache = MagicMock()
    cache.get_credentials = MagicMock(return_value=credentials)
    return cache


@pytest.fixture
def resolver(credential_cache, fake_http_client):
    return ImageSourceResolver(credential_cache, fake_http_client)


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.describe = AsyncMock()
    gateway.recognize_text = AsyncMock()
    return gateway


@pytest.fixture
def result_store():
    return InMemoryResultStore()
