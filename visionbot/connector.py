"""
Connector client and per-turn context

ConnectorClient posts and deletes activities in a conversation through the
channel's service URL, authenticated with the bot's bearer token. TurnContext
bundles the inbound activity with the reply helpers the workflows use, so the
workflows never deal with transport details.
"""

from __future__ import annotations
from typing import Dict, List, Optional
from urllib.parse import quote

from .activity import Activity, ActivityTypes, Attachment
from .credentials import AppCredentials
from .exceptions import APIError
from .http_client import NO_RETRY, SharedHttpClient
from .utils.logging import get_logger

logger = get_logger(__name__)


class ConnectorClient:
    """Bot Framework connector REST client [CA]"""

    def __init__(self, service_url: str, credentials: AppCredentials, http_client: SharedHttpClient):
        self.service_url = service_url.rstrip("/")
        self.credentials = credentials
        self.http_client = http_client

    def _activities_url(self, conversation_id: str, activity_id: Optional[str] = None) -> str:
        url = f"{self.service_url}/v3/conversations/{quote(conversation_id, safe='')}/activities"
        if activity_id:
            url += f"/{quote(activity_id, safe='')}"
        return url

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self.credentials.get_token()
        return {"Authorization": f"Bearer {token}"}

    async def send_activity(self, activity: Activity) -> Optional[str]:
        """
        Send an activity to its conversation, threaded under reply_to_id when set

        Returns:
            The id the channel assigned to the sent activity, when reported
        """
        if activity.conversation is None:
            raise APIError("Cannot send an activity without a conversation")

        url = self._activities_url(activity.conversation.id, activity.reply_to_id)
        # Not retried: a timed-out POST may already have been delivered
        response = await self.http_client.post(
            url, config=NO_RETRY, json=activity.to_dict(), headers=await self._auth_headers()
        )
        if response.status_code >= 400:
            logger.warning(
                f"⚠ Connector rejected {activity.type} activity: HTTP {response.status_code}",
                extra={
                    "event": "connector.send.error",
                    "conversation_id": activity.conversation.id,
                    "detail": {"status": response.status_code, "type": activity.type},
                },
            )
            raise APIError(f"Sending activity failed with HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("id") if isinstance(body, dict) else None

    async def delete_activity(self, conversation_id: str, activity_id: str) -> None:
        """Delete a previously sent activity"""
        url = self._activities_url(conversation_id, activity_id)
        response = await self.http_client.delete(url, headers=await self._auth_headers())
        if response.status_code >= 400:
            raise APIError(f"Deleting activity failed with HTTP {response.status_code}")


class TurnContext:
    """Reply helpers bound to one inbound activity"""

    def __init__(self, activity: Activity, connector: ConnectorClient):
        self.activity = activity
        self.connector = connector

    @property
    def credentials(self) -> AppCredentials:
        return self.connector.credentials

    async def send_activity(self, activity: Activity) -> Optional[str]:
        return await self.connector.send_activity(activity)

    async def send_typing(self) -> None:
        await self.send_activity(self.activity.create_reply(activity_type=ActivityTypes.TYPING))

    async def send_text(self, text: str, attachments: Optional[List[Attachment]] = None) -> Optional[str]:
        return await self.send_activity(self.activity.create_reply(text=text, attachments=attachments))

    async def send_attachments(self, attachments: List[Attachment]) -> Optional[str]:
        return await self.send_activity(self.activity.create_reply(attachments=attachments))

    async def delete_activity(self, activity_id: str) -> None:
        await self.connector.delete_activity(self.activity.conversation_id, activity_id)

    def __repr__(self) -> str:
        return f"TurnContext(type={self.activity.type!r}, conversation={self.activity.conversation_id!r})"


def context_for(
    activity: Activity, credentials: AppCredentials, http_client: SharedHttpClient
) -> TurnContext:
    """Build the TurnContext for an inbound activity"""
    if not activity.service_url:
        raise APIError("Inbound activity has no serviceUrl to reply to")
    return TurnContext(activity, ConnectorClient(activity.service_url, credentials, http_client))

