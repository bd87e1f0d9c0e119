"""
Bot Framework activity model

Dataclasses for the subset of the activity protocol the bots consume and
produce: message and invoke activities, attachments, and the Teams file cards
used by the file consent flow. Parsing accepts the camelCase JSON the channel
sends; ``to_dict`` produces the same shape for outbound activities.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import ActivityParseError


class ActivityTypes:
    MESSAGE = "message"
    INVOKE = "invoke"
    TYPING = "typing"
    CONVERSATION_UPDATE = "conversationUpdate"


# Teams attachment content types
FILE_DOWNLOAD_INFO_CONTENT_TYPE = "application/vnd.microsoft.teams.file.download.info"
FILE_CONSENT_CARD_CONTENT_TYPE = "application/vnd.microsoft.teams.card.file.consent"
FILE_INFO_CARD_CONTENT_TYPE = "application/vnd.microsoft.teams.card.file.info"

# Name of the invoke activity sent when the user answers a file consent card
FILE_CONSENT_INVOKE_NAME = "fileConsent/invoke"

PERSONAL_CONVERSATION = "personal"


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class ChannelAccount:
    id: str
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[ChannelAccount]:
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return cls(id=str(data["id"]), name=data.get("name"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"id": self.id, "name": self.name})


@dataclass
class ConversationAccount:
    id: str
    conversation_type: Optional[str] = None
    is_group: Optional[bool] = None
    tenant_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[ConversationAccount]:
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            conversation_type=data.get("conversationType"),
            is_group=data.get("isGroup"),
            tenant_id=data.get("tenantId"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "conversationType": self.conversation_type,
            "isGroup": self.is_group,
            "tenantId": self.tenant_id,
        })


@dataclass
class Attachment:
    content_type: str
    content_url: Optional[str] = None
    content: Any = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Attachment:
        if not isinstance(data, dict):
            raise ActivityParseError(f"Attachment must be an object, got {type(data).__name__}")
        return cls(
            content_type=str(data.get("contentType") or ""),
            content_url=data.get("contentUrl"),
            content=data.get("content"),
            name=data.get("name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "contentType": self.content_type,
            "contentUrl": self.content_url,
            "content": self.content,
            "name": self.name,
        })


@dataclass
class Activity:
    """A single inbound or outbound activity"""
    type: str
    id: Optional[str] = None
    text: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    name: Optional[str] = None
    value: Any = None
    from_account: Optional[ChannelAccount] = None
    recipient: Optional[ChannelAccount] = None
    conversation: Optional[ConversationAccount] = None
    service_url: Optional[str] = None
    channel_id: Optional[str] = None
    reply_to_id: Optional[str] = None

    @property
    def is_message(self) -> bool:
        return self.type == ActivityTypes.MESSAGE

    @property
    def is_invoke(self) -> bool:
        return self.type == ActivityTypes.INVOKE

    @property
    def is_personal(self) -> bool:
        return self.conversation is not None and self.conversation.conversation_type == PERSONAL_CONVERSATION

    @property
    def conversation_id(self) -> Optional[str]:
        return self.conversation.id if self.conversation else None

    @classmethod
    def from_dict(cls, data: Any) -> Activity:
        """Parse an activity as posted by the channel [IV]"""
        if not isinstance(data, dict):
            raise ActivityParseError("Activity payload must be a JSON object")
        activity_type = data.get("type")
        if not activity_type:
            raise ActivityParseError("Activity payload has no type")

        raw_attachments = data.get("attachments") or []
        if not isinstance(raw_attachments, list):
            raise ActivityParseError("Activity attachments must be a list")

        return cls(
            type=str(activity_type),
            id=data.get("id"),
            text=data.get("text") or "",
            attachments=[Attachment.from_dict(a) for a in raw_attachments],
            name=data.get("name"),
            value=data.get("value"),
            from_account=ChannelAccount.from_dict(data.get("from")),
            recipient=ChannelAccount.from_dict(data.get("recipient")),
            conversation=ConversationAccount.from_dict(data.get("conversation")),
            service_url=data.get("serviceUrl"),
            channel_id=data.get("channelId"),
            reply_to_id=data.get("replyToId"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = _drop_none({
            "type": self.type,
            "id": self.id,
            "text": self.text or None,
            "name": self.name,
            "value": self.value,
            "from": self.from_account.to_dict() if self.from_account else None,
            "recipient": self.recipient.to_dict() if self.recipient else None,
            "conversation": self.conversation.to_dict() if self.conversation else None,
            "serviceUrl": self.service_url,
            "channelId": self.channel_id,
            "replyToId": self.reply_to_id,
        })
        if self.attachments:
            payload["attachments"] = [a.to_dict() for a in self.attachments]
        return payload

    def create_reply(
        self,
        text: str = "",
        attachments: Optional[List[Attachment]] = None,
        activity_type: str = ActivityTypes.MESSAGE,
    ) -> Activity:
        """Create an outbound activity addressed back to the sender of this one"""
        return Activity(
            type=activity_type,
            text=text,
            attachments=list(attachments or []),
            from_account=self.recipient,
            recipient=self.from_account,
            conversation=self.conversation,
            service_url=self.service_url,
            channel_id=self.channel_id,
            reply_to_id=self.id,
        )


@dataclass
class FileDownloadInfo:
    """Content of a file attachment; the download URL is unauthenticated and valid for a few minutes"""
    download_url: str
    unique_id: Optional[str] = None
    file_type: Optional[str] = None
    etag: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> FileDownloadInfo:
        if not isinstance(data, dict) or not data.get("downloadUrl"):
            raise ActivityParseError("File attachment has no downloadUrl")
        return cls(
            download_url=data["downloadUrl"],
            unique_id=data.get("uniqueId"),
            file_type=data.get("fileType"),
            etag=data.get("etag"),
        )


@dataclass
class FileConsentCard:
    """Asks the user for permission to upload a file to their storage"""
    name: str
    description: str
    size_in_bytes: int
    accept_context: Any = None
    decline_context: Any = None

    def to_attachment(self) -> Attachment:
        return Attachment(
            content_type=FILE_CONSENT_CARD_CONTENT_TYPE,
            name=self.name,
            content=_drop_none({
                "description": self.description,
                "sizeInBytes": self.size_in_bytes,
                "acceptContext": self.accept_context,
                "declineContext": self.decline_context,
            }),
        )


@dataclass
class FileUploadInfo:
    """Upload session details sent back when the user accepts a file consent card"""
    name: Optional[str] = None
    upload_url: Optional[str] = None
    content_url: Optional[str] = None
    unique_id: Optional[str] = None
    file_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional[FileUploadInfo]:
        if not isinstance(data, dict):
            return None
        return cls(
            name=data.get("name"),
            upload_url=data.get("uploadUrl"),
            content_url=data.get("contentUrl"),
            unique_id=data.get("uniqueId"),
            file_type=data.get("fileType"),
        )


@dataclass
class FileConsentCardResponse:
    """Value of the fileConsent/invoke activity"""
    ACCEPT = "accept"
    DECLINE = "decline"

    action: str
    context: Any = None
    upload_info: Optional[FileUploadInfo] = None

    @classmethod
    def from_dict(cls, data: Any) -> FileConsentCardResponse:
        if not isinstance(data, dict) or not isinstance(data.get("action"), str):
            raise ActivityParseError("File consent response has no action")
        return cls(
            action=data["action"],
            context=data.get("context"),
            upload_info=FileUploadInfo.from_dict(data.get("uploadInfo")),
        )


@dataclass
class FileInfoCard:
    """Link to an uploaded file"""
    name: Optional[str]
    content_url: Optional[str]
    unique_id: Optional[str]
    file_type: Optional[str]

    @classmethod
    def from_upload_info(cls, upload_info: FileUploadInfo) -> FileInfoCard:
        return cls(
            name=upload_info.name,
            content_url=upload_info.content_url,
            unique_id=upload_info.unique_id,
            file_type=upload_info.file_type,
        )

    def to_attachment(self) -> Attachment:
        return Attachment(
            content_type=FILE_INFO_CARD_CONTENT_TYPE,
            name=self.name,
            content_url=self.content_url,
            content=_drop_none({"uniqueId": self.unique_id, "fileType": self.file_type}),
        )
