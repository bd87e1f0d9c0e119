"""
Image source resolution

A user can hand a bot an image in three ways, checked in this order:

1. File attachment: a file picked from storage or uploaded from the computer.
   Its downloadUrl is unauthenticated and only valid for a few minutes, so it
   is passed straight to the vision service and never stored.
2. Inline image: a picture pasted into the compose box or picked from the
   photo library on mobile. Its contentUrl is a protected channel resource and
   must be fetched with the bot's bearer token.
3. A link in the message text. Whether it points at an image is left to the
   vision service.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .activity import Activity, Attachment, FILE_DOWNLOAD_INFO_CONTENT_TYPE, FileDownloadInfo
from .credentials import CredentialCache
from .exceptions import APIError, ActivityParseError
from .http_client import SharedHttpClient, get_http_client
from .utils.logging import get_logger
from .vision.types import BytesImage, ImageReference, UrlImage

logger = get_logger(__name__)

HTTP_URL_PATTERN = re.compile(r"https?://\S*", re.IGNORECASE)


def find_http_url(text: Optional[str]) -> Optional[str]:
    """Return the first http(s) URL in text, or None."""
    if not text:
        return None
    match = HTTP_URL_PATTERN.search(text)
    return match.group(0) if match else None


def get_inline_image_attachments(attachments: Optional[Iterable[Attachment]]) -> List[Attachment]:
    """Return the attachments whose content type is an image type."""
    return [a for a in (attachments or []) if (a.content_type or "").startswith("image/")]


class ImageChannel(Enum):
    FILE = "file"
    INLINE = "inline"
    TEXT_URL = "text_url"


@dataclass(frozen=True)
class ImageSelection:
    """The image chosen for a turn, before any content is fetched"""
    channel: ImageChannel
    url: str
    name: Optional[str] = None


class ImageSourceResolver:
    """Picks the image a turn refers to and turns it into an ImageReference [CA]"""

    def __init__(self, credential_cache: CredentialCache, http_client: Optional[SharedHttpClient] = None):
        self.credential_cache = credential_cache
        self.http_client = http_client

    def select(self, activity: Activity) -> Optional[ImageSelection]:
        """
        Choose the image for this turn: file attachment, then inline image,
        then a URL in the text. Returns None when the turn carries no image.
        """
        for attachment in activity.attachments:
            if attachment.content_type != FILE_DOWNLOAD_INFO_CONTENT_TYPE:
                continue
            try:
                info = FileDownloadInfo.from_dict(attachment.content)
            except ActivityParseError as e:
                logger.warning(
                    f"⚠ Skipping unreadable file attachment: {e}",
                    extra={"event": "image_source.file.invalid", "conversation_id": activity.conversation_id},
                )
                continue
            return ImageSelection(ImageChannel.FILE, info.download_url, attachment.name)

        inline = get_inline_image_attachments(activity.attachments)
        for attachment in inline:
            if attachment.content_url:
                return ImageSelection(ImageChannel.INLINE, attachment.content_url, attachment.name)

        url = find_http_url(activity.text)
        if url is not None:
            return ImageSelection(ImageChannel.TEXT_URL, url)

        return None

    async def load(self, selection: ImageSelection, activity: Activity) -> ImageReference:
        """
        Produce the reference the vision service is given for a selection

        File and text URLs are passed by reference. Inline images are
        downloaded with the credentials of the bot the activity was sent to.

        Raises:
            ConfigurationError: The recipient bot has no configured credentials
            APIError: The inline image could not be downloaded
        """
        if selection.channel != ImageChannel.INLINE:
            return UrlImage(selection.url)

        bot_id = activity.recipient.id if activity.recipient else ""
        credentials = self.credential_cache.get_credentials(bot_id)
        token = await credentials.get_token()

        client = self.http_client or await get_http_client()
        response = await client.get(selection.url, headers={"Authorization": f"Bearer {token}"})
        if response.status_code >= 400:
            raise APIError(f"Downloading the inline image failed with HTTP {response.status_code}")

        content = response.content
        logger.debug(
            f"Fetched inline image ({len(content)} bytes)",
            extra={"event": "image_source.inline.fetched", "conversation_id": activity.conversation_id},
        )
        return BytesImage(content)
