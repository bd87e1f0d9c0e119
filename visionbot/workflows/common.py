"""Replies and error handling shared by the caption and OCR workflows."""

import httpx

from visionbot.activity import Activity
from visionbot.exceptions import BotBaseException
from visionbot.vision.types import VisionApiError

INSTRUCTIONS = "Hi! Send me a picture or a link to one, and I'll tell you what it is."
GROUP_CHAT_HINT = (
    " In channels and group chats, please paste the picture directly into the compose box:"
    " Teams won't let me receive file attachments yet!"
)
ANALYSIS_ERROR = "There was a problem analyzing the image: {}"

# Failures that end the current turn with a diagnostic reply [REH]
TURN_ERRORS = (VisionApiError, BotBaseException, httpx.HTTPError)


def instructions_for(activity: Activity) -> str:
    """Usage text; group conversations get a hint to paste the picture inline."""
    if activity.conversation is None or activity.is_personal:
        return INSTRUCTIONS
    return INSTRUCTIONS + GROUP_CHAT_HINT
