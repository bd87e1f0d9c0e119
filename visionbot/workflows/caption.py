"""
Caption Workflow - one-turn image description

Typing indicator, image resolution, describe call, then exactly one reply:
the first caption, a shrug when there is none, usage instructions when the
turn has no image, or a diagnostic when anything failed. Nothing is kept
between turns.
"""

from enum import Enum
from typing import Optional

from visionbot.connector import TurnContext
from visionbot.image_source import ImageSourceResolver
from visionbot.logger import log_turn
from visionbot.utils.logging import get_logger
from visionbot.vision.gateway import VisionGateway
from .common import ANALYSIS_ERROR, TURN_ERRORS, instructions_for

logger = get_logger(__name__)

CAPTION_REPLY = "I think that's {}."
NO_CAPTION_REPLY = "¯\\_(ツ)_/¯"


class CaptionOutcome(Enum):
    """How a caption turn was answered"""
    INSTRUCTIONS = "instructions"
    CAPTIONED = "captioned"
    NO_CAPTION = "no_caption"
    FAILED = "failed"


class CaptionWorkflow:
    """Caption bot turn handler"""

    def __init__(self, gateway: VisionGateway, resolver: ImageSourceResolver, language: str = "en"):
        self.gateway = gateway
        self.resolver = resolver
        self.language = language

    async def on_turn(self, turn: TurnContext) -> Optional[CaptionOutcome]:
        """Handle one inbound activity; returns None when the activity is ignored."""
        activity = turn.activity

        # Only messages are answered; invokes and conversation updates are ignored
        if not activity.is_message:
            log_turn(activity, "caption.ignored", {"type": activity.type, "name": activity.name})
            return None

        await turn.send_typing()

        selection = self.resolver.select(activity)
        if selection is None:
            await turn.send_text(instructions_for(activity))
            log_turn(activity, "caption.no_image")
            return CaptionOutcome.INSTRUCTIONS

        try:
            image = await self.resolver.load(selection, activity)
            result = await self.gateway.describe(image, language=self.language)
        except TURN_ERRORS as e:
            await turn.send_text(ANALYSIS_ERROR.format(e))
            log_turn(
                activity,
                "caption.failed",
                {"channel": selection.channel.value, "error": str(e), "error_type": type(e).__name__},
                success=False,
            )
            return CaptionOutcome.FAILED

        caption = result.first_caption
        if caption is None:
            await turn.send_text(NO_CAPTION_REPLY)
            log_turn(activity, "caption.none", {"channel": selection.channel.value})
            return CaptionOutcome.NO_CAPTION

        await turn.send_text(CAPTION_REPLY.format(caption.text))
        log_turn(
            activity,
            "caption.sent",
            {"channel": selection.channel.value, "confidence": round(caption.confidence, 3)},
        )
        return CaptionOutcome.CAPTIONED
