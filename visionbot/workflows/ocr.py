"""
OCR Workflow - text recognition with file consent delivery

State machine over two turns:

    AWAITING_IMAGE -> RECOGNITION_IN_FLIGHT -> AWAITING_CONSENT
    AWAITING_CONSENT -> ACCEPTED | DECLINED | STALE

A message turn runs recognition, stores the text under a fresh result id and
sends a file consent card whose accept/decline context carries that id. The
suspended state lives only in the ResultStore and the card itself. The later
fileConsent/invoke turn is acted on only when its result id is still the
conversation's current one; a newer recognition makes older cards stale.
"""

import uuid
from enum import Enum
from typing import Any, Optional

from visionbot.activity import (
    FILE_CONSENT_INVOKE_NAME,
    FileConsentCard,
    FileConsentCardResponse,
    FileInfoCard,
    FileUploadInfo,
)
from visionbot.connector import TurnContext
from visionbot.exceptions import APIError, ActivityParseError
from visionbot.http_client import NO_RETRY, SharedHttpClient, get_http_client
from visionbot.image_source import ImageChannel, ImageSelection, ImageSourceResolver
from visionbot.logger import log_turn
from visionbot.result_store import PendingOcrResult, ResultStore
from visionbot.utils.logging import get_logger
from visionbot.vision.gateway import VisionGateway
from visionbot.vision.languages import language_display_name
from .common import ANALYSIS_ERROR, INSTRUCTIONS, TURN_ERRORS

logger = get_logger(__name__)

DEFAULT_RESULT_FILENAME = "result.txt"
CONSENT_CARD_DESCRIPTION = "Text recognized from the image"

FOUND_TEXT_REPLY = "I found {} text in that image."
NO_TEXT_REPLY = "I didn't find any text in that picture."
DECLINED_REPLY = "Ok! If you change your mind, just send me the picture again."
EXPIRED_REPLY = "That result has expired. Send me the picture again, and I'll rescan it."
UPLOAD_ERROR_REPLY = "There was an error uploading the file: {}"


class ConsentState(Enum):
    """Where an OCR turn left the conversation"""
    AWAITING_IMAGE = "awaiting_image"
    RECOGNITION_IN_FLIGHT = "recognition_in_flight"
    AWAITING_CONSENT = "awaiting_consent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    STALE = "stale"
    FAILED = "failed"


def consent_context(result_id: str) -> dict:
    """Context round-tripped through the consent card"""
    return {"resultId": result_id}


def result_id_from_context(context: Any) -> Optional[str]:
    if isinstance(context, dict):
        value = context.get("resultId")
        return str(value) if value is not None else None
    return None


def result_filename(selection: ImageSelection) -> str:
    """Suggested name for the result file: '<attachment name>.txt' for file attachments"""
    if selection.channel == ImageChannel.FILE and selection.name:
        return f"{selection.name}.txt"
    return DEFAULT_RESULT_FILENAME


class OcrWorkflow:
    """
    OCR bot turn handler

    Handles:
    - Image resolution and text recognition [CA]
    - Result correlation through the ResultStore [IV]
    - File consent accept / decline and upload session writes [REH]
    """

    def __init__(
        self,
        gateway: VisionGateway,
        resolver: ImageSourceResolver,
        store: ResultStore,
        http_client: Optional[SharedHttpClient] = None,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.store = store
        self.http_client = http_client

    async def on_turn(self, turn: TurnContext) -> Optional[ConsentState]:
        """Handle one inbound activity; returns None when the activity is ignored."""
        activity = turn.activity

        if activity.is_invoke:
            # Only file consent card responses are of interest
            if activity.name == FILE_CONSENT_INVOKE_NAME:
                return await self._handle_consent_response(turn)
            log_turn(activity, "ocr.invoke.unknown", {"name": activity.name})
            return None

        if not activity.is_message:
            log_turn(activity, "ocr.ignored", {"type": activity.type})
            return None

        await turn.send_typing()

        selection = self.resolver.select(activity)
        if selection is None:
            await turn.send_text(INSTRUCTIONS)
            log_turn(activity, "ocr.no_image")
            return ConsentState.AWAITING_IMAGE

        return await self._recognize(turn, selection)

    async def _recognize(self, turn: TurnContext, selection: ImageSelection) -> ConsentState:
        """RECOGNITION_IN_FLIGHT: run OCR and offer the result as a file"""
        activity = turn.activity
        log_turn(activity, "ocr.recognize.start", {"channel": selection.channel.value})

        try:
            image = await self.resolver.load(selection, activity)
            result = await self.gateway.recognize_text(image)
        except TURN_ERRORS as e:
            await turn.send_text(ANALYSIS_ERROR.format(e))
            log_turn(
                activity,
                "ocr.recognize.failed",
                {"error": str(e), "error_type": type(e).__name__},
                success=False,
            )
            return ConsentState.FAILED

        text = result.recognized_text()
        if not text:
            await turn.send_text(NO_TEXT_REPLY)
            log_turn(activity, "ocr.recognize.empty")
            return ConsentState.AWAITING_IMAGE

        # Supersedes any earlier result, so its consent card goes stale
        pending = PendingOcrResult(result_id=str(uuid.uuid4()), text=text)
        await self.store.put(activity.conversation_id, pending)

        size_in_bytes = len(text.encode("utf-8"))
        card = FileConsentCard(
            name=result_filename(selection),
            description=CONSENT_CARD_DESCRIPTION,
            size_in_bytes=size_in_bytes,
            accept_context=consent_context(pending.result_id),
            decline_context=consent_context(pending.result_id),
        )

        language_name = language_display_name(result.language) or result.language
        await turn.send_text(FOUND_TEXT_REPLY.format(language_name), [card.to_attachment()])
        log_turn(
            activity,
            "ocr.consent.requested",
            {"result_id": pending.result_id, "language": result.language, "size_in_bytes": size_in_bytes},
        )
        return ConsentState.AWAITING_CONSENT

    async def _handle_consent_response(self, turn: TurnContext) -> Optional[ConsentState]:
        """AWAITING_CONSENT: act on the user's answer to a consent card"""
        activity = turn.activity

        try:
            response = FileConsentCardResponse.from_dict(activity.value)
        except ActivityParseError as e:
            log_turn(activity, "ocr.consent.invalid", {"error": str(e)}, success=False)
            return None

        if response.action == FileConsentCardResponse.DECLINE:
            await self._delete_consent_card(turn)
            await turn.send_text(DECLINED_REPLY)
            log_turn(activity, "ocr.consent.declined")
            return ConsentState.DECLINED

        if response.action != FileConsentCardResponse.ACCEPT:
            log_turn(activity, "ocr.consent.unknown_action", {"action": response.action})
            return None

        await turn.send_typing()

        # Check that the response is for the current OCR result
        result_id = result_id_from_context(response.context)
        pending = await self.store.get_current(activity.conversation_id, result_id)
        if pending is None:
            await turn.send_text(EXPIRED_REPLY)
            log_turn(activity, "ocr.consent.stale", {"result_id": result_id})
            return ConsentState.STALE

        upload_info = response.upload_info
        try:
            if upload_info is None or not upload_info.upload_url:
                raise APIError("The consent response did not include an upload session")

            await self._upload_file(upload_info.upload_url, pending.text)
            await self._delete_consent_card(turn)
            await turn.send_attachments([FileInfoCard.from_upload_info(upload_info).to_attachment()])
        except TURN_ERRORS as e:
            await turn.send_text(UPLOAD_ERROR_REPLY.format(e))
            log_turn(
                activity,
                "ocr.upload.failed",
                {"result_id": result_id, "error": str(e), "error_type": type(e).__name__},
                success=False,
            )
            return ConsentState.FAILED

        log_turn(activity, "ocr.upload.complete", {"result_id": result_id, "file": _file_label(upload_info)})
        return ConsentState.ACCEPTED

    async def _upload_file(self, upload_url: str, text: str) -> None:
        """Write the whole text to the upload session in a single byte range"""
        data = text.encode("utf-8")
        headers = {
            "Content-Range": f"bytes 0-{len(data) - 1}/{len(data)}",
            "Content-Type": "application/octet-stream",
        }

        client = self.http_client or await get_http_client()
        response = await client.put(upload_url, config=NO_RETRY, content=data, headers=headers)
        if response.status_code >= 400:
            raise APIError(f"Upload session write failed with HTTP {response.status_code}")

    async def _delete_consent_card(self, turn: TurnContext) -> None:
        """Remove the answered consent card from the conversation, when it is known"""
        reply_to_id = turn.activity.reply_to_id
        if not reply_to_id:
            return
        try:
            await turn.delete_activity(reply_to_id)
        except TURN_ERRORS as e:
            # The card staying visible does not change the outcome of the turn
            logger.warning(
                f"⚠ Could not delete consent card {reply_to_id}: {e}",
                extra={"event": "ocr.consent.delete_failed", "conversation_id": turn.activity.conversation_id},
            )


def _file_label(upload_info: FileUploadInfo) -> str:
    return upload_info.name or upload_info.unique_id or ""
