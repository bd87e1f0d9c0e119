"""
Webhook endpoints for the caption and OCR bots

The channel posts every activity as JSON to the bot's messaging endpoint:

- POST /api/messages, /ocr/messages -> OCR workflow
- POST /caption/messages           -> caption workflow
- GET  /health

Replies are not returned in the HTTP response; the workflows send them
through the connector while the request is in flight, and the endpoint
answers 200 once the turn has been handled.
"""

from __future__ import annotations
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, FastAPI, HTTPException, Request

from . import __version__
from .activity import Activity
from .connector import context_for
from .credentials import CredentialCache
from .exceptions import ActivityParseError, ConfigurationError
from .http_client import SharedHttpClient
from .image_source import ImageSourceResolver
from .result_store import ResultStore, create_result_store
from .utils.logging import get_logger
from .vision.gateway import VisionGateway
from .workflows import CaptionWorkflow, OcrWorkflow

logger = get_logger(__name__)

router = APIRouter()


@dataclass
class BotServices:
    """Process-wide collaborators shared by every turn [RM]"""

    http_client: SharedHttpClient
    gateway: VisionGateway
    credential_cache: CredentialCache
    resolver: ImageSourceResolver
    result_store: ResultStore
    caption_workflow: CaptionWorkflow
    ocr_workflow: OcrWorkflow

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> BotServices:
        http_client = SharedHttpClient(config)
        gateway = VisionGateway.from_config(config)
        credential_cache = CredentialCache(config, http_client)
        resolver = ImageSourceResolver(credential_cache, http_client)
        result_store = create_result_store(config)
        return cls(
            http_client=http_client,
            gateway=gateway,
            credential_cache=credential_cache,
            resolver=resolver,
            result_store=result_store,
            caption_workflow=CaptionWorkflow(gateway, resolver, language=config.get("VISION_LANGUAGE", "en")),
            ocr_workflow=OcrWorkflow(gateway, resolver, result_store, http_client),
        )

    async def start(self) -> None:
        await self.http_client.start()

    async def close(self) -> None:
        """Cleanup shared clients [RM]"""
        await self.gateway.close()
        await self.http_client.stop()


async def _read_activity(request: Request) -> Activity:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(400, "Request body is not valid JSON") from None

    try:
        return Activity.from_dict(payload)
    except ActivityParseError as e:
        raise HTTPException(400, str(e)) from None


async def _dispatch(request: Request, bot: str) -> Dict[str, Any]:
    services: BotServices = request.app.state.services
    workflow: Union[CaptionWorkflow, OcrWorkflow] = getattr(services, f"{bot}_workflow")
    activity = await _read_activity(request)

    # Each endpoint serves exactly one bot identity
    bot_id = activity.recipient.id if activity.recipient else ""
    if not bot_id or bot_id != request.app.state.bot_ids.get(bot):
        logger.warning(
            f"⚠ Activity for bot {bot_id!r} posted to the {bot} endpoint",
            extra={"event": "web.wrong_bot", "conversation_id": activity.conversation_id},
        )
        raise HTTPException(403, f"This endpoint does not serve bot id '{bot_id}'")

    try:
        credentials = services.credential_cache.get_credentials(bot_id)
    except ConfigurationError as e:
        logger.warning(
            f"⚠ Activity addressed to unknown bot {bot_id!r}",
            extra={"event": "web.unknown_bot", "conversation_id": activity.conversation_id},
        )
        raise HTTPException(403, str(e)) from None

    try:
        turn = context_for(activity, credentials, services.http_client)
        outcome = await workflow.on_turn(turn)
    except Exception as e:
        # The channel gets a 200 answer even when the turn failed
        logger.error(
            f"❌ Unhandled error while handling {activity.type} activity: {e}",
            exc_info=True,
            extra={
                "event": "web.turn.error",
                "conversation_id": activity.conversation_id,
                "activity_id": activity.id,
            },
        )
        return {"status": "error"}

    return {"status": "ok", "outcome": outcome.value if outcome is not None else None}


@router.post("/api/messages")
@router.post("/ocr/messages")
async def ocr_messages(request: Request):
    """Messaging endpoint of the OCR bot"""
    return await _dispatch(request, "ocr")


@router.post("/caption/messages")
async def caption_messages(request: Request):
    """Messaging endpoint of the caption bot"""
    return await _dispatch(request, "caption")


@router.get("/health")
def health_check():
    return {"status": "running", "version": __version__}


def create_app(config: Dict[str, Any], services: Optional[BotServices] = None) -> FastAPI:
    """Build the web application; services are created from config unless given"""
    services = services or BotServices.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        logger.info("✅ Bot services started", extra={"subsys": "web", "event": "web.startup"})
        try:
            yield
        finally:
            await services.close()
            logger.info("🛑 Bot services stopped", extra={"subsys": "web", "event": "web.shutdown"})

    app = FastAPI(title="Vision Bots", version=__version__, lifespan=lifespan)
    app.state.services = services
    app.state.bot_ids = {"ocr": config.get("OCR_BOT_ID"), "caption": config.get("CAPTION_BOT_ID")}
    app.include_router(router)
    return app
