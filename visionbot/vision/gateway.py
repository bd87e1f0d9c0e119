"""
Vision Gateway - HTTP facade for the image describe and OCR operations

Both operations accept an image by reference (JSON ``{"url": ...}`` body) or as
raw bytes (octet-stream body). Service failures are mapped to VisionApiError;
bodies that do not match the documented schema raise VisionContractError.
The gateway never retries: retry policy belongs to its callers.
"""

from __future__ import annotations
import asyncio
import json
import time
from typing import Any, Dict, Optional

import aiohttp

from visionbot.exceptions import APIError, ConfigurationError, VisionContractError
from visionbot.utils.logging import get_logger
from .types import (
    BytesImage,
    DescribeResult,
    ImageReference,
    OcrResult,
    UrlImage,
    VisionApiError,
    VisionOperation,
)

logger = get_logger(__name__)


class VisionGateway:
    """
    Client for the two vision service operations

    Handles:
    - Request construction for URL and byte inputs [CA]
    - Subscription key authentication [SFT]
    - Error body mapping to VisionApiError [REH]
    - Result parsing into typed results [IV]
    """

    DESCRIBE_PATH = "vision/v2.0/describe"
    OCR_PATH = "vision/v2.0/ocr"
    SUBSCRIPTION_KEY_HEADER = "Ocp-Apim-Subscription-Key"

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not endpoint or not access_key:
            raise ConfigurationError("Vision endpoint and access key are required")

        self.endpoint = endpoint.rstrip("/")
        self.access_key = access_key
        self.timeout_seconds = timeout_seconds
        self.session = session
        self._owns_session = session is None
        self.logger = get_logger("vision.gateway")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> VisionGateway:
        return cls(
            endpoint=config.get("VISION_ENDPOINT"),
            access_key=config.get("VISION_ACCESS_KEY"),
            timeout_seconds=config.get("VISION_TIMEOUT_S", 30.0),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session [RM]"""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                connector=aiohttp.TCPConnector(limit=10),
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Cleanup gateway resources [RM]"""
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
            self.logger.info("VisionGateway session closed")

    def _build_url(self, operation: VisionOperation) -> str:
        path = self.DESCRIBE_PATH if operation == VisionOperation.DESCRIBE else self.OCR_PATH
        if self.endpoint.startswith(("http://", "https://")):
            return f"{self.endpoint}/{path}"
        return f"https://{self.endpoint}/{path}"

    async def describe(
        self, image: ImageReference, language: str = "en", max_candidates: int = 1
    ) -> DescribeResult:
        """
        Describe an image

        Args:
            image: URL or byte content of the image
            language: Language of the returned captions
            max_candidates: Maximum number of captions to return

        Returns:
            DescribeResult with captions ordered by confidence

        Raises:
            VisionApiError: The service reported a failure
            VisionContractError: The service response could not be parsed
            APIError: The service could not be reached
        """
        params = {"language": language, "maxCandidates": str(max_candidates)}
        payload = await self._call(VisionOperation.DESCRIBE, image, params)
        return DescribeResult.from_dict(payload)

    async def recognize_text(self, image: ImageReference) -> OcrResult:
        """
        Recognize printed text in an image, with orientation auto-detection

        Raises:
            VisionApiError: The service reported a failure
            VisionContractError: The service response could not be parsed
            APIError: The service could not be reached
        """
        params = {"detectOrientation": "true"}
        payload = await self._call(VisionOperation.RECOGNIZE_TEXT, image, params)
        return OcrResult.from_dict(payload)

    async def _call(
        self, operation: VisionOperation, image: ImageReference, params: Dict[str, str]
    ) -> Any:
        headers = {self.SUBSCRIPTION_KEY_HEADER: self.access_key}
        if isinstance(image, UrlImage):
            body: Dict[str, Any] = {"json": {"url": image.url}}
            input_kind = "url"
        elif isinstance(image, BytesImage):
            headers["Content-Type"] = "application/octet-stream"
            body = {"data": image.data}
            input_kind = "bytes"
        else:
            raise TypeError(f"Unsupported image reference: {type(image).__name__}")

        url = self._build_url(operation)
        session = await self._get_session()
        start_time = time.time()

        self.logger.debug(
            f"Calling vision {operation.value} with {input_kind} input",
            extra={
                "event": "vision.request.start",
                "detail": {"operation": operation.value, "input": input_kind},
            },
        )

        try:
            async with session.post(url, params=params, headers=headers, **body) as resp:
                status = resp.status
                raw = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(
                f"Vision {operation.value} request failed: {e}",
                extra={
                    "event": "vision.request.transport_error",
                    "detail": {"operation": operation.value, "error": str(e)},
                },
            )
            raise APIError(f"Could not reach the vision service: {e}") from e

        elapsed_ms = int((time.time() - start_time) * 1000)
        payload = self._decode(raw, status, operation)

        if 200 <= status < 300:
            self.logger.info(
                f"Vision {operation.value} completed in {elapsed_ms}ms",
                extra={
                    "event": "vision.request.complete",
                    "detail": {"operation": operation.value, "status": status, "elapsed_ms": elapsed_ms},
                },
            )
            return payload

        error = VisionApiError.from_response(status, payload)
        self.logger.warning(
            f"Vision {operation.value} failed: HTTP {status} {error.code}: {error.message}",
            extra={
                "event": "vision.request.error",
                "detail": {
                    "operation": operation.value,
                    "status": status,
                    "code": error.code,
                    "request_id": error.request_id,
                    "elapsed_ms": elapsed_ms,
                },
            },
        )
        raise error

    @staticmethod
    def _decode(raw: bytes, status: int, operation: VisionOperation) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise VisionContractError(
                f"Vision {operation.value} returned HTTP {status} with a non-JSON body"
            ) from e
