"""
Core types and data models for the vision service integration

Defines the image reference variants, the describe / OCR result shapes as the
service returns them, and the structured service error.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from visionbot.exceptions import VisionContractError


class VisionOperation(Enum):
    """Remote operations offered by the vision service"""
    DESCRIBE = "describe"
    RECOGNIZE_TEXT = "ocr"


@dataclass(frozen=True)
class UrlImage:
    """Image passed to the service by reference"""
    url: str


@dataclass(frozen=True)
class BytesImage:
    """Image passed to the service as raw content"""
    data: bytes

    def __repr__(self) -> str:
        return f"BytesImage(<{len(self.data)} bytes>)"


ImageReference = Union[UrlImage, BytesImage]


@dataclass(eq=False)
class VisionApiError(Exception):
    """Structured failure reported by the vision service [REH]"""
    message: str
    code: Optional[str] = None
    request_id: Optional[str] = None
    status: Optional[int] = None

    def __str__(self) -> str:
        return self.message

    @classmethod
    def from_response(cls, status: int, payload: Any) -> VisionApiError:
        """Build the error from a non-success response body.

        The service answers either ``{"code", "message", "requestId"}`` or, for
        gateway-level rejections such as a bad subscription key,
        ``{"error": {"code", "message"}}``.
        """
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            payload = payload["error"]
        if not isinstance(payload, dict) or not isinstance(payload.get("message"), str):
            raise VisionContractError(
                f"Vision service returned HTTP {status} with an unreadable error body"
            )
        code = payload.get("code")
        return cls(
            message=payload["message"],
            code=str(code) if code is not None else None,
            request_id=payload.get("requestId"),
            status=status,
        )


def _expect_dict(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise VisionContractError(f"Expected an object for {what}, got {type(value).__name__}")
    return value


def _expect_list(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise VisionContractError(f"Expected a list for {what}, got {type(value).__name__}")
    return value


@dataclass
class ImageCaption:
    text: str
    confidence: float = 0.0


@dataclass
class ImageMetadata:
    width: int = 0
    height: int = 0
    format: str = ""


@dataclass
class DescribeResult:
    """Result of the describe operation; only the first caption is shown to users"""
    captions: List[ImageCaption] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    request_id: Optional[str] = None
    metadata: Optional[ImageMetadata] = None

    @property
    def first_caption(self) -> Optional[ImageCaption]:
        return self.captions[0] if self.captions else None

    @classmethod
    def from_dict(cls, data: Any) -> DescribeResult:
        data = _expect_dict(data, "describe result")
        description = _expect_dict(data.get("description"), "description")
        try:
            captions = [
                ImageCaption(text=str(c["text"]), confidence=float(c.get("confidence", 0.0)))
                for c in _expect_list(description.get("captions"), "captions")
            ]
            tags = [str(t) for t in _expect_list(description.get("tags"), "tags")]
            metadata = None
            if isinstance(data.get("metadata"), dict):
                meta = data["metadata"]
                metadata = ImageMetadata(
                    width=int(meta.get("width", 0)),
                    height=int(meta.get("height", 0)),
                    format=str(meta.get("format", "")),
                )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise VisionContractError(f"Malformed describe result: {e}") from e

        return cls(
            captions=captions,
            tags=tags,
            request_id=data.get("requestId"),
            metadata=metadata,
        )


@dataclass
class OcrWord:
    text: str
    bounding_box: Optional[str] = None


@dataclass
class OcrLine:
    words: List[OcrWord] = field(default_factory=list)
    bounding_box: Optional[str] = None

    def text(self) -> str:
        return " ".join(word.text for word in self.words)


@dataclass
class OcrRegion:
    lines: List[OcrLine] = field(default_factory=list)
    bounding_box: Optional[str] = None

    def text(self) -> str:
        return "\r\n".join(line.text() for line in self.lines)


@dataclass
class OcrResult:
    """Result of the OCR operation"""
    language: str = ""
    text_angle: float = 0.0
    orientation: str = ""
    regions: List[OcrRegion] = field(default_factory=list)

    def recognized_text(self) -> str:
        """Flatten to a single string: words by spaces, lines by CRLF, regions by a blank line."""
        return "\r\n\r\n".join(region.text() for region in self.regions)

    @classmethod
    def from_dict(cls, data: Any) -> OcrResult:
        data = _expect_dict(data, "OCR result")
        try:
            regions = []
            for raw_region in _expect_list(data.get("regions"), "regions"):
                raw_region = _expect_dict(raw_region, "region")
                lines = []
                for raw_line in _expect_list(raw_region.get("lines"), "lines"):
                    raw_line = _expect_dict(raw_line, "line")
                    words = [
                        OcrWord(text=str(w["text"]), bounding_box=w.get("boundingBox"))
                        for w in _expect_list(raw_line.get("words"), "words")
                    ]
                    lines.append(OcrLine(words=words, bounding_box=raw_line.get("boundingBox")))
                regions.append(OcrRegion(lines=lines, bounding_box=raw_region.get("boundingBox")))

            text_angle = data.get("textAngle")
            return cls(
                language=str(data.get("language") or ""),
                text_angle=float(text_angle) if text_angle is not None else 0.0,
                orientation=str(data.get("orientation") or ""),
                regions=regions,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise VisionContractError(f"Malformed OCR result: {e}") from e
