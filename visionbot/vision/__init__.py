"""
Vision service integration

- VisionGateway: describe and OCR calls against the vision service
- Vision types: image references, results and the structured service error

Usage:
    from visionbot.vision import VisionGateway, UrlImage

    gateway = VisionGateway(endpoint, access_key)
    result = await gateway.describe(UrlImage("https://example.com/cat.jpg"))
"""

from .gateway import VisionGateway
from .languages import language_display_name
from .types import (
    BytesImage,
    DescribeResult,
    ImageCaption,
    ImageReference,
    OcrResult,
    UrlImage,
    VisionApiError,
    VisionOperation,
)

__all__ = [
    "VisionGateway",
    "language_display_name",
    "BytesImage",
    "DescribeResult",
    "ImageCaption",
    "ImageReference",
    "OcrResult",
    "UrlImage",
    "VisionApiError",
    "VisionOperation",
]
