"""Conversation workflows for the caption and OCR bots."""

from .caption import CaptionOutcome, CaptionWorkflow
from .ocr import ConsentState, OcrWorkflow

__all__ = ["CaptionOutcome", "CaptionWorkflow", "ConsentState", "OcrWorkflow"]
