"""Example recognition client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseRecognitionClient and register the provider in RecognitionClientFactory.
"""

from typing import ClassVar

from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.models import RecognitionResponse


class ExampleClientAdapter(BaseRecognitionClient):
    """Example adapter that returns fixed text for every image.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_TEXT: ClassVar[str] = "Example recognized text"

    def __init__(self, text: str | None = None, confidence: float | None = None) -> None:
        self._text = self.DEFAULT_TEXT if text is None else text
        self._confidence = confidence

    async def recognize(
        self,
        image_bytes: bytes,
        *,
        mime_type: str,
        language: str,
        detect_orientation: bool,
        scale: bool,
    ) -> RecognitionResponse:
        _ = image_bytes, mime_type, language, detect_orientation, scale
        return RecognitionResponse(text=self._text, confidence=self._confidence)
