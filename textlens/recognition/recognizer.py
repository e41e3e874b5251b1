"""Turns one stored image into a PageResult via the configured provider."""

import math
import time

from textlens.logging.logger import Log
from textlens.processor.external import call_external
from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.exceptions import NoTextDetectedError, RecognitionNetworkError
from textlens.recognition.models import (
    ConfidencePolicy,
    PageResult,
    RecognitionResponse,
    count_words,
)
from textlens.storage.image_store import StoredImage


class Recognizer:
    """Calls a recognition provider for one image and scores the result."""

    def __init__(
        self,
        *,
        client: BaseRecognitionClient,
        timeout_seconds: float = 30.0,
        confidence_policy: ConfidencePolicy = ConfidencePolicy.NOMINAL,
        nominal_confidence: int = 90,
        detect_orientation: bool = True,
        scale: bool = True,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._confidence_policy = confidence_policy
        self._nominal_confidence = _clamp_confidence(nominal_confidence)
        self._detect_orientation = detect_orientation
        self._scale = scale

    @property
    def confidence_policy(self) -> ConfidencePolicy:
        return self._confidence_policy

    async def extract(self, image: StoredImage, language: str) -> PageResult:
        """Recognize text in ``image``.

        Raises:
            RecognitionNetworkError: on transport failure or timeout.
            RecognitionError: when the provider reports a processing error.
            NoTextDetectedError: when the provider returns empty or blank text.
            ImageStoreError: if the image cannot be read.
        """
        payload = image.read_bytes()
        started = time.perf_counter()
        try:
            response = await call_external(
                self._client.recognize(
                    payload,
                    mime_type=_mime_type(image),
                    language=language,
                    detect_orientation=self._detect_orientation,
                    scale=self._scale,
                ),
                self._timeout_seconds,
            )
        except TimeoutError as exc:
            raise RecognitionNetworkError(
                f"OCR provider did not respond within {self._timeout_seconds:g}s"
            ) from exc
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        text = response.text.strip()
        if not text:
            raise NoTextDetectedError("No text detected in image")

        word_count = count_words(text)
        Log.info(
            "OCR complete",
            image=image.name,
            words=word_count,
            elapsed_ms=elapsed_ms,
        )
        return PageResult(
            text=text,
            confidence=self._score(response),
            word_count=word_count,
            processing_time_ms=elapsed_ms,
            source_image=image,
            confidence_policy=self._confidence_policy,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _score(self, response: RecognitionResponse) -> int:
        if self._confidence_policy is ConfidencePolicy.NOMINAL:
            return self._nominal_confidence
        if response.confidence is None or not math.isfinite(response.confidence):
            Log.warning("Provider reported no usable confidence, scoring page as 0")
            return 0
        return _clamp_confidence(response.confidence)


def _clamp_confidence(value: float) -> int:
    return max(0, min(100, math.floor(value + 0.5)))


def _mime_type(image: StoredImage) -> str:
    suffix = image.path.suffix.lower()
    return {
        ".png": "image/png",
        ".webp": "image/webp",
        ".tif": "image/tiff",
        ".tiff": "image/tiff",
        ".bmp": "image/bmp",
    }.get(suffix, "image/jpeg")
