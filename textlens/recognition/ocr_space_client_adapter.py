import base64
from typing import Any

import httpx

from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.exceptions import RecognitionError, RecognitionNetworkError
from textlens.recognition.models import RecognitionResponse


class OcrSpaceClientAdapter(BaseRecognitionClient):
    """Recognition adapter for the OCR.space ``parse/image`` REST endpoint.

    OCR.space reports no per-call confidence, so responses carry ``None``.
    """

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: float,
        url: str = "https://api.ocr.space/parse/image",
        engine: int = 2,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._engine = engine
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    async def recognize(
        self,
        image_bytes: bytes,
        *,
        mime_type: str,
        language: str,
        detect_orientation: bool,
        scale: bool,
    ) -> RecognitionResponse:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        form = {
            "base64Image": f"data:{mime_type};base64,{encoded}",
            "language": language,
            "OCREngine": str(self._engine),
            "detectOrientation": _flag(detect_orientation),
            "scale": _flag(scale),
            "isOverlayRequired": "false",
        }
        try:
            response = await self._client.post(
                self._url, data=form, headers={"apikey": self._api_key}
            )
            response.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise RecognitionNetworkError(f"OCR provider network error: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise RecognitionNetworkError(
                f"OCR provider API error: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RecognitionNetworkError(f"OCR provider network error: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise RecognitionError("OCR provider returned invalid JSON") from exc
        return RecognitionResponse(text=self._parse_text(payload))

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _parse_text(payload: Any) -> str:
        if not isinstance(payload, dict):
            raise RecognitionError("OCR provider response must be an object")
        if payload.get("IsErroredOnProcessing"):
            raise RecognitionError(_error_message(payload.get("ErrorMessage")))
        results = payload.get("ParsedResults") or []
        if not isinstance(results, list) or not results:
            return ""
        first = results[0]
        if not isinstance(first, dict):
            raise RecognitionError("OCR provider returned a malformed parsed result")
        text = first.get("ParsedText") or ""
        if not isinstance(text, str):
            raise RecognitionError("OCR provider returned non-text ParsedText")
        return text


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _error_message(raw: Any) -> str:
    if isinstance(raw, list) and raw:
        return str(raw[0])
    if isinstance(raw, str) and raw:
        return raw
    return "OCR failed"
