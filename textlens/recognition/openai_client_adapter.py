import base64

import httpx
import openai

from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.exceptions import RecognitionError, RecognitionNetworkError
from textlens.recognition.models import RecognitionResponse

TRANSCRIBE_PROMPT = (
    "Transcribe all handwritten and printed text in this image exactly as written. "
    "Preserve line breaks. Reply with the text only. "
    "If the image contains no readable text, reply with an empty message. "
    "Expected language: {language}."
)


class OpenAIClientAdapter(BaseRecognitionClient):
    """Recognition adapter built on the OpenAI-compatible vision chat API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float,
        base_url: str | None = None,
    ) -> None:
        self._model = model
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
        )

    async def recognize(
        self,
        image_bytes: bytes,
        *,
        mime_type: str,
        language: str,
        detect_orientation: bool,
        scale: bool,
    ) -> RecognitionResponse:
        # the vision model handles rotation and scaling on its own
        _ = detect_orientation, scale
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=0.0,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": TRANSCRIBE_PROMPT.format(language=language)},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise RecognitionNetworkError(f"AI provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise RecognitionNetworkError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise RecognitionError("AI returned no choices")
        return RecognitionResponse(text=response.choices[0].message.content or "")

    async def aclose(self) -> None:
        await self._client.close()
