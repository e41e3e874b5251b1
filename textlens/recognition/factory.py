from textlens.config.settings import Settings
from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.example_client_adapter import ExampleClientAdapter
from textlens.recognition.models import ConfidencePolicy
from textlens.recognition.ocr_space_client_adapter import OcrSpaceClientAdapter
from textlens.recognition.openai_client_adapter import OpenAIClientAdapter
from textlens.recognition.recognizer import Recognizer


class RecognitionClientFactory:
    """Creates the configured recognition adapter and the Recognizer around it."""

    PROVIDERS = ("ocr_space", "openai", "example")

    @classmethod
    def create_client(cls, settings: Settings) -> BaseRecognitionClient:
        provider = settings.recognition_provider.lower()
        if provider == "ocr_space":
            if not settings.ocr_space_api_key:
                raise ValueError("ocr_space_api_key is required for recognition_provider=ocr_space")
            return OcrSpaceClientAdapter(
                api_key=settings.ocr_space_api_key,
                timeout_seconds=settings.recognition_timeout_seconds,
                url=settings.ocr_space_url,
                engine=settings.ocr_space_engine,
            )
        if provider == "openai":
            return OpenAIClientAdapter(
                api_key=settings.openai_api_key,
                model=settings.openai_model_name,
                timeout_seconds=settings.recognition_timeout_seconds,
                base_url=settings.openai_base_url or None,
            )
        if provider == "example":
            return ExampleClientAdapter()
        raise ValueError(
            f"Unknown recognition provider '{provider}'. Choose from: {list(cls.PROVIDERS)}"
        )

    @classmethod
    def create(cls, settings: Settings) -> Recognizer:
        """Create a Recognizer wired to the configured provider."""
        try:
            policy = ConfidencePolicy(settings.recognition_confidence_policy.lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown confidence policy '{settings.recognition_confidence_policy}'. "
                f"Choose from: {[p.value for p in ConfidencePolicy]}"
            ) from exc
        return Recognizer(
            client=cls.create_client(settings),
            timeout_seconds=settings.recognition_timeout_seconds,
            confidence_policy=policy,
            nominal_confidence=settings.recognition_nominal_confidence,
            detect_orientation=settings.recognition_detect_orientation,
            scale=settings.recognition_scale,
        )
