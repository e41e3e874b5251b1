from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    public_base_url: str = "http://localhost:5000"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "textlens"
    db_username: str = "textlens"
    db_password: str = "secret"

    image_store_dir: Path = Path("/app/uploads")
    artifacts_dir: Path = Path("/app/pdfs")
    max_upload_bytes: int = 20 * 1024 * 1024
    max_batch_images: int = 20

    preprocess_max_dimension: int = 2000
    preprocess_jpeg_quality: int = 85

    default_language: str = "eng"

    recognition_provider: str = "ocr_space"
    recognition_timeout_seconds: float = 30.0
    recognition_detect_orientation: bool = True
    recognition_scale: bool = True
    recognition_confidence_policy: str = "nominal"
    recognition_nominal_confidence: int = 90

    ocr_space_api_key: str = ""
    ocr_space_url: str = "https://api.ocr.space/parse/image"
    ocr_space_engine: int = 2

    openai_api_key: str = ""
    openai_model_name: str = "gpt-4o-mini"
    openai_base_url: str | None = None

    assembly_engine: str = "reportlab"
    assembly_timeout_seconds: float = 60.0

    @property
    def expose_error_details(self) -> bool:
        """Internal error detail is only surfaced outside production."""
        return self.app_env.lower() != "production"
