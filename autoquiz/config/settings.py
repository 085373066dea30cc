"""Application settings using Pydantic."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LANGUAGES = (
    "English",
    "Spanish",
    "French",
    "German",
    "Italian",
    "Portuguese",
    "Dutch",
    "Russian",
    "Chinese (Simplified)",
    "Japanese",
    "Korean",
    "Arabic",
    "Hindi",
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Usage quota
    auto_create_daily_limit: int = 3
    usage_database_url: str = "sqlite:///./data/auto_create_usage.db"
    usage_retention_days: int = 30
    usage_fallback_max_entries: int = 10000

    # File validation
    max_file_size_bytes: int = 10 * 1024 * 1024
    min_file_size_bytes: int = 1
    min_image_size_bytes: int = 1024
    max_files_per_request: int = 5
    supported_file_extensions: list[str] = [
        ".pdf",
        ".doc",
        ".docx",
        ".txt",
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".tif",
        ".tiff",
        ".webp",
    ]

    # Extraction
    extraction_concurrency: int = 3
    extraction_timeout_seconds: float = 30.0
    web_scraping_timeout_seconds: float = 30.0
    video_transcript_timeout_seconds: float = 15.0
    max_pdf_pages: int = 10
    ocr_language: str = "eng"
    youtube_api_key: str | None = None

    # Generation
    generation_providers: list[str] = ["together", "gemini"]
    generation_timeout_seconds: float = 120.0
    max_content_chars: int = 50000
    retry_max_content_chars: int = 8000
    provider_max_retries: int = 1

    together_api_key: str | None = None
    together_base_url: str = "https://api.together.xyz/v1"
    together_model: str = "deepseek-ai/DeepSeek-R1-Distill-Llama-70B"
    together_max_tokens: int = 2000
    together_temperature: float = 0.7

    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash"
    gemini_max_tokens: int = 4000
    gemini_temperature: float = 0.8

    ollama_base_url: str | None = None
    ollama_model: str = "llama3.1:8b"
    ollama_temperature: float = 0.7
    ollama_num_ctx: int = 8192

    # Pipeline
    request_deadline_seconds: float = 300.0

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
