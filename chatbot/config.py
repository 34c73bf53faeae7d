from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./chatbot.db"

    # JWT
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:3000"

    log_level: str = "INFO"
    environment: str = "development"

    # Google Gemini: API key, or Vertex AI when vertex_project_id is set
    gemini_api_key: str = ""
    vertex_project_id: str = ""
    vertex_location: str = "us-central1"
    vertex_credentials_path: str = ""  # path to service account JSON; empty = use ADC

    # OpenAI-compatible providers (keys checked when a model is first used)
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com/v1/"
    cohere_api_key: str = ""
    cohere_base_url: str = "https://api.cohere.ai/compatibility/v1"
    together_ai_api_key: str = ""
    together_ai_base_url: str = "https://api.together.xyz/v1"

    # Internal models for titles and documents
    title_model: str = "gemini-2.0-flash"
    artifact_model: str = "gemini-2.0-flash"

    # Voice transcription
    voice_model: str = "gemini-1.5-pro"
    voice_max_bytes: int = 20 * 1024 * 1024

    # Streaming: re-chunk text deltas every N words, with a small delay
    stream_word_group_size: int = 1
    stream_delay_ms: int = 10
    chat_max_steps: int = 5

    # Attachments (empty = uploads/files at the project root)
    upload_dir: str = ""
    upload_max_bytes: int = 5 * 1024 * 1024

    # Redis (optional cache for chat messages; empty = no Redis, DB only)
    redis_url: str = ""  # e.g. redis://localhost:6379/0

    # Chat cache TTL in seconds (1 day)
    chat_cache_ttl_seconds: int = 86400

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
