from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for auth.admin calls and RLS-free table access

    # Qwen (DashScope)
    qwen_api_key: Optional[str] = None
    qwen_api_url: str = "https://dashscope-intl.aliyuncs.com/api/v1/services/aigc/text-generation/generation"
    qwen_tts_url: str = "https://dashscope-intl.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation"
    qwen_model: str = "qwen-plus"
    qwen_tts_model: str = "qwen3-tts-flash"
    qwen_tts_voice: str = "Chelsie"
    qwen_timeout_seconds: float = 90.0

    # Firebase (audience of the ID tokens sent by the frontend)
    firebase_project_id: Optional[str] = None

    # App
    app_name: str = "cineprep-backend"
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    generation_rate_limit: str = "10/minute"  # LLM and TTS endpoints

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def qwen_configured(self) -> bool:
        return bool(self.qwen_api_key)

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
