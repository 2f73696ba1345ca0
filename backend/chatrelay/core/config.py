# chatrelay/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./chatrelay.db"
    DATABASE_ECHO: bool = False

    # API
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Auth service; single-user mode when unset
    AUTH_SERVICE_URL: str | None = None
    AUTH_TIMEOUT: float = 5.0
    DEFAULT_USER_ID: str = "default"
    ROOT_USER_ID: str | None = None

    # Upstream defaults, overridden by the latest row in upstream_configs
    OPENAI_API_KEY: str | None = None
    OPENAI_API_MODEL: str = "gpt-3.5-turbo"
    OPENAI_API_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT_MS: int = 100_000
    HTTPS_PROXY: str | None = None
    SYSTEM_MESSAGE: str = (
        "You are ChatGPT, a large language model trained by OpenAI. "
        "Follow the user's instructions carefully. Respond using markdown."
    )
    TEMPERATURE: float = 0.8

    # History
    MAX_CONTEXT_TURNS: int = 10
    HISTORY_PAGE_SIZE: int = 20


settings = Settings()


def get_settings() -> Settings:
    return settings
