from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://aletheia:aletheia@db:5432/aletheia"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # create_all() at startup; Alembic stays the production path.
    AUTO_CREATE_SCHEMA: bool = True

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://aletheia.app,https://api.aletheia.app"
    CORS_ORIGINS: str = "*"

    # OpenAI-compatible chat-completions endpoint (OpenRouter, local llama.cpp, ...)
    AI_API_BASE: str = "https://openrouter.ai/api/v1"
    AI_API_KEY: str = ""
    AI_MODEL: str = "deepseek/deepseek-chat"
    AI_TIMEOUT_SECONDS: float = 30.0

    # Game tuning
    ACTIVE_QUEST_LIMIT: int = 5
    MAX_AI_XP_REWARD: int = 1000
    MAX_STAT_DELTA: int = 10

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
