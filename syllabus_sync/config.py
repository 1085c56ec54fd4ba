from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # OpenAI settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 4096
    LLM_ENABLED: bool = True
    LLM_TIMEOUT_SECONDS: float = 20.0
    LLM_MAX_RETRIES: int = 2  # total attempts = retries + 1
    LLM_RETRY_BACKOFF_SECONDS: float = 0.3

    # LLM usage protection (per UTC day)
    LLM_PER_IP_DAILY_LIMIT: int = 10
    LLM_DAILY_BUDGET: float = 0.0  # 0 disables the budget check
    LLM_COST_PER_CALL: float = 0.02

    # =================================================================
    # RATE LIMITING
    # =================================================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 3600  # 1 hour
    RATE_LIMIT_BACKEND: str = "memory"  # "memory" or "redis"
    RATE_LIMIT_FAIL_OPEN: bool = True

    # Redis settings (only used by the redis rate limit backend)
    REDIS_URL: str | None = None
    REDIS_MAX_CONNECTIONS: int = 20

    # Request handling
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []
    ALLOWED_ORIGINS: list[str] = ["http://localhost:*"]
    MAX_TEXT_CHARS: int = 250_000

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return value

    def llm_configured(self) -> bool:
        """True when the extraction adapter can reach the LLM service."""
        return self.LLM_ENABLED and bool(self.OPENAI_API_KEY and self.OPENAI_API_KEY.strip())

    def get_rate_limits(self) -> dict:
        """Get rate limit configuration."""
        return {
            "ip_per_window": self.RATE_LIMIT_REQUESTS,
            "window_seconds": self.RATE_LIMIT_WINDOW_SECONDS,
        }


settings = Settings()
