from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development", validation_alias="APP_ENV")

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias="REDIS_URL",
    )

    jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="assessments", validation_alias="JWT_ISSUER")

    cors_allow_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOW_ORIGINS")
    cors_allow_methods: str = Field(default="*", validation_alias="CORS_ALLOW_METHODS")
    cors_allow_headers: str = Field(default="*", validation_alias="CORS_ALLOW_HEADERS")

    passing_score: float = Field(default=70.0, validation_alias="PASSING_SCORE")
    quiz_default_time_limit_seconds: int = Field(default=1800, validation_alias="QUIZ_DEFAULT_TIME_LIMIT_SECONDS")
    interview_default_time_limit_seconds: int = Field(
        default=2700,
        validation_alias="INTERVIEW_DEFAULT_TIME_LIMIT_SECONDS",
    )
    session_clock_enabled: bool = Field(default=True, validation_alias="SESSION_CLOCK_ENABLED")
    report_highlights_limit: int = Field(default=5, validation_alias="REPORT_HIGHLIGHTS_LIMIT")
    report_ttl_seconds: int | None = Field(default=None, validation_alias="REPORT_TTL_SECONDS")

    llm_enabled: bool = Field(default=True, validation_alias="LLM_ENABLED")
    llm_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="LLM_BASE_URL")
    llm_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_api_key: str | None = Field(default=None, validation_alias="LLM_API_KEY")

    llm_timeout_connect: float = Field(default=3.0, validation_alias="LLM_TIMEOUT_CONNECT")
    llm_timeout_read: float = Field(default=30.0, validation_alias="LLM_TIMEOUT_READ")
    llm_timeout_write: float = Field(default=12.0, validation_alias="LLM_TIMEOUT_WRITE")
    llm_temperature: float = Field(default=0.2, validation_alias="LLM_TEMPERATURE")
    llm_narrative_max_tokens: int = Field(default=1000, validation_alias="LLM_NARRATIVE_MAX_TOKENS")

    # Wall-clock budget for one gateway operation, independent of the assessment countdown.
    generation_timeout_seconds: float = Field(default=45.0, validation_alias="GENERATION_TIMEOUT_SECONDS")


settings = Settings()


def _is_prod() -> bool:
    return (settings.app_env or "").strip().lower() in {"prod", "production"}


if _is_prod():
    if not settings.jwt_secret_key or settings.jwt_secret_key.strip().lower() in {"change-me", "your-secret", "secret"}:
        raise RuntimeError("JWT_SECRET_KEY must be set to a strong value in production")

    if settings.redis_url.strip() == "redis://localhost:6379/0":
        raise RuntimeError("REDIS_URL must be set in production")

    if bool(settings.llm_enabled) and not (settings.llm_api_key or "").strip():
        raise RuntimeError("LLM_API_KEY must be set in production when LLM_ENABLED=true")

    if not 0 <= float(settings.passing_score) <= 100:
        raise RuntimeError("PASSING_SCORE must be within [0, 100]")
