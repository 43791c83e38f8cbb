"""
SAP Server — Configuration
Environment-driven settings for the tracking API, Stripe payments,
OpenRouter completions, and the durable store.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Application ──────────────────────────────────────────────────────
    APP_NAME: str = "SAP Server"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: str = "*"

    # Public URL used to build Stripe redirect URLs
    DOMAIN: str = "http://localhost:3001"

    # ── Database ─────────────────────────────────────────────────────────
    DATABASE_URL: str = "postgresql+asyncpg://sap:changeme@db:5432/sap"

    # ── Stripe ───────────────────────────────────────────────────────────
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # ── OpenRouter AI ────────────────────────────────────────────────────
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    DEFAULT_COMPLETION_MODEL: str = "openai/gpt-3.5-turbo"
    COMPLETION_MAX_TOKENS: int = 1000
    COMPLETION_TIMEOUT_SECONDS: float = 60.0

    # ── Branding ─────────────────────────────────────────────────────────
    BRAND_URL: str = "https://sustainableaiprotocol.com"

    @property
    def cors_origin_list(self) -> list:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
