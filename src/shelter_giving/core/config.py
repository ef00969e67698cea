from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):

    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    AWS_REGION: str = "us-east-1"
    AWS_PROFILE: str | None = None
    NOTIFICATION_QUEUE_URL: str = ""
    PAYMENT_QUEUE_URL: str = ""
    DYNAMODB_TABLE_NAME: str = "shelter-giving"
    SES_FROM_EMAIL: str = "donations@haltshelter.org"

    DEFAULT_CURRENCY: str = "usd"
    MIN_DONATION_CENTS: int = 100
    MAX_DONATION_CENTS: int = 1_000_000
    MONTHLY_PRODUCT_NAME: str = "HALT Monthly Donation"

    IP_SALT: str = ""
    BLOGLIKE_TTL_SECONDS: int = 90 * 24 * 60 * 60
    PROCESSED_EVENT_TTL_SECONDS: int = 7 * 24 * 60 * 60

    RATE_LIMIT_ENABLED: bool = True
    DONATION_RATE_LIMIT: int = 10
    DONATION_RATE_WINDOW_SECONDS: int = 15 * 60
    LIKE_RATE_LIMIT: int = 10
    LIKE_RATE_WINDOW_SECONDS: int = 60

    CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


class ClientSettings(BaseSettings):
    """Settings for the donor-facing flow (what the browser bundle is built with)."""

    API_URL: str = "http://localhost:3000/api"
    STRIPE_PUBLISHABLE_KEY: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()


settings = get_settings()
