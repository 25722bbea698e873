"""
Application configuration.
Everything is read from environment variables / .env file by Pydantic.
Handlers never read os.environ directly; they receive settings (or clients
built from settings) through FastAPI dependencies.
"""
import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite+aiosqlite:///./marketplace.db"
    JWT_SECRET_KEY: str = "changeme"
    BASE_URL: str = "http://localhost:3000"

    # Yoco (token-based checkout API)
    YOCO_SECRET_KEY: str = ""
    YOCO_PUBLIC_KEY: str = ""
    YOCO_API_URL: str = "https://online.yoco.com/v1"

    # PayFast (form + signature ITN)
    PAYFAST_MERCHANT_ID: str = ""
    PAYFAST_MERCHANT_KEY: str = ""
    PAYFAST_PASSPHRASE: str = ""
    PAYFAST_SANDBOX: bool = False

    # Outbound gateway calls
    PAYMENT_HTTP_TIMEOUT: float = 15.0

    # Recurring appointments
    RECURRING_INITIAL_BATCH: int = 4
    RECURRING_HORIZON_DAYS: int = 28

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


settings = Settings()

if settings.is_production and settings.JWT_SECRET_KEY == "changeme":
    raise ValueError(
        "JWT_SECRET_KEY is not set. It must be provided as an environment variable in production. "
        "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings


def configure_logging() -> None:
    """Configure the root logger from LOG_LEVEL."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
