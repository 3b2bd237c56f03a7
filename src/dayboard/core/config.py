import logging
import os
from pathlib import Path
from typing import Union

from dotenv import load_dotenv
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log_format = logging.Formatter("%(asctime)s : %(levelname)s - %(message)s")

# root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)

# standard stream handler
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(log_format)
root_logger.addHandler(stream_handler)

logger = logging.getLogger(__name__)

# Load .env file from docker/server directory
env_path = Path("./docker/server/.env")
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
    logger.info(f"Loaded environment from {env_path}")
else:
    logger.info(f"No .env file at {env_path}, using process environment")


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    ENV: str = Field(default_factory=lambda: os.getenv("ENV", "development"))

    # Supabase Configuration
    SUPABASE_URL: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_URL"),
        description="Supabase project URL"
    )
    SUPABASE_KEY: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_KEY"),
        description="Supabase anon/public key"
    )

    # Database Configuration
    DATABASE_URL: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL"),
        description="PostgreSQL database URL (postgresql+asyncpg://...)"
    )

    # Stripe Configuration
    STRIPE_SECRET_KEY: str = Field(
        default_factory=lambda: os.getenv("STRIPE_SECRET_KEY"),
        description="Stripe secret API key"
    )
    STRIPE_WEBHOOK_SECRET: str = Field(
        default_factory=lambda: os.getenv("STRIPE_WEBHOOK_SECRET", ""),
        description="Signing secret of the Stripe webhook endpoint"
    )
    STRIPE_PRO_PRICE_ID: str = Field(
        default_factory=lambda: os.getenv("STRIPE_PRO_PRICE_ID", ""),
        description="Recurring price of the Pro plan ($4.99/month)"
    )
    STRIPE_PREMIUM_PRICE_ID: str = Field(
        default_factory=lambda: os.getenv("STRIPE_PREMIUM_PRICE_ID", ""),
        description="Recurring price of the Premium plan ($14.99/month)"
    )

    # Billing rules
    PRO_TRIAL_DAYS: int = 14
    PREMIUM_BONUS_TRIAL_DAYS: int = 30
    PREMIUM_BONUS_MIN_PRO_MONTHS: int = 3

    # Frontend base URL used for checkout and portal return links
    APP_URL: str = "http://localhost:3000"

    # Server Configuration
    SERVER_PORT: int = 8001
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, list[str]]) -> list[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        elif isinstance(v, str):
            return [v]
        raise ValueError(v)

    PROJECT_NAME: str = "dayboard-api"

    model_config = SettingsConfigDict(extra="ignore")


settings = Settings()

# Validate required settings
if not settings.SUPABASE_URL:
    raise ValueError("SUPABASE_URL environment variable is required")
if not settings.SUPABASE_KEY:
    raise ValueError("SUPABASE_KEY environment variable is required")
if not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")
if not settings.STRIPE_SECRET_KEY:
    raise ValueError("STRIPE_SECRET_KEY environment variable is required")
