from typing import Dict

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.docker"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="returns_bot", validation_alias=AliasChoices("APP_NAME", "app_name"))
    APP_URL: str = Field(default="http://localhost:8000", validation_alias=AliasChoices("APP_URL", "app_url"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    # Infrastructure
    DATABASE_URL: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/returns_bot",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )
    DATABASE_SSL: bool = Field(default=False, validation_alias=AliasChoices("DATABASE_SSL", "database_ssl"))
    REDIS_URL: str = Field(
        default="redis://redis:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "redis_url"),
    )
    RECORD_STORE: str = Field(default="sql", validation_alias=AliasChoices("RECORD_STORE", "record_store"))
    SESSION_BACKEND: str = Field(default="memory", validation_alias=AliasChoices("SESSION_BACKEND", "session_backend"))
    SESSION_IDLE_TIMEOUT_SECONDS: int = Field(
        default=30 * 60,
        validation_alias=AliasChoices("SESSION_IDLE_TIMEOUT_SECONDS", "session_idle_timeout_seconds"),
    )
    SESSION_SWEEP_INTERVAL_SECONDS: int = Field(
        default=60,
        validation_alias=AliasChoices("SESSION_SWEEP_INTERVAL_SECONDS", "session_sweep_interval_seconds"),
    )

    # WhatsApp Meta
    WHATSAPP_VERIFY_TOKEN: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_VERIFY_TOKEN", "whatsapp_verify_token"))
    WHATSAPP_ACCESS_TOKEN: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_ACCESS_TOKEN", "whatsapp_access_token"))
    WHATSAPP_PHONE_NUMBER_ID: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_PHONE_NUMBER_ID", "whatsapp_phone_number_id"))
    WHATSAPP_API_VERSION: str = Field(default="v18.0", validation_alias=AliasChoices("WHATSAPP_API_VERSION", "whatsapp_api_version"))

    # Shiprocket
    SHIPPING_BACKEND: str = Field(default="shiprocket", validation_alias=AliasChoices("SHIPPING_BACKEND", "shipping_backend"))
    SHIPROCKET_BASE_URL: str = Field(
        default="https://apiv2.shiprocket.in/v1/external",
        validation_alias=AliasChoices("SHIPROCKET_BASE_URL", "shiprocket_base_url"),
    )
    SHIPROCKET_TOKEN: str = Field(default="", validation_alias=AliasChoices("SHIPROCKET_TOKEN", "shiprocket_token"))
    SHIPROCKET_EMAIL: str = Field(default="", validation_alias=AliasChoices("SHIPROCKET_EMAIL", "shiprocket_email"))
    SHIPROCKET_PASSWORD: str = Field(default="", validation_alias=AliasChoices("SHIPROCKET_PASSWORD", "shiprocket_password"))
    SHIPROCKET_WEBHOOK_TOKEN: str = Field(
        default="",
        validation_alias=AliasChoices("SHIPROCKET_WEBHOOK_TOKEN", "shiprocket_webhook_token"),
    )

    # Razorpay
    RAZORPAY_BASE_URL: str = Field(default="https://api.razorpay.com/v1", validation_alias=AliasChoices("RAZORPAY_BASE_URL", "razorpay_base_url"))
    RAZORPAY_KEY_ID: str = Field(default="", validation_alias=AliasChoices("RAZORPAY_KEY_ID", "razorpay_key_id"))
    RAZORPAY_KEY_SECRET: str = Field(default="", validation_alias=AliasChoices("RAZORPAY_KEY_SECRET", "razorpay_key_secret"))
    RAZORPAY_WEBHOOK_SECRET: str = Field(
        default="",
        validation_alias=AliasChoices("RAZORPAY_WEBHOOK_SECRET", "razorpay_webhook_secret"),
    )

    # Return / exchange policy
    RETURN_WINDOW_DAYS: int = Field(default=7, validation_alias=AliasChoices("RETURN_WINDOW_DAYS", "return_window_days"))
    PICKUP_LEAD_DAYS: int = Field(default=1, validation_alias=AliasChoices("PICKUP_LEAD_DAYS", "pickup_lead_days"))
    PAYMENT_LINK_EXPIRY_HOURS: int = Field(
        default=24,
        validation_alias=AliasChoices("PAYMENT_LINK_EXPIRY_HOURS", "payment_link_expiry_hours"),
    )
    SUPPORT_CONTACT: str = Field(
        default="support@example.com",
        validation_alias=AliasChoices("SUPPORT_CONTACT", "support_contact"),
    )
    # SKU -> unit price, e.g. CATALOG_PRICES='{"TSH-BLU-L": 1200}'
    CATALOG_PRICES: Dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("CATALOG_PRICES", "catalog_prices"),
    )


settings = Settings()
