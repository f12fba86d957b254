from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
import json
import os
from urllib.parse import quote_plus
from enum import Enum

class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class Settings(BaseSettings):
    # Environment Configuration
    ENVIRONMENT: Environment = Environment.DEVELOPMENT

    # Project Information
    PROJECT_NAME: str = "AssetMinder"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Server settings
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_SERVER: Optional[str] = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_DB: Optional[str] = None
    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    # Timezone configuration (used for user-facing dates in reminder messages)
    DEFAULT_TIMEZONE: str = "UTC"

    # API Security
    VALID_API_KEYS: List[str] = []
    REQUIRE_API_KEY: bool = True

    # Email (SMTP) configuration for reminder emails
    SMTP_SERVER: Optional[str] = None  # e.g., smtp.zoho.in
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    FROM_NAME: str = "AssetMinder"

    # Twilio configuration for reminder SMS
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    @model_validator(mode="after")
    def _finalize_and_validate(self) -> "Settings":
        # Derive SQLALCHEMY_DATABASE_URI if not provided
        if not self.SQLALCHEMY_DATABASE_URI:
            user = self.POSTGRES_USER
            server = self.POSTGRES_SERVER
            db = self.POSTGRES_DB
            if user and server and db:
                safe_user = quote_plus(user)
                if self.POSTGRES_PASSWORD:
                    safe_password = quote_plus(self.POSTGRES_PASSWORD)
                    self.SQLALCHEMY_DATABASE_URI = (
                        f"postgresql://{safe_user}:{safe_password}@{server}:{self.POSTGRES_PORT}/{db}"
                    )
                else:
                    self.SQLALCHEMY_DATABASE_URI = (
                        f"postgresql://{safe_user}@{server}:{self.POSTGRES_PORT}/{db}"
                    )
            else:
                self.SQLALCHEMY_DATABASE_URI = "sqlite:///./assetminder.db"

        # Parse API keys from environment variable if provided
        if not self.VALID_API_KEYS:
            api_keys_env = os.getenv("VALID_API_KEYS")
            if api_keys_env:
                try:
                    self.VALID_API_KEYS = json.loads(api_keys_env)
                except (json.JSONDecodeError, TypeError):
                    # Fallback: treat as comma-separated string
                    self.VALID_API_KEYS = [key.strip() for key in api_keys_env.split(",") if key.strip()]

        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)

    @model_validator(mode='after')
    def validate_environment_config(self):
        """Validate environment-specific configuration requirements"""
        if self.is_production:
            if self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
                raise ValueError("Production requires a PostgreSQL database")
            if self.SMTP_SERVER in ['smtp.gmail.com', 'localhost']:
                raise ValueError("Production should not use development SMTP servers")
        return self

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra='ignore')

settings = Settings()
