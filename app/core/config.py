from pydantic_settings import BaseSettings
from typing import List, Union
from pydantic import field_validator
import json


class ConfigurationError(Exception):
    """Raised at startup when a required secret or credential is missing"""
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Hiring Automation API"
    ENVIRONMENT: str = "development"

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "hiring_db"

    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis Settings (Celery broker for the periodic triggers)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # OpenAI Settings
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TEMPERATURE: float = 0.2
    AI_REQUEST_TIMEOUT_SECONDS: float = 60.0

    # Resend (email channel)
    RESEND_API_KEY: str = ""
    OUTREACH_FROM_EMAIL: str = "Vamos Team <onboarding@resend.dev>"

    # Telegram (messaging platform channel)
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Trigger endpoints
    CRON_SECRET: str = ""
    APP_URL: str = "http://localhost:3000"

    # Automation engine
    AUTOMATION_BATCH_SIZE: int = 10
    OUTREACH_BATCH_SIZE: int = 10
    INTER_ITEM_DELAY_SECONDS: float = 0.5
    AUTOMATION_MAX_RETRIES: int = 3
    PROCESSING_TIMEOUT_MINUTES: int = 15  # Claimed work older than this is treated as crashed
    REJECTION_DELAY_HOURS: int = 24

    # Hiring policy
    MAX_TEST_TASK_EXTENSIONS: int = 2
    MAX_EXTENSION_DAYS: int = 7
    MIN_SCORE_FOR_OUTREACH: float = 7
    MIN_MATCH_SCORE_FOR_INTRO: float = 60
    DEFAULT_TEST_TASK_DEADLINE_DAYS: int = 3
    QUESTIONNAIRE_EXPIRY_DAYS: int = 5
    HIRING_TIMEZONE: str = "Europe/Kyiv"

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    def validate_required_secrets(self) -> None:
        """
        Abort startup when a production deployment lacks a required credential.

        Development and test environments run with stub adapters, so only
        ENVIRONMENT=production is checked.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        if self.ENVIRONMENT != "production":
            return

        required = {
            "OPENAI_API_KEY": self.OPENAI_API_KEY,
            "TELEGRAM_BOT_TOKEN": self.TELEGRAM_BOT_TOKEN,
            "RESEND_API_KEY": self.RESEND_API_KEY,
            "CRON_SECRET": self.CRON_SECRET,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
