"""
Configuration settings for Habit Service
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

from app.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App
    APP_NAME: str = "Habit Service"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # AWS
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None  # Only for LocalStack, Lambda/ECS use IAM roles
    AWS_SECRET_ACCESS_KEY: Optional[str] = None  # Only for LocalStack, Lambda/ECS use IAM roles

    # DynamoDB
    DYNAMODB_ENDPOINT: Optional[str] = None  # None uses AWS, set for LocalStack
    HABITS_TABLE_NAME: Optional[str] = None
    COMPLETIONS_TABLE_NAME: Optional[str] = None
    USERS_TABLE_NAME: Optional[str] = None

    # Cognito Authentication
    COGNITO_USER_POOL_ID: Optional[str] = None
    COGNITO_CLIENT_ID: Optional[str] = None
    COGNITO_REGION: str = "us-east-1"

    # Gamification
    DEFAULT_XP_REWARD: int = 10

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


@dataclass(frozen=True)
class TableConfig:
    """Resolved DynamoDB table names, validated once at startup"""
    habits: str
    completions: str
    users: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "TableConfig":
        """
        Build the table configuration from settings.

        Raises:
            ConfigurationError: If any table name is missing or blank
        """
        names = {
            "HABITS_TABLE_NAME": settings.HABITS_TABLE_NAME,
            "COMPLETIONS_TABLE_NAME": settings.COMPLETIONS_TABLE_NAME,
            "USERS_TABLE_NAME": settings.USERS_TABLE_NAME,
        }
        missing = [key for key, value in names.items() if not value or not value.strip()]
        if missing:
            raise ConfigurationError(
                f"Required table configuration not set: {', '.join(missing)}"
            )

        return cls(
            habits=names["HABITS_TABLE_NAME"].strip(),
            completions=names["COMPLETIONS_TABLE_NAME"].strip(),
            users=names["USERS_TABLE_NAME"].strip(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Returns cached settings instance (singleton)"""
    return Settings()
