"""
Environment-aware configuration.
Values come from the environment (and .env if present); token settings are
turned into a TokenSettings value once, in create_app().
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # JWT signing; HS256 wants a secret of at least 32 bytes
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me-dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "productivity-api")
    ACCESS_TOKEN_TTL_MS = int(os.getenv("ACCESS_TOKEN_TTL_MS", "1800000"))  # 30 minutes
    REFRESH_TOKEN_TTL_MS = int(os.getenv("REFRESH_TOKEN_TTL_MS", "604800000"))  # 7 days
    PASSWORD_RESET_TTL_SECONDS = int(os.getenv("PASSWORD_RESET_TTL_SECONDS", "900"))
    # Expired refresh token sweep, daily at TOKEN_CLEANUP_CRON_HOUR:00
    TOKEN_CLEANUP_ENABLED = _flag("TOKEN_CLEANUP_ENABLED", "true")
    TOKEN_CLEANUP_CRON_HOUR = int(os.getenv("TOKEN_CLEANUP_CRON_HOUR", "2"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    JWT_SECRET = "test-secret-key-for-jwt-session-core-unit-tests"
    TOKEN_CLEANUP_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
