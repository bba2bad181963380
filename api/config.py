"""
Environment-aware configuration.
Every option the service recognizes is listed on BaseConfig with its default.
Token and mail options are validated eagerly when the app is created
(TokenConfig.from_mapping / MailConfig.from_mapping), so a missing secret stops startup.
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default):
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


class BaseConfig:
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    # Keep a copy of env for visibility
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # JWT: separate secrets for access and refresh tokens (no defaults on purpose)
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "auth-service")
    JWT_LEEWAY_SECONDS = _env_int("JWT_LEEWAY_SECONDS", 0)
    ACCESS_TOKEN_EXPIRES = os.getenv("ACCESS_TOKEN_EXPIRES", "15m")
    REFRESH_TOKEN_EXPIRES = os.getenv("REFRESH_TOKEN_EXPIRES", "7d")
    RESET_TOKEN_EXPIRES = os.getenv("RESET_TOKEN_EXPIRES", "1h")
    # None keeps every live refresh token; a number caps sessions per user
    MAX_REFRESH_TOKENS_PER_USER = _env_int("MAX_REFRESH_TOKENS_PER_USER", None)

    # Credential store
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth.db")
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
    DB_ECHO = _env_bool("DB_ECHO", False)

    # Password hashing (argon2)
    ARGON2_TIME_COST = _env_int("ARGON2_TIME_COST", 3)
    ARGON2_MEMORY_COST = _env_int("ARGON2_MEMORY_COST", 65536)
    ARGON2_PARALLELISM = _env_int("ARGON2_PARALLELISM", 4)

    # Mail; leave SMTP_HOST empty to log messages instead of sending them
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = _env_int("SMTP_PORT", 587)
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    MAIL_FROM = os.getenv("MAIL_FROM", "Auth Service <no-reply@localhost>")
    MAIL_TIMEOUT_SECONDS = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")
    NOTIFY_WORKERS = _env_int("NOTIFY_WORKERS", 2)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    SMTP_HOST = None
    # cheap argon2 settings keep the suite fast
    ARGON2_TIME_COST = 1
    ARGON2_MEMORY_COST = 1024
    ARGON2_PARALLELISM = 1


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
