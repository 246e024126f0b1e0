import os
from datetime import timedelta


def _env_bool(name, default="false"):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    # Secret key for sessions / JWT - REQUIRED
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Database connection - REQUIRED
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.environ.get("JWT_ACCESS_TOKEN_HOURS", 12)))

    # Flask Configuration
    FLASK_ENV = os.environ.get("FLASK_ENV", "production")
    FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() == "true"
    JSON_SORT_KEYS = False
    API_PREFIX = "/api"
    CORS_ALLOWED_ORIGINS = os.environ.get("CORS_ALLOWED_ORIGINS", "")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Billing
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "ETB")
    DEFAULT_VAT_RATE = float(os.environ.get("DEFAULT_VAT_RATE", 15))
    PAYMENT_INTENT_TTL_MINUTES = int(os.environ.get("PAYMENT_INTENT_TTL_MINUTES", 30))
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")

    # Chapa
    CHAPA_SECRET_KEY = os.environ.get("CHAPA_SECRET_KEY")
    CHAPA_PUBLIC_KEY = os.environ.get("CHAPA_PUBLIC_KEY")
    CHAPA_BASE_URL = os.environ.get("CHAPA_BASE_URL", "https://api.chapa.co/v1")
    CHAPA_WEBHOOK_SECRET = os.environ.get("CHAPA_WEBHOOK_SECRET")
    CHAPA_TEST_MODE = _env_bool("CHAPA_TEST_MODE")

    # Mail
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 25))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "no-reply@bms.local")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")

    @classmethod
    def validate(cls):
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable must be set")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_SUPPRESS_SEND = True
    CHAPA_SECRET_KEY = None
    CHAPA_WEBHOOK_SECRET = None
    CHAPA_TEST_MODE = True
    LOG_LEVEL = "WARNING"
