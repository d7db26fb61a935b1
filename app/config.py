import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in {"1", "true", "yes"}


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

    CURRENCY_API_URL = os.getenv("CURRENCY_API_URL", "https://api.exchangerate-api.com/v4/latest/{base}")
    COUNTRIES_API_URL = os.getenv("COUNTRIES_API_URL", "https://restcountries.com/v3.1/all?fields=name,currencies")
    CURRENCY_CACHE_TTL_SECONDS = int(os.getenv("CURRENCY_CACHE_TTL_SECONDS", 3600))
    CURRENCY_REFRESH_INTERVAL_SECONDS = int(os.getenv("CURRENCY_REFRESH_INTERVAL_SECONDS", 3600))
    HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", 10))

    SMTP_SERVER = os.getenv("SMTP_SERVER")
    SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _as_bool(os.getenv("SMTP_USE_TLS", "true"))
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")

    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        ).split(",")
        if origin.strip()
    ]


settings = Settings()
