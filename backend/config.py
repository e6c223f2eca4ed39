# config.py
# ============================================================================
# ASTA EDUCATION BACKEND - CONFIGURATION
# ============================================================================
# Environment-driven settings shared by the server and its service handles
# ============================================================================

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


DEFAULT_CORS_ORIGINS = (
    "https://astaphonicsfuns-quickjoins-projects.vercel.app,"
    "http://localhost:5173"
)


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "asta_education")
    auth = f"{user}:{password}" if password else user
    return f"postgresql://{auth}@{host}:{port}/{name}"


class Settings:
    """Application configuration from environment"""

    # Server
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "3000"))
    ENV = os.getenv("ENV", os.getenv("NODE_ENV", "development"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    VERSION = "1.0.0"

    # CORS
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ]

    # Database
    STORE_BACKEND = os.getenv("STORE_BACKEND", "postgres")
    DATABASE_URL = _database_url()
    MIN_POOL_SIZE = int(os.getenv("DB_MIN_POOL_SIZE", "2"))
    MAX_POOL_SIZE = int(os.getenv("DB_MAX_POOL_SIZE", "10"))
    DB_SSL = os.getenv("DB_SSL", "true" if ENV == "production" else "false").lower() == "true"

    # Razorpay
    RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com")
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "your_razorpay_key_id")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_SECRET = os.getenv("RAZORPAY_SECRET") or RAZORPAY_KEY_SECRET
    MERCHANT_NAME = "ASTA Education Academy"
    CURRENCY = "INR"

    # Mail
    SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))
    EMAIL_USER = os.getenv("EMAIL_USER", "phonicswithshereen@gmail.com")
    EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD", "")
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL") or EMAIL_USER

    # Media host (S3-compatible)
    MEDIA_BUCKET = os.getenv("MEDIA_BUCKET", "asta-lms-content")
    MEDIA_ENDPOINT_URL = os.getenv("MEDIA_ENDPOINT_URL")
    MEDIA_REGION = os.getenv("MEDIA_REGION", "us-east-1")
    MEDIA_ACCESS_KEY_ID = os.getenv("MEDIA_ACCESS_KEY_ID")
    MEDIA_SECRET_ACCESS_KEY = os.getenv("MEDIA_SECRET_ACCESS_KEY")
    MEDIA_PUBLIC_BASE_URL = os.getenv("MEDIA_PUBLIC_BASE_URL")
    MEDIA_KEY_PREFIX = os.getenv("MEDIA_KEY_PREFIX", "lms")

    # Export mirror
    DATA_DIR = Path(os.getenv("DATA_DIR", str(Path(__file__).resolve().parent / "data")))

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
