# core/config.py
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "AssignFlow"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=True)
    BACKEND_URL: str = "http://127.0.0.1:8000"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ────────────────────────────────
    # 2. FRONTEND
    # ────────────────────────────────
    FRONTEND_URL: str = Field(
        default="http://localhost:5173",
        description="Base URL of the client app, used for gateway redirects and email links",
    )
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # ────────────────────────────────
    # 3. FIREBASE / FIRESTORE
    # ────────────────────────────────
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = Field(
        default=None,
        description="Path to Firebase service account JSON",
    )
    FIREBASE_CREDENTIALS_B64: Optional[str] = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON",
    )

    # ────────────────────────────────
    # 4. UPLOADS
    # ────────────────────────────────
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB
    MAX_FILES_PER_UPLOAD: int = 10

    # ────────────────────────────────
    # 5. PAYHERE (card gateway)
    # ────────────────────────────────
    PAYHERE_MERCHANT_ID: str = ""
    PAYHERE_SECRET: str = ""
    PAYHERE_CHECKOUT_URL: str = "https://sandbox.payhere.lk/pay/checkout"
    PAYHERE_CURRENCY: str = "LKR"
    PAYHERE_USD_RATE: float = 300.0

    # ────────────────────────────────
    # 6. TASK QUEUE (Celery)
    # ────────────────────────────────
    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/0")
    CELERY_TASK_ALWAYS_EAGER: bool = False
    PAYSHEET_BACKFILL_HOUR: int = 2

    # ────────────────────────────────
    # 7. EMAIL (Resend)
    # ────────────────────────────────
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "AssignFlow <notifications@assignflow.app>"

    # ────────────────────────────────
    # 8. REALTIME
    # ────────────────────────────────
    WS_MAX_CONNECTIONS_PER_USER: int = 5

    class Config:
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Create singleton
settings = Settings()
