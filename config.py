from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Supabase (database, auth, storage)
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    # Used for sign-up / login so user sessions never land on the service client
    SUPABASE_ANON_KEY: Optional[str] = None
    STORAGE_BUCKET: str = "kyc-documents"
    SUBMISSIONS_TABLE: str = "submissions"
    ROLES_TABLE: str = "user_roles"

    # AI Gateway (OpenAI-compatible chat completions)
    AI_GATEWAY_API_KEY: str
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1"
    AI_MODEL: str = "google/gemini-2.5-flash"
    AI_MAX_TOKENS: int = 1000
    AI_TEMPERATURE: float = 0.0
    AI_TIMEOUT: float = 60.0

    # Signed URL lifetimes (seconds)
    SIGNED_URL_TTL: int = 3600
    REVIEW_SIGNED_URL_TTL: int = 300

    # Re-analysis is refused while the last analysis is younger than this
    REANALYSIS_COOLDOWN_SECONDS: int = 300

    # Request limits
    MAX_REQUEST_BYTES: int = 10 * 1024
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Score defaults
    DEFAULT_IMAGE_QUALITY: int = 75

    # Badge thresholds
    FRAUD_LOW_BELOW: int = 30
    FRAUD_MEDIUM_BELOW: int = 70
    MATCH_HIGH_FROM: int = 80
    MATCH_MEDIUM_FROM: int = 60
    QUALITY_EXCELLENT_FROM: int = 80
    QUALITY_GOOD_FROM: int = 60

    CORS_ALLOW_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()

# Storage object path: "<user uuid>/<name>.<ext>"
STORAGE_PATH_REGEX = r"^[a-f0-9-]{36}/[a-zA-Z0-9_-]+\.(jpg|jpeg|png|webp)$"
MAX_STORAGE_PATH_LENGTH = 500

# Largest integer a JavaScript client can send without precision loss
MAX_SUBMISSION_ID = 2 ** 53 - 1

SUBMISSION_STATUSES = ("pending", "approved", "rejected")
REVIEW_DECISIONS = ("approved", "rejected")
USER_ROLES = ("user", "admin")

# Upload formats
SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp"}
SUPPORTED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
# Formats as reported by Pillow after decoding
SUPPORTED_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP"}

# Auth
EMAIL_REGEX = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MIN_PASSWORD_LENGTH = 6
