"""
Application configuration.
All settings are loaded from environment variables (or a local .env file).
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Connection strings and secrets have no defaults - they MUST be set.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # Comma-separated list. Empty = default list in main.py.
    cors_origins: str = ""
    # Base URL used when building signed file links (no trailing slash).
    public_base_url: str = "http://localhost:8000"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default
    # Lease that keeps a second generation from being queued for the same image
    generation_lock_ttl_seconds: int = 900

    # ===========================================
    # IMAGE GENERATION
    # ===========================================
    image_provider: str = "gemini"
    gemini_api_key: str = ""  # Empty = not configured (failure at run time, not startup)
    gemini_api_endpoint: str = "https://generativelanguage.googleapis.com"
    gemini_image_model: str = "gemini-2.5-flash-image-preview"
    gemini_timeout: float = 180.0
    generation_instruction: str = (
        "Identify 1-3 key objects in the image that would create maximum visual impact "
        "when stylized (prioritize: food being eaten, drinks, objects being held, or "
        "prominent items in the scene).\n\n"
        "Transform these objects into exaggerated 2D whimsical anime illustrations with "
        "bold black outlines with hand-drawn wobbles, vibrant flat anime colors and "
        "dramatically exaggerated proportions.\n\n"
        "Add motion lines, swirls, steam, splashes, sparkles or energy lines coming OUT "
        "from the objects so they appear to break free from the photo into illustrated "
        "space, like a Studio Ghibli scene inserted into real life.\n\n"
        "Keep humans photorealistic. The goal: a surreal moment where anime has leaked "
        "into reality in the most delightful way possible."
    )

    # ===========================================
    # UPLOAD VALIDATION
    # ===========================================
    max_upload_bytes: int = 3 * 1024 * 1024
    allowed_content_types: str = "image/jpeg,image/png,image/heic,image/heif,image/webp"

    # ===========================================
    # STORAGE
    # ===========================================
    storage_base_path: str = "/data/assets"
    storage_url_secret: str = "change-me-storage-secret"
    storage_url_ttl_seconds: int = 3600

    # ===========================================
    # PAYMENTS (Polar)
    # ===========================================
    polar_access_token: str = ""
    polar_product_id: str = ""
    polar_env: str = "sandbox"  # sandbox | production
    polar_webhook_secret: str = ""
    webhook_tolerance_seconds: int = 300
    http_client_timeout: float = 10.0

    # ===========================================
    # AUTH
    # ===========================================
    jwt_secret_key: str  # Required, no default
    jwt_algorithm: str = "HS256"
    # Comma-separated identities allowed to moderate the public gallery
    admin_user_ids: str = ""

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("allowed_content_types")
    @classmethod
    def normalize_content_types(cls, v: str) -> str:
        """Store as a lower-cased comma-separated string, parse when needed."""
        return v.lower().strip()

    @field_validator("polar_env")
    @classmethod
    def validate_polar_env(cls, v: str) -> str:
        value = (v or "sandbox").strip().lower()
        return "production" if value == "production" else "sandbox"

    @property
    def allowed_content_types_set(self) -> set[str]:
        """Get allowed upload content types as a set."""
        return {t.strip() for t in self.allowed_content_types.split(",") if t.strip()}

    @property
    def admin_user_ids_set(self) -> set[str]:
        return {u.strip() for u in self.admin_user_ids.split(",") if u.strip()}

    @property
    def polar_api_base(self) -> str:
        if self.polar_env == "production":
            return "https://api.polar.sh"
        return "https://sandbox-api.polar.sh"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
