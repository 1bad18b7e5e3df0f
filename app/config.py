from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    ENVIRONMENT: str = "production"
    APP_VERSION: str = "0.1.0"
    ALLOWED_ORIGIN: str = "*"

    # Intake limits
    MAX_PHOTOS: int = 20
    MAX_PHOTO_SIZE_BYTES: int = 10 * 1024 * 1024

    # Generative AI
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    AI_MAX_RETRIES: int = 2
    AI_RETRY_BASE_DELAY: float = 1.0
    AI_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    AI_CACHE_MAX_SIZE: int = 100
    AI_RATE_LIMIT_WINDOW_SECONDS: int = 60 * 60
    AI_RATE_LIMIT_MAX_REQUESTS: int = 10
    SWEEP_INTERVAL_MINUTES: int = 10

    # PDF rendering
    PDF_MAX_REQUEST_BYTES: int = 5 * 1024 * 1024
    PDF_MAX_LOGO_BYTES: int = 2 * 1024 * 1024
    PDF_CONTENT_TIMEOUT_MS: int = 25000
    PDF_SETTLE_MS: int = 1000
    DOSSIER_GENERATE_PDF: bool = True
    DOSSIER_ATTACH_PDF: bool = True

    # Transactional email
    RESEND_API_KEY: str | None = None
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_FROM_ADDRESS: str = "onboarding@resend.dev"
    EMAIL_FROM_NAME: str = "Générateur de Dossier Immobilier"

    class Config:
        env_file = ".env"

settings = Settings()
