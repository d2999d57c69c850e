"""
Core settings and environment variables for CivicLens.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "CivicLens API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API (comma separated)
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    REPORTS_COLLECTION: str = "reports"

    # In-memory store for local development without Firebase credentials
    USE_MOCK_DB: bool = False

    # AI Configuration
    AI_ENABLED: bool = True  # If False, every report gets the fallback enrichment
    ENRICHMENT_MODE: str = "background"  # "background" or "sequential"
    AI_TIMEOUT_SECONDS: float = 30.0
    BACKGROUND_WORKERS: int = 2
    BACKGROUND_MAX_PENDING: int = 50  # Classifier calls queued or running at once

    # Enricher (Gemini generateContent REST API)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Classifier (OpenAI-compatible chat completions, e.g. Featherless)
    FEATHERLESS_API_KEY: Optional[str] = None
    FEATHERLESS_BASE_URL: Optional[str] = None
    FEATHERLESS_MODEL: str = "llava-1.5-7b-hf"

    # Query defaults
    DEFAULT_QUERY_LIMIT: int = 100
    MAX_QUERY_LIMIT: int = 1000
    DEFAULT_NEARBY_RADIUS_KM: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
