"""
Application configuration.
All sensitive values loaded from environment variables.
"""
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/fitdash"
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console
    
    # Sync run tracing - logs every item decision inside a sync run
    SYNC_RUN_LOG: bool = False
    
    # Uploaded activity files are written here until decoded
    UPLOAD_DIR: str = "uploads"
    
    # Strava API
    STRAVA_API_URL: str = "https://www.strava.com/api/v3"
    STRAVA_HTTP_TIMEOUT: float = 30.0
    STRAVA_PAGE_SIZE: int = 100
    STRAVA_PAGE_DELAY_SECONDS: float = 0.1
    
    # Detail enrichment budget per run. Strava allows 100 requests / 15 min,
    # leave headroom for the summary sync.
    DETAIL_FETCH_BUDGET: int = 90
    DETAIL_FETCH_DELAY_SECONDS: float = 0.5
    
    # Sync window
    SYNC_DAYS_BACK: int = 365
    FULL_SYNC_DAYS_BACK: int = 3650
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
