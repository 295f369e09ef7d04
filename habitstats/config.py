"""
Habit Stats Server Configuration
Centralized settings management using Pydantic
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Supabase - log and habit tables
    supabase_url: str = ""
    supabase_anon_key: str = ""  # Set via SUPABASE_ANON_KEY env var
    supabase_service_key: str = ""  # Set via SUPABASE_SERVICE_KEY env var

    # Storage backend for the log query port: "supabase" or "memory"
    storage_backend: str = "supabase"

    # Stats engine
    default_calendar: str = "gregorian"
    stats_max_concurrency: int = 8
    log_page_size: int = 1000

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "DEBUG"
    cors_origins: str = "http://localhost:3000"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
