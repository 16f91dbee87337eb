"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "poultrysense"
    poultrysense_port: int = 8010
    environment: str = "development"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Record store ("mongo" or "memory")
    record_store_backend: str = "mongo"

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "poultrysense"
    mongodb_collection_diagnoses: str = "diagnoses"
    mongodb_collection_usage: str = "diagnosis_usage"

    # GitHub Models API
    github_token: str
    github_models_endpoint: str = "https://models.inference.ai.azure.com"
    model_name: str = "gpt-4o"
    audio_model_name: str = "gpt-4o-audio-preview"
    model_temperature: float = 0.2
    model_max_tokens: int = 1500
    llm_invoke_timeout: float = 60.0

    # JWT Configuration
    auth_enabled: bool = True
    jwt_public_key_path: str = "keys/public_key.pem"
    jwt_issuer: str = "poultrysense-auth"
    jwt_algorithm: str = "RS256"
    jwt_access_cookie_name: str = "access_token"
    jwt_refresh_cookie_name: str = "refresh_token"

    # Usage and analytics
    daily_diagnosis_limit: int = 10
    top_diseases_limit: int = 5
    activity_timezone: str = "UTC"  # IANA name used for calendar-day bucketing

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        protected_namespaces = ("settings_",)


# Global settings instance
settings = Settings()
