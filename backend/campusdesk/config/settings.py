"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Local cache (one JSON file per key)
    local_cache_path: str = "./storage/cache"
    local_cache_max_bytes: int = 5 * 1024 * 1024  # Same order as a browser storage quota
    requests_cache_key: str = "campusdesk_requests_v3"
    users_cache_key: str = "campusdesk_users_v2"
    session_cache_key: str = "campusdesk_session_v2"
    
    # Remote replica store: "mongo", "memory" or "none" (local-only)
    remote_backend: str = "mongo"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "campusdesk_dev"
    requests_collection: str = "requests"
    users_collection: str = "users"
    remote_use_change_streams: bool = True
    remote_poll_interval_seconds: int = 5  # Used when change streams are unavailable
    
    # Default administrator, synthesized when missing from both stores
    # Change these in production!
    default_admin_id: str = "admin1"
    default_admin_name: str = "Campus Admin"
    default_admin_email: str = "admin@campusdesk.edu"
    default_admin_password: str = "admin123"
    
    # Credentials
    password_hash_rounds: int = 12
    password_min_length: int = 6
    
    # Requests
    max_request_images: int = 5
    
    # Azure OpenAI (request categorization)
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_deployment: str = "gpt-4o-mini"
    azure_openai_api_version: str = "2024-02-01"
    
    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    
    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"
    
    # Environment
    environment: str = "development"
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    @property
    def remote_enabled(self) -> bool:
        """Whether a remote replica store is configured"""
        return self.remote_backend.lower() != "none"
    
    @property
    def classifier_enabled(self) -> bool:
        """Whether the AI categorization client can be created"""
        return bool(self.azure_openai_endpoint and self.azure_openai_api_key)
    

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
