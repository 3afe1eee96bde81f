"""
Forensic Ledger Engine - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Forensic Ledger Engine"
    app_env: str = "development"
    debug: bool = False

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str = "sqlite+aiosqlite:///./forensics.db"
    database_echo: bool = False

    # ===========================================
    # AUDIT LEDGER (external append-only service)
    # Resolution order: ledger_base_url, then the service registry,
    # then ledger_default_base_url. When all three are empty the
    # ledger is treated as absent and audit emission is a no-op.
    # ===========================================
    ledger_base_url: Optional[str] = None
    ledger_registry_url: Optional[str] = None
    ledger_default_base_url: Optional[str] = None
    ledger_auth_token: str = ""
    ledger_source_service: str = "forensic-engine"
    ledger_actor: str = "service:forensic-engine"
    ledger_timeout_seconds: float = 5.0
    ledger_registry_timeout_seconds: float = 3.0
    ledger_registry_cache_ttl_seconds: int = 60

    @property
    def ledger_enabled(self) -> bool:
        """Whether any ledger endpoint source is configured."""
        return bool(
            self.ledger_base_url
            or self.ledger_registry_url
            or self.ledger_default_base_url
        )

    # ===========================================
    # FORENSICS
    # ===========================================
    # When True, investigation status may only move forward one step
    # (open -> in_progress -> completed -> closed).
    forensics_strict_status_workflow: bool = False

    # ===========================================
    # CORS SETTINGS
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


# Export settings instance
settings = get_settings()
