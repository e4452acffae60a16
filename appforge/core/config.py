from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "AppForge"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # ==========================================
    # Project defaults
    # ==========================================
    DEFAULT_PROJECT_NAME: str = "my-app"
    ARCHIVE_OUTPUT_DIR: str = "downloads"

    # ==========================================
    # Terminal execution endpoint
    # ==========================================
    TERMINAL_WS_URL: str = "ws://localhost:3001"
    CONNECT_TIMEOUT: float = 5.0
    COMMAND_TIMEOUT: float = 10.0

    # Reconnection (exponential backoff with jitter)
    MAX_RECONNECT_ATTEMPTS: int = 5
    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_DELAY: float = 5.0

    # File materialization
    FILE_BATCH_SIZE: int = 5
    BATCH_DELAY: float = 0.5
    COMMAND_DELAY: float = 0.3

    # ==========================================
    # AI collaborators
    # ==========================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    AI_MAX_TOKENS: int = 8192
    AI_REQUEST_TIMEOUT: float = 120.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env that aren't defined in Settings
    )

    @field_validator("FILE_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("FILE_BATCH_SIZE must be at least 1")
        return v

    @field_validator("MAX_RECONNECT_ATTEMPTS")
    @classmethod
    def validate_reconnect_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("MAX_RECONNECT_ATTEMPTS cannot be negative")
        return v

    @property
    def archive_dir(self) -> Path:
        return Path(self.ARCHIVE_OUTPUT_DIR)


# Create settings instance
settings = Settings()
