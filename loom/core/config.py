"""Configuration management using Pydantic Settings"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
    DB_PATH: Path = PROJECT_ROOT / "data" / "loom.db"

    # Session defaults
    COHERENCE_TARGET: float = 0.9
    INITIAL_SPIRAL_DEPTH: int = 1
    ANONYMOUS_USER_ID: str = "anonymous"

    # Scope of the "current session" pointer when a caller does not name one
    DEFAULT_CLIENT_KEY: str = "default"

    # Chat completion (empty endpoint = canned fallback replies only)
    LLM_ENDPOINT: str = ""
    LLM_TIMEOUT: float = 20.0
    SYSTEM_PROMPT: str = (
        "You are Claude, a helpful AI assistant created by Anthropic. "
        "Be conversational, helpful, and concise in your responses."
    )

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()
