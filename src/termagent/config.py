"""Configuration settings for the application."""

import logging
from datetime import datetime
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from TERMAGENT_* environment variables or a .env file if not provided
    API_PORT: int = 8000
    LOG_LEVEL: str = "warning"  # Options: debug, info, warning, error, critical

    # Inference backend
    BACKEND: str = "ollama"
    OLLAMA_URL: str = "http://localhost:11434"
    MODEL: str | None = None
    REQUEST_TIMEOUT: float = 120.0
    TEMPERATURE: float = 0.1
    TOP_P: float = 0.8
    TOP_K: int = 20

    # Agent
    WORKING_DIR: str | None = None
    CONFIG_FILE: str = "agent-config.json"
    MAX_HISTORY_TURNS: int = 20
    RESULT_PREVIEW_CHARS: int = 200

    # Tools
    COMMAND_TIMEOUT: float = 300.0  # seconds
    MAX_OUTPUT_BYTES: int = 10 * 1024 * 1024
    SEARCH_MAX_DEPTH: int = 5

    class Config:
        """Configuration for Pydantic settings."""

        env_prefix = "TERMAGENT_"
        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


# ---------------------------------------------------------------------------
# Persisted configuration document
# ---------------------------------------------------------------------------
class AgentConfig(BaseModel):
    """The small JSON document remembered between runs."""

    model_config = ConfigDict(populate_by_name=True)

    model: str | None = None
    ollama_url: str | None = Field(None, alias="ollamaUrl")
    working_directory: str | None = Field(None, alias="workingDirectory")
    last_updated: datetime | None = Field(None, alias="lastUpdated")


class ConfigStore:
    """Reads and writes :class:`AgentConfig` as JSON on disk."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or settings.CONFIG_FILE)

    def load(self) -> AgentConfig:
        """Return the stored document, or an empty one if it is missing or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return AgentConfig()
        except OSError as exc:
            logger.warning("Could not read config %s: %s", self.path, exc)
            return AgentConfig()

        try:
            return AgentConfig.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid config %s: %s", self.path, exc)
            return AgentConfig()

    def save(self, config: AgentConfig) -> bool:
        """Write *config*, stamping ``lastUpdated``.  Returns False if the write failed."""
        config.last_updated = datetime.now()
        try:
            self.path.write_text(
                config.model_dump_json(by_alias=True, indent=2, exclude_none=True),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Could not save config %s: %s", self.path, exc)
            return False
        return True

    def update(self, **changes: str | None) -> AgentConfig:
        """Merge *changes* (field names) into the stored document and save it."""
        config = self.load().model_copy(update=changes)
        self.save(config)
        return config
