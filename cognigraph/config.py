"""
Configuration module for cognigraph.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use COGNIGRAPH_ prefix (e.g., COGNIGRAPH_VAULT_PATH).
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_vault_path() -> Path:
    """Get default vault path based on platform."""
    if os.name == "nt":  # Windows
        return Path.home() / "Documents" / "Vault"
    else:  # Linux/macOS
        return Path.home() / "Vault"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - COGNIGRAPH_VAULT_PATH: Root directory of the notes vault
    - COGNIGRAPH_INDEX_DIR_NAME: Directory inside the vault holding the graph database
    - COGNIGRAPH_STORAGE: Graph store backend ("sqlite" or "memory")
    - COGNIGRAPH_DEBOUNCE_MS: Debounce window for file-change batches
    - COGNIGRAPH_POLL_INTERVAL: Seconds between file-system scans of the watcher
    - COGNIGRAPH_LOG_LEVEL: Minimum log level
    - COGNIGRAPH_LOG_FORMAT: "console" or "json"
    - COGNIGRAPH_FOLLOW_SYMLINKS: Follow symlinked directories during the vault walk
    """

    vault_path: Path = Field(default_factory=_get_default_vault_path)
    index_dir_name: str = ".cognigraph"
    storage: Literal["sqlite", "memory"] = "sqlite"
    debounce_ms: int = 200
    poll_interval: float = 0.1
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    follow_symlinks: bool = True

    model_config = SettingsConfigDict(env_prefix="COGNIGRAPH_")

    def db_path_for(self, vault_path: Path) -> Path:
        """Location of the SQLite graph database for a vault."""
        return vault_path / self.index_dir_name / "graph.db"


# Global settings instance
settings = Settings()
