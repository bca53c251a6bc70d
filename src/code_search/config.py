"""Configuration management for Code Search."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# Minimal environment handed to child processes. Anything else (tokens,
# cloud credentials, NODE_OPTIONS, ...) is never propagated.
CORE_ALLOWED_ENV_VARS: List[str] = [
    # Command resolution
    "PATH",
    # Temp directories
    "TMPDIR",
    "TMP",
    "TEMP",
    # Windows runtime support
    "SYSTEMROOT",
    "WINDIR",
    "COMSPEC",
    "PATHEXT",
]

# Profile variables for tools that read per-user config (version probes etc.)
TOOLING_ALLOWED_ENV_VARS: List[str] = CORE_ALLOWED_ENV_VARS + [
    "HOME",
    "USERPROFILE",
    "APPDATA",
    "LOCALAPPDATA",
]


class SearchLimitsConfig(BaseModel):
    """Resource limits and defaults applied to every search invocation."""

    timeout_seconds: float = Field(
        default=30.0, description="Maximum backend run time in seconds"
    )
    kill_grace_seconds: float = Field(
        default=5.0,
        description="Delay between SIGTERM and SIGKILL for processes that ignore SIGTERM",
    )
    max_output_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Combined stdout+stderr ceiling before the backend is killed",
    )
    max_single_value_output_bytes: int = Field(
        default=64 * 1024,
        description="Output ceiling for commands that return a single short value",
    )
    probe_timeout_seconds: float = Field(
        default=10.0, description="Timeout for backend availability probes"
    )
    default_files_per_page: int = Field(
        default=10, le=20, description="Files per page when the query does not say"
    )
    default_matches_per_page: int = Field(
        default=10, le=100, description="Matches per file when the query does not say"
    )
    default_match_content_length: int = Field(
        default=200, le=800, description="Maximum code points per match value"
    )
    large_directory_size_mb: float = Field(
        default=100.0, description="Estimated size above which a directory is large"
    )
    large_directory_file_count: int = Field(
        default=1000, description="Estimated file count above which a directory is large"
    )
    estimated_average_file_size_bytes: int = Field(
        default=10 * 1024,
        description="Average file size assumed for unscanned subdirectory entries",
    )
    allowed_env_vars: List[str] = Field(
        default_factory=lambda: list(CORE_ALLOWED_ENV_VARS),
        description="Environment variables propagated to backend processes",
    )

    @field_validator(
        "timeout_seconds",
        "kill_grace_seconds",
        "max_output_bytes",
        "max_single_value_output_bytes",
        "probe_timeout_seconds",
        "default_files_per_page",
        "default_matches_per_page",
        "default_match_content_length",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Reject zero or negative limits."""
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v


class Config(BaseModel):
    """Main configuration for Code Search."""

    limits: SearchLimitsConfig = Field(default_factory=SearchLimitsConfig)
    find_default_exclude_dirs: List[str] = Field(
        default=["node_modules", "dist", ".git", "coverage", "build", ".next"],
        description="Directories pruned by file enumeration unless the query overrides them",
    )


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_PATH = Path(".code-search/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file, or return defaults when none exists.

        Raises:
            ConfigurationError: If the file is not valid JSON or holds invalid values
        """
        if not self.config_path.exists():
            logger.debug(f"No config at {self.config_path}, using defaults")
            self._config = Config()
            return self._config

        try:
            with open(self.config_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file {self.config_path}", str(e)
            ) from e

        try:
            self._config = Config(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {self.config_path}", str(e)
            ) from e

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config or Config()

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(), f, indent=2)
        self._config = config

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config
