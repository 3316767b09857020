"""Configuration management for Tollgate using Pydantic settings.

This module handles all configuration for the execution core, loading from
environment variables and .env files with sensible defaults.
"""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Main configuration settings for Tollgate.

    Settings are loaded from environment variables and .env files.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    tollgate_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level for the application",
    )
    tollgate_log_file: Path | None = Field(
        default=None,
        description="Optional file path to write logs (defaults to console only)",
    )
    tollgate_debug_mode: bool = Field(
        default=False,
        description="Enable debug mode with detailed gate and approval tracing",
    )

    # Filesystem Scope
    working_dir: Path = Field(
        default=Path("."),
        validate_default=True,
        description="Working directory; file tools may only touch paths inside it",
    )
    additional_directories: Annotated[list[Path], NoDecode] = Field(
        default_factory=list,
        description="Extra directories granted to file tools besides the working directory",
    )

    # Approval Policy
    auto_approve_edits: bool = Field(
        default=False,
        description="Apply edits without asking for approval",
    )
    auto_approve_writes: bool = Field(
        default=False,
        description="Write files without asking for approval",
    )

    # Shell Execution
    shell_timeout: int = Field(
        default=120,
        description="Timeout for shell commands in seconds",
        ge=5,
        le=3600,
    )
    shell_max_output_chars: int = Field(
        default=30000,
        description="Maximum characters of stdout/stderr kept per stream",
        ge=100,
    )
    deny_patterns: list[str] = Field(
        default_factory=list,
        description="Extra regular expressions that make a shell command require approval",
    )

    # Read Tool
    read_max_lines: int = Field(
        default=2000,
        description="Default maximum number of lines returned by the read tool",
        ge=1,
    )

    @field_validator("working_dir", "tollgate_log_file", mode="before")
    @classmethod
    def expand_paths(cls, v: str | Path | None) -> Path | None:
        """Expand relative paths to absolute paths."""
        if v is None:
            return None
        path = Path(v)
        return path.expanduser().resolve()

    @field_validator("additional_directories", mode="before")
    @classmethod
    def expand_directory_list(cls, v: list[str | Path] | str | None) -> list[Path]:
        """Accept a comma-separated string or a list and resolve each entry."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        return [Path(p).expanduser().resolve() for p in v]

    @property
    def log_file_path(self) -> Path | None:
        """Get the path to the log file, if file logging is enabled."""
        return self.tollgate_log_file

    def model_dump_safe(self) -> dict[str, str]:
        """Dump settings as a dictionary with safe string representations.

        Useful for displaying configuration without exposing internals.
        """
        return {
            "log_level": self.tollgate_log_level,
            "log_file": str(self.tollgate_log_file) if self.tollgate_log_file else "-",
            "working_dir": str(self.working_dir),
            "additional_directories": ", ".join(str(d) for d in self.additional_directories) or "-",
            "auto_approve_edits": str(self.auto_approve_edits),
            "auto_approve_writes": str(self.auto_approve_writes),
            "shell_timeout": str(self.shell_timeout),
            "shell_max_output_chars": str(self.shell_max_output_chars),
            "deny_patterns": str(len(self.deny_patterns)),
        }


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Creates and caches the settings on first call.

    Returns:
        Settings: The global settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment/files.

    Useful for testing or when configuration changes at runtime.

    Returns:
        Settings: The newly loaded settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
