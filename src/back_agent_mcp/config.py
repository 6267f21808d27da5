"""Configuration for back-agent-mcp."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["debug", "info", "warn", "error"]

_LOG_LEVEL_ALIASES = {"warning": "warn", "err": "error"}


def _get_env_files() -> list[Path]:
    """Get list of .env files to load (current directory only)."""
    cwd_env = Path(".env")
    return [cwd_env] if cwd_env.exists() else []


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_get_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_level: LogLevel = Field(
        default="info",
        description="Log verbosity: debug, info, warn or error",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        """Accept any casing and the usual aliases (WARNING, ERR)."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _LOG_LEVEL_ALIASES.get(lowered, lowered)
        return value

    # ==========================================================================
    # Agent execution
    # ==========================================================================

    agent_command: str = Field(
        default="claude",
        description="Name or path of the coding-agent CLI to spawn",
    )
    max_concurrent_tasks: int = Field(
        default=3,
        ge=1,
        description="Maximum number of tasks in running state at once",
    )
    default_timeout_seconds: float = Field(
        default=300,
        gt=0,
        description="Timeout applied when a task does not specify one",
    )
    max_timeout_seconds: float = Field(
        default=3600,
        gt=0,
        description="Hard cap for any task timeout",
    )
    poll_interval_seconds: float = Field(
        default=0.1,
        gt=0,
        description="How often a queued task checks for a free slot",
    )

    # ==========================================================================
    # Task retention
    # ==========================================================================

    task_max_age_seconds: float = Field(
        default=3600,
        gt=0,
        description="Finished tasks older than this are removed by the cleanup sweep",
    )
    cleanup_interval_seconds: float = Field(
        default=300,
        ge=0,
        description="Interval for the background cleanup sweep in seconds (0 to disable)",
    )

    # ==========================================================================
    # MCP server
    # ==========================================================================

    mcp_transport: Literal["stdio", "http"] = Field(
        default="stdio",
        description="MCP transport: 'stdio' for local, 'http' for remote",
    )
    mcp_host: str = Field(
        default="0.0.0.0",
        description="Host to bind MCP HTTP server",
    )
    mcp_port: int = Field(
        default=8000,
        description="Port for MCP HTTP server",
    )
    mcp_path: str = Field(
        default="/mcp",
        description="Path for MCP HTTP endpoint",
    )

    @model_validator(mode="after")
    def check_default_timeout(self) -> "Settings":
        """The default timeout is subject to the same cap as explicit ones."""
        if self.default_timeout_seconds > self.max_timeout_seconds:
            raise ValueError(
                f"DEFAULT_TIMEOUT_SECONDS ({self.default_timeout_seconds:g}) exceeds "
                f"MAX_TIMEOUT_SECONDS ({self.max_timeout_seconds:g})"
            )
        return self

    @property
    def python_log_level(self) -> str:
        """Name of the matching level in the logging module."""
        return "WARNING" if self.log_level == "warn" else self.log_level.upper()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
