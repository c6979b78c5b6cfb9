"""Logging configuration models for MindRank."""

import sys
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, field_validator

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class FileLoggingConfig(BaseModel):
    """Configuration for file-based logging."""

    enabled: bool = Field(default=False, description="Enable file logging")
    path: str = Field(default="mindrank.log", description="Path to log file")
    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    rotation: str = Field(default="10 MB", description="Log rotation size (e.g., '10 MB', '1 week')")
    retention: str = Field(default="1 week", description="Log retention period (e.g., '1 week', '30 days')")
    format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        description="Log message format",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        if v.upper() not in _VALID_LEVELS:
            raise ValueError(f"Invalid log level '{v}'. Must be one of: {', '.join(sorted(_VALID_LEVELS))}")
        return v.upper()

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate log file path."""
        if not v.strip():
            raise ValueError("Log file path cannot be empty")
        return v


class LoggingConfig(BaseModel):
    """Top-level logging configuration."""

    file: FileLoggingConfig = Field(default_factory=FileLoggingConfig)
    console_level: str = Field(default="WARNING", description="Console logging level (DEBUG, INFO, WARNING, ERROR)")
    console_format: str = Field(
        default="<level>{level: <8}</level> | {name}:{line} - {message}",
        description="Console log message format",
    )

    @field_validator("console_level")
    @classmethod
    def validate_console_level(cls, v: str) -> str:
        """Validate console logging level."""
        if v.upper() not in _VALID_LEVELS:
            raise ValueError(f"Invalid console log level '{v}'. Must be one of: {', '.join(sorted(_VALID_LEVELS))}")
        return v.upper()


def configure_logging(config: LoggingConfig) -> list[int]:
    """Install loguru sinks for the given configuration.

    Removes loguru's default handler, then adds a stderr sink and, when
    enabled, a rotating file sink.

    Args:
        config: Logging configuration

    Returns:
        Handler ids of the installed sinks
    """
    logger.remove()
    handler_ids = [
        logger.add(sys.stderr, level=config.console_level, format=config.console_format)
    ]

    if config.file.enabled:
        Path(config.file.path).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file.path,
                level=config.file.level,
                format=config.file.format,
                rotation=config.file.rotation,
                retention=config.file.retention,
            )
        )

    return handler_ids
