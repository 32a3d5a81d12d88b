"""Configuration loading for the command runner."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from aibuddy_exec.constants import (
    DEFAULT_COMMAND_TIMEOUT_S,
    DEFAULT_MODEL,
    DEFAULT_TERMINAL_LINES,
    MAX_ERROR_RETRIES,
)


@dataclass
class Config:
    """Application configuration loaded from environment."""
    
    openrouter_api_key: str
    model: str = DEFAULT_MODEL
    max_retries: int = MAX_ERROR_RETRIES
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT_S
    terminal_lines: int = DEFAULT_TERMINAL_LINES


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got: {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {raw!r}")


def load_config(require_all: bool = True) -> Optional[Config]:
    """
    Load configuration from environment variables.
    
    Args:
        require_all: If True, raises ConfigError if required vars are missing.
                     If False, returns None for missing config.
    
    Returns:
        Config object if all required vars present, None if require_all=False and missing.
    
    Raises:
        ConfigError: If require_all=True and required vars are missing,
                     or if a numeric variable cannot be parsed.
    """
    load_dotenv()
    
    openrouter_api_key = os.environ.get("OPENROUTER_API_KEY")
    
    if not openrouter_api_key:
        if require_all:
            raise ConfigError(
                "Missing required environment variables: OPENROUTER_API_KEY\n"
                "Please set it in your environment or create a .env file.\n"
                "See .env.example for the required format."
            )
        return None
    
    max_retries = _int_env("AIBUDDY_MAX_RETRIES", MAX_ERROR_RETRIES)
    if max_retries < 0:
        raise ConfigError("AIBUDDY_MAX_RETRIES must be >= 0")
    
    terminal_lines = _int_env("AIBUDDY_TERMINAL_LINES", DEFAULT_TERMINAL_LINES)
    if terminal_lines < 1:
        raise ConfigError("AIBUDDY_TERMINAL_LINES must be >= 1")
    
    return Config(
        openrouter_api_key=openrouter_api_key,
        model=os.environ.get("AIBUDDY_MODEL") or DEFAULT_MODEL,
        max_retries=max_retries,
        command_timeout=_float_env("AIBUDDY_COMMAND_TIMEOUT_S", DEFAULT_COMMAND_TIMEOUT_S),
        terminal_lines=terminal_lines,
    )
