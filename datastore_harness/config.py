import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_optional_env(key: str, default: str) -> str:
    """Get optional environment variable with default"""
    return os.getenv(key, default)


def validate_port(port_str: str) -> int:
    """Validate port number"""
    try:
        port = int(port_str)
    except ValueError:
        raise ConfigurationError(f"Invalid port number '{port_str}'")
    if port < 1 or port > 65535:
        raise ConfigurationError(
            f"Invalid port number '{port_str}': must be between 1 and 65535"
        )
    return port


def validate_seconds(key: str, value: str) -> float:
    """Validate a non-negative duration in seconds"""
    try:
        seconds = float(value)
    except ValueError:
        raise ConfigurationError(f"Invalid duration for {key}: '{value}'")
    if seconds < 0:
        raise ConfigurationError(f"Invalid duration for {key}: must not be negative")
    return seconds


def validate_log_level(value: str) -> str:
    level = value.upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Invalid log level '{value}': expected one of {', '.join(LOG_LEVELS)}"
        )
    return level


@dataclass
class HarnessConfig:
    """Runtime settings for a harness run"""

    observe_timeout: float = 5.0
    snapshot_window: float = 3.0
    settle_delay: float = 3.0
    padding_delay: float = 2.0
    name_separator: str = " > "
    graphql_endpoint: str | None = None
    graphql_api_key: str | None = None
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        return cls(
            observe_timeout=validate_seconds(
                "HARNESS_OBSERVE_TIMEOUT",
                get_optional_env("HARNESS_OBSERVE_TIMEOUT", "5"),
            ),
            snapshot_window=validate_seconds(
                "HARNESS_SNAPSHOT_WINDOW",
                get_optional_env("HARNESS_SNAPSHOT_WINDOW", "3"),
            ),
            settle_delay=validate_seconds(
                "HARNESS_SETTLE_DELAY",
                get_optional_env("HARNESS_SETTLE_DELAY", "3"),
            ),
            padding_delay=validate_seconds(
                "HARNESS_PADDING_DELAY",
                get_optional_env("HARNESS_PADDING_DELAY", "2"),
            ),
            name_separator=get_optional_env("HARNESS_NAME_SEPARATOR", " > "),
            graphql_endpoint=os.getenv("GRAPHQL_ENDPOINT") or None,
            graphql_api_key=os.getenv("GRAPHQL_API_KEY") or None,
            port=validate_port(get_optional_env("PORT", "8000")),
            log_level=validate_log_level(get_optional_env("LOG_LEVEL", "INFO")),
        )
