"""Executor settings with typed configuration and fail-fast validation.

Examples
--------
>>> from reliable_request.settings import load_settings
>>> settings = load_settings(retry_delay_ms=100)
>>> settings.retry_delay_ms
100.0
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reliable_request.errors import SettingsError
from reliable_request.logging import get_logger, setup_logging

__all__ = [
    "ExecutorSettings",
    "configure_logging",
    "load_settings",
]

logger = get_logger(__name__)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class ExecutorSettings(BaseSettings):
    """Retry loop defaults (``RELIABLE_REQUEST_*`` namespace)."""

    model_config = SettingsConfigDict(
        env_prefix="RELIABLE_REQUEST_",
        extra="forbid",
        case_sensitive=False,
    )

    retry_delay_ms: float = Field(
        default=250.0, ge=0, description="Fixed delay between attempts in milliseconds"
    )
    get_retry_on_error_status: bool = Field(
        default=True, description="Retry GET requests answered with a non-success status"
    )
    post_retry_on_error_status: bool = Field(
        default=False, description="Retry POST requests answered with a non-success status"
    )
    success_status_min: int = Field(
        default=200, ge=100, le=599, description="Lowest status counted as success"
    )
    success_status_max: int = Field(
        default=299, ge=100, le=599, description="Highest status counted as success"
    )
    log_level: str = Field(
        default="INFO", description="Logging level used by configure_logging"
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            msg = f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def _check_success_range(self) -> ExecutorSettings:
        if self.success_status_min > self.success_status_max:
            msg = "success_status_min must not exceed success_status_max"
            raise ValueError(msg)
        return self


def load_settings(**overrides: object) -> ExecutorSettings:
    """Load :class:`ExecutorSettings` from the environment with optional overrides.

    Parameters
    ----------
    **overrides : object
        Field values taking precedence over environment variables.

    Returns
    -------
    ExecutorSettings
        Validated settings.

    Raises
    ------
    SettingsError
        If any value fails validation.
    """
    try:
        return ExecutorSettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        logger.exception(
            "Settings validation failed",
            extra={"operation": "load_settings", "error_type": type(exc).__name__},
        )
        raise SettingsError(msg, cause=exc, context={"validation_error": str(exc)}) from exc


def configure_logging(settings: ExecutorSettings | None = None) -> ExecutorSettings:
    """Install JSON logging on the root logger at the configured level.

    Intended to be called once by applications at startup.

    Parameters
    ----------
    settings : ExecutorSettings | None, optional
        Settings supplying ``log_level``. Loaded from the environment when omitted.

    Returns
    -------
    ExecutorSettings
        The settings that were applied.

    Raises
    ------
    SettingsError
        If ``settings`` is omitted and the environment holds invalid values.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    return settings
