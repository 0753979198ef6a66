"""Configuration loading utilities."""

from typing import Any
from urllib.parse import urlparse

from loguru import logger
from pydantic import ValidationError

from mobiquo.config.schema import Settings
from mobiquo.utils.exceptions import ConfigError


def _describe(exc: ValidationError) -> tuple[str, str | None]:
    """Summarise validation errors by field and message only, never by input value."""
    problems = []
    first_field: str | None = None
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "settings"
        if first_field is None and err.get("loc"):
            first_field = loc
        problems.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(problems), first_field


def load_settings(**overrides: Any) -> Settings:
    """
    Load settings from ``TAPATALK_*`` environment variables.

    Args:
        **overrides: Field values that take precedence over the environment.

    Returns:
        Validated settings.

    Raises:
        ConfigError: When a required value is missing or a value is invalid.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        message, field = _describe(e)
        # Drop the chained ValidationError: its repr carries the input values.
        raise ConfigError(f"Invalid configuration: {message}", field=field) from None

    if urlparse(settings.forum_url).scheme == "http":
        logger.warning("forum_url uses plain HTTP; credentials are sent in cleartext")
    return settings
