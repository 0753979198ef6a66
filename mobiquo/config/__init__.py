"""Configuration module for mobiquo."""

from mobiquo.config.loader import load_settings
from mobiquo.config.schema import (
    BrowserProxyConfig,
    CookieHarvestConfig,
    EscalationConfig,
    NoEscalation,
    Settings,
)

__all__ = [
    "Settings",
    "load_settings",
    "EscalationConfig",
    "NoEscalation",
    "BrowserProxyConfig",
    "CookieHarvestConfig",
]
