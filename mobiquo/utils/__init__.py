"""Utility modules for mobiquo."""

from mobiquo.utils.exceptions import (
    ConfigError,
    DecodeError,
    ErrorCategory,
    FaultError,
    LoginError,
    MobiquoError,
    NotLoggedInError,
    TransportError,
    sanitize_error_message,
)
from mobiquo.utils.singleflight import SingleFlight

__all__ = [
    "ConfigError",
    "DecodeError",
    "ErrorCategory",
    "FaultError",
    "LoginError",
    "MobiquoError",
    "NotLoggedInError",
    "TransportError",
    "SingleFlight",
    "sanitize_error_message",
]
