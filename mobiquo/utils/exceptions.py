"""
Exception hierarchy for mobiquo.

Provides:
- Custom exception classes with error codes
- Error categorization (retryable, fatal, validation, ...)
- Safe error message formatting (no credential leak)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mobiquo.xmlrpc.types import Fault


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    REMOTE = "remote"


class MobiquoError(Exception):
    """Base exception for all mobiquo errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class DecodeError(MobiquoError):
    """Malformed XML-RPC response. Fatal to the call, never retried."""

    def __init__(self, message: str, position: int | None = None):
        details = {"position": position} if position is not None else {}
        super().__init__(message, code="DECODE_ERROR", category=ErrorCategory.VALIDATION, details=details)
        self.position = position


class TransportError(MobiquoError):
    """Network, timeout, size-cap, redirect or non-2xx failure.

    ``retryable`` is diagnostic only. Nothing in the client retries on it; the
    only automatic recoveries are clearance escalation and re-login.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "TRANSPORT_ERROR",
        status_code: int | None = None,
        cross_host: bool = False,
        retryable: bool = False,
    ):
        if code == "TRANSPORT_TIMEOUT":
            category = ErrorCategory.TIMEOUT
        else:
            category = ErrorCategory.RETRYABLE if retryable else ErrorCategory.FATAL
        super().__init__(
            message,
            code=code,
            category=category,
            details={"status_code": status_code, "cross_host": cross_host},
        )
        self.status_code = status_code
        self.cross_host = cross_host
        self.retryable = retryable

    @property
    def is_block(self) -> bool:
        """True when the endpoint explicitly refused us (anti-bot block)."""
        return self.status_code == 403


class FaultError(MobiquoError):
    """A well-formed fault reported by the remote side."""

    def __init__(self, fault: Fault):
        super().__init__(
            f"XML-RPC Fault {fault.code}: {fault.message}",
            code="FAULT",
            category=ErrorCategory.REMOTE,
            details={"fault_code": fault.code},
        )
        self.fault = fault


class LoginError(MobiquoError):
    """Explicit login rejection, or a login call that could not complete."""

    def __init__(self, message: str, result_text: str | None = None):
        details = {"result_text": result_text} if result_text else {}
        super().__init__(message, code="LOGIN_FAILED", category=ErrorCategory.PERMISSION, details=details)
        self.result_text = result_text


class NotLoggedInError(MobiquoError):
    """A write operation was attempted without an authenticated session."""

    def __init__(self, operation: str):
        super().__init__(
            f"Must be logged in to {operation}",
            code="NOT_LOGGED_IN",
            category=ErrorCategory.PERMISSION,
            details={"operation": operation},
        )


class ConfigError(MobiquoError):
    """Invalid settings. Raised at load/construction time."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFIG_ERROR", category=ErrorCategory.FATAL, details=details)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|passwd|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"<base64>[A-Za-z0-9+/=\s]+</base64>"),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove credential-looking content from messages before logging them."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
