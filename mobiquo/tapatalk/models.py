"""Typed views over Tapatalk response maps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _opt_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class LoginResult:
    """Outcome of a successful ``login`` call."""
    result: bool
    result_text: str | None = None
    user_id: str | None = None
    username: str | None = None
    login_name: str | None = None
    user_type: str | None = None
    can_pm: bool = False
    can_search: bool = False
    can_moderate: bool = False
    post_count: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_value(cls, value: dict[str, Any]) -> "LoginResult":
        return cls(
            result=bool(value.get("result", False)),
            result_text=_opt_str(value.get("result_text")),
            user_id=_opt_str(value.get("user_id")),
            username=_opt_str(value.get("username")),
            login_name=_opt_str(value.get("login_name")),
            user_type=_opt_str(value.get("user_type")),
            can_pm=bool(value.get("can_pm", False)),
            can_search=bool(value.get("can_search", False)),
            can_moderate=bool(value.get("can_moderate", False)),
            post_count=_opt_int(value.get("post_count")),
            raw=dict(value),
        )
