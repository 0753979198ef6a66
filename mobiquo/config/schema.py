"""Configuration schema using Pydantic."""

from __future__ import annotations

from typing import Annotated, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MOBIQUO_PATH = "/mobiquo/mobiquo.php"


class NoEscalation(BaseModel):
    """Plain HTTP only; a 403 is surfaced to the caller."""
    kind: Literal["none"] = "none"


class BrowserProxyConfig(BaseModel):
    """Route requests through a page on a remote Chrome after the first block."""
    kind: Literal["browser"] = "browser"
    cdp_url: str
    page_ttl_seconds: float = 600.0
    navigation_timeout_ms: int = 30_000


class CookieHarvestConfig(BaseModel):
    """Fetch clearance cookies from a FlareSolverr-compatible service after the first block."""
    kind: Literal["harvest"] = "harvest"
    service_url: str
    timeout: float = 60.0


EscalationConfig = Annotated[
    Union[NoEscalation, BrowserProxyConfig, CookieHarvestConfig],
    Field(discriminator="kind"),
]


def _check_http_url(value: str, name: str) -> str:
    value = value.strip().rstrip("/")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"{name} must be an absolute http(s) URL")
    return value


class Settings(BaseSettings):
    """Client settings, read from ``TAPATALK_*`` environment variables."""
    forum_url: str
    username: str | None = None
    password: SecretStr | None = None
    read_only: bool = True
    allow_http: bool = False
    timeout: float = Field(default=15.0, gt=0)
    max_response_size: int = Field(default=5 * 1024 * 1024, gt=0)
    user_agent: str | None = None
    chrome_cdp_url: str | None = None
    flaresolverr_url: str | None = None
    flaresolverr_timeout: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="TAPATALK_", extra="ignore")

    @field_validator("forum_url")
    @classmethod
    def _normalize_forum_url(cls, v: str) -> str:
        return _check_http_url(v, "forum_url")

    @field_validator("username", "user_agent", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("password", mode="before")
    @classmethod
    def _blank_password(cls, v):
        if isinstance(v, str) and not v:
            return None
        return v

    @field_validator("chrome_cdp_url", "flaresolverr_url", mode="before")
    @classmethod
    def _normalize_service_url(cls, v, info):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return _check_http_url(str(v), info.field_name)

    @model_validator(mode="after")
    def _check_combinations(self) -> "Settings":
        if urlparse(self.forum_url).scheme == "http" and not self.allow_http:
            raise ValueError(
                "forum_url uses plain HTTP; credentials would be sent in cleartext "
                "(set allow_http to permit it)"
            )
        if self.chrome_cdp_url and self.flaresolverr_url:
            raise ValueError("chrome_cdp_url and flaresolverr_url are mutually exclusive")
        return self

    @property
    def mobiquo_url(self) -> str:
        return self.forum_url + MOBIQUO_PATH

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password and self.password.get_secret_value())

    @property
    def escalation(self) -> NoEscalation | BrowserProxyConfig | CookieHarvestConfig:
        if self.chrome_cdp_url:
            return BrowserProxyConfig(cdp_url=self.chrome_cdp_url)
        if self.flaresolverr_url:
            return CookieHarvestConfig(service_url=self.flaresolverr_url, timeout=self.flaresolverr_timeout)
        return NoEscalation()
