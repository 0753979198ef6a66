"""Cookie jar scoped to the single forum hostname."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str | None = None


def parse_set_cookie(header: str) -> Cookie | None:
    """Parse one Set-Cookie header value. Returns None when it has no name=value pair."""
    parts = header.split(";")
    name_value = parts[0].strip() if parts else ""
    if not name_value or "=" not in name_value:
        return None
    name, _, value = name_value.partition("=")
    name = name.strip()
    if not name:
        return None

    domain: str | None = None
    for attr in parts[1:]:
        key, _, attr_value = attr.strip().partition("=")
        if key.strip().lower() == "domain":
            domain = attr_value.strip() or None
            break
    return Cookie(name=name, value=value.strip(), domain=domain)


class Session:
    """Live cookie jar for one hostname. Last write wins per cookie name."""

    def __init__(self, hostname: str):
        self.hostname = hostname.lower()
        self._cookies: dict[str, str] = {}

    def accepts_domain(self, domain: str | None) -> bool:
        """Domain absent, equal to the host, or a proper parent-domain suffix of it."""
        if not domain:
            return True
        scope = domain.strip().lstrip(".").lower()
        if not scope:
            return True
        return self.hostname == scope or self.hostname.endswith("." + scope)

    def set_cookie(self, name: str, value: str, domain: str | None = None) -> bool:
        if not self.accepts_domain(domain):
            logger.debug(f"Rejecting cookie for foreign domain: {domain}")
            return False
        self._cookies[name] = value
        return True

    def store(self, cookie: Cookie) -> bool:
        return self.set_cookie(cookie.name, cookie.value, cookie.domain)

    def store_set_cookie(self, header: str) -> bool:
        cookie = parse_set_cookie(header)
        if cookie is None:
            return False
        return self.store(cookie)

    def cookie_header(self) -> str | None:
        if not self._cookies:
            return None
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def get(self, name: str) -> str | None:
        return self._cookies.get(name)

    def names(self) -> list[str]:
        return list(self._cookies)

    def clear(self) -> None:
        self._cookies.clear()

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies
