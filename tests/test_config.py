import pytest

from mobiquo.config import (
    BrowserProxyConfig,
    CookieHarvestConfig,
    NoEscalation,
    load_settings,
)
from mobiquo.utils.exceptions import ConfigError


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("TAPATALK_FORUM_URL", "https://forum.example.com//")
    monkeypatch.setenv("TAPATALK_USERNAME", "alice")
    monkeypatch.setenv("TAPATALK_PASSWORD", "s3cret")
    monkeypatch.setenv("TAPATALK_READ_ONLY", "false")

    settings = load_settings()

    assert settings.forum_url == "https://forum.example.com"
    assert settings.mobiquo_url == "https://forum.example.com/mobiquo/mobiquo.php"
    assert settings.username == "alice"
    assert settings.password.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(settings)
    assert settings.read_only is False
    assert settings.has_credentials


def test_defaults() -> None:
    settings = load_settings(forum_url="https://forum.example.com")
    assert settings.read_only is True
    assert settings.timeout == 15.0
    assert settings.max_response_size == 5 * 1024 * 1024
    assert settings.user_agent is None
    assert not settings.has_credentials
    assert isinstance(settings.escalation, NoEscalation)


def test_missing_forum_url_is_config_error() -> None:
    with pytest.raises(ConfigError, match="forum_url"):
        load_settings()


@pytest.mark.parametrize("url", ["forum.example.com", "ftp://forum.example.com", "https://"])
def test_forum_url_must_be_absolute_http(url) -> None:
    with pytest.raises(ConfigError):
        load_settings(forum_url=url)


def test_plain_http_requires_opt_in() -> None:
    with pytest.raises(ConfigError, match="allow_http"):
        load_settings(forum_url="http://forum.example.com")

    settings = load_settings(forum_url="http://forum.example.com", allow_http=True)
    assert settings.forum_url == "http://forum.example.com"


def test_validation_error_does_not_echo_secret_values() -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_settings(forum_url="https://forum.example.com", password="hunter2", timeout="soon")
    assert "hunter2" not in str(exc_info.value)
    assert exc_info.value.__cause__ is None


def test_escalation_variants() -> None:
    browser = load_settings(forum_url="https://f.example.com", chrome_cdp_url="http://chrome:9222/")
    assert browser.escalation == BrowserProxyConfig(cdp_url="http://chrome:9222")

    harvest = load_settings(
        forum_url="https://f.example.com",
        flaresolverr_url="http://solver:8191",
        flaresolverr_timeout=30,
    )
    assert harvest.escalation == CookieHarvestConfig(service_url="http://solver:8191", timeout=30)
    assert harvest.escalation.kind == "harvest"


def test_both_escalation_urls_is_config_error() -> None:
    with pytest.raises(ConfigError, match="mutually exclusive"):
        load_settings(
            forum_url="https://f.example.com",
            chrome_cdp_url="http://chrome:9222",
            flaresolverr_url="http://solver:8191",
        )


def test_blank_optional_values_are_unset(monkeypatch) -> None:
    monkeypatch.setenv("TAPATALK_FORUM_URL", "https://f.example.com")
    monkeypatch.setenv("TAPATALK_USERNAME", "")
    monkeypatch.setenv("TAPATALK_CHROME_CDP_URL", "")
    settings = load_settings()
    assert settings.username is None
    assert isinstance(settings.escalation, NoEscalation)
