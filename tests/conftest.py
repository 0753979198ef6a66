"""Pytest hooks and fixtures."""

import os

import pytest


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_browser: needs a reachable Chrome CDP endpoint (skipped unless MOBIQUO_CDP_URL is set)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_browser tests unless MOBIQUO_CDP_URL points at a Chrome."""
    if os.environ.get("MOBIQUO_CDP_URL"):
        return
    skip = pytest.mark.skip(reason="Set MOBIQUO_CDP_URL to run browser tests")
    for item in items:
        if "requires_browser" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolate_tapatalk_env(monkeypatch):
    """Keep a developer's TAPATALK_* environment out of settings tests."""
    for key in list(os.environ):
        if key.startswith("TAPATALK_"):
            monkeypatch.delenv(key, raising=False)
