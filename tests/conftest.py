from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from fakes import GITHUB_TOKEN, MACKEREL_KEY, FakeGitHubApi, FakeMackerelApi
from opskit.clients.github import GitHubClient
from opskit.clients.mackerel import MackerelClient

_CONFIG_ENV_VARS = [
    "MACKEREL_APIKEY",
    "GITHUB_TOKEN",
    "MACKEREL_API_BASE",
    "GITHUB_API_BASE",
    "HTTP_TIMEOUT_SEC",
    "MACKEREL_PAGE_DELAY_SEC",
    "MACKEREL_MAX_ALERT_PAGES",
    "ALERT_STATS_FRACTION_DIGITS",
    "LOG_LEVEL",
]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Start every test from a known environment.

    Credentials from the developer's shell must never reach the fakes, and the
    pagination delay is disabled so CLI tests do not sleep.
    """
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MACKEREL_PAGE_DELAY_SEC", "0")


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set both API credentials to the values the fakes accept."""
    monkeypatch.setenv("MACKEREL_APIKEY", MACKEREL_KEY)
    monkeypatch.setenv("GITHUB_TOKEN", GITHUB_TOKEN)


@pytest.fixture
def mackerel_api() -> FakeMackerelApi:
    return FakeMackerelApi()


@pytest.fixture
def github_api() -> FakeGitHubApi:
    return FakeGitHubApi()


@pytest.fixture
async def mackerel_client(mackerel_api: FakeMackerelApi) -> AsyncIterator[MackerelClient]:
    """MackerelClient wired to the in-memory fake API."""
    async with MackerelClient(MACKEREL_KEY, transport=mackerel_api.transport) as client:
        yield client


@pytest.fixture
async def github_client(github_api: FakeGitHubApi) -> AsyncIterator[GitHubClient]:
    """GitHubClient wired to the in-memory fake API."""
    async with GitHubClient(GITHUB_TOKEN, transport=github_api.transport) as client:
        yield client
