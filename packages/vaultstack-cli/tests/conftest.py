"""Shared test fixtures for vaultstack-cli tests."""

from __future__ import annotations

import os
import sys
from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest
import structlog
from click.testing import CliRunner

# Settings variables cleared for every invocation so the host environment
# cannot leak into a test.
SETTINGS_ENV_VARS = (
    "VAULTWARDEN_BASE_VERSION",
    "VAULTWARDEN_DOMAIN_NAME",
    "VAULTWARDEN_MAX_AZS",
)


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to print to stdout, uncached, for test isolation."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def configure_logging_mock() -> Generator[MagicMock, None, None]:
    """Keep commands from reconfiguring structlog globally during tests."""
    with patch("vaultstack_core.configure_logging") as mock:
        yield mock


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Environment without vaultstack settings or CONFIG_ entries."""
    for name in list(os.environ):
        if name in SETTINGS_ENV_VARS or name.startswith("CONFIG_"):
            monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def cli_runner(clean_env: pytest.MonkeyPatch) -> CliRunner:
    """Click test runner over a clean environment."""
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Click test runner inside a temporary working directory."""
    with cli_runner.isolated_filesystem():
        yield cli_runner
