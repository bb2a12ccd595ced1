"""Shared pytest fixtures for vaultstack-core tests."""

from __future__ import annotations

import sys

import pytest
import structlog
from vaultstack_core.assembler import classification_tags
from vaultstack_core.components.base import Assembly
from vaultstack_core.components.cluster import Cluster
from vaultstack_core.components.network import NetworkTopology
from vaultstack_core.components.registry import RegistryMirror
from vaultstack_core.components.volume import PersistentVolume
from vaultstack_core.config import AssemblySettings
from vaultstack_core.engine import InMemoryEngine

DOMAIN_NAME = "vault.example.com"


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to print to stdout, uncached, for test isolation."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def engine() -> InMemoryEngine:
    """In-memory engine with the default account and region."""
    return InMemoryEngine()


@pytest.fixture
def assembly(engine: InMemoryEngine) -> Assembly:
    """Empty assembly carrying the classification tags."""
    return Assembly(engine, tags=classification_tags())


@pytest.fixture
def network(assembly: Assembly) -> NetworkTopology:
    return NetworkTopology(assembly, "network")


@pytest.fixture
def registry(assembly: Assembly) -> RegistryMirror:
    return RegistryMirror(assembly, "registry", version="1.32.0")


@pytest.fixture
def cluster(assembly: Assembly, network: NetworkTopology) -> Cluster:
    return Cluster(assembly, "cluster", network=network)


@pytest.fixture
def volume(assembly: Assembly, network: NetworkTopology) -> PersistentVolume:
    return PersistentVolume(assembly, "volume", network=network)


@pytest.fixture
def plaintext_settings() -> AssemblySettings:
    """Settings without a domain name."""
    return AssemblySettings(base_version="1.32.0", configuration={"SIGNUPS_ALLOWED": "false"})


@pytest.fixture
def tls_settings() -> AssemblySettings:
    """Settings with a domain name."""
    return AssemblySettings(
        base_version="1.32.0",
        domain_name=DOMAIN_NAME,
        configuration={"SIGNUPS_ALLOWED": "false"},
    )
