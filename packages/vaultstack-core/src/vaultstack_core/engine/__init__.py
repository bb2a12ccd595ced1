"""Provisioning engine boundary.

- ProvisioningEngine: protocol the core calls for every cloud operation
- InMemoryEngine: deterministic recording engine for synthesis and tests
"""

from __future__ import annotations

from vaultstack_core.engine.base import ProvisioningEngine
from vaultstack_core.engine.memory import DEFAULT_ACCOUNT, DEFAULT_REGION, InMemoryEngine

__all__ = [
    "DEFAULT_ACCOUNT",
    "DEFAULT_REGION",
    "InMemoryEngine",
    "ProvisioningEngine",
]
