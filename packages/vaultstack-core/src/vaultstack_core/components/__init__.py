"""Topology components, leaf first.

Each component provisions its resources in its constructor and publishes a
handle when done; dependents take the component itself as an argument.
"""

from __future__ import annotations

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.components.certificate import (
    CertificateBinding,
    NoCertificate,
    PendingCertificate,
    TlsCertificate,
    ValidatedCertificate,
    certificate_binding,
    request_certificate,
)
from vaultstack_core.components.cluster import Cluster
from vaultstack_core.components.network import NetworkTopology, ServiceEndpoint
from vaultstack_core.components.registry import RegistryMirror
from vaultstack_core.components.service import WorkloadService, select_listener
from vaultstack_core.components.volume import PersistentVolume

__all__ = [
    "Assembly",
    "Component",
    # Network and storage
    "NetworkTopology",
    "ServiceEndpoint",
    "PersistentVolume",
    # Compute
    "Cluster",
    "RegistryMirror",
    "WorkloadService",
    "select_listener",
    # TLS
    "CertificateBinding",
    "NoCertificate",
    "PendingCertificate",
    "ValidatedCertificate",
    "TlsCertificate",
    "certificate_binding",
    "request_certificate",
]
