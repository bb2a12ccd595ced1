"""vaultstack-core: Topology orchestration for self-hosted Vaultwarden.

This package provides:
- AssemblySettings: validated settings read from the environment
- Topology components: network, registry mirror, cluster, volume,
  optional TLS certificate and the load-balanced service
- TopologyAssembler: builds the topology from an explicit construction plan
- CertificateValidationGate: waits for DNS validation of the certificate
- TopologyManifest: serialized result of an assembly
- ProvisioningEngine / InMemoryEngine: the cloud boundary
"""

from __future__ import annotations

__version__ = "0.1.0"

# Assembly
from vaultstack_core.assembler import (
    CONSTRUCTION_PLAN,
    ConstructionStep,
    Topology,
    TopologyAssembler,
    classification_tags,
    validate_plan,
)

# Authorization
from vaultstack_core.authorization import AuthorizationGraph

# Components
from vaultstack_core.components import (
    Assembly,
    CertificateBinding,
    Cluster,
    NetworkTopology,
    NoCertificate,
    PendingCertificate,
    PersistentVolume,
    RegistryMirror,
    TlsCertificate,
    ValidatedCertificate,
    WorkloadService,
)

# Configuration
from vaultstack_core.config import AssemblySettings, ConfigurationDigest, extract_configuration

# Engines
from vaultstack_core.engine import InMemoryEngine, ProvisioningEngine

# Error types
from vaultstack_core.errors import (
    CertificateValidationError,
    ConfigurationError,
    DuplicateComponentError,
    IncompleteTopologyError,
    InvalidStateTransition,
    MissingDependencyError,
    ProvisioningError,
    VaultstackError,
)

# Manifest
from vaultstack_core.manifest import ManifestResource, TopologyManifest

# Value models
from vaultstack_core.models import (
    AccessGrant,
    AssemblyOutput,
    AssemblyStatus,
    AuthorizationRule,
    CertificateStatus,
    DnsValidationRecord,
    Listener,
    MirroredImage,
    Port,
    ResourceHandle,
    ResourceKind,
    ResourceRequest,
    SourceImage,
)

# Observability
from vaultstack_core.observability import configure_logging

# Certificate validation
from vaultstack_core.validation import CertificateValidationGate

__all__ = [
    "__version__",
    # Assembly
    "TopologyAssembler",
    "Topology",
    "ConstructionStep",
    "CONSTRUCTION_PLAN",
    "classification_tags",
    "validate_plan",
    # Configuration
    "AssemblySettings",
    "ConfigurationDigest",
    "extract_configuration",
    # Components
    "Assembly",
    "NetworkTopology",
    "RegistryMirror",
    "Cluster",
    "PersistentVolume",
    "TlsCertificate",
    "WorkloadService",
    "CertificateBinding",
    "NoCertificate",
    "PendingCertificate",
    "ValidatedCertificate",
    "CertificateValidationGate",
    # Authorization
    "AuthorizationGraph",
    # Engines
    "ProvisioningEngine",
    "InMemoryEngine",
    # Manifest
    "TopologyManifest",
    "ManifestResource",
    # Models
    "ResourceKind",
    "ResourceHandle",
    "ResourceRequest",
    "SourceImage",
    "MirroredImage",
    "Port",
    "AuthorizationRule",
    "AccessGrant",
    "CertificateStatus",
    "DnsValidationRecord",
    "Listener",
    "AssemblyOutput",
    "AssemblyStatus",
    # Errors
    "VaultstackError",
    "ConfigurationError",
    "MissingDependencyError",
    "DuplicateComponentError",
    "ProvisioningError",
    "IncompleteTopologyError",
    "InvalidStateTransition",
    "CertificateValidationError",
    # Observability
    "configure_logging",
]
