"""Value models shared by the topology components and the provisioning engine.

This module defines:
- ResourceKind / ResourceHandle / ResourceRequest: the engine boundary
- SourceImage / MirroredImage: container image coordinates
- Port / AuthorizationRule / AccessGrant: network and identity authorization
- CertificateStatus / DnsValidationRecord / Listener: TLS branch values
- AssemblyStatus: completion state of an assembly

All models are frozen; handles are shared by reference and never mutated.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from typing_extensions import Self

from vaultstack_core.constants import HTTP_PORT, HTTPS_PORT, SOURCE_REGISTRY

# Pattern for an AWS account id (12 digits)
ACCOUNT_ID_PATTERN = r"^\d{12}$"

# Pattern for an AWS region (e.g., "eu-central-1", "us-gov-west-1")
REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"

# Pattern for an OCI image tag
IMAGE_TAG_PATTERN = r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$"


class ResourceKind(str, Enum):
    """Kinds of resources the engine can provision."""

    NETWORK = "network"
    SUBNET = "subnet"
    SERVICE_ENDPOINT = "service_endpoint"
    REPOSITORY = "repository"
    IMAGE_COPY = "image_copy"
    CLUSTER = "cluster"
    FILESYSTEM = "filesystem"
    CERTIFICATE = "certificate"
    ROLE = "role"
    LOAD_BALANCER = "load_balancer"
    SERVICE = "service"


class ResourceHandle(BaseModel):
    """Opaque reference to a provisioned resource.

    Only a provisioning engine creates handles. A component publishes its
    handle when its constructor returns; dependents receive it by reference.

    Attributes:
        kind: Resource kind.
        logical_id: Assembly-scoped path (e.g., "vaultwarden/network").
        physical_id: Engine-assigned identifier (e.g., "fs-0a1b2c3d").
        attributes: Engine-reported attributes (e.g., "dns_name").
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ResourceKind = Field(..., description="Resource kind")
    logical_id: str = Field(..., min_length=1, description="Assembly-scoped path")
    physical_id: str = Field(..., min_length=1, description="Engine-assigned identifier")
    attributes: dict[str, str] = Field(
        default_factory=dict,
        description="Engine-reported attributes",
    )


class ResourceRequest(BaseModel):
    """A single create call sent to the provisioning engine.

    Attributes:
        kind: Resource kind to create.
        logical_id: Assembly-scoped path, the engine's idempotency key.
        properties: Declarative resource properties.
        depends_on: Logical ids that must exist before this resource.
        tags: Classification tags applied to the resource.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ResourceKind
    logical_id: str = Field(..., min_length=1)
    properties: dict[str, Any] = Field(default_factory=dict)
    depends_on: tuple[str, ...] = Field(default=())
    tags: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Images
# =============================================================================


class ImageReference(BaseModel):
    """Container image coordinates: (registry, name, version)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Repository name")
    version: str = Field(..., pattern=IMAGE_TAG_PATTERN, description="Image tag")

    @property
    def uri(self) -> str:
        """Fully qualified image reference."""
        return f"{self.registry}/{self.name}:{self.version}"  # type: ignore[attr-defined]


class SourceImage(ImageReference):
    """Publicly hosted upstream image.

    Example:
        >>> SourceImage(name="vaultwarden/server", version="1.32.0").uri
        'docker.io/vaultwarden/server:1.32.0'
    """

    registry: str = Field(default=SOURCE_REGISTRY, min_length=1)


class MirroredImage(ImageReference):
    """Account-scoped private copy of a source image.

    The registry is derived from account and region and cannot be supplied,
    so two accounts or regions never share mirrored coordinates.

    Example:
        >>> MirroredImage(
        ...     account="123456789012", region="eu-central-1",
        ...     name="vaultwarden/server", version="1.32.0",
        ... ).registry
        '123456789012.dkr.ecr.eu-central-1.amazonaws.com'
    """

    account: str = Field(..., pattern=ACCOUNT_ID_PATTERN)
    region: str = Field(..., pattern=REGION_PATTERN)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def registry(self) -> str:
        """Private registry host for the account/region."""
        return f"{self.account}.dkr.ecr.{self.region}.amazonaws.com"

    @classmethod
    def mirror_of(cls, source: SourceImage, *, account: str, region: str) -> Self:
        """Derive the mirrored coordinates of a source image."""
        return cls(account=account, region=region, name=source.name, version=source.version)


# =============================================================================
# Authorization
# =============================================================================


class TransportProtocol(str, Enum):
    """Transport protocol of an authorization rule."""

    TCP = "tcp"
    UDP = "udp"


class Port(BaseModel):
    """A protocol/port pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    protocol: TransportProtocol = TransportProtocol.TCP
    number: int = Field(..., ge=1, le=65535)

    @classmethod
    def tcp(cls, number: int) -> Port:
        """TCP port."""
        return cls(protocol=TransportProtocol.TCP, number=number)

    def __str__(self) -> str:
        return f"{self.protocol.value}/{self.number}"


class AuthorizationRule(BaseModel):
    """Directed network reachability grant.

    Rules are values: two rules with the same source, destination and port
    are equal, so a rule set never holds duplicates.

    Attributes:
        source: Peer initiating traffic (component path or CIDR).
        destination: Peer receiving traffic.
        port: Protocol and port allowed.

    Example:
        >>> rule = AuthorizationRule(
        ...     source="vaultwarden/service",
        ...     destination="vaultwarden/volume",
        ...     port=Port.tcp(2049),
        ... )
        >>> rule.reversed().source
        'vaultwarden/volume'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    port: Port

    def reversed(self) -> AuthorizationRule:
        """Same port, opposite direction."""
        return AuthorizationRule(source=self.destination, destination=self.source, port=self.port)

    def __str__(self) -> str:
        return f"{self.source} -> {self.destination} ({self.port})"


class AccessGrant(BaseModel):
    """Identity-level permission granted to a principal on a resource.

    Attributes:
        principal: Logical id of the role receiving the permission.
        resource: Logical id of the target resource, or "*".
        actions: Permitted API actions.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    principal: str = Field(..., min_length=1)
    resource: str = Field(..., min_length=1)
    actions: tuple[str, ...] = Field(..., min_length=1)


# =============================================================================
# TLS
# =============================================================================


class CertificateStatus(str, Enum):
    """Certificate lifecycle as reported by the engine.

    Values:
        REQUESTED: Request submitted, validation records not yet known.
        PENDING_VALIDATION: Waiting for an operator to publish DNS records.
        VALIDATED: Issued and usable (terminal).
        FAILED: The engine gave up on the request (terminal, fatal).
    """

    REQUESTED = "requested"
    PENDING_VALIDATION = "pending_validation"
    VALIDATED = "validated"
    FAILED = "failed"


class DnsValidationRecord(BaseModel):
    """DNS record an operator must publish to prove domain ownership."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    record_type: str = Field(default="CNAME")
    value: str = Field(..., min_length=1)


class ListenerProtocol(str, Enum):
    """Public listener protocol."""

    HTTP = "HTTP"
    HTTPS = "HTTPS"


class Listener(BaseModel):
    """Public load balancer listener.

    An HTTPS listener always carries a certificate; an HTTP listener never does.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    protocol: ListenerProtocol
    port: int = Field(..., ge=1, le=65535)
    certificate_id: str | None = None

    @model_validator(mode="after")
    def validate_certificate_binding(self) -> Self:
        """Ensure the certificate matches the protocol."""
        if self.protocol == ListenerProtocol.HTTPS and self.certificate_id is None:
            raise ValueError("HTTPS listener requires a certificate")
        if self.protocol == ListenerProtocol.HTTP and self.certificate_id is not None:
            raise ValueError("HTTP listener cannot bind a certificate")
        return self

    @classmethod
    def plaintext(cls) -> Listener:
        """HTTP listener on port 80."""
        return cls(protocol=ListenerProtocol.HTTP, port=HTTP_PORT)

    @classmethod
    def tls(cls, certificate_id: str) -> Listener:
        """HTTPS listener on port 443 terminating TLS with the given certificate."""
        return cls(protocol=ListenerProtocol.HTTPS, port=HTTPS_PORT, certificate_id=certificate_id)

    @property
    def is_tls(self) -> bool:
        """Whether the listener terminates TLS."""
        return self.protocol == ListenerProtocol.HTTPS


class AssemblyOutput(BaseModel):
    """Externally visible value published by an assembly."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    value: str
    description: str = ""


class AssemblyStatus(str, Enum):
    """Completion state of an assembly.

    Values:
        COMPLETE: Every resource is usable and the endpoint is published.
        PENDING_VALIDATION: Blocked on an operator publishing DNS records.
    """

    COMPLETE = "complete"
    PENDING_VALIDATION = "pending_validation"
