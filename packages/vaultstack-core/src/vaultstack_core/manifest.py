"""Topology manifest: the serialized result of one assembly.

The manifest records what was requested from the engine, in creation order,
together with the authorization rules, identity grants, outputs and the state
of the certificate branch. It is deterministic for a deterministic engine, so
two synthesis runs over the same inputs produce identical files.

Version History:
- v1.0.0: Initial release
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from vaultstack_core.components.certificate import CertificateBinding
from vaultstack_core.models import (
    AccessGrant,
    AssemblyOutput,
    AssemblyStatus,
    AuthorizationRule,
    DnsValidationRecord,
    ResourceHandle,
    ResourceKind,
    ResourceRequest,
)

ManifestFormat = Literal["json", "yaml"]

MANIFEST_VERSION = "1.0.0"


class ManifestResource(BaseModel):
    """One provisioned resource as it appears in the manifest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ResourceKind
    logical_id: str
    physical_id: str
    depends_on: tuple[str, ...] = ()
    properties: dict[str, Any] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, request: ResourceRequest, handle: ResourceHandle) -> ManifestResource:
        """Combine a request with the handle the engine returned for it."""
        return cls(
            kind=request.kind,
            logical_id=request.logical_id,
            physical_id=handle.physical_id,
            depends_on=request.depends_on,
            properties=request.properties,
            attributes=handle.attributes,
            tags=request.tags,
        )


class TopologyManifest(BaseModel):
    """Serialized topology.

    Attributes:
        version: Manifest format version.
        account: Account the topology was assembled for.
        region: Region the topology was assembled for.
        status: COMPLETE or PENDING_VALIDATION.
        endpoint: Public endpoint; None until the assembly is complete.
        tags: Tags applied to every resource.
        resources: Resources in creation order.
        authorization: Authorization rules in the order they were opened.
        grants: Identity permissions.
        outputs: Published outputs.
        certificate: State of the certificate branch.
        pending_validation_records: DNS records still awaiting an operator.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = Field(default=MANIFEST_VERSION, description="Manifest format version")
    account: str
    region: str
    status: AssemblyStatus
    endpoint: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    resources: list[ManifestResource] = Field(default_factory=list)
    authorization: list[AuthorizationRule] = Field(default_factory=list)
    grants: list[AccessGrant] = Field(default_factory=list)
    outputs: list[AssemblyOutput] = Field(default_factory=list)
    certificate: CertificateBinding
    pending_validation_records: list[DnsValidationRecord] = Field(default_factory=list)

    def resources_of(self, kind: ResourceKind) -> list[ManifestResource]:
        """Resources of one kind, in creation order."""
        return [r for r in self.resources if r.kind == kind]

    def dumps(self, output_format: ManifestFormat = "json") -> str:
        """Serialize to JSON or YAML.

        Raises:
            ValueError: If the format is unknown.
        """
        data = self.model_dump(mode="json")
        if output_format == "json":
            return json.dumps(data, indent=2)
        if output_format == "yaml":
            return yaml.safe_dump(data, sort_keys=False)
        raise ValueError(f"Unknown manifest format: {output_format}")

    def write(self, path: Path, output_format: ManifestFormat = "json") -> Path:
        """Write the manifest, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(output_format))
        return path
