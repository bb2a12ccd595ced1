"""Optional TLS certificate for the public endpoint.

A certificate is requested only when a domain name is supplied. It is
validated over DNS: an operator has to publish the records the engine hands
out, and until that happens the assembly stays incomplete. There is no
timeout and no fallback to plaintext.

Without a domain the branch is absent and the listener is plaintext. That is
allowed but always logged as a warning.

The service consumes the branch as a tagged variant, CertificateBinding:
- NoCertificate: no domain supplied
- PendingCertificate: requested, waiting for DNS validation
- ValidatedCertificate: issued and usable
"""

from __future__ import annotations

from typing import Annotated, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Discriminator, Field

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.errors import (
    CertificateValidationError,
    ConfigurationError,
    InvalidStateTransition,
)
from vaultstack_core.models import (
    CertificateStatus,
    DnsValidationRecord,
    ResourceHandle,
    ResourceKind,
)

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS: dict[CertificateStatus, set[CertificateStatus]] = {
    CertificateStatus.REQUESTED: {
        CertificateStatus.PENDING_VALIDATION,
        CertificateStatus.VALIDATED,
        CertificateStatus.FAILED,
    },
    CertificateStatus.PENDING_VALIDATION: {
        CertificateStatus.VALIDATED,
        CertificateStatus.FAILED,
    },
}


class NoCertificate(BaseModel):
    """No domain supplied; the listener is plaintext."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: Literal["none"] = Field(default="none", description="Binding discriminator")


class PendingCertificate(BaseModel):
    """Certificate requested and waiting for DNS validation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: Literal["pending"] = Field(default="pending", description="Binding discriminator")
    domain_name: str
    certificate: ResourceHandle
    validation_records: tuple[DnsValidationRecord, ...] = ()


class ValidatedCertificate(BaseModel):
    """Certificate issued and usable by the listener."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: Literal["validated"] = Field(default="validated", description="Binding discriminator")
    domain_name: str
    certificate: ResourceHandle


CertificateBinding = Annotated[
    NoCertificate | PendingCertificate | ValidatedCertificate,
    Discriminator("state"),
]
"""Certificate branch as seen by the service, discriminated on "state"."""


class TlsCertificate(Component):
    """Certificate request for a domain, validated over DNS.

    Lifecycle: REQUESTED -> PENDING_VALIDATION -> VALIDATED (terminal).
    The engine may also report FAILED, which is fatal.

    Attributes:
        domain_name: Domain the certificate covers.
        status: Last known status.
        validation_records: DNS records the operator must publish.

    Example:
        >>> cert = TlsCertificate(assembly, "certificate", domain_name="vault.example.com")
        >>> cert.status
        <CertificateStatus.PENDING_VALIDATION: 'pending_validation'>
    """

    def __init__(self, assembly: Assembly, component_id: str, *, domain_name: str) -> None:
        if not domain_name:
            raise ConfigurationError(
                "A certificate requires a domain name", field_path="domain_name"
            )
        super().__init__(assembly, component_id)
        self.domain_name = domain_name
        self.status = CertificateStatus.REQUESTED
        self.validation_records: tuple[DnsValidationRecord, ...] = ()

        handle = assembly.provision(
            ResourceKind.CERTIFICATE,
            self.path,
            {"domain_name": domain_name, "validation_method": "DNS"},
        )
        self._publish(handle)
        self.refresh()

    @property
    def is_validated(self) -> bool:
        """Whether the certificate can be used."""
        return self.status == CertificateStatus.VALIDATED

    def transition(self, new_status: CertificateStatus) -> None:
        """Move to a new status.

        Raises:
            InvalidStateTransition: If the move is not allowed.
        """
        current = self.status
        if current == new_status:
            return

        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if new_status not in allowed:
            raise InvalidStateTransition(current.value, new_status.value)

        self.status = new_status
        self._log.info(
            "certificate_status_changed",
            previous=current.value,
            status=new_status.value,
            domain_name=self.domain_name,
        )

    def refresh(self) -> CertificateStatus:
        """Read the status from the engine and apply it.

        Returns:
            The current status.

        Raises:
            CertificateValidationError: If the engine reports FAILED.
            ProvisioningError: If the engine cannot be queried.
        """
        engine = self.assembly.engine
        kind = ResourceKind.CERTIFICATE.value
        status = self.assembly.engine_call(
            "certificate_status", kind, self.path, lambda: engine.certificate_status(self.handle)
        )
        if status == CertificateStatus.PENDING_VALIDATION and not self.validation_records:
            records = self.assembly.engine_call(
                "validation_records",
                kind,
                self.path,
                lambda: engine.validation_records(self.handle),
            )
            self.validation_records = tuple(records)

        self.transition(status)
        if status == CertificateStatus.FAILED:
            raise CertificateValidationError(
                self.domain_name,
                internal_details=f"engine reported FAILED for {self.handle.physical_id}",
            )
        return status

    @property
    def binding(self) -> PendingCertificate | ValidatedCertificate:
        """Snapshot of this certificate as a binding variant."""
        if self.is_validated:
            return ValidatedCertificate(domain_name=self.domain_name, certificate=self.handle)
        return PendingCertificate(
            domain_name=self.domain_name,
            certificate=self.handle,
            validation_records=self.validation_records,
        )


def request_certificate(
    assembly: Assembly,
    component_id: str,
    domain_name: str | None,
) -> TlsCertificate | None:
    """Request a certificate if and only if a domain name is supplied.

    Args:
        assembly: Owning assembly.
        component_id: Id for the certificate component.
        domain_name: Domain to cover; None or empty skips the branch.

    Returns:
        The certificate component, or None when no domain was supplied.
    """
    if not domain_name:
        logger.warning(
            "plaintext_listener",
            reason="no domain name supplied",
            component=assembly.path(component_id),
        )
        return None
    return TlsCertificate(assembly, component_id, domain_name=domain_name)


def certificate_binding(certificate: TlsCertificate | None) -> CertificateBinding:
    """Binding variant for an optional certificate component."""
    if certificate is None:
        return NoCertificate()
    return certificate.binding
