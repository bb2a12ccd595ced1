"""Provisioning engine protocol.

The core never talks to a cloud SDK directly. Every create, authorization
and permission call goes through an object implementing ProvisioningEngine.
Calls block until they succeed (returning a handle) or raise. Retries and
create-or-no-op idempotence are the engine's responsibility.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from vaultstack_core.models import (
    AccessGrant,
    AuthorizationRule,
    CertificateStatus,
    DnsValidationRecord,
    ResourceHandle,
    ResourceRequest,
)


@runtime_checkable
class ProvisioningEngine(Protocol):
    """Interface to the cloud control plane.

    Attributes:
        account: Account id resources are created in.
        region: Region resources are created in.
    """

    @property
    def account(self) -> str:
        """Account id resources are created in."""
        ...

    @property
    def region(self) -> str:
        """Region resources are created in."""
        ...

    def create(self, request: ResourceRequest) -> ResourceHandle:
        """Create (or adopt, if it already exists) a resource.

        Raises:
            Exception: Any engine failure; the core wraps it in ProvisioningError.
        """
        ...

    def authorize(self, rule: AuthorizationRule) -> None:
        """Open network reachability for one directed rule."""
        ...

    def grant(self, grant: AccessGrant) -> None:
        """Attach an identity permission."""
        ...

    def certificate_status(self, certificate: ResourceHandle) -> CertificateStatus:
        """Current status of a requested certificate."""
        ...

    def validation_records(self, certificate: ResourceHandle) -> list[DnsValidationRecord]:
        """DNS records that prove ownership of the certificate's domain."""
        ...
