"""In-memory provisioning engine.

Records every request instead of calling a cloud API. Physical ids and
attributes are derived deterministically from account, region and logical id,
so synthesizing the same inputs twice yields the same manifest.

Used by ``vaultstack synth`` and by the test suite.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping

import structlog

from vaultstack_core.models import (
    AccessGrant,
    AuthorizationRule,
    CertificateStatus,
    DnsValidationRecord,
    ResourceHandle,
    ResourceKind,
    ResourceRequest,
)

logger = structlog.get_logger(__name__)

DEFAULT_ACCOUNT = "123456789012"
DEFAULT_REGION = "eu-central-1"


class InMemoryEngine:
    """Deterministic recording engine.

    Idempotent by logical id: creating an existing logical id returns the
    existing handle. Certificates start in PENDING_VALIDATION and only move on
    when validate_certificate() (an operator publishing DNS records) or
    fail_certificate() is called.

    Args:
        account: Account id reported to the core.
        region: Region reported to the core.
        failures: Exceptions to raise on create, keyed by logical id or by
            resource kind value (e.g., ``{"image_copy": LookupError(...)}``).

    Example:
        >>> engine = InMemoryEngine(failures={"filesystem": RuntimeError("quota")})
    """

    def __init__(
        self,
        account: str = DEFAULT_ACCOUNT,
        region: str = DEFAULT_REGION,
        *,
        failures: Mapping[str, Exception] | None = None,
    ) -> None:
        self._account = account
        self._region = region
        self._failures = dict(failures or {})
        self._requests: dict[str, ResourceRequest] = {}
        self._handles: dict[str, ResourceHandle] = {}
        self._certificates: dict[str, CertificateStatus] = {}
        self.rules: list[AuthorizationRule] = []
        self.grants: list[AccessGrant] = []
        self._log = logger.bind(engine="memory", account=account, region=region)

    @property
    def account(self) -> str:
        return self._account

    @property
    def region(self) -> str:
        return self._region

    @property
    def handles(self) -> list[ResourceHandle]:
        """Handles in creation order."""
        return list(self._handles.values())

    @property
    def requests(self) -> list[ResourceRequest]:
        """Latest request per logical id, in creation order."""
        return list(self._requests.values())

    def handles_of(self, kind: ResourceKind) -> list[ResourceHandle]:
        """Handles of one kind, in creation order."""
        return [h for h in self._handles.values() if h.kind == kind]

    def request_for(self, logical_id: str) -> ResourceRequest:
        """Request recorded for a logical id."""
        return self._requests[logical_id]

    # ------------------------------------------------------------------
    # ProvisioningEngine
    # ------------------------------------------------------------------

    def create(self, request: ResourceRequest) -> ResourceHandle:
        failure = self._failures.get(request.logical_id) or self._failures.get(request.kind.value)
        if failure is not None:
            self._log.warning("injected_failure", logical_id=request.logical_id)
            raise failure

        unknown = [dep for dep in request.depends_on if dep not in self._handles]
        if unknown:
            raise LookupError(
                f"{request.logical_id} depends on unknown resources: {', '.join(unknown)}"
            )

        existing = self._handles.get(request.logical_id)
        if existing is not None:
            if existing.kind != request.kind:
                raise ValueError(
                    f"{request.logical_id} already exists as {existing.kind.value}"
                )
            self._log.debug("resource_adopted", logical_id=request.logical_id)
            self._requests[request.logical_id] = request
            return existing

        handle = ResourceHandle(
            kind=request.kind,
            logical_id=request.logical_id,
            physical_id=self._physical_id(request),
            attributes=self._attributes(request),
        )
        self._requests[request.logical_id] = request
        self._handles[request.logical_id] = handle
        if request.kind == ResourceKind.CERTIFICATE:
            self._certificates[request.logical_id] = CertificateStatus.PENDING_VALIDATION

        self._log.debug(
            "resource_created",
            kind=request.kind.value,
            logical_id=request.logical_id,
            physical_id=handle.physical_id,
        )
        return handle

    def authorize(self, rule: AuthorizationRule) -> None:
        if rule not in self.rules:
            self.rules.append(rule)

    def grant(self, grant: AccessGrant) -> None:
        if grant not in self.grants:
            self.grants.append(grant)

    def certificate_status(self, certificate: ResourceHandle) -> CertificateStatus:
        return self._certificates[certificate.logical_id]

    def validation_records(self, certificate: ResourceHandle) -> list[DnsValidationRecord]:
        domain = certificate.attributes["domain_name"]
        token = self._digest(f"{certificate.physical_id}/{domain}", 32)
        return [
            DnsValidationRecord(
                name=f"_{token}.{domain}.",
                value=f"_{self._digest(token, 32)}.acm-validations.aws.",
            )
        ]

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def validate_certificate(self, logical_id: str) -> None:
        """Mark a certificate validated (its DNS records were published)."""
        self._certificates[logical_id] = CertificateStatus.VALIDATED
        self._log.info("certificate_validated", logical_id=logical_id)

    def fail_certificate(self, logical_id: str) -> None:
        """Mark a certificate request failed."""
        self._certificates[logical_id] = CertificateStatus.FAILED

    # ------------------------------------------------------------------
    # Deterministic identifiers
    # ------------------------------------------------------------------

    def _digest(self, value: str, length: int) -> str:
        return hashlib.sha256(f"{self._account}/{self._region}/{value}".encode()).hexdigest()[
            :length
        ]

    def _physical_id(self, request: ResourceRequest) -> str:
        digest = self._digest(request.logical_id, 17)
        name = request.logical_id.replace("/", "-")

        if request.kind == ResourceKind.REPOSITORY:
            return str(request.properties.get("repository_name", name))
        if request.kind == ResourceKind.IMAGE_COPY:
            return str(request.properties.get("destination", name))

        formats: dict[ResourceKind, str] = {
            ResourceKind.NETWORK: "vpc-{digest}",
            ResourceKind.SUBNET: "subnet-{digest}",
            ResourceKind.SERVICE_ENDPOINT: "vpce-{digest}",
            ResourceKind.FILESYSTEM: "fs-{short}",
            ResourceKind.CERTIFICATE: "arn:aws:acm:{region}:{account}:certificate/{digest}",
            ResourceKind.ROLE: "arn:aws:iam::{account}:role/{name}",
            ResourceKind.CLUSTER: "arn:aws:ecs:{region}:{account}:cluster/{name}",
            ResourceKind.SERVICE: "arn:aws:ecs:{region}:{account}:service/{name}",
            ResourceKind.LOAD_BALANCER: (
                "arn:aws:elasticloadbalancing:{region}:{account}"
                ":loadbalancer/app/{name}/{digest}"
            ),
        }
        return formats[request.kind].format(
            digest=digest,
            short=digest[:8],
            name=name[:32],
            region=self._region,
            account=self._account,
        )

    def _attributes(self, request: ResourceRequest) -> dict[str, str]:
        if request.kind == ResourceKind.LOAD_BALANCER:
            name = request.logical_id.replace("/", "-")[:20]
            return {
                "dns_name": f"{name}-{self._digest(request.logical_id, 10)}"
                f".{self._region}.elb.amazonaws.com"
            }
        if request.kind == ResourceKind.CERTIFICATE:
            return {"domain_name": str(request.properties["domain_name"])}
        if request.kind == ResourceKind.REPOSITORY:
            repository = request.properties.get("repository_name", "")
            return {
                "repository_uri": f"{self._account}.dkr.ecr.{self._region}.amazonaws.com/"
                f"{repository}"
            }
        return {}
