"""Topology assembler.

Builds the complete Vaultwarden topology from validated settings by walking
an explicit construction plan. Each step names the steps it depends on; the
plan is checked before the first resource is requested, so a misordered plan
fails with MissingDependencyError and leaves the engine untouched.

Default plan, dependencies in parentheses:

    network, registry, cluster (network), certificate, volume (network),
    service (cluster, registry, volume, certificate)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from vaultstack_core.components.base import Assembly
from vaultstack_core.components.certificate import (
    CertificateBinding,
    TlsCertificate,
    certificate_binding,
    request_certificate,
)
from vaultstack_core.components.cluster import Cluster
from vaultstack_core.components.network import NetworkTopology
from vaultstack_core.components.registry import RegistryMirror
from vaultstack_core.components.service import WorkloadService
from vaultstack_core.components.volume import PersistentVolume
from vaultstack_core.config import AssemblySettings
from vaultstack_core.constants import (
    APPLICATION_TAG_KEY,
    CLASSIFICATION_LABEL,
    DEFAULT_VALIDATION_POLL_SECONDS,
    LOADBALANCER_OUTPUT_NAME,
    STACK_TAG_KEY,
)
from vaultstack_core.engine import ProvisioningEngine
from vaultstack_core.errors import (
    ConfigurationError,
    DuplicateComponentError,
    MissingDependencyError,
)
from vaultstack_core.manifest import ManifestResource, TopologyManifest
from vaultstack_core.models import AssemblyOutput, AssemblyStatus, DnsValidationRecord
from vaultstack_core.observability import span
from vaultstack_core.validation import CertificateValidationGate

logger = structlog.get_logger(__name__)


class ConstructionStep(BaseModel):
    """One step of a construction plan.

    Attributes:
        name: Step name, also the component id.
        depends_on: Steps that must have completed first.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    depends_on: tuple[str, ...] = Field(default=())


CONSTRUCTION_PLAN: tuple[ConstructionStep, ...] = (
    ConstructionStep(name="network"),
    ConstructionStep(name="registry"),
    ConstructionStep(name="cluster", depends_on=("network",)),
    ConstructionStep(name="certificate"),
    ConstructionStep(name="volume", depends_on=("network",)),
    ConstructionStep(
        name="service",
        depends_on=("cluster", "registry", "volume", "certificate"),
    ),
)

# Dependencies each step needs regardless of what a custom plan declares
STEP_REQUIREMENTS: dict[str, tuple[str, ...]] = {
    step.name: step.depends_on for step in CONSTRUCTION_PLAN
}


def classification_tags() -> dict[str, str]:
    """Application-level and stack-level classification tags."""
    return {
        APPLICATION_TAG_KEY: CLASSIFICATION_LABEL,
        STACK_TAG_KEY: CLASSIFICATION_LABEL,
    }


def validate_plan(plan: Sequence[ConstructionStep]) -> None:
    """Check that a plan builds every step exactly once, dependencies first.

    Raises:
        ConfigurationError: If a step is unknown or missing.
        DuplicateComponentError: If a step appears twice.
        MissingDependencyError: If a step precedes one of its dependencies.
    """
    seen: set[str] = set()
    for step in plan:
        if step.name not in STEP_REQUIREMENTS:
            raise ConfigurationError(
                f"Unknown construction step '{step.name}'", field_path="plan"
            )
        if step.name in seen:
            raise DuplicateComponentError(step.name)
        for dependency in (*STEP_REQUIREMENTS[step.name], *step.depends_on):
            if dependency not in seen:
                raise MissingDependencyError(dependency, component=step.name)
        seen.add(step.name)

    missing = [name for name in STEP_REQUIREMENTS if name not in seen]
    if missing:
        raise ConfigurationError(
            f"Construction plan is missing steps: {', '.join(missing)}",
            field_path="plan",
        )


class Topology:
    """Result of one assembly.

    The topology is COMPLETE once every resource is usable. With a domain it
    stays PENDING_VALIDATION until the certificate validates; the endpoint is
    withheld until then.

    Attributes:
        assembly: Assembly the components were built in.
        settings: Settings the topology was built from.
        certificate: Certificate component, or None without a domain.
    """

    def __init__(
        self,
        assembly: Assembly,
        settings: AssemblySettings,
        *,
        network: NetworkTopology,
        registry: RegistryMirror,
        cluster: Cluster,
        certificate: TlsCertificate | None,
        volume: PersistentVolume,
        service: WorkloadService,
    ) -> None:
        self.assembly = assembly
        self.settings = settings
        self.network = network
        self.registry = registry
        self.cluster = cluster
        self.certificate = certificate
        self.volume = volume
        self.service = service
        self._log = logger.bind(assembly=assembly.name)

    @property
    def tags(self) -> dict[str, str]:
        return dict(self.assembly.tags)

    @property
    def status(self) -> AssemblyStatus:
        if self.certificate is not None and not self.certificate.is_validated:
            return AssemblyStatus.PENDING_VALIDATION
        return AssemblyStatus.COMPLETE

    @property
    def is_complete(self) -> bool:
        return self.status == AssemblyStatus.COMPLETE

    @property
    def certificate_binding(self) -> CertificateBinding:
        """Current state of the certificate branch."""
        return certificate_binding(self.certificate)

    @property
    def pending_validation_records(self) -> list[DnsValidationRecord]:
        """DNS records an operator still has to publish."""
        if self.certificate is None or self.certificate.is_validated:
            return []
        return list(self.certificate.validation_records)

    @property
    def endpoint_address(self) -> str | None:
        """Public endpoint, or None while the assembly is incomplete."""
        if not self.is_complete:
            return None
        return self.service.dns_name

    @property
    def outputs(self) -> dict[str, AssemblyOutput]:
        return self.assembly.outputs

    def refresh(self) -> AssemblyStatus:
        """Re-read the certificate status and publish the endpoint once complete.

        Raises:
            CertificateValidationError: If the engine reports the certificate failed.
        """
        if self.certificate is not None:
            self.certificate.refresh()
        status = self.status
        if status == AssemblyStatus.COMPLETE:
            self._publish_endpoint()
        return status

    def wait_until_complete(
        self,
        *,
        poll_seconds: float = DEFAULT_VALIDATION_POLL_SECONDS,
        sleep: Callable[[float], None] | None = None,
    ) -> str:
        """Block until the certificate is validated, then return the endpoint.

        Without a certificate this returns immediately. There is no timeout.

        Raises:
            CertificateValidationError: If the engine reports the certificate failed.
        """
        if self.certificate is not None:
            kwargs: dict[str, Any] = {"poll_seconds": poll_seconds}
            if sleep is not None:
                kwargs["sleep"] = sleep
            CertificateValidationGate(self.certificate, **kwargs).wait()
        self._publish_endpoint()
        return self.service.dns_name

    def _publish_endpoint(self) -> None:
        if LOADBALANCER_OUTPUT_NAME not in self.assembly.outputs:
            self.service.publish_endpoint()
            self._log.info("topology_complete", endpoint=self.service.dns_name)

    def to_manifest(self) -> TopologyManifest:
        """Snapshot of the topology as a serializable manifest."""
        engine = self.assembly.engine
        return TopologyManifest(
            account=engine.account,
            region=engine.region,
            status=self.status,
            endpoint=self.endpoint_address,
            tags=self.tags,
            resources=[
                ManifestResource.from_request(request, handle)
                for request, handle in self.assembly.resources
            ],
            authorization=list(self.assembly.authorization.rules),
            grants=list(self.assembly.grants),
            outputs=list(self.assembly.outputs.values()),
            certificate=self.certificate_binding,
            pending_validation_records=self.pending_validation_records,
        )


class TopologyAssembler:
    """Builds a Topology by walking a construction plan.

    Args:
        engine: Provisioning engine.
        settings: Validated assembly settings.
        plan: Construction plan; defaults to CONSTRUCTION_PLAN.
        name: Assembly name, the root of every logical id.

    Example:
        >>> settings = AssemblySettings.from_environment(os.environ)
        >>> topology = TopologyAssembler(InMemoryEngine(), settings).assemble()
        >>> topology.status
        <AssemblyStatus.COMPLETE: 'complete'>
    """

    def __init__(
        self,
        engine: ProvisioningEngine,
        settings: AssemblySettings,
        *,
        plan: Sequence[ConstructionStep] = CONSTRUCTION_PLAN,
        name: str = CLASSIFICATION_LABEL,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self.plan = tuple(plan)
        self.name = name
        self._log = logger.bind(assembly=name)
        self._builders: dict[str, Callable[[Assembly, dict[str, Any]], Any]] = {
            "network": self._build_network,
            "registry": self._build_registry,
            "cluster": self._build_cluster,
            "certificate": self._build_certificate,
            "volume": self._build_volume,
            "service": self._build_service,
        }

    def assemble(self) -> Topology:
        """Provision every component in plan order.

        Returns:
            The assembled topology.

        Raises:
            MissingDependencyError: If the plan is misordered.
            ConfigurationError: If the plan is incomplete or a setting is invalid.
            ProvisioningError: If the engine fails; the assembly stops there.
            CertificateValidationError: If the engine rejects the certificate.
        """
        validate_plan(self.plan)
        assembly = Assembly(self.engine, name=self.name, tags=classification_tags())
        built: dict[str, Any] = {}

        with span(
            "assemble_topology",
            attributes={
                "account": self.engine.account,
                "region": self.engine.region,
                "tls_enabled": self.settings.tls_enabled,
            },
        ):
            for step in self.plan:
                self._log.debug("construction_step", step=step.name)
                built[step.name] = self._builders[step.name](assembly, built)

        topology = Topology(assembly, self.settings, **built)
        if topology.is_complete:
            topology.refresh()
        else:
            self._log.warning(
                "certificate_validation_required",
                domain_name=self.settings.domain_name,
                records=[r.name for r in topology.pending_validation_records],
            )
        return topology

    def _build_network(self, assembly: Assembly, built: dict[str, Any]) -> NetworkTopology:
        return NetworkTopology(assembly, "network", max_azs=self.settings.max_azs)

    def _build_registry(self, assembly: Assembly, built: dict[str, Any]) -> RegistryMirror:
        return RegistryMirror(assembly, "registry", version=self.settings.base_version)

    def _build_cluster(self, assembly: Assembly, built: dict[str, Any]) -> Cluster:
        return Cluster(assembly, "cluster", network=built["network"])

    def _build_certificate(
        self, assembly: Assembly, built: dict[str, Any]
    ) -> TlsCertificate | None:
        return request_certificate(assembly, "certificate", self.settings.domain_name)

    def _build_volume(self, assembly: Assembly, built: dict[str, Any]) -> PersistentVolume:
        return PersistentVolume(assembly, "volume", network=built["network"])

    def _build_service(self, assembly: Assembly, built: dict[str, Any]) -> WorkloadService:
        return WorkloadService(
            assembly,
            "service",
            cluster=built["cluster"],
            registry=built["registry"],
            volume=built["volume"],
            certificate=certificate_binding(built["certificate"]),
            configuration=self.settings.configuration,
        )
