"""Unit tests for TopologyAssembler and Topology."""

from __future__ import annotations

import pytest
from vaultstack_core.assembler import (
    CONSTRUCTION_PLAN,
    ConstructionStep,
    Topology,
    TopologyAssembler,
    validate_plan,
)
from vaultstack_core.components.certificate import NoCertificate, PendingCertificate
from vaultstack_core.config import AssemblySettings
from vaultstack_core.engine import InMemoryEngine
from vaultstack_core.errors import (
    CertificateValidationError,
    ConfigurationError,
    DuplicateComponentError,
    MissingDependencyError,
    ProvisioningError,
)
from vaultstack_core.models import AssemblyStatus, CertificateStatus, Port, ResourceKind

DOMAIN = "vault.example.com"


def _assemble(settings: AssemblySettings, engine: InMemoryEngine | None = None) -> Topology:
    return TopologyAssembler(engine or InMemoryEngine(), settings).assemble()


class TestConstructionPlan:
    """Tests for plan validation."""

    def test_default_plan_is_valid(self) -> None:
        validate_plan(CONSTRUCTION_PLAN)

    def test_independent_steps_may_be_reordered(self) -> None:
        by_name = {step.name: step for step in CONSTRUCTION_PLAN}
        order = ("certificate", "registry", "network", "volume", "cluster", "service")
        plan = [by_name[name] for name in order]
        validate_plan(plan)

    @pytest.mark.requirement("001-FR-005")
    def test_step_before_dependency_rejected(self) -> None:
        plan = [step for step in CONSTRUCTION_PLAN if step.name != "network"]
        plan.insert(3, ConstructionStep(name="network"))

        with pytest.raises(MissingDependencyError) as exc_info:
            validate_plan(plan)

        assert exc_info.value.dependency == "network"
        assert exc_info.value.component == "cluster"

    @pytest.mark.requirement("001-FR-005")
    def test_undeclared_dependency_still_enforced(self) -> None:
        """A custom step cannot drop a dependency the component needs."""
        plan = [
            ConstructionStep(name="service"),
            *[step for step in CONSTRUCTION_PLAN if step.name != "service"],
        ]
        with pytest.raises(MissingDependencyError):
            validate_plan(plan)

    def test_duplicate_step_rejected(self) -> None:
        with pytest.raises(DuplicateComponentError):
            validate_plan([*CONSTRUCTION_PLAN, ConstructionStep(name="network")])

    def test_unknown_step_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown construction step"):
            validate_plan([ConstructionStep(name="database"), *CONSTRUCTION_PLAN])

    def test_service_requires_certificate_step(self) -> None:
        plan = [step for step in CONSTRUCTION_PLAN if step.name != "certificate"]
        plan = [
            step
            if step.name != "service"
            else ConstructionStep(name="service", depends_on=("cluster", "registry", "volume"))
            for step in plan
        ]
        with pytest.raises(MissingDependencyError):
            validate_plan(plan)

    def test_truncated_plan_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="missing steps: service"):
            validate_plan(CONSTRUCTION_PLAN[:-1])

    @pytest.mark.requirement("001-FR-005")
    def test_misordered_plan_creates_nothing(self, plaintext_settings: AssemblySettings) -> None:
        engine = InMemoryEngine()
        plan = list(reversed(CONSTRUCTION_PLAN))

        with pytest.raises(MissingDependencyError):
            TopologyAssembler(engine, plaintext_settings, plan=plan).assemble()

        assert engine.handles == []


class TestPlaintextAssembly:
    """Assembly without a domain name."""

    @pytest.fixture
    def topology(self, plaintext_settings: AssemblySettings, engine: InMemoryEngine) -> Topology:
        return _assemble(plaintext_settings, engine)

    @pytest.mark.requirement("001-FR-003")
    def test_no_certificate(self, topology: Topology, engine: InMemoryEngine) -> None:
        assert topology.certificate is None
        assert topology.certificate_binding == NoCertificate()
        assert engine.handles_of(ResourceKind.CERTIFICATE) == []

    @pytest.mark.requirement("001-FR-006")
    def test_plaintext_listener(self, topology: Topology) -> None:
        assert topology.service.listener.is_tls is False
        assert topology.service.listener.port == 80

    def test_complete_with_endpoint(self, topology: Topology) -> None:
        assert topology.status == AssemblyStatus.COMPLETE
        assert topology.endpoint_address == topology.service.dns_name
        assert topology.outputs["loadbalancer-dns-name"].value == topology.service.dns_name

    def test_every_resource_tagged(self, topology: Topology) -> None:
        for request, _ in topology.assembly.resources:
            assert request.tags == {"x:application": "vaultwarden", "x:stack": "vaultwarden"}

    def test_creation_order_respects_dependencies(self, topology: Topology) -> None:
        created: set[str] = set()
        for request, handle in topology.assembly.resources:
            assert set(request.depends_on) <= created
            created.add(handle.logical_id)

    def test_configuration_reaches_container(
        self, topology: Topology, engine: InMemoryEngine
    ) -> None:
        request = engine.request_for("vaultwarden/service")
        assert request.properties["task"]["container"]["environment"] == {
            "SIGNUPS_ALLOWED": "false"
        }

    @pytest.mark.requirement("001-FR-004")
    def test_mount_is_bidirectional(self, topology: Topology) -> None:
        graph = topology.assembly.authorization
        graph.require_bidirectional(topology.service.path, topology.volume.path, Port.tcp(2049))

    def test_wait_returns_immediately(self, topology: Topology) -> None:
        def fail_sleep(seconds: float) -> None:
            raise AssertionError("should not sleep")

        assert topology.wait_until_complete(sleep=fail_sleep) == topology.service.dns_name


class TestTlsAssembly:
    """Assembly with a domain name."""

    @pytest.fixture
    def topology(self, tls_settings: AssemblySettings, engine: InMemoryEngine) -> Topology:
        return _assemble(tls_settings, engine)

    @pytest.mark.requirement("001-FR-006")
    def test_one_pending_certificate(self, topology: Topology, engine: InMemoryEngine) -> None:
        assert len(engine.handles_of(ResourceKind.CERTIFICATE)) == 1
        assert topology.certificate is not None
        assert topology.certificate.status == CertificateStatus.PENDING_VALIDATION
        assert isinstance(topology.certificate_binding, PendingCertificate)

    @pytest.mark.requirement("001-FR-006")
    def test_tls_listener(self, topology: Topology) -> None:
        assert topology.service.listener.is_tls
        assert topology.service.listener.port == 443

    def test_pending_withholds_endpoint(self, topology: Topology) -> None:
        assert topology.status == AssemblyStatus.PENDING_VALIDATION
        assert topology.endpoint_address is None
        assert topology.outputs == {}
        assert len(topology.pending_validation_records) == 1

    def test_refresh_after_validation(self, topology: Topology, engine: InMemoryEngine) -> None:
        assert topology.refresh() == AssemblyStatus.PENDING_VALIDATION
        engine.validate_certificate("vaultwarden/certificate")

        assert topology.refresh() == AssemblyStatus.COMPLETE
        assert topology.endpoint_address == topology.service.dns_name
        assert "loadbalancer-dns-name" in topology.outputs
        assert topology.pending_validation_records == []

    def test_wait_until_complete(self, topology: Topology, engine: InMemoryEngine) -> None:
        sleeps: list[float] = []

        def operator(seconds: float) -> None:
            sleeps.append(seconds)
            engine.validate_certificate("vaultwarden/certificate")

        endpoint = topology.wait_until_complete(poll_seconds=10, sleep=operator)

        assert endpoint == topology.service.dns_name
        assert sleeps == [10]
        assert topology.is_complete

    def test_failed_certificate(self, topology: Topology, engine: InMemoryEngine) -> None:
        engine.fail_certificate("vaultwarden/certificate")
        with pytest.raises(CertificateValidationError):
            topology.refresh()


class TestAssemblyFailures:
    """Engine failures stop the assembly."""

    def test_failed_image_copy_stops_before_service(
        self, plaintext_settings: AssemblySettings
    ) -> None:
        engine = InMemoryEngine(failures={"image_copy": LookupError("manifest unknown")})

        with pytest.raises(ProvisioningError) as exc_info:
            _assemble(plaintext_settings, engine)

        assert exc_info.value.resource_kind == "image_copy"
        assert engine.handles_of(ResourceKind.SERVICE) == []
        assert engine.handles_of(ResourceKind.CLUSTER) == []

    def test_zone_count_from_settings(self) -> None:
        topology = _assemble(AssemblySettings(max_azs=3))
        assert len(topology.network.isolated_subnets) == 3

    def test_deterministic(self, tls_settings: AssemblySettings) -> None:
        first = _assemble(tls_settings).to_manifest()
        second = _assemble(tls_settings).to_manifest()
        assert first == second
