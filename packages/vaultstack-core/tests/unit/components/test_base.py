"""Unit tests for Assembly and the Component base class."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from structlog.testing import capture_logs
from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.engine import InMemoryEngine
from vaultstack_core.errors import (
    DuplicateComponentError,
    MissingDependencyError,
    ProvisioningError,
)
from vaultstack_core.models import AccessGrant, Port, ResourceKind


class _Widget(Component):
    """Component that provisions one cluster resource on demand."""

    def finish(self) -> None:
        handle = self.assembly.provision(ResourceKind.CLUSTER, self.path)
        self._publish(handle)


class TestAssembly:
    """Tests for Assembly."""

    def test_path(self, assembly: Assembly) -> None:
        assert assembly.path("service", "load-balancer") == "vaultwarden/service/load-balancer"

    def test_provision_applies_tags(self, assembly: Assembly, engine: InMemoryEngine) -> None:
        assembly.provision(ResourceKind.NETWORK, "vaultwarden/network")
        assert engine.request_for("vaultwarden/network").tags == {
            "x:application": "vaultwarden",
            "x:stack": "vaultwarden",
        }

    def test_provision_records_dependencies(self, assembly: Assembly) -> None:
        network = assembly.provision(ResourceKind.NETWORK, "vaultwarden/network")
        assembly.provision(ResourceKind.CLUSTER, "vaultwarden/cluster", depends_on=[network])
        request, _ = assembly.resources[-1]
        assert request.depends_on == ("vaultwarden/network",)

    def test_engine_failure_wrapped(self) -> None:
        assembly = Assembly(InMemoryEngine(failures={"network": RuntimeError("limit exceeded")}))

        with pytest.raises(ProvisioningError) as exc_info:
            assembly.provision(ResourceKind.NETWORK, "vaultwarden/network")

        assert exc_info.value.resource_kind == "network"
        assert exc_info.value.logical_id == "vaultwarden/network"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert assembly.resources == []

    def test_authorize_once(self, assembly: Assembly, engine: InMemoryEngine) -> None:
        first = assembly.authorize("a", "b", Port.tcp(443))
        second = assembly.authorize("a", "b", Port.tcp(443))
        assert first == second
        assert len(assembly.authorization) == 1
        assert engine.rules == [first]

    def test_failed_authorization_not_recorded(
        self, assembly: Assembly, engine: InMemoryEngine
    ) -> None:
        nfs = Port.tcp(2049)
        with patch.object(engine, "authorize", side_effect=RuntimeError("throttled")):
            with pytest.raises(ProvisioningError) as exc_info:
                assembly.authorize("a", "b", nfs)

        assert exc_info.value.resource_kind == "authorization_rule"
        assert not assembly.authorization.is_allowed("a", "b", nfs)

        rule = assembly.authorize("a", "b", nfs)
        assert engine.rules == [rule]
        assert assembly.authorization.is_allowed("a", "b", nfs)

    def test_failed_grant_not_recorded(self, assembly: Assembly, engine: InMemoryEngine) -> None:
        grant = AccessGrant(principal="role", resource="repo", actions=("ecr:BatchGetImage",))
        with patch.object(engine, "grant", side_effect=RuntimeError("denied")):
            with pytest.raises(ProvisioningError):
                assembly.grant(grant)
        assert assembly.grants == []

    def test_engine_calls_traced(self, assembly: Assembly) -> None:
        grant = AccessGrant(principal="role", resource="repo", actions=("ecr:BatchGetImage",))
        with capture_logs() as logs:
            assembly.authorize("a", "b", Port.tcp(443))
            assembly.grant(grant)

        events = [entry["event"] for entry in logs]
        assert "authorize_rule_completed" in events
        assert "grant_access_completed" in events

    def test_grant_once(self, assembly: Assembly, engine: InMemoryEngine) -> None:
        grant = AccessGrant(principal="role", resource="repo", actions=("ecr:BatchGetImage",))
        assembly.grant(grant)
        assembly.grant(grant)
        assert assembly.grants == [grant]
        assert engine.grants == [grant]

    def test_add_output(self, assembly: Assembly) -> None:
        output = assembly.add_output("endpoint", "lb.example.com", "Public endpoint")
        assert assembly.outputs == {"endpoint": output}


class TestComponent:
    """Tests for Component."""

    def test_handle_unavailable_until_published(self, assembly: Assembly) -> None:
        widget = _Widget(assembly, "widget")
        assert widget.is_provisioned is False
        with pytest.raises(MissingDependencyError):
            _ = widget.handle

        widget.finish()
        assert widget.is_provisioned is True
        assert widget.handle.logical_id == "vaultwarden/widget"

    def test_duplicate_id_rejected(self, assembly: Assembly) -> None:
        _Widget(assembly, "widget")
        with pytest.raises(DuplicateComponentError):
            _Widget(assembly, "widget")

    def test_require_unprovisioned_dependency(self, assembly: Assembly) -> None:
        dependency = _Widget(assembly, "dependency")
        consumer = _Widget(assembly, "consumer")
        with pytest.raises(MissingDependencyError) as exc_info:
            consumer._require("dependency", dependency)
        assert exc_info.value.component == "vaultwarden/consumer"

    def test_require_missing_dependency(self, assembly: Assembly) -> None:
        consumer = _Widget(assembly, "consumer")
        with pytest.raises(MissingDependencyError):
            consumer._require("dependency", None)

    def test_require_rejects_other_assembly(self, assembly: Assembly) -> None:
        foreign = _Widget(Assembly(InMemoryEngine()), "dependency")
        foreign.finish()
        consumer = _Widget(assembly, "consumer")
        with pytest.raises(MissingDependencyError):
            consumer._require("dependency", foreign)

    def test_failed_constructor_releases_id(self, assembly: Assembly) -> None:
        class _Fragile(Component):
            def __init__(self, assembly: Assembly, component_id: str, *, fail: bool) -> None:
                super().__init__(assembly, component_id)
                if fail:
                    raise MissingDependencyError("network", component=self.path)

        with pytest.raises(MissingDependencyError):
            _Fragile(assembly, "fragile", fail=True)
        assert "fragile" not in assembly.components

        rebuilt = _Fragile(assembly, "fragile", fail=False)
        assert assembly.components["fragile"] is rebuilt

    def test_duplicate_does_not_release_existing(self, assembly: Assembly) -> None:
        existing = _Widget(assembly, "widget")
        with pytest.raises(DuplicateComponentError):
            _Widget(assembly, "widget")
        assert assembly.components["widget"] is existing
