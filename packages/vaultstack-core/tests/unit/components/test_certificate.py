"""Unit tests for the certificate branch."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from pydantic import TypeAdapter
from structlog.testing import capture_logs
from vaultstack_core.components.base import Assembly
from vaultstack_core.components.certificate import (
    CertificateBinding,
    NoCertificate,
    PendingCertificate,
    TlsCertificate,
    ValidatedCertificate,
    certificate_binding,
    request_certificate,
)
from vaultstack_core.engine import InMemoryEngine
from vaultstack_core.errors import (
    CertificateValidationError,
    ConfigurationError,
    InvalidStateTransition,
    ProvisioningError,
)
from vaultstack_core.models import CertificateStatus, ResourceKind

DOMAIN = "vault.example.com"


class TestRequestCertificate:
    """Tests for request_certificate()."""

    @pytest.mark.requirement("001-FR-003")
    def test_domain_creates_pending_certificate(
        self, assembly: Assembly, engine: InMemoryEngine
    ) -> None:
        certificate = request_certificate(assembly, "certificate", DOMAIN)

        assert isinstance(certificate, TlsCertificate)
        assert certificate.status == CertificateStatus.PENDING_VALIDATION
        assert len(certificate.validation_records) == 1
        assert len(engine.handles_of(ResourceKind.CERTIFICATE)) == 1
        assert engine.request_for("vaultwarden/certificate").properties == {
            "domain_name": DOMAIN,
            "validation_method": "DNS",
        }

    @pytest.mark.requirement("001-FR-003")
    @pytest.mark.parametrize("domain", [None, ""])
    def test_no_domain_skips_branch(
        self, assembly: Assembly, engine: InMemoryEngine, domain: str | None
    ) -> None:
        with capture_logs() as logs:
            certificate = request_certificate(assembly, "certificate", domain)

        assert certificate is None
        assert engine.handles_of(ResourceKind.CERTIFICATE) == []
        assert "certificate" not in assembly.components
        assert [entry["event"] for entry in logs] == ["plaintext_listener"]
        assert logs[0]["log_level"] == "warning"

    def test_component_requires_domain(self, assembly: Assembly) -> None:
        with pytest.raises(ConfigurationError):
            TlsCertificate(assembly, "certificate", domain_name="")


class TestTlsCertificate:
    """Tests for the certificate lifecycle."""

    @pytest.fixture
    def certificate(self, assembly: Assembly) -> TlsCertificate:
        return TlsCertificate(assembly, "certificate", domain_name=DOMAIN)

    def test_refresh_stays_pending(self, certificate: TlsCertificate) -> None:
        assert certificate.refresh() == CertificateStatus.PENDING_VALIDATION
        assert certificate.is_validated is False

    def test_refresh_after_operator_validation(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        engine.validate_certificate(certificate.path)
        assert certificate.refresh() == CertificateStatus.VALIDATED
        assert certificate.is_validated is True

    def test_engine_failure_is_fatal(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        engine.fail_certificate(certificate.path)
        with pytest.raises(CertificateValidationError) as exc_info:
            certificate.refresh()
        assert exc_info.value.domain_name == DOMAIN
        assert certificate.status == CertificateStatus.FAILED

    def test_validated_is_terminal(self, certificate: TlsCertificate) -> None:
        certificate.transition(CertificateStatus.VALIDATED)
        with pytest.raises(InvalidStateTransition):
            certificate.transition(CertificateStatus.PENDING_VALIDATION)

    def test_no_way_back_to_requested(self, certificate: TlsCertificate) -> None:
        with pytest.raises(InvalidStateTransition):
            certificate.transition(CertificateStatus.REQUESTED)

    def test_same_state_is_noop(self, certificate: TlsCertificate) -> None:
        certificate.transition(CertificateStatus.PENDING_VALIDATION)
        assert certificate.status == CertificateStatus.PENDING_VALIDATION

    def test_status_query_failure_wrapped(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        with patch.object(engine, "certificate_status", side_effect=RuntimeError("throttled")):
            with pytest.raises(ProvisioningError) as exc_info:
                certificate.refresh()
        assert exc_info.value.resource_kind == "certificate"
        assert certificate.status == CertificateStatus.PENDING_VALIDATION

    def test_engine_queries_traced(self, assembly: Assembly) -> None:
        with capture_logs() as logs:
            TlsCertificate(assembly, "certificate", domain_name=DOMAIN)

        completed = [e for e in logs if e["event"].endswith("_completed")]
        assert [e["event"] for e in completed] == [
            "provision_certificate_completed",
            "certificate_status_completed",
            "validation_records_completed",
        ]
        assert completed[1]["logical_id"] == "vaultwarden/certificate"

    def test_records_query_failure_wrapped(
        self, assembly: Assembly, engine: InMemoryEngine
    ) -> None:
        with patch.object(engine, "validation_records", side_effect=RuntimeError("throttled")):
            with pytest.raises(ProvisioningError) as exc_info:
                TlsCertificate(assembly, "certificate", domain_name=DOMAIN)
        assert exc_info.value.resource_kind == "certificate"
        assert "certificate" not in assembly.components


class TestCertificateBinding:
    """Tests for the binding variants."""

    def test_absent_certificate(self) -> None:
        assert certificate_binding(None) == NoCertificate()

    def test_pending_binding(self, assembly: Assembly) -> None:
        certificate = TlsCertificate(assembly, "certificate", domain_name=DOMAIN)
        binding = certificate_binding(certificate)
        assert isinstance(binding, PendingCertificate)
        assert binding.certificate == certificate.handle
        assert binding.validation_records == certificate.validation_records

    def test_validated_binding(self, assembly: Assembly, engine: InMemoryEngine) -> None:
        certificate = TlsCertificate(assembly, "certificate", domain_name=DOMAIN)
        engine.validate_certificate(certificate.path)
        certificate.refresh()
        binding = certificate_binding(certificate)
        assert isinstance(binding, ValidatedCertificate)
        assert binding.domain_name == DOMAIN

    def test_discriminated_on_state(self, assembly: Assembly) -> None:
        adapter: TypeAdapter[CertificateBinding] = TypeAdapter(CertificateBinding)
        certificate = TlsCertificate(assembly, "certificate", domain_name=DOMAIN)

        dumped = adapter.dump_python(certificate.binding, mode="json")
        assert dumped["state"] == "pending"
        assert isinstance(adapter.validate_python(dumped), PendingCertificate)
        assert isinstance(adapter.validate_python({"state": "none"}), NoCertificate)
