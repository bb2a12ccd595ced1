"""Unit tests for CertificateValidationGate."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs
from vaultstack_core.components.base import Assembly
from vaultstack_core.components.certificate import TlsCertificate
from vaultstack_core.engine import InMemoryEngine
from vaultstack_core.errors import CertificateValidationError
from vaultstack_core.models import CertificateStatus
from vaultstack_core.validation import CertificateValidationGate


@pytest.fixture
def certificate(assembly: Assembly) -> TlsCertificate:
    return TlsCertificate(assembly, "certificate", domain_name="vault.example.com")


class _Operator:
    """Sleep replacement that acts as an operator after a number of polls."""

    def __init__(self, engine: InMemoryEngine, logical_id: str, *, after: int, fail: bool = False):
        self.engine = engine
        self.logical_id = logical_id
        self.after = after
        self.fail = fail
        self.sleeps: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if len(self.sleeps) == self.after:
            if self.fail:
                self.engine.fail_certificate(self.logical_id)
            else:
                self.engine.validate_certificate(self.logical_id)


class TestCertificateValidationGate:
    """Tests for CertificateValidationGate."""

    def test_waits_until_validated(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        operator = _Operator(engine, certificate.path, after=3)
        gate = CertificateValidationGate(certificate, poll_seconds=30, sleep=operator)

        assert gate.wait() == CertificateStatus.VALIDATED
        assert operator.sleeps == [30, 30, 30]
        assert certificate.is_validated

    def test_already_validated_does_not_poll(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        engine.validate_certificate(certificate.path)
        certificate.refresh()
        operator = _Operator(engine, certificate.path, after=1)

        assert CertificateValidationGate(certificate, sleep=operator).wait() == (
            CertificateStatus.VALIDATED
        )
        assert operator.sleeps == []

    def test_failure_stops_polling(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        operator = _Operator(engine, certificate.path, after=2, fail=True)
        gate = CertificateValidationGate(certificate, poll_seconds=1, sleep=operator)

        with pytest.raises(CertificateValidationError):
            gate.wait()
        assert len(operator.sleeps) == 2

    def test_logs_pending_records(
        self, certificate: TlsCertificate, engine: InMemoryEngine
    ) -> None:
        operator = _Operator(engine, certificate.path, after=1)
        with capture_logs() as logs:
            CertificateValidationGate(certificate, poll_seconds=5, sleep=operator).wait()

        pending = [entry for entry in logs if entry["event"] == "certificate_validation_pending"]
        assert len(pending) == 1
        assert pending[0]["attempt"] == 1
        record = certificate.validation_records[0]
        assert pending[0]["records"] == [f"{record.name} CNAME {record.value}"]

    def test_poll_checks_once(self, certificate: TlsCertificate) -> None:
        gate = CertificateValidationGate(certificate, sleep=lambda _: None)
        assert gate.poll() == CertificateStatus.PENDING_VALIDATION

    def test_negative_poll_interval_rejected(self, certificate: TlsCertificate) -> None:
        with pytest.raises(ValueError):
            CertificateValidationGate(certificate, poll_seconds=-1)
