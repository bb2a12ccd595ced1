"""Human-gated certificate validation.

A requested certificate only becomes usable once an operator publishes the
DNS records the engine handed out. The gate polls the engine with tenacity
until the certificate is VALIDATED. It never gives up on its own: there is no
timeout and no fallback to plaintext. A FAILED status reported by the engine
is the only way out besides success.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from tenacity import RetryCallState, Retrying, retry_if_result, stop_never, wait_fixed

from vaultstack_core.components.certificate import TlsCertificate
from vaultstack_core.constants import DEFAULT_VALIDATION_POLL_SECONDS
from vaultstack_core.models import CertificateStatus

logger = structlog.get_logger(__name__)


def _is_pending(status: CertificateStatus) -> bool:
    return status != CertificateStatus.VALIDATED


class CertificateValidationGate:
    """Blocks until a certificate is validated.

    Args:
        certificate: Certificate to wait for.
        poll_seconds: Fixed wait between two status checks.
        sleep: Sleep function, injectable for tests.

    Example:
        >>> gate = CertificateValidationGate(certificate, poll_seconds=60)
        >>> gate.wait()
        <CertificateStatus.VALIDATED: 'validated'>
    """

    def __init__(
        self,
        certificate: TlsCertificate,
        *,
        poll_seconds: float = DEFAULT_VALIDATION_POLL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_seconds < 0:
            raise ValueError("poll_seconds must be non-negative")
        self.certificate = certificate
        self.poll_seconds = poll_seconds
        self._sleep = sleep
        self._log = logger.bind(
            component=certificate.path,
            domain_name=certificate.domain_name,
        )

    def poll(self) -> CertificateStatus:
        """Check the status once.

        Raises:
            CertificateValidationError: If the engine reports FAILED.
        """
        return self.certificate.refresh()

    def _log_pending(self, retry_state: RetryCallState) -> None:
        self._log.info(
            "certificate_validation_pending",
            attempt=retry_state.attempt_number,
            next_check_seconds=self.poll_seconds,
            records=[
                f"{r.name} {r.record_type} {r.value}"
                for r in self.certificate.validation_records
            ],
        )

    def wait(self) -> CertificateStatus:
        """Poll until the certificate is validated.

        Returns:
            CertificateStatus.VALIDATED.

        Raises:
            CertificateValidationError: If the engine reports FAILED.
            ProvisioningError: If the engine cannot be queried.
        """
        if self.certificate.is_validated:
            return CertificateStatus.VALIDATED

        self._log.info("certificate_validation_waiting", poll_seconds=self.poll_seconds)
        retrying = Retrying(
            retry=retry_if_result(_is_pending),
            wait=wait_fixed(self.poll_seconds),
            stop=stop_never,
            sleep=self._sleep,
            before_sleep=self._log_pending,
            reraise=True,
        )
        status: CertificateStatus = retrying(self.poll)
        self._log.info("certificate_validation_completed")
        return status
