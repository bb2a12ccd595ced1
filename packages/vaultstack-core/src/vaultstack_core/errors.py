"""Custom exception hierarchy for vaultstack-core.

This module defines the exception classes raised while assembling a topology:
- VaultstackError: Base exception for all vaultstack errors
- ConfigurationError: Settings rejected before any resource is created
- MissingDependencyError: A component was constructed before its dependencies
- ProvisioningError: The provisioning engine failed to create a resource
- IncompleteTopologyError: Authorization wiring is missing a required edge
- CertificateValidationError: The engine reported a failed certificate

User-facing messages are safe to display. Technical details are logged
internally via structlog and never shown to the user.

A certificate that is still waiting for DNS validation is NOT an error; it is
reported through AssemblyStatus.PENDING_VALIDATION.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class VaultstackError(Exception):
    """Base exception for vaultstack.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details. Logged, never displayed.

    Example:
        >>> raise VaultstackError(
        ...     "Assembly failed",
        ...     internal_details="engine returned HTTP 500 for CreateFileSystem",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize VaultstackError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "vaultstack_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(VaultstackError):
    """Raised when assembly settings are invalid.

    Configuration errors fail fast: they are raised while settings are read,
    before the first resource request reaches the engine.

    Attributes:
        field_path: Name of the offending setting (e.g., "domain_name").
        env_var: Environment variable the setting was read from, if any.

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid domain name",
        ...     field_path="domain_name",
        ...     env_var="VAULTWARDEN_DOMAIN_NAME",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        field_path: str | None = None,
        env_var: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Safe message to display to the user.
            field_path: Name of the offending setting (optional).
            env_var: Environment variable the setting came from (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if field_path:
            context_parts.append(f"field '{field_path}'")
        if env_var:
            context_parts.append(f"from {env_var}")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.field_path = field_path
        self.env_var = env_var


class MissingDependencyError(VaultstackError):
    """Raised when a component is built before a dependency has a valid handle.

    Attributes:
        dependency: Name of the dependency that is missing or unprovisioned.
        component: Id of the component being constructed, if any.

    Example:
        >>> raise MissingDependencyError("volume", component="service")
        # User sees: "Cannot construct 'service': dependency 'volume' has not been provisioned"
    """

    def __init__(
        self,
        dependency: str,
        *,
        component: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize MissingDependencyError.

        Args:
            dependency: Name of the missing dependency.
            component: Id of the component being constructed (optional).
            internal_details: Technical details for internal logging only.
        """
        if component:
            user_message = (
                f"Cannot construct '{component}': dependency '{dependency}' "
                "has not been provisioned"
            )
        else:
            user_message = f"'{dependency}' has not been provisioned"
        super().__init__(user_message, internal_details=internal_details)

        self.component = component
        self.dependency = dependency


class DuplicateComponentError(VaultstackError):
    """Raised when two components share an id within one assembly."""

    def __init__(self, component: str) -> None:
        super().__init__(f"Component '{component}' is already defined in this assembly")
        self.component = component


class ProvisioningError(VaultstackError):
    """Raised when the provisioning engine fails to create a resource.

    Provisioning failures are fatal to the whole assembly. Nothing retries
    locally; retry policy belongs to the engine.

    Attributes:
        resource_kind: Kind of resource that failed (e.g., "filesystem").
        logical_id: Logical id of the failed resource.

    Example:
        >>> raise ProvisioningError(
        ...     resource_kind="image_copy",
        ...     logical_id="vaultwarden/registry/image-copy",
        ...     internal_details="manifest unknown: vaultwarden/server:9.9.9",
        ... )
    """

    def __init__(
        self,
        resource_kind: str,
        logical_id: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ProvisioningError.

        Args:
            resource_kind: Kind of the resource that failed.
            logical_id: Logical id of the resource that failed.
            internal_details: Technical details for internal logging only.
        """
        user_message = f"Failed to provision {resource_kind} '{logical_id}'"
        super().__init__(user_message, internal_details=internal_details)

        self.resource_kind = resource_kind
        self.logical_id = logical_id


class IncompleteTopologyError(VaultstackError):
    """Raised when required authorization edges are missing.

    Filesystem mounts need rules in both directions between the service and
    the filesystem; a one-directional rule set leaves the mount unusable.

    Attributes:
        missing: Human-readable descriptions of the missing rules.
    """

    def __init__(
        self,
        user_message: str,
        *,
        missing: list[str] | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize IncompleteTopologyError.

        Args:
            user_message: Safe message to display to the user.
            missing: Descriptions of the missing rules.
            internal_details: Technical details for internal logging only.
        """
        missing = missing or []
        if missing:
            user_message = f"{user_message}: missing {', '.join(missing)}"
        super().__init__(user_message, internal_details=internal_details)

        self.missing = missing


class InvalidStateTransition(VaultstackError):
    """Raised when a certificate is moved to a state it cannot reach."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class CertificateValidationError(VaultstackError):
    """Raised when the engine reports a certificate request as failed.

    A certificate that is merely waiting for DNS records is not a failure.

    Attributes:
        domain_name: Domain the certificate was requested for.
    """

    def __init__(
        self,
        domain_name: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"Certificate validation failed for '{domain_name}'",
            internal_details=internal_details,
        )
        self.domain_name = domain_name
