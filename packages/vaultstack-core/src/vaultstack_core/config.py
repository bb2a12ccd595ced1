"""Assembly settings read from the ambient environment.

This module provides:
- extract_configuration(): derive the workload's configuration set from
  CONFIG_-prefixed environment variables
- AssemblySettings: validated settings for one assembly

Settings are validated before the first resource is requested; a malformed
value raises ConfigurationError and nothing is provisioned.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from vaultstack_core.constants import (
    BASE_VERSION_ENV_VAR,
    CONFIG_ENV_PREFIX,
    DEFAULT_BASE_VERSION,
    DEFAULT_MAX_AZS,
    DOMAIN_NAME_ENV_VAR,
    MAX_AZS_ENV_VAR,
)
from vaultstack_core.errors import ConfigurationError
from vaultstack_core.models import IMAGE_TAG_PATTERN

logger = structlog.get_logger(__name__)

# Pattern for a fully qualified domain name (at least two labels)
DNS_DOMAIN_PATTERN = (
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)+$"
)

MAX_DNS_LABEL_LENGTH = 63

ConfigurationDigest = dict[str, str]
"""Workload configuration: key (prefix stripped) to string value."""

_FIELD_ENV_VARS = {
    "base_version": BASE_VERSION_ENV_VAR,
    "domain_name": DOMAIN_NAME_ENV_VAR,
    "max_azs": MAX_AZS_ENV_VAR,
}


def extract_configuration(
    environ: Mapping[str, str | None],
    prefix: str = CONFIG_ENV_PREFIX,
) -> ConfigurationDigest:
    """Filter the environment down to the workload's configuration set.

    Keeps entries whose key starts with ``prefix`` and whose value is defined,
    strips the prefix and copies the value unchanged. Keys equal to the bare
    prefix are skipped since an empty variable name cannot be injected.

    Args:
        environ: Environment snapshot (e.g., ``os.environ``).
        prefix: Key prefix that marks a forwarded entry.

    Returns:
        Mapping of stripped key to value. Empty when nothing matches.

    Example:
        >>> extract_configuration({"CONFIG_SENDS_ALLOWED": "true", "OTHER_VAR": "ignored"})
        {'SENDS_ALLOWED': 'true'}
    """
    digest: ConfigurationDigest = {}
    for key, value in environ.items():
        if value is None or not key.startswith(prefix):
            continue
        stripped = key[len(prefix) :]
        if stripped:
            digest[stripped] = value
    return digest


class AssemblySettings(BaseModel):
    """Validated inputs of one assembly.

    Attributes:
        base_version: Upstream image tag to mirror.
        domain_name: Public domain; switches on the TLS certificate branch.
        max_azs: Number of availability zones the subnets span.
        configuration: Environment injected into the workload container.

    Example:
        >>> settings = AssemblySettings.from_environment({
        ...     "VAULTWARDEN_BASE_VERSION": "1.32.0",
        ...     "VAULTWARDEN_DOMAIN_NAME": "vault.example.com",
        ...     "CONFIG_SIGNUPS_ALLOWED": "false",
        ... })
        >>> settings.tls_enabled
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_version: str = Field(
        default=DEFAULT_BASE_VERSION,
        pattern=IMAGE_TAG_PATTERN,
        description="Upstream image tag to mirror",
    )
    domain_name: str | None = Field(
        default=None,
        max_length=253,
        pattern=DNS_DOMAIN_PATTERN,
        description="Public domain name (enables TLS)",
    )
    max_azs: int = Field(
        default=DEFAULT_MAX_AZS,
        ge=2,
        le=6,
        description="Availability zones spanned by the network",
    )
    configuration: ConfigurationDigest = Field(
        default_factory=dict,
        description="Environment injected into the workload",
    )

    @field_validator("domain_name", mode="before")
    @classmethod
    def empty_domain_is_absent(cls, value: Any) -> Any:
        """Treat an empty or blank domain as not supplied."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("domain_name")
    @classmethod
    def domain_labels_valid(cls, value: str | None) -> str | None:
        """Reject overlong labels and numeric top-level labels such as IP literals."""
        if value is None:
            return value
        labels = value.split(".")
        if any(len(label) > MAX_DNS_LABEL_LENGTH for label in labels):
            raise ValueError(f"DNS labels are limited to {MAX_DNS_LABEL_LENGTH} characters")
        if labels[-1].isdigit():
            raise ValueError("Top-level label must not be numeric")
        return value

    @property
    def tls_enabled(self) -> bool:
        """Whether a certificate will be requested."""
        return self.domain_name is not None

    @classmethod
    def from_environment(cls, environ: Mapping[str, str | None]) -> AssemblySettings:
        """Build settings from an environment snapshot.

        Args:
            environ: Environment snapshot (e.g., ``os.environ``).

        Returns:
            Validated AssemblySettings.

        Raises:
            ConfigurationError: If any setting is malformed.
        """
        raw: dict[str, Any] = {"configuration": extract_configuration(environ)}
        for field_name, env_var in _FIELD_ENV_VARS.items():
            value = environ.get(env_var)
            if value is not None:
                raw[field_name] = value

        try:
            settings = cls.model_validate(raw)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field_path = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid setting: {first['msg']}",
                field_path=field_path,
                env_var=_FIELD_ENV_VARS.get(field_path),
                internal_details=str(e),
            ) from e

        logger.info(
            "settings_loaded",
            base_version=settings.base_version,
            tls_enabled=settings.tls_enabled,
            max_azs=settings.max_azs,
            configuration_keys=sorted(settings.configuration),
        )
        return settings
