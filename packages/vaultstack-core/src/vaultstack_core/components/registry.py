"""Private mirror of the upstream Vaultwarden image.

Copies the official image from Docker Hub into a registry repository in the
account; tasks pull only from the mirror. Pin a specific upstream version
through VAULTWARDEN_BASE_VERSION.
"""

from __future__ import annotations

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.constants import BASE_IMAGE_NAME
from vaultstack_core.models import MirroredImage, ResourceHandle, ResourceKind, SourceImage


class RegistryMirror(Component):
    """Registry repository plus a one-time copy of the source image.

    The copy is requested once per assembly; whether it re-runs is up to the
    engine. If the upstream tag does not exist the copy fails with
    ProvisioningError and the assembly stops before any service references
    the empty repository.

    Attributes:
        source: Upstream image coordinates.
        image: Mirrored image coordinates for the engine's account/region.
        repository: Repository handle.
        image_copy: Handle of the completed copy (the service depends on it).

    Example:
        >>> mirror = RegistryMirror(assembly, "registry", version="1.32.0")
        >>> mirror.image.uri
        '123456789012.dkr.ecr.eu-central-1.amazonaws.com/vaultwarden/server:1.32.0'
    """

    def __init__(
        self,
        assembly: Assembly,
        component_id: str,
        *,
        version: str,
        image_name: str = BASE_IMAGE_NAME,
    ) -> None:
        super().__init__(assembly, component_id)

        self.source = SourceImage(name=image_name, version=version)
        self.image = MirroredImage.mirror_of(
            self.source,
            account=assembly.engine.account,
            region=assembly.engine.region,
        )

        self.repository = assembly.provision(
            ResourceKind.REPOSITORY,
            self.path,
            {"repository_name": image_name},
        )

        # Performs the duplication.
        self.image_copy: ResourceHandle = assembly.provision(
            ResourceKind.IMAGE_COPY,
            self._child("image-copy"),
            {"source": self.source.uri, "destination": self.image.uri},
            depends_on=[self.repository],
        )

        self._publish(self.repository)
