"""Load-balanced Vaultwarden service.

One task definition with one container, one volume mount and a public load
balancer in front of it. The service is the last component of an assembly
and the only one that depends on every other.
"""

from __future__ import annotations

from typing import Any

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.components.certificate import (
    CertificateBinding,
    NoCertificate,
    PendingCertificate,
    ValidatedCertificate,
)
from vaultstack_core.components.cluster import Cluster
from vaultstack_core.components.registry import RegistryMirror
from vaultstack_core.components.volume import PersistentVolume
from vaultstack_core.config import ConfigurationDigest
from vaultstack_core.constants import (
    CONTAINER_PORT,
    DATA_MOUNT_PATH,
    DESIRED_COUNT,
    HEALTH_CHECK_PATH,
    INTERNET_PEER,
    LOADBALANCER_OUTPUT_DESCRIPTION,
    LOADBALANCER_OUTPUT_NAME,
    TASK_CPU_UNITS,
    TASK_EXECUTION_PRINCIPAL,
    TASK_MEMORY_MIB,
    VOLUME_NAME,
)
from vaultstack_core.models import (
    AccessGrant,
    AssemblyOutput,
    Listener,
    Port,
    ResourceHandle,
    ResourceKind,
)

# Actions needed to pull from one repository
PULL_ACTIONS = (
    "ecr:BatchCheckLayerAvailability",
    "ecr:GetDownloadUrlForLayer",
    "ecr:BatchGetImage",
)

# Registry login is account-wide and cannot be scoped to a repository
AUTH_TOKEN_ACTIONS = ("ecr:GetAuthorizationToken",)


def select_listener(binding: CertificateBinding) -> Listener:
    """Public listener for a certificate binding.

    A pending certificate already yields a TLS listener; the assembly as a
    whole stays incomplete until the certificate validates.

    Raises:
        TypeError: If the binding is not a known variant.
    """
    if isinstance(binding, NoCertificate):
        return Listener.plaintext()
    if isinstance(binding, (PendingCertificate, ValidatedCertificate)):
        return Listener.tls(binding.certificate.physical_id)
    raise TypeError(f"Unknown certificate binding: {binding!r}")


class WorkloadService(Component):
    """Service running the mirrored image behind a public load balancer.

    Tasks are placed in the isolated subnets of the cluster's network and
    mount the persistent volume at /data. The execution role may pull from
    the mirrored repository and nothing else.

    Attributes:
        listener: Public listener derived from the certificate binding.
        execution_role: Role the task runtime assumes to pull the image.
        load_balancer: Load balancer handle.
        load_balancer_path: Logical id used as the load balancer's peer name.
        environment: Environment injected into the container.

    Example:
        >>> service = WorkloadService(
        ...     assembly, "service",
        ...     cluster=cluster, registry=registry, volume=volume,
        ...     certificate=NoCertificate(), configuration={"SIGNUPS_ALLOWED": "false"},
        ... )
        >>> service.listener.port
        80
    """

    def __init__(
        self,
        assembly: Assembly,
        component_id: str,
        *,
        cluster: Cluster,
        registry: RegistryMirror,
        volume: PersistentVolume,
        certificate: CertificateBinding,
        configuration: ConfigurationDigest | None = None,
    ) -> None:
        super().__init__(assembly, component_id)
        cluster_handle = self._require("cluster", cluster)
        self._require("registry", registry)
        volume_handle = self._require("volume", volume)

        self.cluster = cluster
        self.registry = registry
        self.volume = volume
        self.certificate = certificate
        self.environment: ConfigurationDigest = dict(configuration or {})
        self.listener = select_listener(certificate)
        network = cluster.network

        self.execution_role = assembly.provision(
            ResourceKind.ROLE,
            self._child("execution-role"),
            {"assumed_by": TASK_EXECUTION_PRINCIPAL},
        )
        assembly.grant(
            AccessGrant(
                principal=self.execution_role.logical_id,
                resource=registry.repository.logical_id,
                actions=PULL_ACTIONS,
            )
        )
        assembly.grant(
            AccessGrant(
                principal=self.execution_role.logical_id,
                resource="*",
                actions=AUTH_TOKEN_ACTIONS,
            )
        )

        self.load_balancer_path = self._child("load-balancer")
        lb_dependencies = list(network.ingress_subnets)
        if isinstance(certificate, (PendingCertificate, ValidatedCertificate)):
            lb_dependencies.append(certificate.certificate)
        self.load_balancer = assembly.provision(
            ResourceKind.LOAD_BALANCER,
            self.load_balancer_path,
            {
                "scheme": "internet-facing",
                "subnets": [s.physical_id for s in network.ingress_subnets],
                "listener": self.listener.model_dump(mode="json"),
                "target": {
                    "port": CONTAINER_PORT,
                    "health_check_path": HEALTH_CHECK_PATH,
                },
            },
            depends_on=lb_dependencies,
        )

        handle = assembly.provision(
            ResourceKind.SERVICE,
            self.path,
            {
                "cluster": cluster_handle.physical_id,
                "launch_type": "FARGATE",
                "desired_count": DESIRED_COUNT,
                "subnets": [s.physical_id for s in network.isolated_subnets],
                "assign_public_ip": False,
                "load_balancer": self.load_balancer.physical_id,
                "task": self._task_definition(volume_handle),
            },
            depends_on=[
                cluster_handle,
                registry.image_copy,
                volume_handle,
                self.execution_role,
                self.load_balancer,
            ],
        )

        self._authorize_traffic()
        self._publish(handle)

    def _task_definition(self, volume_handle: ResourceHandle) -> dict[str, Any]:
        return {
            "cpu": TASK_CPU_UNITS,
            "memory": TASK_MEMORY_MIB,
            "execution_role": self.execution_role.physical_id,
            "volumes": [
                {
                    "name": VOLUME_NAME,
                    "file_system_id": volume_handle.physical_id,
                    "transit_encryption": "ENABLED",
                }
            ],
            "container": {
                "image": self.registry.image.uri,
                "environment": dict(self.environment),
                "port_mappings": [CONTAINER_PORT],
                "health_check_path": HEALTH_CHECK_PATH,
                "mount_points": [
                    {
                        "source_volume": VOLUME_NAME,
                        "container_path": DATA_MOUNT_PATH,
                        "read_only": False,
                    }
                ],
            },
        }

    def _authorize_traffic(self) -> None:
        assembly = self.assembly
        assembly.authorize(INTERNET_PEER, self.load_balancer_path, Port.tcp(self.listener.port))
        assembly.authorize(self.load_balancer_path, self.path, Port.tcp(CONTAINER_PORT))

        # The mount is unusable unless both directions are open.
        assembly.authorize(self.path, self.volume.path, self.volume.port)
        assembly.authorize(self.volume.path, self.path, self.volume.port)
        assembly.authorization.require_bidirectional(self.path, self.volume.path, self.volume.port)

    @property
    def dns_name(self) -> str:
        """Public DNS name of the load balancer."""
        return self.load_balancer.attributes["dns_name"]

    def publish_endpoint(self) -> AssemblyOutput:
        """Publish the load balancer DNS name as the assembly output."""
        return self.assembly.add_output(
            LOADBALANCER_OUTPUT_NAME,
            self.dns_name,
            LOADBALANCER_OUTPUT_DESCRIPTION,
        )
