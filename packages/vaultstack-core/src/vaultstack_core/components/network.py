"""Dedicated network for the Vaultwarden workload.

Tasks and the filesystem live in isolated subnets, the load balancer in the
public ingress subnets. There is no NAT path. Provider services the tasks
need (registry API, registry data, object storage, log sink) are reached
through private service endpoints in the isolated subnets, one per service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.constants import (
    ENDPOINT_DEFAULT_PORT,
    INGRESS_SUBNET_NAME,
    ISOLATED_SUBNET_NAME,
    NETWORK_CIDR,
    NETWORK_NAME,
)
from vaultstack_core.errors import ConfigurationError
from vaultstack_core.models import AuthorizationRule, Port, ResourceHandle, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Iterator


class SubnetClass:
    """Subnet class names."""

    ISOLATED = ISOLATED_SUBNET_NAME
    INGRESS = INGRESS_SUBNET_NAME


class ServiceEndpoint:
    """Private endpoint to a provider-managed service.

    Attributes:
        endpoint_id: Short id (e.g., "ecr-api").
        service: Provider service name.
        endpoint_type: "interface" or "gateway".
        handle: Engine handle of the endpoint.
    """

    def __init__(
        self,
        network: NetworkTopology,
        endpoint_id: str,
        service: str,
        endpoint_type: str,
        handle: ResourceHandle,
    ) -> None:
        self.network = network
        self.endpoint_id = endpoint_id
        self.service = service
        self.endpoint_type = endpoint_type
        self.handle = handle
        self.default_port = Port.tcp(ENDPOINT_DEFAULT_PORT)

    @property
    def path(self) -> str:
        """Logical id of the endpoint."""
        return self.handle.logical_id

    def allow_default_access_from(self, consumer: Component) -> AuthorizationRule:
        """Let a consumer reach this endpoint on its default port.

        Invoke once per {endpoint, consumer} pair; repeating it is a no-op.

        Args:
            consumer: Component whose traffic must reach the provider service.

        Returns:
            The rule consumer -> endpoint.
        """
        return self.network.assembly.authorize(consumer.path, self.path, self.default_port)


# (endpoint id, provider service, endpoint type)
SERVICE_ENDPOINTS: tuple[tuple[str, str, str], ...] = (
    ("ecr-api", "ecr.api", "interface"),  # registry auth
    ("ecr-docker", "ecr.dkr", "interface"),  # image layer pulls
    ("s3", "s3", "gateway"),  # registry layer blobs
    ("logs", "logs", "interface"),  # container log streaming
)


class NetworkTopology(Component):
    """Network with isolated and ingress subnets across a fixed zone count.

    Attributes:
        max_azs: Number of availability zones.
        subnets: Subnet handles by class name, one per zone.
        endpoints: Private service endpoints by id.

    Example:
        >>> network = NetworkTopology(assembly, "network", max_azs=2)
        >>> [s.logical_id for s in network.subnets["isolated"]]
        ['vaultwarden/network/isolated-1', 'vaultwarden/network/isolated-2']
    """

    def __init__(self, assembly: Assembly, component_id: str, *, max_azs: int = 2) -> None:
        if max_azs < 2:
            raise ConfigurationError(
                "At least two availability zones are required", field_path="max_azs"
            )
        super().__init__(assembly, component_id)
        self.max_azs = max_azs

        network = assembly.provision(
            ResourceKind.NETWORK,
            self.path,
            {"name": NETWORK_NAME, "cidr": NETWORK_CIDR, "max_azs": max_azs, "nat_gateways": 0},
        )

        self.subnets: dict[str, list[ResourceHandle]] = {}
        for subnet_class, public in ((SubnetClass.ISOLATED, False), (SubnetClass.INGRESS, True)):
            self.subnets[subnet_class] = [
                assembly.provision(
                    ResourceKind.SUBNET,
                    self._child(f"{subnet_class}-{zone}"),
                    {
                        "subnet_class": subnet_class,
                        "zone_index": zone,
                        "public": public,
                        "map_public_ip_on_launch": public,
                    },
                    depends_on=[network],
                )
                for zone in range(1, max_azs + 1)
            ]

        isolated_ids = [s.physical_id for s in self.subnets[SubnetClass.ISOLATED]]
        self.endpoints: dict[str, ServiceEndpoint] = {}
        for endpoint_id, service, endpoint_type in SERVICE_ENDPOINTS:
            handle = assembly.provision(
                ResourceKind.SERVICE_ENDPOINT,
                self._child("endpoints", endpoint_id),
                {
                    "service": service,
                    "endpoint_type": endpoint_type,
                    "private_dns_enabled": endpoint_type == "interface",
                    "subnets": isolated_ids,
                },
                depends_on=self.subnets[SubnetClass.ISOLATED],
            )
            self.endpoints[endpoint_id] = ServiceEndpoint(
                self, endpoint_id, service, endpoint_type, handle
            )

        self._publish(network)

    @property
    def isolated_subnets(self) -> list[ResourceHandle]:
        """Subnets with no internet path."""
        return self.subnets[SubnetClass.ISOLATED]

    @property
    def ingress_subnets(self) -> list[ResourceHandle]:
        """Publicly reachable subnets."""
        return self.subnets[SubnetClass.INGRESS]

    def iter_endpoints(self) -> Iterator[ServiceEndpoint]:
        """Endpoints in declaration order."""
        return iter(self.endpoints.values())
