"""Container scheduling cluster bound to the network."""

from __future__ import annotations

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.components.network import NetworkTopology
from vaultstack_core.models import ResourceKind

# Endpoints the cluster's tasks need: registry auth, image layers, layer
# blobs and log streaming.
CLUSTER_ENDPOINTS = ("ecr-api", "ecr-docker", "s3", "logs")


class Cluster(Component):
    """Cluster that runs the workload's tasks.

    Grants itself access to the private service endpoints it pulls images
    and ships logs through.

    Attributes:
        network: Network the cluster is bound to.
    """

    def __init__(self, assembly: Assembly, component_id: str, *, network: NetworkTopology) -> None:
        super().__init__(assembly, component_id)
        network_handle = self._require("network", network)
        self.network = network

        handle = assembly.provision(
            ResourceKind.CLUSTER,
            self.path,
            {"network_id": network_handle.physical_id, "container_insights": False},
            depends_on=[network_handle],
        )

        for endpoint_id in CLUSTER_ENDPOINTS:
            network.endpoints[endpoint_id].allow_default_access_from(self)

        self._publish(handle)
