"""Encrypted network filesystem holding the Vaultwarden data directory."""

from __future__ import annotations

from vaultstack_core.components.base import Assembly, Component
from vaultstack_core.components.network import NetworkTopology
from vaultstack_core.constants import (
    INFREQUENT_ACCESS_AFTER,
    NFS_PORT,
    OUT_OF_INFREQUENT_ACCESS,
)
from vaultstack_core.models import Port, ResourceKind


class PersistentVolume(Component):
    """Filesystem in the isolated subnets.

    Files move to the infrequent-access tier after 14 idle days and back
    on first access.
    Backups are automatic and the filesystem is retained when the stack is
    removed.

    Attributes:
        network: Network the mount targets live in.
        port: Port mount traffic uses (NFS).
    """

    port = Port.tcp(NFS_PORT)

    def __init__(
        self, assembly: Assembly, component_id: str, *, network: NetworkTopology
    ) -> None:
        super().__init__(assembly, component_id)
        network_handle = self._require("network", network)
        self.network = network

        handle = assembly.provision(
            ResourceKind.FILESYSTEM,
            self.path,
            {
                "encrypted": True,
                "automatic_backups": True,
                "lifecycle_policy": INFREQUENT_ACCESS_AFTER,
                "out_of_infrequent_access_policy": OUT_OF_INFREQUENT_ACCESS,
                "performance_mode": "generalPurpose",
                "throughput_mode": "bursting",
                "removal_policy": "retain",
                "network_id": network_handle.physical_id,
                "subnets": [s.physical_id for s in network.isolated_subnets],
            },
            depends_on=[network_handle, *network.isolated_subnets],
        )
        self._publish(handle)

    @property
    def file_system_id(self) -> str:
        """Stable identifier used in mount configuration."""
        return self.handle.physical_id
