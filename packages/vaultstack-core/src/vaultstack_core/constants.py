"""Fixed values of the Vaultwarden topology.

Sizing, naming, ports and tags are static declarations, not settings.
"""

from __future__ import annotations

# Tags applied to every resource in the assembly
APPLICATION_TAG_KEY = "x:application"
STACK_TAG_KEY = "x:stack"
CLASSIFICATION_LABEL = "vaultwarden"

# Environment variables read by AssemblySettings.from_environment()
BASE_VERSION_ENV_VAR = "VAULTWARDEN_BASE_VERSION"
DOMAIN_NAME_ENV_VAR = "VAULTWARDEN_DOMAIN_NAME"
MAX_AZS_ENV_VAR = "VAULTWARDEN_MAX_AZS"
CONFIG_ENV_PREFIX = "CONFIG_"

DEFAULT_BASE_VERSION = "latest"
DEFAULT_MAX_AZS = 2

# Upstream image mirrored into the private registry
BASE_IMAGE_NAME = "vaultwarden/server"
SOURCE_REGISTRY = "docker.io"

# Network
NETWORK_NAME = "vaultwarden-network"
NETWORK_CIDR = "20.0.0.0/24"
ISOLATED_SUBNET_NAME = "isolated"
INGRESS_SUBNET_NAME = "ingress"
ENDPOINT_DEFAULT_PORT = 443

# Filesystem
NFS_PORT = 2049
INFREQUENT_ACCESS_AFTER = "AFTER_14_DAYS"
OUT_OF_INFREQUENT_ACCESS = "AFTER_1_ACCESS"

# Workload
TASK_CPU_UNITS = 256  # 0.25 vCPU
TASK_MEMORY_MIB = 512
DESIRED_COUNT = 1
CONTAINER_PORT = 80
HEALTH_CHECK_PATH = "/alive"
VOLUME_NAME = "efs"
DATA_MOUNT_PATH = "/data"
TASK_EXECUTION_PRINCIPAL = "ecs-tasks.amazonaws.com"

HTTP_PORT = 80
HTTPS_PORT = 443
INTERNET_PEER = "0.0.0.0/0"

LOADBALANCER_OUTPUT_NAME = "loadbalancer-dns-name"
LOADBALANCER_OUTPUT_DESCRIPTION = (
    "The DNS name of the load balancer deployed for the Vaultwarden service."
)

# Certificate validation polling
DEFAULT_VALIDATION_POLL_SECONDS = 30.0
