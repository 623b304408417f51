"""
Resource specifications for the microservice stack.

Each specification is a pydantic model; building one validates the
structure of the request immediately, before anything reaches a backend.
"""

from moraine.resources.docker import ImageSpec
from moraine.resources.gcp import (
    AddonToggle,
    AddonsConfig,
    BucketCors,
    BucketSpec,
    ClusterSpec,
    DatabaseInstanceSpec,
    DatabaseSettings,
    NodeConfig,
    NodePool,
    NodePoolAutoscaling,
    RepositoryDockerConfig,
    RepositorySpec,
)
from moraine.resources.kubernetes import (
    DeploymentSpec,
    KubernetesProviderSpec,
    NamespaceSpec,
    ServiceSpec,
)

RESOURCE_SPECS = (
    BucketSpec,
    RepositorySpec,
    ClusterSpec,
    DatabaseInstanceSpec,
    KubernetesProviderSpec,
    NamespaceSpec,
    DeploymentSpec,
    ServiceSpec,
    ImageSpec,
)

__all__ = [
    "RESOURCE_SPECS",
    # Google Cloud
    "BucketSpec",
    "BucketCors",
    "RepositorySpec",
    "RepositoryDockerConfig",
    "ClusterSpec",
    "NodePool",
    "NodeConfig",
    "NodePoolAutoscaling",
    "AddonsConfig",
    "AddonToggle",
    "DatabaseInstanceSpec",
    "DatabaseSettings",
    # Kubernetes
    "KubernetesProviderSpec",
    "NamespaceSpec",
    "DeploymentSpec",
    "ServiceSpec",
    # Docker
    "ImageSpec",
]
