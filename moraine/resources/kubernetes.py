"""
Kubernetes resource specifications.

These are deliberately flat: one container per workload and one port per
service. Backends expand them into full object manifests.
"""

from typing import ClassVar

from pydantic import Field

from moraine.core.resource import Input, ResourceSpec


class KubernetesProviderSpec(ResourceSpec):
    """
    Client binding to a cluster.

    Resources declared with this handle as ``provider`` are created in the
    cluster the kubeconfig points at.
    """

    resource_type: ClassVar[str] = "pulumi:providers:kubernetes"
    outputs: ClassVar[dict[str, str]] = {"id": "id"}

    kubeconfig: Input[str] = Field(..., description="Kubeconfig document")
    namespace: str | None = None


class NamespaceSpec(ResourceSpec):
    """Namespace; its name is generated when not given."""

    resource_type: ClassVar[str] = "kubernetes:core/v1:Namespace"
    outputs: ClassVar[dict[str, str]] = {"name": "metadata.name"}

    name: Input[str] | None = None
    labels: dict[str, str] | None = None


class DeploymentSpec(ResourceSpec):
    """
    Single-container deployment.

    Example:
        DeploymentSpec(
            namespace=namespace["name"],
            labels={"app": "web"},
            image="nginx:1.27",
            container_port=80,
            env={"DATABASE_CONNECTION_NAME": database["connection_name"]},
        )
    """

    resource_type: ClassVar[str] = "kubernetes:apps/v1:Deployment"
    outputs: ClassVar[dict[str, str]] = {"name": "metadata.name"}

    namespace: Input[str]
    labels: dict[str, str] = Field(..., min_length=1, description="Pod labels, also the selector")
    image: Input[str]
    name: str | None = None
    replicas: int = Field(1, ge=0)
    container_name: str = "app"
    container_port: int = Field(8080, gt=0, lt=65536)
    env: dict[str, Input[str]] | None = None


class ServiceSpec(ResourceSpec):
    """Service exposing pods that match ``selector``."""

    resource_type: ClassVar[str] = "kubernetes:core/v1:Service"
    outputs: ClassVar[dict[str, str]] = {"name": "metadata.name"}

    namespace: Input[str]
    selector: dict[str, str] = Field(..., min_length=1)
    name: str | None = None
    port: int = Field(80, gt=0, lt=65536)
    target_port: int = Field(8080, gt=0, lt=65536)
    type: str = "LoadBalancer"
