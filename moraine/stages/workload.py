"""
Workload stage: deploys the microservice onto the new cluster.

The steps run strictly in this order and each one consumes the previous
one's handle, so a failure anywhere leaves the remaining resources
unsubmitted:

1. Acquire the kubeconfig (configured file, or composed from the cluster)
2. Bind a Kubernetes provider to it
3. Namespace
4. Deployment, with the database connection name in its environment
5. LoadBalancer service selecting the deployment's pods
6. Exports
"""

from moraine.core.resource import ResourceHandle
from moraine.core.stage import StageContext
from moraine.defaults import (
    APP_LABELS,
    CONTAINER_PORT,
    DEFAULT_IMAGE,
    DEPLOYMENT_NAME,
    IMAGE_KEY,
    KUBERNETES_PROVIDER_NAME,
    NAMESPACE_NAME,
    SERVICE_NAME,
    SERVICE_PORT,
)
from moraine.kubeconfig import acquire_kubeconfig
from moraine.resources.kubernetes import (
    DeploymentSpec,
    KubernetesProviderSpec,
    NamespaceSpec,
    ServiceSpec,
)

DATABASE_ENV_VAR = "DATABASE_CONNECTION_NAME"


def deploy_microservice(
    ctx: StageContext,
    cluster: ResourceHandle,
    database: ResourceHandle,
) -> dict:
    """Namespace, deployment and service for the microservice."""
    kubeconfig = acquire_kubeconfig(ctx.config, cluster)
    ctx.export("kubeconfig", kubeconfig)

    k8s = ctx.declare(KUBERNETES_PROVIDER_NAME, KubernetesProviderSpec(kubeconfig=kubeconfig))

    namespace = ctx.declare(
        NAMESPACE_NAME,
        NamespaceSpec(labels=dict(APP_LABELS)),
        provider=k8s,
    )

    deployment = ctx.declare(
        DEPLOYMENT_NAME,
        DeploymentSpec(
            namespace=namespace["name"],
            labels=dict(APP_LABELS),
            image=ctx.config.get(IMAGE_KEY, DEFAULT_IMAGE),
            container_name=DEPLOYMENT_NAME,
            container_port=CONTAINER_PORT,
            env={DATABASE_ENV_VAR: database["connection_name"]},
        ),
        provider=k8s,
    )

    service = ctx.declare(
        SERVICE_NAME,
        ServiceSpec(
            namespace=namespace["name"],
            selector=dict(APP_LABELS),
            port=SERVICE_PORT,
            target_port=CONTAINER_PORT,
        ),
        provider=k8s,
        depends_on=[deployment],
    )

    ctx.export("namespaceName", namespace["name"])
    ctx.export("deploymentName", deployment["name"])
    ctx.export("serviceName", service["name"])
    return {}
