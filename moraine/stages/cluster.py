"""
Kubernetes cluster stage.

Two cluster shapes are supported, selected with ``moraine:clusterMode``:

- ``autopilot`` (default): GKE manages nodes, versions track ``latest``
- ``regional``: one autoscaled node pool with pinned versions
"""

from moraine.core.stage import StageContext
from moraine.core.context import retrieve_region
from moraine.defaults import (
    AUTOPILOT_CLUSTER_NAME,
    CLUSTER_MODE_KEY,
    DEFAULT_CLUSTER_MODE,
    REGIONAL_CLUSTER_NAME,
)
from moraine.resources.gcp import (
    AddonToggle,
    AddonsConfig,
    ClusterSpec,
    NodeConfig,
    NodePool,
    NodePoolAutoscaling,
)

CLUSTER_MODES = ("autopilot", "regional")


def autopilot_cluster_spec(region: str) -> ClusterSpec:
    # Semantic versions such as "1.30" work here as well
    return ClusterSpec(
        location=region,
        deletion_protection=False,
        enable_autopilot=True,
        node_version="latest",
        min_master_version="latest",
    )


def regional_cluster_spec(region: str) -> ClusterSpec:
    return ClusterSpec(
        name=REGIONAL_CLUSTER_NAME,
        location=region,
        deletion_protection=False,
        node_version="1.31",
        min_master_version="1.31",
        node_pools=[NodePool(
            name="default-pool",
            initial_node_count=1,
            node_config=NodeConfig(machine_type="n2-standard-8"),
            autoscaling=NodePoolAutoscaling(min_node_count=1, max_node_count=3),
        )],
        addons_config=AddonsConfig(
            horizontal_pod_autoscaling=AddonToggle(disabled=False),
            http_load_balancing=AddonToggle(disabled=False),
        ),
    )


def setup_kubernetes_cluster(ctx: StageContext) -> dict:
    """GKE cluster in the stack's region (autopilot or regional)."""
    region = retrieve_region(ctx.config)
    mode = ctx.config.get(CLUSTER_MODE_KEY, DEFAULT_CLUSTER_MODE)

    if mode == "autopilot":
        cluster = ctx.declare(AUTOPILOT_CLUSTER_NAME, autopilot_cluster_spec(region))
    elif mode == "regional":
        cluster = ctx.declare(REGIONAL_CLUSTER_NAME, regional_cluster_spec(region))
    else:
        raise ValueError(
            f"Unknown cluster mode '{mode}' for {CLUSTER_MODE_KEY}; "
            f"expected one of {', '.join(CLUSTER_MODES)}"
        )

    ctx.export("kubernetesClusterEndpoint", cluster["endpoint"])
    ctx.export("kubernetesClusterName", cluster["name"])
    return {"cluster": cluster}
