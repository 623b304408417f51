"""
The microservice stack: storage, registry, cluster, database and workload.

``build_pipeline`` assembles the stages in their call order. The order is
checked against the declared inputs and outputs before every run.

Example:
    from moraine.stages import build_pipeline
    from moraine.providers import MemoryBackend

    result = build_pipeline().run(context, MemoryBackend())
    print(result.exports["kubernetesClusterEndpoint"])
"""

from moraine.core.pipeline import ProvisioningPipeline
from moraine.core.stage import Stage
from moraine.stages.cluster import setup_kubernetes_cluster
from moraine.stages.database import setup_postgres_database
from moraine.stages.readme import export_readme
from moraine.stages.registry import build_docker_image, image_build_enabled, setup_docker_repository
from moraine.stages.storage import setup_storage_bucket
from moraine.stages.workload import deploy_microservice


def build_pipeline(name: str = "microservice-stack") -> ProvisioningPipeline:
    """Create the pipeline for the microservice stack."""
    return ProvisioningPipeline(name=name, stages=[
        Stage(
            name="storage",
            func=setup_storage_bucket,
            produces=("bucket",),
            exports=("bucketUrl",),
            description="Cloud Storage bucket",
        ),
        Stage(
            name="registry",
            func=setup_docker_repository,
            produces=("repository",),
            exports=("repositoryId",),
            description="Artifact Registry repository",
        ),
        Stage(
            name="image",
            func=build_docker_image,
            consumes=("repository",),
            produces=("image",),
            exports=("imageRef",),
            description="Microservice image build",
            enabled=image_build_enabled,
        ),
        Stage(
            name="cluster",
            func=setup_kubernetes_cluster,
            produces=("cluster",),
            exports=("kubernetesClusterEndpoint", "kubernetesClusterName"),
            description="GKE cluster",
        ),
        Stage(
            name="database",
            func=setup_postgres_database,
            produces=("database",),
            exports=("databaseConnectionName",),
            description="Cloud SQL PostgreSQL instance",
        ),
        Stage(
            name="deployment",
            func=deploy_microservice,
            consumes=("cluster", "database"),
            exports=("kubeconfig", "namespaceName", "deploymentName", "serviceName"),
            description="Microservice workload on the cluster",
        ),
        Stage(
            name="readme",
            func=export_readme,
            exports=("readme",),
            description="Stack README",
        ),
    ])


__all__ = ["build_pipeline"]
