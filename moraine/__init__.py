"""
Moraine: provisioning pipeline for a GCP microservice stack.

Moraine declares a storage bucket, a container registry, a GKE cluster, a
Cloud SQL database and the microservice workload, and wires the values each
resource produces into the resources that need them.

Core concepts:
- Cell: a value that becomes available once a resource is provisioned
- Stage: a unit of orchestration that declares resources and records exports
- Pipeline: runs stages in the order their inputs and outputs dictate
- Backend: the collaborator that actually creates resources

Example:
    from moraine import ProvisioningContext, MemoryBackend, build_pipeline

    ctx = ProvisioningContext.from_mapping({"gcp:project": "demo"})
    result = build_pipeline().run(ctx, MemoryBackend(project="demo"))
    result.raise_for_failure()

    print(result.exports["databaseConnectionName"])
"""

from moraine.core import (
    Cell,
    ExportTable,
    PipelineError,
    ProvisioningContext,
    ProvisioningPipeline,
    ResourceHandle,
    ResourceSpec,
    RunResult,
    Stage,
    StageContext,
)
from moraine.kubeconfig import CredentialError, compose_kubeconfig
from moraine.providers import Backend, MemoryBackend
from moraine.stages import build_pipeline

__version__ = "0.1.0"
__all__ = [
    "Cell",
    "ExportTable",
    "PipelineError",
    "ProvisioningContext",
    "ProvisioningPipeline",
    "ResourceHandle",
    "ResourceSpec",
    "RunResult",
    "Stage",
    "StageContext",
    "CredentialError",
    "compose_kubeconfig",
    "Backend",
    "MemoryBackend",
    "build_pipeline",
]
