"""
Google Cloud resource specifications.

Field names follow the ``pulumi_gcp`` argument names so a backend can pass
the resolved properties through unchanged.
"""

from typing import ClassVar

from pydantic import BaseModel, Field

from moraine.core.resource import Input, ResourceSpec


class BucketCors(BaseModel):
    """CORS rule of a storage bucket."""

    max_age_seconds: int | None = Field(None, description="Preflight cache lifetime")
    methods: list[str] = Field(default_factory=list, description="Allowed HTTP methods")
    origins: list[str] = Field(default_factory=list, description="Allowed origins")
    response_headers: list[str] = Field(
        default_factory=list, description="Headers exposed to the browser"
    )


class BucketSpec(ResourceSpec):
    """
    Cloud Storage bucket.

    Example:
        BucketSpec(
            location="EU",
            cors=[BucketCors(methods=["GET"], origins=["*"])],
            force_destroy=True,
        )
    """

    resource_type: ClassVar[str] = "gcp:storage/bucket:Bucket"
    outputs: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "url": "url",
        "self_link": "self_link",
    }

    location: Input[str] = Field(..., description="Bucket location (EU, US, region)")
    name: Input[str] | None = Field(None, description="Physical name; generated when unset")
    cors: list[BucketCors] | None = Field(None, description="CORS rules")
    force_destroy: bool = Field(False, description="Delete contained objects on destroy")
    storage_class: str | None = Field(None, description="STANDARD, NEARLINE, COLDLINE, ARCHIVE")
    uniform_bucket_level_access: bool | None = Field(None, description="Disable object ACLs")
    labels: dict[str, str] | None = Field(None, description="Resource labels")


class RepositoryDockerConfig(BaseModel):
    """Docker specific settings of an Artifact Registry repository."""

    immutable_tags: bool = Field(False, description="Reject re-pushing an existing tag")


class RepositorySpec(ResourceSpec):
    """Artifact Registry repository."""

    resource_type: ClassVar[str] = "gcp:artifactregistry/repository:Repository"
    outputs: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
    }

    repository_id: str = Field(..., description="Repository identifier")
    location: Input[str] = Field(..., description="Region of the repository")
    format: str = Field("DOCKER", description="Package format")
    description: str | None = None
    docker_config: RepositoryDockerConfig | None = None
    labels: dict[str, str] | None = None


class NodeConfig(BaseModel):
    machine_type: str = "e2-medium"


class NodePoolAutoscaling(BaseModel):
    min_node_count: int = Field(1, ge=0)
    max_node_count: int = Field(3, ge=1)


class NodePool(BaseModel):
    """Node pool of a standard (non-autopilot) cluster."""

    name: str
    initial_node_count: int = Field(1, ge=0)
    node_config: NodeConfig | None = None
    autoscaling: NodePoolAutoscaling | None = None


class AddonToggle(BaseModel):
    disabled: bool = False


class AddonsConfig(BaseModel):
    horizontal_pod_autoscaling: AddonToggle | None = None
    http_load_balancing: AddonToggle | None = None


class ClusterSpec(ResourceSpec):
    """
    GKE cluster, either autopilot or with explicit node pools.

    The CA certificate output may be missing (e.g. while the backend has not
    reported master auth yet); it then resolves to None.
    """

    resource_type: ClassVar[str] = "gcp:container/cluster:Cluster"
    outputs: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "endpoint": "endpoint",
        "cluster_ca_certificate": "master_auth.cluster_ca_certificate",
    }
    optional_outputs: ClassVar[frozenset[str]] = frozenset({"cluster_ca_certificate"})

    location: Input[str] = Field(..., description="Region or zone")
    name: str | None = None
    deletion_protection: bool = True
    enable_autopilot: bool | None = None
    node_version: str | None = None
    min_master_version: str | None = None
    initial_node_count: int | None = None
    node_pools: list[NodePool] | None = None
    addons_config: AddonsConfig | None = None
    resource_labels: dict[str, str] | None = None


class DatabaseSettings(BaseModel):
    tier: str = Field(..., description="Machine tier, validated by Cloud SQL")
    availability_type: str | None = Field(None, description="ZONAL or REGIONAL")
    disk_size: int | None = Field(None, ge=10)
    user_labels: dict[str, str] | None = None


class DatabaseInstanceSpec(ResourceSpec):
    """Cloud SQL instance."""

    resource_type: ClassVar[str] = "gcp:sql/databaseInstance:DatabaseInstance"
    outputs: ClassVar[dict[str, str]] = {
        "name": "name",
        "connection_name": "connection_name",
        "public_ip_address": "public_ip_address",
        "self_link": "self_link",
    }
    optional_outputs: ClassVar[frozenset[str]] = frozenset({"public_ip_address"})

    database_version: str = Field(..., description="e.g. POSTGRES_16")
    region: Input[str]
    settings: DatabaseSettings
    name: str | None = None
    deletion_protection: bool = True
