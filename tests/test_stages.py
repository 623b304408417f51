"""
Tests for the individual microservice stages.
"""

import asyncio

import pytest

from moraine.core.context import retrieve_region
from moraine.core.exports import ExportTable
from moraine.core.resource import Provisioner
from moraine.core.stage import StageContext, StageContractError
from moraine.stages import build_pipeline
from moraine.stages.cluster import autopilot_cluster_spec, regional_cluster_spec


def run_stage(name, context, backend, **inputs):
    """Invoke one stage on its own and wait for its resources and exports."""

    async def scenario():
        stage = next(stage for stage in build_pipeline().stages if stage.name == name)
        provisioner = Provisioner(backend)
        exports = ExportTable()
        produced = stage.func(StageContext(stage, context, provisioner, exports), **inputs)
        failures = await provisioner.wait()
        resolved = await exports.resolve()
        return produced, failures, resolved

    return asyncio.run(scenario())


class TestRegion:
    """Tests for the region helper."""

    def test_default_region(self, context):
        """Test the fallback when gcp:region is unset."""
        assert retrieve_region(context) == "europe-west1"

    def test_configured_region(self, make_context):
        """Test reading gcp:region."""
        assert retrieve_region(make_context({"gcp:region": "europe-west3"})) == "europe-west3"


class TestStorageStage:
    """Tests for the storage stage."""

    def test_bucket(self, context, backend):
        """Test the bucket declaration and its export."""
        produced, failures, resolved = run_stage("storage", context, backend)

        bucket = backend.resources[produced["bucket"].name]
        assert failures == {}
        assert bucket.properties["location"] == "EU"
        assert bucket.properties["force_destroy"] is True
        assert bucket.properties["cors"][0]["methods"] == ["GET", "HEAD"]
        assert resolved.values["bucketUrl"] == bucket.outputs["url"]


class TestRegistryStage:
    """Tests for the registry stage."""

    def test_repository_in_default_region(self, context, backend):
        """Test that the repository lands in the default region."""
        produced, _, resolved = run_stage("registry", context, backend)

        properties = backend.resources["microservice-repo"].properties
        assert properties["location"] == "europe-west1"
        assert properties["format"] == "DOCKER"
        assert properties["docker_config"] == {"immutable_tags": True}
        assert resolved.values["repositoryId"] == (
            "projects/demo/locations/europe-west1/repositories/microservice-repo"
        )


class TestClusterStage:
    """Tests for the cluster stage."""

    def test_autopilot_default(self, context, backend):
        """Test that autopilot is the default cluster mode."""
        _, _, resolved = run_stage("cluster", context, backend)

        cluster = backend.resources["moraine-auto-cluster"]
        assert cluster.properties["enable_autopilot"] is True
        assert cluster.properties["location"] == "europe-west1"
        assert cluster.properties["deletion_protection"] is False
        assert resolved.values["kubernetesClusterEndpoint"] == cluster.outputs["endpoint"]
        assert resolved.values["kubernetesClusterName"] == cluster.outputs["name"]

    def test_regional_mode(self, make_context, backend):
        """Test the regional cluster with a node pool."""
        ctx = make_context({"moraine:clusterMode": "regional", "gcp:region": "us-east1"})

        run_stage("cluster", ctx, backend)

        cluster = backend.resources["moraine-regional-cluster"]
        pool = cluster.properties["node_pools"][0]
        assert cluster.properties["location"] == "us-east1"
        assert pool["node_config"]["machine_type"] == "n2-standard-8"
        assert pool["autoscaling"] == {"min_node_count": 1, "max_node_count": 3}

    def test_unknown_mode(self, make_context, backend):
        """Test that an unknown mode is rejected before declaring anything."""
        ctx = make_context({"moraine:clusterMode": "zonal"})

        with pytest.raises(ValueError, match="zonal"):
            run_stage("cluster", ctx, backend)
        assert backend.submitted() == []

    def test_cluster_specs(self):
        """Test the two cluster shapes."""
        assert autopilot_cluster_spec("europe-west1").node_pools is None
        assert regional_cluster_spec("europe-west1").enable_autopilot is None


class TestDatabaseStage:
    """Tests for the database stage."""

    def test_defaults(self, context, backend):
        """Test the default version and tier."""
        _, _, resolved = run_stage("database", context, backend)

        database = backend.resources["microservice-db"]
        assert database.properties["database_version"] == "POSTGRES_16"
        assert database.properties["settings"]["tier"] == "db-f1-micro"
        assert database.properties["region"] == "europe-west1"
        assert resolved.values["databaseConnectionName"].startswith("demo:europe-west1:")

    def test_configured_tier(self, make_context, backend):
        """Test that the tier is passed on unchecked."""
        run_stage("database", make_context({"moraine:databaseTier": "db-custom-2-7680"}), backend)

        assert backend.resources["microservice-db"].properties["settings"]["tier"] == "db-custom-2-7680"


class TestReadmeStage:
    """Tests for the readme stage."""

    def test_readme_verbatim(self, context, backend, workdir):
        """Test that the file is exported unchanged."""
        _, _, resolved = run_stage("readme", context, backend)

        assert resolved.values["readme"] == (workdir / "Pulumi.README.md").read_text()

    def test_missing_readme(self, make_context, backend):
        """Test that a missing README is fatal."""
        with pytest.raises(OSError):
            run_stage("readme", make_context({"moraine:readme": "MISSING.md"}), backend)


class TestStageContext:
    """Tests for the stage context."""

    def test_undeclared_export(self, context, backend):
        """Test that a stage can only export names it declared."""
        stage = next(stage for stage in build_pipeline().stages if stage.name == "storage")
        stage_ctx = StageContext(stage, context, Provisioner(backend), ExportTable())

        with pytest.raises(StageContractError):
            stage_ctx.export("repositoryId", "x")
