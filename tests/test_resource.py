"""
Tests for resource specifications, handles and the provisioner.
"""

import asyncio

import pytest
from pydantic import ValidationError

from moraine.core.cell import Cell, CellState
from moraine.core.resource import DuplicateResourceError, Provisioner, ProvisioningError
from moraine.providers.base import Backend
from moraine.providers.memory import MemoryBackend
from moraine.resources import BucketSpec, ClusterSpec, DeploymentSpec, NamespaceSpec


class RecordingBackend(Backend):
    """Backend that echoes properties and omits optional outputs."""

    def __init__(self):
        self.calls = []

    async def declare(self, name, resource_type, properties, provider=None, depends_on=()):
        self.calls.append(name)
        return {"id": name, "name": name, "endpoint": "10.0.0.1", **properties}

    def get_backend_name(self):
        return "recording"


class TestResourceSpec:
    """Tests for pydantic resource specifications."""

    def test_missing_field(self):
        """Test that structural errors surface at construction."""
        with pytest.raises(ValidationError):
            BucketSpec()

    def test_unknown_field(self):
        """Test that unknown fields are rejected."""
        with pytest.raises(ValidationError):
            BucketSpec(location="EU", colour="blue")

    def test_invalid_value(self):
        """Test field constraints."""
        with pytest.raises(ValidationError):
            DeploymentSpec(namespace="apps", labels={"app": "x"}, image="nginx", replicas=-1)

    def test_properties_keep_cells(self):
        """Test that pending cells survive into the properties."""
        namespace = Cell()
        spec = DeploymentSpec(namespace=namespace, labels={"app": "x"}, image="nginx")

        properties = spec.properties()

        assert properties["namespace"] is namespace
        assert "name" not in properties
        assert properties["replicas"] == 1


class TestProvisioner:
    """Tests for Provisioner.declare."""

    def test_declare_returns_immediately(self):
        """Test that submission waits for cells inside the specification."""
        backend = MemoryBackend()

        async def scenario():
            provisioner = Provisioner(backend)
            location = Cell()
            handle = provisioner.declare("assets", BucketSpec(location=location))

            await asyncio.sleep(0.01)
            assert backend.submitted() == []
            assert handle.ready.state is CellState.PENDING

            location.resolve("EU")
            return await handle["url"]

        url = asyncio.run(scenario())

        assert url.startswith("gs://assets-")
        assert backend.resources["assets"].properties["location"] == "EU"

    def test_upstream_failure_skips_backend(self):
        """Test that a failed input fails the handle without a backend call."""
        backend = MemoryBackend()
        error = RuntimeError("cluster endpoint unavailable")

        async def scenario():
            provisioner = Provisioner(backend)
            namespace = Cell()
            handle = provisioner.declare(
                "web",
                DeploymentSpec(namespace=namespace, labels={"app": "web"}, image="nginx"),
            )
            namespace.fail(error)
            failures = await provisioner.wait()
            return handle, failures

        handle, failures = asyncio.run(scenario())

        assert backend.submitted() == []
        assert handle.ready.error is error
        assert handle["name"].error is error
        assert failures == {"web": error}

    def test_backend_failure_is_wrapped(self):
        """Test that backend errors name the failing resource."""
        backend = MemoryBackend(failures={"assets": "quota exceeded"})

        async def scenario():
            provisioner = Provisioner(backend)
            handle = provisioner.declare("assets", BucketSpec(location="EU"))
            await provisioner.wait()
            return handle

        handle = asyncio.run(scenario())
        error = handle.ready.error

        assert isinstance(error, ProvisioningError)
        assert error.resource == "assets"
        assert error.resource_type == "gcp:storage/bucket:Bucket"
        assert "quota exceeded" in str(error)

    def test_duplicate_name(self):
        """Test that resource names are unique within a run."""

        async def scenario():
            provisioner = Provisioner(MemoryBackend())
            provisioner.declare("assets", BucketSpec(location="EU"))
            with pytest.raises(DuplicateResourceError):
                provisioner.declare("assets", BucketSpec(location="US"))
            await provisioner.wait()

        asyncio.run(scenario())

    def test_rejects_plain_dict(self):
        """Test that only specifications can be declared."""
        provisioner = Provisioner(MemoryBackend())

        with pytest.raises(TypeError):
            provisioner.declare("assets", {"location": "EU"})

    def test_provider_and_depends_on(self):
        """Test that submission waits for the provider and dependencies."""
        backend = MemoryBackend(delays={"cluster": 0.02})

        async def scenario():
            provisioner = Provisioner(backend)
            cluster = provisioner.declare("cluster", ClusterSpec(location="europe-west1"))
            namespace = provisioner.declare("ns", NamespaceSpec(), provider=cluster)
            await provisioner.wait()
            return namespace

        asyncio.run(scenario())

        assert backend.index("submit", "ns") > backend.index("complete", "cluster")
        assert backend.resources["ns"].provider == "cluster"

    def test_optional_output_defaults_to_none(self):
        """Test that a missing optional output resolves to None."""
        backend = RecordingBackend()

        async def scenario():
            provisioner = Provisioner(backend)
            cluster = provisioner.declare("cluster", ClusterSpec(location="europe-west1"))
            return await cluster["cluster_ca_certificate"], await cluster["endpoint"]

        certificate, endpoint = asyncio.run(scenario())

        assert certificate is None
        assert endpoint == "10.0.0.1"
        assert backend.calls == ["cluster"]

    def test_unknown_output(self):
        """Test that asking for an undeclared output lists the available ones."""

        async def scenario():
            provisioner = Provisioner(MemoryBackend())
            bucket = provisioner.declare("assets", BucketSpec(location="EU"))
            await provisioner.wait()
            return bucket

        bucket = asyncio.run(scenario())

        with pytest.raises(KeyError, match="url"):
            bucket["endpoint"]


class TestMemoryBackend:
    """Tests for the simulated backend."""

    def test_backend_name(self):
        assert MemoryBackend().get_backend_name() == "memory"
        assert RecordingBackend().get_backend_name() == "recording"

    def test_resubmit_updates_in_place(self):
        """Test that declaring a name again bumps its revision."""
        backend = MemoryBackend(project="demo")

        async def scenario():
            await backend.declare("assets", "gcp:storage/bucket:Bucket", {"location": "EU"})
            return await backend.declare(
                "assets", "gcp:storage/bucket:Bucket", {"location": "US", "name": "assets-us"},
            )

        outputs = asyncio.run(scenario())
        resource = backend.resources["assets"]

        assert list(backend.resources) == ["assets"]
        assert resource.revision == 2
        assert resource.properties == {"location": "US", "name": "assets-us"}
        assert resource.outputs["url"] == outputs["url"] == "gs://assets-us"
        assert backend.submitted() == ["assets", "assets"]

    def test_first_revision(self, backend):
        """Test that a new resource starts at revision 1."""
        asyncio.run(backend.declare("assets", "gcp:storage/bucket:Bucket", {"location": "EU"}))

        assert backend.resources["assets"].revision == 1
