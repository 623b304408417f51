"""
In-memory backend for development, dry runs and tests.
"""

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from moraine.providers.base import Backend

logger = logging.getLogger(__name__)


class SimulatedFailure(Exception):
    """Failure injected into a MemoryBackend."""
    pass


@dataclass
class SubmittedResource:
    """A resource as the memory backend recorded it."""

    name: str
    resource_type: str
    properties: dict[str, Any]
    provider: str | None = None
    depends_on: list[str] = field(default_factory=list)
    outputs: dict[str, Any] = field(default_factory=dict)
    revision: int = 1
    """Times the name was submitted to this backend"""


class MemoryBackend(Backend):
    """
    Backend that simulates a cloud provider without network access.

    Generated attributes are derived deterministically from the resource
    name, so repeated runs produce the same endpoints and identifiers.
    Submitting a name again updates the recorded resource in place.

    Useful for:
    - Tests of the orchestration logic
    - ``moraine run`` dry runs
    - Reproducing ordering problems with artificial latency

    Example:
        backend = MemoryBackend(
            project="demo",
            delays={"microservice-db": 0.05},
            failures={"microservice-db": "quota exceeded"},
        )
    """

    def __init__(
        self,
        project: str = "moraine-demo",
        delays: dict[str, float] | None = None,
        failures: dict[str, BaseException | str] | None = None,
        overrides: dict[str, dict[str, Any]] | None = None,
        default_delay: float = 0.0,
    ):
        """
        Create a memory backend.

        Args:
            project: GCP project id used in generated identifiers
            delays: Artificial latency per resource name, in seconds
            failures: Error (or message) to raise per resource name
            overrides: Output values to force per resource name
            default_delay: Latency for resources without an explicit delay
        """
        self.project = project
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.overrides = dict(overrides or {})
        self.default_delay = default_delay

        self.resources: dict[str, SubmittedResource] = {}
        self.events: list[tuple[str, str]] = []
        """(event, resource name) in the order they happened"""

        self._simulators: dict[str, Callable[[str, dict[str, Any]], dict[str, Any]]] = {
            "gcp:storage/bucket:Bucket": self._bucket,
            "gcp:artifactregistry/repository:Repository": self._repository,
            "gcp:container/cluster:Cluster": self._cluster,
            "gcp:sql/databaseInstance:DatabaseInstance": self._database,
            "pulumi:providers:kubernetes": self._kubernetes_provider,
            "kubernetes:core/v1:Namespace": self._kubernetes_object,
            "kubernetes:apps/v1:Deployment": self._kubernetes_object,
            "kubernetes:core/v1:Service": self._kubernetes_object,
            "docker-build:index:Image": self._image,
        }

    def get_backend_name(self) -> str:
        return "memory"

    async def declare(
        self,
        name: str,
        resource_type: str,
        properties: dict[str, Any],
        provider: str | None = None,
        depends_on: list[str] | tuple[str, ...] = (),
    ) -> dict[str, Any]:
        self.events.append(("submit", name))
        if provider is not None and provider not in self.resources:
            raise SimulatedFailure(f"Provider '{provider}' of '{name}' does not exist")
        missing = [dependency for dependency in depends_on if dependency not in self.resources]
        if missing:
            raise SimulatedFailure(f"'{name}' depends on missing resources: {', '.join(missing)}")

        await asyncio.sleep(self.delays.get(name, self.default_delay))

        if name in self.failures:
            self.events.append(("fail", name))
            failure = self.failures[name]
            if isinstance(failure, BaseException):
                raise failure
            raise SimulatedFailure(failure)

        simulate = self._simulators.get(resource_type, self._generic)
        outputs = simulate(name, properties)
        outputs.update(self.overrides.get(name, {}))

        previous = self.resources.get(name)
        self.resources[name] = SubmittedResource(
            name=name,
            resource_type=resource_type,
            properties=properties,
            provider=provider,
            depends_on=list(depends_on),
            outputs=outputs,
            revision=previous.revision + 1 if previous else 1,
        )
        self.events.append(("complete", name))
        logger.debug("Simulated %s '%s': %s", resource_type, name, outputs)
        return dict(outputs)

    # Introspection helpers for tests and dry runs

    def submitted(self) -> list[str]:
        """Resource names in submission order."""
        return [name for event, name in self.events if event == "submit"]

    def index(self, event: str, name: str) -> int:
        """Position of ``(event, name)`` in the event log."""
        return self.events.index((event, name))

    # Simulators

    def _physical_name(self, name: str, properties: dict[str, Any]) -> str:
        # Mirrors Pulumi auto-naming: logical name plus a short stable suffix
        return properties.get("name") or f"{name}-{_digest(name)[:7]}"

    def _bucket(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        physical = self._physical_name(name, properties)
        return {
            "id": physical,
            "name": physical,
            "url": f"gs://{physical}",
            "self_link": f"https://www.googleapis.com/storage/v1/b/{physical}",
        }

    def _repository(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        repository_id = properties["repository_id"]
        location = properties["location"]
        return {
            "id": f"projects/{self.project}/locations/{location}/repositories/{repository_id}",
            "name": repository_id,
        }

    def _cluster(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        physical = self._physical_name(name, properties)
        location = properties["location"]
        certificate = base64.b64encode(f"CA for {physical}".encode()).decode()
        return {
            "id": f"projects/{self.project}/locations/{location}/clusters/{physical}",
            "name": physical,
            "endpoint": _address(name),
            "cluster_ca_certificate": certificate,
        }

    def _database(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        physical = self._physical_name(name, properties)
        return {
            "name": physical,
            "connection_name": f"{self.project}:{properties['region']}:{physical}",
            "public_ip_address": _address(f"{name}-sql"),
            "self_link": (
                f"https://sqladmin.googleapis.com/sql/v1beta4/projects/"
                f"{self.project}/instances/{physical}"
            ),
        }

    def _kubernetes_provider(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        return {"id": _digest(f"{name}:{properties['kubeconfig']}")[:32]}

    def _kubernetes_object(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        return {"name": self._physical_name(name, properties)}

    def _image(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        return {"ref": f"{properties['tags'][0]}@sha256:{_digest(name)}"}

    def _generic(self, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        return {"id": self._physical_name(name, properties), **properties}

    def __repr__(self):
        return f"MemoryBackend(project={self.project}, resources={len(self.resources)})"


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def _address(seed: str) -> str:
    digest = hashlib.sha256(seed.encode()).digest()
    return f"34.{digest[0]}.{digest[1]}.{digest[2] or 1}"
