"""
Backend abstraction: the collaborator that actually creates resources.
"""

from abc import ABC, abstractmethod
from typing import Any


class Backend(ABC):
    """
    Base class for provisioning backends.

    A backend receives fully resolved resource properties and returns the
    attributes it generated for the resource (endpoints, identifiers,
    credentials). Backends own idempotency and retries; the pipeline submits
    each logical resource exactly once per run.

    Example:
        class EchoBackend(Backend):
            async def declare(self, name, resource_type, properties,
                              provider=None, depends_on=()):
                return {"name": name, **properties}

            def get_backend_name(self):
                return "echo"
    """

    @abstractmethod
    async def declare(
        self,
        name: str,
        resource_type: str,
        properties: dict[str, Any],
        provider: str | None = None,
        depends_on: list[str] | tuple[str, ...] = (),
    ) -> dict[str, Any]:
        """
        Create or update a resource.

        Args:
            name: Logical resource name, unique within the run
            resource_type: Type token of the resource (e.g.
                ``gcp:storage/bucket:Bucket``)
            properties: Resolved resource properties
            provider: Name of an explicit provider resource, if any
            depends_on: Names of resources that must exist first

        Returns:
            Output attributes of the created resource

        Raises:
            Exception: Any failure reported by the underlying platform
        """
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend name (memory, pulumi)"""
        pass
