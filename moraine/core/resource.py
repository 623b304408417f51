"""
Resource declarations: specifications, handles and the provisioner.

A stage describes the resource it wants with a ``ResourceSpec`` and hands it
to ``Provisioner.declare``. The provisioner returns a ``ResourceHandle``
straight away; the creation request itself is sent to the backend once every
cell referenced by the specification has resolved.
"""

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Iterable, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from moraine.core.cell import Cell

if TYPE_CHECKING:
    from moraine.providers.base import Backend

logger = logging.getLogger(__name__)

T = TypeVar("T")

Input = Union[T, Cell]
"""A specification field that accepts a plain value or a pending cell"""


class DuplicateResourceError(Exception):
    """Raised when a resource name is declared twice in one run."""
    pass


class ProvisioningError(Exception):
    """Raised when the backend fails to create or update a resource."""

    def __init__(self, resource: str, resource_type: str, cause: BaseException):
        self.resource = resource
        self.resource_type = resource_type
        self.cause = cause
        super().__init__(f"Failed to provision {resource_type} '{resource}': {cause}")


class ResourceSpec(BaseModel):
    """
    Base class for typed resource specifications.

    Subclasses declare their fields with pydantic, set ``resource_type`` to
    the backend's type token, and list the attributes the backend fills in
    via ``outputs`` (output name -> attribute path on the created resource).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    resource_type: ClassVar[str] = ""
    outputs: ClassVar[dict[str, str]] = {}
    optional_outputs: ClassVar[frozenset[str]] = frozenset()

    def properties(self) -> dict[str, Any]:
        """Field values with unset options removed; cells are left in place."""
        return self.model_dump(exclude_none=True)


class ResourceHandle:
    """
    Live reference to a declared resource.

    ``ready`` resolves to the full dictionary of outputs once the backend
    accepted the resource. Each output is also available as its own cell via
    ``handle["name"]``.
    """

    def __init__(self, name: str, spec: ResourceSpec, ready: Cell[dict[str, Any]]):
        self.name = name
        self.spec = spec
        self.ready = ready
        self._outputs = {
            key: ready.map(_output_getter(name, key), label=f"{name}.{key}")
            for key in spec.outputs
        }

    @property
    def resource_type(self) -> str:
        return self.spec.resource_type

    @property
    def outputs(self) -> dict[str, Cell[Any]]:
        return dict(self._outputs)

    def __getitem__(self, key: str) -> Cell[Any]:
        try:
            return self._outputs[key]
        except KeyError:
            raise KeyError(
                f"{self.resource_type} '{self.name}' has no output '{key}'. "
                f"Available: {', '.join(sorted(self._outputs))}"
            ) from None

    def __repr__(self) -> str:
        return f"ResourceHandle({self.resource_type}, name={self.name}, {self.ready.state.value})"


def _output_getter(resource: str, key: str):
    def _get(outputs: dict[str, Any]) -> Any:
        if key not in outputs:
            raise KeyError(f"Backend returned no '{key}' for resource '{resource}'")
        return outputs[key]

    return _get


class Provisioner:
    """
    Submits resource declarations to a backend.

    One provisioner exists per pipeline run. It enforces unique resource
    names and keeps every submission so the driver can wait for all of them.

    Example:
        provisioner = Provisioner(MemoryBackend())
        bucket = provisioner.declare("assets", BucketSpec(location="EU"))
        url = bucket["url"]
    """

    def __init__(self, backend: "Backend"):
        self.backend = backend
        self._handles: dict[str, ResourceHandle] = {}

    def declare(
        self,
        name: str,
        spec: ResourceSpec,
        provider: ResourceHandle | None = None,
        depends_on: Iterable[ResourceHandle] = (),
    ) -> ResourceHandle:
        """
        Declare a resource and schedule its creation.

        Must be called from inside the running event loop. Returns without
        waiting; the backend is called once every cell in ``spec``, the
        provider handle and each ``depends_on`` handle have resolved. If any
        of them fails, the backend is never called and the handle fails with
        the same error.

        Args:
            name: Logical resource name, unique within the run
            spec: Resource specification
            provider: Handle of an explicit provider resource to create with
            depends_on: Handles that must be ready before submission

        Returns:
            Handle whose cells resolve once the backend reports success

        Raises:
            DuplicateResourceError: If ``name`` was already declared
            TypeError: If ``spec`` is not a ResourceSpec
        """
        if name in self._handles:
            raise DuplicateResourceError(f"Resource '{name}' is already declared in this run")
        if not isinstance(spec, ResourceSpec):
            raise TypeError(f"Resource '{name}' needs a ResourceSpec, got {type(spec).__name__}")

        depends_on = list(depends_on)
        logger.info("Declaring %s '%s'", spec.resource_type, name)

        ready = Cell.from_awaitable(
            self._submit(name, spec, provider, depends_on),
            label=name,
        )
        handle = ResourceHandle(name, spec, ready)
        self._handles[name] = handle
        return handle

    async def _submit(
        self,
        name: str,
        spec: ResourceSpec,
        provider: ResourceHandle | None,
        depends_on: list[ResourceHandle],
    ) -> dict[str, Any]:
        properties = await Cell.from_input(spec.properties())
        if provider is not None:
            await provider.ready
        for dependency in depends_on:
            await dependency.ready

        logger.debug("Submitting %s '%s'", spec.resource_type, name)
        try:
            outputs = await self.backend.declare(
                name,
                spec.resource_type,
                properties,
                provider=provider.name if provider is not None else None,
                depends_on=[dependency.name for dependency in depends_on],
            )
        except Exception as e:
            logger.error("Backend rejected %s '%s': %s", spec.resource_type, name, e)
            raise ProvisioningError(name, spec.resource_type, e) from e

        for key in spec.optional_outputs:
            outputs.setdefault(key, None)
        logger.info("Provisioned %s '%s'", spec.resource_type, name)
        return outputs

    @property
    def handles(self) -> dict[str, ResourceHandle]:
        """Every handle declared so far, by name."""
        return dict(self._handles)

    async def wait(self) -> dict[str, BaseException]:
        """
        Wait for every declared resource to settle.

        Returns:
            Failures by resource name (empty when everything succeeded)
        """
        failures: dict[str, BaseException] = {}
        # New declarations may appear while waiting (continuations of stages)
        seen: set[str] = set()
        while len(seen) < len(self._handles):
            for name, handle in list(self._handles.items()):
                if name in seen:
                    continue
                seen.add(name)
                try:
                    await handle.ready
                except Exception as e:
                    failures[name] = e
        return failures
