"""
Stage primitives: a named unit of orchestration with declared inputs and
outputs.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from moraine.core.context import ProvisioningContext
from moraine.core.exports import ExportTable
from moraine.core.resource import Provisioner, ResourceHandle, ResourceSpec


class StageContractError(Exception):
    """Raised when a stage returns or exports names it did not declare."""
    pass


class StageCallable(Protocol):
    """Callable protocol for a stage function."""

    def __call__(self, ctx: "StageContext", **inputs: Any) -> Mapping[str, Any] | None:
        """Declare resources and return the produced handles or cells."""


@dataclass(frozen=True)
class Stage:
    """
    A provisioning stage.

    ``consumes`` names values produced by earlier stages; the driver passes
    them to ``func`` as keyword arguments. ``produces`` names the entries of
    the mapping ``func`` returns. ``exports`` lists every export name the
    stage may record.
    """

    name: str
    func: StageCallable
    produces: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()
    exports: tuple[str, ...] = ()
    description: str = ""
    enabled: Callable[[ProvisioningContext], bool] | None = None

    def is_enabled(self, ctx: ProvisioningContext) -> bool:
        return self.enabled is None or self.enabled(ctx)


class StageContext:
    """
    What a stage function gets to work with.

    Configuration is read-only. Resources are declared through the run's
    provisioner and exports are recorded through ``export``, which only
    accepts names the stage declared.
    """

    def __init__(
        self,
        stage: Stage,
        config: ProvisioningContext,
        provisioner: Provisioner,
        exports: ExportTable,
    ):
        self.stage = stage
        self.config = config
        self._provisioner = provisioner
        self._exports = exports

    def declare(
        self,
        name: str,
        spec: ResourceSpec,
        provider: ResourceHandle | None = None,
        depends_on: tuple[ResourceHandle, ...] | list[ResourceHandle] = (),
    ) -> ResourceHandle:
        """Declare a resource on behalf of this stage."""
        return self._provisioner.declare(name, spec, provider=provider, depends_on=depends_on)

    def export(self, name: str, value: Any) -> None:
        """
        Record a named output.

        Raises:
            StageContractError: If the stage did not declare ``name``
            DuplicateExportError: If ``name`` was already exported
        """
        if name not in self.stage.exports:
            raise StageContractError(
                f"Stage '{self.stage.name}' exports '{name}' without declaring it"
            )
        self._exports.export(name, value)

    def __repr__(self) -> str:
        return f"StageContext(stage={self.stage.name}, stack={self.config.stack})"
