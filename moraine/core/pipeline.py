"""
Pipeline driver: runs provisioning stages in dependency order.

The pipeline knows its stages in a fixed call order and checks that order
against the stage graph before anything is declared. During a run every
stage is started as soon as the values it consumes have resolved, so stages
without a dependency between them have their backend requests in flight at
the same time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from moraine.core.cell import Cell
from moraine.core.context import ProvisioningContext
from moraine.core.dag import StageGraph, StageGraphError
from moraine.core.exports import ExportTable
from moraine.core.resource import Provisioner, ResourceHandle
from moraine.core.stage import Stage, StageCallable, StageContext, StageContractError

if TYPE_CHECKING:
    from moraine.providers.base import Backend

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Raised when a pipeline is invalid or a run did not succeed."""

    def __init__(self, message: str, result: "RunResult | None" = None):
        super().__init__(message)
        self.result = result


@dataclass
class RunResult:
    """
    Outcome of one pipeline run.

    Partially provisioned resources are not cleaned up; the result only
    reports what happened.
    """

    pipeline: str
    table: ExportTable
    exports: dict[str, Any] = field(default_factory=dict)
    """Resolved export values"""

    completed: list[str] = field(default_factory=list)
    """Stages whose resources were all provisioned"""

    failed: dict[str, BaseException] = field(default_factory=dict)
    """Stages that raised or whose resources failed"""

    skipped: dict[str, BaseException] = field(default_factory=dict)
    """Stages never invoked because an input failed"""

    resource_failures: dict[str, BaseException] = field(default_factory=dict)
    """Failures by resource name"""

    export_failures: dict[str, BaseException] = field(default_factory=dict)
    """Exports whose value did not resolve"""

    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return not (self.failed or self.skipped or self.resource_failures or self.export_failures)

    def describe_failure(self) -> str:
        """Human-readable summary naming failing stages and resources."""
        lines = []
        for stage, error in self.failed.items():
            lines.append(f"stage '{stage}' failed: {error}")
        for resource, error in self.resource_failures.items():
            lines.append(f"resource '{resource}' failed: {error}")
        for stage, error in self.skipped.items():
            lines.append(f"stage '{stage}' skipped: {error}")
        for name, error in self.export_failures.items():
            if name not in self.exports:
                lines.append(f"export '{name}' unresolved: {error}")
        return "\n".join(lines)

    def raise_for_failure(self) -> None:
        """
        Raise if the run did not succeed.

        Raises:
            PipelineError: Carrying this result and a diagnostic message
        """
        if not self.ok:
            raise PipelineError(
                f"Pipeline '{self.pipeline}' failed:\n{self.describe_failure()}",
                result=self,
            )


class ProvisioningPipeline:
    """
    Ordered collection of stages with explicit data dependencies.

    Example:
        pipeline = ProvisioningPipeline(name="demo")

        @pipeline.stage(produces=("bucket",), exports=("bucketUrl",))
        def storage(ctx):
            bucket = ctx.declare("assets", BucketSpec(location="EU"))
            ctx.export("bucketUrl", bucket["url"])
            return {"bucket": bucket}

        result = pipeline.run(context, MemoryBackend())
        result.raise_for_failure()
    """

    def __init__(self, stages: list[Stage] | None = None, name: str = "moraine"):
        self.name = name
        self._stages: list[Stage] = []
        for stage in stages or []:
            self.add_stage(stage)

    def add_stage(self, stage: Stage) -> Stage:
        """Append a stage to the call order."""
        if any(existing.name == stage.name for existing in self._stages):
            raise PipelineError(f"Stage '{stage.name}' is already part of pipeline '{self.name}'")
        self._stages.append(stage)
        return stage

    def stage(
        self,
        name: str | None = None,
        produces: tuple[str, ...] = (),
        consumes: tuple[str, ...] = (),
        exports: tuple[str, ...] = (),
        description: str = "",
        enabled: Callable[[ProvisioningContext], bool] | None = None,
    ) -> Callable[[StageCallable], StageCallable]:
        """
        Decorator to register a function as a stage of this pipeline.

        Args:
            name: Stage name (defaults to the function name)
            produces: Names of the values the function returns
            consumes: Names of values it takes from earlier stages
            exports: Export names it may record
            description: Short description shown by ``moraine graph``
            enabled: Predicate deciding from configuration whether to run it
        """
        def decorator(func: StageCallable) -> StageCallable:
            self.add_stage(Stage(
                name=name or func.__name__,
                func=func,
                produces=tuple(produces),
                consumes=tuple(consumes),
                exports=tuple(exports),
                description=description or (func.__doc__ or "").strip().split("\n")[0],
                enabled=enabled,
            ))
            return func

        return decorator

    @property
    def stages(self) -> list[Stage]:
        return list(self._stages)

    def active_stages(self, ctx: ProvisioningContext | None = None) -> list[Stage]:
        """Stages that run for ``ctx``; all stages when no context is given."""
        if ctx is None:
            return self.stages
        return [stage for stage in self._stages if stage.is_enabled(ctx)]

    def graph(self, ctx: ProvisioningContext | None = None) -> StageGraph:
        """Build the stage graph of the active stages."""
        return StageGraph.build(self.active_stages(ctx))

    def validate(self, ctx: ProvisioningContext | None = None) -> StageGraph:
        """
        Check the stage graph and the call order.

        Returns:
            The validated stage graph

        Raises:
            PipelineError: If a consumed name has no producer, a name has two
                producers, the graph has a cycle, or a stage is called before
                one of its dependencies
        """
        try:
            graph = self.graph(ctx)
            cycle = graph.detect_cycles()
            if cycle:
                raise StageGraphError(f"Circular dependency detected: {' -> '.join(cycle)}")
            graph.verify_order(stage.name for stage in self.active_stages(ctx))
        except StageGraphError as e:
            raise PipelineError(f"Invalid pipeline '{self.name}': {e}") from e
        return graph

    def export_names(self, ctx: ProvisioningContext | None = None) -> list[str]:
        """Every export name the active stages may record."""
        names: list[str] = []
        for stage in self.active_stages(ctx):
            names.extend(stage.exports)
        return names

    def run(
        self,
        ctx: ProvisioningContext,
        backend: "Backend",
        exports: ExportTable | None = None,
    ) -> RunResult:
        """Run the pipeline to completion on a fresh event loop."""
        return asyncio.run(self.execute(ctx, backend, exports=exports))

    async def execute(
        self,
        ctx: ProvisioningContext,
        backend: "Backend",
        exports: ExportTable | None = None,
    ) -> RunResult:
        """
        Run every active stage and wait for all resources and exports.

        Args:
            ctx: Read-only configuration for this run
            backend: Backend receiving the resource declarations
            exports: Export table to record into (a new one by default)

        Returns:
            RunResult describing exports, failures and skipped stages

        Raises:
            PipelineError: If the pipeline fails validation
        """
        self.validate(ctx)
        stages = self.active_stages(ctx)
        table = exports if exports is not None else ExportTable()
        provisioner = Provisioner(backend)
        result = RunResult(pipeline=self.name, table=table)
        slots: dict[str, Cell[Any]] = {
            produced: Cell(label=produced)
            for stage in stages
            for produced in stage.produces
        }

        logger.info(
            "Running pipeline '%s' on %s backend (stack=%s, stages=%d)",
            self.name,
            backend.get_backend_name(),
            ctx.stack,
            len(stages),
        )
        start_time = time.monotonic()

        await asyncio.gather(*(
            self._run_stage(stage, ctx, provisioner, table, slots, result)
            for stage in stages
        ))

        result.resource_failures = await provisioner.wait()
        resolved = await table.resolve()
        result.exports = resolved.values
        result.export_failures = resolved.failures
        result.duration = time.monotonic() - start_time

        if result.ok:
            logger.info("Pipeline '%s' completed in %.2fs", self.name, result.duration)
        else:
            logger.error("Pipeline '%s' failed after %.2fs", self.name, result.duration)
        return result

    async def _run_stage(
        self,
        stage: Stage,
        ctx: ProvisioningContext,
        provisioner: Provisioner,
        table: ExportTable,
        slots: dict[str, Cell[Any]],
        result: RunResult,
    ) -> None:
        inputs: dict[str, Any] = {}
        try:
            for consumed in stage.consumes:
                value = await slots[consumed]
                await _settled(value)
                inputs[consumed] = value
        except Exception as e:
            logger.warning("Skipping stage '%s': input failed: %s", stage.name, e)
            result.skipped[stage.name] = e
            _fail_slots(stage, slots, e)
            return

        logger.info("Starting stage '%s'", stage.name)
        start_time = time.monotonic()
        declared_before = set(provisioner.handles)
        stage_ctx = StageContext(stage, ctx, provisioner, table)

        try:
            produced = stage.func(stage_ctx, **inputs) or {}
            missing = set(stage.produces) - set(produced)
            extra = set(produced) - set(stage.produces)
            if missing or extra:
                raise StageContractError(
                    f"Stage '{stage.name}' must return {sorted(stage.produces)}, "
                    f"got {sorted(produced)}"
                )
        except Exception as e:
            logger.exception("Stage '%s' failed", stage.name)
            result.failed[stage.name] = e
            _fail_slots(stage, slots, e)
            return

        # A stage is done once every resource it declared has settled
        own = [
            handle for name, handle in provisioner.handles.items()
            if name not in declared_before
        ]
        for key, value in produced.items():
            slots[key].resolve(value)

        for handle in own:
            try:
                await handle.ready
            except Exception as e:
                if stage.name not in result.failed:
                    logger.error("Stage '%s' failed: %s", stage.name, e)
                    result.failed[stage.name] = e

        if stage.name not in result.failed:
            logger.info(
                "Completed stage '%s' in %.2fs",
                stage.name,
                time.monotonic() - start_time,
            )
            result.completed.append(stage.name)


async def _settled(value: Any) -> None:
    if isinstance(value, ResourceHandle):
        await value.ready
    elif isinstance(value, Cell):
        await value


def _fail_slots(stage: Stage, slots: dict[str, Cell[Any]], error: BaseException) -> None:
    for produced in stage.produces:
        if not slots[produced].settled:
            slots[produced].fail(error)
