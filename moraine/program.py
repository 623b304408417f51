"""
Pulumi program entry point.

``pulumi up`` runs ``moraine/__main__.py``, which calls ``main``. The stack
configuration is read through ``pulumi.Config`` and every export the active
stages declare is registered with ``pulumi.export``.
"""

import asyncio
import logging
from pathlib import Path

from moraine.core.context import ProvisioningContext
from moraine.core.pipeline import PipelineError, ProvisioningPipeline, RunResult
from moraine.providers.base import Backend
from moraine.providers.pulumi_backend import PulumiBackend, UnknownOutputError
from moraine.stages import build_pipeline

logger = logging.getLogger(__name__)


def pulumi_context(workdir: str | Path | None = None) -> ProvisioningContext:
    """Build a provisioning context that reads the current Pulumi stack."""
    import pulumi

    configs: dict[str, pulumi.Config] = {}

    def read(key: str) -> str | None:
        namespace, _, name = key.partition(":")
        if namespace not in configs:
            configs[namespace] = pulumi.Config(namespace)
        return configs[namespace].get(name)

    return ProvisioningContext(
        reader=read,
        project=pulumi.get_project(),
        stack=pulumi.get_stack(),
        workdir=Path(workdir) if workdir is not None else Path.cwd(),
    )


def _caused_by_unknown(error: BaseException | None) -> bool:
    seen = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, UnknownOutputError):
            return True
        seen.add(id(error))
        error = getattr(error, "cause", None) or error.__cause__
    return False


def _only_unknowns(result: RunResult) -> bool:
    """Whether every failure of the run comes from a value unknown at preview."""
    errors = [
        *result.failed.values(),
        *result.skipped.values(),
        *result.resource_failures.values(),
        *result.export_failures.values(),
    ]
    return bool(errors) and all(_caused_by_unknown(error) for error in errors)


def _unknown():
    import pulumi

    value: asyncio.Future = asyncio.get_running_loop().create_future()
    value.set_result(None)
    known: asyncio.Future = asyncio.get_running_loop().create_future()
    known.set_result(False)
    return pulumi.Output(set(), value, known)


async def _export(run: "asyncio.Future[RunResult]", name: str):
    import pulumi

    result = await run
    if name in result.exports:
        return result.exports[name]
    if pulumi.runtime.is_dry_run() and _only_unknowns(result):
        logger.debug("Export '%s' is unknown until the update", name)
        return _unknown()
    raise PipelineError(
        f"Export '{name}' is unavailable:\n{result.describe_failure()}",
        result=result,
    )


def export_pipeline(
    pipeline: ProvisioningPipeline,
    ctx: ProvisioningContext,
    backend: Backend,
) -> "asyncio.Future[RunResult]":
    """
    Start the pipeline and register each of its exports as a stack output.

    Returns:
        Future of the run result
    """
    import pulumi

    run = asyncio.ensure_future(pipeline.execute(ctx, backend))
    for name in pipeline.export_names(ctx):
        pulumi.export(name, pulumi.Output.from_input(_export(run, name)))
    return run


def main() -> None:
    """Run the microservice stack inside the Pulumi engine."""
    ctx = pulumi_context()
    export_pipeline(build_pipeline(name=ctx.project), ctx, PulumiBackend())
