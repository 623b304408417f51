"""
Moraine CLI - Command-line interface for the microservice stack pipeline.
"""

import json
import logging
import sys
from pathlib import Path

import click

from moraine import __version__
from moraine.config import StackConfig, StackConfigError, load_stack_file, parse_overrides
from moraine.core.context import ProvisioningContext
from moraine.core.pipeline import PipelineError
from moraine.defaults import DEFAULT_PROJECT_NAME, PROJECT_KEY
from moraine.providers.memory import MemoryBackend
from moraine.stages import build_pipeline


def _stack_options(command):
    command = click.option(
        "--stack-file",
        "-s",
        type=click.Path(exists=True, dir_okay=False),
        help="Pulumi.<stack>.yaml file to read configuration from",
    )(command)
    command = click.option(
        "--config",
        "-c",
        "overrides",
        multiple=True,
        metavar="KEY=VALUE",
        help="Configuration value, e.g. -c gcp:region=europe-west3 (repeatable)",
    )(command)
    return command


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """
    Moraine - Provisioning pipeline for a GCP microservice stack.

    Declares a bucket, a registry, a GKE cluster, a Cloud SQL database and
    the microservice workload. Use `pulumi up` for real resources; the
    commands below work without cloud access.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@_stack_options
@click.option(
    "--fail",
    "failures",
    multiple=True,
    metavar="RESOURCE",
    help="Make the simulated backend fail this resource (repeatable)",
)
@click.option("--delay", type=float, default=0.0, help="Simulated latency per resource, in seconds")
@click.option("--show-readme", is_flag=True, help="Print the readme export in full")
def run(stack_file: str, overrides: tuple, failures: tuple, delay: float, show_readme: bool):
    """
    Run the pipeline against the simulated backend.

    Every resource is "provisioned" in memory with generated endpoints and
    identifiers, so the wiring between stages can be checked without a
    cloud account.

    Example:
        moraine run
        moraine run -s Pulumi.dev.yaml -c moraine:clusterMode=regional
        moraine run --fail microservice-db
    """
    ctx = _load_context(stack_file, overrides)
    pipeline = build_pipeline()
    backend = MemoryBackend(
        project=ctx.get(PROJECT_KEY, "moraine-demo"),
        failures={name: "simulated failure" for name in failures},
        default_delay=delay,
    )

    click.echo(f"Running pipeline '{pipeline.name}' (stack: {ctx.stack}, backend: {backend.get_backend_name()})")

    try:
        result = pipeline.run(ctx, backend)
    except PipelineError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    click.echo(f"\n Resources: {len(backend.resources)} provisioned")
    for name, resource in backend.resources.items():
        click.echo(f"  - {name} ({resource.resource_type})")

    click.echo(f"\n Exports:")
    for name, value in result.exports.items():
        if name in ("readme", "kubeconfig") and not show_readme:
            first_line = str(value).strip().splitlines()[0] if value else ""
            click.echo(f"  {name}: {first_line} ...")
        else:
            click.echo(f"  {name}: {value}")

    if not result.ok:
        click.echo(f"\n✗ Pipeline '{pipeline.name}' failed:", err=True)
        click.echo(result.describe_failure(), err=True)
        sys.exit(1)

    click.echo(f"\n✓ Pipeline '{pipeline.name}' completed in {result.duration:.2f}s")


@cli.command()
@_stack_options
@click.option("--format", type=click.Choice(["text", "json", "mermaid"]), default="text")
def graph(stack_file: str, overrides: tuple, format: str):
    """
    Display the stage graph.

    Example:
        moraine graph
        moraine graph --format mermaid
        moraine graph -c moraine:buildImage=true --format json
    """
    ctx = _load_context(stack_file, overrides)
    pipeline = build_pipeline()

    try:
        stage_graph = pipeline.validate(ctx)
    except PipelineError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    if format == "json":
        output = {
            "pipeline": pipeline.name,
            "stages": [stage.name for stage in pipeline.active_stages(ctx)],
            "exports": pipeline.export_names(ctx),
            "levels": stage_graph.get_execution_levels(),
            "graph": stage_graph.to_dict(),
        }
        click.echo(json.dumps(output, indent=2))

    elif format == "mermaid":
        click.echo("```mermaid")
        click.echo("graph TD")
        for node_name, node in stage_graph.nodes.items():
            if not node.dependencies and not node.dependents:
                click.echo(f"  {node_name}")
            for dep in node.dependencies:
                click.echo(f"  {dep} --> {node_name}")
        click.echo("```")

    else:
        click.echo(f"\n Pipeline: {pipeline.name}")
        click.echo(f"{'=' * 50}")

        stages = pipeline.active_stages(ctx)
        click.echo(f"\n Stages: {len(stages)}")
        for stage in stages:
            inputs = f" <- {', '.join(stage.consumes)}" if stage.consumes else ""
            click.echo(f"  - {stage.name}: {stage.description}{inputs}")

        click.echo(f"\n Execution Levels:")
        for i, level in enumerate(stage_graph.get_execution_levels(), 1):
            click.echo(f"  {i}. {', '.join(level)}")

        click.echo(f"\n Exports:")
        for name in pipeline.export_names(ctx):
            click.echo(f"  - {name}")


@cli.command()
@_stack_options
def validate(stack_file: str, overrides: tuple):
    """
    Validate configuration and stage ordering without provisioning.

    Example:
        moraine validate -s Pulumi.dev.yaml
    """
    ctx = _load_context(stack_file, overrides)
    pipeline = build_pipeline()

    try:
        pipeline.validate(ctx)
    except PipelineError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Pipeline '{pipeline.name}' is valid ({len(pipeline.active_stages(ctx))} stages)")


def _load_context(stack_file: str | None, overrides: tuple) -> ProvisioningContext:
    """
    Build the provisioning context from a stack file and overrides.

    Relative paths in the configuration resolve against the stack file's
    directory, or the current directory without one.
    """
    try:
        if stack_file:
            config = load_stack_file(stack_file, project=DEFAULT_PROJECT_NAME)
            workdir = Path(stack_file).resolve().parent
        else:
            config = StackConfig()
            workdir = Path.cwd()
        config = config.with_overrides(parse_overrides(overrides))
    except (StackConfigError, ValueError) as e:
        click.echo(f"✗ Invalid configuration: {e}", err=True)
        sys.exit(1)

    return config.to_context(workdir=workdir)


if __name__ == "__main__":
    cli()
