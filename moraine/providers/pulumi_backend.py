"""
Pulumi backend: creates real resources with pulumi_gcp, pulumi_kubernetes
and pulumi_docker_build.

Only usable inside a Pulumi program (see ``moraine.program``). The Pulumi
SDKs are imported when the first resource is declared, so the rest of
moraine works without them.
"""

import importlib
import logging
from typing import Any

from moraine.providers.base import Backend
from moraine.resources import RESOURCE_SPECS

logger = logging.getLogger(__name__)


class UnsupportedResourceError(Exception):
    """Raised for a resource type the Pulumi backend cannot create."""
    pass


class UnknownOutputError(Exception):
    """Raised when an output is not known yet, as during a preview."""
    pass


# resource type -> (module, attribute path of the constructor)
CONSTRUCTORS: dict[str, tuple[str, str]] = {
    "gcp:storage/bucket:Bucket": ("pulumi_gcp", "storage.Bucket"),
    "gcp:artifactregistry/repository:Repository": ("pulumi_gcp", "artifactregistry.Repository"),
    "gcp:container/cluster:Cluster": ("pulumi_gcp", "container.Cluster"),
    "gcp:sql/databaseInstance:DatabaseInstance": ("pulumi_gcp", "sql.DatabaseInstance"),
    "pulumi:providers:kubernetes": ("pulumi_kubernetes", "Provider"),
    "kubernetes:core/v1:Namespace": ("pulumi_kubernetes", "core.v1.Namespace"),
    "kubernetes:apps/v1:Deployment": ("pulumi_kubernetes", "apps.v1.Deployment"),
    "kubernetes:core/v1:Service": ("pulumi_kubernetes", "core.v1.Service"),
    "docker-build:index:Image": ("pulumi_docker_build", "Image"),
}

# resource type -> output name -> attribute path on the created resource
OUTPUT_PATHS: dict[str, dict[str, str]] = {
    spec_class.resource_type: dict(spec_class.outputs) for spec_class in RESOURCE_SPECS
}

# resource type -> outputs that may legitimately be absent
OPTIONAL_OUTPUTS: dict[str, frozenset[str]] = {
    spec_class.resource_type: frozenset(spec_class.optional_outputs) for spec_class in RESOURCE_SPECS
}


async def resolve_output(resource: Any, path: str) -> Any:
    """
    Await the output at a dotted attribute path of a Pulumi resource.

    Raises:
        UnknownOutputError: If the value is not known yet
    """
    from pulumi.output import contains_unknowns

    output = resource
    for part in path.split("."):
        output = getattr(output, part)
    value = await output.future(with_unknowns=True)
    if contains_unknowns(value):
        raise UnknownOutputError(f"Output '{path}' is not known yet")
    return value


def _metadata(properties: dict[str, Any], namespaced: bool = True) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if properties.get("name"):
        metadata["name"] = properties["name"]
    if namespaced:
        metadata["namespace"] = properties["namespace"]
    if properties.get("labels"):
        metadata["labels"] = properties["labels"]
    return metadata


def to_resource_args(resource_type: str, properties: dict[str, Any]) -> dict[str, Any]:
    """
    Translate resolved specification properties into constructor arguments.

    Google Cloud specs already use the provider's argument names and pass
    through unchanged. Kubernetes and image specs are expanded into the
    nested structures their SDKs expect.

    Raises:
        UnsupportedResourceError: For unknown resource types
    """
    if resource_type not in CONSTRUCTORS:
        raise UnsupportedResourceError(f"No Pulumi constructor for '{resource_type}'")

    if resource_type.startswith("gcp:"):
        return dict(properties)

    if resource_type == "pulumi:providers:kubernetes":
        return dict(properties)

    if resource_type == "kubernetes:core/v1:Namespace":
        return {"metadata": _metadata(properties, namespaced=False)}

    if resource_type == "kubernetes:apps/v1:Deployment":
        labels = properties["labels"]
        container: dict[str, Any] = {
            "name": properties["container_name"],
            "image": properties["image"],
            "ports": [{"container_port": properties["container_port"]}],
        }
        if properties.get("env"):
            container["env"] = [
                {"name": key, "value": value} for key, value in properties["env"].items()
            ]
        return {
            "metadata": _metadata(properties),
            "spec": {
                "replicas": properties["replicas"],
                "selector": {"match_labels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": {"containers": [container]},
                },
            },
        }

    if resource_type == "kubernetes:core/v1:Service":
        return {
            "metadata": _metadata(properties),
            "spec": {
                "type": properties["type"],
                "selector": properties["selector"],
                "ports": [{
                    "port": properties["port"],
                    "target_port": properties["target_port"],
                }],
            },
        }

    # docker-build:index:Image
    args = {key: value for key, value in properties.items() if key != "context"}
    args["context"] = {"location": properties["context"]}
    return args


class PulumiBackend(Backend):
    """
    Backend that registers resources with the Pulumi engine.

    Outputs are awaited through ``Output.future()``. An output that is not
    known yet (during a preview) fails the resource with UnknownOutputError,
    except for optional outputs, which are left out.

    Example (inside a Pulumi program):
        result = await build_pipeline().execute(ctx, PulumiBackend())
    """

    def __init__(self):
        try:
            import pulumi
        except ImportError:
            raise ImportError(
                "pulumi required for PulumiBackend. "
                "Install with: pip install moraine-stack[gcp]"
            )
        self._pulumi = pulumi
        self._resources: dict[str, Any] = {}

    def get_backend_name(self) -> str:
        return "pulumi"

    def _constructor(self, resource_type: str):
        module_name, path = CONSTRUCTORS[resource_type]
        try:
            target = importlib.import_module(module_name)
        except ImportError:
            package = module_name.replace("_", "-")
            raise UnsupportedResourceError(
                f"{package} required for '{resource_type}'. "
                f"Install with: pip install {package}"
            )
        for part in path.split("."):
            target = getattr(target, part)
        return target

    async def declare(
        self,
        name: str,
        resource_type: str,
        properties: dict[str, Any],
        provider: str | None = None,
        depends_on: list[str] | tuple[str, ...] = (),
    ) -> dict[str, Any]:
        args = to_resource_args(resource_type, properties)
        constructor = self._constructor(resource_type)
        opts = self._pulumi.ResourceOptions(
            provider=self._resources[provider] if provider else None,
            depends_on=[self._resources[dependency] for dependency in depends_on],
        )

        logger.debug("Registering %s '%s' with Pulumi", resource_type, name)
        resource = constructor(name, opts=opts, **args)
        self._resources[name] = resource

        optional = OPTIONAL_OUTPUTS.get(resource_type, frozenset())
        outputs: dict[str, Any] = {}
        for key, path in OUTPUT_PATHS.get(resource_type, {"id": "id"}).items():
            try:
                outputs[key] = await resolve_output(resource, path)
            except UnknownOutputError:
                if key not in optional:
                    raise
                logger.debug("Optional output '%s' of '%s' is unknown", key, name)
        return outputs

    def __repr__(self):
        return f"PulumiBackend(resources={len(self._resources)})"
