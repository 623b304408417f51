"""
Provisioning context shared by every stage of a run.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from moraine.defaults import DEFAULT_PROJECT_NAME, DEFAULT_REGION, REGION_KEY


ConfigReader = Callable[[str], str | None]


@dataclass(frozen=True)
class ProvisioningContext:
    """
    Read-only configuration for one pipeline run.

    Stages only read from the context. It carries no mutable state, so the
    same instance can be shared by stages that run concurrently.

    Example:
        ctx = ProvisioningContext.from_mapping(
            {"gcp:region": "europe-west3", "gcp:project": "demo"},
            project="moraine",
            stack="dev",
        )
        ctx.read_config("gcp:region")  # "europe-west3"
    """

    reader: ConfigReader
    """Callable returning the configured string for a key, or None"""

    project: str = DEFAULT_PROJECT_NAME
    """Project name (used in generated image tags)"""

    stack: str = "dev"
    """Stack name"""

    workdir: Path = field(default_factory=Path.cwd)
    """Directory that relative file paths in the configuration refer to"""

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        project: str = DEFAULT_PROJECT_NAME,
        stack: str = "dev",
        workdir: str | Path | None = None,
    ) -> "ProvisioningContext":
        """Build a context over a plain mapping of configuration values."""
        frozen = {key: _to_config_string(value) for key, value in values.items()}
        return cls(
            reader=frozen.get,
            project=project,
            stack=stack,
            workdir=Path(workdir) if workdir is not None else Path.cwd(),
        )

    def read_config(self, key: str) -> str | None:
        """Return the configured value for ``key`` or None when unset."""
        return self.reader(key)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the configured value for ``key`` or ``default``."""
        value = self.read_config(key)
        return default if value is None else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.read_config(key)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def resolve_path(self, value: str | Path) -> Path:
        """Resolve a configured path against the working directory."""
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.workdir / path


def retrieve_region(ctx: ProvisioningContext) -> str:
    """Region from the ``gcp:region`` key, falling back to ``europe-west1``."""
    return ctx.get(REGION_KEY) or DEFAULT_REGION


def _to_config_string(value: Any) -> str:
    # Pulumi stores every config value as a string; booleans as "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
