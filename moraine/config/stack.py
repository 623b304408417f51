"""
Stack configuration files.

Stack files use the ``Pulumi.<stack>.yaml`` layout, so the same file drives
``pulumi up`` and ``moraine run``:

    config:
      gcp:project: my-project
      gcp:region: europe-west3
      moraine:clusterMode: regional
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from moraine.core.context import ProvisioningContext
from moraine.defaults import DEFAULT_PROJECT_NAME


class StackConfigError(Exception):
    """Raised when a stack file cannot be read or is malformed."""
    pass


class StackConfig(BaseModel):
    """
    Configuration of one stack.

    Example:
        config = StackConfig(
            stack="dev",
            config={"gcp:region": "europe-west3"},
        )
        ctx = config.to_context()
    """

    stack: str = Field(default="dev", description="Stack name")
    project: str = Field(default=DEFAULT_PROJECT_NAME, description="Project name")
    config: dict[str, str | int | float | bool] = Field(
        default_factory=dict, description="Configuration values by 'namespace:key'"
    )
    encryptionsalt: str | None = Field(default=None, description="Ignored; Pulumi secrets salt")

    @field_validator("config")
    @classmethod
    def _keys_are_namespaced(cls, value: dict[str, Any]) -> dict[str, Any]:
        bad = [key for key in value if ":" not in key]
        if bad:
            raise ValueError(
                f"Configuration keys must look like 'namespace:key', got: {', '.join(bad)}"
            )
        return value

    def with_overrides(self, overrides: dict[str, str]) -> "StackConfig":
        """Return a copy with ``overrides`` applied on top of the file values."""
        return StackConfig.model_validate({
            **self.model_dump(),
            "config": {**self.config, **overrides},
        })

    def to_context(self, workdir: str | Path | None = None) -> ProvisioningContext:
        """Build the read-only provisioning context for this stack."""
        return ProvisioningContext.from_mapping(
            self.config,
            project=self.project,
            stack=self.stack,
            workdir=workdir,
        )


def load_stack_file(path: str | Path, project: str = DEFAULT_PROJECT_NAME) -> StackConfig:
    """
    Load a ``Pulumi.<stack>.yaml`` file.

    The stack name is taken from the file name when it follows the Pulumi
    convention, otherwise it defaults to ``dev``.

    Raises:
        StackConfigError: If the file is unreadable or not a valid stack file
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except OSError as e:
        raise StackConfigError(f"Cannot read stack file '{path}': {e}") from e
    except yaml.YAMLError as e:
        raise StackConfigError(f"Stack file '{path}' is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise StackConfigError(f"Stack file '{path}' must contain a mapping")

    parts = path.name.split(".")
    stack = parts[1] if len(parts) == 3 and parts[0] == "Pulumi" else "dev"

    try:
        return StackConfig(stack=stack, project=project, **raw)
    except ValueError as e:
        raise StackConfigError(f"Invalid stack file '{path}': {e}") from e


def parse_overrides(pairs: tuple[str, ...] | list[str]) -> dict[str, str]:
    """
    Parse ``key=value`` pairs given on the command line.

    Raises:
        StackConfigError: If a pair has no '='
    """
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise StackConfigError(f"Expected key=value, got '{pair}'")
        overrides[key.strip()] = value.strip()
    return overrides
