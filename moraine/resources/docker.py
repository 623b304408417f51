"""
Container image build specification.
"""

from typing import ClassVar

from pydantic import Field

from moraine.core.resource import Input, ResourceSpec


class ImageSpec(ResourceSpec):
    """
    Image built with BuildKit.

    Example:
        ImageSpec(
            tags=["gcr.io/demo/app:latest"],
            context="./src/main/docker",
            platforms=["linux/amd64", "linux/arm64"],
        )
    """

    resource_type: ClassVar[str] = "docker-build:index:Image"
    outputs: ClassVar[dict[str, str]] = {"ref": "ref"}

    tags: list[Input[str]] = Field(..., min_length=1)
    context: str = Field(..., description="Build context directory")
    platforms: list[str] | None = None
    push: bool = False
    build_on_preview: bool = True
