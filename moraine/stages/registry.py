"""
Container registry stages: the Artifact Registry repository and the
optional image build.
"""

from moraine.core.context import ProvisioningContext, retrieve_region
from moraine.core.resource import ResourceHandle
from moraine.core.stage import StageContext
from moraine.defaults import BUILD_IMAGE_KEY, IMAGE_NAME, PROJECT_KEY, REPOSITORY_NAME
from moraine.resources.docker import ImageSpec
from moraine.resources.gcp import RepositoryDockerConfig, RepositorySpec

IMAGE_CONTEXT = "./src/main/docker"
IMAGE_PLATFORMS = ["linux/amd64", "linux/arm64"]


def setup_docker_repository(ctx: StageContext) -> dict:
    """Docker repository with immutable tags in the stack's region."""
    repository = ctx.declare(REPOSITORY_NAME, RepositorySpec(
        repository_id=REPOSITORY_NAME,
        location=retrieve_region(ctx.config),
        format="DOCKER",
        description="Docker repository for microservice",
        docker_config=RepositoryDockerConfig(immutable_tags=True),
    ))

    ctx.export("repositoryId", repository["id"])
    return {"repository": repository}


def image_build_enabled(ctx: ProvisioningContext) -> bool:
    """The image build only runs when ``moraine:buildImage`` is true."""
    return ctx.get_bool(BUILD_IMAGE_KEY)


def build_docker_image(ctx: StageContext, repository: ResourceHandle) -> dict:
    """
    Build the microservice image for amd64 and arm64.

    The image is built (also on preview) but not pushed. It waits for the
    repository so a later switch to ``push=True`` has somewhere to go.
    """
    project = ctx.config.get(PROJECT_KEY, ctx.config.project)
    image = ctx.declare(
        IMAGE_NAME,
        ImageSpec(
            tags=[f"gcr.io/{project}/{ctx.config.project}microservice:latest"],
            context=IMAGE_CONTEXT,
            platforms=IMAGE_PLATFORMS,
            push=False,
            build_on_preview=True,
        ),
        depends_on=[repository],
    )

    ctx.export("imageRef", image["ref"])
    return {"image": image}
