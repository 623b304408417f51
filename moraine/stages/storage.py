"""Object storage stage."""

from moraine.core.stage import StageContext
from moraine.defaults import BUCKET_NAME
from moraine.resources.gcp import BucketCors, BucketSpec


def setup_storage_bucket(ctx: StageContext) -> dict:
    """Storage bucket for static assets, readable cross-origin."""
    bucket = ctx.declare(BUCKET_NAME, BucketSpec(
        location="EU",
        cors=[BucketCors(
            max_age_seconds=3600,
            methods=["GET", "HEAD"],
            origins=["*"],
            response_headers=["Content-Type"],
        )],
        force_destroy=True,
    ))

    ctx.export("bucketUrl", bucket["url"])
    return {"bucket": bucket}
