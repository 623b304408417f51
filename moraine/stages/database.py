"""Managed PostgreSQL stage."""

from moraine.core.context import retrieve_region
from moraine.core.stage import StageContext
from moraine.defaults import (
    DATABASE_NAME,
    DATABASE_TIER_KEY,
    DATABASE_VERSION_KEY,
    DEFAULT_DATABASE_TIER,
    DEFAULT_DATABASE_VERSION,
)
from moraine.resources.gcp import DatabaseInstanceSpec, DatabaseSettings


def setup_postgres_database(ctx: StageContext) -> dict:
    """Cloud SQL PostgreSQL instance; the tier is checked by Cloud SQL itself."""
    database = ctx.declare(DATABASE_NAME, DatabaseInstanceSpec(
        database_version=ctx.config.get(DATABASE_VERSION_KEY, DEFAULT_DATABASE_VERSION),
        region=retrieve_region(ctx.config),
        deletion_protection=False,
        settings=DatabaseSettings(
            tier=ctx.config.get(DATABASE_TIER_KEY, DEFAULT_DATABASE_TIER),
        ),
    ))

    ctx.export("databaseConnectionName", database["connection_name"])
    return {"database": database}
