"""Stack README passthrough."""

import logging

from moraine.core.stage import StageContext
from moraine.defaults import DEFAULT_README, README_KEY

logger = logging.getLogger(__name__)


def export_readme(ctx: StageContext) -> dict:
    """Export the stack README so it shows up next to the outputs."""
    path = ctx.config.resolve_path(ctx.config.get(README_KEY, DEFAULT_README))
    logger.debug("Reading stack README from %s", path)
    ctx.export("readme", path.read_text())
    return {}
