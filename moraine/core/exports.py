"""
Export table: the named outputs a run reports back to the operator.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from moraine.core.cell import Cell, as_cell

logger = logging.getLogger(__name__)


class DuplicateExportError(Exception):
    """Raised when an export name is used twice in one run."""
    pass


@dataclass
class ResolvedExports:
    """Export values after every recorded cell has settled."""

    values: dict[str, Any] = field(default_factory=dict)
    """Resolved value per export name"""

    failures: dict[str, BaseException] = field(default_factory=dict)
    """Failure per export name whose cell did not resolve"""

    @property
    def ok(self) -> bool:
        return not self.failures


class ExportTable:
    """
    Records named outputs for a single run.

    Entries only accumulate: a name can be used once and is never removed
    or replaced. Recording never waits for the value; ``resolve`` does the
    waiting at the end of the run.

    Example:
        exports = ExportTable()
        exports.export("bucketUrl", bucket["url"])
        exports.export("readme", "# Stack")
        resolved = await exports.resolve()
    """

    def __init__(self):
        self._entries: dict[str, Cell[Any]] = {}

    def export(self, name: str, value: Any) -> Cell[Any]:
        """
        Record an export.

        Args:
            name: Export name, unique within the run
            value: Cell or plain value

        Returns:
            The cell stored for this export

        Raises:
            DuplicateExportError: If ``name`` was already exported
        """
        if name in self._entries:
            raise DuplicateExportError(f"Export '{name}' is already defined in this run")
        cell = as_cell(value)
        self._entries[name] = cell
        logger.debug("Recorded export '%s'", name)
        return cell

    def names(self) -> list[str]:
        """Export names in recording order."""
        return list(self._entries.keys())

    def get(self, name: str) -> Cell[Any] | None:
        return self._entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def resolve(self) -> ResolvedExports:
        """Wait for every recorded export and collect values and failures."""
        resolved = ResolvedExports()
        for name, cell in list(self._entries.items()):
            try:
                resolved.values[name] = await cell
            except Exception as e:
                logger.warning("Export '%s' did not resolve: %s", name, e)
                resolved.failures[name] = e
        return resolved
