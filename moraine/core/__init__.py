"""
Core moraine functionality.

- Cell: values that resolve asynchronously
- Provisioner: declares resources and hands out their handles
- ExportTable: named outputs of a run
- ProvisioningPipeline: runs stages in dependency order
"""

from moraine.core.cell import Cell, CellState, CellStateError
from moraine.core.context import ProvisioningContext, retrieve_region
from moraine.core.dag import StageGraph, StageGraphError
from moraine.core.exports import DuplicateExportError, ExportTable
from moraine.core.resource import (
    DuplicateResourceError,
    Provisioner,
    ProvisioningError,
    ResourceHandle,
    ResourceSpec,
)
from moraine.core.stage import Stage, StageContext, StageContractError
from moraine.core.pipeline import PipelineError, ProvisioningPipeline, RunResult

__all__ = [
    "Cell",
    "CellState",
    "CellStateError",
    "ProvisioningContext",
    "retrieve_region",
    "StageGraph",
    "StageGraphError",
    "ExportTable",
    "DuplicateExportError",
    "Provisioner",
    "ProvisioningError",
    "DuplicateResourceError",
    "ResourceHandle",
    "ResourceSpec",
    "Stage",
    "StageContext",
    "StageContractError",
    "ProvisioningPipeline",
    "PipelineError",
    "RunResult",
]
