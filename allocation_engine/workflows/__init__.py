"""Allocation workflows (auto with preview, manual bulk assignment)."""

from .auto import AutoAllocationWorkflow
from .manual import ManualAllocationWorkflow

__all__ = ["AutoAllocationWorkflow", "ManualAllocationWorkflow"]
