"""
Live status dashboard for concurrent model batches.

Worker threads report phase changes to a ``DashboardCoordinator``, which keeps
a ``ModelStatusTracker`` and redraws through a ``StatusRenderer``: in place with
a spinner on a terminal, as appended plain-text blocks in CI and pipes.
"""

from .coordinator import DashboardCoordinator, TrackingState
from .layout import calculate_layout
from .models import (
    AggregateSummary,
    FailedModel,
    JobPhase,
    JobSpec,
    JobView,
    LayoutConfig,
    OutputFile,
    StatusSnapshot,
    SummaryData,
)
from .renderer import StatusRenderer
from .tracker import ModelStatusTracker

__all__ = [
    "AggregateSummary",
    "DashboardCoordinator",
    "FailedModel",
    "JobPhase",
    "JobSpec",
    "JobView",
    "LayoutConfig",
    "ModelStatusTracker",
    "OutputFile",
    "StatusRenderer",
    "StatusSnapshot",
    "SummaryData",
    "TrackingState",
    "calculate_layout",
]
