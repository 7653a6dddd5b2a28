"""Campaign system for runtime weight benchmark orchestration."""

from .aggregator import AggregationError, ResultAggregator
from .build import Artifact, BuildError, BuildStage
from .executor import BenchmarkExecutor, ExecutionFailure
from .params import RunConfig, SelectionMode, resolve
from .registry import ModuleDescriptor, ModuleKind, ModuleRegistry, UnknownModuleError
from .result import CampaignResult, ExecutionRecord, FailureReason, OverallStatus, RunStatus
from .runner import CampaignCancelled, CampaignController, CampaignState

__all__ = [
    "AggregationError",
    "Artifact",
    "BenchmarkExecutor",
    "BuildError",
    "BuildStage",
    "CampaignCancelled",
    "CampaignController",
    "CampaignResult",
    "CampaignState",
    "ExecutionFailure",
    "ExecutionRecord",
    "FailureReason",
    "ModuleDescriptor",
    "ModuleKind",
    "ModuleRegistry",
    "OverallStatus",
    "ResultAggregator",
    "RunConfig",
    "RunStatus",
    "SelectionMode",
    "UnknownModuleError",
    "resolve",
]
