"""Campaign result dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List


class RunStatus(str, Enum):
    """Outcome of a single module execution."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureReason(str, Enum):
    """What distinguished a failed module execution."""

    NON_ZERO_EXIT = "NonZeroExit"
    TIMEOUT = "Timeout"
    CRASH = "Crash"
    CANCELLED = "Cancelled"


class OverallStatus(str, Enum):
    SUCCESS = "Success"
    PARTIAL_FAILURE = "PartialFailure"


@dataclass
class ExecutionRecord:
    """Result of one attempted module execution."""

    module: str
    status: RunStatus
    raw_output: bytes = b""
    duration_s: float = 0.0
    reason: FailureReason | None = None
    detail: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == RunStatus.FAILED


@dataclass
class CampaignResult:
    """Aggregated result of a full campaign.

    ``records`` holds exactly one entry per selected module, in registry
    enumeration order.
    """

    campaign_name: str
    started_at: str = ""
    completed_at: str = ""
    records: List[ExecutionRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.records if r.status == RunStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.status == RunStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.records if r.status == RunStatus.SKIPPED)

    @property
    def total_duration_s(self) -> float:
        return sum(r.duration_s for r in self.records)

    @property
    def overall_status(self) -> OverallStatus:
        if self.failed > 0:
            return OverallStatus.PARTIAL_FAILURE
        return OverallStatus.SUCCESS

    @property
    def failed_records(self) -> List[ExecutionRecord]:
        return [r for r in self.records if r.status == RunStatus.FAILED]
