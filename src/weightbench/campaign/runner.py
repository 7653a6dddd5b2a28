"""Campaign controller: sequences resolve, build, execute and aggregate."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from weightbench.config.models import CampaignConfig

from .aggregator import ResultAggregator
from .build import Artifact, BuildStage
from .discovery import discover_modules
from .executor import BenchmarkExecutor
from .params import RunConfig, SelectionMode, resolve
from .registry import ModuleDescriptor, ModuleRegistry
from .result import CampaignResult, ExecutionRecord, FailureReason, RunStatus

logger = logging.getLogger(__name__)


class CampaignState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    BUILDING = "building"
    EXECUTING = "executing"
    AGGREGATED = "aggregated"
    DONE = "done"
    FAILED = "failed"


class CampaignCancelled(Exception):
    """Raised after an interrupted campaign has been wound down.

    ``result`` holds every record collected so far; modules that never
    started are recorded as skipped.
    """

    def __init__(self, result: CampaignResult) -> None:
        super().__init__(
            f"Campaign '{result.campaign_name}' cancelled "
            f"({result.succeeded + result.failed}/{result.total} modules ran)"
        )
        self.result = result


class CampaignController:
    """Orchestrate a weight benchmark campaign.

    Main loop:
    1. Resolve trigger parameters and select modules (fatal on bad input)
    2. Build the artifact once (fatal on failure)
    3. Run every selected module, isolating per-module failures
    4. Collect each outcome into the output tree and write the summary

    Only steps 1 and 2 can fail the campaign; a failing module never stops
    its siblings.
    """

    def __init__(
        self,
        config: CampaignConfig,
        output_dir: Optional[Path] = None,
        workers: Optional[int] = None,
        skip_build: bool = False,
        build_stage: Optional[BuildStage] = None,
        executor: Optional[BenchmarkExecutor] = None,
        aggregator: Optional[ResultAggregator] = None,
    ) -> None:
        self.config = config
        self.output_dir = Path(output_dir or config.output_dir)
        self.workers = workers or config.workers
        self.build_stage = build_stage or BuildStage(config.build, skip_build=skip_build)
        self.executor = executor or BenchmarkExecutor(
            output_dir=self.output_dir, cwd=config.build.cwd
        )
        self.aggregator = aggregator or ResultAggregator(self.output_dir)
        self.state = CampaignState.IDLE

    def _transition(self, state: CampaignState) -> None:
        logger.debug(f"Campaign state: {self.state.value} -> {state.value}")
        self.state = state

    def resolve(self, raw_extra_flag: Any = None, raw_subset_flag: Any = None) -> RunConfig:
        return resolve(raw_extra_flag, raw_subset_flag, self.config.own_modules)

    def plan(self, run_config: RunConfig) -> List[ModuleDescriptor]:
        """Select modules from the configured registry, without building.

        Raises:
            UnknownModuleError: If a requested id is not configured.
        """
        return ModuleRegistry.from_config(self.config).filter(run_config)

    def run(
        self,
        raw_extra_flag: Any = None,
        raw_subset_flag: Any = None,
    ) -> CampaignResult:
        """Execute the campaign.

        Returns:
            CampaignResult with one record per selected module.

        Raises:
            ConfigError, UnknownModuleError, AggregationError: Before build.
            BuildError: If the artifact (or module discovery) fails.
            CampaignCancelled: On interrupt, after in-flight work is wound down.
        """
        result = CampaignResult(
            campaign_name=self.config.campaign_name,
            started_at=datetime.now().isoformat(),
        )

        try:
            self._transition(CampaignState.RESOLVING)
            run_config = self.resolve(raw_extra_flag, raw_subset_flag)
            logger.info(f"Campaign '{self.config.campaign_name}': {run_config.describe()}")
            selected = self.plan(run_config)
            self.aggregator.prepare()

            self._transition(CampaignState.BUILDING)
            artifact = self.build_stage.build()
            # Discovered modules only widen an "all" selection; a subset was
            # already checked against the configuration.
            widen = run_config.selection_mode == SelectionMode.ALL
            if self.config.discovery is not None and widen:
                discovered = discover_modules(
                    self.config.discovery, artifact, cwd=self.config.build.cwd
                )
                registry = ModuleRegistry.from_config(self.config, discovered)
                selected = registry.filter(run_config)
        except Exception:
            self._transition(CampaignState.FAILED)
            raise

        logger.info(f"{len(selected)} module(s) selected")
        self._transition(CampaignState.EXECUTING)
        records, cancelled = self._execute_all(artifact, selected)

        result.records = [records[desc.id] for desc in selected]
        result.completed_at = datetime.now().isoformat()
        try:
            self.aggregator.write_summary(result)
        except Exception:
            self._transition(CampaignState.FAILED)
            raise
        self._transition(CampaignState.AGGREGATED)

        summary = (
            f"Total: {result.total}, "
            f"Succeeded: {result.succeeded}, "
            f"Failed: {result.failed}, "
            f"Skipped: {result.skipped}, "
            f"Duration: {result.total_duration_s / 60:.1f}m"
        )
        if cancelled:
            self._transition(CampaignState.FAILED)
            logger.warning(f"Campaign cancelled: {summary}")
            raise CampaignCancelled(result)

        logger.info(f"Campaign complete ({result.overall_status.value}): {summary}")
        self._transition(CampaignState.DONE)
        return result

    def _execute_all(
        self,
        artifact: Artifact,
        selected: List[ModuleDescriptor],
    ) -> tuple[Dict[str, ExecutionRecord], bool]:
        """Run all modules on a bounded pool; returns records by id and whether cancelled."""
        records: Dict[str, ExecutionRecord] = {}
        cancelled = False
        pool = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="weightbench"
        )
        futures: Dict[Future, ModuleDescriptor] = {
            pool.submit(self._run_module, artifact, desc): desc for desc in selected
        }

        try:
            for future in as_completed(futures):
                record = future.result()
                records[record.module] = record
                logger.info(
                    f"[{len(records)}/{len(selected)}] {record.module}: {record.status.value}"
                )
        except KeyboardInterrupt:
            cancelled = True
            logger.warning("Interrupted, no new modules will be started")
            pool.shutdown(wait=False, cancel_futures=True)
            self.executor.cancel(self.config.cancel_grace_s)
            for future, desc in futures.items():
                if desc.id in records:
                    continue
                if future.cancelled():
                    record = self._cancelled_record(desc)
                    self.aggregator.collect(record)
                else:
                    record = future.result()
                records[desc.id] = record
        except Exception:
            # Output tree failures lose results; stop everything.
            pool.shutdown(wait=False, cancel_futures=True)
            self.executor.cancel(0)
            self._transition(CampaignState.FAILED)
            raise
        finally:
            pool.shutdown(wait=True)

        return records, cancelled

    def _run_module(self, artifact: Artifact, desc: ModuleDescriptor) -> ExecutionRecord:
        module_dir = None
        if not self.executor.cancelled and self.executor.skip_reason(artifact, desc) is None:
            module_dir = self.aggregator.reset_module(desc.id)
        record = self.executor.run(artifact, desc, module_dir)
        self.aggregator.collect(record)
        return record

    @staticmethod
    def _cancelled_record(desc: ModuleDescriptor) -> ExecutionRecord:
        return ExecutionRecord(
            module=desc.id,
            status=RunStatus.SKIPPED,
            reason=FailureReason.CANCELLED,
            detail="Campaign cancelled before this module started",
        )
