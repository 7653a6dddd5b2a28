"""Result aggregation into the campaign output tree.

Layout::

    <output_dir>/
        summary.json
        <module_id>/result     raw output of a successful run
        <module_id>/error      diagnostics and partial output of a failed run

Anything an entry point writes into its ``<module_id>/`` directory is
kept alongside.
"""

import json
import logging
import shutil
import tempfile
import threading
from pathlib import Path

from .result import CampaignResult, ExecutionRecord, RunStatus

logger = logging.getLogger(__name__)

RESULT_FILE = "result"
ERROR_FILE = "error"
SUMMARY_FILE = "summary.json"


class AggregationError(Exception):
    """Raised when the output tree cannot be written."""


class ResultAggregator:
    """Write execution records into a stable, enumerable directory tree.

    All writes go through one lock so parallel workers can share an
    instance.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self._lock = threading.Lock()

    def prepare(self) -> None:
        """Create and check the output root, then drop the previous campaign.

        Only directories the previous ``summary.json`` lists are removed;
        other files in the output root are left alone.

        Raises:
            AggregationError: If the directory cannot be created or written.
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=self.output_dir, prefix=".writecheck-"):
                pass
        except OSError as e:
            raise AggregationError(
                f"Output directory {self.output_dir} is not writable: {e}"
            ) from e

        summary = self.output_dir / SUMMARY_FILE
        if not summary.exists():
            return
        stale = self._previous_modules(summary)
        try:
            for module_id in stale:
                path = self.module_dir(module_id)
                if path.is_dir():
                    shutil.rmtree(path)
            summary.unlink()
        except OSError as e:
            raise AggregationError(
                f"Cannot clear previous output in {self.output_dir}: {e}"
            ) from e
        if stale:
            logger.info(f"Removed output of {len(stale)} module(s) from a previous campaign")

    @staticmethod
    def _previous_modules(summary: Path) -> list[str]:
        try:
            data = json.loads(summary.read_text())
            entries = data.get("modules", [])
            names = [e["module"] for e in entries]
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable previous summary {summary}: {e}")
            return []
        # Plain directory names only; never follow a path out of the output root.
        return [
            n for n in names
            if isinstance(n, str) and n not in ("", ".", "..") and Path(n).name == n
        ]

    def module_dir(self, module_id: str) -> Path:
        return self.output_dir / module_id

    def reset_module(self, module_id: str) -> Path:
        """Clear anything left by a previous campaign and recreate the module directory."""
        path = self.module_dir(module_id)
        with self._lock:
            try:
                if path.exists():
                    shutil.rmtree(path)
                path.mkdir(parents=True)
            except OSError as e:
                raise AggregationError(f"Cannot prepare {path}: {e}") from e
        return path

    def collect(self, record: ExecutionRecord) -> Path | None:
        """Persist one record. Returns the written file, or None for skips.

        Raises:
            AggregationError: If the file cannot be written.
        """
        path = self.module_dir(record.module)
        with self._lock:
            try:
                if record.status == RunStatus.SKIPPED:
                    if path.exists():
                        shutil.rmtree(path)
                    return None

                path.mkdir(parents=True, exist_ok=True)
                if record.status == RunStatus.SUCCESS:
                    target = path / RESULT_FILE
                    target.write_bytes(record.raw_output)
                else:
                    target = path / ERROR_FILE
                    target.write_bytes(self._error_document(record))
            except OSError as e:
                raise AggregationError(
                    f"Cannot write results for {record.module}: {e}"
                ) from e

        logger.debug(f"Collected {record.module} -> {target}")
        return target

    @staticmethod
    def _error_document(record: ExecutionRecord) -> bytes:
        reason = record.reason.value if record.reason else "Unknown"
        header = (
            f"module: {record.module}\n"
            f"reason: {reason}\n"
            f"detail: {record.detail}\n"
            f"duration_s: {record.duration_s:.3f}\n"
            f"--- output ---\n"
        )
        return header.encode() + record.raw_output

    def write_summary(self, result: CampaignResult) -> Path:
        """Write ``summary.json`` describing every module's outcome."""
        data = {
            "campaign_name": result.campaign_name,
            "started_at": result.started_at,
            "completed_at": result.completed_at,
            "overall_status": result.overall_status.value,
            "total": result.total,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "skipped": result.skipped,
            "modules": [self._summary_entry(r) for r in result.records],
        }
        target = self.output_dir / SUMMARY_FILE

        with self._lock:
            try:
                fd, tmp_path = tempfile.mkstemp(dir=self.output_dir, suffix=".tmp")
                try:
                    with open(fd, "w") as f:
                        json.dump(data, f, indent=2)
                    Path(tmp_path).replace(target)
                except Exception:
                    Path(tmp_path).unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise AggregationError(f"Cannot write {target}: {e}") from e
        return target

    def _summary_entry(self, record: ExecutionRecord) -> dict:
        entry = {
            "module": record.module,
            "status": record.status.value,
            "reason": record.reason.value if record.reason else None,
            "detail": record.detail,
            "duration_s": round(record.duration_s, 3),
            "path": None,
        }
        if record.status == RunStatus.SUCCESS:
            entry["path"] = f"{record.module}/{RESULT_FILE}"
        elif record.status == RunStatus.FAILED:
            entry["path"] = f"{record.module}/{ERROR_FILE}"
        return entry
